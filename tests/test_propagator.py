"""
Tests for zscaler_trust.propagator module.

Tests target derivation, shell rendering, and per-target isolation during
propagation. Subprocesses are replaced by a Mock runner.
"""

import subprocess
from collections.abc import Mapping
from pathlib import Path
from unittest.mock import Mock

import pytest

from zscaler_trust.config import PropagationConfig
from zscaler_trust.errors import PropagationError
from zscaler_trust.models import (
    ConfigTarget,
    PlatformProfile,
    ShellKind,
    TargetKind,
    TargetStatus,
    TrustBundle,
)
from zscaler_trust.propagator import (
    ENV_TARGET_NAMES,
    ConfigPropagator,
    ExecutableLocator,
    PropagationReport,
    build_config_targets,
    build_tool_settings,
    render_env_block,
    render_source_line,
)
from zscaler_trust.stores import ConfigStore, MappingEnvironmentStore

from conftest import completed, locate_all


@pytest.fixture
def bundle(cert_dir: Path) -> TrustBundle:
    """Golden bundle location (files need not exist for propagation)."""
    return TrustBundle(
        bundle_path=cert_dir / 'ncs_golden_bundle.pem',
        chain_path=cert_dir / 'zscaler_chain.pem',
        certificate_count=1,
    )


@pytest.fixture
def environ() -> dict[str, str]:
    """Process environment stand-in."""
    return {'PATH': '/usr/bin', 'HOME': '/home/dev'}


def make_propagator(
    profile: PlatformProfile,
    environ: dict[str, str],
    runner: Mock,
    config: PropagationConfig | None = None,
    executable_locator: ExecutableLocator = locate_all,
    user_store: ConfigStore | None = None,
) -> ConfigPropagator:
    """Propagator over a dict environment with injected runner and locator."""
    return ConfigPropagator(
        config=config or PropagationConfig(),
        platform_profile=profile,
        process_store=MappingEnvironmentStore(environ),
        user_store=user_store,
        command_runner=runner,
        executable_locator=executable_locator,
    )


class TestBuildConfigTargets:
    """Test target derivation."""

    def test_ten_targets_in_order(self, bundle: TrustBundle) -> None:
        """The fixed set, in the fixed order."""
        targets = build_config_targets(bundle)

        assert [target.name for target in targets] == list(ENV_TARGET_NAMES)
        assert len(targets) == 10

    def test_values_derive_from_bundle(self, bundle: TrustBundle) -> None:
        """Directory targets get the cert dir, all others the bundle path."""
        values = {target.name: target for target in build_config_targets(bundle)}

        for name in ('SSL_CERT_DIR', 'CERT_DIR'):
            assert values[name].value == str(bundle.cert_dir)
            assert values[name].kind is TargetKind.DIRECTORY
        for name in set(ENV_TARGET_NAMES) - {'SSL_CERT_DIR', 'CERT_DIR'}:
            assert values[name].value == str(bundle.bundle_path)
            assert values[name].kind is TargetKind.FILE

    def test_tool_settings(self, bundle: TrustBundle) -> None:
        """One setting per requested tool."""
        settings = build_tool_settings(bundle, ['pip'])

        assert [(s.tool, s.key, s.value) for s in settings] == [
            ('pip', 'global.cert', str(bundle.bundle_path))
        ]


class TestRendering:
    """Test shell syntax."""

    @pytest.fixture
    def targets(self) -> list[ConfigTarget]:
        return [ConfigTarget(name='SSL_CERT_FILE', value='/home/dev/certs/b.pem')]

    def test_posix(self, targets: list[ConfigTarget]) -> None:
        assert render_env_block(targets, ShellKind.POSIX) == (
            'export SSL_CERT_FILE="/home/dev/certs/b.pem"\n'
        )

    def test_fish(self, targets: list[ConfigTarget]) -> None:
        assert render_env_block(targets, ShellKind.FISH) == (
            'set -gx SSL_CERT_FILE "/home/dev/certs/b.pem"\n'
        )

    def test_powershell(self) -> None:
        """Backslashes are literal in PowerShell strings."""
        targets = [ConfigTarget(name='SSL_CERT_FILE', value='C:\\Users\\dev\\certs\\b.pem')]

        assert render_env_block(targets, ShellKind.WINDOWS) == (
            '$env:SSL_CERT_FILE = "C:\\Users\\dev\\certs\\b.pem"\n'
        )

    def test_posix_escapes_expansion(self) -> None:
        """$ and quotes in a path cannot break out of the string."""
        targets = [ConfigTarget(name='A', value='/tmp/$x "y"')]

        assert render_env_block(targets, ShellKind.POSIX) == 'export A="/tmp/\\$x \\"y\\""\n'

    @pytest.mark.parametrize(
        ('shell', 'expected'),
        [
            (ShellKind.POSIX, '[ -f "/e/env.sh" ] && . "/e/env.sh"\n'),
            (ShellKind.FISH, 'test -f "/e/env.sh"; and source "/e/env.sh"\n'),
            (ShellKind.WINDOWS, 'if (Test-Path "/e/env.sh") { . "/e/env.sh" }\n'),
        ],
    )
    def test_source_line(self, shell: ShellKind, expected: str) -> None:
        assert render_source_line(Path('/e/env.sh'), shell) == expected


class TestPropagationReport:
    """Test report bookkeeping."""

    def test_records_in_order(self) -> None:
        report = PropagationReport()
        report.record('process-env', TargetStatus.APPLIED)
        report.record_failure(PropagationError('git', 'exit 128'))

        assert [r.target for r in report.results] == ['process-env', 'git']
        assert report.has_failures
        assert report.status_of('git') is TargetStatus.FAILED
        assert report.status_of('pip') is None
        assert str(report.errors[0]) == 'git: exit 128'


class TestConfigPropagator:
    """Test propagate()."""

    def test_applies_every_target(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """Environment, profile and all three tools are configured."""
        report = make_propagator(posix_profile, environ, command_runner).propagate(bundle)

        assert [(r.target, r.status) for r in report.results] == [
            ('process-env', TargetStatus.APPLIED),
            ('shell-profile', TargetStatus.APPLIED),
            ('git', TargetStatus.APPLIED),
            ('gcloud', TargetStatus.APPLIED),
            ('pip', TargetStatus.APPLIED),
        ]
        assert not report.has_failures
        for target in build_config_targets(bundle):
            assert environ[target.name] == target.value

        profile_text: str = posix_profile.profile_path.read_text(encoding='utf-8')
        assert f'export SSL_CERT_FILE="{bundle.bundle_path}"' in profile_text
        assert profile_text.count('# >>> zscaler-trust >>>') == 1

    def test_tool_commands_and_environment(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """Resolved executables are run with the updated environment."""
        make_propagator(posix_profile, environ, command_runner).propagate(bundle)

        commands: list[list[str]] = [c.args[0] for c in command_runner.call_args_list]
        assert [
            '/usr/bin/git',
            'config',
            '--global',
            'http.sslCAInfo',
            str(bundle.bundle_path),
        ] in commands
        assert [
            '/usr/bin/gcloud',
            'config',
            'set',
            'core/custom_ca_certs_file',
            str(bundle.bundle_path),
        ] in commands

        child_env: Mapping[str, str] = command_runner.call_args_list[0].args[1]
        assert child_env['REQUESTS_CA_BUNDLE'] == str(bundle.bundle_path)

    def test_second_run_is_unchanged(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
    ) -> None:
        """Re-running reports unchanged and leaves one block."""

        def runner(command: list[str], env: Mapping[str, str]) -> subprocess.CompletedProcess[str]:
            # Every tool already reports the bundle path on read-back
            return completed(stdout=f'{bundle.bundle_path}\n')

        propagator = make_propagator(posix_profile, environ, Mock(side_effect=runner))
        propagator.propagate(bundle)
        report = propagator.propagate(bundle)

        assert {r.status for r in report.results} == {TargetStatus.UNCHANGED}
        assert posix_profile.profile_path.read_text(encoding='utf-8').count(
            '# >>> zscaler-trust >>>'
        ) == 1

    def test_failing_tool_is_isolated(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
    ) -> None:
        """git failing does not stop gcloud and pip."""

        def runner(command: list[str], env: Mapping[str, str]) -> subprocess.CompletedProcess[str]:
            if command[0].endswith('git'):
                raise OSError('permission denied')
            return completed()

        report = make_propagator(posix_profile, environ, Mock(side_effect=runner)).propagate(bundle)

        assert report.status_of('git') is TargetStatus.FAILED
        assert report.status_of('gcloud') is TargetStatus.APPLIED
        assert report.status_of('pip') is TargetStatus.APPLIED
        assert [error.target for error in report.errors] == ['git']

    def test_non_zero_exit_is_failure(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
    ) -> None:
        """A command exiting non-zero records a PropagationError."""

        def runner(command: list[str], env: Mapping[str, str]) -> subprocess.CompletedProcess[str]:
            if command[0].endswith('pip') and 'set' in command:
                return completed(returncode=1, stderr='ERROR: Fatal Internal error')
            return completed()

        report = make_propagator(posix_profile, environ, Mock(side_effect=runner)).propagate(bundle)

        assert report.status_of('pip') is TargetStatus.FAILED
        assert 'Fatal Internal error' in str(report.errors[0])

    def test_missing_tool_is_skipped(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """A CLI that is not installed is skipped, not failed."""

        def locator(name: str, search_path: str | None) -> str | None:
            return None if name == 'gcloud' else f'/usr/bin/{name}'

        report = make_propagator(
            posix_profile,
            environ,
            command_runner,
            executable_locator=locator,
        ).propagate(bundle)

        assert report.status_of('gcloud') is TargetStatus.SKIPPED
        assert not report.has_failures

    def test_unwritable_profile_is_isolated(
        self,
        bundle: TrustBundle,
        home_dir: Path,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """A profile that cannot be written fails alone."""
        blocker: Path = home_dir / 'blocker'
        blocker.write_text('file', encoding='utf-8')
        profile = PlatformProfile(
            shell=ShellKind.POSIX,
            profile_path=blocker / '.bashrc',
            home=home_dir,
        )

        report = make_propagator(profile, environ, command_runner).propagate(bundle)

        assert report.status_of('shell-profile') is TargetStatus.FAILED
        assert report.status_of('process-env') is TargetStatus.APPLIED
        assert report.status_of('git') is TargetStatus.APPLIED

    def test_unterminated_block_is_reported(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """A begin marker without an end marker fails the profile and keeps the user's lines."""
        original: str = '# >>> zscaler-trust >>>\nexport A=1\nalias ll="ls -l"\n'
        posix_profile.profile_path.write_text(original, encoding='utf-8')

        report = make_propagator(posix_profile, environ, command_runner).propagate(bundle)

        assert report.status_of('shell-profile') is TargetStatus.FAILED
        assert [error.target for error in report.errors] == ['shell-profile']
        assert posix_profile.profile_path.read_text(encoding='utf-8') == original
        assert report.status_of('process-env') is TargetStatus.APPLIED

    def test_env_file_and_source_line(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        home_dir: Path,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """With an env file, the profile only sources it."""
        env_file: Path = home_dir / '.zscaler_env.sh'
        config = PropagationConfig(env_file=env_file, tools=[])

        report = make_propagator(posix_profile, environ, command_runner, config=config).propagate(
            bundle
        )

        assert report.status_of('env-file') is TargetStatus.APPLIED
        assert report.status_of('shell-profile') is TargetStatus.APPLIED
        assert 'export SSL_CERT_FILE=' in env_file.read_text(encoding='utf-8')

        profile_text: str = posix_profile.profile_path.read_text(encoding='utf-8')
        assert render_source_line(env_file, ShellKind.POSIX) in profile_text
        assert 'export SSL_CERT_FILE=' not in profile_text
        command_runner.assert_not_called()

    def test_profile_update_disabled(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """update_profile=False leaves the startup file alone."""
        config = PropagationConfig(update_profile=False, tools=[])

        report = make_propagator(posix_profile, environ, command_runner, config=config).propagate(
            bundle
        )

        assert report.status_of('shell-profile') is None
        assert not posix_profile.profile_path.exists()

    def test_user_store(
        self,
        bundle: TrustBundle,
        posix_profile: PlatformProfile,
        environ: dict[str, str],
        command_runner: Mock,
    ) -> None:
        """A persistent user store receives the same variables."""
        user_environ: dict[str, str] = {}
        config = PropagationConfig(tools=[])

        report = make_propagator(
            posix_profile,
            environ,
            command_runner,
            config=config,
            user_store=MappingEnvironmentStore(user_environ, name='user-env'),
        ).propagate(bundle)

        assert report.status_of('user-env') is TargetStatus.APPLIED
        assert user_environ['NODE_EXTRA_CA_CERTS'] == str(bundle.bundle_path)
