# zscaler_trust/propagator.py
"""
Point every local consumer at the golden bundle.

Targets, applied in this order and each isolated from the others:

1. process environment store (the environment child processes inherit)
2. Windows persistent user environment (Windows only)
3. shell startup file: the marked env block, or, when an env file is
   configured, the block in the env file plus a marked `source` block in the
   startup file
4. git, gcloud and pip settings, written through each CLI

A failing target is recorded in the PropagationReport and the next target is
attempted. A CLI that is not installed is skipped, not failed. Propagation
never raises for a single target.

All values are derived from the TrustBundle; nothing is computed twice.
"""

import logging
import shutil
import subprocess
from collections.abc import Callable, Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from zscaler_trust.common import BlockWriteResult, MarkedBlockFile, UnterminatedBlockError
from zscaler_trust.config import PropagationConfig, ToolName
from zscaler_trust.config.config_models import SUPPORTED_TOOLS
from zscaler_trust.errors import PropagationError
from zscaler_trust.models import (
    ConfigTarget,
    PlatformProfile,
    ShellKind,
    TargetKind,
    TargetResult,
    TargetStatus,
    ToolSetting,
    TrustBundle,
)
from zscaler_trust.stores import ConfigStore, MappingEnvironmentStore

__all__: list[str] = [
    'DIRECTORY_TARGET_NAMES',
    'ENV_TARGET_NAMES',
    'TOOL_SETTING_KEYS',
    'CommandRunner',
    'ConfigPropagator',
    'ExecutableLocator',
    'PropagationReport',
    'build_config_targets',
    'build_tool_settings',
    'locate_executable',
    'render_env_block',
    'render_source_line',
    'run_command',
]

logger: logging.Logger = logging.getLogger(__name__)

# =============================================================================
# Target Definitions
# =============================================================================

ENV_TARGET_NAMES: tuple[str, ...] = (
    'SSL_CERT_FILE',
    'SSL_CERT_DIR',
    'CERT_PATH',
    'CERT_DIR',
    'REQUESTS_CA_BUNDLE',
    'CURL_CA_BUNDLE',
    'NODE_EXTRA_CA_CERTS',
    'GRPC_DEFAULT_SSL_ROOTS_FILE_PATH',
    'GIT_SSL_CAINFO',
    'CLOUDSDK_CORE_CUSTOM_CA_CERTS_FILE',
)

# These expect a directory of certificates, not a bundle file
DIRECTORY_TARGET_NAMES: frozenset[str] = frozenset({'SSL_CERT_DIR', 'CERT_DIR'})

TOOL_SETTING_KEYS: dict[ToolName, str] = {
    'git': 'http.sslCAInfo',
    'gcloud': 'core/custom_ca_certs_file',
    'pip': 'global.cert',
}

TOOL_COMMAND_TIMEOUT_SECONDS: float = 60.0

# Runs a command with the given environment and returns the completed process
CommandRunner = Callable[[list[str], Mapping[str, str]], subprocess.CompletedProcess[str]]

# (executable name, PATH value) -> resolved executable or None
ExecutableLocator = Callable[[str, str | None], str | None]


def run_command(
    command: list[str],
    env: Mapping[str, str],
) -> subprocess.CompletedProcess[str]:
    """Default CommandRunner: subprocess.run with captured text output."""
    return subprocess.run(  # noqa: S603
        command,
        env=dict(env),
        capture_output=True,
        text=True,
        timeout=TOOL_COMMAND_TIMEOUT_SECONDS,
        check=False,
    )


def locate_executable(name: str, search_path: str | None) -> str | None:
    """Default ExecutableLocator backed by shutil.which."""
    return shutil.which(name, path=search_path)


def build_config_targets(bundle: TrustBundle) -> list[ConfigTarget]:
    """
    The fixed environment targets for `bundle`, in ENV_TARGET_NAMES order.

    SSL_CERT_DIR and CERT_DIR get the certificate directory; every other
    target gets the golden bundle path.
    """
    targets: list[ConfigTarget] = []
    for name in ENV_TARGET_NAMES:
        if name in DIRECTORY_TARGET_NAMES:
            targets.append(
                ConfigTarget(name=name, value=str(bundle.cert_dir), kind=TargetKind.DIRECTORY)
            )
        else:
            targets.append(ConfigTarget(name=name, value=str(bundle.bundle_path)))
    return targets


def build_tool_settings(
    bundle: TrustBundle,
    tools: list[ToolName] | tuple[ToolName, ...] = SUPPORTED_TOOLS,
) -> list[ToolSetting]:
    """One ToolSetting per requested CLI, all pointing at the bundle path."""
    return [
        ToolSetting(tool=tool, key=TOOL_SETTING_KEYS[tool], value=str(bundle.bundle_path))
        for tool in tools
    ]


# =============================================================================
# Rendering
# =============================================================================


def _quote(value: str, shell: ShellKind) -> str:
    """Double-quote `value` for `shell`, escaping what expands inside quotes."""
    if shell is ShellKind.WINDOWS:
        # Backtick is PowerShell's escape character; backslashes are literal
        escaped: str = value.replace('`', '``').replace('"', '`"').replace('$', '`$')
    elif shell is ShellKind.FISH:
        escaped = value.replace('\\', '\\\\').replace('"', '\\"').replace('$', '\\$')
    else:
        escaped = (
            value.replace('\\', '\\\\')
            .replace('"', '\\"')
            .replace('$', '\\$')
            .replace('`', '\\`')
        )
    return f'"{escaped}"'


def render_env_block(targets: list[ConfigTarget], shell: ShellKind) -> str:
    """
    Environment assignments for `targets` in the syntax of `shell`.

    Returns:
        One line per target, newline-terminated, without block delimiters.
    """
    lines: list[str] = []
    for target in targets:
        quoted_value: str = _quote(target.value, shell)
        match shell:
            case ShellKind.WINDOWS:
                lines.append(f'$env:{target.name} = {quoted_value}')
            case ShellKind.FISH:
                lines.append(f'set -gx {target.name} {quoted_value}')
            case _:
                lines.append(f'export {target.name}={quoted_value}')
    return '\n'.join(lines) + '\n'


def render_source_line(env_file: Path, shell: ShellKind) -> str:
    """Line that loads `env_file` from a startup file, if the file exists."""
    quoted_path: str = _quote(str(env_file), shell)
    match shell:
        case ShellKind.WINDOWS:
            return f'if (Test-Path {quoted_path}) {{ . {quoted_path} }}\n'
        case ShellKind.FISH:
            return f'test -f {quoted_path}; and source {quoted_path}\n'
        case _:
            return f'[ -f {quoted_path} ] && . {quoted_path}\n'


# =============================================================================
# Report
# =============================================================================


class PropagationReport(BaseModel):
    """
    Ordered per-target outcomes of one propagation run.

    Attributes:
        results: One TargetResult per attempted target, in order.
        errors: PropagationError for every failed target.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    results: list[TargetResult] = Field(default_factory=list)
    errors: list[PropagationError] = Field(default_factory=list)

    def record(self, target: str, status: TargetStatus, detail: str | None = None) -> None:
        """Append a non-failure result."""
        self.results.append(TargetResult(target=target, status=status, detail=detail))

    def record_failure(self, error: PropagationError) -> None:
        """Append a failed result and keep the error."""
        logger.warning('Propagation to %s failed: %s', error.target, error)
        self.results.append(
            TargetResult(target=error.target, status=TargetStatus.FAILED, detail=str(error))
        )
        self.errors.append(error)

    @property
    def has_failures(self) -> bool:
        """Whether any target failed."""
        return bool(self.errors)

    def status_of(self, target: str) -> TargetStatus | None:
        """Status of the last result recorded for `target`, or None."""
        for result in reversed(self.results):
            if result.target == target:
                return result.status
        return None


# =============================================================================
# Propagator
# =============================================================================


class ConfigPropagator:
    """
    Apply every ConfigTarget and ToolSetting derived from a TrustBundle.

    Attributes:
        config: Which consumers to configure and the block marker.
        platform_profile: Shell family and startup file for this run.
    """

    def __init__(
        self,
        config: PropagationConfig,
        platform_profile: PlatformProfile,
        process_store: MappingEnvironmentStore,
        user_store: ConfigStore | None = None,
        command_runner: CommandRunner = run_command,
        executable_locator: ExecutableLocator = locate_executable,
    ) -> None:
        """
        Args:
            config: Propagation settings.
            platform_profile: Result of detect_platform().
            process_store: Environment of this process. Its contents are also
                the environment handed to CLI subprocesses.
            user_store: Persistent user environment (Windows), or None.
            command_runner: Runs CLI commands. Injectable for tests.
            executable_locator: Resolves CLI names on PATH. Injectable for
                tests.
        """
        self.config: PropagationConfig = config
        self.platform_profile: PlatformProfile = platform_profile
        self._process_store: MappingEnvironmentStore = process_store
        self._user_store: ConfigStore | None = user_store
        self._run: CommandRunner = command_runner
        self._locate: ExecutableLocator = executable_locator

    def propagate(self, bundle: TrustBundle) -> PropagationReport:
        """
        Apply all targets for `bundle`.

        Returns:
            Report with one result per target. Never raises for a failing
            target.
        """
        report: PropagationReport = PropagationReport()
        targets: list[ConfigTarget] = build_config_targets(bundle)

        self._apply_store(self._process_store, targets, report)
        if self._user_store is not None:
            self._apply_store(self._user_store, targets, report)

        self._apply_startup_files(targets, report)

        for setting in build_tool_settings(bundle, self.config.tools):
            self._apply_tool_setting(setting, report)

        logger.info(
            'Propagation finished: %d target(s), %d failed',
            len(report.results),
            len(report.errors),
        )
        return report

    # -------------------------------------------------------------------------
    # Environment stores
    # -------------------------------------------------------------------------

    def _apply_store(
        self,
        store: ConfigStore,
        targets: list[ConfigTarget],
        report: PropagationReport,
    ) -> None:
        changed: int = 0
        try:
            for target in targets:
                if store.get(target.name) == target.value:
                    continue
                store.set(target.name, target.value)
                changed += 1
        except OSError as error:
            report.record_failure(PropagationError(store.name, str(error)))
            return

        if changed:
            logger.debug('Set %d variable(s) in %s', changed, store.name)
            report.record(store.name, TargetStatus.APPLIED, f'{changed} variable(s) set')
        else:
            report.record(store.name, TargetStatus.UNCHANGED)

    # -------------------------------------------------------------------------
    # Startup / env files
    # -------------------------------------------------------------------------

    def _apply_startup_files(
        self,
        targets: list[ConfigTarget],
        report: PropagationReport,
    ) -> None:
        shell: ShellKind = self.platform_profile.shell
        env_block: str = render_env_block(targets, shell)
        env_file: Path | None = self.config.env_file

        if env_file is not None:
            self._write_block('env-file', env_file, env_block, report)
            if self.config.update_profile:
                self._write_block(
                    'shell-profile',
                    self.platform_profile.profile_path,
                    render_source_line(env_file, shell),
                    report,
                )
        elif self.config.update_profile:
            self._write_block(
                'shell-profile',
                self.platform_profile.profile_path,
                env_block,
                report,
            )

    def _write_block(
        self,
        target_name: str,
        path: Path,
        content: str,
        report: PropagationReport,
    ) -> None:
        try:
            result: BlockWriteResult = MarkedBlockFile(path).apply_marked_block(
                self.config.marker,
                content,
            )
        except (OSError, UnicodeDecodeError, UnterminatedBlockError) as error:
            report.record_failure(PropagationError(target_name, f'{path}: {error}'))
            return

        status: TargetStatus = (
            TargetStatus.UNCHANGED if result is BlockWriteResult.UNCHANGED else TargetStatus.APPLIED
        )
        report.record(target_name, status, str(path))

    # -------------------------------------------------------------------------
    # External CLIs
    # -------------------------------------------------------------------------

    def _apply_tool_setting(self, setting: ToolSetting, report: PropagationReport) -> None:
        executable: str | None = self._locate(setting.tool, self._process_store.get('PATH'))
        if executable is None:
            logger.info('%s not found on PATH, skipping', setting.tool)
            report.record(setting.tool, TargetStatus.SKIPPED, 'not found on PATH')
            return

        child_env: dict[str, str] = self._process_store.snapshot()

        try:
            current: subprocess.CompletedProcess[str] = self._run(
                [executable, *setting.get_command[1:]],
                child_env,
            )
            if current.returncode == 0 and current.stdout.strip() == setting.value:
                report.record(setting.tool, TargetStatus.UNCHANGED, setting.key)
                return

            completed: subprocess.CompletedProcess[str] = self._run(
                [executable, *setting.set_command[1:]],
                child_env,
            )
        except (OSError, subprocess.SubprocessError) as error:
            report.record_failure(PropagationError(setting.tool, str(error)))
            return

        if completed.returncode != 0:
            stderr: str = (completed.stderr or '').strip()
            report.record_failure(
                PropagationError(
                    setting.tool,
                    f'setting {setting.key} exited {completed.returncode}: {stderr[:200]}',
                )
            )
            return

        logger.info('Configured %s %s', setting.tool, setting.key)
        report.record(setting.tool, TargetStatus.APPLIED, setting.key)
