# zscaler_trust/cli.py
"""
Command line entry point.

    zscaler-trust                     discover, build, propagate, verify
    zscaler-trust --out-file PATH     env block in PATH, `source` line in profile
    zscaler-trust --reuse-existing    skip discovery if a bundle is present
    zscaler-trust status              report what is currently in place

Exit codes: 0 on success, including runs where some propagation targets
failed (they are listed in the summary); 1 on a fatal error.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml
from pydantic import BaseModel, ConfigDict

from zscaler_trust import __version__
from zscaler_trust.bundle import BundleBuilder
from zscaler_trust.common import setup_logger
from zscaler_trust.config import TrustConfig, load_config
from zscaler_trust.errors import TrustSetupError
from zscaler_trust.extractor import ChainExtractor
from zscaler_trust.models import CertificateChain, TargetStatus, TrustBundle
from zscaler_trust.pipeline import PipelineResult, TrustPipeline
from zscaler_trust.propagator import (
    ENV_TARGET_NAMES,
    build_config_targets,
    build_tool_settings,
    locate_executable,
    run_command,
)
from zscaler_trust.verify import VerificationResult, check_system_trust

__all__: list[str] = ['cli', 'main']

logger: logging.Logger = logging.getLogger(__name__)

_STATUS_LABELS: dict[TargetStatus, str] = {
    TargetStatus.APPLIED: 'applied',
    TargetStatus.UNCHANGED: 'ok',
    TargetStatus.SKIPPED: 'skipped',
    TargetStatus.FAILED: 'FAILED',
}


class CliState(BaseModel):
    """Values shared between the group callback and subcommands."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    config: TrustConfig


def _load_config_or_exit(ctx: click.Context, config_path: Path | None) -> TrustConfig:
    try:
        return load_config(config_path)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as error:
        click.echo(f'Error: {error}', err=True)
        ctx.exit(1)


def _apply_overrides(
    config: TrustConfig,
    out_file: Path | None,
    skip_tools: bool,
    no_verify: bool,
    verbose: bool,
) -> TrustConfig:
    """Fold command line flags into a re-validated config."""
    data: dict[str, Any] = config.model_dump()
    if out_file is not None:
        data['propagation']['env_file'] = out_file
    if skip_tools:
        data['propagation']['tools'] = []
    if no_verify:
        data['verification']['enabled'] = False
    if verbose:
        data['logging']['console_level'] = 'DEBUG'
    return TrustConfig.model_validate(data)


def _fail(ctx: click.Context, error: TrustSetupError) -> NoReturn:
    click.echo(f'Error: {error}', err=True)
    if error.hint:
        click.echo(f'Hint: {error.hint}', err=True)
    ctx.exit(1)


def _print_summary(result: PipelineResult) -> None:
    bundle: TrustBundle = result.bundle
    source: str = 'reused' if result.reused else f'discovered in {len(result.attempts)} attempt(s)'

    click.echo('')
    click.echo(f'Golden bundle: {bundle.bundle_path}')
    click.echo(f'Proxy chain:   {bundle.chain_path} ({bundle.certificate_count} cert(s), {source})')
    click.echo('')
    click.echo('Targets:')
    for target_result in result.report.results:
        detail: str = f'  {target_result.detail}' if target_result.detail else ''
        click.echo(f'  {_STATUS_LABELS[target_result.status]:<8} {target_result.target}{detail}')

    verification: VerificationResult | None = result.verification
    if verification is not None:
        if verification.ok:
            click.echo(f'\nVerified: {verification.url} (HTTP {verification.status_code})')
        else:
            click.echo(f'\nVerification of {verification.url} failed: {verification.detail}')

    if result.report.has_failures:
        click.echo(
            f'\n{len(result.report.errors)} target(s) failed; the bundle itself is in place.',
            err=True,
        )

    click.echo('\nOpen a new shell to pick up the environment variables.')


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name='zscaler-trust')
@click.option(
    '--config',
    'config_path',
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help='YAML config file (default: ~/.config/zscaler-trust/config.yaml if present).',
)
@click.option(
    '--out-file',
    type=click.Path(path_type=Path, dir_okay=False, resolve_path=True),
    default=None,
    help='Write the environment block to this file and source it from the profile.',
)
@click.option('--reuse-existing', is_flag=True, help='Reuse an existing bundle instead of rediscovering.')
@click.option('--skip-tools', is_flag=True, help='Do not configure git, gcloud or pip.')
@click.option('--no-verify', is_flag=True, help='Skip the HTTPS check with the new bundle.')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging on the console.')
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    out_file: Path | None,
    reuse_existing: bool,
    skip_tools: bool,
    no_verify: bool,
    verbose: bool,
) -> None:
    """Discover the Zscaler certificate chain and make local tools trust it."""
    setup_logger(logging_level=logging.DEBUG if verbose else logging.INFO)

    config: TrustConfig = _load_config_or_exit(ctx, config_path)
    try:
        config = _apply_overrides(config, out_file, skip_tools, no_verify, verbose)
    except ValueError as error:
        click.echo(f'Error: {error}', err=True)
        ctx.exit(1)

    setup_logger(config=config.logging)
    ctx.obj = CliState(config=config)

    if ctx.invoked_subcommand is not None:
        return

    try:
        result: PipelineResult = TrustPipeline(config, environ=os.environ).run(
            reuse_existing=reuse_existing
        )
    except TrustSetupError as error:
        _fail(ctx, error)

    _print_summary(result)


@cli.command('status')
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the bundle, environment and tool settings currently in place.

    Exits 1 when no bundle is present.
    """
    state: CliState = ctx.obj
    config: TrustConfig = state.config
    builder: BundleBuilder = BundleBuilder(config.bundle)
    existing: TrustBundle | None = builder.load_existing()

    # --- Bundle ---
    if existing is None:
        click.echo(f'Bundle:  missing ({builder.bundle_path})')
        expected: TrustBundle = TrustBundle(
            bundle_path=builder.bundle_path,
            chain_path=builder.chain_path,
            certificate_count=0,
        )
    else:
        expected = existing
        click.echo(f'Bundle:  {existing.bundle_path}')
        chain: CertificateChain = ChainExtractor().extract_from_text(
            existing.chain_path.read_text(encoding='utf-8')
        )
        click.echo(f'Chain:   {len(chain)} certificate(s)')
        for certificate in chain.certificates:
            try:
                click.echo(f'  subject={certificate.subject_name}  issuer={certificate.issuer_name}')
            except ValueError as error:
                click.echo(f'  unparseable certificate: {error}')

    # --- Environment ---
    click.echo('\nEnvironment (this process):')
    expected_values: dict[str, str] = {
        target.name: target.value for target in build_config_targets(expected)
    }
    for name in ENV_TARGET_NAMES:
        current: str | None = os.environ.get(name)
        if current is None:
            marker: str = 'unset'
        elif current == expected_values[name]:
            marker = 'ok'
        else:
            marker = 'differs'
        click.echo(f'  {marker:<8} {name}={current or ""}')

    # --- Tools ---
    click.echo('\nTools:')
    for setting in build_tool_settings(expected, config.propagation.tools):
        executable: str | None = locate_executable(setting.tool, os.environ.get('PATH'))
        if executable is None:
            click.echo(f'  {"absent":<8} {setting.tool}')
            continue
        try:
            completed: subprocess.CompletedProcess[str] = run_command(
                [executable, *setting.get_command[1:]],
                dict(os.environ),
            )
        except (OSError, subprocess.SubprocessError) as error:
            click.echo(f'  {"error":<8} {setting.tool} {setting.key}: {error}')
            continue
        value: str = completed.stdout.strip() if completed.returncode == 0 else ''
        marker = 'ok' if value == setting.value else ('unset' if not value else 'differs')
        click.echo(f'  {marker:<8} {setting.tool} {setting.key}={value}')

    # --- System trust store ---
    system_check: VerificationResult = check_system_trust(
        config.verification.url,
        timeout_seconds=config.verification.timeout_seconds,
    )
    if system_check.ok:
        click.echo(f'\nSystem trust store: trusts {system_check.url}')
    else:
        click.echo(f'\nSystem trust store: does not trust {system_check.url} ({system_check.detail})')

    if existing is None:
        ctx.exit(1)


def main() -> None:
    """Console script entry point."""
    cli(prog_name='zscaler-trust')
