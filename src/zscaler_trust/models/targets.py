# zscaler_trust/models/targets.py
"""
Models describing what the pipeline produces and where it gets wired.

TrustBundle is the persisted artifact. ConfigTarget and ToolSetting are the
consumers that must point at it; their values are always derived from the
bundle path, never computed independently. PlatformProfile captures the shell
and profile file once at startup so the propagator never has to sniff the
environment itself.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

__all__: list[str] = [
    'ConfigTarget',
    'PlatformProfile',
    'ShellKind',
    'TargetKind',
    'TargetResult',
    'TargetStatus',
    'ToolSetting',
    'TrustBundle',
]


class ShellKind(str, Enum):
    """Shell family, which decides the syntax of the environment block."""

    POSIX = 'posix-shell'
    FISH = 'fish-shell'
    WINDOWS = 'windows'


class TargetKind(str, Enum):
    """Whether a target expects the bundle file or its directory."""

    FILE = 'file'
    DIRECTORY = 'directory'


class TargetStatus(str, Enum):
    """Per-target propagation result."""

    APPLIED = 'applied'
    UNCHANGED = 'unchanged'
    SKIPPED = 'skipped'
    FAILED = 'failed'


class TrustBundle(BaseModel):
    """
    The persisted golden bundle and its companion chain file.

    Attributes:
        bundle_path: Golden bundle (baseline CAs followed by the proxy chain).
        chain_path: Raw validated chain, leaf first.
        certificate_count: Number of certificates in the proxy chain.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    bundle_path: Path
    chain_path: Path
    certificate_count: int = Field(ge=0)

    @property
    def cert_dir(self) -> Path:
        """Directory holding both artifacts."""
        return self.bundle_path.parent


class ConfigTarget(BaseModel):
    """An environment variable that must reference the trust bundle."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    name: str
    value: str
    kind: TargetKind = TargetKind.FILE


class ToolSetting(BaseModel):
    """
    A configuration key of an external CLI that must reference the bundle.

    Attributes:
        tool: Executable name (git, gcloud, pip).
        key: Setting name in the tool's own configuration namespace.
        value: Bundle path.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    tool: str
    key: str
    value: str

    @property
    def set_command(self) -> list[str]:
        """Command line that writes this setting."""
        match self.tool:
            case 'git':
                return ['git', 'config', '--global', self.key, self.value]
            case 'gcloud':
                return ['gcloud', 'config', 'set', self.key, self.value]
            case 'pip':
                return ['pip', 'config', 'set', self.key, self.value]
            case _:
                raise ValueError(f'Unsupported tool: {self.tool!r}')

    @property
    def get_command(self) -> list[str]:
        """Command line that reads this setting back."""
        match self.tool:
            case 'git':
                return ['git', 'config', '--global', '--get', self.key]
            case 'gcloud':
                return ['gcloud', 'config', 'get-value', self.key]
            case 'pip':
                return ['pip', 'config', 'get', self.key]
            case _:
                raise ValueError(f'Unsupported tool: {self.tool!r}')


class PlatformProfile(BaseModel):
    """
    Shell family and startup file, resolved once per run.

    Attributes:
        shell: Shell family used to render the environment block.
        profile_path: Startup file that receives the marked block.
        home: User home directory the other defaults were derived from.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    shell: ShellKind
    profile_path: Path
    home: Path


class TargetResult(BaseModel):
    """Outcome of applying one propagation target."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    target: str
    status: TargetStatus
    detail: str | None = None

