# zscaler_trust/config/config_models.py
"""
Configuration models for the Zscaler trust setup.

Every section has a usable default, so running with no configuration file
reproduces the standard organization setup: discover against
www.google.com:443, expect a Zscaler-issued chain, write ~/certs, and wire
git, gcloud and pip. A YAML file only needs to list what differs.

Design Decisions:
-----------------
- All models use `extra='forbid'` so a typo in the YAML file fails loudly
  instead of silently falling back to a default.

- No logging occurs within this module because the logging configuration
  itself is defined here. Logging must be configured by the caller after the
  config is loaded.

- Paths accept `~` and are expanded at validation time. Downstream code never
  has to call expanduser().

- Which chain element carries the vendor issuer, how many attempts to make,
  and how long to back off differ between proxy deployments. They are
  configuration values, not constants baked into the validator or the retry
  loop.

Usage:
------
    import yaml
    from zscaler_trust.config.config_models import TrustConfig

    with open('zscaler-trust.yaml', encoding='utf-8') as config_file:
        raw_config = yaml.safe_load(config_file)

    config = TrustConfig.model_validate(raw_config or {})
"""

from pathlib import Path
from typing import Literal, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# =============================================================================
# Public API
# =============================================================================

__all__: list[str] = [
    'BundleConfig',
    'DiscoveryConfig',
    'DiscoveryMethod',
    'IssuerScope',
    'LogLevelName',
    'LoggingConfig',
    'PropagationConfig',
    'SUPPORTED_TOOLS',
    'ToolName',
    'TrustConfig',
    'VerificationConfig',
]

# =============================================================================
# Type Aliases
# =============================================================================

# Valid logging level names recognized by Python's logging module.
LogLevelName = Literal['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

LOG_LEVEL_VALUES: frozenset[int] = frozenset({10, 20, 30, 40, 50})

# Mapping from level name to numeric value, avoiding import of logging module
# in the model layer.
LOG_LEVEL_NAME_TO_INT: dict[LogLevelName, int] = {
    'DEBUG': 10,
    'INFO': 20,
    'WARNING': 30,
    'ERROR': 40,
    'CRITICAL': 50,
}

# 'leaf' checks only the first certificate presented; 'any' accepts a match
# anywhere in the chain.
IssuerScope = Literal['leaf', 'any']

# 'socket' uses the stdlib ssl module; 'openssl' shells out to `openssl s_client`.
DiscoveryMethod = Literal['socket', 'openssl']

ToolName = Literal['git', 'gcloud', 'pip']
SUPPORTED_TOOLS: tuple[ToolName, ...] = ('git', 'gcloud', 'pip')


def _expand_path(path_value: str | Path) -> Path:
    return Path(path_value).expanduser()


# =============================================================================
# Discovery Configuration
# =============================================================================


class DiscoveryConfig(BaseModel):
    """Settings for the TLS handshake and the bounded retry loop.

    Network Resilience:
        Proxy interception is occasionally flaky at the exact moment of
        connection (proxy warm-up, captive portal redirects). Discovery is
        attempted up to `max_attempts` times with a fixed `backoff_seconds`
        pause between attempts. There is no pause after the final attempt.

        With the defaults (3 attempts, 1 s backoff, 10 s timeout) the loop
        finishes in at most ~32 seconds.

    Attributes:
        host: Externally reachable HTTPS host. Any public site works; under
            interception the proxy answers instead of the origin.
        port: TCP port of the TLS endpoint.
        timeout_seconds: Per-attempt handshake timeout.
        max_attempts: Total attempts before discovery is declared exhausted.
        backoff_seconds: Fixed pause between attempts.
        expected_issuer: Substring the issuer DN must contain (case-sensitive).
        issuer_scope: Which chain element(s) the issuer check applies to.
        method: Handshake strategy.
    """

    model_config = ConfigDict(extra='forbid')

    host: str = Field(
        default='www.google.com',
        min_length=1,
        description='HTTPS host used to observe the presented certificate chain',
    )
    port: int = Field(
        default=443,
        ge=1,
        le=65535,
        description='TLS port on the discovery host',
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=30.0,
        description='Handshake timeout per attempt in seconds (max 30)',
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description='Total discovery attempts (1-10)',
    )
    backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description='Fixed delay between discovery attempts in seconds',
    )
    expected_issuer: str = Field(
        default='Zscaler',
        min_length=1,
        description='Substring the issuer distinguished name must contain',
    )
    issuer_scope: IssuerScope = Field(
        default='leaf',
        description="'leaf' checks the first certificate, 'any' checks every element",
    )
    method: DiscoveryMethod = Field(
        default='socket',
        description="'socket' (stdlib ssl) or 'openssl' (openssl s_client)",
    )

    @field_validator('host')
    @classmethod
    def validate_host_has_no_scheme(cls, host: str) -> str:
        """Reject URLs where a bare host name is expected.

        Args:
            host: Configured discovery host.

        Returns:
            The stripped host name.

        Raises:
            ValueError: If the value contains a scheme or a path.
        """
        host = host.strip()
        if '://' in host or '/' in host:
            raise ValueError(
                f"host must be a bare host name like 'www.google.com', got: {host!r}"
            )
        return host


# =============================================================================
# Bundle Configuration
# =============================================================================


class BundleConfig(BaseModel):
    """Where the chain file and the golden bundle are written.

    The defaults match the paths other organization scripts already expect
    (`~/certs/ncs_golden_bundle.pem`), so changing them means other tooling
    has to be pointed at the new location as well.

    Attributes:
        cert_dir: Directory owned by this tool. Created if absent.
        chain_filename: File name of the raw validated chain.
        bundle_filename: File name of the golden bundle.
        baseline_bundle: Explicit baseline CA bundle. None resolves it from
            the installed `certifi` package.
    """

    model_config = ConfigDict(extra='forbid')

    cert_dir: Path = Field(
        default=Path('~/certs'),
        validate_default=True,
        description='Directory for the chain file and golden bundle',
    )
    chain_filename: str = Field(
        default='zscaler_chain.pem',
        description='File name of the validated proxy chain',
    )
    bundle_filename: str = Field(
        default='ncs_golden_bundle.pem',
        description='File name of the merged golden bundle',
    )
    baseline_bundle: Path | None = Field(
        default=None,
        description='Baseline CA bundle override; None uses certifi',
    )

    @field_validator('cert_dir', mode='after')
    @classmethod
    def expand_cert_dir(cls, cert_dir: Path) -> Path:
        """Expand `~` in the certificate directory."""
        return _expand_path(cert_dir)

    @field_validator('baseline_bundle', mode='after')
    @classmethod
    def expand_baseline_bundle(cls, baseline_bundle: Path | None) -> Path | None:
        """Expand `~` in the baseline override, leaving existence to the builder."""
        if baseline_bundle is None:
            return None
        return _expand_path(baseline_bundle)

    @field_validator('chain_filename', 'bundle_filename')
    @classmethod
    def validate_plain_file_name(cls, file_name: str) -> str:
        """Ensure file names do not smuggle in directories.

        Args:
            file_name: Configured file name.

        Returns:
            The validated file name.

        Raises:
            ValueError: If empty or containing a path separator.
        """
        if not file_name or Path(file_name).name != file_name:
            raise ValueError(f'Expected a plain file name, got: {file_name!r}')
        return file_name

    @model_validator(mode='after')
    def validate_distinct_file_names(self) -> Self:
        """The chain file and the golden bundle must not overwrite each other."""
        if self.chain_filename == self.bundle_filename:
            raise ValueError(
                'chain_filename and bundle_filename must differ, '
                f'both are {self.bundle_filename!r}'
            )
        return self

    @property
    def chain_path(self) -> Path:
        """Full path of the chain file."""
        return self.cert_dir / self.chain_filename

    @property
    def bundle_path(self) -> Path:
        """Full path of the golden bundle."""
        return self.cert_dir / self.bundle_filename


# =============================================================================
# Propagation Configuration
# =============================================================================


class PropagationConfig(BaseModel):
    """Which consumers receive the bundle path.

    Attributes:
        marker: Identifier embedded in the begin/end lines of the managed
            block. Changing it on an existing machine leaves the old block in
            place.
        tools: External CLIs to configure. Unknown names are rejected.
        update_profile: Write the marked block (or the source line) into the
            shell startup file.
        env_file: Write the environment block to this standalone file and
            only a `source` line into the profile. None writes the block
            directly into the profile.
    """

    model_config = ConfigDict(extra='forbid')

    marker: str = Field(
        default='zscaler-trust',
        pattern=r'^[A-Za-z0-9_.-]+$',
        description='Identifier of the managed block in text files',
    )
    tools: list[ToolName] = Field(
        default_factory=lambda: list(SUPPORTED_TOOLS),
        description='External CLIs to configure (git, gcloud, pip)',
    )
    update_profile: bool = Field(
        default=True,
        description='Write the managed block into the shell startup file',
    )
    env_file: Path | None = Field(
        default=None,
        description='Standalone sourceable env file; None writes into the profile',
    )

    @field_validator('env_file', mode='after')
    @classmethod
    def expand_env_file(cls, env_file: Path | None) -> Path | None:
        """Expand `~` in the env file path."""
        if env_file is None:
            return None
        return _expand_path(env_file)

    @field_validator('tools')
    @classmethod
    def deduplicate_tools(cls, tools: list[ToolName]) -> list[ToolName]:
        """Drop repeated tool names while keeping their first position."""
        return list(dict.fromkeys(tools))


# =============================================================================
# Verification Configuration
# =============================================================================


class VerificationConfig(BaseModel):
    """Post-build connectivity check using the new golden bundle.

    Attributes:
        enabled: Run the check after the bundle is written.
        url: HTTPS URL fetched with the bundle as the only trust source.
        timeout_seconds: Request timeout.
    """

    model_config = ConfigDict(extra='forbid')

    enabled: bool = Field(default=True, description='Run the post-build check')
    url: str = Field(
        default='https://www.google.com',
        description='HTTPS URL fetched with the golden bundle',
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=60.0,
        description='Request timeout in seconds',
    )

    @field_validator('url')
    @classmethod
    def validate_https_url(cls, url: str) -> str:
        """The check is meaningless over plain HTTP."""
        if not url.startswith('https://'):
            raise ValueError(f"url must start with 'https://', got: {url!r}")
        return url


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Configuration for application logging output.

    Console output is always enabled. File output is enabled by providing a
    file_path; file_level then defaults to DEBUG.

    Attributes:
        file_path: Path to log file. None disables file logging.
        console_level: Minimum log level for console output.
        file_level: Minimum log level for file output.
    """

    model_config = ConfigDict(extra='forbid')

    file_path: Path | None = Field(
        default=None,
        description='Log file path (.log extension auto-added). None disables file logging.',
    )
    console_level: LogLevelName | int = Field(
        default='INFO',
        description="Console log level: 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL', or int",
    )
    file_level: LogLevelName | int | None = Field(
        default=None,
        description='File log level. None disables file logging.',
    )

    @field_validator('file_path', mode='before')
    @classmethod
    def normalize_log_file_path(cls, path_value: str | Path | None) -> Path | None:
        """Expand `~` and ensure a .log extension."""
        if path_value is None:
            return None

        path_string: str = str(_expand_path(path_value))

        if not path_string.lower().endswith('.log'):
            path_string = f'{path_string}.log'

        return Path(path_string)

    @field_validator('console_level', 'file_level', mode='after')
    @classmethod
    def validate_numeric_log_level(
        cls, level_value: LogLevelName | int | None
    ) -> LogLevelName | int | None:
        """Numeric levels must be one of the standard logging constants.

        Raises:
            ValueError: If numeric level is not a standard logging value.
        """
        if level_value is None or isinstance(level_value, str):
            return level_value

        if level_value not in LOG_LEVEL_VALUES:
            raise ValueError(
                f'Numeric log level must be one of {sorted(LOG_LEVEL_VALUES)}, '
                f'got: {level_value}'
            )

        return level_value

    @model_validator(mode='after')
    def ensure_file_logging_configuration_consistency(self) -> Self:
        """Default file_level to DEBUG; reject file_level without file_path."""
        if self.file_path is not None and self.file_level is None:
            self.file_level = 'DEBUG'

        if self.file_level is not None and self.file_path is None:
            raise ValueError(
                'file_level is specified but file_path is missing. '
                'Provide file_path to enable file logging, or remove file_level.'
            )

        return self

    def get_console_level_int(self) -> int:
        """Console level as a logging module integer."""
        if isinstance(self.console_level, int):
            return self.console_level
        return LOG_LEVEL_NAME_TO_INT[self.console_level]

    def get_file_level_int(self) -> int | None:
        """File level as a logging module integer, or None if disabled."""
        if self.file_level is None:
            return None
        if isinstance(self.file_level, int):
            return self.file_level
        return LOG_LEVEL_NAME_TO_INT[self.file_level]


# =============================================================================
# Root Configuration
# =============================================================================


class TrustConfig(BaseModel):
    """Root configuration model.

    Every section is optional; an empty YAML document yields the standard
    organization defaults.

    Attributes:
        discovery: Handshake and retry settings.
        bundle: Artifact locations.
        propagation: Consumers to configure.
        verification: Post-build connectivity check.
        logging: Console and file logging.
    """

    model_config = ConfigDict(extra='forbid')

    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    bundle: BundleConfig = Field(default_factory=BundleConfig)
    propagation: PropagationConfig = Field(default_factory=PropagationConfig)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode='after')
    def validate_env_file_outside_cert_dir_names(self) -> Self:
        """The env file must not overwrite either bundle artifact."""
        env_file: Path | None = self.propagation.env_file
        if env_file is not None and env_file in (
            self.bundle.chain_path,
            self.bundle.bundle_path,
        ):
            raise ValueError(
                f'propagation.env_file {env_file} would overwrite a bundle artifact'
            )
        return self
