# zscaler_trust/pipeline.py
"""
End-to-end trust setup.

Stage order:

1. Baseline check. The certifi bundle is located before any network call,
   so a broken Python environment fails fast and writes nothing.
2. Discovery. Connector -> ChainExtractor -> ChainValidator under the
   RetryController. Skipped when reusing an existing bundle.
3. Persistence. Chain file and golden bundle, atomically.
4. Propagation. Environment stores, startup files, CLI settings. Failures
   here are collected, not raised.
5. Verification. Optional HTTPS request trusting only the new bundle.

Stages 1-3 raise TrustSetupError subclasses that abort the run. Nothing in
stages 4-5 raises.

Usage:
------
    from zscaler_trust.config import load_config
    from zscaler_trust.pipeline import TrustPipeline

    result = TrustPipeline(load_config(), environ=os.environ).run()
"""

import logging
import time
from collections.abc import Callable, MutableMapping

import httpx
from pydantic import BaseModel, ConfigDict, Field

from zscaler_trust.bundle import BaselineLocator, BundleBuilder, certifi_locator
from zscaler_trust.config import TrustConfig
from zscaler_trust.connector import Connector, build_connector
from zscaler_trust.extractor import ChainExtractor
from zscaler_trust.models import (
    CertificateChain,
    DiscoveryAttempt,
    PlatformProfile,
    ShellKind,
    TrustBundle,
)
from zscaler_trust.platform_profile import detect_platform
from zscaler_trust.propagator import (
    CommandRunner,
    ConfigPropagator,
    ExecutableLocator,
    PropagationReport,
    locate_executable,
    run_command,
)
from zscaler_trust.retry import RetryController, discovery_pass
from zscaler_trust.stores import (
    ConfigStore,
    MappingEnvironmentStore,
    WindowsUserEnvironmentStore,
)
from zscaler_trust.validator import ChainValidator
from zscaler_trust.verify import VerificationResult, verify_bundle

__all__: list[str] = ['PipelineResult', 'TrustPipeline']

logger: logging.Logger = logging.getLogger(__name__)


class PipelineResult(BaseModel):
    """
    Everything one run produced.

    Attributes:
        bundle: The golden bundle now in place.
        reused: True if an existing bundle was used without discovery.
        attempts: Discovery attempts, empty when reused.
        report: Per-target propagation outcomes.
        verification: Post-build HTTPS check, or None if disabled.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    bundle: TrustBundle
    reused: bool = False
    attempts: list[DiscoveryAttempt] = Field(default_factory=list)
    report: PropagationReport
    verification: VerificationResult | None = None


class TrustPipeline:
    """
    Orchestrates discovery, persistence, propagation and verification.

    Every collaborator that touches the outside world (network, clock,
    subprocesses, environment) can be injected, which is how the test suite
    runs the full pipeline offline.

    Attributes:
        config: Validated configuration (read-only).
        platform_profile: Shell family and startup file for this run.
    """

    def __init__(
        self,
        config: TrustConfig,
        environ: MutableMapping[str, str],
        platform_profile: PlatformProfile | None = None,
        connector: Connector | None = None,
        baseline_locator: BaselineLocator = certifi_locator,
        sleep: Callable[[float], None] = time.sleep,
        command_runner: CommandRunner = run_command,
        executable_locator: ExecutableLocator = locate_executable,
        user_store: ConfigStore | None = None,
        verification_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: Validated TrustConfig.
            environ: Process environment. Read for SHELL and PATH, written
                with the target variables.
            platform_profile: Precomputed profile; detected from `environ`
                when None.
            connector: Handshake strategy; built from the config when None.
            baseline_locator: Baseline bundle resolver (certifi by default).
            sleep: Backoff sleep used by the retry loop.
            command_runner: Runs git/gcloud/pip commands.
            executable_locator: Resolves CLI executables.
            user_store: Persistent user environment. On Windows a registry
                store is used when None.
            verification_transport: httpx transport for the verification
                request.
        """
        self._config: TrustConfig = config
        self._platform_profile: PlatformProfile = platform_profile or detect_platform(environ)
        self._connector: Connector = connector or build_connector(config.discovery)
        self._sleep: Callable[[float], None] = sleep
        self._verification_transport: httpx.BaseTransport | None = verification_transport

        self._builder: BundleBuilder = BundleBuilder(config.bundle, baseline_locator)

        if user_store is None and self._platform_profile.shell is ShellKind.WINDOWS:
            user_store = WindowsUserEnvironmentStore()

        self._propagator: ConfigPropagator = ConfigPropagator(
            config=config.propagation,
            platform_profile=self._platform_profile,
            process_store=MappingEnvironmentStore(environ),
            user_store=user_store,
            command_runner=command_runner,
            executable_locator=executable_locator,
        )

    @property
    def config(self) -> TrustConfig:
        """The configuration this pipeline runs with."""
        return self._config

    @property
    def platform_profile(self) -> PlatformProfile:
        """Shell family and startup file."""
        return self._platform_profile

    def run(self, reuse_existing: bool = False) -> PipelineResult:
        """
        Execute all stages.

        Args:
            reuse_existing: Use a previously written bundle when both
                artifacts exist, skipping discovery. Falls back to discovery
                when they do not.

        Returns:
            PipelineResult for the run.

        Raises:
            MissingBaselineBundleError: Baseline bundle not found.
            DiscoveryExhaustedError: Every discovery attempt failed.
            PersistenceError: Bundle artifacts could not be written.
        """
        logger.info(
            'Starting trust setup (host=%s:%d, shell=%s, profile=%s)',
            self._config.discovery.host,
            self._config.discovery.port,
            self._platform_profile.shell.value,
            self._platform_profile.profile_path,
        )

        bundle: TrustBundle | None = None
        attempts: list[DiscoveryAttempt] = []

        if reuse_existing:
            bundle = self._builder.load_existing()
            if bundle is None:
                logger.info('No usable bundle at %s, running discovery', self._builder.bundle_path)
            else:
                logger.info(
                    'Reusing existing bundle %s (%d proxy certificate(s))',
                    bundle.bundle_path,
                    bundle.certificate_count,
                )

        reused: bool = bundle is not None

        if bundle is None:
            # --- 1. Baseline check (before any network call) ---
            baseline_path = self._builder.locate_baseline_bundle()

            # --- 2. Discovery ---
            controller: RetryController = RetryController.from_config(
                attempt=self._discovery_attempt_function(),
                discovery_config=self._config.discovery,
                sleep=self._sleep,
            )
            try:
                chain: CertificateChain = controller.run()
            finally:
                attempts = list(controller.attempts)

            leaf = chain.leaf
            if leaf is not None:
                logger.info(
                    'Proxy leaf certificate issued by %s (sha256 %s)',
                    leaf.issuer_name,
                    leaf.fingerprint_sha256[:16],
                )

            # --- 3. Persistence ---
            bundle = self._builder.build(chain, baseline_path)

        # --- 4. Propagation ---
        report: PropagationReport = self._propagator.propagate(bundle)

        # --- 5. Verification ---
        verification: VerificationResult | None = None
        if self._config.verification.enabled:
            verification = verify_bundle(
                url=self._config.verification.url,
                bundle_path=bundle.bundle_path,
                timeout_seconds=self._config.verification.timeout_seconds,
                transport=self._verification_transport,
            )

        logger.info('Trust setup complete: %s', bundle.bundle_path)

        return PipelineResult(
            bundle=bundle,
            reused=reused,
            attempts=attempts,
            report=report,
            verification=verification,
        )

    def _discovery_attempt_function(self) -> Callable[[], CertificateChain]:
        extractor: ChainExtractor = ChainExtractor()
        validator: ChainValidator = ChainValidator.from_config(self._config.discovery)

        def attempt() -> CertificateChain:
            return discovery_pass(self._connector, extractor, validator)

        return attempt
