# zscaler_trust/bundle.py
"""
Golden bundle construction and persistence.

The golden bundle is the baseline public CA bundle (from `certifi`, the same
package Python HTTP clients already trust) followed byte-for-byte by the
validated proxy chain. Nothing is inserted between the two parts and nothing
from a previous bundle is merged in: the bundle is a derived artifact, fully
rebuilt on every run, so identical inputs always give identical bytes.

Two files are written to the certificate directory:

    <cert_dir>/<chain_filename>   validated chain, leaf first
    <cert_dir>/<bundle_filename>  baseline bytes + chain bytes

Both are written atomically (temp file + rename).
"""

import logging
from collections.abc import Callable
from pathlib import Path

import certifi

from zscaler_trust.common import atomic_write_bytes
from zscaler_trust.config import BundleConfig
from zscaler_trust.errors import MissingBaselineBundleError, PersistenceError
from zscaler_trust.models import CertificateChain, TrustBundle

__all__: list[str] = [
    'BaselineLocator',
    'BundleBuilder',
    'certifi_locator',
    'count_pem_certificates',
]

logger: logging.Logger = logging.getLogger(__name__)

# Returns the baseline bundle path, or None/'' if it cannot be found
BaselineLocator = Callable[[], str | None]

MISSING_BASELINE_HINT: str = (
    "The 'certifi' package provides the baseline CA bundle. Install it into the "
    "Python environment running this tool (pip install certifi) or set "
    'bundle.baseline_bundle in the config file.'
)


def certifi_locator() -> str | None:
    """Path of the CA bundle shipped with the installed certifi package."""
    return certifi.where()


def count_pem_certificates(pem_text: str) -> int:
    """Number of BEGIN CERTIFICATE lines in `pem_text`."""
    return pem_text.count('-----BEGIN CERTIFICATE-----')


class BundleBuilder:
    """
    Locate the baseline bundle and persist the chain file and golden bundle.

    Attributes:
        chain_path: Where the validated chain is written.
        bundle_path: Where the golden bundle is written.
    """

    def __init__(
        self,
        bundle_config: BundleConfig,
        baseline_locator: BaselineLocator = certifi_locator,
    ) -> None:
        """
        Args:
            bundle_config: Artifact locations and optional baseline override.
            baseline_locator: Resolves the baseline bundle when no override is
                configured. Injectable for tests.
        """
        self._config: BundleConfig = bundle_config
        self._baseline_locator: BaselineLocator = baseline_locator

    @property
    def chain_path(self) -> Path:
        """Chain file path."""
        return self._config.chain_path

    @property
    def bundle_path(self) -> Path:
        """Golden bundle path."""
        return self._config.bundle_path

    def locate_baseline_bundle(self) -> Path:
        """
        Resolve the baseline CA bundle.

        Returns:
            Path to an existing baseline bundle file.

        Raises:
            MissingBaselineBundleError: The override does not exist, the
                locator returned nothing, or the located file is missing.
        """
        if self._config.baseline_bundle is not None:
            baseline_path: Path = self._config.baseline_bundle
            source: str = 'bundle.baseline_bundle'
        else:
            try:
                located: str | None = self._baseline_locator()
            except OSError as error:
                raise MissingBaselineBundleError(
                    f'Could not locate the baseline CA bundle: {error}',
                    hint=MISSING_BASELINE_HINT,
                ) from error

            if not located:
                raise MissingBaselineBundleError(
                    'Could not locate the baseline CA bundle (certifi returned no path)',
                    hint=MISSING_BASELINE_HINT,
                )
            baseline_path = Path(located)
            source = 'certifi'

        if not baseline_path.is_file():
            raise MissingBaselineBundleError(
                f'Baseline CA bundle from {source} does not exist: {baseline_path}',
                hint=MISSING_BASELINE_HINT,
            )

        logger.debug('Baseline CA bundle (%s): %s', source, baseline_path)
        return baseline_path

    def build(self, chain: CertificateChain, baseline_path: Path) -> TrustBundle:
        """
        Write the chain file and the golden bundle, replacing existing files.

        Args:
            chain: Validated, non-empty proxy chain.
            baseline_path: Baseline bundle from locate_baseline_bundle().

        Returns:
            The persisted TrustBundle.

        Raises:
            ValueError: If the chain is empty.
            MissingBaselineBundleError: If the baseline cannot be read.
            PersistenceError: If the directory or either file cannot be written.
        """
        if chain.is_empty:
            raise ValueError('Refusing to build a trust bundle from an empty chain')

        try:
            baseline_bytes: bytes = baseline_path.read_bytes()
        except OSError as error:
            raise MissingBaselineBundleError(
                f'Could not read baseline CA bundle {baseline_path}: {error}',
                hint=MISSING_BASELINE_HINT,
            ) from error

        chain_bytes: bytes = chain.to_bytes()
        cert_dir: Path = self._config.cert_dir

        try:
            cert_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise PersistenceError(
                f'Could not create certificate directory {cert_dir}: {error}',
                path=str(cert_dir),
                hint=f'Check that {cert_dir.parent} exists and is writable.',
            ) from error

        # Chain first: if the bundle write fails, a rerun still starts clean
        for target_path, data in (
            (self.chain_path, chain_bytes),
            (self.bundle_path, baseline_bytes + chain_bytes),
        ):
            try:
                atomic_write_bytes(target_path, data)
            except OSError as error:
                logger.exception('Failed to write %s', target_path)
                raise PersistenceError(
                    f'Could not write {target_path}: {error}',
                    path=str(target_path),
                    hint=f'Check permissions and free space in {cert_dir}.',
                ) from error

        logger.info(
            'Wrote golden bundle %s (%d baseline bytes + %d-certificate chain)',
            self.bundle_path,
            len(baseline_bytes),
            len(chain),
        )

        return TrustBundle(
            bundle_path=self.bundle_path,
            chain_path=self.chain_path,
            certificate_count=len(chain),
        )

    def load_existing(self) -> TrustBundle | None:
        """
        Return the previously written bundle, if both artifacts exist.

        Used when the operator asks to reuse an existing bundle instead of
        rediscovering. Returns None when either file is missing or the chain
        file holds no certificate.
        """
        if not (self.bundle_path.is_file() and self.chain_path.is_file()):
            return None

        try:
            chain_text: str = self.chain_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as error:
            logger.warning('Existing chain file %s is unreadable: %s', self.chain_path, error)
            return None

        certificate_count: int = count_pem_certificates(chain_text)
        if certificate_count == 0:
            logger.warning('Existing chain file %s holds no certificate', self.chain_path)
            return None

        return TrustBundle(
            bundle_path=self.bundle_path,
            chain_path=self.chain_path,
            certificate_count=certificate_count,
        )
