# zscaler_trust/verify.py
"""
Connectivity checks against a real HTTPS endpoint.

verify_bundle():
    GET the URL with an SSLContext that trusts only the golden bundle. If the
    proxy chain in the bundle is the one currently intercepting traffic, the
    request succeeds; otherwise the handshake fails with a verification error.

check_system_trust():
    The same request with a `truststore` SSLContext backed by the operating
    system's certificate store. Tells the operator whether the OS already
    trusts the proxy (typical on managed Windows and macOS machines, where
    IT pushes the Zscaler root into the system store).

Both checks are informational. Failures are logged and returned in the
result, never raised, because a completed bundle is still useful even when a
check cannot reach the network.
"""

import logging
import ssl
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict

__all__: list[str] = [
    'VerificationResult',
    'build_bundle_ssl_context',
    'build_system_ssl_context',
    'check_system_trust',
    'verify_bundle',
]

logger: logging.Logger = logging.getLogger(__name__)


class VerificationResult(BaseModel):
    """
    Outcome of one HTTPS check.

    Attributes:
        url: URL that was requested.
        trust_source: 'bundle' or 'system'.
        ok: True if the TLS handshake and request completed. Any HTTP status
            counts; only the trust decision is being tested.
        status_code: HTTP status when a response was received.
        detail: Error text when the check failed.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    url: str
    trust_source: str
    ok: bool
    status_code: int | None = None
    detail: str | None = None


def build_bundle_ssl_context(bundle_path: Path) -> ssl.SSLContext:
    """
    Client context trusting only the certificates in `bundle_path`.

    Raises:
        OSError: If the file cannot be read.
        ssl.SSLError: If the file holds no usable certificate.
    """
    return ssl.create_default_context(cafile=str(bundle_path))


def build_system_ssl_context() -> ssl.SSLContext:
    """
    Client context verifying against the operating system trust store.

    Raises:
        RuntimeError: If truststore is not installed.
    """
    try:
        import truststore  # noqa: PLC0415
    except ImportError as import_error:
        raise RuntimeError(
            'truststore is required to check the system trust store; '
            'install it with: pip install truststore'
        ) from import_error

    return truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)


def _request(
    url: str,
    ssl_context: ssl.SSLContext,
    trust_source: str,
    timeout_seconds: float,
    transport: httpx.BaseTransport | None,
) -> VerificationResult:
    try:
        with httpx.Client(
            verify=ssl_context,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            follow_redirects=False,
        ) as client:
            response: httpx.Response = client.get(url)
    except httpx.HTTPError as error:
        logger.warning('HTTPS check of %s with %s trust failed: %s', url, trust_source, error)
        return VerificationResult(
            url=url,
            trust_source=trust_source,
            ok=False,
            detail=str(error) or type(error).__name__,
        )

    logger.info(
        'HTTPS check of %s with %s trust succeeded (HTTP %d)',
        url,
        trust_source,
        response.status_code,
    )
    return VerificationResult(
        url=url,
        trust_source=trust_source,
        ok=True,
        status_code=response.status_code,
    )


def verify_bundle(
    url: str,
    bundle_path: Path,
    timeout_seconds: float = 10.0,
    transport: httpx.BaseTransport | None = None,
) -> VerificationResult:
    """
    Fetch `url` trusting only the golden bundle.

    Args:
        url: HTTPS URL to request.
        bundle_path: Golden bundle written by the BundleBuilder.
        timeout_seconds: Request timeout.
        transport: httpx transport override, for tests.

    Returns:
        VerificationResult with `trust_source='bundle'`.
    """
    try:
        ssl_context: ssl.SSLContext = build_bundle_ssl_context(bundle_path)
    except (OSError, ssl.SSLError) as error:
        logger.warning('Could not load %s as a CA bundle: %s', bundle_path, error)
        return VerificationResult(url=url, trust_source='bundle', ok=False, detail=str(error))

    return _request(url, ssl_context, 'bundle', timeout_seconds, transport)


def check_system_trust(
    url: str,
    timeout_seconds: float = 10.0,
    transport: httpx.BaseTransport | None = None,
) -> VerificationResult:
    """
    Fetch `url` trusting only the operating system certificate store.

    Returns:
        VerificationResult with `trust_source='system'`.
    """
    try:
        ssl_context: ssl.SSLContext = build_system_ssl_context()
    except RuntimeError as error:
        logger.warning('System trust check unavailable: %s', error)
        return VerificationResult(url=url, trust_source='system', ok=False, detail=str(error))

    return _request(url, ssl_context, 'system', timeout_seconds, transport)
