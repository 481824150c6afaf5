# zscaler_trust/connector.py
"""
TLS handshake against a well-known host to observe the presented chain.

Under TLS interception the certificate chain a client sees is the proxy's,
not the origin's. The connectors here deliberately disable every local trust
check so that an intercepting (and locally untrusted) chain is still returned
instead of failing verification. No CA bundle is ever loaded for this
connection: discovery must reflect the current network path, because the
proxy's certificate can rotate.

Two strategies are provided, selected by `DiscoveryConfig.method`:

- SocketConnector: stdlib `ssl`. Returns structured DER certificates read
  with `SSLSocket.get_unverified_chain()`, which exists from Python 3.13.
  The peer certificate alone is the proxy's forged leaf, not its CA, so
  there is no leaf-only mode.
- OpenSSLConnector: runs `openssl s_client -showcerts` and returns its text
  output for the line-oriented extractor. build_connector() uses it on
  interpreters where the socket connector cannot see the chain.

Both raise ProxyConnectionError for every connection-level failure. They never
retry; the RetryController owns that decision.
"""

import logging
import socket
import ssl
import subprocess
from typing import Protocol

from zscaler_trust.config import DiscoveryConfig
from zscaler_trust.errors import ProxyConnectionError
from zscaler_trust.models import HandshakeCapture

__all__: list[str] = [
    'SOCKET_CHAIN_SUPPORTED',
    'Connector',
    'OpenSSLConnector',
    'SocketConnector',
    'build_connector',
]

logger: logging.Logger = logging.getLogger(__name__)

SOCKET_CHAIN_SUPPORTED: bool = hasattr(ssl.SSLSocket, 'get_unverified_chain')


class Connector(Protocol):
    """Anything that can perform one handshake and return what it saw."""

    def fetch(self) -> HandshakeCapture:
        """
        Perform one TLS handshake.

        Raises:
            ProxyConnectionError: On any connection-level failure.
        """
        ...


def _build_unverified_context() -> ssl.SSLContext:
    """
    Client context that accepts any presented chain.

    Built from scratch rather than with create_default_context() so that no
    system or certifi CA store is loaded.
    """
    context: ssl.SSLContext = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class SocketConnector:
    """
    Handshake with the stdlib `ssl` module.

    Attributes:
        host: Discovery host (also sent as SNI).
        port: TLS port.
        timeout_seconds: Socket timeout covering connect and handshake.

    Raises:
        RuntimeError: If this interpreter's `ssl` cannot report the
            unverified chain (Python < 3.13).
    """

    def __init__(self, host: str, port: int = 443, timeout_seconds: float = 10.0) -> None:
        if not SOCKET_CHAIN_SUPPORTED:
            raise RuntimeError(
                'SocketConnector needs ssl.SSLSocket.get_unverified_chain() '
                "(Python 3.13+); use OpenSSLConnector or discovery.method='openssl'"
            )
        self.host: str = host
        self.port: int = port
        self.timeout_seconds: float = timeout_seconds

    def fetch(self) -> HandshakeCapture:
        """
        Connect, handshake, and return the presented certificates as DER.

        Returns:
            Capture with `der_certificates` in presentation order. Empty if
            the peer presented nothing.

        Raises:
            ProxyConnectionError: DNS failure, refused or reset connection,
                timeout, or TLS alert.
        """
        context: ssl.SSLContext = _build_unverified_context()

        logger.debug(
            'Opening TLS connection to %s:%d (timeout=%.1fs)',
            self.host,
            self.port,
            self.timeout_seconds,
        )

        try:
            with (
                socket.create_connection(
                    (self.host, self.port),
                    timeout=self.timeout_seconds,
                ) as raw_socket,
                context.wrap_socket(raw_socket, server_hostname=self.host) as tls_socket,
            ):
                der_certificates: tuple[bytes, ...] = self._read_chain(tls_socket)
        except OSError as error:
            # socket.timeout, socket.gaierror and ssl.SSLError are all OSError
            logger.warning(
                'TLS connection to %s:%d failed: %s',
                self.host,
                self.port,
                error,
            )
            raise ProxyConnectionError(
                f'Could not complete TLS handshake with {self.host}:{self.port}: {error}'
            ) from error

        logger.debug(
            'Handshake with %s:%d presented %d certificate(s)',
            self.host,
            self.port,
            len(der_certificates),
        )
        return HandshakeCapture(
            host=self.host,
            port=self.port,
            der_certificates=der_certificates,
        )

    @staticmethod
    def _read_chain(tls_socket: ssl.SSLSocket) -> tuple[bytes, ...]:
        """Presented chain as DER, leaf first."""
        chain: list[bytes] | None = tls_socket.get_unverified_chain()
        return tuple(chain) if chain else ()


class OpenSSLConnector:
    """
    Handshake by running `openssl s_client -showcerts`.

    Useful where the Python build links an SSL library that cannot report the
    full chain. The output is returned verbatim; all framing is removed later
    by the extractor.
    """

    def __init__(
        self,
        host: str,
        port: int = 443,
        timeout_seconds: float = 10.0,
        openssl_binary: str = 'openssl',
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.timeout_seconds: float = timeout_seconds
        self.openssl_binary: str = openssl_binary

    @property
    def command(self) -> list[str]:
        """The s_client invocation."""
        return [
            self.openssl_binary,
            's_client',
            '-showcerts',
            '-connect',
            f'{self.host}:{self.port}',
            '-servername',
            self.host,
        ]

    def fetch(self) -> HandshakeCapture:
        """
        Run s_client and capture its standard output.

        Returns:
            Capture with `text` set. Undecodable bytes are replaced so the
            validator can reject the capture as encoding-invalid.

        Raises:
            ProxyConnectionError: openssl missing, timed out, or exited
                non-zero without printing anything.
        """
        logger.debug('Running: %s', ' '.join(self.command))

        try:
            completed: subprocess.CompletedProcess[bytes] = subprocess.run(  # noqa: S603
                self.command,
                input=b'',  # closes stdin so s_client exits after the handshake
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as error:
            raise ProxyConnectionError(
                f'{self.openssl_binary!r} not found on PATH; install OpenSSL or '
                "set discovery.method to 'socket'"
            ) from error
        except subprocess.TimeoutExpired as error:
            logger.warning(
                'openssl s_client timed out after %.1fs for %s:%d',
                self.timeout_seconds,
                self.host,
                self.port,
            )
            raise ProxyConnectionError(
                f'openssl s_client timed out connecting to {self.host}:{self.port}'
            ) from error

        output: str = completed.stdout.decode('utf-8', errors='replace')

        if completed.returncode != 0 and not output.strip():
            stderr: str = completed.stderr.decode('utf-8', errors='replace').strip()
            logger.warning(
                'openssl s_client exited %d for %s:%d: %s',
                completed.returncode,
                self.host,
                self.port,
                stderr[:200],
            )
            raise ProxyConnectionError(
                f'openssl s_client failed for {self.host}:{self.port} '
                f'(exit {completed.returncode}): {stderr[:200]}'
            )

        return HandshakeCapture(host=self.host, port=self.port, text=output)


def build_connector(discovery_config: DiscoveryConfig) -> Connector:
    """
    Create the connector selected by `discovery_config.method`.

    'socket' falls back to OpenSSLConnector when the interpreter cannot
    report the unverified chain, since the leaf alone never contains the
    proxy CA.
    """
    use_openssl: bool = discovery_config.method == 'openssl'
    if not use_openssl and not SOCKET_CHAIN_SUPPORTED:
        logger.warning(
            'This Python cannot read the presented TLS chain (needs 3.13+); '
            'using openssl s_client for discovery'
        )
        use_openssl = True

    if use_openssl:
        return OpenSSLConnector(
            host=discovery_config.host,
            port=discovery_config.port,
            timeout_seconds=discovery_config.timeout_seconds,
        )
    return SocketConnector(
        host=discovery_config.host,
        port=discovery_config.port,
        timeout_seconds=discovery_config.timeout_seconds,
    )
