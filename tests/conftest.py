"""
Shared pytest fixtures for zscaler_trust tests.

Certificates are generated with `cryptography` once per session. Nothing in
the suite leaves the machine or touches the real home directory, os.environ or the
real git/gcloud/pip binaries: every collaborator that would is injected.
"""

import logging
import subprocess
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from zscaler_trust.common.logger import PACKAGE_LOGGER_NAME
from zscaler_trust.config import (
    BundleConfig,
    DiscoveryConfig,
    PropagationConfig,
    TrustConfig,
    VerificationConfig,
)
from zscaler_trust.models import HandshakeCapture, PlatformProfile, ShellKind

# =============================================================================
# Certificate Helpers
# =============================================================================


def build_certificate(
    issuer_attributes: list[tuple[x509.ObjectIdentifier, str]],
    subject_common_name: str = 'www.google.com',
) -> x509.Certificate:
    """Self-signed-key certificate with an arbitrary issuer name."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    now: datetime = datetime.now(UTC)

    issuer: x509.Name = x509.Name(
        [x509.NameAttribute(oid, value) for oid, value in issuer_attributes]
    )
    subject: x509.Name = x509.Name(
        [x509.NameAttribute(NameOID.COMMON_NAME, subject_common_name)]
    )

    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )


def to_pem(certificate: x509.Certificate) -> str:
    """Canonical PEM text (LF endings, trailing newline)."""
    return certificate.public_bytes(serialization.Encoding.PEM).decode('ascii')


def to_der(certificate: x509.Certificate) -> bytes:
    """DER bytes."""
    return certificate.public_bytes(serialization.Encoding.DER)


# =============================================================================
# Certificate Fixtures
# =============================================================================


@pytest.fixture(scope='session')
def zscaler_certificate() -> x509.Certificate:
    """Leaf as re-signed by the proxy: issuer contains 'Zscaler'."""
    return build_certificate(
        [
            (NameOID.ORGANIZATION_NAME, 'Zscaler Inc.'),
            (NameOID.COMMON_NAME, 'Zscaler Intermediate Root CA'),
        ]
    )


@pytest.fixture(scope='session')
def other_certificate() -> x509.Certificate:
    """Leaf as presented off the corporate network."""
    return build_certificate([(NameOID.COMMON_NAME, 'Some Other CA')])


@pytest.fixture(scope='session')
def zscaler_pem(zscaler_certificate: x509.Certificate) -> str:
    """Zscaler-issued certificate as PEM."""
    return to_pem(zscaler_certificate)


@pytest.fixture(scope='session')
def other_pem(other_certificate: x509.Certificate) -> str:
    """Non-Zscaler certificate as PEM."""
    return to_pem(other_certificate)


@pytest.fixture(scope='session')
def zscaler_der(zscaler_certificate: x509.Certificate) -> bytes:
    """Zscaler-issued certificate as DER."""
    return to_der(zscaler_certificate)


@pytest.fixture(scope='session')
def other_der(other_certificate: x509.Certificate) -> bytes:
    """Non-Zscaler certificate as DER."""
    return to_der(other_certificate)


# =============================================================================
# Filesystem Fixtures
# =============================================================================


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """Fake home directory."""
    home: Path = tmp_path / 'home'
    home.mkdir()
    return home


@pytest.fixture
def cert_dir(home_dir: Path) -> Path:
    """Certificate directory (not created)."""
    return home_dir / 'certs'


@pytest.fixture
def baseline_bundle(tmp_path: Path, other_pem: str) -> Path:
    """Stand-in for certifi's cacert.pem holding one public root."""
    baseline_path: Path = tmp_path / 'cacert.pem'
    baseline_path.write_text(f'# Public roots\n{other_pem}', encoding='utf-8')
    return baseline_path


@pytest.fixture
def posix_profile(home_dir: Path) -> PlatformProfile:
    """bash on Linux."""
    return PlatformProfile(
        shell=ShellKind.POSIX,
        profile_path=home_dir / '.bashrc',
        home=home_dir,
    )


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def trust_config(cert_dir: Path) -> TrustConfig:
    """Defaults with the cert dir under tmp_path and verification disabled."""
    return TrustConfig(
        discovery=DiscoveryConfig(),
        bundle=BundleConfig(cert_dir=cert_dir),
        propagation=PropagationConfig(),
        verification=VerificationConfig(enabled=False),
    )


@pytest.fixture
def sample_config_dict(cert_dir: Path) -> dict[str, Any]:
    """Raw YAML-shaped configuration."""
    return {
        'discovery': {
            'host': 'www.example.com',
            'max_attempts': 2,
            'backoff_seconds': 0.5,
            'issuer_scope': 'any',
        },
        'bundle': {'cert_dir': str(cert_dir)},
        'propagation': {'tools': ['git', 'pip']},
        'verification': {'enabled': False},
        'logging': {'console_level': 'WARNING'},
    }


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeConnector:
    """
    Connector returning (or raising) scripted results in order.

    Attributes:
        calls: Number of fetch() calls so far.
    """

    def __init__(self, *results: HandshakeCapture | Exception) -> None:
        self._results: list[HandshakeCapture | Exception] = list(results)
        self.calls: int = 0

    def fetch(self) -> HandshakeCapture:
        self.calls += 1
        # Repeat the last scripted result once the script runs out
        result: HandshakeCapture | Exception = self._results[
            min(self.calls, len(self._results)) - 1
        ]
        if isinstance(result, Exception):
            raise result
        return result


def der_capture(*der_certificates: bytes) -> HandshakeCapture:
    """Capture as produced by the socket connector."""
    return HandshakeCapture(
        host='www.google.com',
        port=443,
        der_certificates=tuple(der_certificates),
    )


def completed(
    returncode: int = 0,
    stdout: str = '',
    stderr: str = '',
) -> subprocess.CompletedProcess[str]:
    """CompletedProcess as returned by a CommandRunner."""
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def command_runner() -> Mock:
    """Runner where every command succeeds with empty output."""
    return Mock(return_value=completed())


def locate_all(name: str, search_path: str | None) -> str | None:
    """Locator that finds every tool under /usr/bin."""
    return f'/usr/bin/{name}'


def locate_none(name: str, search_path: str | None) -> str | None:
    """Locator that finds nothing."""
    return None


# =============================================================================
# Logging Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Drop handlers a test installed so they never outlive its streams."""
    yield
    logging.getLogger(PACKAGE_LOGGER_NAME).handlers.clear()
