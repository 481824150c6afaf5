# zscaler_trust/models/certificates.py
"""
Certificate and certificate chain models.

A Certificate wraps one canonical PEM block exactly as it will be written to
disk. Distinguished names are parsed lazily with `cryptography` so that a
chain can be held (and rejected by the validator) even when one of its blocks
is garbage; parsing only happens once the encoding check has passed.

Canonical PEM here means: standard BEGIN/END CERTIFICATE delimiters, LF line
endings, and a trailing newline after the END line. The chain file and the
golden bundle are plain concatenations of these blocks, so this format is
what makes repeated runs byte-reproducible.
"""

import hashlib

from cryptography import x509
from pydantic import BaseModel, ConfigDict, Field

__all__: list[str] = [
    'PEM_BEGIN_MARKER',
    'PEM_END_MARKER',
    'Certificate',
    'CertificateChain',
    'HandshakeCapture',
]

PEM_BEGIN_MARKER: str = '-----BEGIN CERTIFICATE-----'
PEM_END_MARKER: str = '-----END CERTIFICATE-----'


class Certificate(BaseModel):
    """
    One certificate as canonical PEM text.

    Attributes:
        pem: PEM block including delimiters and trailing newline.
    """

    model_config = ConfigDict(frozen=True)

    pem: str

    def to_x509(self) -> x509.Certificate:
        """
        Parse the PEM block.

        Raises:
            ValueError: If the block is not ASCII or not a valid certificate.
        """
        try:
            pem_bytes: bytes = self.pem.encode('ascii')
        except UnicodeEncodeError as encode_error:
            raise ValueError(
                f'Certificate PEM contains non-ASCII characters: {encode_error}'
            ) from encode_error
        return x509.load_pem_x509_certificate(pem_bytes)

    @property
    def issuer_name(self) -> str:
        """Issuer distinguished name in RFC 4514 form (e.g. 'CN=...,O=...')."""
        return self.to_x509().issuer.rfc4514_string()

    @property
    def subject_name(self) -> str:
        """Subject distinguished name in RFC 4514 form."""
        return self.to_x509().subject.rfc4514_string()

    @property
    def fingerprint_sha256(self) -> str:
        """Hex SHA-256 of the PEM text, used for log lines and status output."""
        return hashlib.sha256(self.pem.encode('utf-8')).hexdigest()


class CertificateChain(BaseModel):
    """
    Ordered certificate chain, leaf first, as presented by the handshake.

    An empty chain is a legal value: the extractor returns it when nothing
    could be found, and the validator turns it into a chain-empty outcome.
    """

    model_config = ConfigDict(frozen=True)

    certificates: tuple[Certificate, ...] = Field(default_factory=tuple)

    @classmethod
    def from_pem_blocks(cls, blocks: list[str]) -> 'CertificateChain':
        """Build a chain from already-canonical PEM blocks."""
        return cls(certificates=tuple(Certificate(pem=block) for block in blocks))

    def __len__(self) -> int:
        return len(self.certificates)

    @property
    def is_empty(self) -> bool:
        """Whether no certificate was extracted."""
        return not self.certificates

    @property
    def leaf(self) -> Certificate | None:
        """First certificate in presentation order, or None for an empty chain."""
        return self.certificates[0] if self.certificates else None

    def to_pem(self) -> str:
        """Concatenate all blocks in order; this is the chain file content."""
        return ''.join(certificate.pem for certificate in self.certificates)

    def to_bytes(self) -> bytes:
        """Chain file content as bytes."""
        return self.to_pem().encode('utf-8')


class HandshakeCapture(BaseModel):
    """
    Raw result of a TLS handshake, before extraction.

    Exactly one of `der_certificates` or `text` is meaningful, depending on
    which connector produced the capture: the socket connector returns
    structured DER blobs, the openssl connector returns `s_client` output.

    Attributes:
        host: Host the handshake was made against.
        port: TCP port.
        der_certificates: DER-encoded certificates in presentation order.
        text: Line-oriented output of an external handshake tool.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    host: str
    port: int
    der_certificates: tuple[bytes, ...] = Field(default_factory=tuple)
    text: str | None = None
