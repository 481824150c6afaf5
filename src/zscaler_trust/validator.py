# zscaler_trust/validator.py
"""
Chain validation: structural integrity first, then issuer identity.

Checks run in a fixed order so the cheap structural test short-circuits
before any certificate is parsed:

1. chain-empty       nothing was extracted
2. encoding-invalid  non-printable or non-ASCII characters anywhere in the
                     PEM text (partially received or binary-corrupted
                     captures), or a block `cryptography` cannot parse
3. issuer-mismatch   the issuer DN does not contain the expected vendor
                     substring

Validation is pure inspection. It raises the matching DiscoveryError and
returns nothing on success.
"""

import logging
from typing import Final

from zscaler_trust.config import DiscoveryConfig
from zscaler_trust.config.config_models import IssuerScope
from zscaler_trust.errors import ChainEmptyError, EncodingError, IssuerMismatchError
from zscaler_trust.models import Certificate, CertificateChain

__all__: list[str] = ['ChainValidator', 'find_invalid_character']

logger: logging.Logger = logging.getLogger(__name__)

# Printable ASCII plus the whitespace PEM text legitimately contains
_PRINTABLE_MIN: Final[int] = 0x20
_PRINTABLE_MAX: Final[int] = 0x7E
_ALLOWED_WHITESPACE: Final[frozenset[str]] = frozenset('\t\r\n')


def find_invalid_character(text: str) -> tuple[int, str] | None:
    """
    Locate the first character that cannot appear in PEM text.

    Returns:
        (offset, character) of the first offender, or None if the text is
        clean.
    """
    for offset, character in enumerate(text):
        if character in _ALLOWED_WHITESPACE:
            continue
        if not _PRINTABLE_MIN <= ord(character) <= _PRINTABLE_MAX:
            return offset, character
    return None


class ChainValidator:
    """
    Accept only chains issued by the expected proxy vendor.

    Attributes:
        expected_issuer: Substring the issuer DN must contain.
        issuer_scope: 'leaf' checks the first certificate; 'any' accepts a
            match on any chain element.
    """

    def __init__(
        self,
        expected_issuer: str = 'Zscaler',
        issuer_scope: IssuerScope = 'leaf',
    ) -> None:
        self.expected_issuer: str = expected_issuer
        self.issuer_scope: IssuerScope = issuer_scope

    @classmethod
    def from_config(cls, discovery_config: DiscoveryConfig) -> 'ChainValidator':
        """Build a validator from the discovery section of the config."""
        return cls(
            expected_issuer=discovery_config.expected_issuer,
            issuer_scope=discovery_config.issuer_scope,
        )

    def validate(self, chain: CertificateChain) -> None:
        """
        Run all checks in order.

        Raises:
            ChainEmptyError: No certificate in the chain.
            EncodingError: Invalid characters or an unparseable block.
            IssuerMismatchError: Expected vendor not found in the issuer.
        """
        if chain.is_empty:
            raise ChainEmptyError('No certificate was presented during the handshake')

        self.check_encoding(chain)
        self.check_issuer(chain)

        logger.debug('Chain of %d certificate(s) validated', len(chain))

    def check_encoding(self, chain: CertificateChain) -> None:
        """
        Reject text that is not clean PEM.

        Raises:
            EncodingError: On the first invalid character, or if a block does
                not parse as an X.509 certificate.
        """
        for index, certificate in enumerate(chain.certificates):
            offender: tuple[int, str] | None = find_invalid_character(certificate.pem)
            if offender is not None:
                offset, character = offender
                raise EncodingError(
                    f'Certificate {index} contains invalid character {character!r} '
                    f'at offset {offset}; the capture is corrupted or incomplete'
                )

        for index, certificate in enumerate(chain.certificates):
            try:
                certificate.to_x509()
            except ValueError as error:
                raise EncodingError(
                    f'Certificate {index} is not a valid X.509 PEM block: {error}'
                ) from error

    def check_issuer(self, chain: CertificateChain) -> None:
        """
        Require the expected vendor in the issuer of the checked element(s).

        Raises:
            IssuerMismatchError: Carrying the (first) issuer that was seen.
        """
        candidates: tuple[Certificate, ...] = (
            chain.certificates[:1] if self.issuer_scope == 'leaf' else chain.certificates
        )

        issuers: list[str] = [certificate.issuer_name for certificate in candidates]
        if any(self.expected_issuer in issuer for issuer in issuers):
            return

        raise IssuerMismatchError(
            f'Expected issuer containing {self.expected_issuer!r} '
            f'({self.issuer_scope} check), got: {"; ".join(issuers)}',
            issuer=issuers[0] if issuers else None,
        )
