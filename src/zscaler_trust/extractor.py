# zscaler_trust/extractor.py
"""
Turn a handshake capture into an ordered chain of canonical PEM blocks.

The output shape is the contract, not the technique: a structured DER chain
from the socket connector and free-form `openssl s_client` text both end up
as the same CertificateChain. All handshake framing (session details, verify
return codes, subject/issuer summary lines) is discarded.

Extraction never fails. A capture without a single complete BEGIN/END pair
yields an empty chain, which the validator reports as chain-empty.
"""

import logging
import re
import ssl
from typing import Final

from zscaler_trust.models import (
    PEM_BEGIN_MARKER,
    PEM_END_MARKER,
    CertificateChain,
    HandshakeCapture,
)

__all__: list[str] = ['ChainExtractor']

logger: logging.Logger = logging.getLogger(__name__)

# Non-greedy so adjacent blocks are not merged; [\s\S] so newlines match.
# Content between the delimiters is kept as-is (including garbage) so the
# validator can reject a corrupted capture instead of it being cleaned here.
_PEM_BLOCK_PATTERN: Final[re.Pattern[str]] = re.compile(
    re.escape(PEM_BEGIN_MARKER) + r'([\s\S]*?)' + re.escape(PEM_END_MARKER)
)


class ChainExtractor:
    """Render handshake captures as canonical PEM blocks."""

    def extract(self, capture: HandshakeCapture) -> CertificateChain:
        """
        Extract the chain from either capture form.

        Args:
            capture: Output of a Connector.

        Returns:
            Chain in presentation order; empty if nothing was found.
        """
        if capture.der_certificates:
            chain: CertificateChain = self.extract_from_der(capture.der_certificates)
        elif capture.text is not None:
            chain = self.extract_from_text(capture.text)
        else:
            chain = CertificateChain()

        logger.debug(
            'Extracted %d certificate(s) from %s:%d',
            len(chain),
            capture.host,
            capture.port,
        )
        return chain

    def extract_from_der(self, der_certificates: tuple[bytes, ...]) -> CertificateChain:
        """One PEM block per DER certificate, order preserved."""
        blocks: list[str] = [
            ssl.DER_cert_to_PEM_cert(der_certificate)
            for der_certificate in der_certificates
        ]
        return CertificateChain.from_pem_blocks(blocks)

    def extract_from_text(self, text: str) -> CertificateChain:
        """
        Pull every complete PEM certificate block out of free-form text.

        Line endings are normalized to LF, spaces and tabs around each body
        line are dropped, and every block ends with a single newline. Any
        other character, including Unicode whitespace and control bytes, is
        left in place for the encoding check.
        """
        normalized_text: str = text.replace('\r\n', '\n').replace('\r', '\n')

        blocks: list[str] = []
        for match in _PEM_BLOCK_PATTERN.finditer(normalized_text):
            body_lines: list[str] = [
                line.strip(' \t') for line in match.group(1).split('\n') if line.strip(' \t')
            ]
            blocks.append(
                '\n'.join([PEM_BEGIN_MARKER, *body_lines, PEM_END_MARKER]) + '\n'
            )

        if not blocks:
            logger.debug('No complete PEM block found in %d characters of output', len(text))

        return CertificateChain.from_pem_blocks(blocks)
