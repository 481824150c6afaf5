# zscaler_trust/errors.py
"""
Exception hierarchy for the trust setup pipeline.

Errors fall into three groups, matching how the pipeline reacts to them:

Discovery errors (retried):
    Raised by a single discovery attempt. The RetryController catches them,
    records the outcome, and tries again until the attempt limit is reached.
    They differ only for diagnostics.

Fatal errors (abort the run):
    DiscoveryExhaustedError, MissingBaselineBundleError and PersistenceError
    stop the pipeline before any downstream tool is configured. Each carries
    a `hint` naming the most likely root cause, because the person reading
    the message is a developer setting up a laptop, not the maintainer.

Propagation errors (isolated):
    PropagationError is collected per target and reported at the end of the
    run. One failing target never prevents the others from being configured.
"""

from typing import TYPE_CHECKING

from zscaler_trust.models.discovery import DiscoveryOutcome

if TYPE_CHECKING:
    from zscaler_trust.models.discovery import DiscoveryAttempt

__all__: list[str] = [
    'ChainEmptyError',
    'DiscoveryError',
    'DiscoveryExhaustedError',
    'EncodingError',
    'IssuerMismatchError',
    'MissingBaselineBundleError',
    'PersistenceError',
    'PropagationError',
    'ProxyConnectionError',
    'TrustSetupError',
]


class TrustSetupError(Exception):
    """
    Base exception for all zscaler_trust errors.

    Attributes:
        hint: Operator-facing explanation of the likely root cause, or None.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint


# =============================================================================
# Discovery Errors (retry triggers)
# =============================================================================


class DiscoveryError(TrustSetupError):
    """
    Raised when one discovery attempt does not yield a validated chain.

    Subclasses set `outcome` so the retry loop can record what happened
    without inspecting exception types.
    """

    outcome: DiscoveryOutcome = DiscoveryOutcome.CONNECTION_FAILED


class ProxyConnectionError(DiscoveryError):
    """TLS handshake could not be completed (DNS, TCP reset, timeout, alert)."""

    outcome = DiscoveryOutcome.CONNECTION_FAILED


class ChainEmptyError(DiscoveryError):
    """The handshake produced no complete PEM certificate block."""

    outcome = DiscoveryOutcome.CHAIN_EMPTY


class EncodingError(DiscoveryError):
    """The captured chain contains non-PEM characters or an unparseable block."""

    outcome = DiscoveryOutcome.ENCODING_INVALID


class IssuerMismatchError(DiscoveryError):
    """
    The chain was not issued by the expected proxy vendor.

    Attributes:
        issuer: The issuer distinguished name that failed the check.
    """

    outcome = DiscoveryOutcome.ISSUER_MISMATCH

    def __init__(self, message: str, issuer: str | None = None) -> None:
        super().__init__(message)
        self.issuer: str | None = issuer


# =============================================================================
# Fatal Errors
# =============================================================================


class DiscoveryExhaustedError(TrustSetupError):
    """
    Raised when every discovery attempt failed.

    Attributes:
        attempts: One DiscoveryAttempt per iteration, in order.
    """

    def __init__(
        self,
        message: str,
        attempts: 'list[DiscoveryAttempt]',
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.attempts: list[DiscoveryAttempt] = attempts


class MissingBaselineBundleError(TrustSetupError):
    """The baseline CA bundle (certifi) could not be located."""


class PersistenceError(TrustSetupError):
    """
    Raised when a bundle artifact cannot be written.

    Attributes:
        path: The file or directory that could not be written.
    """

    def __init__(self, message: str, path: str, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.path: str = path


# =============================================================================
# Propagation Errors (non-fatal)
# =============================================================================


class PropagationError(TrustSetupError):
    """
    Raised when a single configuration target cannot be applied.

    Attributes:
        target: Name of the target that failed (e.g. 'git', 'shell-profile').
    """

    def __init__(self, target: str, message: str) -> None:
        super().__init__(f'{target}: {message}')
        self.target: str = target
