# zscaler_trust/models/discovery.py
"""
Discovery attempt bookkeeping.

These models only exist for the duration of one retry loop. They are never
persisted; the RetryController keeps them in memory so a failed run can
explain what each attempt saw.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

__all__: list[str] = ['DiscoveryAttempt', 'DiscoveryOutcome']


class DiscoveryOutcome(str, Enum):
    """Result of one Connector -> Extractor -> Validator pass."""

    CONNECTION_FAILED = 'connection-failed'
    CHAIN_EMPTY = 'chain-empty'
    ENCODING_INVALID = 'encoding-invalid'
    ISSUER_MISMATCH = 'issuer-mismatch'
    VALIDATED = 'validated'


class DiscoveryAttempt(BaseModel):
    """
    Record of a single discovery iteration.

    Attributes:
        attempt_number: 1-indexed attempt counter.
        outcome: What the attempt produced.
        detail: Error message for failed attempts, None when validated.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    attempt_number: int
    outcome: DiscoveryOutcome
    detail: str | None = None

    @property
    def succeeded(self) -> bool:
        """Whether this attempt produced a validated chain."""
        return self.outcome is DiscoveryOutcome.VALIDATED
