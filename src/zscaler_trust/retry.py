# zscaler_trust/retry.py
"""
Bounded retry around one discovery pass.

A discovery pass is Connector -> ChainExtractor -> ChainValidator. Each pass
either returns a validated chain or raises a DiscoveryError. The
RetryController drives passes through an explicit state machine:

    ATTEMPTING --validated-------------------------> VALIDATED
    ATTEMPTING --failed, attempt < max--(sleep)----> ATTEMPTING
    ATTEMPTING --failed, attempt == max------------> EXHAUSTED

The loop itself is tenacity's `Retrying` with a fixed wait, the same library
used for HTTP retries elsewhere in the package. tenacity evaluates the stop
condition before waiting, so there is never a sleep after the final attempt.

Only DiscoveryError subclasses are retried. Anything else (a programming
error, KeyboardInterrupt) propagates immediately.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from zscaler_trust.config import DiscoveryConfig
from zscaler_trust.connector import Connector
from zscaler_trust.errors import DiscoveryError, DiscoveryExhaustedError
from zscaler_trust.extractor import ChainExtractor
from zscaler_trust.models import (
    CertificateChain,
    DiscoveryAttempt,
    DiscoveryOutcome,
    HandshakeCapture,
)
from zscaler_trust.validator import ChainValidator

__all__: list[str] = [
    'EXHAUSTED_HINT',
    'RetryController',
    'RetryState',
    'discovery_pass',
]

logger: logging.Logger = logging.getLogger(__name__)

EXHAUSTED_HINT: str = (
    'Make sure you are connected to the corporate network or VPN with the '
    'Zscaler client enabled. Off the corporate network there is no '
    'intercepting proxy and the presented certificate is not issued by Zscaler.'
)


class RetryState(str, Enum):
    """States of the discovery loop."""

    ATTEMPTING = 'attempting'
    VALIDATED = 'validated'
    EXHAUSTED = 'exhausted'


def discovery_pass(
    connector: Connector,
    extractor: ChainExtractor,
    validator: ChainValidator,
) -> CertificateChain:
    """
    One Connector -> Extractor -> Validator pass.

    Raises:
        DiscoveryError: Whatever stage failed first.
    """
    capture: HandshakeCapture = connector.fetch()
    chain: CertificateChain = extractor.extract(capture)
    validator.validate(chain)
    return chain


class RetryController:
    """
    Drive discovery passes until one validates or the attempt limit is hit.

    Attributes:
        state: Current RetryState.
        attempts: One DiscoveryAttempt per pass, in order.
        max_attempts: Total passes allowed.
        backoff_seconds: Fixed pause between passes.

    Example:
        >>> controller = RetryController(lambda: discovery_pass(c, e, v))
        >>> chain = controller.run()
        >>> controller.state
        <RetryState.VALIDATED: 'validated'>
    """

    def __init__(
        self,
        attempt: Callable[[], CertificateChain],
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            attempt: Callable performing one discovery pass.
            max_attempts: Total passes allowed (>= 1).
            backoff_seconds: Fixed pause between passes.
            sleep: Sleep function, injectable for tests.

        Raises:
            ValueError: If max_attempts < 1 or backoff_seconds < 0.
        """
        if max_attempts < 1:
            raise ValueError(f'max_attempts must be at least 1, got: {max_attempts}')
        if backoff_seconds < 0:
            raise ValueError(f'backoff_seconds must be >= 0, got: {backoff_seconds}')

        self._attempt: Callable[[], CertificateChain] = attempt
        self.max_attempts: int = max_attempts
        self.backoff_seconds: float = backoff_seconds
        self._sleep: Callable[[float], None] = sleep
        self.state: RetryState = RetryState.ATTEMPTING
        self.attempts: list[DiscoveryAttempt] = []

    @classmethod
    def from_config(
        cls,
        attempt: Callable[[], CertificateChain],
        discovery_config: DiscoveryConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> 'RetryController':
        """Build a controller using the configured attempt count and backoff."""
        return cls(
            attempt=attempt,
            max_attempts=discovery_config.max_attempts,
            backoff_seconds=discovery_config.backoff_seconds,
            sleep=sleep,
        )

    def _log_before_sleep(self, retry_state: RetryCallState) -> None:
        logger.info(
            'Discovery attempt %d/%d failed, retrying in %.1fs',
            retry_state.attempt_number,
            self.max_attempts,
            self.backoff_seconds,
        )

    def run(self) -> CertificateChain:
        """
        Run the loop to a terminal state.

        Returns:
            The validated chain (state VALIDATED).

        Raises:
            DiscoveryExhaustedError: Every pass failed (state EXHAUSTED). The
                last DiscoveryError is chained as the cause.
            RuntimeError: If the controller was already run.
        """
        if self.state is not RetryState.ATTEMPTING or self.attempts:
            raise RuntimeError('RetryController.run() can only be called once')

        retrying = Retrying(
            retry=retry_if_exception_type(DiscoveryError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.backoff_seconds),
            sleep=self._sleep,
            before_sleep=self._log_before_sleep,
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    attempt_number: int = attempt.retry_state.attempt_number
                    chain: CertificateChain = self._run_attempt(attempt_number)
        except DiscoveryError as last_error:
            self.state = RetryState.EXHAUSTED
            logger.error(
                'Certificate discovery failed after %d attempt(s): %s',
                len(self.attempts),
                last_error,
            )
            raise DiscoveryExhaustedError(
                f'Could not discover a valid proxy certificate chain after '
                f'{len(self.attempts)} attempt(s). Last failure '
                f'({last_error.outcome.value}): {last_error}',
                attempts=list(self.attempts),
                hint=EXHAUSTED_HINT,
            ) from last_error

        self.state = RetryState.VALIDATED
        return chain

    def _run_attempt(self, attempt_number: int) -> CertificateChain:
        """Run one pass and record its outcome."""
        logger.debug('Discovery attempt %d/%d', attempt_number, self.max_attempts)
        try:
            chain: CertificateChain = self._attempt()
        except DiscoveryError as error:
            self.attempts.append(
                DiscoveryAttempt(
                    attempt_number=attempt_number,
                    outcome=error.outcome,
                    detail=str(error),
                )
            )
            logger.warning(
                'Discovery attempt %d/%d: %s (%s)',
                attempt_number,
                self.max_attempts,
                error.outcome.value,
                error,
            )
            raise

        self.attempts.append(
            DiscoveryAttempt(
                attempt_number=attempt_number,
                outcome=DiscoveryOutcome.VALIDATED,
            )
        )
        logger.info(
            'Discovery attempt %d/%d validated a %d-certificate chain',
            attempt_number,
            self.max_attempts,
            len(chain),
        )
        return chain
