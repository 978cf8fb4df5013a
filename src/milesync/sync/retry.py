"""Bounded retries with doubling backoff for batch uploads."""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

__all__ = ["RetryConfig", "RetryExhausted", "backoff_delay", "retry_with_backoff"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """How often to try and how long to wait in between.

    With the defaults a failing call is tried three times, waiting 2s and
    then 4s.
    """

    max_attempts: int = 3  # including the first try
    base_delay: float = 2.0  # seconds before the second attempt
    jitter: bool = False


class RetryExhausted(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def backoff_delay(failed_attempt: int, base_delay: float = 2.0, jitter: bool = False) -> float:
    """Seconds to wait after attempt ``failed_attempt`` (1-based) failed.

    The wait doubles each time. Jitter spreads it by up to 25% either way.
    """
    delay = base_delay * 2 ** (failed_attempt - 1)
    if jitter:
        delay += random.uniform(-0.25, 0.25) * delay
    return max(0.0, delay)


def retry_with_backoff(
    func: Callable[[], T],
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    retryable_exceptions: tuple = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or the attempts run out.

    Args:
        func: Zero-argument call to attempt
        config: Attempt count and delays
        on_retry: Called as ``(failed_attempt, error, delay)`` before waiting;
            a warning is logged instead when omitted
        retryable_exceptions: Errors worth another attempt; anything else
            propagates immediately
        sleep: Performs the wait

    Raises:
        RetryExhausted: The final attempt failed too
    """
    config = config or RetryConfig()
    attempts = max(1, config.max_attempts)
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retryable_exceptions as e:
            last_error = e
        if attempt == attempts:
            break

        delay = backoff_delay(attempt, config.base_delay, config.jitter)
        if on_retry:
            on_retry(attempt, last_error, delay)
        else:
            logger.warning(f"Attempt {attempt}/{attempts} failed: {last_error}; waiting {delay:.1f}s")
        sleep(delay)

    raise RetryExhausted(attempts, last_error)
