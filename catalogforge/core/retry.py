"""
Retry Utilities for Resilient HTTP Fetching.

Retry logic with exponential backoff and jitter for transient failures
when fetching pages from the origin site over plain HTTP.

Backoff Strategy
----------------
Delay increases exponentially: `base_delay * (exponential_base ^ attempt)`

    Attempt 1: 0.5s  (+ jitter)
    Attempt 2: 1.0s  (+ jitter)
    Attempt 3: 2.0s  (+ jitter)
    ... capped at max_delay

Jitter (random 0-25% variation) keeps concurrent callers from retrying
against the origin in lockstep.

Retries are attempted only on the exception types passed in
`retryable_exceptions`; anything else propagates immediately.
"""

import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type

from catalogforge.core.logging import get_logger

logger = get_logger(__name__)


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception, attempts: int) -> None:
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def calculate_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool,
) -> float:
    """Calculate delay for next retry attempt."""
    delay = base_delay * (exponential_base**attempt)
    delay = min(delay, max_delay)

    if jitter:
        delay += delay * 0.25 * random.random()

    return delay


def _handle_retry_attempt(
    exception: Exception,
    attempt: int,
    max_attempts: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool,
    func_name: str,
    on_retry: Optional[Callable[[Exception, int], None]],
) -> None:
    """Log, notify and sleep before the next attempt (no-op on the last)."""
    if attempt >= max_attempts - 1:
        logger.error(
            f"All {max_attempts} attempts failed",
            error=str(exception),
            function=func_name,
        )
        return

    delay = calculate_delay(attempt, base_delay, max_delay, exponential_base, jitter)
    logger.warning(
        f"Attempt {attempt + 1}/{max_attempts} failed, retrying in {delay:.2f}s",
        error=str(exception),
        function=func_name,
    )

    if on_retry:
        on_retry(exception, attempt + 1)

    time.sleep(delay)


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (including first try)
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries
        exponential_base: Base for exponential backoff
        jitter: Add random jitter to delays
        retryable_exceptions: Exception types to retry on
        on_retry: Callback(exception, attempt) called before each retry

    Example:
        @retry(max_attempts=3, retryable_exceptions=(requests.ConnectionError,))
        def fetch(url):
            return session.get(url, timeout=20)
    """
    if retryable_exceptions is None:
        retryable_exceptions = (Exception,)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception: Optional[Exception] = None
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e
                    _handle_retry_attempt(
                        e,
                        attempt,
                        max_attempts,
                        base_delay,
                        max_delay,
                        exponential_base,
                        jitter,
                        func.__name__,
                        on_retry,
                    )

            raise RetryError(
                f"Failed after {max_attempts} attempts: {last_exception}",
                last_exception,
                max_attempts,
            )

        return wrapper

    return decorator
