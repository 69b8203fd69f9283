"""
Backoff for provider calls.

A mission makes a handful of directory requests; a dropped connection or a
429 from the provider should not end it, so those calls are retried a couple
of times with doubling pauses before the mission reports the failure.
"""

import functools
import time
from typing import Callable, Optional, Tuple, Type

# statuses a directory provider returns while overloaded or rate limiting
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class RetryError(Exception):
    """The call kept failing after every allowed attempt."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def exponential_backoff(
    max_retries: int = 2,
    base_delay: float = 1.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Retry the decorated call on ``exceptions``, pausing base_delay, 2x, 4x ...

    ``on_retry(attempt, error, delay)`` runs before each pause. Once
    ``max_retries`` retries are spent the last error is chained onto a
    RetryError.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt > max_retries:
                        raise RetryError(
                            f"{func.__name__} failed after {attempt} attempts: {e}",
                            attempts=attempt,
                        ) from e
                    delay = base_delay * 2 ** (attempt - 1)
                    if on_retry:
                        on_retry(attempt, e, delay)
                    time.sleep(delay)

        return wrapper
    return decorator


def should_retry_http_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES
