"""
Retry logic with exponential backoff for callers of the bookings API.

Index-addressed updates can abort when another writer holds the same date
group; the server reports that as a 5xx and the caller retries.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


class RetryableStatus(Exception):
    """An HTTP response whose status says the request may succeed if repeated."""

    def __init__(self, status_code: int, body: Optional[dict] = None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body or {}


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=3, exceptions=(RetryableStatus,))
        def update(client, date_key, index, job):
            return client.update_by_index(date_key, index, job)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)
                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if an exception is likely transient and should be retried.

    Args:
        exception: Exception to check

    Returns:
        True for timeouts, dropped connections, lock contention and 5xx/429
    """
    if isinstance(exception, RetryableStatus):
        return True

    error_str = str(exception).lower()

    transient_keywords = [
        'timeout',
        'timed out',
        'connection',
        'temporary failure',
        'service unavailable',
        'database is locked',
        'could not serialize',
        'deadlock detected',
        '503',
        '502',
        '429',
    ]

    return any(keyword in error_str for keyword in transient_keywords)


def should_retry_http_status(status_code: int) -> bool:
    """
    Check if HTTP status code indicates a retryable error.

    Args:
        status_code: HTTP status code

    Returns:
        True if should retry
    """
    retryable_codes = {
        408,  # Request Timeout
        429,  # Too Many Requests
        500,  # Internal Server Error (includes aborted group rewrites)
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }

    return status_code in retryable_codes
