"""Exponential backoff for calls to flaky services."""
import functools
import time
from typing import Callable, Tuple, Type

from .exceptions import RetryableError
from .logger import get_logger

logger = get_logger()

# Transient failures; anything else propagates on the first attempt
RETRYABLE_ERRORS = (
    ConnectionError,
    TimeoutError,
    RetryableError,
)


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 2,
    backoff_factor: float = 2,
    retryable_exceptions: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS
):
    """
    Retry the wrapped call up to max_retries extra times.

    The n-th retry waits initial_delay * backoff_factor ** (n - 1) seconds.
    The last retryable exception is re-raised once attempts run out.
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delays = [initial_delay * backoff_factor ** n for n in range(max_retries)]

            for retry, delay in enumerate(delays, start=1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    logger.warning(
                        f"{func.__name__} failed ({e}), retry {retry}/{max_retries} in {delay:.1f}s"
                    )
                    time.sleep(delay)

            try:
                return func(*args, **kwargs)
            except retryable_exceptions:
                logger.error(f"{func.__name__} still failing after {max_retries} retries")
                raise
        return wrapper
    return decorator
