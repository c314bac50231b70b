"""
Retry logic with exponential backoff for transient database failures.

SQLite reports concurrent writers as "database is locked"; queue workers and
API calls running side by side retry those commits instead of failing the
whole batch.
"""

import functools
import time
from typing import Callable, Optional, Tuple, Type

from sqlalchemy.exc import OperationalError


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
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
        retry_if: Optional predicate; exceptions it rejects are re-raised as-is
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=3, exceptions=(OperationalError,))
        def mark_done(db_path, item_id):
            with session_scope(db_path) as session:
                ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        raise

                    if attempt < max_retries:
                        current_delay = min(delay, max_delay)

                        if on_retry:
                            on_retry(attempt + 1, e, current_delay)

                        time.sleep(current_delay)
                        delay *= exponential_base
                    else:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

            raise RetryError("Retry loop exited without a result")

        return wrapper
    return decorator


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if a database exception is likely transient and worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True if error is likely transient (lock contention, busy, timeout)
    """
    error_str = str(exception).lower()

    transient_keywords = [
        'database is locked',
        'database table is locked',
        'database is busy',
        'deadlock',
        'could not serialize',
        'timeout',
    ]

    return any(keyword in error_str for keyword in transient_keywords)


# Wraps a whole unit of work (open session, write, commit); a failed commit
# leaves its session unusable, so the transaction is replayed from scratch.
retry_transient = exponential_backoff(
    max_retries=3,
    exceptions=(OperationalError,),
    retry_if=is_transient_error,
)
