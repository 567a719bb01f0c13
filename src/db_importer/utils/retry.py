"""Retry logic for database I/O using tenacity.

Only transient connection problems are retried. Data and logic errors
(missing mappings, constraint violations) fail immediately: retrying them
would give the same result.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from sqlalchemy.exc import DisconnectionError, OperationalError
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from db_importer.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

TRANSIENT_DB_ERRORS = (OperationalError, DisconnectionError)


def _log_retry(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retry_attempt",
        function=getattr(retry_state.fn, "__name__", "unknown"),
        attempt=retry_state.attempt_number,
        error=str(exception) if exception else None,
    )


def retry_on_db_error(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 30,
    retry_on_exceptions: tuple = TRANSIENT_DB_ERRORS,
) -> Callable[[F], F]:
    """Retry decorator for transient database errors.

    Args:
        max_attempts: Maximum number of attempts (1 disables retrying)
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        retry_on_exceptions: Exception types that trigger a retry

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_random_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_exception_type(retry_on_exceptions),
            before_sleep=_log_retry,
            reraise=True,
        )
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator


def call_with_retry(
    func: Callable[..., Any],
    *args: Any,
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 30,
    **kwargs: Any,
) -> Any:
    """Call ``func`` with the retry policy of ``retry_on_db_error``.

    Used where the retry settings come from configuration at runtime
    rather than being fixed at decoration time.
    """
    wrapped = retry_on_db_error(max_attempts=max_attempts, min_wait=min_wait, max_wait=max_wait)(func)
    return wrapped(*args, **kwargs)
