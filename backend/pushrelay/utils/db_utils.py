"""Database utility functions."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Substrings of driver errors that are worth another attempt
TRANSIENT_ERRORS = (
    "database is locked",
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "timeout",
    "too many clients",
)


def is_transient(error: Exception) -> bool:
    """Whether a database error looks like lock contention or a dropped connection."""
    message = str(error).lower()
    return any(fragment in message for fragment in TRANSIENT_ERRORS)


async def retry_on_lock(
    coro_func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 0.1,
) -> T:
    """Run a store write, retrying on transient database errors.

    Only the registration and user stores use this; gateway calls are never
    retried.

    Args:
        coro_func: Callable returning the coroutine to await (e.g. ``session.commit``)
        max_retries: Maximum number of attempts
        base_delay: Delay before the second attempt, doubled for each further one

    Returns:
        Whatever the coroutine returns

    Raises:
        OperationalError: If the error is not transient or attempts run out
    """
    for attempt in range(1, max_retries + 1):
        try:
            return await coro_func()
        except (OperationalError, InterfaceError) as e:
            if not is_transient(e) or attempt == max_retries:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                f"Transient database error, retrying in {delay}s "
                f"(attempt {attempt}/{max_retries}): {e}"
            )
            await asyncio.sleep(delay)
