"""Database utility functions."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError, SQLAlchemyError

from ..errors import ErrorKind, OperationResult

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_MESSAGES = (
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "database is locked",
    "timeout",
    "too many clients",
)


async def retry_on_lock(coro_func: Callable[[], Awaitable[T]], max_retries: int = 3, base_delay: float = 0.1) -> T:
    """Retry a store operation on transient errors with exponential backoff.

    Args:
        coro_func: Async function to call (a callable that returns a coroutine)
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds (doubles with each retry)

    Returns:
        The result of the coroutine function

    Raises:
        OperationalError: If all retries fail or the error is not transient
    """
    last_exception = None
    for attempt in range(max_retries):
        try:
            return await coro_func()
        except (OperationalError, InterfaceError) as e:
            error_str = str(e).lower()
            if not any(msg in error_str for msg in TRANSIENT_MESSAGES):
                raise
            last_exception = e
            delay = base_delay * (2 ** attempt)
            logger.warning(f"Store transient error, retrying in {delay}s (attempt {attempt + 1}/{max_retries})")
            await asyncio.sleep(delay)
    raise last_exception


async def call_remote(
    coro_func: Callable[[], Awaitable[T]],
    timeout: float,
    operation: str,
) -> OperationResult[T]:
    """Run a profile store operation with retries and a caller-imposed timeout.

    Store failures are turned into failure results instead of propagating.
    """
    try:
        value = await asyncio.wait_for(retry_on_lock(coro_func), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{operation} timed out after {timeout}s")
        return OperationResult.failure(ErrorKind.TIMEOUT, f"{operation} timed out")
    except SQLAlchemyError as e:
        logger.error(f"{operation} failed: {e}")
        return OperationResult.failure(ErrorKind.REGISTRY_UNAVAILABLE, str(e))
    except OSError as e:
        logger.error(f"{operation} failed, store unreachable: {e}")
        return OperationResult.failure(ErrorKind.REGISTRY_UNAVAILABLE, str(e))
    return OperationResult.success(value)
