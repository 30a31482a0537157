"""
Retry logic with a scheduled backoff.

Wraps a whole unit of work so transient infrastructure failures (lost
connections, optimistic-concurrency conflicts) are retried a bounded number
of times. Business failures must never reach this layer.
"""

import logging
import asyncio
import functools
from typing import Awaitable, Callable, Optional, Sequence, Tuple, Type, Any

logger = logging.getLogger(__name__)

# Seconds to wait before each retry; one retry per entry.
DEFAULT_RETRY_DELAYS: Tuple[float, ...] = (60.0, 300.0, 900.0)


class RetryExhausted(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


async def retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    *args,
    delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    skip_on: Tuple[Type[BaseException], ...] = (),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    name: Optional[str] = None,
    **kwargs
) -> Any:
    """
    Execute a coroutine function, retrying on the given exception types.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        delays: Wait before each retry, e.g. (60, 300, 900) gives 4 attempts
        retry_on: Exception types that trigger a retry
        skip_on: Exception types that are re-raised immediately
        sleep: Awaitable sleep, injectable for tests
        on_retry: Called with (attempt_number, exception) before each wait
        name: Label for log messages (defaults to func.__name__)
        **kwargs: Keyword arguments for func

    Returns:
        Result of func execution

    Raises:
        RetryExhausted: If every attempt failed with a retryable error
        Exception: Anything in skip_on or outside retry_on, unchanged

    Example:
        await retry_with_backoff(
            dispatcher.run_once,
            reminder_id,
            delays=(60, 300, 900),
            retry_on=(DatabaseError,),
        )
    """
    label = name or getattr(func, "__name__", "operation")
    total_attempts = len(delays) + 1

    for attempt in range(total_attempts):
        try:
            result = await func(*args, **kwargs)

            if attempt > 0:
                logger.info(f"Retry successful on attempt {attempt + 1}/{total_attempts} for {label}")

            return result

        except skip_on:
            raise

        except retry_on as e:
            if attempt == total_attempts - 1:
                log = logger.error if delays else logger.warning
                log(f"All {total_attempts} attempts exhausted for {label}: {type(e).__name__}: {e}")
                raise RetryExhausted(
                    f"{label} failed after {total_attempts} attempts: {type(e).__name__}: {e}",
                    attempts=total_attempts,
                ) from e

            delay = delays[attempt]
            logger.warning(
                f"Attempt {attempt + 1}/{total_attempts} for {label} failed "
                f"with {type(e).__name__}: {e}. Retrying in {delay:.0f}s..."
            )
            if on_retry is not None:
                on_retry(attempt + 1, e)

            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RetryExhausted(f"{label} failed after {total_attempts} attempts", attempts=total_attempts)


def with_retry(
    delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    skip_on: Tuple[Type[BaseException], ...] = ()
):
    """
    Decorator form of retry_with_backoff for async functions.

    Usage:
        @with_retry(delays=(1, 5), retry_on=(DatabaseConnectionError,))
        async def load(reminder_id: str):
            ...
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await retry_with_backoff(
                func,
                *args,
                delays=delays,
                retry_on=retry_on,
                skip_on=skip_on,
                **kwargs
            )
        return wrapper
    return decorator
