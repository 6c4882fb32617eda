"""
Retry with exponential backoff for transient API failures.

Only network errors, timeouts and 5xx responses are retried; a 4xx
answer means the request itself is wrong and is raised immediately.
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional

from client.errors import ApiError, NetworkError
from config import get_settings

logger = logging.getLogger(__name__)


def is_retryable(error: Exception) -> bool:
    """Network failures and server errors are worth another attempt."""
    if isinstance(error, NetworkError):
        return True
    return isinstance(error, ApiError) and error.is_server_error


def backoff_delay(retry: int, base_delay: float = 1.0, max_delay: float = 5.0) -> float:
    """Seconds to wait before retry number ``retry`` (0-based)."""
    return min(base_delay * (2 ** retry), max_delay)


async def call_with_retry(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any
) -> Any:
    """
    Await ``func(*args, **kwargs)``, retrying transient failures.

    Args:
        max_retries: Retries after the first attempt (default from settings)
        base_delay: Delay before the first retry in seconds
        max_delay: Upper bound for any single delay
        sleep: Awaitable sleep, replaceable in tests
    """
    settings = get_settings()
    max_retries = settings.retry_attempts if max_retries is None else max_retries
    base_delay = settings.retry_base_delay_seconds if base_delay is None else base_delay
    max_delay = settings.retry_max_delay_seconds if max_delay is None else max_delay

    name = getattr(func, "__name__", repr(func))
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except ApiError as e:
            if not is_retryable(e):
                raise
            if attempt == max_retries:
                logger.error(f"{name} failed after {max_retries} retries: {e}")
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"{name} attempt {attempt + 1} failed: {e}. Retrying in {delay:.1f}s..."
            )
            await sleep(delay)


def retry_with_backoff(
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None
) -> Callable[..., Callable[..., Awaitable[Any]]]:
    """
    Decorator form of ``call_with_retry`` for coroutine functions.

    Usage:
        @retry_with_backoff()
        async def get_goals(self):
            ...
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            sleep = asyncio.sleep
            owner = args[0] if args else None
            if owner is not None and hasattr(owner, "retry_sleep"):
                sleep = owner.retry_sleep
            return await call_with_retry(
                func,
                *args,
                max_retries=max_retries,
                base_delay=base_delay,
                max_delay=max_delay,
                sleep=sleep,
                **kwargs
            )

        return wrapper

    return decorator
