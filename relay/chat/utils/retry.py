"""
Retry logic with exponential backoff for transient service errors.

Chat calls are one-shot by default (max_attempts=1). Raising the attempt
count retries connection errors, timeouts, 429s and 5xx responses.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Exception types that should trigger retries
RETRYABLE_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    httpx.TransportError,
)


def is_rate_limit_error(exception: BaseException) -> bool:
    """Check if exception is a rate limit or overload error."""
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or status >= 500
    
    error_str = str(exception).lower()
    rate_limit_indicators = [
        "rate limit",
        "429",
        "too many requests",
        "resource_exhausted",
        "overloaded",
    ]
    return any(indicator in error_str for indicator in rate_limit_indicators)


def is_retryable(exception: BaseException) -> bool:
    """Whether another attempt could succeed."""
    return isinstance(exception, RETRYABLE_EXCEPTIONS) or is_rate_limit_error(exception)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 1,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
) -> T:
    """
    Await `func()` up to `max_attempts` times.
    
    The last exception is re-raised unchanged once attempts run out or
    the error is not retryable.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=min_wait, max=max_wait),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await func()
    raise RuntimeError("unreachable")  # pragma: no cover
