"""
Retry Logic for HubSpot Fetches
One backoff/refresh policy shared by every entity pass
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from crmsync.core.exceptions import FatalPassError, TransientFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_FETCH_ERRORS = (TransientFetchError, httpx.HTTPError)


def backoff_seconds(retry_number: int, base_delay_ms: int = 5000) -> float:
    """Delay before retry n (1-based): base * 2^n ms, i.e. 10s, 20s, 40s, 80s."""
    return base_delay_ms * (2 ** retry_number) / 1000


def build_fetch_retrying(
    max_retries: int = 4,
    base_delay_ms: int = 5000,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> AsyncRetrying:
    """
    Tenacity policy for search fetches.

    Strategy:
    - 1 attempt + max_retries retries
    - Exponential backoff: base * 2^n ms before retry n
    - Logs before each retry
    """
    return AsyncRetrying(
        retry=retry_if_exception_type(RETRYABLE_FETCH_ERRORS),
        stop=stop_after_attempt(max_retries + 1),
        # tenacity waits multiplier * 2^(attempt - 1) after failed attempt n
        wait=wait_exponential(multiplier=backoff_seconds(1, base_delay_ms), exp_base=2),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
    )


async def fetch_with_retry(
    fetch: Callable[[], Awaitable[T]],
    *,
    description: str,
    max_retries: int = 4,
    base_delay_ms: int = 5000,
    before_retry: Optional[Callable[[], Awaitable[object]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> T:
    """
    Run fetch() under the shared retry policy.

    Args:
        fetch: Zero-argument coroutine factory performing one request
        description: Human-readable label used in logs and errors
        max_retries: Retries after the first failed attempt
        base_delay_ms: Backoff base in milliseconds
        before_retry: Awaited before every retry (credential refresh hook)
        sleep: Sleep coroutine (tests pass a no-op)

    Returns:
        Whatever fetch() returns on the first successful attempt

    Raises:
        FatalPassError: If every attempt failed
    """
    retrying = build_fetch_retrying(max_retries, base_delay_ms, sleep)
    try:
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(f"🔁 Retrying {description} (attempt {attempt.retry_state.attempt_number})")
                    if before_retry is not None:
                        await before_retry()
                result = await fetch()
    except RetryError as e:
        last_error = e.last_attempt.exception()
        logger.error(f"❌ {description} failed after {max_retries + 1} attempts: {last_error}")
        raise FatalPassError(
            f"Failed to fetch {description} after {max_retries} retries. Aborting."
        ) from last_error

    return result
