"""
Retry policy for fetches and mutations.

Exponential backoff: the delay before retry n (0-indexed) is
min(1000 * 2**n, 30000) milliseconds, i.e. 1s, 2s, 4s, ... capped at 30s.

Only transient failures are retried (see shared.errors.is_retryable).
Sleeping goes through an injectable coroutine so tests don't have to wait and
so a cancelled task stops retrying immediately.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from shared.errors import is_retryable

logger = logging.getLogger("retry")

BASE_DELAY_MS = 1000
MAX_DELAY_MS = 30000

Sleep = Callable[[float], Awaitable[Any]]
FetchFn = Callable[[], Awaitable[Any]]


def retry_delay_ms(attempt_index: int, base_ms: int = BASE_DELAY_MS, max_ms: int = MAX_DELAY_MS) -> int:
    """Backoff before retry `attempt_index`, in milliseconds."""
    return min(base_ms * 2 ** attempt_index, max_ms)


def retry_delay(attempt_index: int, base_delay: float = 1.0, max_delay: float = 30.0) -> float:
    """Backoff before retry `attempt_index`, in seconds."""
    return min(base_delay * 2 ** attempt_index, max_delay)


async def call_with_retry(
    fn: FetchFn,
    retries: int,
    sleep: Sleep = asyncio.sleep,
    delay: Callable[[int], float] = retry_delay,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> Any:
    """
    Await `fn()`, retrying transient failures.

    Args:
        fn: Zero-argument coroutine function
        retries: How many retries after the first failure
        sleep: Coroutine used to wait between attempts
        delay: Maps a retry index to a delay in seconds
        on_retry: Called with (retry index, error) before each wait

    Returns:
        Whatever fn returns

    Raises:
        The last error, once retries are exhausted or the error is not retryable.
        asyncio.CancelledError passes straight through.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= retries or not is_retryable(e):
                raise
            wait = delay(attempt)
            logger.warning(f"Attempt {attempt + 1} failed ({e!r}), retrying in {wait:.1f}s")
            if on_retry is not None:
                on_retry(attempt, e)
            await sleep(wait)
            attempt += 1
