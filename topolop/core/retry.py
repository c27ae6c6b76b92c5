"""Retry with exponential backoff and jitter for network adapters."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..constants import RETRY_BASE_DELAY_SECONDS
from .exceptions import APIError, AuthenticationError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Never retried: credentials are wrong or the budget is spent for this run
NON_RETRYABLE = (AuthenticationError, RateLimitError)


def backoff_delay(attempt: int, base_delay: float = RETRY_BASE_DELAY_SECONDS, rng: Callable[[], float] = random.random) -> float:
    """Full-jitter delay for the given 1-based attempt number."""
    return base_delay * (2 ** (attempt - 1)) * rng()


def is_retryable(error: Exception) -> bool:
    if isinstance(error, NON_RETRYABLE):
        return False
    if isinstance(error, APIError) and error.status_code in (401, 403):
        return False
    return True


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    base_delay: float = RETRY_BASE_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> T:
    """Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory
        max_retries: Retries after the first attempt (0 disables retrying)
        base_delay: Delay in seconds for the first retry before jitter
        sleep: Awaitable sleep (injectable for tests)
        rng: Jitter source returning values in [0, 1)

    Returns:
        The operation's result

    Raises:
        The last error once retries are exhausted, or immediately for
        authentication and rate-limit errors
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt > max_retries:
                raise
            delay = backoff_delay(attempt, base_delay, rng)
            logger.debug(f"Attempt {attempt} failed ({e}); retrying in {delay:.2f}s")
            await sleep(delay)
