"""
Backoff Retrier

Bounded exponential-backoff retry of an async operation.

Schedule:
    wait = delay + uniform(0, delay) / 2, then delay doubles.
    There is no maximum delay; a large max_attempts can produce very long
    waits.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from ..core.errors import LedgerUnavailableError
from ..core.metrics import increment_retries

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_wait(delay: float) -> float:
    """Delay plus up to half of it as jitter."""
    return delay + random.uniform(0, delay) / 2


async def retry(
    max_attempts: int,
    initial_delay: float,
    operation: Callable[[], Awaitable[T]],
    retry_on: tuple[type[BaseException], ...] = (LedgerUnavailableError,),
    operation_name: str = "operation",
) -> T:
    """
    Run `operation` with up to `max_attempts` attempts.

    Args:
        max_attempts: Total attempts, including the first call (>= 1)
        initial_delay: Base delay in seconds before the second attempt
        operation: Zero-argument coroutine function
        retry_on: Exception types that are retried; anything else propagates
            immediately
        operation_name: Label for logs and metrics

    Returns:
        The operation's result

    Raises:
        ValueError: If max_attempts < 1
        The last retryable error once attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    attempts_left = max_attempts
    delay = initial_delay

    while True:
        try:
            return await operation()
        except retry_on as e:
            attempts_left -= 1
            if attempts_left <= 0:
                logger.error(
                    f"[retry] {operation_name} failed after {max_attempts} attempts: {e}"
                )
                raise

            wait = backoff_wait(delay)
            logger.warning(
                f"[retry] {operation_name} failed ({e}), retrying in {wait:.2f}s "
                f"({attempts_left} attempts left)"
            )
            increment_retries(operation_name)

            await asyncio.sleep(wait)
            delay *= 2
