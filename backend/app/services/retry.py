from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterator
from typing import TypeVar

from backend.app.services.errors import TubeToolsError

LOGGER = logging.getLogger("tubetools.retry")

T = TypeVar("T")


def exponential_backoff(
    *,
    retries: int,
    base_seconds: float,
    max_seconds: float,
    jitter: Callable[[], float] = random.random,
) -> Iterator[float]:
    """Yield one delay per retry: `base * 2**n` capped at `max`, plus up to 100% jitter of base."""
    for attempt in range(max(0, retries)):
        delay = min(max_seconds, base_seconds * (2**attempt))
        yield min(max_seconds, delay + base_seconds * jitter())


def is_retriable_error(error: BaseException) -> bool:
    return isinstance(error, TubeToolsError) and error.retryable


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    is_retriable: Callable[[BaseException], bool] = is_retriable_error,
    delays: Iterator[float] | list[float] | tuple[float, ...] = (),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run `operation`, retrying after each delay while failures are retriable.

    The number of retries equals the number of delays; the last failure is
    re-raised unchanged.
    """
    schedule = iter(delays)
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_retriable(exc):
                raise
            delay = next(schedule, None)
            if delay is None:
                raise
            LOGGER.info(
                "retrying %s attempt=%s delay_seconds=%.2f error_type=%s",
                description,
                attempt,
                delay,
                type(exc).__name__,
            )
            await sleep(delay)
            attempt += 1
