"""Exponential backoff helpers for collaborator calls."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 1.5, jitter: float = 0.5) -> None:
    """Sleep for computed backoff delay before retrying."""
    await asyncio.sleep(compute_backoff(attempt, base=base, jitter=jitter))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    retry_on: Tuple[Type[BaseException], ...],
    base: float = 1.5,
    jitter: float = 0.5,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """Await ``operation`` up to ``attempts`` times, backing off between tries.

    Only exceptions in ``retry_on`` are retried; the last one propagates once
    the attempts are used up.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= attempts:
                raise
            if on_retry is not None:
                on_retry(attempt, exc)
            await schedule_retry(attempt, base=base, jitter=jitter)
            attempt += 1
