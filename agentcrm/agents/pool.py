"""Bounded-concurrency fan-out with per-item error isolation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

MIN_WORKERS = 3
MAX_WORKERS = 5


@dataclass
class ItemOutcome(Generic[T, R]):
    index: int
    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WorkerPool:
    """Runs an async function over items with at most ``size`` in flight.

    A failing item is captured in its outcome; it never cancels siblings.
    Outcomes come back in input order.
    """

    def __init__(self, size: int = 4):
        self.size = max(MIN_WORKERS, min(MAX_WORKERS, size))
        self.peak_in_flight = 0
        self._in_flight = 0

    async def map(
        self,
        func: Callable[[T], Awaitable[R]],
        items: Sequence[T],
    ) -> list[ItemOutcome[T, R]]:
        semaphore = asyncio.Semaphore(self.size)

        async def _run(index: int, item: T) -> ItemOutcome[T, R]:
            async with semaphore:
                self._in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
                try:
                    return ItemOutcome(index, item, result=await func(item))
                except Exception as e:
                    logger.warning("Worker item %d failed: %s", index, e)
                    return ItemOutcome(index, item, error=e)
                finally:
                    self._in_flight -= 1

        outcomes: list[Any] = await asyncio.gather(
            *(_run(i, item) for i, item in enumerate(items))
        )
        return sorted(outcomes, key=lambda o: o.index)
