"""Bounded parallel fan-out with per-item failure isolation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from scoreboard.core.logging import get_logger

logger = get_logger("concurrency")

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_LIMIT = 6


@dataclass
class BoundedRunReport(Generic[T, R]):
    """Outcome of ``run_bounded``.

    ``results[i]`` belongs to ``items[i]`` and is None when that item failed.
    """

    results: list[R | None] = field(default_factory=list)
    failures: list[tuple[T, Exception]] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.results) - len(self.failures)


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int = DEFAULT_LIMIT,
) -> BoundedRunReport[T, R]:
    """
    Apply ``worker`` to every item with at most ``limit`` in flight.

    An exception from one item is recorded in ``failures`` and never stops
    the others. Cancellation of the caller propagates to all workers.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    report: BoundedRunReport[T, R] = BoundedRunReport(results=[None] * len(items))
    if not items:
        return report

    sem = asyncio.Semaphore(limit)
    failed: dict[int, Exception] = {}

    async def run_with_sem(index: int, item: T) -> None:
        async with sem:
            try:
                report.results[index] = await worker(item)
            except Exception as e:
                logger.warning(f"Worker failed for {item!r}: {type(e).__name__}: {e}")
                failed[index] = e

    await asyncio.gather(*(run_with_sem(i, item) for i, item in enumerate(items)))

    report.failures = [(items[i], failed[i]) for i in sorted(failed)]
    return report
