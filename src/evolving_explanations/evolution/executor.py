"""Bounded-concurrency batch execution."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")


class BoundedExecutor:
    """Runs a batch of independent async units with at most ``concurrency`` in flight.

    One executor serves one batch. Results come back in input order. The
    first failure cancels the units still pending or running and is re-raised;
    there is no partial-success mode. Cancelling the caller cancels the batch.
    """

    def __init__(self, concurrency: int) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._sem = asyncio.Semaphore(concurrency)
        self.concurrency = concurrency
        self.active = 0
        self.peak_active = 0

    async def _run_unit(self, unit: Callable[[], Awaitable[T]]) -> T:
        async with self._sem:
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
            try:
                return await unit()
            finally:
                self.active -= 1

    async def map(self, units: Sequence[Callable[[], Awaitable[T]]]) -> list[T]:
        """Run every unit and return their results in input order."""
        tasks = [asyncio.ensure_future(self._run_unit(unit)) for unit in units]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


async def run_bounded(units: Sequence[Callable[[], Awaitable[T]]], concurrency: int) -> list[T]:
    """Run ``units`` on a fresh :class:`BoundedExecutor`."""
    return await BoundedExecutor(concurrency).map(units)
