"""Bounded-admission gate for browser sessions.

`asyncio.Semaphore` lets a newcomer grab a freed slot ahead of tasks that are
already waiting; the gate hands the slot straight to the oldest waiter
instead, so admission is strictly FIFO.
"""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator

from core.domain.errors import GateReleaseError


class ConcurrencyGate:
    """Counter plus FIFO wait queue limiting simultaneous in-flight work."""

    def __init__(self, max_slots: int) -> None:
        if max_slots < 1:
            raise ValueError("max_slots must be >= 1")
        self._max_slots = max_slots
        self._occupied = 0
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._high_water = 0

    @property
    def max_slots(self) -> int:
        return self._max_slots

    @property
    def in_flight(self) -> int:
        return self._occupied

    @property
    def waiting(self) -> int:
        return sum(1 for fut in self._waiters if not fut.done())

    @property
    def high_water(self) -> int:
        """Largest number of slots occupied at once since creation."""

        return self._high_water

    async def acquire(self) -> None:
        if self._occupied < self._max_slots and not self.waiting:
            self._occupy()
            return

        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # The slot was handed over just before cancellation: pass it on.
                self.release()
            else:
                self._discard(fut)
            raise
        # `release()` transferred its slot to us; the counter is already right.

    def release(self) -> None:
        if self._occupied <= 0:
            raise GateReleaseError("release() called without a matching acquire()")

        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._occupied -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block."""

        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def _occupy(self) -> None:
        self._occupied += 1
        self._high_water = max(self._high_water, self._occupied)

    def _discard(self, fut: asyncio.Future[None]) -> None:
        try:
            self._waiters.remove(fut)
        except ValueError:
            pass
