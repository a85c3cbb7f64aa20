"""Tests for the FIFO concurrency gate."""

import asyncio

import pytest

from core.domain.errors import GateReleaseError
from core.services.gate import ConcurrencyGate


class TestConcurrencyGate:
    """Admission, FIFO wakeups and pairing checks."""

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            ConcurrencyGate(0)

    @pytest.mark.asyncio
    async def test_acquire_below_limit_returns_immediately(self) -> None:
        gate = ConcurrencyGate(2)
        await gate.acquire()
        await gate.acquire()
        assert gate.in_flight == 2
        assert gate.waiting == 0

    @pytest.mark.asyncio
    async def test_waiters_are_woken_in_fifo_order(self) -> None:
        gate = ConcurrencyGate(1)
        await gate.acquire()
        admitted: list[str] = []

        async def waiter(name: str) -> None:
            await gate.acquire()
            admitted.append(name)

        tasks = []
        for name in ("a", "b", "c"):
            tasks.append(asyncio.create_task(waiter(name)))
            await asyncio.sleep(0)
        assert gate.waiting == 3

        for _ in range(3):
            gate.release()
            await asyncio.sleep(0)
            await asyncio.sleep(0)
        await asyncio.gather(*tasks)

        assert admitted == ["a", "b", "c"]
        assert gate.in_flight == 1

    @pytest.mark.asyncio
    async def test_newcomer_does_not_barge_ahead_of_waiter(self) -> None:
        gate = ConcurrencyGate(1)
        await gate.acquire()
        order: list[str] = []

        async def take(name: str) -> None:
            await gate.acquire()
            order.append(name)
            gate.release()

        first = asyncio.create_task(take("waiting"))
        await asyncio.sleep(0)
        gate.release()
        second = asyncio.create_task(take("newcomer"))
        await asyncio.gather(first, second)

        assert order == ["waiting", "newcomer"]

    def test_unmatched_release_raises(self) -> None:
        gate = ConcurrencyGate(1)
        with pytest.raises(GateReleaseError):
            gate.release()

    @pytest.mark.asyncio
    async def test_cancelled_waiter_gives_up_its_place(self) -> None:
        gate = ConcurrencyGate(1)
        await gate.acquire()
        task = asyncio.create_task(gate.acquire())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        gate.release()
        assert gate.in_flight == 0
        await asyncio.wait_for(gate.acquire(), timeout=1)
        assert gate.in_flight == 1

    @pytest.mark.asyncio
    async def test_occupancy_never_exceeds_limit(self) -> None:
        gate = ConcurrencyGate(3)
        current = 0
        peak = 0

        async def work(i: int) -> None:
            nonlocal current, peak
            async with gate.slot():
                current += 1
                peak = max(peak, current)
                await asyncio.sleep(0.001 * (i % 4))
                current -= 1

        await asyncio.gather(*(work(i) for i in range(20)))

        assert peak == 3
        assert gate.high_water == 3
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_slot_releases_on_error(self) -> None:
        gate = ConcurrencyGate(1)
        with pytest.raises(RuntimeError):
            async with gate.slot():
                raise RuntimeError("boom")
        assert gate.in_flight == 0
