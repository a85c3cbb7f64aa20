"""Tests for completion-order fan-in."""

import asyncio

import pytest

from core.services.multiplexer import iter_completed


async def finish_after(delay: float, value: str, log: list[str] | None = None) -> str:
    await asyncio.sleep(delay)
    if log is not None:
        log.append(value)
    return value


class TestIterCompleted:
    @pytest.mark.asyncio
    async def test_yields_in_completion_order(self) -> None:
        jobs = [finish_after(0.03, "slow"), finish_after(0.0, "fast"), finish_after(0.015, "medium")]

        out = [value async for value in iter_completed(jobs)]

        assert out == ["fast", "medium", "slow"]

    @pytest.mark.asyncio
    async def test_exactly_one_item_per_job(self) -> None:
        jobs = [finish_after(0.001 * (i % 5), f"job-{i}") for i in range(25)]

        out = [value async for value in iter_completed(jobs)]

        assert sorted(out) == sorted(f"job-{i}" for i in range(25))

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        out = [value async for value in iter_completed([])]
        assert out == []

    @pytest.mark.asyncio
    async def test_job_error_surfaces_at_its_slot(self) -> None:
        async def broken() -> str:
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        seen: list[str] = []
        with pytest.raises(RuntimeError, match="boom"):
            async for value in iter_completed([finish_after(0, "first"), broken()]):
                seen.append(value)

        assert seen == ["first"]

    @pytest.mark.asyncio
    async def test_early_exit_cancels_pending_jobs(self) -> None:
        finished: list[str] = []
        results = iter_completed([finish_after(0, "fast", finished), finish_after(10, "slow", finished)])

        first = await results.__anext__()
        await results.aclose()

        assert first == "fast"
        await asyncio.sleep(0)
        assert finished == ["fast"]
