"""Completion-order fan-in.

Each job runs as its own task and, when it settles, pushes its outcome onto
one shared queue. The consumer reads that queue exactly N times, so results
come out in the order the jobs finish, not the order they were submitted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Generic, Iterable, TypeVar

T = TypeVar("T")


@dataclass
class _Settled(Generic[T]):
    value: T | None = None
    error: BaseException | None = None


async def iter_completed(jobs: Iterable[Awaitable[T]]) -> AsyncIterator[T]:
    """Yield each job's value as soon as it is available.

    The sequence has exactly one item per job and ends once every job has
    settled. A job that raises re-raises at its completion slot. If the
    consumer stops early, the jobs still running are cancelled.
    """

    channel: asyncio.Queue[_Settled[T]] = asyncio.Queue()

    async def settle(job: Awaitable[T]) -> None:
        try:
            value = await job
        except Exception as exc:
            channel.put_nowait(_Settled(error=exc))
        else:
            channel.put_nowait(_Settled(value=value))

    tasks = [asyncio.ensure_future(settle(job)) for job in jobs]
    try:
        for _ in range(len(tasks)):
            settled = await channel.get()
            if settled.error is not None:
                raise settled.error
            yield settled.value  # type: ignore[misc]
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
