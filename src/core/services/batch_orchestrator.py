"""Batch orchestration.

This module wires the gate, the session manager, the executor and the
completion multiplexer for one batch. Entry points (CLI, queue consumer,
tests) call `BatchOrchestrator.process_batch` and consume results as they
finish; printing and persistence stay with the caller.
"""

from __future__ import annotations

import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator, Iterable

from core.config import AppSettings
from core.domain.models import BatchSummary, DriverQuery, QueryResult
from core.interfaces.portal import EngineFactory
from core.services.diagnostics import DiagnosticCapturer
from core.services.executor import QueryExecutor
from core.services.gate import ConcurrencyGate
from core.services.multiplexer import iter_completed
from core.services.sessions import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class BatchRun:
    """Transient state of one `process_batch` call."""

    gate: ConcurrencyGate
    sessions: SessionManager
    executor: QueryExecutor
    total: int
    emitted: int = 0
    succeeded: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def record(self, result: QueryResult) -> None:
        self.emitted += 1
        if result.success:
            self.succeeded += 1

    def summary(self) -> BatchSummary:
        return BatchSummary(
            total=self.total,
            succeeded=self.succeeded,
            failed=self.emitted - self.succeeded,
            duration_seconds=time.monotonic() - self.started_at,
            max_open_sessions=self.sessions.max_open_sessions,
        )


class BatchOrchestrator:
    """Runs batches of driver queries against one engine per batch.

    Usage:
        orchestrator = BatchOrchestrator(settings=settings, engine_factory=launch)
        async for result in orchestrator.process_batch(queries):
            ...
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        engine_factory: EngineFactory,
        capturer: DiagnosticCapturer | None = None,
    ) -> None:
        self._settings = settings
        self._engine_factory = engine_factory
        self._capturer = capturer
        self.last_run: BatchRun | None = None

    @property
    def last_summary(self) -> BatchSummary | None:
        return self.last_run.summary() if self.last_run else None

    def _new_run(self, total: int) -> BatchRun:
        sessions = SessionManager(self._engine_factory)
        return BatchRun(
            gate=ConcurrencyGate(self._settings.max_concurrency),
            sessions=sessions,
            executor=QueryExecutor(sessions=sessions, settings=self._settings, capturer=self._capturer),
            total=total,
        )

    async def process_batch(self, queries: Iterable[DriverQuery]) -> AsyncIterator[QueryResult]:
        """Yield one `QueryResult` per query, in completion order."""

        batch = list(queries)
        run = self._new_run(len(batch))
        self.last_run = run
        logger.info(
            "Starting batch of %d queries (concurrency=%d, attempts=%d)",
            len(batch),
            run.gate.max_slots,
            run.executor.max_attempts,
        )

        results = iter_completed(self._process_one(run, query) for query in batch)
        try:
            async with aclosing(results):
                async for result in results:
                    run.record(result)
                    yield result
        finally:
            await run.sessions.shutdown()
            summary = run.summary()
            logger.info(
                "Batch finished: %d/%d emitted, %d succeeded, %d failed in %.1fs",
                run.emitted,
                summary.total,
                summary.succeeded,
                summary.failed,
                summary.duration_seconds,
            )

    async def _process_one(self, run: BatchRun, query: DriverQuery) -> QueryResult:
        try:
            async with run.gate.slot():
                return await run.executor.run(query)
        except Exception as exc:
            logger.exception("Unexpected error processing CPF %s", query.label)
            return QueryResult.failed(query, str(exc) or type(exc).__name__)
