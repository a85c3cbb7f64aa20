"""Session lifecycle: one shared engine per batch, one isolated session per attempt."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from core.domain.errors import EngineBusyError, EngineStartError
from core.interfaces.portal import AutomationEngine, EngineFactory, PortalSession

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the engine's lifetime for one batch.

    - The engine is started lazily, at most once, on the first `session()`.
    - A start failure is remembered and re-raised to every later caller.
    - `shutdown()` closes the engine at most once and never while a session
      is still open.
    """

    def __init__(self, engine_factory: EngineFactory) -> None:
        self._engine_factory = engine_factory
        self._engine: AutomationEngine | None = None
        self._start_error: EngineStartError | None = None
        self._start_lock = asyncio.Lock()
        self._closed = False

        self.engine_starts = 0
        self.sessions_opened = 0
        self.sessions_closed = 0
        self.max_open_sessions = 0

    @property
    def open_sessions(self) -> int:
        return self.sessions_opened - self.sessions_closed

    @property
    def started(self) -> bool:
        return self._engine is not None

    async def engine(self) -> AutomationEngine:
        """Return the shared engine, starting it on first use."""

        if self._engine is not None:
            return self._engine
        async with self._start_lock:
            if self._start_error is not None:
                raise self._start_error
            if self._closed:
                raise EngineStartError("session manager already shut down")
            if self._engine is None:
                self.engine_starts += 1
                logger.info("Starting automation engine")
                try:
                    self._engine = await self._engine_factory()
                except Exception as exc:
                    logger.exception("Automation engine failed to start")
                    self._start_error = EngineStartError(str(exc) or type(exc).__name__)
                    raise self._start_error from exc
            return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[PortalSession]:
        """Open a fresh isolated session; it is closed on every exit path."""

        engine = await self.engine()
        portal_session = await engine.open_session()
        self.sessions_opened += 1
        self.max_open_sessions = max(self.max_open_sessions, self.open_sessions)
        try:
            yield portal_session
        finally:
            try:
                await portal_session.close()
            except Exception as exc:
                logger.warning("Failed to close session cleanly: %s", exc)
            self.sessions_closed += 1

    async def shutdown(self) -> None:
        """Close the shared engine (no-op if it never started or is already closed)."""

        if self._closed:
            return
        if self.open_sessions:
            raise EngineBusyError(f"{self.open_sessions} session(s) still open")
        self._closed = True
        engine, self._engine = self._engine, None
        if engine is None:
            return
        logger.info("Closing automation engine")
        try:
            await engine.close()
        except Exception as exc:
            logger.warning("Automation engine did not close cleanly: %s", exc)
