"""Per-query retry state machine.

States, in order:

    Validating -> Navigating -> Submitting -> AwaitingOutcome
        -> ExtractingData -> Success
        -> RetryableFailure -> (next attempt) | TerminalFailure

Each attempt gets a brand-new session. The loop is bounded by
`max_attempts`, with a fixed pause between attempts.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from core.config import AppSettings
from core.domain.errors import (
    EngineStartError,
    QueryValidationError,
    RemoteRejection,
    TransientInfrastructureError,
)
from core.domain.models import (
    Attempt,
    AttemptOutcome,
    AttemptStatus,
    DriverQuery,
    FailureKind,
    QueryResult,
)
from core.interfaces.portal import PortalSession
from core.services.diagnostics import DiagnosticCapturer
from core.services.record_parser import parse_record
from core.services.sessions import SessionManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_REJECTION = "Unknown error"


class Signal(str, Enum):
    SUCCESS = "success"
    REJECTION = "rejection"


async def race_signals(session: PortalSession, *, timeout: float) -> Signal:
    """Wait for whichever of the success page or the error banner shows first.

    The first waiter to settle decides; if it settled with an exception (a
    timeout, a closed page) that exception propagates. The loser is cancelled.
    """

    waiters = {
        asyncio.ensure_future(asyncio.wait_for(session.wait_for_success(), timeout)): Signal.SUCCESS,
        asyncio.ensure_future(asyncio.wait_for(session.wait_for_rejection(), timeout)): Signal.REJECTION,
    }
    try:
        done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in waiters:
            if not task.done():
                task.cancel()
        await asyncio.gather(*waiters, return_exceptions=True)

    # Both may finish in the same loop iteration; success wins the tie.
    ordered = sorted(done, key=lambda task: waiters[task] is not Signal.SUCCESS)
    first = ordered[0]
    first.result()
    return waiters[first]


class QueryExecutor:
    """Drives one query through its attempts and folds them into a `QueryResult`."""

    def __init__(
        self,
        *,
        sessions: SessionManager,
        settings: AppSettings,
        capturer: DiagnosticCapturer | None = None,
    ) -> None:
        self._sessions = sessions
        self._max_attempts = settings.max_attempts
        self._retry_delay = settings.retry_delay_seconds
        self._step_timeout = settings.step_timeout_seconds
        self._capturer = capturer or DiagnosticCapturer(
            policy=settings.capture_policy,
            screenshot_dir=settings.screenshot_dir,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @staticmethod
    def validate(query: DriverQuery) -> None:
        missing = query.missing_fields()
        if missing:
            raise QueryValidationError(missing)

    async def run(self, query: DriverQuery) -> QueryResult:
        try:
            self.validate(query)
        except QueryValidationError as exc:
            logger.warning("Skipping query %s: %s", query.label, exc)
            return QueryResult.failed(query, str(exc))

        # is_terminal() holds once sequence reaches max_attempts.
        sequence = 0
        while True:
            sequence += 1
            logger.info("Attempt %d/%d for CPF %s", sequence, self._max_attempts, query.label)
            attempt, capture = await self._attempt(query, sequence)
            if attempt.is_terminal(self._max_attempts):
                return self._fold(query, attempt, capture)
            logger.warning(
                "Retrying CPF %s (%s): %s",
                query.label,
                attempt.outcome.kind.value if attempt.outcome.kind else "error",
                attempt.outcome.message,
            )
            await asyncio.sleep(self._retry_delay)

    async def _attempt(self, query: DriverQuery, sequence: int) -> tuple[Attempt, str | None]:
        """Run one attempt inside its own session scope.

        The diagnostic hook runs here, before the session closes, exactly when
        the attempt is the query's last.
        """

        try:
            async with self._sessions.session() as session:
                attempt = Attempt(sequence, await self._drive(session, query))
                capture = None
                if attempt.is_terminal(self._max_attempts) and self._capturer.wants(attempt):
                    capture = await self._capturer.capture(session, query, attempt)
                return attempt, capture
        except EngineStartError as exc:
            outcome = AttemptOutcome.fail(FailureKind.ENGINE_START, f"automation engine failed to start: {exc}")
            return Attempt(sequence, outcome), None
        except Exception as exc:
            # Opening the session itself failed; there is nothing to capture.
            logger.error("Attempt %d for CPF %s could not open a session: %s", sequence, query.label, exc)
            outcome = AttemptOutcome.retry(FailureKind.TRANSIENT, _describe(exc))
            return Attempt(sequence, outcome), None

    async def _drive(self, session: PortalSession, query: DriverQuery) -> AttemptOutcome:
        try:
            await self._step(session.navigate)
            await self._step(lambda: session.submit(query))
            signal = await race_signals(session, timeout=self._step_timeout)
            if signal is Signal.REJECTION:
                raise RemoteRejection(await self._rejection_message(session))
            rows = await self._step(session.result_rows)
        except RemoteRejection as exc:
            return AttemptOutcome.retry(FailureKind.REMOTE_REJECTION, f"Driver not found / error: {exc}")
        except Exception as exc:
            logger.error("Attempt error for CPF %s: %s", query.label, _describe(exc))
            return AttemptOutcome.retry(FailureKind.TRANSIENT, _describe(exc))

        logger.info("Result page loaded for CPF %s", query.label)
        return AttemptOutcome.success(parse_record(rows))

    async def _step(self, action: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(action(), self._step_timeout)
        except asyncio.TimeoutError as exc:
            raise TransientInfrastructureError(f"step timed out after {self._step_timeout:g}s") from exc

    async def _rejection_message(self, session: PortalSession) -> str:
        try:
            message = await self._step(session.rejection_message)
        except Exception:
            return UNKNOWN_REJECTION
        return message.strip() or UNKNOWN_REJECTION

    def _fold(self, query: DriverQuery, attempt: Attempt, capture: str | None) -> QueryResult:
        outcome = attempt.outcome
        if outcome.status is AttemptStatus.SUCCESS and outcome.record is not None:
            logger.info("CPF %s succeeded after %d attempt(s)", query.label, attempt.sequence)
            return QueryResult.succeeded(query, outcome.record, capture=capture)

        message = outcome.message or "Unknown failure querying driver"
        logger.warning("CPF %s failed after %d attempt(s): %s", query.label, attempt.sequence, message)
        return QueryResult.failed(query, message, capture=capture)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out waiting for the portal"
    return str(exc) or type(exc).__name__
