"""Shared fixtures: scripted portal doubles and fast settings."""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict, deque
from dataclasses import dataclass, field

import pytest

from core.config import AppSettings
from core.domain.models import DriverQuery

EXPIRY_LABEL = "Prazo para realização de novo exame"
COLLECTION_LABEL = "Amostra para novo exame coletada em"

DEFAULT_ROWS = {
    EXPIRY_LABEL: "15/03/2025",
    COLLECTION_LABEL: "Não há registro de coleta",
}

FAKE_SCREENSHOT = "aW1hZ2U="  # base64("image")


@dataclass
class Step:
    """What one attempt does once the form is submitted.

    kind: "success" | "reject" | "error" | "hang"
    """

    kind: str = "success"
    delay: float = 0.0
    message: str = ""
    rows: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ROWS))


async def _forever() -> None:
    await asyncio.Event().wait()


class FakeSession:
    def __init__(self, engine: "FakeEngine", session_id: int) -> None:
        self.engine = engine
        self.session_id = session_id
        self.step = Step()
        self.closed = False

    async def navigate(self) -> None:
        await asyncio.sleep(0)

    async def submit(self, query: DriverQuery) -> None:
        self.engine.events.append(("submit", self.session_id, query.label))
        self.step = self.engine.next_step(query.label)
        if self.step.delay:
            await asyncio.sleep(self.step.delay)
        if self.step.kind == "error":
            raise RuntimeError(self.step.message or "net::ERR_CONNECTION_RESET")
        if self.step.kind == "hang":
            await _forever()

    async def wait_for_success(self) -> None:
        if self.step.kind != "success":
            await _forever()

    async def wait_for_rejection(self) -> None:
        if self.step.kind != "reject":
            await _forever()

    async def rejection_message(self) -> str:
        return self.step.message

    async def result_rows(self) -> dict[str, str]:
        return dict(self.step.rows)

    async def screenshot_base64(self) -> str:
        if self.engine.capture_fails:
            raise RuntimeError("Target page, context or browser has been closed")
        return FAKE_SCREENSHOT

    async def close(self) -> None:
        assert not self.closed, "session closed twice"
        self.closed = True
        self.engine.open_now -= 1
        self.engine.closed += 1
        self.engine.events.append(("close", self.session_id, None))


class FakeEngine:
    """Scripted engine: per-CPF queues of `Step`, default success."""

    def __init__(self, scripts: dict[str, list[Step]] | None = None, *, capture_fails: bool = False) -> None:
        self.scripts: dict[str, deque[Step]] = defaultdict(deque)
        for cpf, steps in (scripts or {}).items():
            self.scripts[cpf].extend(steps)
        self.capture_fails = capture_fails
        self.ids = itertools.count(1)
        self.events: list[tuple[str, int, str | None]] = []
        self.opened = 0
        self.closed = 0
        self.open_now = 0
        self.max_open = 0
        self.close_calls = 0

    def next_step(self, cpf: str) -> Step:
        queue = self.scripts[cpf]
        return queue.popleft() if queue else Step()

    async def open_session(self) -> FakeSession:
        await asyncio.sleep(0)
        session = FakeSession(self, next(self.ids))
        self.opened += 1
        self.open_now += 1
        self.max_open = max(self.max_open, self.open_now)
        self.events.append(("open", session.session_id, None))
        return session

    async def close(self) -> None:
        assert self.open_now == 0, "engine closed with open sessions"
        self.close_calls += 1


class EngineFactoryStub:
    """Zero-argument async factory that counts launches."""

    def __init__(self, engine: FakeEngine | None = None, *, error: Exception | None = None) -> None:
        self.engine = engine or FakeEngine()
        self.error = error
        self.calls = 0

    async def __call__(self) -> FakeEngine:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.engine


def make_query(key: str, **overrides: object) -> DriverQuery:
    """Query for CPF `key`; an override of None drops that input key."""

    data: dict[str, object] = {
        "id": f"id-{key}",
        "cpf": key,
        "birthday": "01/02/1980",
        "cnh_due_at": "10/10/2030",
    }
    data.update(overrides)
    return DriverQuery.model_validate({k: v for k, v in data.items() if v is not None})


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        _env_file=None,
        max_concurrency=2,
        max_attempts=3,
        retry_delay_seconds=0,
        step_timeout_seconds=1,
    )
