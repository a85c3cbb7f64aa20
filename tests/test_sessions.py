"""Tests for the session lifecycle manager."""

import asyncio

import pytest

from conftest import EngineFactoryStub, FakeEngine
from core.domain.errors import EngineBusyError, EngineStartError
from core.services.sessions import SessionManager


class TestEngineLifecycle:
    """The shared engine is started lazily and at most once."""

    @pytest.mark.asyncio
    async def test_engine_not_started_until_needed(self) -> None:
        factory = EngineFactoryStub()
        manager = SessionManager(factory)

        assert not manager.started
        await manager.shutdown()

        assert factory.calls == 0
        assert factory.engine.close_calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_first_use_starts_engine_once(self) -> None:
        factory = EngineFactoryStub()
        manager = SessionManager(factory)

        async def use() -> None:
            async with manager.session():
                await asyncio.sleep(0)

        await asyncio.gather(*(use() for _ in range(5)))

        assert factory.calls == 1
        assert manager.engine_starts == 1
        assert manager.sessions_opened == 5
        assert manager.sessions_closed == 5

    @pytest.mark.asyncio
    async def test_start_failure_is_remembered(self) -> None:
        factory = EngineFactoryStub(error=RuntimeError("chrome not found"))
        manager = SessionManager(factory)

        for _ in range(2):
            with pytest.raises(EngineStartError, match="chrome not found"):
                async with manager.session():
                    pass

        assert factory.calls == 1

    @pytest.mark.asyncio
    async def test_shutdown_closes_engine_exactly_once(self) -> None:
        factory = EngineFactoryStub()
        manager = SessionManager(factory)
        async with manager.session():
            pass

        await manager.shutdown()
        await manager.shutdown()

        assert factory.engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_shutdown_refuses_while_session_open(self) -> None:
        manager = SessionManager(EngineFactoryStub())

        async with manager.session():
            with pytest.raises(EngineBusyError):
                await manager.shutdown()

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_no_sessions_after_shutdown(self) -> None:
        manager = SessionManager(EngineFactoryStub())
        async with manager.session():
            pass
        await manager.shutdown()

        with pytest.raises(EngineStartError):
            async with manager.session():
                pass


class TestSessionScope:
    """Sessions are closed on every exit path."""

    @pytest.mark.asyncio
    async def test_session_closed_when_block_raises(self) -> None:
        engine = FakeEngine()
        manager = SessionManager(EngineFactoryStub(engine))

        with pytest.raises(ValueError):
            async with manager.session():
                raise ValueError("boom")

        assert engine.closed == 1
        assert manager.open_sessions == 0

    @pytest.mark.asyncio
    async def test_close_failure_is_swallowed(self) -> None:
        engine = FakeEngine()
        manager = SessionManager(EngineFactoryStub(engine))

        async with manager.session() as session:
            async def broken_close() -> None:
                raise RuntimeError("context already closed")

            session.close = broken_close

        assert manager.sessions_closed == 1
        assert manager.open_sessions == 0

    @pytest.mark.asyncio
    async def test_sessions_are_distinct(self) -> None:
        manager = SessionManager(EngineFactoryStub())

        async with manager.session() as first, manager.session() as second:
            assert first is not second
            assert manager.open_sessions == 2
            assert manager.max_open_sessions == 2
