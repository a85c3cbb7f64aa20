"""Tests for the portal reachability check."""

import httpx
import pytest

from adapters.http_client import check_reachable
from core.config import AppSettings


def transport_returning(status: int) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status, text="ok"))


class TestCheckReachable:
    @pytest.mark.asyncio
    async def test_ok_response(self) -> None:
        ok, detail = await check_reachable(
            "https://portal.test/", settings=AppSettings(_env_file=None), transport=transport_returning(200)
        )
        assert ok is True
        assert detail == "HTTP 200"

    @pytest.mark.asyncio
    async def test_server_error_is_unreachable(self) -> None:
        ok, detail = await check_reachable(
            "https://portal.test/", settings=AppSettings(_env_file=None), transport=transport_returning(503)
        )
        assert ok is False
        assert detail == "HTTP 503"

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        ok, detail = await check_reachable(
            "https://portal.test/", settings=AppSettings(_env_file=None), transport=httpx.MockTransport(refuse)
        )
        assert ok is False
        assert "connection refused" in detail
