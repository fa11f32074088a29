"""Tests for DevicePoller: fetch, expiry recovery, and payload validation."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

import httpx
import pytest
import pytest_asyncio

from btmon.api.client import DeviceSession
from btmon.api.errors import AuthError, ProtocolError, SessionExpiredError, TransportError
from btmon.models.config import Endpoint
from btmon.telemetry.poller import RECORD_NAME, DevicePoller

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pytest_httpx import HTTPXMock

BASE = "http://bt1.local"
LOGIN_URL = f"{BASE}/cgi-bin/postauth.cgi"
MONITOR_URL = f"{BASE}/cgi-bin/getexchanger_monitor.cgi"

PAYLOAD = {"values": {"T101": 1, "TempValue01": "68 *F", "M105": 1, "MeterValue05": 42}}


def _login_ok(httpx_mock: HTTPXMock, token: str = "old") -> None:
    httpx_mock.add_response(url=LOGIN_URL, method="POST", headers={"set-cookie": f"SID={token}"})


@pytest_asyncio.fixture
async def poller(httpx_mock: HTTPXMock) -> AsyncIterator[DevicePoller]:
    _login_ok(httpx_mock)
    session = DeviceSession(
        Endpoint(url=f"{BASE}/", user="admin", password="pw"), rng=random.Random(1)
    )
    await session.login()
    yield DevicePoller(session)
    await session.aclose()


class TestPollSuccess:
    @pytest.mark.asyncio
    async def test_decodes_values(self, httpx_mock: HTTPXMock, poller: DevicePoller) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", json=PAYLOAD)

        record = await poller.poll()

        assert record.name == RECORD_NAME
        assert record.fields == {"temp_1": 68, "meter_5": 42}
        assert record.tags == {"server": f"{BASE}/"}

    @pytest.mark.asyncio
    async def test_sends_session_cookie(
        self, httpx_mock: HTTPXMock, poller: DevicePoller
    ) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", json=PAYLOAD)
        await poller.poll()
        assert httpx_mock.get_requests(url=MONITOR_URL)[0].headers["cookie"] == "SID=old"

    @pytest.mark.asyncio
    async def test_empty_values(self, httpx_mock: HTTPXMock, poller: DevicePoller) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", json={"values": {}})
        record = await poller.poll()
        assert record.fields == {}


class TestSessionExpiry:
    @pytest.mark.asyncio
    async def test_206_relogs_in_once_and_fails_cycle(
        self, httpx_mock: HTTPXMock, poller: DevicePoller
    ) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", status_code=206)
        _login_ok(httpx_mock, token="new")

        with pytest.raises(SessionExpiredError) as exc_info:
            await poller.poll()

        assert exc_info.value.status_code == 206
        assert poller.session.token == ("SID", "new")
        assert len(httpx_mock.get_requests(url=LOGIN_URL)) == 2

    @pytest.mark.asyncio
    async def test_next_poll_uses_new_token(
        self, httpx_mock: HTTPXMock, poller: DevicePoller
    ) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", status_code=206)
        _login_ok(httpx_mock, token="new")
        httpx_mock.add_response(url=MONITOR_URL, method="GET", json=PAYLOAD)

        with pytest.raises(SessionExpiredError):
            await poller.poll()
        record = await poller.poll()

        assert record.fields == {"temp_1": 68, "meter_5": 42}
        monitor_requests = httpx_mock.get_requests(url=MONITOR_URL)
        assert [r.headers["cookie"] for r in monitor_requests] == ["SID=old", "SID=new"]
        assert len(httpx_mock.get_requests(url=LOGIN_URL)) == 2

    @pytest.mark.asyncio
    async def test_failed_relogin_propagates_auth_error(
        self, httpx_mock: HTTPXMock, poller: DevicePoller
    ) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", status_code=206)
        httpx_mock.add_response(url=LOGIN_URL, method="POST", status_code=403)

        with pytest.raises(AuthError) as exc_info:
            await poller.poll()

        assert exc_info.value.status_code == 403
        assert not poller.session.authenticated
        assert len(httpx_mock.get_requests(url=LOGIN_URL)) == 2

    @pytest.mark.asyncio
    async def test_poll_after_failed_relogin_logs_in_first(
        self, httpx_mock: HTTPXMock, poller: DevicePoller
    ) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", status_code=206)
        httpx_mock.add_response(url=LOGIN_URL, method="POST", status_code=503)
        _login_ok(httpx_mock, token="fresh")
        httpx_mock.add_response(url=MONITOR_URL, method="GET", json=PAYLOAD)

        with pytest.raises(AuthError):
            await poller.poll()
        record = await poller.poll()

        assert record.fields == {"temp_1": 68, "meter_5": 42}
        assert httpx_mock.get_requests(url=MONITOR_URL)[-1].headers["cookie"] == "SID=fresh"

    @pytest.mark.asyncio
    async def test_at_most_one_login_per_poll(
        self, httpx_mock: HTTPXMock, poller: DevicePoller
    ) -> None:
        poller.session.invalidate()
        _login_ok(httpx_mock, token="fresh")
        httpx_mock.add_response(url=MONITOR_URL, method="GET", status_code=206)

        with pytest.raises(SessionExpiredError):
            await poller.poll()

        assert len(httpx_mock.get_requests(url=LOGIN_URL)) == 2
        assert not poller.session.authenticated


class TestPollFailures:
    @pytest.mark.asyncio
    async def test_network_error(self, httpx_mock: HTTPXMock, poller: DevicePoller) -> None:
        httpx_mock.add_exception(httpx.ConnectError("unreachable"), url=MONITOR_URL)
        with pytest.raises(TransportError):
            await poller.poll()
        assert poller.session.token == ("SID", "old")

    @pytest.mark.asyncio
    async def test_other_status_is_protocol_error(
        self, httpx_mock: HTTPXMock, poller: DevicePoller
    ) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", status_code=500)
        with pytest.raises(ProtocolError, match="expected status 200; got 500") as exc_info:
            await poller.poll()
        assert not isinstance(exc_info.value, SessionExpiredError)
        assert len(httpx_mock.get_requests(url=LOGIN_URL)) == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self, httpx_mock: HTTPXMock, poller: DevicePoller) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", text="<html>login</html>")
        with pytest.raises(ProtocolError, match="Invalid JSON"):
            await poller.poll()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"other": {}}, {"values": [1, 2]}, {"values": "x"}, [1]])
    async def test_missing_or_malformed_values(
        self, httpx_mock: HTTPXMock, poller: DevicePoller, body: object
    ) -> None:
        httpx_mock.add_response(url=MONITOR_URL, method="GET", json=body)
        with pytest.raises(ProtocolError):
            await poller.poll()
