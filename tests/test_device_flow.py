"""Tests for the device authorization client and poller."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from aicli.client import (
    DeviceAuthClient,
    DevicePoller,
    PollState,
    TokenError,
    TokenResponse,
    TokenStore,
)
from aicli.errors import (
    AccessDeniedError,
    DeviceCodeExpiredError,
    DeviceFlowError,
    NetworkError,
)


class ScriptedAuthClient:
    """Returns one scripted token result per request."""

    def __init__(self, results):
        self.results = list(results)
        self.requests = []

    async def request_token(self, device_code):
        self.requests.append(device_code)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeTime:
    """Sleep that advances a fake monotonic clock."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def clock(self):
        return self.now


def pending():
    return TokenError(error="authorization_pending")


def make_poller(results, interval=5, expires_in=None):
    client = ScriptedAuthClient(results)
    fake = FakeTime()
    ticks = []
    poller = DevicePoller(
        client,
        "ABC123",
        interval=interval,
        expires_in=expires_in,
        on_tick=ticks.append,
        sleep=fake.sleep,
        clock=fake.clock,
    )
    return poller, client, fake, ticks


@pytest.mark.asyncio
async def test_slow_down_increases_interval_once():
    """pending, pending, slow_down, granted -> 4 requests, one +5s backoff."""
    granted = TokenResponse(access_token="tok_1", expires_in=3600)
    poller, client, fake, ticks = make_poller(
        [pending(), pending(), TokenError(error="slow_down"), granted]
    )

    token = await poller.poll()

    assert token == granted
    assert len(client.requests) == 4
    assert poller.attempts == 4
    assert poller.interval == 10
    assert fake.sleeps == [5, 5, 5, 10]
    assert ticks == [1, 2, 3, 4]
    assert poller.state is PollState.GRANTED


@pytest.mark.asyncio
async def test_access_denied_is_fatal():
    poller, client, _, _ = make_poller([pending(), TokenError(error="access_denied")])

    with pytest.raises(AccessDeniedError):
        await poller.poll()

    assert poller.state is PollState.DENIED
    assert len(client.requests) == 2


@pytest.mark.asyncio
async def test_expired_token_is_fatal():
    poller, _, _, _ = make_poller([TokenError(error="expired_token")])

    with pytest.raises(DeviceCodeExpiredError):
        await poller.poll()

    assert poller.state is PollState.EXPIRED


@pytest.mark.asyncio
async def test_unknown_error_reports_description():
    poller, _, _, _ = make_poller(
        [TokenError(error="invalid_client", error_description="Unknown client")]
    )

    with pytest.raises(DeviceFlowError, match="Unknown client") as exc_info:
        await poller.poll()

    assert exc_info.value.error == "invalid_client"


@pytest.mark.asyncio
async def test_network_error_is_not_retried():
    poller, client, _, _ = make_poller([NetworkError("connection refused"), pending()])

    with pytest.raises(NetworkError):
        await poller.poll()

    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_client_side_deadline_stops_polling():
    """A server that only ever says pending cannot keep the client forever."""
    poller, client, _, _ = make_poller([pending()] * 100, interval=5, expires_in=12)

    with pytest.raises(DeviceCodeExpiredError):
        await poller.poll()

    # Requests at t=5 and t=10; the wake-up at t=15 is past the deadline
    assert len(client.requests) == 2
    assert poller.state is PollState.EXPIRED


@pytest.mark.asyncio
async def test_login_scenario_stores_fresh_token(tmp_path):
    """Pending twice then granted -> token file holds tok_1, valid for an hour."""
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    poller, _, _, _ = make_poller(
        [pending(), pending(), TokenResponse(access_token="tok_1", expires_in=3600)]
    )
    store = TokenStore(tmp_path / "token.json", clock=lambda: now)

    token = await poller.poll()
    assert store.store(token)

    data = json.loads(store.path.read_text())
    assert data["access_token"] == "tok_1"
    assert store.load().expires_at == now + timedelta(seconds=3600)
    assert store.is_expired() is False


# ---------------------------------------------------------------------------
# Wire client
# ---------------------------------------------------------------------------


def mock_client(handler):
    return DeviceAuthClient(
        "https://auth.example.com/api/auth",
        "cli-client",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_request_device_code():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "device_code": "ABC123",
                "user_code": "WXYZ-1234",
                "verification_uri": "https://auth.example.com/device",
                "expires_in": 1800,
                "interval": 5,
            },
        )

    code = await mock_client(handler).request_device_code()

    assert seen["url"] == "https://auth.example.com/api/auth/device/code"
    assert seen["body"] == {"client_id": "cli-client", "scope": "openid profile email"}
    assert code.device_code == "ABC123"
    assert code.browser_url == "https://auth.example.com/device"


@pytest.mark.asyncio
async def test_request_device_code_error():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_client", "error_description": "bad client"})

    with pytest.raises(DeviceFlowError, match="bad client"):
        await mock_client(handler).request_device_code()


@pytest.mark.asyncio
async def test_request_token_returns_error_bodies_as_data():
    def handler(request):
        body = json.loads(request.content)
        assert body["grant_type"] == "urn:ietf:params:oauth:grant-type:device_code"
        assert body["device_code"] == "ABC123"
        assert body["client_id"] == "cli-client"
        return httpx.Response(400, json={"error": "authorization_pending"})

    result = await mock_client(handler).request_token("ABC123")

    assert isinstance(result, TokenError)
    assert result.error == "authorization_pending"


@pytest.mark.asyncio
async def test_request_token_success():
    def handler(request):
        return httpx.Response(200, json={"access_token": "tok_1", "token_type": "Bearer", "expires_in": 3600})

    result = await mock_client(handler).request_token("ABC123")

    assert isinstance(result, TokenResponse)
    assert result.access_token == "tok_1"
    assert result.expires_in == 3600


@pytest.mark.asyncio
async def test_transport_failure_raises_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        await mock_client(handler).request_token("ABC123")


@pytest.mark.asyncio
async def test_non_json_response():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(DeviceFlowError, match="non-JSON"):
        await mock_client(handler).request_token("ABC123")
