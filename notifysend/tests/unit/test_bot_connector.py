from __future__ import annotations

import httpx
import pytest

from notifysend.core.errors import TransportAuthError, TransportError
from notifysend.providers.messaging.base import SendMessageResult
from notifysend.providers.messaging.bot_connector import BotConnectorTransport

_TOKEN_URL = "https://login.example.com/token"
_SERVICE_URL = "https://smba.example.com/emea/"


def _transport(monkeypatch, handler) -> tuple[BotConnectorTransport, list[float]]:  # noqa: ANN001
    monkeypatch.setenv("BOT_APP_ID", "app-id")
    monkeypatch.setenv("BOT_APP_PASSWORD", "app-secret")
    monkeypatch.setenv("BOT_TOKEN_URL", _TOKEN_URL)
    monkeypatch.setenv("SEND_BACKOFF_MS", "10")
    sleeps: list[float] = []

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BotConnectorTransport(client, sleep=_sleep), sleeps


def _token_response() -> httpx.Response:
    return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})


@pytest.mark.asyncio
async def test_success_returns_activity_id_and_posts_to_conversation(monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            return _token_response()
        seen.append(request)
        return httpx.Response(201, json={"id": "activity-1"})

    transport, sleeps = _transport(monkeypatch, handler)
    response = await transport.send(
        {"type": "message"},
        service_url=_SERVICE_URL,
        conversation_id="conv-1",
        max_attempts=3,
    )
    assert response.result_type is SendMessageResult.SUCCEEDED
    assert response.status_code == 201
    assert response.activity_id == "activity-1"
    assert response.status_codes == [201]
    assert response.total_throttles == 0
    assert sleeps == []
    assert seen[0].url.path == "/emea/v3/conversations/conv-1/activities"
    assert seen[0].headers["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_throttle_then_success_counts_throttles(monkeypatch) -> None:
    statuses = iter([429, 429, 201])

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            return _token_response()
        status = next(statuses)
        if status == 429:
            return httpx.Response(429, headers={"Retry-After": "0.5"}, text="throttled")
        return httpx.Response(201, json={"id": "activity-2"})

    transport, sleeps = _transport(monkeypatch, handler)
    response = await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=3)
    assert response.result_type is SendMessageResult.SUCCEEDED
    assert response.total_throttles == 2
    assert response.status_codes == [429, 429, 201]
    assert sleeps == [0.5, 0.5]


@pytest.mark.asyncio
async def test_throttle_exhausting_attempts_reports_throttled(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            return _token_response()
        return httpx.Response(429, text="too many requests")

    transport, _ = _transport(monkeypatch, handler)
    response = await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=2)
    assert response.result_type is SendMessageResult.THROTTLED
    assert response.status_code == 429
    assert response.total_throttles == 2
    assert response.status_codes == [429, 429]
    assert response.error_message == "too many requests"


@pytest.mark.asyncio
async def test_client_error_is_failed_without_retry(monkeypatch) -> None:
    calls = {"send": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            return _token_response()
        calls["send"] += 1
        return httpx.Response(403, text="bot not in conversation roster")

    transport, _ = _transport(monkeypatch, handler)
    response = await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=3)
    assert response.result_type is SendMessageResult.FAILED
    assert response.status_code == 403
    assert response.error_message == "bot not in conversation roster"
    assert calls["send"] == 1


@pytest.mark.asyncio
async def test_network_error_raises_transport_error(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            return _token_response()
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = _transport(monkeypatch, handler)
    with pytest.raises(TransportError):
        await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=2)


@pytest.mark.asyncio
async def test_token_is_cached_and_rejection_raises_auth_error(monkeypatch) -> None:
    token_calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            token_calls["count"] += 1
            return _token_response()
        return httpx.Response(201, json={"id": "a"})

    transport, _ = _transport(monkeypatch, handler)
    await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=1)
    await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=1)
    assert token_calls["count"] == 1

    def rejecting(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid_client"})

    failing, _ = _transport(monkeypatch, rejecting)
    with pytest.raises(TransportAuthError):
        await failing.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=1)


@pytest.mark.asyncio
async def test_timeouts_and_throttles_share_one_attempt_budget(monkeypatch) -> None:
    script = iter(["429", "timeout", "timeout", "429", "timeout", "timeout", "429"])
    posts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            return _token_response()
        posts["count"] += 1
        if next(script) == "timeout":
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(429, headers={"Retry-After": "0"}, text="throttled")

    transport, sleeps = _transport(monkeypatch, handler)
    with pytest.raises(TransportError):
        await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=3)
    assert posts["count"] == 3
    assert len(sleeps) == 2


@pytest.mark.asyncio
async def test_timeout_then_throttle_then_success_within_budget(monkeypatch) -> None:
    script = iter(["timeout", "429", "201"])
    posts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == _TOKEN_URL:
            return _token_response()
        posts["count"] += 1
        step = next(script)
        if step == "timeout":
            raise httpx.ConnectTimeout("timed out", request=request)
        if step == "429":
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(201, json={"id": "activity-3"})

    transport, _ = _transport(monkeypatch, handler)
    response = await transport.send({}, service_url=_SERVICE_URL, conversation_id="c", max_attempts=3)
    assert response.result_type is SendMessageResult.SUCCEEDED
    assert response.status_codes == [429, 201]
    assert response.total_throttles == 1
    assert posts["count"] == 3
