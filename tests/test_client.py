"""Tests for WassengerClient against a mocked HTTP transport."""

import json

import httpx
import pytest

from chatpilot.errors import PlatformError
from chatpilot.integrations.wassenger import WassengerClient


def _client(handler) -> WassengerClient:
    return WassengerClient(
        api_key="k" * 64,
        api_url="https://api.test/v1",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_send_message_retries_then_gives_up() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(json.loads(request.content))
        return httpx.Response(500, json={"message": "unavailable"})

    client = _client(handler)
    assert await client.send_message("+447700900001", "dev-1", message="hi") is None
    assert len(attempts) == 3
    assert attempts[0] == {"phone": "+447700900001", "device": "dev-1", "enqueue": "never", "message": "hi"}
    await client.aclose()


@pytest.mark.asyncio
async def test_send_message_succeeds_on_retry() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(502)
        return httpx.Response(201, json={"id": "msg-1", "status": "queued"})

    client = _client(handler)
    sent = await client.send_message("+447700900001", "dev-1", media={"url": "https://x/f.mp3", "format": "ptt"})
    assert sent == {"id": "msg-1", "status": "queued"}
    assert len(attempts) == 2
    assert attempts[0].headers["Authorization"] == "k" * 64
    await client.aclose()


@pytest.mark.asyncio
async def test_team_members_are_cached() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json=[{"id": "a" * 24, "status": "active"}])

    client = _client(handler)
    first = await client.list_team_members("dev-1")
    second = await client.list_team_members("dev-1")
    await client.list_team_members("dev-1", force=True)

    assert first == second
    assert calls == ["/v1/devices/dev-1/team", "/v1/devices/dev-1/team"]
    await client.aclose()


@pytest.mark.asyncio
async def test_request_errors_raise_platform_error() -> None:
    client = _client(lambda request: httpx.Response(404, json={"message": "chat not found"}))
    with pytest.raises(PlatformError) as exc:
        await client.patch_chat_owner("dev-1", "c1", "a" * 24)
    assert exc.value.status == 404
    assert exc.value.body == {"message": "chat not found"}
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_recent_messages_query() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"id": "m1", "flow": "inbound", "body": "hi"}])

    client = _client(handler)
    messages = await client.fetch_recent_messages("dev-1", "c1@c.us", limit=25)
    assert messages == [{"id": "m1", "flow": "inbound", "body": "hi"}]
    assert seen == {"path": "/v1/chat/dev-1/messages/", "params": {"chat": "c1@c.us", "limit": "25"}}
    await client.aclose()


@pytest.mark.asyncio
async def test_ensure_labels_creates_only_missing() -> None:
    created = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            body = json.loads(request.content)
            created.append(body)
            return httpx.Response(201, json={"name": body["name"]})
        return httpx.Response(200, json=[{"name": "bot"}])

    client = _client(handler)
    result = await client.ensure_labels("dev-1", ["from-bot", "bot"])
    assert result == ["from-bot"]
    assert [c["name"] for c in created] == ["from-bot"]
    assert created[0]["color"]
    await client.aclose()


@pytest.mark.asyncio
async def test_register_webhook_reuses_active_endpoint() -> None:
    methods = []
    existing = {
        "id": "wh-1",
        "url": "https://bot.example.com/webhook",
        "device": "dev-1",
        "status": "active",
        "events": ["message:in:new"],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200, json=[existing])

    client = _client(handler)
    webhook = await client.register_webhook("https://bot.example.com/", "dev-1")
    assert webhook["id"] == "wh-1"
    assert methods == ["GET"]
    await client.aclose()


@pytest.mark.asyncio
async def test_load_device_prefers_configured_id() -> None:
    devices = [
        {"id": "dev-1", "status": "disabled"},
        {"id": "dev-2", "status": "operative"},
    ]
    client = _client(lambda request: httpx.Response(200, json=devices))
    assert (await client.load_device())["id"] == "dev-2"
    assert (await client.load_device("dev-1"))["id"] == "dev-1"
    assert await client.load_device("dev-9") is None
    await client.aclose()
