"""Tests for ContextBuilder history and window rendering."""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import CHAT_ID, FakeClient, make_event

from chatpilot.agent.context import ContextBuilder
from chatpilot.agent.media import NormalizedInput
from chatpilot.bus.events import Media
from chatpilot.config.schema import Config, LimitsConfig
from chatpilot.session.history import ConversationMessage, HistoryStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _message(i: int, flow: str = "inbound", body: str | None = None) -> ConversationMessage:
    return ConversationMessage(
        id=f"m{i}",
        flow=flow,
        role="user" if flow == "inbound" else "assistant",
        body=f"message {i}" if body is None else body,
        date=T0 + timedelta(minutes=i),
    )


def _builder(config: Config | None = None, client: FakeClient | None = None) -> ContextBuilder:
    return ContextBuilder(config or Config(), HistoryStore(), client or FakeClient())


@pytest.mark.asyncio
async def test_backfill_runs_once_per_chat() -> None:
    client = FakeClient(history={CHAT_ID: [
        {"id": "p1", "flow": "inbound", "body": "hi", "date": "2024-01-01T09:00:00Z"},
        {"id": "p2", "flow": "outbound", "body": "hello!", "date": "2024-01-01T09:01:00Z"},
    ]})
    builder = _builder(client=client)
    event = make_event()

    await builder.ensure_history(event)
    await builder.ensure_history(event)

    assert client.fetch_calls == [(CHAT_ID, 25)]
    window = await builder.build_window(event)
    assert window == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello!"},
    ]


@pytest.mark.asyncio
async def test_backfill_failure_still_marks_chat() -> None:
    class BrokenClient(FakeClient):
        async def fetch_recent_messages(self, device_id, chat_id, limit=25):
            from chatpilot.errors import PlatformError
            self.fetch_calls.append((chat_id, limit))
            raise PlatformError("boom", status=500)

    client = BrokenClient()
    builder = _builder(client=client)
    await builder.ensure_history(make_event())
    await builder.ensure_history(make_event())
    assert len(client.fetch_calls) == 1
    assert builder.history.is_backfilled(CHAT_ID)


@pytest.mark.asyncio
async def test_window_scans_then_keeps_last_entries() -> None:
    config = Config(limits=LimitsConfig(chat_history_limit=3, chat_history_limit_scan=5))
    builder = _builder(config)
    for i in range(10):
        builder.history.add(CHAT_ID, _message(i, "inbound" if i % 2 else "outbound"))

    window = await builder.build_window(make_event())

    assert [m["content"] for m in window] == ["message 7", "message 8", "message 9"]
    assert [m["role"] for m in window] == ["user", "assistant", "user"]


@pytest.mark.asyncio
async def test_window_drops_empty_messages_after_scan() -> None:
    config = Config(limits=LimitsConfig(chat_history_limit=10, chat_history_limit_scan=3))
    builder = _builder(config)
    builder.history.add(CHAT_ID, _message(1))
    builder.history.add(CHAT_ID, _message(2, body=""))
    builder.history.add(CHAT_ID, _message(3))
    builder.history.add(CHAT_ID, _message(4, body=""))

    window = await builder.build_window(make_event())
    # Only the last three are scanned, two of them are empty
    assert window == [{"role": "user", "content": "message 3"}]


@pytest.mark.asyncio
async def test_window_is_chronological_regardless_of_insertion_order() -> None:
    builder = _builder()
    for i in (3, 1, 2):
        builder.history.add(CHAT_ID, _message(i))
    window = await builder.build_window(make_event())
    assert [m["content"] for m in window] == ["message 1", "message 2", "message 3"]


def test_current_turn_is_not_duplicated() -> None:
    builder = _builder()
    window = [{"role": "assistant", "content": "Hello"}, {"role": "user", "content": "prices?"}]

    messages = builder.build_messages(window, "prices?")
    assert [m["role"] for m in messages] == ["system", "assistant", "user"]

    messages = builder.build_messages(window[:1], "prices?")
    assert messages[-1] == {"role": "user", "content": "prices?"}


def test_knowledge_follows_user_turn() -> None:
    builder = _builder()
    messages = builder.build_messages([], "prices?", knowledge="Plans start at 30 USD")
    assert messages[0]["content"] == Config().messages.bot_instructions
    assert messages[-2] == {"role": "user", "content": "prices?"}
    assert messages[-1] == {"role": "system", "content": "Plans start at 30 USD"}


@pytest.mark.asyncio
async def test_inbound_image_is_multimodal_and_downloaded_once() -> None:
    client = FakeClient(media={"img-1": b"\x89PNG"})
    builder = _builder(client=client)
    media = Media(id="img-1", type="image", mime="image/png", size=4)
    event = make_event("", msg_type="image", media={"id": "img-1", "mime": "image/png", "size": 4})

    recorded = builder.record_inbound(event, NormalizedInput(body="", image=media))
    window = await builder.build_window(event)
    current = await builder.build_user_content(event, recorded)

    assert client.downloads == ["img-1"]
    assert window[-1]["content"] == current
    assert current[0]["type"] == "image_url"
    assert current[0]["image_url"]["url"].startswith("data:image/png;base64,")
    assert builder.build_messages(window, current)[-1]["content"] == current


@pytest.mark.asyncio
async def test_images_disabled_render_as_text() -> None:
    config = Config()
    config.features.image_input = False
    client = FakeClient(media={"img-1": b"\x89PNG"})
    builder = _builder(config, client)
    message = ConversationMessage(
        id="m1", flow="inbound", role="user", body="see attached", date=T0, type="image",
        media=Media(id="img-1", type="image", size=4),
    )
    builder.history.add(CHAT_ID, message)

    window = await builder.build_window(make_event())
    assert window == [{"role": "user", "content": "see attached"}]
    assert client.downloads == []


@pytest.mark.asyncio
async def test_outbound_records_round_trip() -> None:
    builder = _builder()
    event = make_event("hi there")
    builder.record_inbound(event, NormalizedInput(body="hi there"))
    builder.record_outbound(CHAT_ID, "Hello! How can I help?", message_id="out-1")

    window = await builder.build_window(event)
    assert window[-1] == {"role": "assistant", "content": "Hello! How can I help?"}
    assert builder.history.size(CHAT_ID) == 2
