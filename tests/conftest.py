"""Shared fakes and payload builders."""

from __future__ import annotations

import random
from typing import Any

import pytest

from chatpilot.agent.loop import AgentLoop
from chatpilot.bus.events import InboundEvent
from chatpilot.config.schema import Config
from chatpilot.errors import PlatformError
from chatpilot.providers.base import LLMProvider, LLMResponse, ToolCallRequest

DEVICE = {"id": "dev-1", "phone": "+15550000000", "alias": "Support"}
CHAT_ID = "447700900001@c.us"
PHONE = "+447700900001"


class FakeClient:
    """In-memory stand-in for WassengerClient."""

    def __init__(
        self,
        members: list[dict[str, Any]] | None = None,
        history: dict[str, list[dict[str, Any]]] | None = None,
        media: dict[str, bytes] | None = None,
        fail_send: bool = False,
    ) -> None:
        self.members = members or []
        self.history = history or {}
        self.media = media or {}
        self.fail_send = fail_send
        self.sent: list[dict[str, Any]] = []
        self.label_patches: list[tuple[str, list[str]]] = []
        self.metadata_patches: list[tuple[str, list[dict[str, str]]]] = []
        self.owner_patches: list[tuple[str, str]] = []
        self.fetch_calls: list[tuple[str, int]] = []
        self.downloads: list[str] = []
        self.calls: list[str] = []

    async def send_message(self, phone, device_id, message=None, media=None, **fields):
        self.calls.append("send")
        if self.fail_send:
            return None
        self.sent.append({"phone": phone, "device": device_id, "message": message, "media": media})
        return {"id": f"out-{len(self.sent)}", "status": "queued"}

    async def fetch_recent_messages(self, device_id, chat_id, limit=25):
        self.fetch_calls.append((chat_id, limit))
        return list(self.history.get(chat_id, []))

    async def download_media(self, device_id, media_id):
        self.downloads.append(media_id)
        if media_id not in self.media:
            raise PlatformError("media download failed: HTTP 404", status=404)
        return self.media[media_id]

    async def patch_chat_labels(self, device_id, chat_id, labels):
        self.calls.append("labels")
        self.label_patches.append((chat_id, list(labels)))

    async def patch_contact_metadata(self, device_id, chat_id, entries):
        self.calls.append("metadata")
        self.metadata_patches.append((chat_id, list(entries)))

    async def patch_chat_owner(self, device_id, chat_id, agent_id):
        self.calls.append("owner")
        self.owner_patches.append((chat_id, agent_id))

    async def list_team_members(self, device_id, *, force=False):
        return self.members

    async def load_device(self, device_id=""):
        return dict(DEVICE)

    async def aclose(self):
        pass


class FakeProvider(LLMProvider):
    """Replays queued responses; defaults to a plain text answer."""

    def __init__(self, responses: list[LLMResponse] | None = None, default: str = "Sure, happy to help!"):
        super().__init__()
        self.responses = list(responses or [])
        self.default = default
        self.calls: list[dict[str, Any]] = []

    async def chat(self, messages, tools=None, model=None, max_tokens=1000, temperature=0.2, user=None):
        self.calls.append({
            "messages": [dict(m) for m in messages],
            "tools": tools,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "user": user,
        })
        if self.responses:
            return self.responses.pop(0)
        return LLMResponse(content=self.default)

    def get_default_model(self) -> str:
        return "fake-model"


class FakeVoice:
    def __init__(self, transcript: str = "what are your prices", fail_tts: bool = False) -> None:
        self.transcript = transcript
        self.fail_tts = fail_tts
        self.stt_calls: list[str] = []
        self.tts_calls: list[str] = []

    @property
    def available(self) -> bool:
        return True

    async def stt(self, audio: bytes, filename: str = "audio.ogg") -> str:
        self.stt_calls.append(filename)
        return self.transcript

    async def tts(self, text: str, *, voice=None, speed=1.0, response_format="mp3") -> bytes:
        self.tts_calls.append(text)
        if self.fail_tts:
            raise RuntimeError("tts unavailable")
        return b"ID3-fake-mp3"


def tool_call(name: str, arguments: str = "{}", call_id: str = "call-1") -> LLMResponse:
    return LLMResponse(
        content=None,
        tool_calls=[ToolCallRequest(id=call_id, name=name, arguments=arguments)],
        finish_reason="tool_calls",
    )


def make_payload(
    body: str = "What plans do you offer?",
    *,
    msg_type: str = "text",
    msg_id: str = "in-1",
    chat_id: str = CHAT_ID,
    phone: str = PHONE,
    chat_type: str = "chat",
    labels: list[str] | None = None,
    owner: str | None = None,
    status: str = "active",
    wa_status: str = "",
    contact_status: str = "",
    contact_metadata: list[dict[str, str]] | None = None,
    last_outbound: str | None = "2024-01-01T10:00:00Z",
    first_message: bool = False,
    media: dict[str, Any] | None = None,
    date: str = "2024-01-02T10:00:00Z",
    **extra: Any,
) -> dict[str, Any]:
    chat = {
        "id": chat_id,
        "type": chat_type,
        "status": status,
        "waStatus": wa_status,
        "labels": labels or [],
        "owner": {"agent": owner} if owner else {},
        "fromNumber": phone,
        "lastOutboundMessageAt": last_outbound,
        "contact": {
            "wid": chat_id,
            "phone": phone,
            "status": contact_status,
            "metadata": contact_metadata or [],
        },
    }
    data = {
        "id": msg_id,
        "type": msg_type,
        "body": body,
        "fromNumber": phone,
        "date": date,
        "chat": chat,
        "meta": {"isFirstMessage": first_message},
        **extra,
    }
    if media is not None:
        data["media"] = media
    return {"event": "message:in:new", "id": f"evt-{msg_id}", "data": data, "device": dict(DEVICE)}


def make_event(body: str = "What plans do you offer?", **kwargs: Any) -> InboundEvent:
    return InboundEvent.from_webhook(make_payload(body, **kwargs))


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient(members=[
        {"id": "a" * 24, "status": "active", "role": "agent", "displayName": "Ada"},
        {"id": "b" * 24, "status": "active", "role": "admin", "displayName": "Bob"},
    ])


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def engine(config: Config, client: FakeClient, provider: FakeProvider) -> AgentLoop:
    return AgentLoop(config, client, provider, rng=random.Random(7))
