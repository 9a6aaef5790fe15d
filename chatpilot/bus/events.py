"""Event types for inbound webhook messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from chatpilot.utils.helpers import parse_datetime

MESSAGE_TYPES = frozenset({
    "text", "audio", "image", "video", "document",
    "location", "poll", "event", "contacts",
})


@dataclass(frozen=True)
class Device:
    """WhatsApp number the bot runs on."""

    id: str
    phone: str = ""
    alias: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Device":
        data = data or {}
        return cls(
            id=str(data.get("id") or ""),
            phone=str(data.get("phone") or ""),
            alias=str(data.get("alias") or ""),
        )


@dataclass(frozen=True)
class Media:
    """Media attachment of an inbound message."""

    id: str
    type: str = ""
    mime: str = ""
    size: int = 0
    duration: int = 0  # seconds, audio/video only
    caption: str = ""
    filename: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Media | None":
        if not data:
            return None
        meta = data.get("meta") or {}
        return cls(
            id=str(data.get("id") or ""),
            type=str(data.get("type") or ""),
            mime=str(data.get("mime") or data.get("mimetype") or ""),
            size=int(data.get("size") or 0),
            duration=int(meta.get("duration") or data.get("duration") or 0),
            caption=str(data.get("caption") or ""),
            filename=str(data.get("filename") or ""),
        )


@dataclass(frozen=True)
class MetadataItem:
    key: str
    value: str


@dataclass(frozen=True)
class Contact:
    id: str = ""
    phone: str = ""
    status: str = ""
    metadata: tuple[MetadataItem, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Contact":
        data = data or {}
        metadata = tuple(
            MetadataItem(key=str(e.get("key")), value=str(e.get("value") or ""))
            for e in data.get("metadata") or []
            if isinstance(e, dict) and e.get("key")
        )
        return cls(
            id=str(data.get("wid") or data.get("id") or ""),
            phone=str(data.get("phone") or ""),
            status=str(data.get("status") or ""),
            metadata=metadata,
        )

    def get_metadata(self, key: str) -> str | None:
        for item in self.metadata:
            if item.key == key:
                return item.value
        return None


@dataclass(frozen=True)
class Chat:
    """Conversation thread as reported by the messaging platform."""

    id: str
    type: str = "chat"  # chat | group | channel
    status: str = ""
    wa_status: str = ""
    labels: frozenset[str] = frozenset()
    owner_agent: str | None = None
    contact: Contact = field(default_factory=Contact)
    from_number: str = ""
    last_outbound_message_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Chat":
        data = data or {}
        owner = data.get("owner") or {}
        return cls(
            id=str(data.get("id") or ""),
            type=str(data.get("type") or "chat"),
            status=str(data.get("status") or ""),
            wa_status=str(data.get("waStatus") or ""),
            labels=frozenset(str(label) for label in data.get("labels") or []),
            owner_agent=(owner.get("agent") or None) if isinstance(owner, dict) else None,
            contact=Contact.from_dict(data.get("contact")),
            from_number=str(data.get("fromNumber") or ""),
            last_outbound_message_at=parse_datetime(data.get("lastOutboundMessageAt")),
        )


@dataclass(frozen=True)
class InboundEvent:
    """A single inbound message delivered by the webhook source."""

    id: str
    type: str
    chat: Chat
    device: Device
    date: datetime
    body: str = ""
    media: Media | None = None
    from_number: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
    # Type-specific payloads (location, poll, event, contacts)
    location: dict[str, Any] = field(default_factory=dict)
    poll: dict[str, Any] = field(default_factory=dict)
    event: dict[str, Any] = field(default_factory=dict)
    contacts: tuple[dict[str, Any], ...] = ()

    @property
    def is_first_message(self) -> bool:
        return bool(self.meta.get("isFirstMessage"))

    @property
    def sender_number(self) -> str:
        return self.from_number or self.chat.from_number

    @classmethod
    def from_webhook(cls, payload: dict[str, Any]) -> "InboundEvent":
        """Build an event from a ``message:in:new`` webhook body."""
        data = payload.get("data") or {}
        chat = Chat.from_dict(data.get("chat"))
        contacts = data.get("contacts") or []
        return cls(
            id=str(data.get("id") or payload.get("id") or ""),
            type=str(data.get("type") or "text"),
            chat=chat,
            device=Device.from_dict(payload.get("device")),
            date=parse_datetime(data.get("date") or data.get("timestamp")) or datetime.now().astimezone(),
            body=str(data.get("body") or ""),
            media=Media.from_dict(data.get("media")),
            from_number=str(data.get("fromNumber") or chat.from_number),
            meta=dict(data.get("meta") or {}),
            location=dict(data.get("location") or {}),
            poll=dict(data.get("poll") or {}),
            event=dict(data.get("event") or {}),
            contacts=tuple(c for c in contacts if isinstance(c, dict)),
        )
