"""Volatile per-chat conversation history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from chatpilot.bus.events import Media
from chatpilot.utils.helpers import parse_datetime

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class ConversationMessage:
    """One message of a chat as seen by the bot."""

    id: str
    flow: str  # inbound | outbound
    role: str  # user | assistant | tool
    body: str
    date: datetime
    type: str = "text"
    media: Media | None = None
    # Cached multimodal data URL for image messages
    image_url: str | None = None

    @classmethod
    def from_platform(cls, data: dict[str, Any]) -> "ConversationMessage":
        """Map a message fetched from the messaging platform."""
        flow = str(data.get("flow") or "inbound")
        media = Media.from_dict(data.get("media"))
        body = str(data.get("body") or "")
        if not body and media and media.caption:
            body = media.caption
        return cls(
            id=str(data.get("id") or ""),
            flow=flow,
            role="user" if flow == "inbound" else "assistant",
            body=body,
            date=parse_datetime(data.get("date") or data.get("createdAt")) or _EPOCH,
            type=str(data.get("type") or "text"),
            media=media,
        )


class HistoryStore:
    """
    In-memory ChatHistory: chat id → message id → ConversationMessage.

    Starts empty, lives for the process lifetime, never persisted. Whether a
    chat was backfilled from the platform is tracked apart from its entries,
    since replies sent before the first backfill also write to the chat.
    """

    def __init__(self) -> None:
        self._chats: dict[str, dict[str, ConversationMessage]] = {}
        self._backfilled: set[str] = set()

    def is_backfilled(self, chat_id: str) -> bool:
        return chat_id in self._backfilled

    def mark_backfilled(self, chat_id: str) -> None:
        self._chats.setdefault(chat_id, {})
        self._backfilled.add(chat_id)

    def add(self, chat_id: str, message: ConversationMessage) -> None:
        self._chats.setdefault(chat_id, {})[message.id] = message

    def extend(self, chat_id: str, messages: list[ConversationMessage]) -> None:
        chat = self._chats.setdefault(chat_id, {})
        for message in messages:
            # Keep locally recorded entries over platform copies
            chat.setdefault(message.id, message)

    def get(self, chat_id: str) -> list[ConversationMessage]:
        """Messages of a chat in chronological order (stable for equal dates)."""
        messages = list(self._chats.get(chat_id, {}).values())
        return sorted(messages, key=lambda m: m.date)

    def __len__(self) -> int:
        return len(self._chats)

    def size(self, chat_id: str) -> int:
        return len(self._chats.get(chat_id, {}))

    def clear(self, chat_id: str | None = None) -> None:
        if chat_id is None:
            self._chats.clear()
            self._backfilled.clear()
        else:
            self._chats.pop(chat_id, None)
            self._backfilled.discard(chat_id)
