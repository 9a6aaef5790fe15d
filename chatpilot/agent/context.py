"""Context builder for assembling the model's conversation window."""

from __future__ import annotations

import base64
from datetime import datetime
from typing import Any, Protocol

import httpx
from loguru import logger

from chatpilot.agent.media import NormalizedInput
from chatpilot.bus.events import InboundEvent, Media
from chatpilot.config.schema import Config
from chatpilot.errors import PlatformError
from chatpilot.session.history import ConversationMessage, HistoryStore


class HistorySource(Protocol):
    async def fetch_recent_messages(
        self, device_id: str, chat_id: str, limit: int = 25,
    ) -> list[dict[str, Any]]: ...

    async def download_media(self, device_id: str, media_id: str) -> bytes: ...


class ContextBuilder:
    """
    Builds the message list submitted to the model.

    Owns the per-chat history: backfills it from the messaging platform the
    first time a chat is seen, records inbound and outbound turns, and
    renders the trimmed window (oldest first) with images as multimodal
    ``image_url`` parts.
    """

    def __init__(self, config: Config, history: HistoryStore, source: HistorySource) -> None:
        self.config = config
        self.history = history
        self.source = source

    # ── history ──────────────────────────────────────────────────────────

    async def ensure_history(self, event: InboundEvent) -> None:
        """Backfill recent messages of a chat not seen before."""
        chat_id = event.chat.id
        if self.history.is_backfilled(chat_id):
            return
        limit = self.config.limits.history_backfill_size
        try:
            raw = await self.source.fetch_recent_messages(event.device.id, chat_id, limit=limit)
        except (PlatformError, httpx.HTTPError) as e:
            logger.error(f"Failed to pull chat messages for {chat_id}: {e}")
            raw = []
        messages = [ConversationMessage.from_platform(m) for m in raw if isinstance(m, dict) and m.get("id")]
        self.history.extend(chat_id, messages)
        self.history.mark_backfilled(chat_id)
        logger.debug(f"Backfilled {len(messages)} messages for chat {chat_id}")

    def record_inbound(self, event: InboundEvent, normalized: NormalizedInput) -> ConversationMessage:
        message = ConversationMessage(
            id=event.id,
            flow="inbound",
            role="user",
            body=normalized.body,
            date=event.date,
            type=event.type,
            media=normalized.image,
        )
        self.history.add(event.chat.id, message)
        return message

    def record_outbound(
        self,
        chat_id: str,
        body: str,
        message_id: str | None = None,
        *,
        date: datetime | None = None,
        role: str = "assistant",
    ) -> ConversationMessage:
        message = ConversationMessage(
            id=message_id or f"local-{self.history.size(chat_id)}-{datetime.now().timestamp()}",
            flow="outbound",
            role=role,
            body=body,
            date=date or datetime.now().astimezone(),
        )
        self.history.add(chat_id, message)
        return message

    # ── window ───────────────────────────────────────────────────────────

    async def build_window(self, event: InboundEvent) -> list[dict[str, Any]]:
        """Render the trimmed history of a chat, oldest first."""
        limits = self.config.limits
        # Newest messages within the scan limit, chronological
        scanned = self.history.get(event.chat.id)
        if limits.chat_history_limit_scan > 0:
            scanned = scanned[-limits.chat_history_limit_scan:]

        window: list[dict[str, Any]] = []
        for message in scanned:
            role = "user" if message.flow == "inbound" else (message.role or "assistant")
            content = await self._render_content(event.device.id, message)
            if not content:
                continue
            window.append({"role": role, "content": content})

        if limits.chat_history_limit > 0:
            window = window[-limits.chat_history_limit:]
        return window

    async def build_user_content(
        self, event: InboundEvent, message: ConversationMessage,
    ) -> str | list[dict[str, Any]]:
        """Content of the recorded current turn, multimodal when it carries an image."""
        return await self._render_content(event.device.id, message)

    def build_messages(
        self,
        window: list[dict[str, Any]],
        current: str | list[dict[str, Any]],
        instructions: str | None = None,
        knowledge: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Build the complete message list for a model call.

        Args:
            window: Rendered history, oldest first.
            current: Content of the current user turn.
            instructions: System prompt (defaults to the configured one).
            knowledge: Retrieved reference content, sent as a system message
                after the user turn.

        Returns:
            List of messages including the system prompt.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": instructions or self.config.messages.bot_instructions},
        ]
        messages.extend(window)

        last = window[-1] if window else None
        if current and not (last and last["role"] == "user" and last["content"] == current):
            messages.append({"role": "user", "content": current})

        if knowledge:
            messages.append({"role": "system", "content": knowledge})
        return messages

    async def _render_content(
        self, device_id: str, message: ConversationMessage,
    ) -> str | list[dict[str, Any]]:
        if message.type == "image" and message.flow == "inbound" and self._image_allowed(message.media):
            url = message.image_url or await self._encode_image(device_id, message.media)
            if url:
                message.image_url = url
                parts: list[dict[str, Any]] = [{"type": "image_url", "image_url": {"url": url}}]
                if message.body:
                    parts.append({"type": "text", "text": message.body})
                return parts
        return message.body

    def _image_allowed(self, media: Media | None) -> bool:
        if not self.config.features.image_input or media is None or not media.id:
            return False
        return not (media.size and media.size > self.config.limits.max_image_size)

    async def _encode_image(self, device_id: str, media: Media) -> str | None:
        """Download an image and return it as a base64 data URL."""
        try:
            content = await self.source.download_media(device_id, media.id)
        except (PlatformError, httpx.HTTPError) as e:
            logger.warning(f"Failed to download image {media.id}: {e}")
            return None
        if not content:
            return None
        mime = media.mime or "image/jpeg"
        b64 = base64.b64encode(content).decode()
        return f"data:{mime};base64,{b64}"

    # ── tool loop bookkeeping ────────────────────────────────────────────

    def add_tool_result(
        self,
        messages: list[dict[str, Any]],
        tool_call_id: str,
        tool_name: str,
        result: str,
    ) -> list[dict[str, Any]]:
        messages.append({
            "role": "tool",
            "tool_call_id": tool_call_id,
            "name": tool_name,
            "content": result,
        })
        return messages

    def add_assistant_message(
        self,
        messages: list[dict[str, Any]],
        content: str | None,
        tool_calls: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        msg: dict[str, Any] = {"role": "assistant", "content": content or ""}
        if tool_calls:
            msg["tool_calls"] = tool_calls
        messages.append(msg)
        return messages
