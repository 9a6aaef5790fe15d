"""Reply dispatcher: deliver a reply as text or voice and record it."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from loguru import logger

from chatpilot.agent.context import ContextBuilder
from chatpilot.agent.metadata import MetadataTarget, apply_metadata
from chatpilot.bus.events import InboundEvent
from chatpilot.config.schema import Config
from chatpilot.errors import PlatformError
from chatpilot.providers.voice import OpenAIVoiceProvider, strip_markdown_for_tts
from chatpilot.runtime.quota import QuotaTracker
from chatpilot.runtime.temp_files import TempFileStore
from chatpilot.utils.helpers import parse_datetime


class MessageSender(MetadataTarget, Protocol):
    async def send_message(
        self,
        phone: str,
        device_id: str,
        message: str | None = None,
        media: dict[str, Any] | None = None,
        **fields: Any,
    ) -> dict[str, Any] | None: ...

    async def patch_chat_labels(self, device_id: str, chat_id: str, labels: list[str]) -> None: ...


class ReplyDispatcher:
    """
    Sends replies to the chat's contact.

    Voice replies are synthesized, stored as one-shot temp files and sent
    as a ``ptt`` media reference under ``<public_url>/files/``; any
    synthesis problem falls back to plain text. A delivered reply is
    appended to the chat history, counted against the chat quota and,
    unless told otherwise, tags the chat with the bot labels and metadata.
    """

    def __init__(
        self,
        config: Config,
        client: MessageSender,
        context: ContextBuilder,
        quota: QuotaTracker,
        voice: OpenAIVoiceProvider | None = None,
        temp_files: TempFileStore | None = None,
        public_url: str = "",
    ) -> None:
        self.config = config
        self.client = client
        self.context = context
        self.quota = quota
        self.voice = voice
        self.temp_files = temp_files
        self.public_url = public_url.rstrip("/")

    def wants_voice(self, body: str, from_audio: bool = False) -> bool:
        features = self.config.features
        if not (features.audio_only or (features.audio_output and from_audio)):
            return False
        if len(body) > self.config.limits.max_tts_characters:
            return False
        return bool(
            self.voice is not None
            and self.voice.available
            and self.temp_files is not None
            and self.public_url
        )

    async def dispatch(
        self,
        event: InboundEvent,
        body: str,
        *,
        from_audio: bool = False,
        mark_bot_chat: bool = True,
    ) -> dict[str, Any] | None:
        """Send *body*; returns the platform's message record or None on failure."""
        phone = event.chat.contact.phone or event.sender_number

        media = await self._synthesize(body) if self.wants_voice(body, from_audio) else None
        if media is not None:
            sent = await self.client.send_message(phone, event.device.id, media=media)
            if sent is None:
                self.temp_files.discard(media["url"].rsplit("/", 1)[-1])
        else:
            sent = await self.client.send_message(phone, event.device.id, message=body)

        if sent is None:
            logger.error(f"Reply to chat {event.chat.id} was not delivered")
            return None

        self.context.record_outbound(
            event.chat.id,
            body,
            message_id=sent.get("id") or None,
            date=parse_datetime(sent.get("createdAt") or sent.get("date")),
        )
        self.quota.record_message(event.chat.id)

        if mark_bot_chat:
            await self._mark_bot_chat(event)
        return sent

    async def _synthesize(self, body: str) -> dict[str, str] | None:
        """Synthesize *body* into a temp mp3; returns the media reference or None."""
        features = self.config.features
        text = strip_markdown_for_tts(body)
        if not text:
            return None
        try:
            audio = await self.voice.tts(text, voice=features.voice, speed=features.voice_speed)
        except (RuntimeError, httpx.HTTPError) as e:
            logger.error(f"TTS failed, replying with text: {e}")
            return None
        name = await self.temp_files.save(audio, "mp3")
        if name is None:
            return None
        return {"url": f"{self.public_url}/files/{name}", "format": "ptt"}

    async def _mark_bot_chat(self, event: InboundEvent) -> None:
        chat = event.chat
        wanted = self.config.labels.set_labels_on_bot_chats
        missing = [label for label in wanted if label not in chat.labels]
        if missing:
            try:
                await self.client.patch_chat_labels(event.device.id, chat.id, sorted(chat.labels) + missing)
            except (PlatformError, httpx.HTTPError) as e:
                logger.error(f"Failed to update labels of chat {chat.id}: {e}")

        if self.config.metadata.set_metadata_on_bot_chats:
            await apply_metadata(
                self.client, event, self.config.metadata.set_metadata_on_bot_chats, overwrite=False,
            )
