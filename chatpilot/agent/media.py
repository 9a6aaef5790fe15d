"""Multimedia normalizer: turn non-text inbound payloads into text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from loguru import logger

from chatpilot.bus.events import MESSAGE_TYPES, InboundEvent, Media
from chatpilot.config.schema import Config
from chatpilot.errors import PlatformError
from chatpilot.utils.helpers import truncate


class MediaSource(Protocol):
    async def download_media(self, device_id: str, media_id: str) -> bytes: ...


class Transcriber(Protocol):
    @property
    def available(self) -> bool: ...

    async def stt(self, audio: bytes, filename: str = "audio.ogg") -> str: ...


@dataclass(frozen=True)
class NormalizedInput:
    """Canonical form of the current user turn."""

    body: str
    # Image forwarded to the model as a multimodal block
    image: Media | None = None
    from_audio: bool = False
    transcribed: bool = False
    # Body is a canned notice for the user, not something to generate from
    notice: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.body and self.image is None


def _format_location(location: dict[str, Any]) -> str:
    name = str(location.get("name") or "").strip()
    address = str(location.get("address") or "").strip()
    return " ".join(p for p in ("Location:", name, address) if p)


def _format_poll(poll: dict[str, Any]) -> str:
    lines = [str(poll.get("name") or "Poll").strip()]
    for option in poll.get("options") or []:
        label = option.get("name") if isinstance(option, dict) else option
        if label:
            lines.append(f"- {label}")
    return "\n".join(lines)


def _format_event(event: dict[str, Any]) -> str:
    lines = []
    for label, key in (
        ("Event", "name"),
        ("Description", "description"),
        ("Date", "date"),
        ("Location", "location"),
        ("Call link", "callLink"),
    ):
        value = event.get(key)
        if isinstance(value, dict):
            value = value.get("name") or value.get("address")
        if value:
            lines.append(f"{label}: {value}")
    return "\n".join(lines)


def _format_contacts(contacts: tuple[dict[str, Any], ...]) -> str:
    lines = []
    for contact in contacts:
        name = contact.get("name") or contact.get("formattedName") or contact.get("displayName") or "Contact"
        phones = []
        for phone in contact.get("phones") or []:
            number = phone.get("number") or phone.get("phone") if isinstance(phone, dict) else phone
            if number:
                phones.append(str(number))
        if not phones and contact.get("phone"):
            phones.append(str(contact["phone"]))
        lines.append(f"{name}: {', '.join(phones)}" if phones else str(name))
    return "\n".join(lines)


class MediaNormalizer:
    """
    Maps an inbound event to a :class:`NormalizedInput`.

    Audio goes through the transcriber when audio input is enabled and the
    clip is short enough; structured payloads (location, poll, event,
    contacts) are rendered as plain text; images stay as a multimodal
    reference when image input is enabled and the file is small enough.
    Every body is truncated to ``limits.max_input_characters``.
    """

    def __init__(
        self,
        config: Config,
        media_source: MediaSource,
        transcriber: Transcriber | None = None,
    ) -> None:
        self.config = config
        self.media_source = media_source
        self.transcriber = transcriber

    async def normalize(self, event: InboundEvent) -> NormalizedInput:
        result = await self._normalize(event)
        limit = self.config.limits.max_input_characters
        return NormalizedInput(
            body=truncate(result.body, limit),
            image=result.image,
            from_audio=result.from_audio,
            transcribed=result.transcribed,
            notice=result.notice,
        )

    async def _normalize(self, event: InboundEvent) -> NormalizedInput:
        messages = self.config.messages
        caption = event.body or (event.media.caption if event.media else "")

        if event.type == "audio":
            text = await self._transcribe(event)
            if text:
                return NormalizedInput(body=text, from_audio=True, transcribed=True)
            return NormalizedInput(body=messages.audio_not_supported_message, from_audio=True, notice=True)

        if event.type in ("video", "document"):
            if caption:
                return NormalizedInput(body=caption)
            return NormalizedInput(body=messages.media_not_supported_message, notice=True)

        if event.type == "image":
            if self._image_supported(event.media):
                return NormalizedInput(body=caption, image=event.media)
            return NormalizedInput(body=caption)

        if event.type == "location":
            return NormalizedInput(body=_format_location(event.location))
        if event.type == "poll":
            return NormalizedInput(body=_format_poll(event.poll))
        if event.type == "event":
            return NormalizedInput(body=_format_event(event.event))
        if event.type == "contacts":
            return NormalizedInput(body=_format_contacts(event.contacts))

        if event.type not in MESSAGE_TYPES:
            logger.debug(f"Unhandled message type {event.type}, using body only")
        return NormalizedInput(body=event.body)

    def _image_supported(self, media: Media | None) -> bool:
        if not self.config.features.image_input or media is None or not media.id:
            return False
        limit = self.config.limits.max_image_size
        return not (media.size and media.size > limit)

    async def _transcribe(self, event: InboundEvent) -> str:
        features, limits = self.config.features, self.config.limits
        media = event.media
        if not features.audio_input or media is None or not media.id:
            return ""
        if self.transcriber is None or not self.transcriber.available:
            logger.warning("Audio input enabled but no transcription provider is available")
            return ""
        if media.duration and media.duration > limits.max_audio_duration:
            logger.info(f"Skip audio transcription: {media.duration}s exceeds {limits.max_audio_duration}s")
            return ""
        try:
            audio = await self.media_source.download_media(event.device.id, media.id)
        except (PlatformError, httpx.HTTPError) as e:
            logger.error(f"Failed to download audio {media.id} for chat {event.chat.id}: {e}")
            return ""
        filename = media.filename or f"{media.id}.{_audio_ext(media.mime)}"
        text = await self.transcriber.stt(audio, filename)
        if text:
            logger.info(f"STT transcription: {text[:80]}")
        return text


def _audio_ext(mime: str) -> str:
    mime = (mime or "").split(";")[0].strip().lower()
    return {
        "audio/mpeg": "mp3",
        "audio/mp4": "m4a",
        "audio/wav": "wav",
        "audio/webm": "webm",
    }.get(mime, "ogg")
