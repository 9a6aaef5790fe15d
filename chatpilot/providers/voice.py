"""Voice provider: OpenAI TTS (text-to-speech) + speech-to-text."""

import os
import re
from typing import Any

import httpx
from loguru import logger

# ── defaults ──
DEFAULT_TTS_MODEL = "tts-1"
DEFAULT_TTS_VOICE = "echo"
DEFAULT_TTS_FORMAT = "mp3"
DEFAULT_STT_MODEL = "whisper-1"

OPENAI_TTS_VOICES = frozenset({
    "alloy", "ash", "ballad", "coral", "echo", "fable", "nova",
    "onyx", "sage", "shimmer", "verse", "marin", "cedar",
})

# Simple markdown stripping for TTS text preparation (WhatsApp flavour too).
_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_HEADER_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_WA_BOLD_RE = re.compile(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)")
_ITALIC_RE = re.compile(r"_(.+?)_")
_STRIKE_RE = re.compile(r"~~?(.+?)~~?")
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_LIST_MARKER_RE = re.compile(r"^(\s*)[-*+]\s", re.MULTILINE)


def strip_markdown_for_tts(text: str) -> str:
    """Strip markdown formatting so TTS doesn't read symbols aloud."""
    t = _CODE_BLOCK_RE.sub("", text)
    t = _HEADER_RE.sub("", t)
    t = _BOLD_RE.sub(r"\1", t)
    t = _WA_BOLD_RE.sub(r"\1", t)
    t = _ITALIC_RE.sub(r"\1", t)
    t = _STRIKE_RE.sub(r"\1", t)
    t = _INLINE_CODE_RE.sub(r"\1", t)
    t = _LINK_RE.sub(r"\1", t)
    t = _LIST_MARKER_RE.sub(r"\1", t)
    # Collapse excessive whitespace.
    t = re.sub(r"\n{3,}", "\n\n", t).strip()
    return t


class OpenAIVoiceProvider:
    """Voice notes in and out through the OpenAI audio endpoints (`audio/speech`, `audio/transcriptions`)."""

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        tts_model: str = DEFAULT_TTS_MODEL,
        tts_voice: str = DEFAULT_TTS_VOICE,
        stt_model: str = DEFAULT_STT_MODEL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = (
            api_key
            or os.environ.get("CHATPILOT_OPENAI_API_KEY")
            or os.environ.get("OPENAI_API_KEY", "")
        )
        self.api_base = (
            api_base
            or os.environ.get("CHATPILOT_OPENAI_API_BASE")
            or "https://api.openai.com/v1"
        ).rstrip("/")
        self.tts_model = tts_model
        self.tts_voice = tts_voice if tts_voice in OPENAI_TTS_VOICES else DEFAULT_TTS_VOICE
        self.stt_model = stt_model
        self._transport = transport

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=60.0)

    async def tts(
        self,
        text: str,
        *,
        voice: str | None = None,
        speed: float = 1.0,
        response_format: str = DEFAULT_TTS_FORMAT,
    ) -> bytes:
        """Synthesize a voice-note reply.

        Raises RuntimeError without an API key and httpx.HTTPError when the
        API call fails; the dispatcher falls back to a text reply on either.
        """
        if not self.api_key:
            raise RuntimeError("OpenAI API key not configured for TTS")

        body: dict[str, Any] = {
            "model": self.tts_model,
            "input": text,
            "voice": voice if voice in OPENAI_TTS_VOICES else self.tts_voice,
            "response_format": response_format,
            "speed": min(max(speed, 0.25), 4.0),
        }

        async with self._client() as client:
            response = await client.post(
                f"{self.api_base}/audio/speech",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=body,
            )
            response.raise_for_status()
            logger.debug(
                f"TTS: {len(text)} chars → {len(response.content)} bytes (voice={body['voice']})"
            )
            return response.content

    async def stt(
        self,
        audio: bytes,
        filename: str = "audio.ogg",
        *,
        language: str | None = None,
    ) -> str:
        """Transcribe an inbound voice note; returns "" when it cannot be transcribed."""
        if not self.api_key:
            logger.warning("OpenAI API key not configured for STT")
            return ""
        if not audio:
            return ""

        data: dict[str, str] = {"model": self.stt_model}
        if language:
            data["language"] = language

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_base}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files={"file": (filename, audio)},
                    data=data,
                )
                response.raise_for_status()
                text = (response.json().get("text") or "").strip()
                logger.debug(f"STT: {filename} → {len(text)} chars")
                return text
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"STT transcription error: {e}")
            return ""
