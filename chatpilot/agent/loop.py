"""Agent loop: the core processing engine for inbound chat messages."""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any

from loguru import logger

from chatpilot.agent.context import ContextBuilder
from chatpilot.agent.dispatch import ReplyDispatcher
from chatpilot.agent.escalation import EscalationSelector, wants_human
from chatpilot.agent.filters import can_reply
from chatpilot.agent.generation import GenerationOrchestrator
from chatpilot.agent.knowledge import KnowledgeBase
from chatpilot.agent.media import MediaNormalizer, NormalizedInput
from chatpilot.agent.metadata import apply_metadata
from chatpilot.agent.tools import ToolRegistry
from chatpilot.agent.tools.sales import default_tools
from chatpilot.bus.events import InboundEvent
from chatpilot.config.schema import Config, MetadataEntry
from chatpilot.integrations.wassenger import WassengerClient
from chatpilot.providers.base import LLMProvider
from chatpilot.providers.voice import OpenAIVoiceProvider
from chatpilot.runtime import ChatLock, QuotaTracker, TempFileStore
from chatpilot.session.history import HistoryStore


class AgentLoop:
    """
    The agent loop is the core processing engine.

    It:
    1. Drops events the bot must not answer
    2. Serializes work per chat and enforces the reply quota
    3. Normalizes the inbound payload and handles escalation keywords
    4. Builds context with the chat history
    5. Calls the LLM, runs tools and sends the reply back
    """

    def __init__(
        self,
        config: Config,
        client: WassengerClient,
        provider: LLMProvider,
        *,
        model: str | None = None,
        voice: OpenAIVoiceProvider | None = None,
        knowledge: KnowledgeBase | None = None,
        tools: ToolRegistry | None = None,
        temp_dir: Path | None = None,
        public_url: str = "",
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.provider = provider

        limits = config.limits
        self.history = HistoryStore()
        self.quota = QuotaTracker(limits.max_messages_per_chat, limits.max_messages_per_chat_window_seconds)
        self.locks = ChatLock()
        self.tools = tools if tools is not None else ToolRegistry(default_tools())

        self.context = ContextBuilder(config, self.history, client)
        self.media = MediaNormalizer(config, client, voice)
        self.generation = GenerationOrchestrator(
            config, provider, self.context, self.tools, knowledge=knowledge, model=model,
        )
        self.escalation = EscalationSelector(config, client, rng=rng)
        self.dispatcher = ReplyDispatcher(
            config,
            client,
            self.context,
            self.quota,
            voice=voice,
            temp_files=TempFileStore(temp_dir) if temp_dir is not None else None,
            public_url=public_url,
        )
        # Chats flagged as over quota by this process
        self._over_quota: set[str] = set()

    async def process_message(self, event: InboundEvent) -> str | None:
        """
        Handle one inbound message.

        Returns the reply text that was sent, or None when nothing was sent.
        """
        if not can_reply(event, self.config.filters):
            logger.info(
                f"Skip message - chat is not eligible to reply due to active filters: "
                f"{event.sender_number} {event.chat.id}"
            )
            return None

        async with self.locks.acquire(event.chat.id):
            return await self._process(event)

    async def _process(self, event: InboundEvent) -> str | None:
        chat = event.chat
        if not await self._check_quota(event):
            return None

        normalized = await self.media.normalize(event)
        preview = normalized.body[:80] if normalized.body else "<empty message>"
        logger.info(f"New inbound message received: {chat.id} {preview}")

        messages = self.config.messages

        if not normalized.notice and wants_human(normalized.body):
            await self.escalation.assign(event)
            return await self._reply(event, messages.assignment_message, mark_bot_chat=False)

        if messages.welcome_message and (chat.last_outbound_message_at is None or event.is_first_message):
            return await self._reply(event, f"{messages.welcome_message}\n\n{messages.default_message}")

        if normalized.notice:
            return await self._reply(event, normalized.body, from_audio=normalized.from_audio)

        if normalized.is_empty:
            return await self._reply(event, f"{messages.unknown_command_message}\n\n{messages.default_message}")

        return await self._generate_reply(event, normalized)

    async def _generate_reply(self, event: InboundEvent, normalized: NormalizedInput) -> str | None:
        await self.context.ensure_history(event)
        recorded = self.context.record_inbound(event, normalized)
        window = await self.context.build_window(event)
        current = await self.context.build_user_content(event, recorded)

        reply = await self.generation.generate(event, normalized, window, current)
        return await self._reply(event, reply, from_audio=normalized.from_audio)

    async def _reply(
        self,
        event: InboundEvent,
        body: str,
        *,
        from_audio: bool = False,
        mark_bot_chat: bool = True,
    ) -> str | None:
        sent = await self.dispatcher.dispatch(
            event, body, from_audio=from_audio, mark_bot_chat=mark_bot_chat,
        )
        return body if sent is not None else None

    async def _check_quota(self, event: InboundEvent) -> bool:
        """Enforce the per-chat reply quota; over quota escalates once, silently."""
        chat_id = event.chat.id
        meta = self.config.metadata
        flagged = (
            chat_id in self._over_quota
            or event.chat.contact.get_metadata(meta.quota_status_key) == meta.quota_exceeded_value
        )

        if self.quota.has_quota(chat_id):
            if flagged:
                self._over_quota.discard(chat_id)
                await apply_metadata(
                    self.client, event, [MetadataEntry(key=meta.quota_status_key, value=meta.quota_cleared_value)],
                )
            return True

        if flagged:
            logger.debug(f"Chat {chat_id} is over quota and already flagged, dropping message")
            return False

        record = self.quota.get(chat_id)
        logger.warning(
            f"Chat {chat_id} exceeded {self.quota.max_messages} messages "
            f"({record.message_count if record else 0} in window), escalating"
        )
        self._over_quota.add(chat_id)
        await apply_metadata(
            self.client, event, [MetadataEntry(key=meta.quota_status_key, value=meta.quota_exceeded_value)],
        )
        await self.escalation.assign(event, force=True)
        return False

    def status(self) -> dict[str, Any]:
        return {
            "chats": len(self.history),
            "active_locks": len(self.locks),
            "over_quota": sorted(self._over_quota),
            "tools": self.tools.tool_names,
        }
