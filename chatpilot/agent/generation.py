"""Generation orchestrator: model call plus the bounded tool-call loop."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from chatpilot.agent.context import ContextBuilder
from chatpilot.agent.knowledge import KnowledgeBase
from chatpilot.agent.media import NormalizedInput
from chatpilot.agent.tools import ToolInvocation, ToolRegistry
from chatpilot.bus.events import InboundEvent
from chatpilot.config.schema import Config
from chatpilot.providers.base import LLMProvider, LLMResponse, ToolCallRequest


def parse_arguments(raw: str) -> dict[str, Any]:
    """Decode tool-call arguments; malformed or non-object JSON yields {}."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Malformed tool arguments: {raw[:200]}")
        return {}
    return value if isinstance(value, dict) else {}


class GenerationOrchestrator:
    """
    Produces the reply text for one user turn.

    The first request carries the system instructions, the history window,
    the current turn and optional retrieval content. While the model asks
    for tools, the calls are run in order and their results resubmitted, up
    to ``limits.max_tool_rounds`` resubmissions. Any backend failure ends
    generation with the configured unknown-command message.
    """

    def __init__(
        self,
        config: Config,
        provider: LLMProvider,
        context: ContextBuilder,
        tools: ToolRegistry,
        knowledge: KnowledgeBase | None = None,
        model: str | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.context = context
        self.tools = tools.select(config.generation.tools)
        self.knowledge = knowledge
        self.model = model

    async def generate(
        self,
        event: InboundEvent,
        normalized: NormalizedInput,
        window: list[dict[str, Any]],
        current: str | list[dict[str, Any]],
    ) -> str:
        fallback = self.config.messages.unknown_command_message
        knowledge = await self._retrieve(normalized)
        messages = self.context.build_messages(window, current, knowledge=knowledge)

        response = await self._submit(event, messages)
        if response.failed:
            return fallback

        rounds = 0
        max_rounds = self.config.limits.max_tool_rounds
        while response.has_tool_calls and rounds < max_rounds:
            rounds += 1
            results = await self._run_tools(event, response.tool_calls, messages)
            if not results:
                logger.debug(f"Tool round {rounds} produced no results, stopping")
                break

            tool_call_dicts = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments or "{}"},
                }
                for tc in response.tool_calls
                if tc.id in results
            ]
            messages = self.context.add_assistant_message(messages, response.content, tool_call_dicts)
            for tc in response.tool_calls:
                if tc.id in results:
                    messages = self.context.add_tool_result(messages, tc.id, tc.name, results[tc.id])

            response = await self._submit(event, messages)
            if response.failed:
                return fallback

        if response.has_tool_calls and rounds >= max_rounds:
            logger.warning(f"Tool loop stopped after {rounds} rounds for chat {event.chat.id}")

        content = (response.content or "").strip()
        return content or fallback

    async def _submit(self, event: InboundEvent, messages: list[dict[str, Any]]) -> LLMResponse:
        definitions = self.tools.get_definitions()
        response = await self.provider.chat(
            messages=messages,
            tools=definitions or None,
            model=self.model,
            max_tokens=self.config.limits.max_output_tokens,
            temperature=self.config.generation.temperature,
            user=f"{event.device.id}_{event.chat.id}",
        )
        if response.usage:
            logger.debug(f"LLM usage for chat {event.chat.id}: {response.usage}")
        return response

    async def _run_tools(
        self,
        event: InboundEvent,
        tool_calls: list[ToolCallRequest],
        messages: list[dict[str, Any]],
    ) -> dict[str, str]:
        """Run tool calls in order; returns results keyed by call id."""
        results: dict[str, str] = {}
        for tc in tool_calls:
            tool = self.tools.get(tc.name)
            if tool is None:
                logger.warning(f"Tool function not found: {tc.name}")
                continue
            invocation = ToolInvocation(
                call_id=tc.id,
                function_name=tc.name,
                raw_arguments=tc.arguments,
                parameters=parse_arguments(tc.arguments),
                event=event,
                messages=list(messages),
            )
            logger.info(f"Tool call: {tc.name}({tc.arguments[:200]})")
            try:
                result = await tool.execute(invocation)
            except Exception as e:
                logger.error(f"Tool {tc.name} failed: {e}")
                continue
            if result is not None:
                results[tc.id] = result
        return results

    async def _retrieve(self, normalized: NormalizedInput) -> str | None:
        if self.knowledge is None or normalized.image is not None or not normalized.body:
            return None
        if normalized.from_audio and not normalized.transcribed:
            return None
        found = await self.knowledge.query(normalized.body)
        return found.get("content") if found else None
