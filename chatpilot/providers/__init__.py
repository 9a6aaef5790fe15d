"""LLM and voice provider module."""

from chatpilot.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from chatpilot.providers.litellm_provider import LiteLLMProvider
from chatpilot.providers.voice import OpenAIVoiceProvider

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest", "LiteLLMProvider", "OpenAIVoiceProvider"]
