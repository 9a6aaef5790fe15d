"""Agent core module."""

from chatpilot.agent.context import ContextBuilder
from chatpilot.agent.loop import AgentLoop

__all__ = ["AgentLoop", "ContextBuilder"]
