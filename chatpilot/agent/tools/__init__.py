"""Agent tools module."""

from chatpilot.agent.tools.base import Tool, ToolInvocation
from chatpilot.agent.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolInvocation", "ToolRegistry"]
