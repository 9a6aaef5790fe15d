"""Base class for model-callable tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chatpilot.bus.events import InboundEvent


@dataclass
class ToolInvocation:
    """One tool call requested by the model within a generation round."""

    call_id: str
    function_name: str
    raw_arguments: str
    # Parsed arguments; {} when the model sent malformed JSON
    parameters: dict[str, Any] = field(default_factory=dict)
    event: "InboundEvent | None" = None
    # Request messages as submitted in the round that asked for the call
    messages: list[dict[str, Any]] = field(default_factory=list)


class Tool(ABC):
    """
    A function the model may ask the bot to run.

    Subclasses declare ``name``, ``description`` and a JSON-schema
    ``parameters`` object, and implement :meth:`execute` which returns the
    text handed back to the model, or None for no result.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    @abstractmethod
    async def execute(self, invocation: ToolInvocation) -> str | None: ...

    def to_schema(self) -> dict[str, Any]:
        """OpenAI function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
