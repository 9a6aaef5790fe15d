"""Exception types shared across chatpilot."""

from __future__ import annotations

from typing import Any


class ChatpilotError(Exception):
    """Base class for chatpilot errors."""


class ConfigError(ChatpilotError):
    """Raised when startup configuration is missing or invalid."""


class PlatformError(ChatpilotError):
    """Raised when the messaging platform answers with a non-2xx status."""

    def __init__(self, message: str, status: int = 0, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
