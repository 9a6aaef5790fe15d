"""Conversation history store."""

from chatpilot.session.history import ConversationMessage, HistoryStore

__all__ = ["ConversationMessage", "HistoryStore"]
