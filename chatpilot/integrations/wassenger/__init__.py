"""Wassenger WhatsApp API integration."""

from chatpilot.integrations.wassenger.client import WassengerClient

__all__ = ["WassengerClient"]
