"""Inbound event types."""

from chatpilot.bus.events import Chat, Contact, Device, InboundEvent, Media

__all__ = ["Chat", "Contact", "Device", "InboundEvent", "Media"]
