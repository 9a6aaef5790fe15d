"""chatpilot - WhatsApp auto-reply bot driven by a generative backend."""

__version__ = "0.1.0"
__logo__ = "💬"
