"""Eligibility filter: may the bot answer this inbound message at all."""

from __future__ import annotations

from chatpilot.bus.events import InboundEvent
from chatpilot.config.schema import FiltersConfig

_BLOCKED_STATUSES = frozenset({"banned", "blocked"})


def number_matches(numbers: list[str], number: str) -> bool:
    """Match *number* exactly or without its first character (``+`` / prefix)."""
    if not number:
        return False
    return any(n == number or n == number[1:] for n in numbers)


def can_reply(event: InboundEvent, filters: FiltersConfig) -> bool:
    """
    Decide whether the automated engine may answer *event*.

    Checks run in a fixed order and the first one that matches decides.
    Pure function: no side effects, same answer for the same input.
    """
    chat = event.chat
    number = event.sender_number

    # Already handled by a team member
    if chat.owner_agent:
        return False

    # Own number, avoids replying to ourselves
    if event.device.phone and number and number == event.device.phone:
        return False

    # Groups and channels are excluded
    if chat.type != "chat":
        return False

    if filters.skip_chat_with_labels and chat.labels & set(filters.skip_chat_with_labels):
        return False

    if filters.numbers_whitelist:
        return number_matches(filters.numbers_whitelist, number)

    if filters.numbers_blacklist and number_matches(filters.numbers_blacklist, number):
        return False

    if {chat.status, chat.wa_status, chat.contact.status} & _BLOCKED_STATUSES:
        return False

    if filters.skip_archived_chats and "archived" in (chat.status, chat.wa_status):
        return False

    return True
