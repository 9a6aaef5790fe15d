"""Contact metadata patches shared by dispatch, escalation and quota flagging."""

from __future__ import annotations

from typing import Protocol

import httpx
from loguru import logger

from chatpilot.bus.events import InboundEvent
from chatpilot.config.schema import MetadataEntry
from chatpilot.errors import PlatformError

MAX_KEY_LENGTH = 30
MAX_VALUE_LENGTH = 1000


class MetadataTarget(Protocol):
    async def patch_contact_metadata(
        self, device_id: str, chat_id: str, entries: list[dict[str, str]],
    ) -> None: ...


def pending_entries(
    event: InboundEvent,
    entries: list[MetadataEntry],
    *,
    overwrite: bool = True,
) -> list[dict[str, str]]:
    """
    Entries that still need to be written to the contact.

    With ``overwrite`` an entry is skipped only when the contact already has
    the same key and value; without it, any existing key is left alone.
    """
    contact = event.chat.contact
    pending: list[dict[str, str]] = []
    for entry in entries:
        key = entry.key[:MAX_KEY_LENGTH].strip()
        if not key:
            continue
        value = entry.resolve()[:MAX_VALUE_LENGTH]
        current = contact.get_metadata(key)
        if current is not None and (not overwrite or current == value):
            continue
        pending.append({"key": key, "value": value})
    return pending


async def apply_metadata(
    client: MetadataTarget,
    event: InboundEvent,
    entries: list[MetadataEntry],
    *,
    overwrite: bool = True,
) -> bool:
    """Patch contact metadata; failures are logged. Returns True if a patch was sent."""
    pending = pending_entries(event, entries, overwrite=overwrite)
    if not pending:
        return False
    try:
        await client.patch_contact_metadata(event.device.id, event.chat.id, pending)
    except (PlatformError, httpx.HTTPError) as e:
        logger.error(f"Failed to update metadata of chat {event.chat.id}: {e}")
        return False
    return True
