"""Per-chat rolling message quota."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger


@dataclass
class QuotaRecord:
    chat_id: str
    message_count: int = 0
    window_start: float = 0.0


class QuotaTracker:
    """
    Counts bot replies per chat inside a fixed time window.

    A chat may receive at most ``max_messages`` replies per window of
    ``window_seconds``. Once the ceiling is hit the chat is denied until the
    window expires, at which point the counter resets on the next check.
    """

    def __init__(
        self,
        max_messages: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: dict[str, QuotaRecord] = {}

    def get(self, chat_id: str) -> QuotaRecord | None:
        return self._records.get(chat_id)

    def has_quota(self, chat_id: str) -> bool:
        record = self._records.get(chat_id)
        if record is None or record.message_count < self.max_messages:
            return True
        now = self._clock()
        if now - record.window_start >= self.window_seconds:
            logger.debug(f"Quota window expired for chat {chat_id}, resetting counter")
            record.message_count = 0
            record.window_start = now
            return True
        return False

    def record_message(self, chat_id: str) -> None:
        record = self._records.get(chat_id)
        if record is None:
            record = QuotaRecord(chat_id=chat_id, window_start=self._clock())
            self._records[chat_id] = record
        if record.message_count < self.max_messages:
            record.message_count += 1

    def reset(self, chat_id: str | None = None) -> None:
        if chat_id is None:
            self._records.clear()
        else:
            self._records.pop(chat_id, None)
