"""Per-chat in-process lock.

Ensures that messages for the same chat are processed sequentially while
different chats interleave freely on the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class ChatLock:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        # Holders + waiters per key, so idle locks can be dropped
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, chat_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(chat_id, asyncio.Lock())
        self._users[chat_id] = self._users.get(chat_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[chat_id] -= 1
            if not self._users[chat_id]:
                del self._users[chat_id]
                self._locks.pop(chat_id, None)

    def locked(self, chat_id: str) -> bool:
        lock = self._locks.get(chat_id)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)
