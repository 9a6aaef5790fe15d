"""In-memory TTL cache for platform lookups (team members, labels)."""

import time
from typing import Any, Callable


class TTLCache:
    """
    Process-local key/value cache with per-entry expiry.

    Entries are dropped lazily on read once their TTL has elapsed.
    """

    def __init__(self, ttl_seconds: float = 600, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Default time-to-live, 10 minutes.
            clock: Monotonic time source, injectable for tests.
        """
        # {key: (value, expire_at)}
        self._mem: dict[str, tuple[Any, float]] = {}
        self._ttl = ttl_seconds
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Return the cached value or None if missing / expired."""
        if key in self._mem:
            value, expire_at = self._mem[key]
            if self._clock() < expire_at:
                return value
            del self._mem[key]
        return None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store *value* under *key* for *ttl_seconds* (default TTL when None)."""
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        self._mem[key] = (value, self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        self._mem.pop(key, None)

    def clear(self) -> None:
        self._mem.clear()

    @property
    def size(self) -> int:
        """Number of entries, including expired ones not yet evicted."""
        return len(self._mem)
