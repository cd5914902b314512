from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Hashable

logger = logging.getLogger("power_odds.cache")


class TTLCache:
    """In-memory key → value store whose entries expire after *ttl* seconds.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}  # key → (value, stored_at)
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                logger.debug("Cache entry expired: %s", key)
                return None
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._entries[key] = (value, now)

    def _purge(self, now: float) -> None:
        expired = [k for k, (_, stored_at) in self._entries.items() if now - stored_at >= self.ttl]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
