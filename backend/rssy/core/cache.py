"""
TTLCache - in-memory read-through cache for low-churn configuration rows.

Entries are keyed by (scope, key) and expire a fixed number of seconds after
they were stored. Writers invalidate entries explicitly; readers may see up to
one TTL of staleness otherwise.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


SCOPE_FEED_META = "feed_meta"
SCOPE_USER_PREF = "user_pref"


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """Thread-safe in-memory cache with per-entry expiry."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._items: Dict[Tuple[str, Hashable], CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, scope: str, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._items.get((scope, key))
            if entry is None:
                return None

            if self._clock() - entry.stored_at > self.ttl:
                del self._items[(scope, key)]
                return None

            return entry.value

    def set(self, scope: str, key: Hashable, value: Any) -> None:
        with self._lock:
            self._items[(scope, key)] = CacheEntry(value=value, stored_at=self._clock())

    def delete(self, scope: str, key: Hashable) -> None:
        with self._lock:
            self._items.pop((scope, key), None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def purge_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [
                k for k, entry in self._items.items() if now - entry.stored_at > self.ttl
            ]
            for k in expired:
                del self._items[k]
        return len(expired)

    def get_or_load(self, scope: str, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value, calling `loader` and caching its result on a miss."""
        value = self.get(scope, key)
        if value is not None:
            return value

        value = loader()
        if value is not None:
            self.set(scope, key, value)
        return value

    @property
    def size(self) -> int:
        return len(self._items)
