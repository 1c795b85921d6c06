"""
Result cache for the Customer 360 facade.

Scorers are pure, so the facade memoizes their outputs per
``(operation, customer_id, input_version, as_of)`` key. Entries age out
after ``ttl_seconds`` on a monotonic timer and the least recently used
entry is evicted once ``max_size`` is reached.
"""

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Hashable, Optional, Tuple

Timer = Callable[[], float]

_MISSING = object()


class LRUCache:
    """Thread-safe LRU cache with TTL support."""

    def __init__(self, max_size: int = 256, ttl_seconds: float = 300, timer: Timer = time.monotonic):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._timer = timer
        self._entries: "OrderedDict[Hashable, Tuple[Any, float]]" = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def _lookup(self, key: Hashable) -> Any:
        # caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return _MISSING
        value, stored_at = entry
        if self._timer() - stored_at > self.ttl_seconds:
            del self._entries[key]
            self._misses += 1
            return _MISSING
        self._entries.move_to_end(key)
        self._hits += 1
        return value

    def _store(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (value, self._timer())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def get(self, key: Hashable) -> Optional[Any]:
        """Live value for ``key``, or None."""
        with self._lock:
            value = self._lookup(key)
        return None if value is _MISSING else value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._store(key, value)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """
        Cached value for ``key``, computing and storing it on a miss.

        ``compute`` runs outside the lock, so two threads missing the same key
        may both compute; the later result wins. Outputs are deterministic
        per key.
        """
        with self._lock:
            value = self._lookup(key)
        if value is not _MISSING:
            return value
        value = compute()
        with self._lock:
            self._store(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
            }
