from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable

from cachetools import TTLCache


@dataclass
class _Counters:
    hits: int = 0
    misses: int = 0
    loads: int = 0
    invalidations: int = 0

    @property
    def hit_rate(self) -> float:
        looked_up = self.hits + self.misses
        return round(self.hits / looked_up * 100, 2) if looked_up else 0.0


def reference_key(table: str, *scope: Hashable) -> tuple:
    """Key for one cached reference table, optionally narrowed (e.g. by user id)."""
    return (str(table or "").strip().lower(),) + tuple(s for s in scope if s not in (None, ""))


class ReferenceCache:
    """TTL cache for read-mostly reference tables (onboarding steps, categories).

    Each storage backend owns one; a write to a table drops every key for it.
    """

    def __init__(self, *, ttl_seconds: int = 60, max_items: int = 1024):
        ttl = max(1, min(3600, int(ttl_seconds or 60)))
        size = max(16, min(100_000, int(max_items or 1024)))
        self._entries: TTLCache = TTLCache(maxsize=size, ttl=ttl)
        self._lock = threading.RLock()
        self._counters = _Counters()

    def peek(self, key: tuple) -> Any:
        with self._lock:
            if key in self._entries:
                self._counters.hits += 1
                return self._entries[key]
            self._counters.misses += 1
            return None

    def load(self, key: tuple, loader: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._entries:
                self._counters.hits += 1
                return self._entries[key]
            self._counters.misses += 1
        # The loader queries the database; other readers are not blocked meanwhile.
        value = loader()
        with self._lock:
            self._counters.loads += 1
            return self._entries.setdefault(key, value)

    def invalidate(self, table: str) -> int:
        name = reference_key(table)[0]
        if not name:
            return 0
        with self._lock:
            stale = [k for k in list(self._entries.keys()) if k[0] == name]
            for k in stale:
                self._entries.pop(k, None)
            self._counters.invalidations += 1
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._counters = _Counters()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            c = self._counters
            return {
                "size": len(self._entries),
                "maxsize": self._entries.maxsize,
                "hits": c.hits,
                "misses": c.misses,
                "loads": c.loads,
                "invalidations": c.invalidations,
                "hit_rate": c.hit_rate,
            }
