"""In-process TTL cache for analysis-only pipeline results."""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable, Hashable


class AnalysisCache:
    """Bounded TTL cache keyed by run parameters.

    One instance is created by the application and handed to runners; it is
    never a module global so tests and CLI runs get their own.

    Usage:
        cache = AnalysisCache(ttl_seconds=300)
        key = cache.key("lead-intelligence", "native", user_id=None)
        if (hit := cache.get(key)) is None:
            cache.set(key, envelope)
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(
        agent_type: str,
        platform: str,
        *,
        user_id: str | None = None,
        record_ids: list[str] | None = None,
        limit: int | None = None,
    ) -> tuple:
        ids = tuple(sorted(record_ids)) if record_ids else ()
        return (agent_type, platform, user_id, ids, limit)

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + self.ttl_seconds, value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, agent_type: str | None = None, platform: str | None = None) -> int:
        """Drop entries matching agent type and/or platform (all when both None)."""
        doomed = [
            k for k in self._entries
            if (agent_type is None or k[0] == agent_type) and (platform is None or k[1] == platform)
        ]
        for k in doomed:
            del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "ttlSeconds": self.ttl_seconds,
        }
