"""
Result cache

Memoizes walkthrough and variant results keyed by identity, approach, tier
and options. Entries expire lazily at read time and the cache is pruned
when it reaches capacity.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached result with the parameters that produced it"""
    key: str
    result: Any
    created_at: float
    tier: str = ""
    options: dict = field(default_factory=dict)


class ResultCache:
    """TTL- and capacity-bounded result cache

    Values are deep-copied on write and on read, so callers can never
    mutate a cached result.
    """

    def __init__(
        self,
        ttl_seconds: float = 1800.0,
        max_entries: int = 50,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            ttl_seconds: Age after which an entry is a miss (default: 30 minutes)
            max_entries: Capacity before pruning (default: 50)
            clock: Time source in seconds
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1.")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(identity: str, approach: str | None, tier: str, options: dict | None = None) -> str:
        """
        Deterministic key for identity, approach, tier and options

        Options are serialized with sorted keys so key order never matters.
        """
        serialized = json.dumps(options or {}, sort_keys=True, default=str)
        return f"{identity}-{approach or 'default'}-{tier}-{serialized}"

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    def get(self, key: str):
        """Return a copy of the cached result, or None on miss or expiry"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[key]
            logger.debug("Cache entry expired: %s", key)
            return None
        logger.debug("Cache hit: %s", key)
        return copy.deepcopy(entry.result)

    def set(self, key: str, result, tier: str = "", options: dict | None = None) -> None:
        """Store a deep copy of result, pruning first when at capacity"""
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self.prune()
        self._entries[key] = CacheEntry(
            key=key,
            result=copy.deepcopy(result),
            created_at=self._clock(),
            tier=tier,
            options=dict(options or {}),
        )

    def prune(self) -> int:
        """
        Purge expired entries, then the oldest half if still at capacity

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = 0
        for key in [k for k, e in self._entries.items() if self._expired(e, now)]:
            del self._entries[key]
            removed += 1

        if len(self._entries) >= self.max_entries:
            oldest = sorted(self._entries.values(), key=lambda e: e.created_at)
            for entry in oldest[: max(1, self.max_entries // 2)]:
                del self._entries[entry.key]
                removed += 1

        logger.info("Pruned %d cache entries, %d remaining", removed, len(self._entries))
        return removed

    def invalidate(self, pattern: str | None = None) -> int:
        """
        Remove entries whose key contains pattern, or everything when pattern is None

        Returns:
            Number of entries removed
        """
        if pattern is None:
            removed = len(self._entries)
            self._entries.clear()
        else:
            keys = [k for k in self._entries if pattern in k]
            for key in keys:
                del self._entries[key]
            removed = len(keys)
        logger.info("Invalidated %d cache entries", removed)
        return removed

    def stats(self) -> dict:
        """Entry count and oldest/newest creation times"""
        if not self._entries:
            return {"size": 0, "oldest_entry": None, "newest_entry": None}
        created = [e.created_at for e in self._entries.values()]
        return {"size": len(created), "oldest_entry": min(created), "newest_entry": max(created)}
