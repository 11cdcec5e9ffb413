"""
In-memory cache module for the Personal Brain MCP Server.

Contains the SearchCache class for memoizing aggregated external search results.
"""

import json
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from .models import ExternalSourceResult
from .utils import normalize_query

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    data: list[ExternalSourceResult]
    timestamp: float


def make_cache_key(query: str, options: dict) -> str:
    """Build the cache key from the normalized query and serialized options."""
    return f"{normalize_query(query)}:{json.dumps(options, sort_keys=True)}"


class SearchCache:
    """TTL cache for ranked search results.

    Entries are valid while ``now - timestamp < ttl`` and are dropped lazily on
    lookup. When an insert pushes the entry count over ``max_entries``, the
    oldest ``evict_fraction`` of entries (by insertion time, not by access) are
    removed.
    """

    def __init__(
        self,
        ttl: float = 3600,
        max_entries: int = 100,
        evict_fraction: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self.evict_fraction = evict_fraction
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def _is_expired(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.timestamp) >= self.ttl

    def get(self, key: str) -> list[ExternalSourceResult] | None:
        """Return the cached results for ``key``, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            del self._entries[key]
            logger.debug("cache_entry_expired", key=key)
            return None
        return entry.data

    def set(self, key: str, data: list[ExternalSourceResult]) -> None:
        """Store results under ``key`` and evict the oldest entries if over the ceiling."""
        # Re-inserting moves the key to the end so dict order stays insertion-age order
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())

        if len(self._entries) > self.max_entries:
            self._evict_oldest()

    def _evict_oldest(self) -> int:
        entries = sorted(self._entries.items(), key=lambda item: item[1].timestamp)
        remove_count = math.ceil(len(entries) * self.evict_fraction)
        for key, _ in entries[:remove_count]:
            del self._entries[key]

        logger.debug("cache_pruned", removed=remove_count, remaining=len(self._entries))
        return remove_count

    def prune_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("cache_expired_pruned", removed=len(expired))
        return len(expired)

    def most_recent(self, limit: int = 10) -> list[ExternalSourceResult]:
        """Results of the newest live entry, if any."""
        for key in reversed(list(self._entries)):
            data = self.get(key)
            if data is not None:
                return data[:limit]
        return []

    def clear(self) -> None:
        self._entries.clear()
