"""
In-memory cache with per-entry TTL and least-recently-used eviction.

A single instance is shared by the embedding service and the matcher. All
operations are synchronous and never await, so coroutines interleaving on
the same key always observe a consistent entry.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from pydantic_core import to_json

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1000
DEFAULT_TTL_SECONDS = 3600.0


@dataclass(frozen=True)
class CacheEntry:
    """A stored value with its bookkeeping. Replaced, never mutated."""

    key: str
    value: Any
    created_at: float
    ttl: float
    last_accessed_at: float
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass(frozen=True)
class CacheEntryInfo:
    key: str
    size: int
    age: float
    access_count: int


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache counters."""

    hits: int
    misses: int
    evictions: int
    size: int
    hit_rate: float
    entries: tuple[CacheEntryInfo, ...] = ()


class Cache:
    """TTL + LRU cache.

    Entries are kept in access order: the first entry of the ordered dict is
    always the least recently accessed one, so eviction is O(1).
    """

    def __init__(
        self,
        *,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        enable_metrics: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.enable_metrics = enable_metrics
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` on a miss.

        A hit refreshes the entry's access time and count, which changes
        future eviction order.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._record(hit=False)
            return None

        now = self._clock()
        if entry.is_expired(now):
            del self._entries[key]
            self._record(hit=False)
            return None

        self._entries[key] = CacheEntry(
            key=key,
            value=entry.value,
            created_at=entry.created_at,
            ttl=entry.ttl,
            last_accessed_at=now,
            access_count=entry.access_count + 1,
        )
        self._entries.move_to_end(key)
        self._record(hit=True)
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_lru()

        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            ttl=self.default_ttl if ttl is None else ttl,
            last_accessed_at=now,
        )
        self._entries.move_to_end(key)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        """Return True when *key* holds a live entry. Not counted as a hit."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False
        return True

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        self._prune_expired()
        return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def stats(self) -> CacheStats:
        self._prune_expired()
        now = self._clock()
        total = self._hits + self._misses
        entries = tuple(
            CacheEntryInfo(
                key=entry.key,
                size=_estimate_size(entry.value),
                age=now - entry.created_at,
                access_count=entry.access_count,
            )
            for entry in self._entries.values()
        )
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            size=len(self._entries),
            hit_rate=self._hits / total if total else 0.0,
            entries=entries,
        )

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        key, _ = self._entries.popitem(last=False)
        self._evictions += 1
        logger.debug("Evicted least recently used cache entry %r", key)

    def _prune_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

    def _record(self, *, hit: bool) -> None:
        if not self.enable_metrics:
            return
        if hit:
            self._hits += 1
        else:
            self._misses += 1


def _estimate_size(value: Any) -> int:
    try:
        return len(to_json(value))
    except (TypeError, ValueError):
        return 0
