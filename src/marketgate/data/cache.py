"""
Response Cache: two-tier TTL store for normalized provider responses.

Provides:
- Fresh tier: entries younger than ``fresh_ttl`` are served as-is
- Stale tier: entries younger than ``stale_ttl`` back up failed upstream calls
- Size-triggered eviction of entries older than ``stale_ttl``
- Hit/miss statistics

Payloads are stored msgspec-encoded, so every reader decodes its own copy
and no caller can mutate another caller's data.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, TypeVar

import msgspec

from marketgate.core.clock import Clock, LiveClock


logger = logging.getLogger(__name__)


T = TypeVar("T")

DEFAULT_FRESH_TTL = 30.0
DEFAULT_STALE_TTL = 300.0
DEFAULT_MAX_ENTRIES = 200


# =============================================================================
# Cache Statistics
# =============================================================================


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Fresh hits over all fresh lookups (0.0 to 1.0)."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def reset(self) -> None:
        """Reset counters (size is left alone)."""
        self.hits = 0
        self.stale_hits = 0
        self.misses = 0
        self.evictions = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "stale_hits": self.stale_hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": round(self.hit_rate, 4),
        }


# =============================================================================
# Cache Entry
# =============================================================================


@dataclass(slots=True)
class CacheEntry:
    """Single cache entry: encoded payload plus write time."""

    key: str
    payload: bytes
    written_at: float

    def age(self, now: float) -> float:
        return now - self.written_at


# =============================================================================
# Response Cache
# =============================================================================


class ResponseCache:
    """
    Thread-safe two-tier TTL cache.

    Example:
        cache = ResponseCache(clock=ManualClock())
        cache.put("quotes:AAPL", {"AAPL": quote})
        cache.get("quotes:AAPL")            # fresh copy or None
        cache.get_stale("quotes:AAPL")      # copy while younger than stale_ttl
    """

    def __init__(
        self,
        fresh_ttl: float = DEFAULT_FRESH_TTL,
        stale_ttl: float = DEFAULT_STALE_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize cache.

        Args:
            fresh_ttl: Seconds an entry is served without contacting a provider
            stale_ttl: Seconds an entry may back up a failed provider call
            max_entries: Size above which expired entries are evicted
            clock: Time source (defaults to LiveClock)
        """
        if fresh_ttl <= 0:
            raise ValueError("fresh_ttl must be positive")
        if stale_ttl < fresh_ttl:
            raise ValueError("stale_ttl must not be shorter than fresh_ttl")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self._fresh_ttl = fresh_ttl
        self._stale_ttl = stale_ttl
        self._max_entries = max_entries
        self._clock = clock or LiveClock()
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats(max_size=max_entries)
        self._encoder = msgspec.json.Encoder()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def fresh_ttl(self) -> float:
        return self._fresh_ttl

    @property
    def stale_ttl(self) -> float:
        return self._stale_ttl

    @property
    def stats(self) -> CacheStats:
        """Snapshot of current statistics."""
        with self._lock:
            self._stats.size = len(self._entries)
            return CacheStats(**vars(self._stats))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    # =========================================================================
    # Operations
    # =========================================================================

    def get(self, key: str, type: type[T] | Any = Any) -> T | None:
        """
        Fresh lookup.

        Args:
            key: Cache key
            type: Type to decode the payload into (default: plain JSON types)

        Returns:
            A private copy of the payload, or None when absent or not fresh
        """
        now = self._clock.now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.age(now) >= self._fresh_ttl:
                self._stats.misses += 1
                return None
            self._stats.hits += 1
            raw = entry.payload

        logger.debug("Cache hit: %s", key)
        return msgspec.json.decode(raw, type=type)

    def get_stale(self, key: str, type: type[T] | Any = Any) -> T | None:
        """
        Stale-tolerant lookup.

        Returns the payload when the entry is younger than ``stale_ttl``,
        fresh or not.
        """
        now = self._clock.now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.age(now) >= self._stale_ttl:
                return None
            self._stats.stale_hits += 1
            raw = entry.payload

        return msgspec.json.decode(raw, type=type)

    def age(self, key: str) -> float | None:
        """Seconds since ``key`` was written, or None."""
        now = self._clock.now()
        with self._lock:
            entry = self._entries.get(key)
            return None if entry is None else entry.age(now)

    def put(self, key: str, payload: Any) -> None:
        """
        Store ``payload`` under ``key``, replacing any previous entry.

        When the store grows past ``max_entries``, every entry older than
        ``stale_ttl`` is evicted before returning.
        """
        raw = self._encoder.encode(payload)
        now = self._clock.now()
        with self._lock:
            self._entries[key] = CacheEntry(key=key, payload=raw, written_at=now)
            if len(self._entries) > self._max_entries:
                evicted = self._evict_locked(now)
            else:
                evicted = 0

        if evicted:
            logger.debug("Evicted %d expired cache entries", evicted)

    def invalidate(self, key: str) -> bool:
        """Drop ``key``. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def evict_expired(self) -> int:
        """Remove entries older than ``stale_ttl`` regardless of size."""
        now = self._clock.now()
        with self._lock:
            return self._evict_locked(now)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    # =========================================================================
    # Internal
    # =========================================================================

    def _evict_locked(self, now: float) -> int:
        doomed = [k for k, e in self._entries.items() if e.age(now) >= self._stale_ttl]
        for k in doomed:
            del self._entries[k]
        self._stats.evictions += len(doomed)
        return len(doomed)
