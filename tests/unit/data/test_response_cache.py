"""Tests for the two-tier response cache.

Tests:
- Fresh/stale tiers
- Copy-on-read semantics
- Size-triggered eviction
- Statistics
"""

import threading

import pytest

from marketgate.core.clock import ManualClock
from marketgate.data.cache import CacheStats, ResponseCache
from marketgate.gateways.protocol import Quote


class TestCacheStats:
    """Tests for CacheStats."""

    def test_initial_stats(self) -> None:
        stats = CacheStats()

        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.stale_hits == 0
        assert stats.evictions == 0
        assert stats.hit_rate == 0.0

    def test_hit_rate_calculation(self) -> None:
        assert CacheStats(hits=80, misses=20).hit_rate == 0.8

    def test_reset(self) -> None:
        stats = CacheStats(hits=100, misses=50, evictions=3)
        stats.reset()

        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.evictions == 0


class TestResponseCacheTiers:
    """Tests for fresh and stale lookups."""

    def test_round_trip_within_fresh_ttl(self, cache: ResponseCache, clock: ManualClock) -> None:
        payload = {"AAPL": {"last_price": 190.0, "change": 2.0}}
        cache.put("quotes:AAPL", payload)
        clock.advance(29.9)

        assert cache.get("quotes:AAPL") == payload

    def test_missing_key(self, cache: ResponseCache) -> None:
        assert cache.get("nope") is None
        assert cache.get_stale("nope") is None

    def test_stale_window(self, cache: ResponseCache, clock: ManualClock) -> None:
        cache.put("quotes:SPY", [1, 2, 3])
        clock.advance(90)

        assert cache.get("quotes:SPY") is None
        assert cache.get_stale("quotes:SPY") == [1, 2, 3]

    def test_fresh_boundary_is_exclusive(self, cache: ResponseCache, clock: ManualClock) -> None:
        cache.put("k", 1)
        clock.advance(30)
        assert cache.get("k") is None

    def test_expired_after_stale_ttl(self, cache: ResponseCache, clock: ManualClock) -> None:
        cache.put("quotes:SPY", [1])
        clock.advance(300)

        assert cache.get("quotes:SPY") is None
        assert cache.get_stale("quotes:SPY") is None

    def test_overwrite_resets_age(self, cache: ResponseCache, clock: ManualClock) -> None:
        cache.put("k", {"v": 1})
        clock.advance(25)
        cache.put("k", {"v": 2})
        clock.advance(25)

        assert cache.get("k") == {"v": 2}
        assert cache.age("k") == 25

    def test_typed_decode(self, cache: ResponseCache) -> None:
        quote = Quote(symbol="AAPL", last_price=190.0, previous_close=188.0, change=2.0)
        cache.put("quotes:AAPL", {"AAPL": quote})

        result = cache.get("quotes:AAPL", type=dict[str, Quote])

        assert result == {"AAPL": quote}
        assert isinstance(result["AAPL"], Quote)

    def test_readers_get_copies(self, cache: ResponseCache) -> None:
        cache.put("k", {"items": [1, 2]})

        first = cache.get("k")
        first["items"].append(3)

        assert cache.get("k") == {"items": [1, 2]}

    def test_writer_mutation_does_not_leak(self, cache: ResponseCache) -> None:
        payload = {"items": [1]}
        cache.put("k", payload)
        payload["items"].append(2)

        assert cache.get("k") == {"items": [1]}

    def test_invalidate(self, cache: ResponseCache) -> None:
        cache.put("a", 1)

        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert cache.get_stale("a") is None

    def test_invalidate_prefix(self, cache: ResponseCache) -> None:
        cache.put("caller:u1:orders:all:50", [])
        cache.put("caller:u1:orders:open:50", [])
        cache.put("caller:u2:orders:all:50", [])

        assert cache.invalidate_prefix("caller:u1:orders") == 2
        assert cache.keys() == ["caller:u2:orders:all:50"]


class TestResponseCacheEviction:
    """Tests for size-triggered eviction."""

    def test_no_eviction_below_bound(self, clock: ManualClock) -> None:
        cache = ResponseCache(max_entries=3, clock=clock)
        cache.put("old", 1)
        clock.advance(400)
        cache.put("a", 1)
        cache.put("b", 1)

        assert len(cache) == 3
        assert "old" in cache

    def test_eviction_when_bound_exceeded(self, clock: ManualClock) -> None:
        cache = ResponseCache(max_entries=3, clock=clock)
        cache.put("old1", 1)
        cache.put("old2", 1)
        clock.advance(300)
        cache.put("new1", 1)
        cache.put("new2", 1)

        assert sorted(cache.keys()) == ["new1", "new2"]
        assert cache.stats.evictions == 2

    def test_eviction_keeps_stale_entries(self, clock: ManualClock) -> None:
        cache = ResponseCache(max_entries=2, clock=clock)
        cache.put("a", 1)
        clock.advance(100)
        cache.put("b", 1)
        cache.put("c", 1)

        assert len(cache) == 3
        assert cache.get_stale("a") == 1

    def test_evict_expired(self, cache: ResponseCache, clock: ManualClock) -> None:
        cache.put("a", 1)
        clock.advance(301)
        cache.put("b", 1)

        assert cache.evict_expired() == 1
        assert cache.keys() == ["b"]

    def test_clear(self, cache: ResponseCache) -> None:
        cache.put("a", 1)
        cache.clear()
        assert len(cache) == 0


class TestResponseCacheStats:
    """Tests for statistics tracking."""

    def test_counts(self, cache: ResponseCache, clock: ManualClock) -> None:
        cache.put("k", 1)
        cache.get("k")
        cache.get("missing")
        clock.advance(60)
        cache.get("k")
        cache.get_stale("k")

        stats = cache.stats
        assert stats.hits == 1
        assert stats.misses == 2
        assert stats.stale_hits == 1
        assert stats.size == 1
        assert stats.to_dict()["max_size"] == 200

    def test_stats_is_snapshot(self, cache: ResponseCache) -> None:
        snapshot = cache.stats
        cache.put("k", 1)
        cache.get("k")
        assert snapshot.hits == 0


class TestResponseCacheValidation:
    """Tests for constructor validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [{"fresh_ttl": 0}, {"fresh_ttl": 60, "stale_ttl": 30}, {"max_entries": 0}],
    )
    def test_invalid(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            ResponseCache(**kwargs)


class TestResponseCacheThreadSafety:
    """Concurrent writers and readers."""

    def test_concurrent_puts(self, clock: ManualClock) -> None:
        cache = ResponseCache(max_entries=1000, clock=clock)

        def writer(offset: int) -> None:
            for i in range(100):
                cache.put(f"k{offset + i}", i)
                cache.get(f"k{offset + i}")

        threads = [threading.Thread(target=writer, args=(n * 100,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 500
