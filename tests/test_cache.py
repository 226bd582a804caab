"""Tests for the TTL + LRU cache."""

from __future__ import annotations

import time

import pytest

from pattern_recommender.cache import Cache


def test_get_returns_stored_value_and_counts_hits(clock) -> None:
    cache = Cache(clock=clock)
    cache.set("a", [1.0, 2.0])

    assert cache.get("a") == [1.0, 2.0]
    assert cache.get("missing") is None

    stats = cache.stats()
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.hit_rate == pytest.approx(0.5)
    assert stats.size == 1


def test_expired_entry_is_a_miss_and_removed(clock) -> None:
    cache = Cache(clock=clock)
    cache.set("k", "v", ttl=0.05)

    clock.advance(0.06)

    assert cache.get("k") is None
    assert cache.has("k") is False
    assert cache.size() == 0
    assert cache.stats().misses == 1


def test_expiry_with_real_clock() -> None:
    cache = Cache()
    cache.set("k", "v", ttl=0.05)
    time.sleep(0.06)

    assert cache.get("k") is None
    assert not cache.has("k")


def test_entry_is_live_until_ttl_elapses(clock) -> None:
    cache = Cache(clock=clock, default_ttl=10)
    cache.set("k", "v")

    clock.advance(10)
    assert cache.has("k")

    clock.advance(0.001)
    assert not cache.has("k")


def test_has_does_not_count_towards_metrics(clock) -> None:
    cache = Cache(clock=clock)
    cache.set("k", "v")

    assert cache.has("k")
    assert not cache.has("other")

    stats = cache.stats()
    assert stats.hits == 0
    assert stats.misses == 0


def test_full_cache_evicts_least_recently_accessed_key(clock) -> None:
    cache = Cache(max_size=3, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    clock.advance(1)
    assert cache.get("a") == 1

    cache.set("d", 4)

    assert cache.has("a")
    assert not cache.has("b")
    assert cache.has("c")
    assert cache.has("d")
    assert cache.stats().evictions == 1


def test_replacing_existing_key_does_not_evict(clock) -> None:
    cache = Cache(max_size=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert cache.size() == 2
    assert cache.get("a") == 10
    assert cache.get("b") == 2
    assert cache.stats().evictions == 0


def test_set_replaces_whole_entry_and_resets_ttl(clock) -> None:
    cache = Cache(clock=clock)
    cache.set("k", "old", ttl=1)
    cache.get("k")

    clock.advance(0.9)
    cache.set("k", "new", ttl=1)
    clock.advance(0.9)

    assert cache.get("k") == "new"
    (entry,) = cache.stats().entries
    assert entry.access_count == 1


def test_delete_and_clear(clock) -> None:
    cache = Cache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.delete("a") is True
    assert cache.delete("a") is False
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_stats_prunes_expired_entries_and_estimates_sizes(clock) -> None:
    cache = Cache(clock=clock)
    cache.set("short", "x", ttl=1)
    cache.set("long", {"values": [1, 2, 3]}, ttl=100)
    cache.set("opaque", object(), ttl=100)

    clock.advance(2)
    stats = cache.stats()

    assert stats.size == 2
    sizes = {entry.key: entry.size for entry in stats.entries}
    assert sizes["long"] > 0
    assert sizes["opaque"] == 0


def test_disabled_metrics_keep_counters_at_zero(clock) -> None:
    cache = Cache(clock=clock, enable_metrics=False)
    cache.set("a", 1)
    cache.get("a")
    cache.get("b")

    stats = cache.stats()
    assert stats.hits == 0
    assert stats.misses == 0
    assert stats.hit_rate == 0.0


def test_rejects_non_positive_max_size() -> None:
    with pytest.raises(ValueError):
        Cache(max_size=0)
