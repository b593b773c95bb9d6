"""
Cache Strategy Tests

Covers the cache implementations behind memoize:
1. LRU recency ordering, capacity and O(1) link maintenance
2. TTL lazy expiry, sweeping and soonest-expiry eviction
3. Map and weak-keyed caches
4. Statistics semantics shared by every strategy
5. Strategy selection through create_cache

Copyright (c) 2026 Momentum. All rights reserved.
"""

import gc
import threading

import pytest

from memokit.cache import (
    CacheStats,
    CacheStrategy,
    LRUCache,
    MapCache,
    TTLCache,
    WeakCache,
    create_cache,
)
from memokit.errors import CacheConfigError, MemokitError


def _assert_chain(cache):
    """Walk the LRU list both ways and check it matches the index."""
    forward = []
    node = cache._head
    prev = None
    while node is not None:
        assert node.prev is prev
        forward.append(node)
        prev = node
        node = node.next
    assert prev is cache._tail
    assert set(map(id, forward)) == set(map(id, cache._cache.values()))
    if not cache._cache:
        assert cache._head is None and cache._tail is None


# =============================================================================
# STATISTICS
# =============================================================================

class TestCacheStats:
    """Derived statistics."""

    def test_hit_ratio(self):
        stats = CacheStats(hits=3, misses=1, evictions=0, size=2)
        assert stats.total_requests == 4
        assert stats.hit_ratio == 0.75

    def test_hit_ratio_without_requests(self):
        assert CacheStats().hit_ratio == 0.0

    def test_to_dict(self):
        d = CacheStats(hits=1, misses=2, evictions=3, size=4).to_dict()
        assert d == {"hits": 1, "misses": 2, "evictions": 3, "size": 4, "hit_ratio": 0.3333}


# =============================================================================
# LRU CACHE
# =============================================================================

class TestLRUCache:
    """Least-recently-used eviction."""

    def test_get_set(self):
        cache = LRUCache(max_size=3)
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.get("missing") is None
        assert cache.get("missing", "dflt") == "dflt"

    def test_eviction_order_with_promotion(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a") == 1
        cache.set("c", 3)

        assert cache.has("a")
        assert not cache.has("b")
        assert cache.has("c")
        assert cache.get_stats() == CacheStats(hits=1, misses=0, evictions=1, size=2)

    def test_oldest_evicted_first(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert not cache.has("a")
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert cache.get_stats().evictions == 1

    def test_capacity_never_exceeded(self):
        cache = LRUCache(max_size=5)
        for i in range(50):
            cache.set(i, i)
            assert len(cache) <= 5
            _assert_chain(cache)
        assert cache.keys() == [49, 48, 47, 46, 45]
        assert cache.get_stats().evictions == 45

    def test_single_slot(self):
        cache = LRUCache(max_size=1)
        cache.set("a", 1)
        cache.set("b", 2)
        assert not cache.has("a")
        assert cache.get("b") == 2
        _assert_chain(cache)

    def test_replace_promotes_without_eviction(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert len(cache) == 2
        assert cache.get_stats().evictions == 0
        assert cache.keys() == ["a", "b"]

        cache.set("c", 3)
        assert not cache.has("b")
        assert cache.peek("a") == 10

    def test_has_does_not_touch_stats_or_recency(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.has("a")
        assert "b" in cache
        assert not cache.has("zzz")
        assert cache.get_stats().hits == 0
        assert cache.get_stats().misses == 0

        cache.set("c", 3)
        assert not cache.has("a")

    def test_peek_does_not_promote(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.peek("a") == 1
        cache.set("c", 3)
        assert not cache.has("a")
        assert cache.get_stats().hits == 0

    def test_delete_head_tail_and_middle(self):
        cache = LRUCache(max_size=5)
        for key in "abcde":
            cache.set(key, key)

        assert cache.delete("e")  # head
        _assert_chain(cache)
        assert cache.delete("a")  # tail
        _assert_chain(cache)
        assert cache.delete("c")  # middle
        _assert_chain(cache)
        assert cache.keys() == ["d", "b"]

        assert not cache.delete("c")

    def test_delete_last_entry_clears_endpoints(self):
        cache = LRUCache(max_size=2)
        cache.set("only", 1)
        assert cache.delete("only")
        assert cache._head is None
        assert cache._tail is None
        cache.set("again", 2)
        assert cache.keys() == ["again"]

    def test_clear_keeps_stats(self):
        cache = LRUCache(max_size=1)
        cache.set("a", 1)
        cache.get("a")
        cache.set("b", 2)
        cache.clear()

        assert len(cache) == 0
        _assert_chain(cache)
        assert cache.get_stats() == CacheStats(hits=1, misses=0, evictions=1, size=0)

    def test_reset_stats_keeps_entries(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        cache.reset_stats()

        assert cache.get_stats() == CacheStats(hits=0, misses=0, evictions=0, size=1)
        assert cache.get("a") == 1

    def test_stored_none_is_a_hit(self):
        cache = LRUCache(max_size=2)
        cache.set("n", None)
        assert cache.get("n") is None
        assert cache.has("n")
        assert cache.get_stats().hits == 1

    @pytest.mark.parametrize("bad", [0, -1, 1.5, "3", True, None])
    def test_invalid_max_size(self, bad):
        with pytest.raises(CacheConfigError) as exc:
            LRUCache(max_size=bad)
        assert exc.value.field == "max_size"

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            LRUCache(max_size=0)
        with pytest.raises(MemokitError):
            LRUCache(max_size=0)

    def test_concurrent_writers_keep_chain_valid(self):
        cache = LRUCache(max_size=16)

        def writer(offset):
            for i in range(500):
                cache.set(offset + i % 40, i)
                cache.get(offset + (i * 7) % 40)

        threads = [threading.Thread(target=writer, args=(n * 100,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 16
        _assert_chain(cache)


# =============================================================================
# TTL CACHE
# =============================================================================

class TestTTLCache:
    """Time-to-live expiry on a virtual clock."""

    def test_value_lives_until_deadline(self, clock):
        cache = TTLCache(ttl=1_000, clock=clock)
        cache.set("k", "v")

        clock.advance(1_000)
        assert cache.get("k") == "v"

        clock.advance(1)
        assert cache.get("k") is None

        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.evictions == 1
        assert len(cache) == 0

    def test_has_expires_without_counting_a_miss(self, clock):
        cache = TTLCache(ttl=10, clock=clock)
        cache.set("k", 1)
        clock.advance(11)

        assert not cache.has("k")
        stats = cache.get_stats()
        assert stats.misses == 0
        assert stats.evictions == 1

    def test_zero_ttl_expires_on_next_access(self, ticking_clock):
        cache = TTLCache(ttl=0, clock=ticking_clock)
        cache.set("k", 1)
        assert cache.get("k") is None
        assert cache.get_stats().evictions == 1

    def test_zero_ttl_with_default_clock(self):
        cache = TTLCache(ttl=0)
        cache.set("x", 1)
        assert cache.get("x") is None
        assert not cache.has("x")

    def test_reset_refreshes_deadline(self, clock):
        cache = TTLCache(ttl=100, clock=clock)
        cache.set("k", 1)
        clock.advance(80)
        cache.set("k", 2)
        clock.advance(80)
        assert cache.get("k") == 2

    def test_size_excludes_expired_entries(self, clock):
        cache = TTLCache(ttl=100, clock=clock)
        cache.set("old", 1)
        clock.advance(60)
        cache.set("new", 2)
        clock.advance(60)

        assert cache.get_stats().size == 1
        assert len(cache) == 2  # not yet removed

    def test_max_size_evicts_soonest_expiring(self, clock):
        cache = TTLCache(ttl=100, max_size=2, clock=clock)
        cache.set("first", 1)
        clock.advance(10)
        cache.set("second", 2)
        clock.advance(10)
        cache.set("first", 1)  # refresh: "second" now expires soonest
        cache.set("third", 3)

        assert cache.has("first")
        assert not cache.has("second")
        assert cache.has("third")
        assert cache.get_stats().evictions == 1

    def test_replacing_key_at_capacity_does_not_evict(self, clock):
        cache = TTLCache(ttl=100, max_size=1, clock=clock)
        cache.set("a", 1)
        cache.set("a", 2)
        assert cache.get("a") == 2
        assert cache.get_stats().evictions == 0

    def test_sweep_every_interval(self, clock):
        cache = TTLCache(ttl=50, clock=clock)
        for i in range(99):
            cache.set(i, i)
        clock.advance(100)
        cache.set("fresh-1", 1)

        # 100 stored entries: the next set sweeps every expired one
        assert len(cache) == 100
        cache.set("fresh-2", 2)
        assert len(cache) == 2
        assert cache.get_stats().evictions == 99

    def test_custom_sweep_interval(self, clock):
        cache = TTLCache(ttl=5, clock=clock, sweep_interval=2)
        cache.set("a", 1)
        cache.set("b", 2)
        clock.advance(10)
        cache.set("c", 3)
        assert len(cache) == 1

    def test_remaining_ttl(self, clock):
        cache = TTLCache(ttl=100, clock=clock)
        cache.set("k", 1)
        clock.advance(30)
        assert cache.remaining_ttl("k") == 70
        clock.advance(71)
        assert cache.remaining_ttl("k") is None
        assert cache.remaining_ttl("absent") is None

    def test_delete_and_clear_keep_stats(self, clock):
        cache = TTLCache(ttl=100, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")

        assert cache.delete("a")
        assert not cache.delete("a")
        cache.clear()
        assert cache.get_stats() == CacheStats(hits=1, misses=0, evictions=0, size=0)

    def test_default_clock_is_monotonic(self):
        cache = TTLCache(ttl=60_000)
        cache.set("k", 1)
        assert cache.get("k") == 1
        assert 0 < cache.remaining_ttl("k") <= 60_000

    @pytest.mark.parametrize("ttl", [-1, -0.5, "10", None, True])
    def test_invalid_ttl(self, ttl):
        with pytest.raises(CacheConfigError) as exc:
            TTLCache(ttl=ttl)
        assert exc.value.field == "ttl"

    @pytest.mark.parametrize("max_size", [0, -3, 2.5])
    def test_invalid_max_size(self, max_size):
        with pytest.raises(CacheConfigError) as exc:
            TTLCache(ttl=10, max_size=max_size)
        assert exc.value.field == "max_size"

    def test_invalid_sweep_interval(self):
        with pytest.raises(CacheConfigError):
            TTLCache(ttl=10, sweep_interval=0)


# =============================================================================
# MAP AND WEAK CACHES
# =============================================================================

class TestMapCache:
    """Unbounded dictionary cache."""

    def test_never_evicts(self):
        cache = MapCache()
        for i in range(1_000):
            cache.set(i, i)
        assert len(cache) == 1_000
        assert cache.get_stats().evictions == 0

    def test_stats(self):
        cache = MapCache()
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        assert cache.has("a")
        assert cache.get_stats() == CacheStats(hits=1, misses=1, evictions=0, size=1)

    def test_delete(self):
        cache = MapCache()
        cache.set("a", 1)
        assert cache.delete("a")
        assert not cache.delete("a")


class TestWeakCache:
    """Entries follow the lifetime of their key objects."""

    def test_entry_dropped_with_key(self):
        class Key:
            pass

        cache = WeakCache()
        key = Key()
        cache.set(key, "value")
        assert cache.get(key) == "value"
        assert len(cache) == 1

        del key
        gc.collect()
        assert len(cache) == 0

    def test_unreferenceable_key_is_a_miss(self):
        cache = WeakCache()
        assert cache.get("plain string") is None
        assert not cache.has(42)
        assert not cache.delete(42)
        assert cache.get_stats().misses == 1

    def test_set_rejects_unreferenceable_key(self):
        with pytest.raises(TypeError):
            WeakCache().set(42, "value")


# =============================================================================
# STRATEGY SELECTION
# =============================================================================

class TestCreateCache:
    """Strategy names map to cache types; missing options fail fast."""

    def test_default_is_map(self):
        assert isinstance(create_cache(), MapCache)

    def test_by_name_and_enum(self):
        assert isinstance(create_cache("lru", max_size=3), LRUCache)
        assert isinstance(create_cache(CacheStrategy.TTL, ttl=5), TTLCache)

    def test_ttl_with_max_size(self):
        cache = create_cache("ttl", ttl=5, max_size=10)
        assert cache.max_size == 10

    def test_lru_requires_max_size(self):
        with pytest.raises(CacheConfigError) as exc:
            create_cache("lru")
        assert exc.value.field == "max_size"

    def test_ttl_requires_ttl(self):
        with pytest.raises(CacheConfigError) as exc:
            create_cache("ttl")
        assert exc.value.field == "ttl"

    def test_unknown_strategy(self):
        with pytest.raises(CacheConfigError) as exc:
            create_cache("fifo")
        assert exc.value.field == "strategy"
        assert exc.value.value == "fifo"


@pytest.mark.perf
class TestCachePerformance:
    """Throughput sanity checks (MEMOKIT_RUN_PERF=1)."""

    def test_lru_operations_do_not_scale_with_size(self):
        import time

        def churn(size):
            cache = LRUCache(max_size=size)
            for i in range(size):
                cache.set(i, i)
            start = time.perf_counter()
            for i in range(20_000):
                cache.get(i % size)
                cache.set(size + i, i)
            return time.perf_counter() - start

        small = churn(100)
        large = churn(100_000)
        assert large < small * 5
