"""
tests/core/tools/cache/test_ttl_cache.py - TTL 캐시 테스트
"""

import threading

import pytest

from core.tools.cache import DEFAULT_TTL, TTLCache, get_cache, reset_cache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(default_ttl=60, clock=clock)


class TestTTLCache:
    """TTLCache 기본 동작"""

    def test_default_ttl(self):
        assert DEFAULT_TTL == 300.0
        assert TTLCache().default_ttl == 300.0

    def test_set_then_get(self, cache):
        cache.set("k", ["a"], ttl=10)
        assert cache.get("k", list) == (["a"], True)

    def test_missing_key(self, cache):
        assert cache.get("missing", str) == (None, False)
        assert cache.stats.misses == 1

    def test_expiry(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(9)
        assert cache.get("k", str) == ("v", True)
        clock.advance(1)
        assert cache.get("k", str) == (None, False)
        assert cache.stats.evictions == 1

    def test_default_ttl_used(self, cache, clock):
        cache.set("k", 1)
        clock.advance(59)
        assert cache.get("k", int) == (1, True)
        clock.advance(1)
        assert cache.get("k", int) == (None, False)

    def test_type_mismatch_is_miss(self, cache, caplog):
        cache.set("k", "a string")
        with caplog.at_level("WARNING"):
            assert cache.get("k", list) == (None, False)
        assert cache.stats.mismatches == 1
        assert cache.stats.misses == 1
        assert "타입 불일치" in caplog.text

    def test_tuple_expected_type(self, cache):
        cache.set("k", (1, 2))
        assert cache.get("k", (list, tuple)) == ((1, 2), True)

    def test_overwrite(self, cache):
        cache.set("k", 1)
        cache.set("k", 2)
        assert cache.get("k", int) == (2, True)
        assert cache.stats.sets == 2

    def test_len_counts_live_entries(self, cache, clock):
        cache.set("short", 1, ttl=5)
        cache.set("long", 2, ttl=50)
        assert len(cache) == 2
        clock.advance(10)
        assert len(cache) == 1

    def test_purge_expired(self, cache, clock):
        cache.set("a", 1, ttl=5)
        cache.set("b", 2, ttl=5)
        cache.set("c", 3, ttl=50)
        clock.advance(10)
        assert cache.purge_expired() == 2
        assert cache.get("c", int) == (3, True)
        assert cache.purge_expired() == 0

    def test_delete_and_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        cache.delete("nonexistent")
        assert cache.get("a", int) == (None, False)
        cache.clear()
        assert len(cache) == 0

    def test_hit_rate(self, cache):
        cache.set("k", 1)
        cache.get("k", int)
        cache.get("x", int)
        assert cache.stats.hit_rate == 0.5
        assert "hit_rate=50.0%" in cache.stats.summary()


class TestGetOrFetch:
    """get_or_fetch 테스트"""

    def test_fetch_on_miss(self, cache):
        calls = []

        def fetch():
            calls.append(1)
            return ("acct",)

        assert cache.get_or_fetch("k", tuple, fetch) == ("acct",)
        assert cache.get_or_fetch("k", tuple, fetch) == ("acct",)
        assert len(calls) == 1

    def test_fetch_again_after_expiry(self, cache, clock):
        values = iter(["first", "second"])
        cache.get_or_fetch("k", str, lambda: next(values), ttl=5)
        clock.advance(5)
        assert cache.get_or_fetch("k", str, lambda: next(values)) == "second"

    def test_fetch_error_leaves_cache_unchanged(self, cache):
        def fetch():
            raise RuntimeError("remote failed")

        with pytest.raises(RuntimeError):
            cache.get_or_fetch("k", str, fetch)
        assert cache.get("k", str) == (None, False)

    def test_mismatch_refetches(self, cache):
        cache.set("k", "stale string")
        assert cache.get_or_fetch("k", list, lambda: [1]) == [1]
        assert cache.get("k", list) == ([1], True)


class TestGlobalCache:
    """전역 캐시 테스트"""

    def test_singleton(self):
        assert get_cache() is get_cache()

    def test_reset(self):
        first = get_cache()
        first.set("k", 1)
        reset_cache()
        assert get_cache() is not first
        assert get_cache().get("k", int) == (None, False)

    def test_concurrent_access(self):
        cache = get_cache()
        errors = []

        def worker(n):
            try:
                for i in range(200):
                    cache.set(f"k{n}-{i}", i)
                    cache.get(f"k{n}-{i}", int)
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache) == 1600
        assert cache.stats.hits == 1600
