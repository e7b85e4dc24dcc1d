"""Tests for the bounded TTL/LRU product cache."""

import threading
import time
from datetime import timedelta

import pytest

from utils.cache import BoundedTtlCache, InvalidTTLError, make_key, parse_ttl


def test_cache_miss_then_hit(cache):
    """Test that a missing key is reported, then found after set."""
    assert cache.get(1) is None
    cache.set(1, "value1")
    assert cache.get(1) == "value1"


def test_cache_get_miss_has_no_side_effect(cache):
    cache.set("a", 1)
    cache.get("missing")
    assert cache.get_stats().keys == ["a"]


def test_cache_capacity_bound(cache):
    """Test that inserting capacity + 1 keys evicts the least recently used."""
    for key in ("a", "b", "c", "d"):
        cache.set(key, key.upper())

    stats = cache.get_stats()
    assert stats.size == 3
    assert stats.keys == ["b", "c", "d"]
    assert cache.get("a") is None


def test_lru_recency_update(clock):
    """Test that a hit promotes the key so the other one is evicted."""
    cache = BoundedTtlCache(capacity=2, default_ttl=60, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.get("a") == 1
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_hit_updates_last_accessed(cache, clock):
    cache.set("a", 1)
    clock.advance(5)
    cache.get("a")
    assert cache._entries["a"].last_accessed == clock.now


def test_ttl_expiry_removes_entry(cache, clock):
    """Test that an expired entry is a miss and is dropped on read."""
    cache.set("k", "v", ttl=1)
    clock.advance(1.5)

    assert cache.get("k") is None
    assert "k" not in cache.get_stats().keys


def test_entry_live_until_expiry(cache, clock):
    cache.set("k", "v", ttl=10)
    clock.advance(10)
    assert cache.get("k") == "v"
    clock.advance(0.001)
    assert cache.get("k") is None


def test_ttl_expiry_real_clock():
    """Test expiry with the monotonic clock."""
    cache = BoundedTtlCache(capacity=10, default_ttl=60)
    cache.set("k", "v", ttl=timedelta(milliseconds=1))
    time.sleep(0.01)
    assert cache.get("k") is None
    assert cache.get_stats().size == 0


def test_default_ttl_applies(cache, clock):
    cache.set("k", "v")
    clock.advance(59)
    assert cache.get("k") == "v"
    clock.advance(2)
    assert cache.get("k") is None


def test_delete(cache):
    cache.set("k", "v")
    assert cache.delete("k") is True
    assert cache.get("k") is None


def test_delete_nonexistent(cache):
    """Test that deleting an absent key doesn't raise."""
    assert cache.delete("nonexistent") is False
    cache.set("k", "v")
    cache.delete("k")
    assert cache.delete("k") is False


def test_cache_clear(cache):
    cache.set("key1", "val1")
    cache.set("key2", "val2")
    cache.set("key3", "val3")

    assert cache.clear() == 3

    assert cache.get_stats().size == 0
    assert cache.get("key1") is None


def test_reinsert_resets_recency_and_value(cache):
    """Test that set on an existing key replaces it and makes it newest."""
    cache.set("k", "v1")
    cache.set("x", 1)
    cache.set("y", 2)

    cache.set("k", "v2")
    assert cache.get_stats().size == 3

    cache.set("z", 3)  # forces an eviction

    stats = cache.get_stats()
    assert "x" not in stats.keys
    assert stats.keys == ["y", "k", "z"]
    assert cache.get("k") == "v2"


def test_reinsert_refreshes_expiry(cache, clock):
    cache.set("k", "v1", ttl=10)
    clock.advance(8)
    cache.set("k", "v2", ttl=10)
    clock.advance(8)
    assert cache.get("k") == "v2"


def test_cleanup_removes_only_expired(cache, clock):
    cache.set("short", "s", ttl=1)
    cache.set("long", "l", ttl="1h")
    clock.advance(2)

    assert cache.cleanup() == 1

    stats = cache.get_stats()
    assert stats.keys == ["long"]
    assert cache.get("long") == "l"


def test_cleanup_nothing_expired(cache):
    cache.set("k", "v")
    assert cache.cleanup() == 0
    assert len(cache) == 1


def test_expired_entries_linger_until_cleanup(cache, clock):
    cache.set("k", "v", ttl=1)
    clock.advance(5)
    assert len(cache) == 1
    cache.cleanup()
    assert len(cache) == 0


def test_get_stats(cache):
    empty = cache.get_stats()
    assert empty.size == 0
    assert empty.capacity == 3
    assert empty.oldest_key is None
    assert empty.newest_key is None

    cache.set(1, "a")
    cache.set(2, "b")
    cache.get(1)

    stats = cache.get_stats()
    assert stats.keys == ["2", "1"]
    assert stats.oldest_key == "2"
    assert stats.newest_key == "1"


def test_get_stats_does_not_change_order(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get_stats()
    cache.set("c", 3)
    cache.set("d", 4)
    assert cache.get("a") is None


def test_unbounded_cache_never_evicts(clock):
    cache = BoundedTtlCache(capacity=None, default_ttl=60, clock=clock)
    for i in range(500):
        cache.set(i, i)

    stats = cache.get_stats()
    assert stats.size == 500
    assert stats.capacity is None
    assert cache.get(0) == 0


def test_capacity_one(clock):
    cache = BoundedTtlCache(capacity=1, default_ttl=60, clock=clock)
    cache.set("key1", "value1")
    cache.set("key2", "value2")

    assert cache.get("key1") is None
    assert cache.get("key2") == "value2"


@pytest.mark.parametrize("capacity", [0, -1])
def test_invalid_capacity(capacity):
    with pytest.raises(ValueError):
        BoundedTtlCache(capacity=capacity)


def test_int_and_str_keys_share_entry(cache):
    cache.set(42, "product")
    assert cache.get("42") == "product"
    assert cache.get(" 42 ") == "product"

    cache.set("42", "updated")
    assert cache.get_stats().size == 1
    assert cache.get(42) == "updated"

    cache.delete("42")
    assert cache.get(42) is None


def test_different_value_types(cache):
    cache.set("int", 42)
    cache.set("list", [1, 2, 3])
    cache.set("dict", {"a": 1})

    assert cache.get("int") == 42
    assert cache.get("list") == [1, 2, 3]
    assert cache.get("dict") == {"a": 1}


def test_set_returns_same_object(cache):
    value = {"id": 1}
    cache.set(1, value)
    assert cache.get(1) is value


@pytest.mark.parametrize("ttl, expected", [
    ("30m", timedelta(minutes=30)),
    ("1h", timedelta(hours=1)),
    (90, timedelta(seconds=90)),
    (0.5, timedelta(milliseconds=500)),
    (timedelta(minutes=2), timedelta(minutes=2)),
    (None, None),
])
def test_parse_ttl(ttl, expected):
    assert parse_ttl(ttl) == expected


@pytest.mark.parametrize("ttl", [
    "30s", "1d", "abc", "m", "", "-5m", "0m", 0, -1, timedelta(0), True, [1],
    float("inf"), float("-inf"), float("nan"), 10**20, "99999999999999999999m",
])
def test_parse_ttl_rejects_invalid(ttl):
    with pytest.raises(InvalidTTLError):
        parse_ttl(ttl)


def test_set_with_malformed_ttl_inserts_nothing(cache):
    with pytest.raises(InvalidTTLError):
        cache.set("k", "v", ttl="10x")
    assert cache.get_stats().size == 0


def test_set_with_malformed_ttl_keeps_existing_entry(cache):
    cache.set("k", "v")
    with pytest.raises(InvalidTTLError):
        cache.set("k", "v2", ttl="forever")
    assert cache.get("k") == "v"


def test_string_ttl_expiry(cache, clock):
    cache.set("k", "v", ttl="30m")
    clock.advance(29 * 60)
    assert cache.get("k") == "v"
    clock.advance(2 * 60)
    assert cache.get("k") is None


def test_invalid_default_ttl():
    with pytest.raises(InvalidTTLError):
        BoundedTtlCache(default_ttl="forever")


@pytest.mark.parametrize("identifier, expected", [
    (42, "42"),
    ("42", "42"),
    (" 42 ", "42"),
    ("sku-1", "sku-1"),
])
def test_make_key(identifier, expected):
    assert make_key(identifier) == expected


@pytest.mark.parametrize("identifier", [True, "", "   "])
def test_make_key_rejects_invalid(identifier):
    with pytest.raises(ValueError):
        make_key(identifier)


def test_set_if_unchanged_stores_when_untouched(cache):
    generation = cache.generation()
    cache.set("other", 1)
    assert cache.set_if_unchanged("k", "v", generation) is True
    assert cache.get("k") == "v"


def test_set_if_unchanged_skips_after_delete(cache):
    """Test that a key deleted after the generation was taken is not rewritten."""
    generation = cache.generation()
    cache.delete(42)
    assert cache.set_if_unchanged("42", "old", generation) is False
    assert cache.get(42) is None


def test_set_if_unchanged_ignores_other_keys(cache):
    generation = cache.generation()
    cache.delete("other")
    assert cache.set_if_unchanged("k", "v", generation) is True


def test_set_if_unchanged_skips_after_clear(cache):
    generation = cache.generation()
    cache.clear()
    assert cache.set_if_unchanged("k", "v", generation) is False
    assert cache.get("k") is None

    assert cache.set_if_unchanged("k", "v", cache.generation()) is True


def test_concurrent_access_keeps_capacity():
    """Test that parallel set/get from many threads never overfills the cache."""
    cache = BoundedTtlCache(capacity=10, default_ttl=60)
    errors = []

    def worker(offset):
        try:
            for i in range(500):
                key = (offset * 7 + i) % 40
                cache.set(key, i)
                cache.get(key)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    stats = cache.get_stats()
    assert stats.size == 10
    assert len(set(stats.keys)) == stats.size
