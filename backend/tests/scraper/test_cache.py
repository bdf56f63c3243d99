import pytest

from scentbase.scraper.utils.cache import RecordCache


@pytest.fixture
def ttl_cache(fake_clock):
    return RecordCache(default_ttl=60, clock=fake_clock)


def test_cache_miss_returns_none(ttl_cache):
    """When key doesn't exist, get() returns None"""
    assert ttl_cache.get("non_existent_key") is None


def test_cache_set_and_get(ttl_cache):
    """After set(key, data), get(key) returns the data"""
    ttl_cache.set("https://example.com/p.html", {"name": "Sauvage"})
    assert ttl_cache.get("https://example.com/p.html") == {"name": "Sauvage"}


def test_entry_expires_after_ttl(ttl_cache, fake_clock):
    ttl_cache.set("key", "value")
    fake_clock.advance(59)
    assert ttl_cache.get("key") == "value"
    fake_clock.advance(1)
    assert ttl_cache.get("key") is None


def test_per_entry_ttl_overrides_default(ttl_cache, fake_clock):
    ttl_cache.set("short", "a", ttl=5)
    ttl_cache.set("long", "b")
    fake_clock.advance(10)
    assert ttl_cache.get("short") is None
    assert ttl_cache.get("long") == "b"


def test_stats_count_hits_misses_and_live_keys(ttl_cache, fake_clock):
    ttl_cache.set("a", 1)
    ttl_cache.set("b", 2, ttl=1)
    ttl_cache.get("a")
    ttl_cache.get("a")
    ttl_cache.get("missing")
    fake_clock.advance(2)

    stats = ttl_cache.stats()

    assert stats.hits == 2
    assert stats.misses == 1
    assert stats.keys == 1


def test_clear_drops_entries_and_counters(ttl_cache):
    ttl_cache.set("a", 1)
    ttl_cache.get("a")
    ttl_cache.get("b")

    ttl_cache.clear()

    assert ttl_cache.stats().model_dump() == {"hits": 0, "misses": 0, "keys": 0}
    assert ttl_cache.get("a") is None


def test_delete(ttl_cache):
    ttl_cache.set("a", 1)
    assert ttl_cache.delete("a") is True
    assert ttl_cache.delete("a") is False
