"""
Unit Tests for the TTL cache.

Expiry is driven by an injected clock, so nothing sleeps.
"""

import pytest

from crm.backend.core.cache import TTLCache


class TestTTLCacheExpiry:
    def test_value_available_before_ttl(self, fake_clock):
        cache = TTLCache(maxsize=4, ttl=60, clock=fake_clock)
        cache.set(1, "a")

        fake_clock.advance(59)

        assert cache.get(1) == "a"
        assert 1 in cache

    def test_value_expires_at_ttl(self, fake_clock):
        cache = TTLCache(maxsize=4, ttl=60, clock=fake_clock)
        cache.set(1, "a")

        fake_clock.advance(60)

        assert cache.get(1) is None
        assert 1 not in cache
        assert len(cache) == 0

    def test_get_returns_default_for_missing_key(self, fake_clock):
        cache = TTLCache(maxsize=4, ttl=60, clock=fake_clock)
        assert cache.get("missing", "fallback") == "fallback"

    def test_reading_does_not_extend_expiry(self, fake_clock):
        cache = TTLCache(maxsize=4, ttl=60, clock=fake_clock)
        cache.set(1, "a")

        fake_clock.advance(30)
        assert cache.get(1) == "a"
        fake_clock.advance(30)

        assert cache.get(1) is None

    def test_setting_again_restarts_expiry(self, fake_clock):
        cache = TTLCache(maxsize=4, ttl=60, clock=fake_clock)
        cache.set(1, "a")
        fake_clock.advance(50)
        cache.set(1, "b")
        fake_clock.advance(50)

        assert cache.get(1) == "b"


class TestTTLCacheEviction:
    def test_least_recently_used_is_evicted(self, fake_clock):
        cache = TTLCache(maxsize=2, ttl=60, clock=fake_clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")

        cache.set("c", 3)

        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_expired_entries_are_purged_before_evicting(self, fake_clock):
        cache = TTLCache(maxsize=2, ttl=60, clock=fake_clock)
        cache.set("old", 1)
        fake_clock.advance(30)
        cache.set("fresh", 2)
        fake_clock.advance(31)

        cache.set("new", 3)

        assert cache.get("fresh") == 2
        assert cache.get("new") == 3
        assert len(cache) == 2

    def test_pop_and_clear(self, fake_clock):
        cache = TTLCache(maxsize=4, ttl=60, clock=fake_clock)
        cache.set(1, "a")
        cache.set(2, "b")

        assert cache.pop(1) == "a"
        assert cache.pop(1) is None

        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize("maxsize,ttl", [(0, 60), (4, 0)])
    def test_invalid_bounds_rejected(self, maxsize, ttl):
        with pytest.raises(ValueError):
            TTLCache(maxsize=maxsize, ttl=ttl)
