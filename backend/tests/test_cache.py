# Overview: Pytest coverage for the in-memory TTL cache and report caching.

import pytest

from bms import create_app
from bms.cache import Cache, InMemoryTTLCache
from bms.config import TestingConfig
from bms.services import reporting_service

from conftest import FakeClock, make_invoice


@pytest.fixture
def fake_clock():
    return FakeClock(start=0.0)


@pytest.fixture
def ttl_cache(fake_clock):
    return InMemoryTTLCache(default_ttl=10, max_entries=3, clock=fake_clock)


class TestInMemoryTTLCache:
    def test_get_set(self, ttl_cache):
        assert ttl_cache.get("missing") is None
        ttl_cache.set("a", {"n": 1})
        assert ttl_cache.get("a") == {"n": 1}

    def test_expiry_is_lazy(self, ttl_cache, fake_clock):
        ttl_cache.set("a", 1)
        fake_clock.advance(9.9)
        assert ttl_cache.get("a") == 1
        fake_clock.advance(0.1)
        assert ttl_cache.get("a") is None
        assert len(ttl_cache) == 0

    def test_per_entry_ttl(self, ttl_cache, fake_clock):
        ttl_cache.set("short", 1, ttl=1)
        ttl_cache.set("long", 2, ttl=100)
        fake_clock.advance(5)
        assert ttl_cache.get("short") is None
        assert ttl_cache.get("long") == 2

    def test_overflow_sweeps_only_expired(self, ttl_cache, fake_clock):
        ttl_cache.set("old", 1, ttl=1)
        ttl_cache.set("b", 2)
        ttl_cache.set("c", 3)
        fake_clock.advance(2)

        ttl_cache.set("d", 4)  # over max_entries: sweep removes "old"
        assert len(ttl_cache) == 3
        assert ttl_cache.get("b") == 2

    def test_live_entries_are_never_evicted(self, ttl_cache):
        for key in "abcde":
            ttl_cache.set(key, key)
        assert len(ttl_cache) == 5
        assert all(ttl_cache.get(key) == key for key in "abcde")

    def test_delete_and_prefix(self, ttl_cache):
        ttl_cache.set("reports:1", 1)
        ttl_cache.set("reports:2", 2)
        ttl_cache.set("other", 3)
        ttl_cache.delete("other")
        ttl_cache.delete("never-there")
        assert ttl_cache.delete_prefix("reports:") == 2
        assert len(ttl_cache) == 0

    def test_stats(self, ttl_cache, fake_clock):
        ttl_cache.set("a", 1, ttl=1)
        ttl_cache.set("b", 2)
        fake_clock.advance(1)
        assert ttl_cache.stats() == {"total": 2, "active": 1, "expired": 1}
        assert ttl_cache.sweep() == 1
        ttl_cache.clear()
        assert ttl_cache.stats()["total"] == 0

    @pytest.mark.parametrize("kwargs", [{"default_ttl": 0}, {"max_entries": 0}])
    def test_bad_arguments(self, kwargs):
        with pytest.raises(ValueError):
            InMemoryTTLCache(**kwargs)


class RecordingCache(Cache):
    """Minimal alternative backend."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ttl=None):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def clear(self):
        self.data.clear()


class TestInjection:
    def test_factory_uses_injected_cache(self):
        cache = RecordingCache()
        app = create_app(TestingConfig, cache=cache)
        assert app.extensions["bms_cache"] is cache

    def test_factory_default_cache_from_config(self):
        app = create_app(TestingConfig, overrides={"CACHE_DEFAULT_TTL": 42, "CACHE_MAX_ENTRIES": 7})
        cache = app.extensions["bms_cache"]
        assert isinstance(cache, InMemoryTTLCache)
        assert (cache.default_ttl, cache.max_entries) == (42, 7)


class TestDashboardCache:
    def test_second_read_is_cached(self, company_a):
        first = reporting_service.get_dashboard(company_a.id)
        second = reporting_service.get_dashboard(company_a.id)
        assert first["cached"] is False
        assert second["cached"] is True

    def test_entry_expires(self, company_a, clock, app):
        reporting_service.get_dashboard(company_a.id)
        clock.advance(app.config["REPORT_CACHE_TTL"] + 1)
        assert reporting_service.get_dashboard(company_a.id)["cached"] is False

    def test_invoice_write_invalidates(self, company_a, admin_a, customer_a, item_a):
        assert reporting_service.get_dashboard(company_a.id)["invoice_count"] == 0
        make_invoice(company_a, admin_a, customer_a, item_a)
        fresh = reporting_service.get_dashboard(company_a.id)
        assert fresh["cached"] is False
        assert fresh["invoice_count"] == 1

    def test_companies_are_cached_separately(self, company_a, company_b, admin_b, customer_b, item_b):
        reporting_service.get_dashboard(company_a.id)
        make_invoice(company_b, admin_b, customer_b, item_b)
        assert reporting_service.get_dashboard(company_a.id)["cached"] is True
        assert reporting_service.get_dashboard(company_b.id)["invoice_count"] == 1
