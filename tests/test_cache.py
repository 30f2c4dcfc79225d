"""
Tests for the caching layer.

These tests verify:
- TTL constants and configuration
- ETag generation and conditional requests
- Memory and database layers of AnalysisCacheService
- Tag invalidation, cleanup and warm-up
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi import Response
from starlette.requests import Request

from src.cache.analysis_cache import AnalysisCacheService, MemoryEntry, MemoryLayer
from src.cache.config import HTTP_CACHE_PRESETS, CacheConfig, CacheTTL, get_cache_config
from src.cache.headers import (
    CachePolicy,
    add_cache_headers,
    analysis_etag,
    check_not_modified,
    etags_match,
    generate_etag,
    parse_etag,
)
from src.database.models import AnalysisCache


def make_request(**headers) -> Request:
    raw = [(name.replace("_", "-").lower().encode(), value.encode()) for name, value in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


# =============================================================================
# CONFIG TESTS
# =============================================================================

class TestCacheConfig:

    def test_ttl_values(self):
        assert CacheTTL.ANALYSIS_RESULT == 3600
        assert CacheTTL.ANALYSIS_WARM == 7200
        assert CacheTTL.TRENDS == 1800
        assert CacheTTL.ISSUES == 7200

    def test_trend_period_ttl(self):
        assert CacheTTL.for_trend_period("7d") == 3600
        assert CacheTTL.for_trend_period("90d") == 14400
        assert CacheTTL.for_trend_period("forever") == CacheTTL.DEFAULT

    def test_config_from_env(self, monkeypatch):
        monkeypatch.setenv("CACHE_ENABLED", "false")
        monkeypatch.setenv("CACHE_NAMESPACE", "audit")
        get_cache_config.cache_clear()

        config = get_cache_config()

        assert not config.enabled
        assert config.namespace == "audit"

    def test_presets(self):
        assert HTTP_CACHE_PRESETS["stable"]["max_age"] == 3600
        assert HTTP_CACHE_PRESETS["realtime"]["no_store"]


# =============================================================================
# HTTP HEADER TESTS
# =============================================================================

class TestETags:

    def test_generate_is_stable(self):
        assert generate_etag("a", 1) == generate_etag("a", 1)
        assert generate_etag("a", 1) != generate_etag("a", 2)
        assert generate_etag("a").startswith('"')
        assert generate_etag("a", weak=True).startswith('W/"')

    def test_parse(self):
        assert parse_etag('W/"abc"') == "abc"
        assert parse_etag('"abc"') == "abc"
        assert parse_etag("") == ""

    def test_match(self):
        assert etags_match('"abc"', '"abc"')
        assert etags_match('W/"abc"', '"abc"')
        assert etags_match('"x", "abc"', '"abc"')
        assert etags_match("*", '"abc"')
        assert not etags_match('"x"', '"abc"')
        assert not etags_match(None, '"abc"')

    def test_analysis_etag_follows_updates(self):
        analysis = SimpleNamespace(id="a1", updated_at=datetime(2026, 10, 1, 8, 0, 0))
        before = analysis_etag(analysis)

        analysis.updated_at += timedelta(seconds=1)

        assert analysis_etag(analysis) != before


class TestCacheHeaders:

    def test_policy_headers(self):
        policy = CachePolicy(max_age=300, stale_while_revalidate=600, public=True)
        headers = policy.headers(etag='"v1"', last_modified=datetime(2026, 10, 18, 12, 0, 0))

        assert headers["Cache-Control"] == "public, max-age=300, stale-while-revalidate=600"
        assert headers["ETag"] == '"v1"'
        assert headers["Last-Modified"] == "Sun, 18 Oct 2026 12:00:00 GMT"
        assert headers["Vary"] == "Authorization"

    def test_no_store(self):
        assert CachePolicy(max_age=60, no_store=True).cache_control == "no-store"
        assert CachePolicy.from_preset("realtime").no_store

    def test_unknown_preset_is_stable(self):
        assert CachePolicy.from_preset("weekly") == CachePolicy.from_preset("stable")

    def test_add_cache_headers_preset(self):
        response = add_cache_headers(Response(), "moderate", etag='"e"')

        assert response.headers["cache-control"] == "private, max-age=300, stale-while-revalidate=600"
        assert response.headers["etag"] == '"e"'

    def test_http_cache_disabled_keeps_etag(self, monkeypatch):
        monkeypatch.setenv("HTTP_CACHE_ENABLED", "false")
        get_cache_config.cache_clear()

        response = add_cache_headers(Response(), "stable", etag='"e"')

        assert response.headers["cache-control"] == "no-store"
        assert response.headers["etag"] == '"e"'


class TestNotModified:

    def test_matching_etag(self):
        response = check_not_modified(make_request(if_none_match='"abc"'), '"abc"')

        assert response.status_code == 304
        assert response.headers["etag"] == '"abc"'

    def test_stale_etag(self):
        assert check_not_modified(make_request(if_none_match='"old"'), '"abc"') is None

    def test_if_modified_since(self):
        modified = datetime(2026, 10, 1, 8, 0, 0)

        fresh = make_request(if_modified_since="Sun, 18 Oct 2026 12:00:00 GMT")
        stale = make_request(if_modified_since="Tue, 01 Sep 2026 12:00:00 GMT")

        assert check_not_modified(fresh, '"abc"', modified).status_code == 304
        assert check_not_modified(stale, '"abc"', modified) is None

    def test_malformed_date_ignored(self):
        request = make_request(if_modified_since="yesterday")
        assert check_not_modified(request, '"abc"', datetime(2026, 10, 1)) is None


# =============================================================================
# MEMORY LAYER TESTS
# =============================================================================

class TestMemoryLayer:

    def entry(self, seconds=60, tags=()):
        return MemoryEntry("data", datetime.utcnow() + timedelta(seconds=seconds), list(tags))

    def test_lru_eviction(self):
        memory = MemoryLayer(max_entries=2)
        memory.put("a", self.entry())
        memory.put("b", self.entry())
        memory.get("a")
        memory.put("c", self.entry())

        assert list(memory.entries) == ["a", "c"]

    def test_expired_entry_is_dropped(self):
        memory = MemoryLayer()
        memory.put("a", self.entry(seconds=-1))

        assert memory.get("a") is None
        assert "a" not in memory.entries

    def test_discard_tagged(self):
        memory = MemoryLayer()
        memory.put("a", self.entry(tags=["project:1"]))
        memory.put("b", self.entry(tags=["project:2"]))
        memory.discard_tagged(["project:1"])

        assert list(memory.entries) == ["b"]

    def test_response_time_samples_bounded(self):
        memory = MemoryLayer(max_samples=3)
        for ms in range(5):
            memory.record_response_time(ms)
        assert memory.response_times == [2, 3, 4]


# =============================================================================
# SERVICE TESTS
# =============================================================================

@pytest.fixture
def cache(db) -> AnalysisCacheService:
    return AnalysisCacheService(db)


class TestAnalysisCacheService:

    def test_key_ignores_param_order(self, cache):
        first = cache.generate_key("trends", {"a": 1, "b": 2})
        second = cache.generate_key("trends", {"b": 2, "a": 1})

        assert first == second
        assert first.startswith("trends:")

    def test_set_and_get(self, cache, db):
        assert cache.set("k", {"score": 80}, ttl=60, tags=["project:p1"])

        assert cache.get("k") == {"score": 80}
        row = db.query(AnalysisCache).filter(AnalysisCache.key == "k").one()
        assert row.tags == ["project:p1"]
        assert row.size == len('{"score": 80}')

    def test_database_layer_survives_memory_loss(self, cache, db):
        cache.set("k", [1, 2, 3], ttl=60)
        cache.memory.clear()

        assert cache.get("k") == [1, 2, 3]
        assert db.query(AnalysisCache).one().access_count == 1
        assert "k" in cache.memory.entries

    def test_memory_hits_count_accesses(self, cache, db):
        cache.set("k", {"score": 80}, ttl=60)
        for _ in range(3):
            assert cache.get("k") == {"score": 80}

        row = db.query(AnalysisCache).filter(AnalysisCache.key == "k").one()
        assert row.access_count == 3
        assert row.last_accessed is not None
        assert cache.memory.hits == 3
        assert cache.get_stats()["popular_keys"][0]["access_count"] == 3

    def test_upsert_replaces_data(self, cache, db):
        cache.set("k", "old", ttl=60)
        cache.set("k", "new", ttl=60)

        assert cache.get("k") == "new"
        assert db.query(AnalysisCache).count() == 1

    def test_expired_is_a_miss(self, cache):
        cache.set("k", "data", ttl=-1)

        assert cache.get("k") is None
        assert cache.memory.misses == 1

    def test_disabled_cache(self, db):
        service = AnalysisCacheService(db, config=CacheConfig(enabled=False))

        assert not service.set("k", "data")
        assert service.get("k") is None

    def test_convenience_pairs(self, cache):
        key = cache.cache_analysis_result("p1", "https://example.com/", "standard", {"overall": 70})
        cache.cache_trends_data("p1", "30d", {"points": []})
        cache.cache_issue_analysis("a1", {"total": 3})
        cache.cache_recommendations("a1", {"total": 2})

        assert key.startswith("analysis:")
        assert cache.get_cached_analysis_result("p1", "https://example.com/", "standard") == {"overall": 70}
        assert cache.get_cached_analysis_result("p1", "https://example.com/", "enhanced") is None
        assert cache.get_cached_trends_data("p1", "30d") == {"points": []}
        assert cache.get_cached_issue_analysis("a1") == {"total": 3}
        assert cache.get_cached_recommendations("a1") == {"total": 2}

    def test_invalidate_project(self, cache, db):
        cache.cache_trends_data("p1", "30d", {"points": []})
        cache.cache_trends_data("p2", "30d", {"points": []})

        assert cache.invalidate_project("p1") == 1
        assert cache.get_cached_trends_data("p1", "30d") is None
        assert cache.get_cached_trends_data("p2", "30d") == {"points": []}
        assert db.query(AnalysisCache).count() == 1

    def test_invalidate_analysis(self, cache):
        cache.cache_issue_analysis("a1", {"total": 3})
        cache.cache_recommendations("a1", {"total": 2})

        assert cache.invalidate_analysis("a1") == 2

    def test_cleanup(self, cache, db):
        cache.set("old", "x" * 10, ttl=-1)
        cache.set("new", "data", ttl=60)

        result = cache.cleanup()

        assert result["deleted_count"] == 1
        assert result["freed_size"] == 12
        assert [row.key for row in db.query(AnalysisCache).all()] == ["new"]

    def test_stats(self, cache):
        cache.set("k", "data", ttl=60)
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()

        assert stats["total_entries"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0
        assert stats["popular_keys"][0]["key"] == "k"

    def test_health_check(self, cache):
        health = cache.health_check()

        assert health["healthy"]
        assert health["backend"] == "sqlite"
        assert health["cached_entries"] == 0

    def test_clear_all(self, cache, db):
        cache.set("k", "data", ttl=60)
        cache.get("k")
        cache.clear_all()

        assert db.query(AnalysisCache).count() == 0
        assert cache.memory.entries == {}
        assert cache.memory.total_requests == 0

    def test_policy(self, cache):
        assert cache.should_cache("enhanced", "high")
        assert not cache.should_cache("standard", "high")
        assert not cache.should_cache("unknown", "low")
        assert cache.get_optimal_ttl("nothing", "high") == CacheTTL.DEFAULT

    async def test_warm_up(self, cache, project, stored_analysis):
        await stored_analysis()

        assert cache.warm_up([project.id, "no-such-project"]) == 1
        cached = cache.get_cached_analysis_result(project.id, project.url, "enhanced")
        assert cached["project_id"] == project.id
