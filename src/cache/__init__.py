"""
SEO Audit Caching Layer

- Layer 1: per-process memory (AnalysisCacheService memory layer)
- Layer 2: analysis_cache table in the application database
- HTTP: Cache-Control and ETag headers for conditional GETs

Usage:
    cache = AnalysisCacheService(db)
    data = cache.get_cached_trends_data(project_id, "30d")
    if data is None:
        data = compute()
        cache.cache_trends_data(project_id, "30d", data)

    # Drop everything derived from a project's old analyses
    cache.invalidate_project(project_id)

    # Conditional GET
    etag = analysis_etag(analysis)
    not_modified = check_not_modified(request, etag)
"""

from src.cache.config import CacheConfig, CacheTTL, get_cache_config
from src.cache.analysis_cache import (
    AnalysisCacheService,
    MemoryLayer,
    get_memory_layer,
    reset_memory_layer,
)
from src.cache.headers import (
    generate_etag,
    etags_match,
    add_cache_headers,
    check_not_modified,
    CachePolicy,
    analysis_etag,
    project_etag,
)

__all__ = [
    # Config
    "CacheConfig",
    "CacheTTL",
    "get_cache_config",
    # Service
    "AnalysisCacheService",
    "MemoryLayer",
    "get_memory_layer",
    "reset_memory_layer",
    # Headers
    "generate_etag",
    "etags_match",
    "add_cache_headers",
    "check_not_modified",
    "CachePolicy",
    "analysis_etag",
    "project_etag",
]
