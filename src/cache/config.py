"""
Cache Configuration

Centralized configuration for the analysis cache.
TTLs are in seconds and also drive HTTP cache header durations.

The cache lives in the application database (analysis_cache table)
with a per-process memory layer in front of it.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class CacheTTL:
    """
    Cache TTL configuration by data type.

    Analysis data only changes when a new crawl completes, so results
    are cached longer than trend rollups.
    """

    DEFAULT: int = 3600

    # Analysis results (stable after crawl completion)
    ANALYSIS_RESULT: int = 3600
    ANALYSIS_WARM: int = 7200

    # Trends (new snapshots arrive with each crawl)
    TRENDS: int = 1800

    # Per-analysis detail lists
    ISSUES: int = 7200
    RECOMMENDATIONS: int = 7200

    # Trend payload TTL by period
    TRENDS_BY_PERIOD = {
        "7d": 3600,
        "30d": 7200,
        "90d": 14400,
        "1y": 14400,
    }

    # TTL matrix by data type and freshness priority
    OPTIMAL = {
        "analysis": {"low": 7200, "medium": 3600, "high": 1800},
        "trends": {"low": 1800, "medium": 900, "high": 300},
        "issues": {"low": 3600, "medium": 1800, "high": 900},
        "recommendations": {"low": 7200, "medium": 3600, "high": 1800},
    }

    @classmethod
    def for_trend_period(cls, period: str) -> int:
        return cls.TRENDS_BY_PERIOD.get(period, cls.DEFAULT)


@dataclass
class CacheConfig:
    """
    Main cache configuration.

    Settings can be overridden via environment variables:
    - CACHE_ENABLED: Enable/disable caching globally
    - CACHE_NAMESPACE: Prefix for cache keys
    - HTTP_CACHE_ENABLED: Enable HTTP cache headers
    """

    # Cache namespace (for key prefixes)
    namespace: str = field(default_factory=lambda: os.getenv(
        "CACHE_NAMESPACE",
        "seo"
    ))

    # Global cache toggle
    enabled: bool = field(default_factory=lambda: os.getenv(
        "CACHE_ENABLED",
        "true"
    ).lower() == "true")

    # HTTP cache settings
    http_cache_enabled: bool = field(default_factory=lambda: os.getenv(
        "HTTP_CACHE_ENABLED",
        "true"
    ).lower() == "true")

    # Memory layer bound (entries)
    memory_max_entries: int = field(default_factory=lambda: int(os.getenv(
        "CACHE_MEMORY_MAX_ENTRIES",
        "1000"
    )))

    # Response time samples kept for stats
    response_time_samples: int = 1000


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()


# HTTP Cache-Control presets for different data types
HTTP_CACHE_PRESETS = {
    "stable": {
        # Completed analyses and reports
        "max_age": 3600,  # 1 hour
        "stale_while_revalidate": 7200,  # 2 hours
        "public": False,
    },
    "moderate": {
        # Trend data
        "max_age": 300,  # 5 minutes
        "stale_while_revalidate": 600,  # 10 minutes
        "public": False,
    },
    "realtime": {
        # Crawl session progress
        "max_age": 0,
        "no_store": True,
    },
}
