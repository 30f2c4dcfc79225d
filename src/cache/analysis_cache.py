"""
Analysis Cache Service

Two-layer cache for analysis payloads:
- Layer 1: per-process memory (fastest, lost on restart)
- Layer 2: analysis_cache table (shared, survives restarts)

Entries carry tags (project:{id}, analysis:{id}, trends, ...) so a
new crawl can drop everything derived from the project's old data.

Every operation degrades gracefully: a failing cache logs the error
and behaves like a miss, it never fails the caller.
"""

import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.cache.config import CacheConfig, CacheTTL, get_cache_config
from src.database.models import AnalysisCache, CrawlSession, CrawlStatus
from src.database.serializers import analysis_to_dict

logger = logging.getLogger(__name__)


# =============================================================================
# MEMORY LAYER
# =============================================================================

@dataclass
class MemoryEntry:
    data: Any
    expires_at: datetime
    tags: List[str] = field(default_factory=list)

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= datetime.utcnow()


class MemoryLayer:
    """Bounded LRU map of cache entries plus hit/miss counters."""

    def __init__(self, max_entries: int = 1000, max_samples: int = 1000):
        self.max_entries = max_entries
        self.max_samples = max_samples
        self.entries: "OrderedDict[str, MemoryEntry]" = OrderedDict()
        self.reset_stats()

    def reset_stats(self) -> None:
        self.hits = 0
        self.misses = 0
        self.total_requests = 0
        self.response_times: List[float] = []

    def get(self, key: str) -> Optional[MemoryEntry]:
        entry = self.entries.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            del self.entries[key]
            return None
        self.entries.move_to_end(key)
        return entry

    def put(self, key: str, entry: MemoryEntry) -> None:
        self.entries[key] = entry
        self.entries.move_to_end(key)
        while len(self.entries) > self.max_entries:
            self.entries.popitem(last=False)

    def discard_tagged(self, tags: Iterable[str]) -> None:
        wanted = set(tags)
        for key in [k for k, e in self.entries.items() if wanted & set(e.tags)]:
            del self.entries[key]

    def discard_expired(self) -> None:
        for key in [k for k, e in self.entries.items() if e.is_expired]:
            del self.entries[key]

    def record_response_time(self, ms: float) -> None:
        self.response_times.append(ms)
        if len(self.response_times) > self.max_samples:
            self.response_times = self.response_times[-self.max_samples:]

    def clear(self) -> None:
        self.entries.clear()


_memory: Optional[MemoryLayer] = None


def get_memory_layer() -> MemoryLayer:
    """Process-wide memory layer shared by every AnalysisCacheService."""
    global _memory
    if _memory is None:
        config = get_cache_config()
        _memory = MemoryLayer(config.memory_max_entries, config.response_time_samples)
    return _memory


def reset_memory_layer() -> None:
    """Drop the process-wide memory layer (tests)."""
    global _memory
    _memory = None


# =============================================================================
# SERVICE
# =============================================================================

class AnalysisCacheService:
    """
    Cache for analysis results, trends, issues and recommendations.

    Usage:
        cache = AnalysisCacheService(db)
        key = cache.cache_analysis_result(project_id, url, "standard", payload)
        payload = cache.get_cached_analysis_result(project_id, url, "standard")
        cache.invalidate_project(project_id)
    """

    SHOULD_CACHE_RULES = {
        "enhanced": {"low": True, "medium": True, "high": True},
        "standard": {"low": True, "medium": True, "high": False},
    }

    def __init__(
        self,
        db: Session,
        config: Optional[CacheConfig] = None,
        memory: Optional[MemoryLayer] = None,
    ):
        self.db = db
        self.config = config or get_cache_config()
        self.memory = memory or get_memory_layer()

    # =========================================================================
    # KEYS
    # =========================================================================

    def generate_key(self, namespace: str, params: Dict[str, Any]) -> str:
        """namespace:md5(json of params with sorted keys)."""
        param_string = json.dumps(params, sort_keys=True, default=str, separators=(",", ":"))
        digest = hashlib.md5(param_string.encode("utf-8")).hexdigest()
        return f"{namespace}:{digest}"

    @staticmethod
    def url_hash(url: str) -> str:
        return hashlib.md5(url.encode("utf-8")).hexdigest()

    @staticmethod
    def _size(data: Any) -> int:
        return len(json.dumps(data, default=str).encode("utf-8"))

    # =========================================================================
    # CORE GET / SET
    # =========================================================================

    def get(self, key: str) -> Optional[Any]:
        """Memory first, then the table. Expired entries count as misses."""
        if not self.config.enabled:
            return None

        started = time.perf_counter()
        self.memory.total_requests += 1

        try:
            entry = self.memory.get(key)
            if entry is not None:
                self._record_access(key)
                self.memory.hits += 1
                return entry.data

            row = self.db.query(AnalysisCache).filter(AnalysisCache.key == key).first()
            if row is None or row.is_expired:
                self.memory.misses += 1
                return None

            row.access_count = (row.access_count or 0) + 1
            row.last_accessed = datetime.utcnow()
            self.db.commit()

            self.memory.put(key, MemoryEntry(row.data, row.expires_at, list(row.tags or [])))
            self.memory.hits += 1
            return row.data

        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
            self.db.rollback()
            self.memory.misses += 1
            return None

        finally:
            self.memory.record_response_time((time.perf_counter() - started) * 1000)

    def _record_access(self, key: str) -> None:
        row = self.db.query(AnalysisCache).filter(AnalysisCache.key == key).first()
        if row is not None:
            row.access_count = (row.access_count or 0) + 1
            row.last_accessed = datetime.utcnow()
            self.db.commit()

    def set(
        self,
        key: str,
        data: Any,
        ttl: int = CacheTTL.DEFAULT,
        tags: Optional[List[str]] = None,
        version: str = "1.0",
        url: Optional[str] = None,
    ) -> bool:
        """Upsert an entry. Returns False when caching is disabled or fails."""
        if not self.config.enabled:
            return False

        tags = list(tags or [])
        now = datetime.utcnow()
        expires_at = now + timedelta(seconds=ttl)

        try:
            size = self._size(data)
            row = self.db.query(AnalysisCache).filter(AnalysisCache.key == key).first()

            if row is None:
                row = AnalysisCache(
                    key=key,
                    url=url or key,
                    url_hash=self.url_hash(key),
                )
                self.db.add(row)

            row.data = data
            row.tags = tags
            row.size = size
            row.version = version
            row.expires_at = expires_at
            row.access_count = 0
            row.last_accessed = now
            if url:
                row.url = url

            self.db.commit()
            self.memory.put(key, MemoryEntry(data, expires_at, tags))
            logger.debug(f"Cached {key} ({size} bytes, ttl={ttl}s)")
            return True

        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")
            self.db.rollback()
            return False

    # =========================================================================
    # CONVENIENCE PAIRS
    # =========================================================================

    def _analysis_key(self, project_id: str, url: str, analysis_type: str) -> str:
        return self.generate_key("analysis", {
            "project_id": project_id,
            "url": url,
            "type": analysis_type,
            "version": "2.0",
        })

    def cache_analysis_result(
        self,
        project_id: str,
        url: str,
        analysis_type: str,
        result: Any,
        ttl: int = CacheTTL.ANALYSIS_RESULT,
    ) -> str:
        key = self._analysis_key(project_id, url, analysis_type)
        self.set(
            key,
            result,
            ttl=ttl,
            tags=[f"project:{project_id}", f"analysis:{analysis_type}", "results"],
            url=url,
        )
        return key

    def get_cached_analysis_result(self, project_id: str, url: str, analysis_type: str) -> Optional[Any]:
        return self.get(self._analysis_key(project_id, url, analysis_type))

    def _trends_key(self, project_id: str, period: str) -> str:
        return self.generate_key("trends", {"project_id": project_id, "period": period, "version": "1.0"})

    def cache_trends_data(self, project_id: str, period: str, data: Any, ttl: int = CacheTTL.TRENDS) -> None:
        self.set(
            self._trends_key(project_id, period),
            data,
            ttl=ttl,
            tags=[f"project:{project_id}", "trends"],
        )

    def get_cached_trends_data(self, project_id: str, period: str) -> Optional[Any]:
        return self.get(self._trends_key(project_id, period))

    def _issues_key(self, analysis_id: str) -> str:
        return self.generate_key("issues", {"analysis_id": analysis_id, "version": "1.0"})

    def cache_issue_analysis(self, analysis_id: str, data: Any, ttl: int = CacheTTL.ISSUES) -> None:
        self.set(
            self._issues_key(analysis_id),
            data,
            ttl=ttl,
            tags=[f"analysis:{analysis_id}", "issues"],
        )

    def get_cached_issue_analysis(self, analysis_id: str) -> Optional[Any]:
        return self.get(self._issues_key(analysis_id))

    def _recommendations_key(self, analysis_id: str) -> str:
        return self.generate_key("recommendations", {"analysis_id": analysis_id, "version": "1.0"})

    def cache_recommendations(self, analysis_id: str, data: Any, ttl: int = CacheTTL.RECOMMENDATIONS) -> None:
        self.set(
            self._recommendations_key(analysis_id),
            data,
            ttl=ttl,
            tags=[f"analysis:{analysis_id}", "recommendations"],
        )

    def get_cached_recommendations(self, analysis_id: str) -> Optional[Any]:
        return self.get(self._recommendations_key(analysis_id))

    # =========================================================================
    # INVALIDATION & MAINTENANCE
    # =========================================================================

    def invalidate_by_tags(self, tags: List[str]) -> int:
        """Delete every entry carrying any of the tags. Returns rows deleted."""
        wanted = set(tags)
        self.memory.discard_tagged(wanted)

        try:
            rows = [
                row for row in self.db.query(AnalysisCache).all()
                if wanted & set(row.tags or [])
            ]
            for row in rows:
                self.db.delete(row)
            self.db.commit()
            if rows:
                logger.info(f"Invalidated {len(rows)} cache entries for tags {sorted(wanted)}")
            return len(rows)

        except Exception as e:
            logger.error(f"Cache invalidation error for {sorted(wanted)}: {e}")
            self.db.rollback()
            return 0

    def invalidate_project(self, project_id: str) -> int:
        return self.invalidate_by_tags([f"project:{project_id}"])

    def invalidate_analysis(self, analysis_id: str) -> int:
        return self.invalidate_by_tags([f"analysis:{analysis_id}"])

    def cleanup(self) -> Dict[str, int]:
        """Delete expired entries."""
        self.memory.discard_expired()
        now = datetime.utcnow()

        try:
            expired = self.db.query(AnalysisCache).filter(AnalysisCache.expires_at <= now)
            freed_size = sum(row.size or 0 for row in expired.all())
            deleted_count = expired.delete(synchronize_session=False)
            self.db.commit()
            logger.info(f"Cache cleanup removed {deleted_count} entries ({freed_size} bytes)")
            return {"deleted_count": deleted_count, "freed_size": freed_size}

        except Exception as e:
            logger.error(f"Cache cleanup error: {e}")
            self.db.rollback()
            return {"deleted_count": 0, "freed_size": 0}

    def get_stats(self) -> Dict[str, Any]:
        memory = self.memory
        hit_rate = (memory.hits / memory.total_requests * 100) if memory.total_requests else 0.0
        avg_response = (
            sum(memory.response_times) / len(memory.response_times)
            if memory.response_times else 0.0
        )
        stats: Dict[str, Any] = {
            "enabled": self.config.enabled,
            "total_entries": 0,
            "total_size": 0,
            "hit_rate": round(hit_rate, 2),
            "avg_response_time": round(avg_response, 2),
            "expired_entries": 0,
            "popular_keys": [],
            "memory_entries": len(memory.entries),
            "hits": memory.hits,
            "misses": memory.misses,
        }

        try:
            now = datetime.utcnow()
            stats["total_entries"] = self.db.query(AnalysisCache).count()
            stats["total_size"] = self.db.query(func.coalesce(func.sum(AnalysisCache.size), 0)).scalar() or 0
            stats["expired_entries"] = (
                self.db.query(AnalysisCache).filter(AnalysisCache.expires_at <= now).count()
            )
            popular = (
                self.db.query(AnalysisCache)
                .order_by(AnalysisCache.access_count.desc())
                .limit(10)
                .all()
            )
            stats["popular_keys"] = [
                {
                    "key": row.key,
                    "access_count": row.access_count or 0,
                    "last_accessed": row.last_accessed.isoformat() if row.last_accessed else None,
                }
                for row in popular
            ]
        except Exception as e:
            logger.error(f"Cache stats error: {e}")
            self.db.rollback()

        return stats

    def health_check(self) -> Dict[str, Any]:
        """Verifies the cache table can be queried."""
        try:
            count = self.db.query(AnalysisCache).count()
            return {
                "healthy": True,
                "status": "connected",
                "enabled": self.config.enabled,
                "cached_entries": count,
                "memory_entries": len(self.memory.entries),
                "backend": self.db.get_bind().dialect.name,
            }
        except Exception as e:
            self.db.rollback()
            return {
                "healthy": False,
                "status": "error",
                "error": str(e),
            }

    def clear_all(self) -> None:
        self.memory.clear()
        self.memory.reset_stats()
        try:
            self.db.query(AnalysisCache).delete(synchronize_session=False)
            self.db.commit()
        except Exception as e:
            logger.error(f"Clear all cache error: {e}")
            self.db.rollback()

    # =========================================================================
    # POLICY
    # =========================================================================

    def should_cache(self, analysis_type: str, complexity: str) -> bool:
        return self.SHOULD_CACHE_RULES.get(analysis_type, {}).get(complexity, False)

    def get_optimal_ttl(self, data_type: str, priority: str) -> int:
        return CacheTTL.OPTIMAL.get(data_type, {}).get(priority, CacheTTL.DEFAULT)

    def warm_up(self, project_ids: List[str]) -> int:
        """Cache the five most recent completed analyses of each project."""
        warmed = 0
        for project_id in project_ids:
            try:
                sessions = (
                    self.db.query(CrawlSession)
                    .filter(
                        CrawlSession.project_id == project_id,
                        CrawlSession.status == CrawlStatus.COMPLETED,
                    )
                    .order_by(CrawlSession.created_at.desc())
                    .limit(5)
                    .all()
                )
            except Exception as e:
                logger.error(f"Cache warm-up error for project {project_id}: {e}")
                self.db.rollback()
                continue

            for session in sessions:
                if session.analysis is None:
                    continue
                self.cache_analysis_result(
                    project_id,
                    session.url,
                    "enhanced",
                    analysis_to_dict(session.analysis),
                    ttl=CacheTTL.ANALYSIS_WARM,
                )
                warmed += 1

        logger.info(f"Cache warm-up cached {warmed} analyses for {len(project_ids)} projects")
        return warmed
