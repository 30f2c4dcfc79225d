"""
Cache Management API

Provides endpoints for cache monitoring and manual operations.

Endpoints:
- GET /api/cache/health - Health check for monitoring/alerting
- GET /api/cache/stats - Entry counts, sizes, hit rate, popular keys
- POST /api/cache/invalidate/project/{project_id} - Drop a project's cached data
- POST /api/cache/cleanup - Delete expired entries (admin only)
- POST /api/cache/warm - Precompute analysis payloads for projects (admin only)
- DELETE /api/cache - Clear everything (admin only)
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user, get_owned_project, require_admin
from src.auth.models import User
from src.cache.analysis_cache import AnalysisCacheService
from src.database.models import Project
from src.database.session import get_db

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/cache",
    tags=["Cache Management"],
    dependencies=[Depends(get_current_user)],
)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class CacheHealthResponse(BaseModel):
    """Cache health check response."""
    status: str = Field(..., description="healthy or unhealthy")
    backend: str = Field(default="unknown", description="Database dialect backing the cache")
    enabled: bool = True
    cached_entries: int = Field(0, description="Number of cached entries")
    memory_entries: int = 0
    error: str = ""
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class CacheStatsResponse(BaseModel):
    """Cache statistics response."""
    enabled: bool
    total_entries: int
    total_size: int
    hit_rate: float
    avg_response_time: float
    expired_entries: int
    popular_keys: List[Dict[str, Any]]
    memory_entries: int
    hits: int
    misses: int


class InvalidationResponse(BaseModel):
    """Cache invalidation response."""
    success: bool
    keys_invalidated: int
    duration_ms: float


class CleanupResponse(BaseModel):
    success: bool
    deleted_count: int
    freed_size: int


class WarmRequest(BaseModel):
    project_ids: List[str] = Field(..., min_length=1, max_length=100)


class WarmResponse(BaseModel):
    success: bool
    analyses_cached: int


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/health", response_model=CacheHealthResponse)
def cache_health_check(db: Session = Depends(get_db)):
    """Check that the cache table is reachable."""
    health = AnalysisCacheService(db).health_check()
    return CacheHealthResponse(
        status="healthy" if health["healthy"] else "unhealthy",
        backend=health.get("backend", "unknown"),
        enabled=health.get("enabled", True),
        cached_entries=health.get("cached_entries", 0),
        memory_entries=health.get("memory_entries", 0),
        error=health.get("error", ""),
    )


@router.get("/stats", response_model=CacheStatsResponse)
def cache_stats(db: Session = Depends(get_db)):
    return CacheStatsResponse(**AnalysisCacheService(db).get_stats())


@router.post("/invalidate/project/{project_id}", response_model=InvalidationResponse)
def invalidate_project_cache(
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    """Drop cached analyses and trends for a project."""
    start = time.perf_counter()
    count = AnalysisCacheService(db).invalidate_project(project.id)
    return InvalidationResponse(
        success=True,
        keys_invalidated=count,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_cache(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = AnalysisCacheService(db).cleanup()
    logger.info(f"Cache cleanup by {admin.email}: {result}")
    return CleanupResponse(success=True, **result)


@router.post("/warm", response_model=WarmResponse)
def warm_cache(
    request: WarmRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    warmed = AnalysisCacheService(db).warm_up(request.project_ids)
    return WarmResponse(success=True, analyses_cached=warmed)


@router.delete("")
def clear_cache(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    AnalysisCacheService(db).clear_all()
    logger.warning(f"Cache cleared by {admin.email}")
    return {"success": True}
