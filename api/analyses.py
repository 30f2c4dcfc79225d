"""
Analyses API

Endpoints:
- GET /api/projects/{project_id}/analyses - Analysis history (summaries, newest first)
- GET /api/analyses/{analysis_id} - Full analysis with breakdowns, issues, recommendations
- GET /api/analyses/{analysis_id}/issues - Issues with severity/category/status filters
- PATCH /api/issues/{issue_id} - Move an issue through its lifecycle
- GET /api/analyses/{analysis_id}/recommendations - Recommendations with filters
- PATCH /api/recommendations/{recommendation_id} - Update recommendation status and notes
- GET /api/analyses/{analysis_id}/compare/{other_id} - Score deltas and issue diff
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.auth.dependencies import check_project_access, get_current_user, get_owned_project
from src.auth.models import User
from src.cache.analysis_cache import AnalysisCacheService
from src.cache.headers import add_cache_headers, analysis_etag, check_not_modified
from src.database import repository
from src.database.models import (
    IssueSeverity,
    IssueStatus,
    Project,
    RecommendationStatus,
    SEOAnalysis,
)
from src.database.serializers import analysis_to_dict, issue_to_dict, recommendation_to_dict
from src.database.session import get_db
from src.trends.service import compare_analyses
from src.utils.errors import ValidationFailed

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Analyses"], dependencies=[Depends(get_current_user)])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class IssueStatusUpdate(BaseModel):
    status: IssueStatus


class RecommendationStatusUpdate(BaseModel):
    status: RecommendationStatus
    notes: Optional[str] = Field(None, max_length=5000)


# =============================================================================
# HELPERS
# =============================================================================

def get_accessible_analysis(db: Session, analysis_id: str, user: User) -> SEOAnalysis:
    """Load an analysis and enforce ownership of its project."""
    analysis = repository.get_analysis(db, analysis_id)
    check_project_access(analysis.project, user)
    return analysis


def _touch(db: Session, analysis: SEOAnalysis) -> None:
    """Bump updated_at so ETags change, and drop cached copies."""
    analysis.updated_at = datetime.utcnow()
    db.commit()
    cache = AnalysisCacheService(db)
    cache.invalidate_analysis(analysis.id)
    cache.invalidate_project(analysis.project_id)


# =============================================================================
# ANALYSES
# =============================================================================

@router.get("/api/projects/{project_id}/analyses")
def list_analyses(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    analyses = repository.list_project_analyses(db, project.id, limit=limit, offset=offset)
    return {
        "project_id": project.id,
        "analyses": [analysis_to_dict(a, include_details=False) for a in analyses],
        "total": len(analyses),
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/analyses/{analysis_id}")
def get_analysis(
    analysis_id: str,
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Full analysis detail.

    Served from the analysis cache when this is the project's cached
    latest result. Supports If-None-Match / If-Modified-Since.
    """
    analysis = get_accessible_analysis(db, analysis_id, current_user)

    etag = analysis_etag(analysis)
    not_modified = check_not_modified(request, etag, analysis.updated_at)
    if not_modified:
        return not_modified

    cache = AnalysisCacheService(db)
    url = analysis.crawl_session.url
    payload = cache.get_cached_analysis_result(analysis.project_id, url, "standard")
    if not payload or payload.get("id") != analysis.id:
        payload = analysis_to_dict(analysis)
        latest = repository.get_latest_analysis(db, analysis.project_id)
        if latest is not None and latest.id == analysis.id:
            cache.cache_analysis_result(analysis.project_id, url, "standard", payload)

    add_cache_headers(response, "stable", etag=etag, last_modified=analysis.updated_at)
    return payload


@router.get("/api/analyses/{analysis_id}/compare/{other_id}")
def compare(
    analysis_id: str,
    other_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Compare two analyses of the same project; the older one is the baseline."""
    first = get_accessible_analysis(db, analysis_id, current_user)
    second = get_accessible_analysis(db, other_id, current_user)
    if first.project_id != second.project_id:
        raise ValidationFailed("Analyses belong to different projects")

    previous, current = sorted([first, second], key=lambda a: a.created_at)
    return compare_analyses(previous, current)


# =============================================================================
# ISSUES
# =============================================================================

@router.get("/api/analyses/{analysis_id}/issues")
def list_issues(
    analysis_id: str,
    severity: Optional[IssueSeverity] = None,
    category: Optional[str] = None,
    status: Optional[IssueStatus] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    analysis = get_accessible_analysis(db, analysis_id, current_user)
    unfiltered = severity is None and category is None and status is None

    cache = AnalysisCacheService(db)
    if unfiltered:
        cached = cache.get_cached_issue_analysis(analysis.id)
        if cached is not None:
            return cached

    issues = repository.list_issues(db, analysis.id, severity=severity, category=category, status=status)
    counts = {s.value: 0 for s in IssueSeverity}
    for issue in issues:
        counts[issue.severity.value] += 1

    payload = {
        "analysis_id": analysis.id,
        "issues": [issue_to_dict(i) for i in issues],
        "total": len(issues),
        "by_severity": counts,
    }
    if unfiltered:
        cache.cache_issue_analysis(analysis.id, payload)
    return payload


@router.patch("/api/issues/{issue_id}")
def update_issue(
    issue_id: str,
    update: IssueStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    issue = repository.get_issue(db, issue_id)
    check_project_access(issue.analysis.project, current_user)

    issue = repository.update_issue_status(db, issue_id, update.status)
    _touch(db, issue.analysis)
    logger.info(f"Issue {issue_id} moved to {update.status.value}")
    return issue_to_dict(issue)


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

@router.get("/api/analyses/{analysis_id}/recommendations")
def list_recommendations(
    analysis_id: str,
    priority: Optional[IssueSeverity] = None,
    category: Optional[str] = None,
    status: Optional[RecommendationStatus] = None,
    quick_wins_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    analysis = get_accessible_analysis(db, analysis_id, current_user)
    unfiltered = priority is None and category is None and status is None and not quick_wins_only

    cache = AnalysisCacheService(db)
    if unfiltered:
        cached = cache.get_cached_recommendations(analysis.id)
        if cached is not None:
            return cached

    recs = repository.list_recommendations(
        db,
        analysis.id,
        priority=priority,
        category=category,
        status=status,
        quick_wins_only=quick_wins_only,
    )
    payload = {
        "analysis_id": analysis.id,
        "recommendations": [recommendation_to_dict(r) for r in recs],
        "total": len(recs),
        "quick_wins": sum(1 for r in recs if r.quick_win),
        "summary": analysis.recommendation_summary or {},
    }
    if unfiltered:
        cache.cache_recommendations(analysis.id, payload)
    return payload


@router.patch("/api/recommendations/{recommendation_id}")
def update_recommendation(
    recommendation_id: str,
    update: RecommendationStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rec = repository.get_recommendation(db, recommendation_id)
    check_project_access(rec.analysis.project, current_user)

    rec = repository.update_recommendation_status(db, recommendation_id, update.status, update.notes)
    _touch(db, rec.analysis)
    return recommendation_to_dict(rec)
