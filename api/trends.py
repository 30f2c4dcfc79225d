"""
Trend Analysis API

Endpoints:
- GET /api/analysis/trends/{project_id}?period=30d - Score history with summary and trend score
- GET /api/analysis/trends/{project_id}/regressions - Detected score / vitals regressions
- GET /api/analysis/trends/{project_id}/prediction?timeframe=1m - Linear score forecast
- GET /api/analysis/trends/{project_id}/issues?days=30 - Per-issue-type daily counts

Trend responses carry ETags derived from the project's last update,
so unchanged history returns 304.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user, get_owned_project
from src.cache.analysis_cache import AnalysisCacheService
from src.cache.headers import add_cache_headers, check_not_modified, project_etag
from src.database.models import Project
from src.database.session import get_db
from src.trends.service import TrendAnalysisService

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/analysis/trends",
    tags=["Trends"],
    dependencies=[Depends(get_current_user)],
)


def _service(db: Session) -> TrendAnalysisService:
    return TrendAnalysisService(db, AnalysisCacheService(db))


@router.get("/{project_id}")
def get_trends(
    request: Request,
    response: Response,
    period: str = Query("30d", pattern="^(7d|30d|90d|1y)$"),
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    """
    Trend data for a period.

    Includes data points, summary statistics, derived metrics and a
    0-100 trend score.
    """
    etag = project_etag(project, "trends", period)
    not_modified = check_not_modified(request, etag)
    if not_modified:
        return not_modified

    service = _service(db)
    trend = service.generate_trend_data(project.id, period)

    payload = trend.to_dict()
    payload["trend_score"] = service.calculate_trend_score(trend)

    add_cache_headers(response, "moderate", etag=etag)
    return payload


@router.get("/{project_id}/regressions")
def get_regressions(
    request: Request,
    response: Response,
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    etag = project_etag(project, "regressions")
    not_modified = check_not_modified(request, etag)
    if not_modified:
        return not_modified

    regressions = _service(db).detect_regressions(project.id)

    add_cache_headers(response, "moderate", etag=etag)
    return {
        "project_id": project.id,
        "regressions": [r.to_dict() for r in regressions],
        "total": len(regressions),
    }


@router.get("/{project_id}/prediction")
def get_prediction(
    timeframe: str = Query("1m", pattern="^(1w|1m|3m)$"),
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    """422 when fewer than five data points exist in the last 90 days."""
    prediction = _service(db).predict_trends(project.id, timeframe)
    return prediction.to_dict()


@router.get("/{project_id}/issues")
def get_issue_trends(
    request: Request,
    response: Response,
    days: int = Query(30, ge=1, le=365),
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    etag = project_etag(project, "issues", days)
    not_modified = check_not_modified(request, etag)
    if not_modified:
        return not_modified

    payload = _service(db).get_issue_trends(project.id, days)

    add_cache_headers(response, "moderate", etag=etag)
    return payload
