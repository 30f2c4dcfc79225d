"""
Dashboard API

Cross-project aggregates for the signed-in user's dashboard:
- GET /api/dashboard/stats - Project counts, average score, open issues by severity
- GET /api/dashboard/recent-projects - Most recently scanned projects with score movement
- GET /api/dashboard/priority-issues - Open issues from each project's latest audit
- GET /api/dashboard/recent-activity - Scan and critical-issue events, newest first

Issue figures come from each project's latest analysis.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import and_, false, func
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user
from src.auth.models import User
from src.cache.headers import add_cache_headers
from src.database.models import (
    CrawlSession,
    CrawlStatus,
    IssueSeverity,
    IssueStatus,
    Project,
    ProjectStatus,
    SEOAnalysis,
    SEOIssue,
)
from src.database.repository import SEVERITY_RANK
from src.database.serializers import issue_to_dict, project_to_dict
from src.database.session import get_db
from src.utils.errors import ValidationFailed

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(get_current_user)],
)

OPEN_STATUSES = (IssueStatus.NEW, IssueStatus.IN_PROGRESS)
ACTIVE_SESSION_STATUSES = (CrawlStatus.QUEUED, CrawlStatus.RUNNING)
DEFAULT_PRIORITY_SEVERITIES = "critical,high,medium"
WEEK = timedelta(days=7)

# Lower bound of each score band
SCORE_BANDS = [
    ("excellent", 90),
    ("good", 70),
    ("needs_work", 50),
    ("poor", 0),
]


# =============================================================================
# QUERY HELPERS
# =============================================================================

def latest_analyses(db: Session, user_id: str) -> List[SEOAnalysis]:
    """The newest analysis of every project the user owns."""
    newest = (
        db.query(
            SEOAnalysis.project_id.label("project_id"),
            func.max(SEOAnalysis.created_at).label("created_at"),
        )
        .join(Project, Project.id == SEOAnalysis.project_id)
        .filter(Project.user_id == user_id)
        .group_by(SEOAnalysis.project_id)
        .subquery()
    )
    return (
        db.query(SEOAnalysis)
        .join(newest, and_(
            SEOAnalysis.project_id == newest.c.project_id,
            SEOAnalysis.created_at == newest.c.created_at,
        ))
        .all()
    )


def score_band(score: int) -> str:
    for band, floor in SCORE_BANDS:
        if score >= floor:
            return band
    return "poor"


def parse_severities(raw: str) -> List[IssueSeverity]:
    severities = []
    for value in (part.strip().lower() for part in raw.split(",")):
        if not value:
            continue
        try:
            severities.append(IssueSeverity(value))
        except ValueError:
            raise ValidationFailed(
                f"Unknown severity '{value}', expected any of critical, high, medium, low"
            )
    if not severities:
        raise ValidationFailed("At least one severity is required")
    return severities


def _open_issues(db: Session, analysis_ids: List[str]):
    if not analysis_ids:
        return db.query(SEOIssue).filter(false())
    return db.query(SEOIssue).filter(
        SEOIssue.analysis_id.in_(analysis_ids),
        SEOIssue.status.in_(OPEN_STATUSES),
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/stats")
def get_dashboard_stats(
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Headline numbers across all of the user's projects."""
    projects = db.query(Project).filter(Project.user_id == user.id).all()
    project_ids = [p.id for p in projects]
    latest = latest_analyses(db, user.id)
    latest_ids = [a.id for a in latest]

    sessions = db.query(CrawlSession).filter(CrawlSession.project_id.in_(project_ids)) if project_ids else None
    week_ago = datetime.utcnow() - WEEK

    open_by_severity = {s.value: 0 for s in IssueSeverity}
    for severity, count in (
        _open_issues(db, latest_ids)
        .with_entities(SEOIssue.severity, func.count(SEOIssue.id))
        .group_by(SEOIssue.severity)
        .all()
    ):
        open_by_severity[severity.value] = count

    resolved = 0
    if latest_ids:
        resolved = (
            db.query(func.count(SEOIssue.id))
            .filter(SEOIssue.analysis_id.in_(latest_ids), SEOIssue.status == IssueStatus.RESOLVED)
            .scalar()
        )

    distribution = {band: 0 for band, _ in SCORE_BANDS}
    for analysis in latest:
        distribution[score_band(analysis.overall_score or 0)] += 1

    scores = [a.overall_score or 0 for a in latest]
    average = round(sum(scores) / len(scores), 1) if scores else 0.0
    changes = [a.score_change for a in latest if a.score_change is not None]
    scan_dates = [p.last_scan_date for p in projects if p.last_scan_date]

    add_cache_headers(response, "realtime")
    return {
        "total_projects": len(projects),
        "active_projects": sum(1 for p in projects if p.status == ProjectStatus.ACTIVE),
        "scanned_projects": len(latest),
        "active_analyses": sessions.filter(CrawlSession.status.in_(ACTIVE_SESSION_STATUSES)).count() if sessions else 0,
        "weekly_scans": sessions.filter(CrawlSession.created_at >= week_ago).count() if sessions else 0,
        "completed_analyses": (
            db.query(func.count(SEOAnalysis.id)).filter(SEOAnalysis.project_id.in_(project_ids)).scalar()
            if project_ids else 0
        ),
        "average_score": average,
        "average_score_change": round(sum(changes) / len(changes), 1) if changes else 0.0,
        "open_issues": {**open_by_severity, "total": sum(open_by_severity.values())},
        "critical_issues": open_by_severity[IssueSeverity.CRITICAL.value],
        "resolved_issues": resolved,
        "score_distribution": distribution,
        "last_scan_date": _iso(max(scan_dates)) if scan_dates else None,
    }


@router.get("/recent-projects")
def get_recent_projects(
    response: Response,
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Projects by most recent scan (never-scanned ones by creation date)."""
    projects = db.query(Project).filter(Project.user_id == user.id).all()
    projects.sort(key=lambda p: p.last_scan_date or p.created_at or datetime.min, reverse=True)
    projects = projects[:limit]

    latest_by_project = {a.project_id: a for a in latest_analyses(db, user.id)}

    items = []
    for project in projects:
        analysis = latest_by_project.get(project.id)
        session = (
            db.query(CrawlSession)
            .filter(CrawlSession.project_id == project.id)
            .order_by(CrawlSession.created_at.desc())
            .first()
        )
        critical = 0
        if analysis is not None:
            critical = (
                _open_issues(db, [analysis.id])
                .filter(SEOIssue.severity == IssueSeverity.CRITICAL)
                .count()
            )
        items.append({
            **project_to_dict(project),
            "latest_analysis_id": analysis.id if analysis else None,
            "previous_score": analysis.previous_score if analysis else None,
            "score_change": analysis.score_change if analysis else None,
            "critical_issues": critical,
            "scan_status": session.status.value if session else None,
            "scan_progress": session.progress if session and session.status in ACTIVE_SESSION_STATUSES else None,
        })

    add_cache_headers(response, "realtime")
    return {"projects": items, "total": len(items)}


@router.get("/priority-issues")
def get_priority_issues(
    response: Response,
    limit: int = Query(10, ge=1, le=100),
    severity: str = Query(DEFAULT_PRIORITY_SEVERITIES),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Open issues across projects, worst first.

    Ordered by severity, then by how many pages are affected, then newest.
    """
    severities = parse_severities(severity)
    latest = latest_analyses(db, user.id)
    projects = {a.id: a.project for a in latest}

    issues = (
        _open_issues(db, list(projects))
        .filter(SEOIssue.severity.in_(severities))
        .order_by(SEOIssue.created_at.desc())
        .all()
    )
    issues.sort(key=lambda i: (SEVERITY_RANK[i.severity], -(i.affected_pages or 0)))

    items = []
    for issue in issues[:limit]:
        project = projects[issue.analysis_id]
        items.append({
            **issue_to_dict(issue),
            "project": {"id": project.id, "name": project.name, "url": project.url},
            "quick_fix": issue.fix_complexity == "easy",
        })

    add_cache_headers(response, "realtime")
    return {"issues": items, "total": len(issues)}


@router.get("/recent-activity")
def get_recent_activity(
    response: Response,
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    sessions = (
        db.query(CrawlSession)
        .join(Project, Project.id == CrawlSession.project_id)
        .filter(Project.user_id == user.id)
        .order_by(CrawlSession.created_at.desc())
        .limit(limit)
        .all()
    )

    events = []
    for session in sessions:
        project = session.project
        timestamp = session.completed_at or session.started_at or session.created_at
        base = {"project_id": project.id, "project_name": project.name, "timestamp": timestamp}

        if session.status == CrawlStatus.COMPLETED:
            events.append({
                **base,
                "id": f"scan-{session.id}",
                "type": "scan",
                "title": "Scan completed",
                "description": f"Scan of {project.name} completed",
                "severity": "info",
            })
        elif session.status == CrawlStatus.FAILED:
            events.append({
                **base,
                "id": f"scan-{session.id}",
                "type": "scan",
                "title": "Scan failed",
                "description": session.error_message or f"Scan of {project.name} failed",
                "severity": "error",
            })
        else:
            events.append({
                **base,
                "id": f"scan-{session.id}",
                "type": "scan",
                "title": "Scan in progress",
                "description": f"Scan of {project.name} is {session.status.value}",
                "severity": "info",
            })

        if session.analysis is not None:
            critical = sum(1 for i in session.analysis.issues if i.severity == IssueSeverity.CRITICAL)
            if critical:
                events.append({
                    **base,
                    "id": f"issues-{session.id}",
                    "type": "issue",
                    "title": f"{critical} critical issues found",
                    "description": f"Found {critical} critical issues in {project.name}",
                    "severity": "error",
                })

    events.sort(key=lambda e: e["timestamp"] or datetime.min, reverse=True)
    events = events[:limit]
    for event in events:
        event["timestamp"] = _iso(event["timestamp"])

    add_cache_headers(response, "realtime")
    return {"activities": events, "total": len(events)}
