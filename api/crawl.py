"""
Crawl API

Endpoints:
- POST /api/projects/{project_id}/crawl - Queue a crawl session and run the audit in background
- GET /api/projects/{project_id}/crawl-sessions - Recent sessions for a project
- GET /api/crawl-sessions/{session_id} - Session status and progress
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.auth.dependencies import check_project_access, get_current_user, get_owned_project
from src.auth.models import User
from src.database import repository
from src.database.models import Project
from src.database.serializers import crawl_session_to_dict
from src.database.session import get_db
from src.services.audit import AuditService
from src.utils.errors import ValidationFailed
from src.utils.urls import ensure_scheme, get_hostname, normalize_url

from api.projects import validate_crawl_settings

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Crawl"], dependencies=[Depends(get_current_user)])


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class StartCrawlRequest(BaseModel):
    """Optional overrides of the project's stored crawl settings."""
    url: Optional[str] = Field(None, max_length=2000)
    crawl_config: Optional[Dict[str, Any]] = None


class CrawlSessionResponse(BaseModel):
    id: str
    project_id: str
    url: str
    status: str
    crawl_config: Dict[str, Any] = {}
    pages_crawled: int = 0
    pages_total: int = 0
    progress: float = 0.0
    error_count: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    analysis_id: Optional[str] = None
    created_at: Optional[datetime] = None


class CrawlSessionListResponse(BaseModel):
    sessions: List[CrawlSessionResponse]
    total: int


def get_audit_service() -> AuditService:
    return AuditService()


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/api/projects/{project_id}/crawl", response_model=CrawlSessionResponse, status_code=202)
def start_crawl(
    background_tasks: BackgroundTasks,
    request: Optional[StartCrawlRequest] = None,
    project: Project = Depends(get_owned_project),
    audit: AuditService = Depends(get_audit_service),
    db: Session = Depends(get_db),
):
    """
    Queue a crawl of the project's URL.

    Returns immediately with the queued session; poll
    GET /api/crawl-sessions/{id} for progress.
    """
    request = request or StartCrawlRequest()

    url = None
    if request.url:
        url = normalize_url(ensure_scheme(request.url))
        if not url or get_hostname(url) != get_hostname(project.url):
            raise ValidationFailed("Crawl URL must be on the project's host")

    overrides = None
    if request.crawl_config:
        merged = {**(project.crawl_settings or {}), **request.crawl_config}
        overrides = validate_crawl_settings(merged)

    session = repository.create_crawl_session(db, project.id, crawl_config=overrides, url=url)
    background_tasks.add_task(audit.run_crawl_session, session.id)

    logger.info(f"Crawl session {session.id} queued for {session.url}")
    return CrawlSessionResponse(**crawl_session_to_dict(session))


@router.get("/api/projects/{project_id}/crawl-sessions", response_model=CrawlSessionListResponse)
def list_crawl_sessions(
    limit: int = Query(20, ge=1, le=100),
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    sessions = repository.list_crawl_sessions(db, project.id, limit=limit)
    return CrawlSessionListResponse(
        sessions=[CrawlSessionResponse(**crawl_session_to_dict(s)) for s in sessions],
        total=len(sessions),
    )


@router.get("/api/crawl-sessions/{session_id}", response_model=CrawlSessionResponse)
def get_crawl_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = repository.get_crawl_session(db, session_id)
    check_project_access(session.project, current_user)
    return CrawlSessionResponse(**crawl_session_to_dict(session))
