"""
Projects API

Endpoints:
- GET /api/projects - List the current user's projects
- POST /api/projects - Create a project
- GET /api/projects/{project_id} - Project detail with latest analysis summary
- PATCH /api/projects/{project_id} - Update name, url, status or crawl settings
- DELETE /api/projects/{project_id} - Delete project with all history
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user, get_owned_project
from src.auth.models import User
from src.cache.analysis_cache import AnalysisCacheService
from src.crawler.crawler import CrawlConfig
from src.database import repository
from src.database.models import Project, ProjectStatus, ScanFrequency
from src.database.serializers import analysis_to_dict, crawl_session_to_dict, project_to_dict
from src.database.session import get_db
from src.utils.config import get_settings
from src.utils.errors import ValidationFailed
from src.utils.urls import ensure_scheme, normalize_url

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/projects",
    tags=["Projects"],
    dependencies=[Depends(get_current_user)],
)


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class ProjectResponse(BaseModel):
    id: str
    user_id: str
    name: str
    url: str
    favicon_url: Optional[str] = None
    status: str
    scan_frequency: str
    crawl_settings: Dict[str, Any] = {}
    current_score: int = 0
    issue_count: int = 0
    last_scan_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectListResponse(BaseModel):
    projects: List[ProjectResponse]
    total: int


class ProjectDetailResponse(ProjectResponse):
    latest_analysis: Optional[Dict[str, Any]] = None
    recent_sessions: List[Dict[str, Any]] = []


class CreateProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2000)
    scan_frequency: ScanFrequency = ScanFrequency.MANUAL
    crawl_settings: Optional[Dict[str, Any]] = None


class UpdateProjectRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[str] = Field(None, min_length=1, max_length=2000)
    status: Optional[ProjectStatus] = None
    scan_frequency: Optional[ScanFrequency] = None
    crawl_settings: Optional[Dict[str, Any]] = None


def validate_crawl_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Check stored crawl settings against CrawlConfig and the page cap."""
    if not settings:
        return {}
    extra = {"target_keywords": list(settings["target_keywords"])} if settings.get("target_keywords") else {}
    config = CrawlConfig.from_dict(settings)
    limit = get_settings().CRAWLER_MAX_PAGES_LIMIT
    if config.max_pages > limit:
        raise ValidationFailed(f"max_pages may not exceed {limit}")
    return {**config.to_dict(), **extra}


def _validated_url(url: str) -> str:
    normalized = normalize_url(ensure_scheme(url.strip()))
    if not normalized:
        raise ValidationFailed(f"Invalid project URL '{url}'")
    return normalized


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=ProjectListResponse)
def list_projects(
    status: Optional[ProjectStatus] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    projects = repository.list_projects(db, user_id=current_user.id, status=status, limit=limit, offset=offset)
    return ProjectListResponse(
        projects=[ProjectResponse(**project_to_dict(p)) for p in projects],
        total=len(projects),
    )


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    request: CreateProjectRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = repository.create_project(
        db,
        user_id=current_user.id,
        name=request.name.strip(),
        url=_validated_url(request.url),
        scan_frequency=request.scan_frequency,
        crawl_settings=validate_crawl_settings(request.crawl_settings),
    )
    return ProjectResponse(**project_to_dict(project))


@router.get("/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    latest = repository.get_latest_analysis(db, project.id)
    sessions = repository.list_crawl_sessions(db, project.id, limit=5)
    return ProjectDetailResponse(
        **project_to_dict(project),
        latest_analysis=analysis_to_dict(latest, include_details=False) if latest else None,
        recent_sessions=[crawl_session_to_dict(s) for s in sessions],
    )


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    request: UpdateProjectRequest,
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    changes = request.model_dump(exclude_unset=True)
    if changes.get("url"):
        changes["url"] = _validated_url(changes["url"])
    if "crawl_settings" in changes:
        changes["crawl_settings"] = validate_crawl_settings(changes["crawl_settings"])

    updated = repository.update_project(db, project.id, **changes)
    if "url" in changes or "crawl_settings" in changes:
        AnalysisCacheService(db).invalidate_project(project.id)
    return ProjectResponse(**project_to_dict(updated))


@router.delete("/{project_id}")
def delete_project(
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    project_id = project.id
    repository.delete_project(db, project_id)
    AnalysisCacheService(db).invalidate_project(project_id)
    return {"success": True, "deleted": project_id}
