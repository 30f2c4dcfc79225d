"""
Reports API

Endpoints:
- GET /api/analyses/{analysis_id}/report?format=json|csv|html - Download a single-analysis report
- POST /api/reports/bulk-export - Export many analyses as one JSON/CSV file
- GET /api/reports/exports/{export_id} - Re-download a finished bulk export
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from src.auth.dependencies import check_project_access, get_current_user
from src.auth.models import User
from src.database import repository
from src.database.models import ExportStatus, ReportExport
from src.database.serializers import analysis_to_dict
from src.database.session import get_db
from src.reporter import BulkExporter, ExportOptions, ReportGenerator
from src.reporter.export import EXPORT_FORMATS
from src.trends.service import TrendAnalysisService
from src.utils.errors import NotFoundError, ValidationFailed

from api.analyses import get_accessible_analysis

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Reports"], dependencies=[Depends(get_current_user)])

MAX_BULK_ANALYSES = 500


class BulkExportRequest(BaseModel):
    """Select analyses by id, by project (latest N each), or both."""
    analysis_ids: List[str] = Field(default_factory=list)
    project_ids: List[str] = Field(default_factory=list)
    per_project_limit: int = Field(10, ge=1, le=100)
    format: str = Field("json", pattern="^(json|csv)$")
    sections: List[str] = Field(default_factory=list)
    group_by: str = "none"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


def _download(content: str, media_type: str, filename: str, headers: Optional[Dict[str, str]] = None) -> Response:
    all_headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    all_headers.update(headers or {})
    return Response(content=content, media_type=media_type, headers=all_headers)


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    return value.replace(tzinfo=None) if value is not None and value.tzinfo else value


# =============================================================================
# SINGLE REPORT
# =============================================================================

@router.get("/api/analyses/{analysis_id}/report")
def download_report(
    analysis_id: str,
    format: str = Query("json", pattern="^(json|csv|html)$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    analysis = get_accessible_analysis(db, analysis_id, current_user)
    trend = TrendAnalysisService(db).generate_trend_data(analysis.project_id, "90d")

    report = ReportGenerator().generate(
        analysis_to_dict(analysis),
        format=format,
        trend_points=[asdict(p) for p in trend.data_points],
        project_name=analysis.project.name,
    )
    return _download(report.content, report.media_type, report.filename)


# =============================================================================
# BULK EXPORT
# =============================================================================

@router.post("/api/reports/bulk-export")
def bulk_export(
    request: BulkExportRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Export the selected analyses in one file.

    The export is recorded so it can be downloaded again; the
    response carries its id in X-Export-Id.
    """
    options = ExportOptions(
        sections=request.sections,
        group_by=request.group_by,
        start_date=_naive(request.start_date),
        end_date=_naive(request.end_date),
    )

    analyses = {}
    for analysis_id in request.analysis_ids:
        analysis = get_accessible_analysis(db, analysis_id, current_user)
        analyses[analysis.id] = analysis
    for project_id in request.project_ids:
        project = check_project_access(repository.get_project(db, project_id), current_user)
        for analysis in repository.list_project_analyses(db, project.id, limit=request.per_project_limit):
            analyses[analysis.id] = analysis

    if not analyses:
        raise ValidationFailed("Select at least one analysis or project to export")
    if len(analyses) > MAX_BULK_ANALYSES:
        raise ValidationFailed(f"Bulk export is limited to {MAX_BULK_ANALYSES} analyses")

    export = ReportExport(
        user_id=current_user.id,
        format=request.format,
        status=ExportStatus.PROCESSING,
        analysis_ids=list(analyses),
        options=request.model_dump(mode="json", exclude={"analysis_ids"}),
    )
    db.add(export)
    db.commit()

    try:
        trend_summaries = {}
        if "trends" in options.sections:
            trend_service = TrendAnalysisService(db)
            for project_id in {a.project_id for a in analyses.values()}:
                trend = trend_service.generate_trend_data(project_id, "30d")
                trend_summaries[project_id] = asdict(trend.summary)

        records = []
        for analysis in analyses.values():
            record = analysis_to_dict(analysis)
            record["project_name"] = analysis.project.name
            if "trends" in options.sections:
                record["trends"] = trend_summaries.get(analysis.project_id)
            records.append(record)

        result = BulkExporter().export(records, request.format, options)
    except Exception as e:
        export.status = ExportStatus.FAILED
        export.error = str(e)
        export.completed_at = datetime.utcnow()
        db.commit()
        raise

    export.status = ExportStatus.COMPLETED
    export.filename = result.filename
    export.content = result.content
    export.row_count = result.row_count
    export.completed_at = datetime.utcnow()
    db.commit()

    logger.info(f"Bulk export {export.id}: {result.row_count} rows for user {current_user.id}")
    return _download(
        result.content,
        result.media_type,
        result.filename,
        headers={"X-Export-Id": export.id, "X-Row-Count": str(result.row_count)},
    )


@router.get("/api/reports/exports/{export_id}")
def download_export(
    export_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    export = db.query(ReportExport).filter(ReportExport.id == export_id).first()
    if not export or (export.user_id != current_user.id and not current_user.is_admin):
        raise NotFoundError("Export not found")
    if export.status != ExportStatus.COMPLETED:
        raise ValidationFailed(f"Export is {export.status.value}")

    return _download(export.content, EXPORT_FORMATS[export.format], export.filename)
