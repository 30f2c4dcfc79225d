"""
Repository Layer - Clean Interface for Data Operations

Simple functions over a SQLAlchemy session for projects, crawl sessions,
analyses, issues and recommendations. Mutating functions commit.

Lookups of unknown ids raise NotFoundError; lifecycle changes that are
not allowed raise InvalidStatusTransition.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.utils.errors import DuplicateProjectError, InvalidStatusTransition, NotFoundError
from src.utils.urls import ensure_scheme, normalize_url

from .models import (
    ContentAnalysis,
    CrawlSession,
    CrawlStatus,
    IssueSeverity,
    IssueStatus,
    MetaTags,
    PerformanceMetrics,
    Project,
    ProjectStatus,
    RecommendationStatus,
    ScanFrequency,
    SEOAnalysis,
    SEOIssue,
    SEORecommendation,
    SEOScoreBreakdown,
    TechnicalAnalysis,
)

logger = logging.getLogger(__name__)


ISSUE_TRANSITIONS = {
    IssueStatus.NEW: {IssueStatus.IN_PROGRESS, IssueStatus.RESOLVED, IssueStatus.DISMISSED},
    IssueStatus.IN_PROGRESS: {IssueStatus.RESOLVED, IssueStatus.DISMISSED, IssueStatus.NEW},
    IssueStatus.RESOLVED: {IssueStatus.NEW},
    IssueStatus.DISMISSED: {IssueStatus.NEW},
}

RECOMMENDATION_TRANSITIONS = {
    RecommendationStatus.PENDING: {
        RecommendationStatus.IN_PROGRESS,
        RecommendationStatus.COMPLETED,
        RecommendationStatus.DISMISSED,
    },
    RecommendationStatus.IN_PROGRESS: {
        RecommendationStatus.COMPLETED,
        RecommendationStatus.DISMISSED,
        RecommendationStatus.PENDING,
    },
    RecommendationStatus.COMPLETED: {RecommendationStatus.PENDING},
    RecommendationStatus.DISMISSED: {RecommendationStatus.PENDING},
}

SEVERITY_RANK = {
    IssueSeverity.CRITICAL: 0,
    IssueSeverity.HIGH: 1,
    IssueSeverity.MEDIUM: 2,
    IssueSeverity.LOW: 3,
}


def _get_or_404(db: Session, model, record_id: str, label: str):
    record = db.get(model, record_id)
    if record is None:
        raise NotFoundError(f"{label} {record_id} not found")
    return record


# =============================================================================
# PROJECTS
# =============================================================================

def create_project(
    db: Session,
    user_id: str,
    name: str,
    url: str,
    scan_frequency: ScanFrequency = ScanFrequency.MANUAL,
    crawl_settings: Optional[Dict[str, Any]] = None,
) -> Project:
    """Create a project; one per (user, normalized url)."""
    normalized = normalize_url(ensure_scheme(url)) or url

    existing = db.query(Project).filter(
        Project.user_id == user_id,
        Project.url == normalized,
    ).first()
    if existing:
        raise DuplicateProjectError(f"Project for {normalized} already exists")

    project = Project(
        user_id=user_id,
        name=name,
        url=normalized,
        scan_frequency=scan_frequency,
        crawl_settings=crawl_settings or {},
    )
    db.add(project)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateProjectError(f"Project for {normalized} already exists")

    logger.info(f"Created project {project.id} for {normalized}")
    return project


def get_project(db: Session, project_id: str) -> Project:
    return _get_or_404(db, Project, project_id, "Project")


def list_projects(
    db: Session,
    user_id: Optional[str] = None,
    status: Optional[ProjectStatus] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Project]:
    """Projects newest first; all users' projects when user_id is None."""
    query = db.query(Project)
    if user_id is not None:
        query = query.filter(Project.user_id == user_id)
    if status is not None:
        query = query.filter(Project.status == status)
    return query.order_by(Project.created_at.desc()).offset(offset).limit(limit).all()


def update_project(db: Session, project_id: str, **changes) -> Project:
    project = get_project(db, project_id)

    if "url" in changes and changes["url"]:
        changes["url"] = normalize_url(ensure_scheme(changes["url"])) or changes["url"]
        duplicate = db.query(Project).filter(
            Project.user_id == project.user_id,
            Project.url == changes["url"],
            Project.id != project.id,
        ).first()
        if duplicate:
            raise DuplicateProjectError(f"Project for {changes['url']} already exists")

    for field_name, value in changes.items():
        if value is not None and hasattr(project, field_name):
            setattr(project, field_name, value)

    db.commit()
    return project


def delete_project(db: Session, project_id: str) -> None:
    """Delete a project with its sessions, analyses and trends."""
    project = get_project(db, project_id)
    db.delete(project)
    db.commit()
    logger.info(f"Deleted project {project_id}")


# =============================================================================
# CRAWL SESSIONS
# =============================================================================

def create_crawl_session(
    db: Session,
    project_id: str,
    crawl_config: Optional[Dict[str, Any]] = None,
    url: Optional[str] = None,
) -> CrawlSession:
    project = get_project(db, project_id)

    config = dict(project.crawl_settings or {})
    config.update(crawl_config or {})

    session = CrawlSession(
        project_id=project.id,
        url=url or project.url,
        status=CrawlStatus.QUEUED,
        crawl_config=config,
        pages_total=config.get("max_pages", 1),
    )
    db.add(session)
    db.commit()

    logger.info(f"Queued crawl session {session.id} for project {project_id}")
    return session


def get_crawl_session(db: Session, session_id: str) -> CrawlSession:
    return _get_or_404(db, CrawlSession, session_id, "Crawl session")


def start_crawl_session(db: Session, session_id: str) -> CrawlSession:
    session = get_crawl_session(db, session_id)
    if session.status != CrawlStatus.QUEUED:
        raise InvalidStatusTransition(
            f"Cannot start crawl session in status {session.status.value}"
        )
    session.status = CrawlStatus.RUNNING
    session.started_at = datetime.utcnow()
    db.commit()
    return session


def update_crawl_progress(
    db: Session,
    session_id: str,
    pages_crawled: int,
    pages_total: Optional[int] = None,
    error_count: Optional[int] = None,
) -> CrawlSession:
    session = get_crawl_session(db, session_id)
    session.pages_crawled = pages_crawled
    if pages_total is not None:
        session.pages_total = pages_total
    if error_count is not None:
        session.error_count = error_count
    total = session.pages_total or 0
    session.progress = round(min(100.0, pages_crawled / total * 100), 1) if total else 0.0
    db.commit()
    return session


def fail_crawl_session(db: Session, session_id: str, error_message: str) -> CrawlSession:
    session = get_crawl_session(db, session_id)
    session.status = CrawlStatus.FAILED
    session.error_message = error_message
    session.completed_at = datetime.utcnow()
    db.commit()
    logger.error(f"Crawl session {session_id} failed: {error_message}")
    return session


def list_crawl_sessions(db: Session, project_id: str, limit: int = 50) -> List[CrawlSession]:
    return (
        db.query(CrawlSession)
        .filter(CrawlSession.project_id == project_id)
        .order_by(CrawlSession.created_at.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# ANALYSIS STORAGE
# =============================================================================

def get_previous_score(db: Session, project_id: str) -> Optional[int]:
    """Overall score of the project's latest completed analysis."""
    previous = (
        db.query(SEOAnalysis)
        .join(CrawlSession, SEOAnalysis.crawl_session_id == CrawlSession.id)
        .filter(
            SEOAnalysis.project_id == project_id,
            CrawlSession.status == CrawlStatus.COMPLETED,
        )
        .order_by(SEOAnalysis.created_at.desc())
        .first()
    )
    return previous.overall_score if previous else None


def _content_record(page) -> Optional[ContentAnalysis]:
    content = page.content if page else None
    if content is None:
        return None
    depth = content.depth
    data = content.to_dict()
    return ContentAnalysis(
        word_count=depth.word_count,
        reading_time=depth.reading_time,
        paragraph_count=depth.paragraph_count,
        sentence_count=depth.sentence_count,
        average_sentence_length=depth.average_sentence_length,
        topic_coverage=depth.topic_coverage,
        content_structure={
            "sections": depth.sections,
            "well_organized": depth.well_organized,
            "logical_flow": depth.logical_flow,
            "top_terms": depth.top_terms,
            "depth_score": depth.score,
        },
        readability_metrics=data["readability"],
        keyword_analysis=data["keywords"],
        freshness_data=data["freshness"],
        quality_metrics=data["quality"],
        overall_score=content.overall_score,
        recommendations=list(content.recommendations),
    )


def _performance_record(page) -> Optional[PerformanceMetrics]:
    performance = page.performance if page else None
    if performance is None:
        return None
    data = performance.to_dict()
    return PerformanceMetrics(
        core_web_vitals=data["core_web_vitals"],
        load_time=performance.load_time,
        page_size=performance.page_size,
        request_count=performance.request_count,
        performance_score=performance.performance_score,
        mobile_perf_score=performance.mobile_score,
        optimization_opportunities=list(performance.opportunities),
        lighthouse_data={
            "source": performance.source,
            "ratings": data["ratings"],
            "grade": data.get("grade"),
            "accessibility_score": performance.accessibility_score,
            "seo_score": performance.seo_score,
            "best_practices_score": performance.best_practices_score,
        },
    )


def _meta_record(page) -> Optional[MetaTags]:
    onpage = page.onpage if page else None
    if onpage is None:
        return None
    structured = page.structured.to_dict() if page.structured else {}
    return MetaTags(
        title=onpage.title,
        description=onpage.meta_description,
        keywords=onpage.meta_keywords,
        title_length=onpage.title_length,
        description_length=onpage.description_length,
        canonical_url=onpage.canonical or None,
        robots=page.technical.robots_meta if page.technical else None,
        open_graph=onpage.open_graph,
        twitter_card=onpage.twitter_card,
        structured_data=structured,
        social_optimization={
            "has_open_graph": onpage.has_open_graph,
            "has_twitter_card": onpage.has_twitter_card,
            "social_sharing": onpage.social_sharing,
        },
    )


def _technical_record(page) -> Optional[TechnicalAnalysis]:
    technical = page.technical if page else None
    if technical is None:
        return None
    t = technical
    return TechnicalAnalysis(
        security_data={
            "has_https": t.has_https,
            "security_headers": t.security_headers,
            "missing_security_headers": t.missing_security_headers,
            "mixed_content": t.mixed_content,
            "mixed_content_urls": t.mixed_content_urls,
        },
        crawlability_data={
            "robots_txt_status": t.robots_txt_status,
            "sitemap_url": t.sitemap_url,
            "canonical": t.canonical,
            "is_redirect": t.is_redirect,
            "redirect_chain_length": t.redirect_chain_length,
        },
        mobile_data={
            "has_viewport": t.has_viewport,
            "viewport_content": t.viewport_content,
            "responsive_design": t.responsive_design,
            "text_too_small": t.text_too_small,
            "content_wider_than_screen": t.content_wider_than_screen,
        },
        structure_data={
            "semantic_html": t.semantic_html,
            "semantic_tags": t.semantic_tags,
            "has_breadcrumbs": t.has_breadcrumbs,
            "has_doctype": t.has_doctype,
            "hreflangs": t.hreflangs,
            "amp_html": t.amp_html,
        },
        indexability_data={
            "is_indexable": t.is_indexable,
            "robots_meta": t.robots_meta,
            "x_robots_tag": t.x_robots_tag,
        },
        performance_data={
            "response_time_ms": t.response_time_ms,
            "html_size": t.html_size,
            "compression": t.compression,
        },
        server_data={
            "status_code": t.status_code,
            "content_type": t.content_type,
            "server": t.server,
        },
    )


def _issue_record(issue) -> SEOIssue:
    return SEOIssue(
        type=issue.id,
        severity=IssueSeverity(issue.severity),
        category=issue.category,
        subcategory=issue.type,
        title=issue.title,
        description=issue.description,
        recommendation=issue.recommendation,
        impact=issue.impact,
        affected_elements=list(issue.affected_elements),
        affected_pages=issue.affected_pages,
        affected_urls=list(issue.affected_urls),
        fix_complexity=issue.fix_complexity,
        estimated_time=issue.estimated_time,
        business_impact=issue.business_impact,
        implementation_steps=list(issue.implementation_steps),
        validation_criteria=list(issue.validation_criteria),
        blocking_indexing=issue.blocking_indexing,
        security_concern=issue.security_concern,
        ranking_impact=issue.ranking_impact,
        enhancement_type=issue.enhancement_type,
        compound_issue=issue.compound_issue,
        affected_categories=list(issue.affected_categories),
    )


def _recommendation_record(rec, issue_row: Optional[SEOIssue]) -> SEORecommendation:
    return SEORecommendation(
        key=rec.key,
        issue=issue_row,
        priority=IssueSeverity(rec.priority),
        category=rec.category,
        title=rec.title,
        description=rec.description,
        implementation_steps=list(rec.implementation_steps),
        code_examples=dict(rec.code_examples),
        tools=list(rec.tools),
        resources=dict(rec.resources),
        expected_results=dict(rec.expected_results),
        validation=dict(rec.validation),
        effort_level=rec.effort_level,
        time_estimate=rec.time_estimate,
        business_value=rec.business_impact.get("severity"),
        quick_win=rec.quick_win,
        strategic_value=rec.strategic_value,
        timeline=rec.timeline,
    )


def store_analysis(db: Session, session_id: str, site_analysis) -> SEOAnalysis:
    """
    Persist a SiteAnalysis for a crawl session.

    Creates the analysis with its 1:1 detail records, issues and
    recommendations, completes the session and refreshes the
    project's cached score.
    """
    session = get_crawl_session(db, session_id)
    if session.analysis is not None:
        raise InvalidStatusTransition(f"Crawl session {session_id} already has an analysis")

    project = session.project
    previous_score = get_previous_score(db, project.id)
    scores = site_analysis.scores
    start = site_analysis.start_page
    payload = site_analysis.to_dict()

    analysis = SEOAnalysis(
        crawl_session_id=session.id,
        project_id=project.id,
        overall_score=scores.overall,
        technical_score=scores.technical,
        content_score=scores.content,
        onpage_score=scores.onpage,
        ux_score=scores.ux,
        previous_score=previous_score,
        score_change=scores.overall - previous_score if previous_score is not None else None,
        pages_analyzed=len(site_analysis.analyzed_pages),
        page_results=payload["pages"],
        insights=payload["insights"],
        issue_summary=site_analysis.issue_report.summary,
        recommendation_summary=site_analysis.recommendations.summary,
    )

    analysis.score_breakdown = SEOScoreBreakdown(
        technical_breakdown=scores.breakdown.get("technical", {}),
        content_breakdown=scores.breakdown.get("content", {}),
        onpage_breakdown=scores.breakdown.get("onpage", {}),
        ux_breakdown=scores.breakdown.get("ux", {}),
        weights=scores.weights,
        trends={
            "previous_score": previous_score,
            "score_change": analysis.score_change,
            "base_score": scores.base_score,
            "risk_penalty": scores.risk_penalty,
        },
        benchmarks={"confidence": site_analysis.confidence},
    )
    analysis.content_analysis = _content_record(start)
    analysis.performance_metrics = _performance_record(start)
    analysis.meta_tags = _meta_record(start)
    analysis.technical_analysis = _technical_record(start)

    issue_rows: Dict[str, SEOIssue] = {}
    for issue in site_analysis.issues:
        row = _issue_record(issue)
        analysis.issues.append(row)
        issue_rows[issue.id] = row

    for rec in site_analysis.recommendations.recommendations:
        analysis.recommendations.append(
            _recommendation_record(rec, issue_rows.get(rec.issue_id) if rec.issue_id else None)
        )

    db.add(analysis)

    session.status = CrawlStatus.COMPLETED
    session.completed_at = datetime.utcnow()
    session.pages_crawled = site_analysis.crawl_summary.get("pages_crawled", len(site_analysis.pages))
    session.error_count = site_analysis.crawl_summary.get("errors", 0)
    session.progress = 100.0

    project.current_score = scores.overall
    project.issue_count = len(site_analysis.issues)
    project.last_scan_date = session.completed_at

    db.commit()
    logger.info(
        f"Stored analysis {analysis.id} for session {session_id}: "
        f"score={analysis.overall_score}, {len(issue_rows)} issues"
    )
    return analysis


# =============================================================================
# ANALYSIS QUERIES
# =============================================================================

def get_analysis(db: Session, analysis_id: str) -> SEOAnalysis:
    return _get_or_404(db, SEOAnalysis, analysis_id, "Analysis")


def get_latest_analysis(db: Session, project_id: str) -> Optional[SEOAnalysis]:
    return (
        db.query(SEOAnalysis)
        .filter(SEOAnalysis.project_id == project_id)
        .order_by(SEOAnalysis.created_at.desc())
        .first()
    )


def list_project_analyses(
    db: Session,
    project_id: str,
    limit: int = 50,
    offset: int = 0,
    since: Optional[datetime] = None,
) -> List[SEOAnalysis]:
    """Analyses newest first."""
    query = db.query(SEOAnalysis).filter(SEOAnalysis.project_id == project_id)
    if since is not None:
        query = query.filter(SEOAnalysis.created_at >= since)
    return query.order_by(SEOAnalysis.created_at.desc()).offset(offset).limit(limit).all()


# =============================================================================
# ISSUES
# =============================================================================

def get_issue(db: Session, issue_id: str) -> SEOIssue:
    return _get_or_404(db, SEOIssue, issue_id, "Issue")


def list_issues(
    db: Session,
    analysis_id: str,
    severity: Optional[IssueSeverity] = None,
    category: Optional[str] = None,
    status: Optional[IssueStatus] = None,
) -> List[SEOIssue]:
    """Issues of an analysis, most severe first."""
    query = db.query(SEOIssue).filter(SEOIssue.analysis_id == analysis_id)
    if severity is not None:
        query = query.filter(SEOIssue.severity == severity)
    if category is not None:
        query = query.filter(SEOIssue.category == category)
    if status is not None:
        query = query.filter(SEOIssue.status == status)
    issues = query.all()
    return sorted(issues, key=lambda i: (SEVERITY_RANK[i.severity], i.created_at or datetime.min))


def update_issue_status(db: Session, issue_id: str, status: IssueStatus) -> SEOIssue:
    issue = get_issue(db, issue_id)
    if status == issue.status:
        return issue
    if status not in ISSUE_TRANSITIONS[issue.status]:
        raise InvalidStatusTransition(
            f"Issue cannot move from {issue.status.value} to {status.value}"
        )

    issue.status = status
    issue.resolved_at = datetime.utcnow() if status == IssueStatus.RESOLVED else None
    db.commit()
    return issue


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

def get_recommendation(db: Session, recommendation_id: str) -> SEORecommendation:
    return _get_or_404(db, SEORecommendation, recommendation_id, "Recommendation")


def list_recommendations(
    db: Session,
    analysis_id: str,
    priority: Optional[IssueSeverity] = None,
    category: Optional[str] = None,
    status: Optional[RecommendationStatus] = None,
    quick_wins_only: bool = False,
) -> List[SEORecommendation]:
    """Recommendations by priority then strategic value."""
    query = db.query(SEORecommendation).filter(SEORecommendation.analysis_id == analysis_id)
    if priority is not None:
        query = query.filter(SEORecommendation.priority == priority)
    if category is not None:
        query = query.filter(SEORecommendation.category == category)
    if status is not None:
        query = query.filter(SEORecommendation.status == status)
    if quick_wins_only:
        query = query.filter(SEORecommendation.quick_win.is_(True))
    recs = query.all()
    return sorted(recs, key=lambda r: (SEVERITY_RANK[r.priority], -(r.strategic_value or 0)))


def update_recommendation_status(
    db: Session,
    recommendation_id: str,
    status: RecommendationStatus,
    notes: Optional[str] = None,
) -> SEORecommendation:
    rec = get_recommendation(db, recommendation_id)
    if status != rec.status and status not in RECOMMENDATION_TRANSITIONS[rec.status]:
        raise InvalidStatusTransition(
            f"Recommendation cannot move from {rec.status.value} to {status.value}"
        )

    if status != rec.status:
        rec.status = status
        rec.completed_at = datetime.utcnow() if status == RecommendationStatus.COMPLETED else None
    if notes is not None:
        rec.notes = notes
    db.commit()
    return rec
