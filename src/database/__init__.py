"""
SEO Audit Database Layer

Usage:
    from src.database import (
        # Session management
        init_db, get_db, get_db_context,

        # Models
        Project, CrawlSession, SEOAnalysis, SEOIssue, SEORecommendation,

        # Repository
        create_project, create_crawl_session, store_analysis,
    )

    init_db()

    with get_db_context() as db:
        project = create_project(db, user_id, "Example", "https://example.com")
        session = create_crawl_session(db, project.id)
"""

from .models import (
    Base,
    # Enums
    ProjectStatus,
    ScanFrequency,
    CrawlStatus,
    CrawlType,
    IssueSeverity,
    IssueStatus,
    RecommendationStatus,
    ExportStatus,
    # Core
    Project,
    CrawlSession,
    SEOAnalysis,
    # Analysis detail
    SEOScoreBreakdown,
    ContentAnalysis,
    PerformanceMetrics,
    MetaTags,
    TechnicalAnalysis,
    SEOIssue,
    SEORecommendation,
    # Cache, history, exports
    AnalysisCache,
    ProjectTrend,
    IssueTrend,
    ReportExport,
)

from .session import (
    get_database_url,
    get_engine,
    reset_engine,
    get_session_factory,
    get_db,
    get_db_context,
    init_db,
    get_db_info,
    check_db_connection,
    transaction,
)

from .repository import (
    create_project,
    get_project,
    list_projects,
    update_project,
    delete_project,
    create_crawl_session,
    get_crawl_session,
    start_crawl_session,
    update_crawl_progress,
    fail_crawl_session,
    list_crawl_sessions,
    store_analysis,
    get_previous_score,
    get_analysis,
    get_latest_analysis,
    list_project_analyses,
    get_issue,
    list_issues,
    update_issue_status,
    get_recommendation,
    list_recommendations,
    update_recommendation_status,
)

from .serializers import (
    project_to_dict,
    crawl_session_to_dict,
    analysis_to_dict,
    issue_to_dict,
    recommendation_to_dict,
)

__all__ = [
    "Base",
    "ProjectStatus",
    "ScanFrequency",
    "CrawlStatus",
    "CrawlType",
    "IssueSeverity",
    "IssueStatus",
    "RecommendationStatus",
    "ExportStatus",
    "Project",
    "CrawlSession",
    "SEOAnalysis",
    "SEOScoreBreakdown",
    "ContentAnalysis",
    "PerformanceMetrics",
    "MetaTags",
    "TechnicalAnalysis",
    "SEOIssue",
    "SEORecommendation",
    "AnalysisCache",
    "ProjectTrend",
    "IssueTrend",
    "ReportExport",
    "get_database_url",
    "get_engine",
    "reset_engine",
    "get_session_factory",
    "get_db",
    "get_db_context",
    "init_db",
    "get_db_info",
    "check_db_connection",
    "transaction",
    "create_project",
    "get_project",
    "list_projects",
    "update_project",
    "delete_project",
    "create_crawl_session",
    "get_crawl_session",
    "start_crawl_session",
    "update_crawl_progress",
    "fail_crawl_session",
    "list_crawl_sessions",
    "store_analysis",
    "get_previous_score",
    "get_analysis",
    "get_latest_analysis",
    "list_project_analyses",
    "get_issue",
    "list_issues",
    "update_issue_status",
    "get_recommendation",
    "list_recommendations",
    "update_recommendation_status",
    "project_to_dict",
    "crawl_session_to_dict",
    "analysis_to_dict",
    "issue_to_dict",
    "recommendation_to_dict",
]
