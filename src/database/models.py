"""
SQLAlchemy Models for the SEO Audit Engine

Design Principles:
1. One crawl session produces at most one analysis
2. An analysis owns its score breakdown, content, performance, meta
   and technical records (1:1) plus its issues and recommendations (1:N)
3. Projects cache their latest score for fast list views
4. Daily rollups (project and issue trends) feed time-series charts
5. Cascades flow Project -> CrawlSession -> SEOAnalysis -> children

Portable across PostgreSQL (production) and SQLite (development, tests):
ids are UUID strings and structured payloads use the generic JSON type.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Date, Text,
    ForeignKey, Enum, Index, UniqueConstraint, JSON
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def generate_uuid() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class ProjectStatus(enum.Enum):
    """Lifecycle of a tracked website"""
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class ScanFrequency(enum.Enum):
    """How often a project should be re-crawled"""
    MANUAL = "manual"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class CrawlStatus(enum.Enum):
    """Status of a crawl session"""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CrawlType(enum.Enum):
    """Scope of a crawl"""
    SINGLE = "single"
    SUBFOLDER = "subfolder"
    DOMAIN = "domain"


class IssueSeverity(enum.Enum):
    """How badly an issue hurts search performance"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueStatus(enum.Enum):
    """Issue lifecycle"""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class RecommendationStatus(enum.Enum):
    """Recommendation completion lifecycle"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DISMISSED = "dismissed"


class ExportStatus(enum.Enum):
    """Bulk export job status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# CORE TABLES
# =============================================================================

class Project(Base):
    """A website tracked by a user"""
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    url = Column(String(2000), nullable=False)
    favicon_url = Column(String(2000))

    status = Column(Enum(ProjectStatus), default=ProjectStatus.ACTIVE, nullable=False)
    scan_frequency = Column(Enum(ScanFrequency), default=ScanFrequency.MANUAL, nullable=False)

    # Default crawl settings for new sessions
    crawl_settings = Column(JSON, default=dict)

    # Denormalized from the latest completed analysis
    current_score = Column(Integer, default=0, nullable=False)
    issue_count = Column(Integer, default=0, nullable=False)
    last_scan_date = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    crawl_sessions = relationship("CrawlSession", back_populates="project", cascade="all, delete-orphan")
    analyses = relationship("SEOAnalysis", back_populates="project", cascade="all, delete-orphan")
    trends = relationship("ProjectTrend", back_populates="project", cascade="all, delete-orphan")
    issue_trends = relationship("IssueTrend", back_populates="project", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("user_id", "url", name="uq_project_user_url"),
        Index("idx_project_user", "user_id"),
    )

    def __repr__(self):
        return f"<Project {self.name} ({self.url})>"


class CrawlSession(Base):
    """One crawl attempt against a project's URL"""
    __tablename__ = "crawl_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    url = Column(String(2000), nullable=False)
    status = Column(Enum(CrawlStatus), default=CrawlStatus.QUEUED, nullable=False)
    crawl_config = Column(JSON, default=dict)

    # Progress
    pages_crawled = Column(Integer, default=0)
    pages_total = Column(Integer, default=0)
    progress = Column(Float, default=0.0)
    error_count = Column(Integer, default=0)

    error_message = Column(Text)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    project = relationship("Project", back_populates="crawl_sessions")
    analysis = relationship(
        "SEOAnalysis",
        back_populates="crawl_session",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_crawl_project_created", "project_id", "created_at"),
        Index("idx_crawl_status", "status"),
    )

    @property
    def duration_seconds(self):
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class SEOAnalysis(Base):
    """Scored result of a crawl"""
    __tablename__ = "seo_analyses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    crawl_session_id = Column(
        String(36),
        ForeignKey("crawl_sessions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    # Scores
    overall_score = Column(Integer, default=0)
    technical_score = Column(Integer, default=0)
    content_score = Column(Integer, default=0)
    onpage_score = Column(Integer, default=0)
    ux_score = Column(Integer, default=0)

    # Trend deltas against the previous completed analysis
    previous_score = Column(Integer)
    score_change = Column(Integer)

    # Site-level detail
    pages_analyzed = Column(Integer, default=0)
    page_results = Column(JSON, default=list)
    insights = Column(JSON, default=dict)
    issue_summary = Column(JSON, default=dict)
    recommendation_summary = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    crawl_session = relationship("CrawlSession", back_populates="analysis")
    project = relationship("Project", back_populates="analyses")

    score_breakdown = relationship("SEOScoreBreakdown", back_populates="analysis", uselist=False, cascade="all, delete-orphan")
    content_analysis = relationship("ContentAnalysis", back_populates="analysis", uselist=False, cascade="all, delete-orphan")
    performance_metrics = relationship("PerformanceMetrics", back_populates="analysis", uselist=False, cascade="all, delete-orphan")
    meta_tags = relationship("MetaTags", back_populates="analysis", uselist=False, cascade="all, delete-orphan")
    technical_analysis = relationship("TechnicalAnalysis", back_populates="analysis", uselist=False, cascade="all, delete-orphan")

    issues = relationship("SEOIssue", back_populates="analysis", cascade="all, delete-orphan")
    recommendations = relationship("SEORecommendation", back_populates="analysis", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_analysis_project_created", "project_id", "created_at"),
    )

    @property
    def category_scores(self) -> dict:
        return {
            "overall": self.overall_score,
            "technical": self.technical_score,
            "content": self.content_score,
            "onpage": self.onpage_score,
            "ux": self.ux_score,
        }


# =============================================================================
# ONE-TO-ONE ANALYSIS DETAIL
# =============================================================================

class SEOScoreBreakdown(Base):
    """Sub-score detail behind each category score"""
    __tablename__ = "seo_score_breakdowns"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("seo_analyses.id", ondelete="CASCADE"), nullable=False, unique=True)

    technical_breakdown = Column(JSON, default=dict)
    content_breakdown = Column(JSON, default=dict)
    onpage_breakdown = Column(JSON, default=dict)
    ux_breakdown = Column(JSON, default=dict)
    weights = Column(JSON, default=dict)
    trends = Column(JSON, default=dict)
    benchmarks = Column(JSON, default=dict)

    analysis = relationship("SEOAnalysis", back_populates="score_breakdown")


class ContentAnalysis(Base):
    """Content depth, readability, keywords and freshness"""
    __tablename__ = "content_analyses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("seo_analyses.id", ondelete="CASCADE"), nullable=False, unique=True)

    word_count = Column(Integer, default=0)
    reading_time = Column(Integer, default=0)
    paragraph_count = Column(Integer, default=0)
    sentence_count = Column(Integer, default=0)
    average_sentence_length = Column(Float, default=0.0)
    topic_coverage = Column(Float, default=0.0)

    content_structure = Column(JSON, default=dict)
    readability_metrics = Column(JSON, default=dict)
    keyword_analysis = Column(JSON, default=dict)
    freshness_data = Column(JSON, default=dict)
    quality_metrics = Column(JSON, default=dict)

    overall_score = Column(Integer, default=0)
    recommendations = Column(JSON, default=list)

    analysis = relationship("SEOAnalysis", back_populates="content_analysis")


class PerformanceMetrics(Base):
    """Load timing and Core Web Vitals"""
    __tablename__ = "performance_metrics"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("seo_analyses.id", ondelete="CASCADE"), nullable=False, unique=True)

    core_web_vitals = Column(JSON, default=dict)
    load_time = Column(Float)
    page_size = Column(Integer)
    request_count = Column(Integer)
    performance_score = Column(Integer)
    mobile_perf_score = Column(Integer)
    optimization_opportunities = Column(JSON, default=list)
    lighthouse_data = Column(JSON, default=dict)

    analysis = relationship("SEOAnalysis", back_populates="performance_metrics")


class MetaTags(Base):
    """Title, description and social tags of the start page"""
    __tablename__ = "meta_tags"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("seo_analyses.id", ondelete="CASCADE"), nullable=False, unique=True)

    title = Column(Text)
    description = Column(Text)
    keywords = Column(Text)
    title_length = Column(Integer, default=0)
    description_length = Column(Integer, default=0)
    canonical_url = Column(String(2000))
    robots = Column(String(255))
    open_graph = Column(JSON, default=dict)
    twitter_card = Column(JSON, default=dict)
    structured_data = Column(JSON, default=dict)
    social_optimization = Column(JSON, default=dict)

    analysis = relationship("SEOAnalysis", back_populates="meta_tags")


class TechnicalAnalysis(Base):
    """Security, crawlability, mobile and server findings"""
    __tablename__ = "technical_analyses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("seo_analyses.id", ondelete="CASCADE"), nullable=False, unique=True)

    security_data = Column(JSON, default=dict)
    crawlability_data = Column(JSON, default=dict)
    mobile_data = Column(JSON, default=dict)
    structure_data = Column(JSON, default=dict)
    indexability_data = Column(JSON, default=dict)
    performance_data = Column(JSON, default=dict)
    server_data = Column(JSON, default=dict)

    analysis = relationship("SEOAnalysis", back_populates="technical_analysis")


# =============================================================================
# ISSUES & RECOMMENDATIONS
# =============================================================================

class SEOIssue(Base):
    """Detected problem with lifecycle tracking"""
    __tablename__ = "seo_issues"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("seo_analyses.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(100), nullable=False)  # e.g. missing-title
    severity = Column(Enum(IssueSeverity), nullable=False)
    category = Column(String(50), nullable=False)
    subcategory = Column(String(50))            # e.g. meta-tags
    title = Column(String(500), nullable=False)
    description = Column(Text)
    recommendation = Column(Text)
    impact = Column(Text)
    affected_elements = Column(JSON, default=list)
    affected_pages = Column(Integer, default=1)
    affected_urls = Column(JSON, default=list)

    status = Column(Enum(IssueStatus), default=IssueStatus.NEW, nullable=False)

    fix_complexity = Column(String(20))
    estimated_time = Column(String(50))
    business_impact = Column(String(20))
    implementation_steps = Column(JSON, default=list)
    validation_criteria = Column(JSON, default=list)

    # Severity-specific flags
    blocking_indexing = Column(Boolean, default=False)
    security_concern = Column(Boolean, default=False)
    ranking_impact = Column(String(20))
    enhancement_type = Column(String(30))
    compound_issue = Column(Boolean, default=False)
    affected_categories = Column(JSON, default=list)

    resolved_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    analysis = relationship("SEOAnalysis", back_populates="issues")
    recommendations = relationship("SEORecommendation", back_populates="issue", passive_deletes=True)

    __table_args__ = (
        Index("idx_issue_analysis_severity", "analysis_id", "severity"),
        Index("idx_issue_status", "status"),
    )


class SEORecommendation(Base):
    """Actionable fix, optionally tied to the issue it resolves"""
    __tablename__ = "seo_recommendations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("seo_analyses.id", ondelete="CASCADE"), nullable=False)
    issue_id = Column(String(36), ForeignKey("seo_issues.id", ondelete="SET NULL"), nullable=True)

    key = Column(String(150))  # e.g. rec_missing-title
    priority = Column(Enum(IssueSeverity), nullable=False)
    category = Column(String(50), nullable=False)
    title = Column(String(500), nullable=False)
    description = Column(Text)

    implementation_steps = Column(JSON, default=list)
    code_examples = Column(JSON, default=dict)
    tools = Column(JSON, default=list)
    resources = Column(JSON, default=list)
    expected_results = Column(JSON, default=dict)
    validation = Column(JSON, default=dict)

    effort_level = Column(String(20))
    time_estimate = Column(String(50))
    business_value = Column(String(20))
    quick_win = Column(Boolean, default=False)
    strategic_value = Column(Integer, default=5)
    timeline = Column(String(20))

    status = Column(Enum(RecommendationStatus), default=RecommendationStatus.PENDING, nullable=False)
    completed_at = Column(DateTime)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    analysis = relationship("SEOAnalysis", back_populates="recommendations")
    issue = relationship("SEOIssue", back_populates="recommendations")

    __table_args__ = (
        Index("idx_rec_analysis_priority", "analysis_id", "priority"),
    )


# =============================================================================
# CACHE
# =============================================================================

class AnalysisCache(Base):
    """TTL cache of analysis payloads with tag-based invalidation"""
    __tablename__ = "analysis_cache"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    key = Column(String(500), nullable=False, unique=True)
    url = Column(String(2000))
    url_hash = Column(String(32), nullable=False, unique=True)

    data = Column(JSON, nullable=False)
    tags = Column(JSON, default=list)
    size = Column(Integer, default=0)
    version = Column(String(20), default="1.0")

    expires_at = Column(DateTime, nullable=False)
    access_count = Column(Integer, default=0)
    last_accessed = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_cache_expires", "expires_at"),
    )

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= datetime.utcnow()


# =============================================================================
# HISTORY & TRENDS
# =============================================================================

class ProjectTrend(Base):
    """Daily score and issue-count snapshot for a project"""
    __tablename__ = "project_trends"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)

    overall_score = Column(Integer, default=0)
    technical_score = Column(Integer, default=0)
    content_score = Column(Integer, default=0)
    onpage_score = Column(Integer, default=0)
    ux_score = Column(Integer, default=0)

    total_issues = Column(Integer, default=0)
    critical_issues = Column(Integer, default=0)
    high_issues = Column(Integer, default=0)
    medium_issues = Column(Integer, default=0)
    low_issues = Column(Integer, default=0)

    performance_score = Column(Integer)
    accessibility_score = Column(Integer)
    crawlability_score = Column(Integer)
    core_web_vitals = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="trends")

    __table_args__ = (
        UniqueConstraint("project_id", "date", name="uq_project_trend_date"),
        Index("idx_project_trend_date", "project_id", "date"),
    )


class IssueTrend(Base):
    """Daily count of one issue type for a project"""
    __tablename__ = "issue_trends"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    issue_type = Column(String(100), nullable=False)
    issue_severity = Column(String(20))
    issue_category = Column(String(50))
    count = Column(Integer, default=0)
    date = Column(Date, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="issue_trends")

    __table_args__ = (
        UniqueConstraint("project_id", "issue_type", "date", name="uq_issue_trend_type_date"),
        Index("idx_issue_trend_project_date", "project_id", "date"),
    )


# =============================================================================
# EXPORTS
# =============================================================================

class ReportExport(Base):
    """Bulk export job over one or more analyses"""
    __tablename__ = "report_exports"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    format = Column(String(10), nullable=False)
    status = Column(Enum(ExportStatus), default=ExportStatus.PENDING, nullable=False)
    analysis_ids = Column(JSON, default=list)
    options = Column(JSON, default=dict)

    filename = Column(String(255))
    content = Column(Text)
    row_count = Column(Integer, default=0)
    error = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
