"""
Plain-dict views of stored records.

Shared by the API responses, report generation and the analysis cache,
so all three see the same JSON-safe shape.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional

from src.database.models import (
    CrawlSession,
    Project,
    SEOAnalysis,
    SEOIssue,
    SEORecommendation,
)


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def _enum(value) -> Optional[str]:
    return value.value if value is not None else None


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "user_id": project.user_id,
        "name": project.name,
        "url": project.url,
        "favicon_url": project.favicon_url,
        "status": _enum(project.status),
        "scan_frequency": _enum(project.scan_frequency),
        "crawl_settings": project.crawl_settings or {},
        "current_score": project.current_score,
        "issue_count": project.issue_count,
        "last_scan_date": _iso(project.last_scan_date),
        "created_at": _iso(project.created_at),
        "updated_at": _iso(project.updated_at),
    }


def crawl_session_to_dict(session: CrawlSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "project_id": session.project_id,
        "url": session.url,
        "status": _enum(session.status),
        "crawl_config": session.crawl_config or {},
        "pages_crawled": session.pages_crawled,
        "pages_total": session.pages_total,
        "progress": session.progress,
        "error_count": session.error_count,
        "error_message": session.error_message,
        "started_at": _iso(session.started_at),
        "completed_at": _iso(session.completed_at),
        "duration_seconds": session.duration_seconds,
        "analysis_id": session.analysis.id if session.analysis else None,
        "created_at": _iso(session.created_at),
    }


def issue_to_dict(issue: SEOIssue) -> Dict[str, Any]:
    return {
        "id": issue.id,
        "analysis_id": issue.analysis_id,
        "type": issue.type,
        "subcategory": issue.subcategory,
        "severity": _enum(issue.severity),
        "category": issue.category,
        "title": issue.title,
        "description": issue.description,
        "recommendation": issue.recommendation,
        "impact": issue.impact,
        "affected_elements": issue.affected_elements or [],
        "affected_pages": issue.affected_pages,
        "affected_urls": issue.affected_urls or [],
        "status": _enum(issue.status),
        "fix_complexity": issue.fix_complexity,
        "estimated_time": issue.estimated_time,
        "business_impact": issue.business_impact,
        "implementation_steps": issue.implementation_steps or [],
        "validation_criteria": issue.validation_criteria or [],
        "blocking_indexing": issue.blocking_indexing,
        "security_concern": issue.security_concern,
        "ranking_impact": issue.ranking_impact,
        "enhancement_type": issue.enhancement_type,
        "compound_issue": issue.compound_issue,
        "affected_categories": issue.affected_categories or [],
        "resolved_at": _iso(issue.resolved_at),
        "created_at": _iso(issue.created_at),
    }


def recommendation_to_dict(rec: SEORecommendation) -> Dict[str, Any]:
    return {
        "id": rec.id,
        "analysis_id": rec.analysis_id,
        "issue_id": rec.issue_id,
        "key": rec.key,
        "priority": _enum(rec.priority),
        "category": rec.category,
        "title": rec.title,
        "description": rec.description,
        "implementation_steps": rec.implementation_steps or [],
        "code_examples": rec.code_examples or {},
        "tools": rec.tools or [],
        "resources": rec.resources or {},
        "expected_results": rec.expected_results or {},
        "validation": rec.validation or {},
        "effort_level": rec.effort_level,
        "time_estimate": rec.time_estimate,
        "business_value": rec.business_value,
        "quick_win": rec.quick_win,
        "strategic_value": rec.strategic_value,
        "timeline": rec.timeline,
        "status": _enum(rec.status),
        "completed_at": _iso(rec.completed_at),
        "notes": rec.notes,
        "created_at": _iso(rec.created_at),
    }


def _content_dict(analysis: SEOAnalysis) -> Optional[Dict[str, Any]]:
    c = analysis.content_analysis
    if c is None:
        return None
    return {
        "word_count": c.word_count,
        "reading_time": c.reading_time,
        "paragraph_count": c.paragraph_count,
        "sentence_count": c.sentence_count,
        "average_sentence_length": c.average_sentence_length,
        "topic_coverage": c.topic_coverage,
        "content_structure": c.content_structure or {},
        "readability": c.readability_metrics or {},
        "keywords": c.keyword_analysis or {},
        "freshness": c.freshness_data or {},
        "quality": c.quality_metrics or {},
        "overall_score": c.overall_score,
        "recommendations": c.recommendations or [],
    }


def _performance_dict(analysis: SEOAnalysis) -> Optional[Dict[str, Any]]:
    p = analysis.performance_metrics
    if p is None:
        return None
    return {
        "core_web_vitals": p.core_web_vitals or {},
        "load_time": p.load_time,
        "page_size": p.page_size,
        "request_count": p.request_count,
        "performance_score": p.performance_score,
        "mobile_score": p.mobile_perf_score,
        "opportunities": p.optimization_opportunities or [],
        "lighthouse": p.lighthouse_data or {},
    }


def _meta_dict(analysis: SEOAnalysis) -> Optional[Dict[str, Any]]:
    m = analysis.meta_tags
    if m is None:
        return None
    return {
        "title": m.title,
        "description": m.description,
        "keywords": m.keywords,
        "title_length": m.title_length,
        "description_length": m.description_length,
        "canonical_url": m.canonical_url,
        "robots": m.robots,
        "open_graph": m.open_graph or {},
        "twitter_card": m.twitter_card or {},
        "structured_data": m.structured_data or {},
        "social_optimization": m.social_optimization or {},
    }


def _technical_dict(analysis: SEOAnalysis) -> Optional[Dict[str, Any]]:
    t = analysis.technical_analysis
    if t is None:
        return None
    return {
        "security": t.security_data or {},
        "crawlability": t.crawlability_data or {},
        "mobile": t.mobile_data or {},
        "structure": t.structure_data or {},
        "indexability": t.indexability_data or {},
        "performance": t.performance_data or {},
        "server": t.server_data or {},
    }


def _breakdown_dict(analysis: SEOAnalysis) -> Optional[Dict[str, Any]]:
    b = analysis.score_breakdown
    if b is None:
        return None
    return {
        "technical": b.technical_breakdown or {},
        "content": b.content_breakdown or {},
        "onpage": b.onpage_breakdown or {},
        "ux": b.ux_breakdown or {},
        "weights": b.weights or {},
        "trends": b.trends or {},
        "benchmarks": b.benchmarks or {},
    }


def analysis_to_dict(analysis: SEOAnalysis, include_details: bool = True) -> Dict[str, Any]:
    """
    Serialize an analysis.

    With include_details the 1:1 detail records, issues, recommendations
    and per-page results are included; otherwise only the summary fields.
    """
    session = analysis.crawl_session
    data: Dict[str, Any] = {
        "id": analysis.id,
        "project_id": analysis.project_id,
        "crawl_session_id": analysis.crawl_session_id,
        "url": session.url if session else None,
        "scores": analysis.category_scores,
        "overall_score": analysis.overall_score,
        "previous_score": analysis.previous_score,
        "score_change": analysis.score_change,
        "pages_analyzed": analysis.pages_analyzed,
        "issue_summary": analysis.issue_summary or {},
        "recommendation_summary": analysis.recommendation_summary or {},
        "created_at": _iso(analysis.created_at),
    }
    if not include_details:
        return data

    data.update({
        "score_breakdown": _breakdown_dict(analysis),
        "content": _content_dict(analysis),
        "performance": _performance_dict(analysis),
        "meta_tags": _meta_dict(analysis),
        "technical": _technical_dict(analysis),
        "insights": analysis.insights or {},
        "pages": analysis.page_results or [],
        "issues": [issue_to_dict(i) for i in analysis.issues],
        "recommendations": [recommendation_to_dict(r) for r in analysis.recommendations],
    })
    return data
