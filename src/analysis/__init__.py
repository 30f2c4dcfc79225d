"""
Analysis Module

Technical, on-page, content, structured-data and performance analysis,
scoring, issue detection and recommendations.

Usage:
    from src.analysis import PageAnalyzer, SiteAnalyzer

    site = await SiteAnalyzer().analyze(crawl_result)
    print(site.overall_score)
"""

from .analyzer import (
    PageAnalysis,
    PageAnalyzer,
    SiteAnalysis,
    SiteAnalyzer,
    aggregate_scores,
    calculate_confidence,
    empty_scores,
)
from .issues import DetectedIssue, IssueReport, build_issue_report
from .page import PageContext
from .performance import PageSpeedClient, PerformanceData
from .recommendations import RecommendationSet, SmartRecommendation
from .scoring import ScoreResult, calculate_scores

__all__ = [
    "PageAnalysis",
    "PageAnalyzer",
    "SiteAnalysis",
    "SiteAnalyzer",
    "aggregate_scores",
    "calculate_confidence",
    "empty_scores",
    "DetectedIssue",
    "IssueReport",
    "build_issue_report",
    "PageContext",
    "PageSpeedClient",
    "PerformanceData",
    "RecommendationSet",
    "SmartRecommendation",
    "ScoreResult",
    "calculate_scores",
]
