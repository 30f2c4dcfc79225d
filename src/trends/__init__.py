"""
Score history and trend analysis.

Usage:
    from src.trends import TrendAnalysisService, record_trends

    record_trends(db, project.id, analysis)
    trend = TrendAnalysisService(db).generate_trend_data(project.id, "30d")
"""

from .service import (
    TrendAnalysisService,
    TrendData,
    TrendDataPoint,
    TrendSummary,
    TrendMetrics,
    TrendPrediction,
    Regression,
    record_trends,
    compare_analyses,
    linear_trend,
    summarize,
    detect_metric_regressions,
)

__all__ = [
    "TrendAnalysisService",
    "TrendData",
    "TrendDataPoint",
    "TrendSummary",
    "TrendMetrics",
    "TrendPrediction",
    "Regression",
    "record_trends",
    "compare_analyses",
    "linear_trend",
    "summarize",
    "detect_metric_regressions",
]
