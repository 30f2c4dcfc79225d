"""
Trend Analysis Service

Turns the history of a project's analyses into time series:
1. Daily rollups (ProjectTrend, IssueTrend) recorded after each crawl
2. Trend data for 7d / 30d / 90d / 1y windows with summary statistics
3. Regression detection on overall score, performance and Core Web Vitals
4. Linear-regression score prediction
5. Per-issue-type history and analysis-to-analysis comparison
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.cache.analysis_cache import AnalysisCacheService
from src.cache.config import CacheTTL
from src.database.models import (
    IssueSeverity,
    IssueTrend,
    ProjectTrend,
    SEOAnalysis,
)
from src.utils.errors import InsufficientDataError, ValidationFailed

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}

TIMEFRAME_MULTIPLIER = {
    "1w": 1,
    "1m": 4,
    "3m": 12,
}

TREND_THRESHOLD = 3
MIN_REGRESSION_POINTS = 3
MIN_PREDICTION_POINTS = 5

# Core Web Vitals where a higher value is worse
RISING_IS_WORSE = ("lcp", "cls")


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class TrendDataPoint:
    date: str
    overall_score: int
    technical_score: int
    content_score: int
    onpage_score: int
    ux_score: int
    performance_score: Optional[int] = None
    accessibility_score: Optional[int] = None
    core_web_vitals: Optional[Dict[str, Optional[float]]] = None
    source: str = "analysis"


@dataclass
class TrendSummary:
    total_data_points: int = 0
    average_score: int = 0
    best_score: int = 0
    worst_score: int = 0
    volatility: int = 0
    overall_trend: str = "stable"


@dataclass
class TrendMetrics:
    score_improvement: int = 0
    performance_change: int = 0
    consistency_score: int = 50


@dataclass
class TrendData:
    project_id: str
    period: str
    data_points: List[TrendDataPoint] = field(default_factory=list)
    summary: TrendSummary = field(default_factory=TrendSummary)
    metrics: TrendMetrics = field(default_factory=TrendMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrendData":
        return cls(
            project_id=data["project_id"],
            period=data["period"],
            data_points=[TrendDataPoint(**p) for p in data.get("data_points", [])],
            summary=TrendSummary(**data.get("summary", {})),
            metrics=TrendMetrics(**data.get("metrics", {})),
        )


@dataclass
class Regression:
    id: str
    project_id: str
    detected_at: str
    metric: str
    severity: str  # critical, major, minor
    description: str
    before_value: float
    after_value: float
    change_percentage: int
    possible_causes: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    status: str = "active"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TrendPrediction:
    project_id: str
    predicted_score: int
    confidence: int
    timeframe: str
    factors: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# ROLLUPS
# =============================================================================

def _severity_counts(analysis: SEOAnalysis) -> Dict[str, int]:
    counts = {s.value: 0 for s in IssueSeverity}
    for issue in analysis.issues:
        counts[issue.severity.value] += 1
    return counts


def record_trends(db: Session, project_id: str, analysis: SEOAnalysis) -> ProjectTrend:
    """
    Upsert the day's ProjectTrend and IssueTrend rows from an analysis.

    A later analysis on the same day overwrites the earlier snapshot.
    """
    day = (analysis.created_at or datetime.utcnow()).date()
    counts = _severity_counts(analysis)

    technical_breakdown = analysis.score_breakdown.technical_breakdown if analysis.score_breakdown else {}
    ux_breakdown = analysis.score_breakdown.ux_breakdown if analysis.score_breakdown else {}
    perf = analysis.performance_metrics

    trend = db.query(ProjectTrend).filter(
        ProjectTrend.project_id == project_id,
        ProjectTrend.date == day,
    ).first()
    if trend is None:
        trend = ProjectTrend(project_id=project_id, date=day)
        db.add(trend)

    trend.overall_score = analysis.overall_score
    trend.technical_score = analysis.technical_score
    trend.content_score = analysis.content_score
    trend.onpage_score = analysis.onpage_score
    trend.ux_score = analysis.ux_score
    trend.total_issues = sum(counts.values())
    trend.critical_issues = counts["critical"]
    trend.high_issues = counts["high"]
    trend.medium_issues = counts["medium"]
    trend.low_issues = counts["low"]
    trend.performance_score = (
        perf.performance_score if perf and perf.performance_score is not None
        else (technical_breakdown or {}).get("performance")
    )
    trend.accessibility_score = (ux_breakdown or {}).get("accessibility")
    trend.crawlability_score = (technical_breakdown or {}).get("crawlability")
    trend.core_web_vitals = dict(perf.core_web_vitals or {}) if perf else {}

    # One row per issue type; count is the number of affected pages
    by_type: Dict[str, Dict[str, Any]] = {}
    for issue in analysis.issues:
        entry = by_type.setdefault(issue.type, {
            "count": 0,
            "severity": issue.severity.value,
            "category": issue.category,
        })
        entry["count"] += issue.affected_pages or 1

    existing = {
        row.issue_type: row
        for row in db.query(IssueTrend).filter(
            IssueTrend.project_id == project_id,
            IssueTrend.date == day,
        ).all()
    }
    for issue_type, row in existing.items():
        if issue_type not in by_type:
            db.delete(row)
    for issue_type, entry in by_type.items():
        row = existing.get(issue_type)
        if row is None:
            row = IssueTrend(project_id=project_id, issue_type=issue_type, date=day)
            db.add(row)
        row.count = entry["count"]
        row.issue_severity = entry["severity"]
        row.issue_category = entry["category"]

    db.commit()
    logger.info(
        f"Recorded trends for project {project_id} on {day}: "
        f"score={trend.overall_score}, {len(by_type)} issue types"
    )
    return trend


# =============================================================================
# STATISTICS
# =============================================================================

def linear_trend(values: List[float]) -> float:
    """Least-squares slope over evenly spaced points."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_xx = sum(i * i for i in range(n))
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def population_std(values: List[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def summarize(points: List[TrendDataPoint]) -> TrendSummary:
    if not points:
        return TrendSummary()

    scores = [p.overall_score for p in points]
    average = round(sum(scores) / len(scores))
    variance = sum((s - average) ** 2 for s in scores) / len(scores)

    half = len(scores) // 2
    first_half = scores[:half] or scores
    second_half = scores[half:]
    first_avg = sum(first_half) / len(first_half)
    second_avg = sum(second_half) / len(second_half)

    if second_avg - first_avg > TREND_THRESHOLD:
        overall_trend = "improving"
    elif first_avg - second_avg > TREND_THRESHOLD:
        overall_trend = "declining"
    else:
        overall_trend = "stable"

    return TrendSummary(
        total_data_points=len(points),
        average_score=average,
        best_score=max(scores),
        worst_score=min(scores),
        volatility=round(math.sqrt(variance)),
        overall_trend=overall_trend,
    )


def trend_metrics(points: List[TrendDataPoint]) -> TrendMetrics:
    if len(points) < 2:
        return TrendMetrics()

    scores = [p.overall_score for p in points]
    perf = [p.performance_score for p in points if p.performance_score is not None]
    performance_change = perf[-1] - perf[0] if len(perf) >= 2 else 0
    consistency = max(0.0, min(100.0, 100 - population_std(scores) * 2))

    return TrendMetrics(
        score_improvement=round(scores[-1] - scores[0]),
        performance_change=round(performance_change),
        consistency_score=round(consistency),
    )


# =============================================================================
# REGRESSION TEXT
# =============================================================================

POSSIBLE_CAUSES = {
    "Overall Score": [
        "Recent website changes or updates",
        "Server performance issues",
        "New content or functionality added",
        "Third-party script changes",
    ],
    "Performance Score": [
        "Large images or unoptimized assets",
        "Increased JavaScript bundle size",
        "Server response time degradation",
        "CDN or hosting issues",
    ],
    "Core Web Vitals LCP": [
        "Largest content element not optimized",
        "Server response time too slow",
        "Render-blocking resources",
        "Client-side rendering delays",
    ],
    "Core Web Vitals CLS": [
        "Images without dimensions",
        "Ads or embeds causing layout shifts",
        "Web fonts causing FOIT/FOUT",
        "Dynamic content insertion",
    ],
}

REGRESSION_RECOMMENDATIONS = {
    "Overall Score": [
        "Review recent changes and their SEO impact",
        "Run a comprehensive SEO audit",
        "Check for technical issues",
        "Monitor Core Web Vitals",
    ],
    "Performance Score": [
        "Optimize images and use modern formats",
        "Implement code splitting and lazy loading",
        "Minimize and compress JavaScript/CSS",
        "Use a Content Delivery Network (CDN)",
    ],
    "Core Web Vitals LCP": [
        "Optimize the largest contentful element",
        "Preload critical resources",
        "Improve server response time",
        "Remove render-blocking resources",
    ],
    "Core Web Vitals CLS": [
        "Add size attributes to images and videos",
        "Reserve space for ads and embeds",
        "Use font-display: swap for web fonts",
        "Avoid inserting content above existing content",
    ],
}


def regression_severity(change_percent: float) -> Optional[str]:
    if change_percent > 25:
        return "critical"
    if change_percent > 15:
        return "major"
    if change_percent > 10:
        return "minor"
    return None


def detect_metric_regressions(
    series: List[Dict[str, Any]],
    metric: str,
    project_id: str,
    rising_is_worse: bool = False,
) -> List[Regression]:
    """
    Flag points that moved the wrong way by more than 10% against
    the mean of the two points before them.
    """
    regressions: List[Regression] = []
    if len(series) < MIN_REGRESSION_POINTS:
        return regressions

    for i in range(2, len(series)):
        current = series[i]["value"]
        baseline = (series[i - 1]["value"] + series[i - 2]["value"]) / 2
        if baseline == 0:
            continue

        if rising_is_worse:
            change = (current - baseline) / baseline * 100
        else:
            change = (baseline - current) / baseline * 100

        severity = regression_severity(change)
        if severity is None:
            continue

        direction = "increased" if rising_is_worse else "dropped"
        regressions.append(Regression(
            id=f"{project_id}-{metric}-{series[i]['date']}",
            project_id=project_id,
            detected_at=series[i]["date"],
            metric=metric,
            severity=severity,
            description=f"{metric} {direction} by {change:.1f}%",
            before_value=round(baseline, 3),
            after_value=round(current, 3),
            change_percentage=round(change),
            possible_causes=list(POSSIBLE_CAUSES.get(metric, ["Unknown cause"])),
            recommendations=list(REGRESSION_RECOMMENDATIONS.get(metric, ["Contact support for assistance"])),
        ))

    return regressions


# =============================================================================
# SERVICE
# =============================================================================

class TrendAnalysisService:
    """
    Trend data, regressions and predictions for a project.

    Usage:
        service = TrendAnalysisService(db, AnalysisCacheService(db))
        trend = service.generate_trend_data(project_id, "30d")
        regressions = service.detect_regressions(project_id)
    """

    def __init__(self, db: Session, cache: Optional[AnalysisCacheService] = None):
        self.db = db
        self.cache = cache

    def _data_points(self, project_id: str, start: datetime) -> List[TrendDataPoint]:
        analyses = (
            self.db.query(SEOAnalysis)
            .filter(
                SEOAnalysis.project_id == project_id,
                SEOAnalysis.created_at >= start,
            )
            .order_by(SEOAnalysis.created_at.asc())
            .all()
        )
        snapshots = (
            self.db.query(ProjectTrend)
            .filter(
                ProjectTrend.project_id == project_id,
                ProjectTrend.date >= start.date(),
            )
            .order_by(ProjectTrend.date.asc())
            .all()
        )

        # Latest analysis of the day wins; snapshots fill days without one
        by_day: Dict[date, TrendDataPoint] = {}
        for analysis in analyses:
            perf = analysis.performance_metrics
            vitals = dict(perf.core_web_vitals) if perf and perf.core_web_vitals else None
            by_day[analysis.created_at.date()] = TrendDataPoint(
                date=analysis.created_at.date().isoformat(),
                overall_score=analysis.overall_score or 0,
                technical_score=analysis.technical_score or 0,
                content_score=analysis.content_score or 0,
                onpage_score=analysis.onpage_score or 0,
                ux_score=analysis.ux_score or 0,
                performance_score=perf.performance_score if perf else None,
                core_web_vitals=vitals,
                source="analysis",
            )
        for snapshot in snapshots:
            if snapshot.date in by_day:
                if by_day[snapshot.date].accessibility_score is None:
                    by_day[snapshot.date].accessibility_score = snapshot.accessibility_score
                continue
            by_day[snapshot.date] = TrendDataPoint(
                date=snapshot.date.isoformat(),
                overall_score=snapshot.overall_score or 0,
                technical_score=snapshot.technical_score or 0,
                content_score=snapshot.content_score or 0,
                onpage_score=snapshot.onpage_score or 0,
                ux_score=snapshot.ux_score or 0,
                performance_score=snapshot.performance_score,
                accessibility_score=snapshot.accessibility_score,
                core_web_vitals=dict(snapshot.core_web_vitals) if snapshot.core_web_vitals else None,
                source="snapshot",
            )

        return [by_day[day] for day in sorted(by_day)]

    def generate_trend_data(self, project_id: str, period: str = "30d") -> TrendData:
        if period not in PERIOD_DAYS:
            raise ValidationFailed(f"Unknown period '{period}', expected one of {', '.join(PERIOD_DAYS)}")

        if self.cache:
            cached = self.cache.get_cached_trends_data(project_id, period)
            if cached:
                return TrendData.from_dict(cached)

        start = datetime.utcnow() - timedelta(days=PERIOD_DAYS[period])
        points = self._data_points(project_id, start)
        trend = TrendData(
            project_id=project_id,
            period=period,
            data_points=points,
            summary=summarize(points),
            metrics=trend_metrics(points),
        )

        if self.cache:
            self.cache.cache_trends_data(
                project_id, period, trend.to_dict(), ttl=CacheTTL.for_trend_period(period)
            )

        logger.info(f"Generated {period} trend data for project {project_id}: {len(points)} points")
        return trend

    def detect_regressions(self, project_id: str) -> List[Regression]:
        trend = self.generate_trend_data(project_id, "30d")
        points = trend.data_points
        if len(points) < MIN_REGRESSION_POINTS:
            return []

        regressions = detect_metric_regressions(
            [{"date": p.date, "value": p.overall_score} for p in points],
            "Overall Score",
            project_id,
        )

        perf = [
            {"date": p.date, "value": p.performance_score}
            for p in points if p.performance_score is not None
        ]
        regressions.extend(detect_metric_regressions(perf, "Performance Score", project_id))

        for vital in RISING_IS_WORSE:
            series = [
                {"date": p.date, "value": p.core_web_vitals[vital]}
                for p in points
                if p.core_web_vitals and p.core_web_vitals.get(vital) is not None
            ]
            regressions.extend(detect_metric_regressions(
                series, f"Core Web Vitals {vital.upper()}", project_id, rising_is_worse=True,
            ))

        logger.info(f"Detected {len(regressions)} regressions for project {project_id}")
        return regressions

    def calculate_trend_score(self, trend: TrendData) -> int:
        """
        0-100 health of a trend: neutral 50, adjusted by direction,
        consistency and recent performance against history.
        """
        points = trend.data_points
        if len(points) < 2:
            return 50

        scores = [p.overall_score for p in points]
        score = 50.0

        direction = max(-50.0, min(50.0, linear_trend(scores) * 10))
        score += direction * 0.4

        score += max(0, 100 - trend.summary.volatility) * 0.3

        if len(points) >= 4:
            recent = sum(scores[-2:]) / 2
            historical = sum(scores[:-2]) / len(scores[:-2])
            score += max(-50.0, min(50.0, recent - historical)) * 0.3

        return max(0, min(100, round(score)))

    def predict_trends(self, project_id: str, timeframe: str = "1m") -> TrendPrediction:
        if timeframe not in TIMEFRAME_MULTIPLIER:
            raise ValidationFailed(f"Unknown timeframe '{timeframe}', expected one of {', '.join(TIMEFRAME_MULTIPLIER)}")

        trend = self.generate_trend_data(project_id, "90d")
        if len(trend.data_points) < MIN_PREDICTION_POINTS:
            raise InsufficientDataError(
                f"Insufficient data for trend prediction: need {MIN_PREDICTION_POINTS} "
                f"data points, have {len(trend.data_points)}"
            )

        scores = [p.overall_score for p in trend.data_points]
        slope = linear_trend(scores)
        predicted = max(0.0, min(100.0, scores[-1] + slope * TIMEFRAME_MULTIPLIER[timeframe]))
        confidence = max(20, min(95, 100 - trend.summary.volatility))
        momentum = linear_trend(scores[-5:]) - slope

        return TrendPrediction(
            project_id=project_id,
            predicted_score=round(predicted),
            confidence=round(confidence),
            timeframe=timeframe,
            factors={
                "historical": round(slope * 40),
                "seasonality": 0,
                "momentum": round(momentum * 30),
            },
        )

    def get_issue_trends(self, project_id: str, days: int = 30) -> Dict[str, Any]:
        """Daily counts per issue type, most common type first."""
        since = (datetime.utcnow() - timedelta(days=days)).date()
        rows = (
            self.db.query(IssueTrend)
            .filter(IssueTrend.project_id == project_id, IssueTrend.date >= since)
            .order_by(IssueTrend.date.asc())
            .all()
        )

        types: Dict[str, Dict[str, Any]] = {}
        totals: Dict[str, int] = {}
        for row in rows:
            day = row.date.isoformat()
            entry = types.setdefault(row.issue_type, {
                "issue_type": row.issue_type,
                "severity": row.issue_severity,
                "category": row.issue_category,
                "series": [],
            })
            entry["series"].append({"date": day, "count": row.count})
            totals[day] = totals.get(day, 0) + (row.count or 0)

        issue_types = []
        for entry in types.values():
            counts = [p["count"] for p in entry["series"]]
            entry["latest_count"] = counts[-1]
            entry["change"] = counts[-1] - counts[0]
            issue_types.append(entry)
        issue_types.sort(key=lambda e: (-e["latest_count"], e["issue_type"]))

        return {
            "project_id": project_id,
            "days": days,
            "issue_types": issue_types,
            "totals_by_date": [{"date": d, "count": c} for d, c in sorted(totals.items())],
        }


# =============================================================================
# COMPARISON
# =============================================================================

def compare_analyses(previous: SEOAnalysis, current: SEOAnalysis) -> Dict[str, Any]:
    """Score deltas and issue churn between two analyses."""
    previous_scores = previous.category_scores
    current_scores = current.category_scores
    score_changes = {
        category: {
            "previous": previous_scores[category],
            "current": current_scores[category],
            "change": (current_scores[category] or 0) - (previous_scores[category] or 0),
        }
        for category in current_scores
    }

    previous_issues = {issue.type: issue for issue in previous.issues}
    current_issues = {issue.type: issue for issue in current.issues}

    def _brief(issue) -> Dict[str, Any]:
        return {
            "type": issue.type,
            "title": issue.title,
            "severity": issue.severity.value,
            "category": issue.category,
        }

    new_issues = [_brief(current_issues[t]) for t in current_issues if t not in previous_issues]
    resolved_issues = [_brief(previous_issues[t]) for t in previous_issues if t not in current_issues]
    persisting_issues = [_brief(current_issues[t]) for t in current_issues if t in previous_issues]

    return {
        "previous_analysis_id": previous.id,
        "current_analysis_id": current.id,
        "score_changes": score_changes,
        "new_issues": new_issues,
        "resolved_issues": resolved_issues,
        "persisting_issues": persisting_issues,
        "summary": {
            "overall_change": score_changes["overall"]["change"],
            "new_count": len(new_issues),
            "resolved_count": len(resolved_issues),
            "persisting_count": len(persisting_issues),
        },
    }
