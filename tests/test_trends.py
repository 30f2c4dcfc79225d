"""
Tests for trend analysis: statistics, regressions, predictions and rollups.
"""

from datetime import datetime, timedelta

import pytest

from src.cache.analysis_cache import AnalysisCacheService
from src.database import repository
from src.database.models import (
    CrawlStatus,
    IssueSeverity,
    IssueTrend,
    PerformanceMetrics,
    ProjectTrend,
    SEOAnalysis,
    SEOIssue,
)
from src.trends import (
    TrendAnalysisService,
    TrendData,
    TrendDataPoint,
    compare_analyses,
    detect_metric_regressions,
    linear_trend,
    record_trends,
    summarize,
)
from src.trends.service import regression_severity, trend_metrics
from src.utils.errors import InsufficientDataError, ValidationFailed


def point(score: int, day: int = 1, performance=None) -> TrendDataPoint:
    return TrendDataPoint(
        date=f"2026-10-{day:02d}",
        overall_score=score,
        technical_score=score,
        content_score=score,
        onpage_score=score,
        ux_score=score,
        performance_score=performance,
    )


@pytest.fixture
def add_analysis(db, project):
    """Insert a completed analysis created days_ago days back."""

    def _add(overall, days_ago=0, created_at=None, performance=None, vitals=None, issues=()):
        session = repository.create_crawl_session(db, project.id)
        session.status = CrawlStatus.COMPLETED
        analysis = SEOAnalysis(
            crawl_session_id=session.id,
            project_id=project.id,
            overall_score=overall,
            technical_score=overall,
            content_score=overall,
            onpage_score=overall,
            ux_score=overall,
            created_at=created_at or datetime.utcnow() - timedelta(days=days_ago),
        )
        if performance is not None or vitals is not None:
            analysis.performance_metrics = PerformanceMetrics(
                performance_score=performance,
                core_web_vitals=vitals or {},
            )
        for issue_type in issues:
            analysis.issues.append(SEOIssue(
                type=issue_type,
                severity=IssueSeverity.HIGH,
                category="onpage",
                title=issue_type.replace("-", " ").title(),
                affected_pages=2,
            ))
        db.add(analysis)
        db.commit()
        return analysis

    return _add


@pytest.fixture
def rising_history(add_analysis):
    """Five analyses over twenty days, 60 -> 80, plus one outside 90 days."""
    add_analysis(40, days_ago=100)
    for days_ago, score in [(20, 60), (15, 62), (10, 70), (5, 75), (1, 80)]:
        add_analysis(score, days_ago=days_ago)


# =============================================================================
# STATISTICS
# =============================================================================

class TestStatistics:

    def test_linear_trend(self):
        assert linear_trend([60, 62, 70, 75, 80]) == pytest.approx(5.3)
        assert linear_trend([5, 5, 5]) == 0
        assert linear_trend([7]) == 0

    def test_summarize(self):
        summary = summarize([point(s) for s in (60, 62, 70, 75, 80)])

        assert summary.total_data_points == 5
        assert summary.average_score == 69
        assert summary.best_score == 80
        assert summary.worst_score == 60
        assert summary.volatility == 8
        assert summary.overall_trend == "improving"

    def test_summarize_declining_and_stable(self):
        assert summarize([point(s) for s in (80, 80, 70, 70)]).overall_trend == "declining"
        assert summarize([point(s) for s in (70, 72, 71, 70)]).overall_trend == "stable"
        assert summarize([]).total_data_points == 0

    def test_trend_metrics(self):
        metrics = trend_metrics([point(60, performance=50), point(70), point(80, performance=65)])

        assert metrics.score_improvement == 20
        assert metrics.performance_change == 15
        assert 0 <= metrics.consistency_score <= 100

    def test_metrics_need_two_points(self):
        assert trend_metrics([point(60)]).consistency_score == 50


class TestRegressionDetection:

    @pytest.mark.parametrize("change, severity", [
        (30, "critical"),
        (20, "major"),
        (12, "minor"),
        (10, None),
    ])
    def test_severity(self, change, severity):
        assert regression_severity(change) == severity

    def test_drop_against_two_point_baseline(self):
        series = [
            {"date": "d1", "value": 100},
            {"date": "d2", "value": 100},
            {"date": "d3", "value": 88},
        ]
        [regression] = detect_metric_regressions(series, "Overall Score", "p1")

        assert regression.id == "p1-Overall Score-d3"
        assert regression.severity == "minor"
        assert regression.before_value == 100
        assert regression.after_value == 88
        assert regression.change_percentage == 12
        assert regression.description == "Overall Score dropped by 12.0%"
        assert regression.possible_causes[0] == "Recent website changes or updates"

    def test_rising_is_worse(self):
        series = [
            {"date": "d1", "value": 2000},
            {"date": "d2", "value": 2000},
            {"date": "d3", "value": 2600},
        ]
        [regression] = detect_metric_regressions(series, "Core Web Vitals LCP", "p1", rising_is_worse=True)

        assert regression.severity == "critical"
        assert regression.description == "Core Web Vitals LCP increased by 30.0%"
        assert regression.recommendations[0] == "Optimize the largest contentful element"

    def test_short_series_and_zero_baseline(self):
        assert detect_metric_regressions([{"date": "d1", "value": 1}], "Overall Score", "p1") == []
        zeros = [{"date": d, "value": 0} for d in ("d1", "d2", "d3")]
        assert detect_metric_regressions(zeros, "Overall Score", "p1") == []

    def test_unknown_metric_text(self):
        series = [{"date": d, "value": v} for d, v in (("d1", 10), ("d2", 10), ("d3", 5))]
        [regression] = detect_metric_regressions(series, "Crawlability", "p1")

        assert regression.possible_causes == ["Unknown cause"]
        assert regression.recommendations == ["Contact support for assistance"]


# =============================================================================
# SERVICE
# =============================================================================

class TestTrendData:

    def test_window(self, db, project, rising_history):
        trend = TrendAnalysisService(db).generate_trend_data(project.id, "30d")

        assert [p.overall_score for p in trend.data_points] == [60, 62, 70, 75, 80]
        assert trend.summary.overall_trend == "improving"
        assert trend.metrics.score_improvement == 20

        week = TrendAnalysisService(db).generate_trend_data(project.id, "7d")
        assert [p.overall_score for p in week.data_points] == [75, 80]

    def test_unknown_period(self, db, project):
        with pytest.raises(ValidationFailed):
            TrendAnalysisService(db).generate_trend_data(project.id, "2w")

    def test_latest_analysis_of_the_day_wins(self, db, project, add_analysis):
        day = datetime.utcnow() - timedelta(days=3)
        add_analysis(50, created_at=day.replace(hour=8))
        add_analysis(65, created_at=day.replace(hour=18))

        points = TrendAnalysisService(db).generate_trend_data(project.id, "7d").data_points

        assert [p.overall_score for p in points] == [65]

    def test_snapshots_fill_missing_days(self, db, project, add_analysis):
        add_analysis(70, days_ago=1)
        snapshot_day = (datetime.utcnow() - timedelta(days=4)).date()
        db.add(ProjectTrend(project_id=project.id, date=snapshot_day, overall_score=55, accessibility_score=90))
        db.commit()

        points = TrendAnalysisService(db).generate_trend_data(project.id, "7d").data_points

        assert [(p.source, p.overall_score) for p in points] == [("snapshot", 55), ("analysis", 70)]
        assert points[0].accessibility_score == 90

    def test_cached_trend(self, db, project, rising_history, add_analysis):
        service = TrendAnalysisService(db, AnalysisCacheService(db))
        first = service.generate_trend_data(project.id, "30d")
        add_analysis(90, days_ago=0)

        second = service.generate_trend_data(project.id, "30d")

        assert isinstance(second, TrendData)
        assert second.to_dict() == first.to_dict()

    def test_trend_score(self, db, project, rising_history):
        service = TrendAnalysisService(db)
        trend = service.generate_trend_data(project.id, "30d")

        assert 50 < service.calculate_trend_score(trend) <= 100
        assert service.calculate_trend_score(TrendData(project_id=project.id, period="30d")) == 50


class TestRegressionsForProject:

    def test_overall_score_drop(self, db, project, add_analysis):
        for days_ago, score in [(4, 80), (3, 80), (2, 78), (1, 56)]:
            add_analysis(score, days_ago=days_ago)

        regressions = TrendAnalysisService(db).detect_regressions(project.id)

        assert [(r.metric, r.severity) for r in regressions] == [("Overall Score", "critical")]
        assert regressions[0].change_percentage == 29

    def test_vitals_regression(self, db, project, add_analysis):
        for days_ago, lcp in [(3, 2000), (2, 2000), (1, 2600)]:
            add_analysis(80, days_ago=days_ago, performance=90, vitals={"lcp": lcp, "cls": 0.05})

        regressions = TrendAnalysisService(db).detect_regressions(project.id)

        assert [r.metric for r in regressions] == ["Core Web Vitals LCP"]

    def test_too_few_points(self, db, project, add_analysis):
        add_analysis(80, days_ago=2)
        add_analysis(20, days_ago=1)
        assert TrendAnalysisService(db).detect_regressions(project.id) == []


class TestPrediction:

    def test_predict(self, db, project, rising_history):
        prediction = TrendAnalysisService(db).predict_trends(project.id, "1w")

        # 80 + 5.3 slope
        assert prediction.predicted_score == 85
        assert prediction.confidence == 92
        assert prediction.factors == {"historical": 212, "seasonality": 0, "momentum": 0}

    def test_prediction_is_clamped(self, db, project, rising_history):
        assert TrendAnalysisService(db).predict_trends(project.id, "3m").predicted_score == 100

    def test_insufficient_data(self, db, project, add_analysis):
        add_analysis(70, days_ago=1)
        with pytest.raises(InsufficientDataError):
            TrendAnalysisService(db).predict_trends(project.id)

    def test_unknown_timeframe(self, db, project):
        with pytest.raises(ValidationFailed):
            TrendAnalysisService(db).predict_trends(project.id, "1d")


# =============================================================================
# ROLLUPS
# =============================================================================

class TestRecordTrends:

    def test_upsert_same_day(self, db, project, add_analysis):
        record_trends(db, project.id, add_analysis(60, issues=["missing-title", "missing-h1"]))
        trend = record_trends(db, project.id, add_analysis(75, issues=["missing-h1"]))

        assert db.query(ProjectTrend).count() == 1
        assert trend.overall_score == 75
        assert trend.total_issues == 1
        assert trend.high_issues == 1

        rows = db.query(IssueTrend).all()
        assert [(row.issue_type, row.count) for row in rows] == [("missing-h1", 2)]

    def test_performance_from_metrics(self, db, project, add_analysis):
        trend = record_trends(db, project.id, add_analysis(70, performance=88, vitals={"lcp": 1800.0}))

        assert trend.performance_score == 88
        assert trend.core_web_vitals == {"lcp": 1800.0}

    async def test_from_stored_analysis(self, db, project, stored_analysis):
        analysis = await stored_analysis()
        trend = record_trends(db, project.id, analysis)

        assert trend.overall_score == analysis.overall_score
        assert trend.crawlability_score == analysis.score_breakdown.technical_breakdown["crawlability"]
        assert db.query(IssueTrend).count() == len({issue.type for issue in analysis.issues})


class TestIssueTrends:

    def test_series_and_totals(self, db, project):
        today = datetime.utcnow().date()
        older, newer = today - timedelta(days=2), today - timedelta(days=1)
        db.add_all([
            IssueTrend(project_id=project.id, issue_type="missing-h1", issue_severity="high",
                       issue_category="onpage", count=3, date=older),
            IssueTrend(project_id=project.id, issue_type="missing-h1", issue_severity="high",
                       issue_category="onpage", count=1, date=newer),
            IssueTrend(project_id=project.id, issue_type="thin-content", issue_severity="medium",
                       issue_category="content", count=2, date=newer),
            IssueTrend(project_id=project.id, issue_type="no-ssl", issue_severity="critical",
                       issue_category="technical", count=9, date=today - timedelta(days=60)),
        ])
        db.commit()

        data = TrendAnalysisService(db).get_issue_trends(project.id, days=30)

        assert [entry["issue_type"] for entry in data["issue_types"]] == ["thin-content", "missing-h1"]
        missing_h1 = data["issue_types"][1]
        assert missing_h1["change"] == -2
        assert missing_h1["series"] == [
            {"date": older.isoformat(), "count": 3},
            {"date": newer.isoformat(), "count": 1},
        ]
        assert data["totals_by_date"] == [
            {"date": older.isoformat(), "count": 3},
            {"date": newer.isoformat(), "count": 3},
        ]


class TestCompareAnalyses:

    def test_issue_churn(self, add_analysis):
        previous = add_analysis(60, days_ago=7, issues=["missing-title", "missing-h1"])
        current = add_analysis(72, issues=["missing-h1", "no-ssl"])

        result = compare_analyses(previous, current)

        assert result["score_changes"]["overall"] == {"previous": 60, "current": 72, "change": 12}
        assert [i["type"] for i in result["new_issues"]] == ["no-ssl"]
        assert [i["type"] for i in result["resolved_issues"]] == ["missing-title"]
        assert [i["type"] for i in result["persisting_issues"]] == ["missing-h1"]
        assert result["summary"] == {
            "overall_change": 12,
            "new_count": 1,
            "resolved_count": 1,
            "persisting_count": 1,
        }
