"""
Tests for the recommendation engine.
"""

from src.analysis.issues import build_issue_report, make_issue
from src.analysis.recommendations import (
    calculate_strategic_value,
    detailed_recommendations,
    generate_recommendations,
    recommendation_from_issue,
    total_implementation_time,
)


class TestRecommendationFromIssue:

    def test_specific_guide(self):
        rec = recommendation_from_issue(make_issue("missing-title"))

        assert rec.key == "rec_missing-title"
        assert rec.priority == "critical"
        assert rec.timeline == "immediate"
        assert rec.quick_win
        assert rec.strategic_value == 9
        assert rec.time_estimate == "15 minutes"
        assert rec.effort_level == "beginner"
        assert rec.code_examples["html"].startswith("<title>")
        assert rec.implementation_steps[1]["code_example"] == rec.code_examples["html"]

    def test_generic_guide_uses_issue_steps(self):
        issue = make_issue("images-missing-alt")
        rec = recommendation_from_issue(issue)

        assert rec.time_estimate == "30 minutes - 1 hour"
        assert [step["title"] for step in rec.implementation_steps] == list(issue.implementation_steps)
        assert rec.implementation_steps[0]["step"] == 1
        assert rec.tools == ["Yoast SEO", "Screaming Frog", "Ahrefs Site Audit", "SEMrush"]
        assert rec.validation["success_metrics"] == list(issue.validation_criteria)
        assert rec.expected_results["user_impact"].startswith("High - improved accessibility")

    def test_low_impact_is_never_a_quick_win(self):
        rec = recommendation_from_issue(make_issue("missing-lang"))

        assert not rec.quick_win
        assert rec.timeline == "long-term"
        assert rec.tools == ["Google Search Console"]
        assert rec.validation["testing_methods"][0] == "Manual verification"

    def test_strategic_value(self):
        """5 base, +2 high impact, -1 hard fix."""
        assert calculate_strategic_value(make_issue("severe-performance")) == 6
        assert calculate_strategic_value(make_issue("missing-meta-description")) == 8
        assert calculate_strategic_value(make_issue("missing-lang")) == 7


class TestGenerateRecommendations:

    ISSUES = ("missing-lang", "missing-title", "missing-meta-description", "severe-performance")

    def generate(self, word_count=800):
        return generate_recommendations([make_issue(i) for i in self.ISSUES], word_count=word_count)

    def test_sorted_by_priority_then_value(self):
        result = self.generate()

        assert [rec.key for rec in result.recommendations] == [
            "rec_missing-title",
            "rec_severe-performance",
            "rec_missing-meta-description",
            "proactive_content_enhancement",
            "rec_missing-lang",
        ]

    def test_proactive_needs_long_content(self):
        keys = [rec.key for rec in self.generate(word_count=500).recommendations]
        assert "proactive_content_enhancement" not in keys

    def test_strategy(self):
        strategy = self.generate().to_dict()["strategy"]

        assert strategy["quick_wins"] == ["rec_missing-title", "rec_missing-meta-description"]
        assert strategy["strategic_initiatives"] == ["proactive_content_enhancement", "rec_missing-lang"]
        assert strategy["long_term_goals"] == ["rec_missing-lang"]
        assert strategy["priority_matrix"]["immediate"] == ["rec_missing-title", "rec_severe-performance"]

    def test_summary(self):
        summary = self.generate().summary

        assert summary["total_recommendations"] == 5
        assert summary["quick_wins_count"] == 2
        assert summary["strategic_initiatives_count"] == 2
        assert summary["priority_distribution"] == {"critical": 2, "high": 1, "medium": 1, "low": 1}
        assert summary["category_distribution"]["onpage"] == 2
        assert summary["average_strategic_value"] == 7.4
        # 0.25 + 1.5 + 0.25 + 5 + 1.5 = 8.5 hours -> 9 hours -> 1 day
        assert summary["estimated_implementation_time"] == "1 days"

    def test_empty(self):
        result = generate_recommendations([])

        assert result.recommendations == []
        assert result.summary["average_strategic_value"] == 0
        assert result.summary["estimated_implementation_time"] == "Unknown"


class TestImplementationTime:

    def test_hours_and_weeks(self):
        assert total_implementation_time([recommendation_from_issue(make_issue("missing-title"))]) == "0 hours"
        recs = [recommendation_from_issue(make_issue("no-ssl")) for _ in range(20)]
        assert total_implementation_time(recs) == "2 weeks"


class TestDetailedRecommendations:

    def test_selection_caps_medium_and_low(self):
        medium = [
            "multiple-h1", "images-missing-alt", "meta-description-too-long", "thin-content",
            "missing-canonical", "poor-readability", "invalid-structured-data",
        ]
        low = ["missing-favicon", "missing-open-graph", "missing-structured-data", "missing-lang"]
        report = build_issue_report([make_issue(i) for i in ["noindex-detected"] + medium + low])

        details = detailed_recommendations(report)

        assert len(details) == 1 + 5 + 3
        first = details[0]
        assert first["id"] == "rec-noindex-detected"
        assert first["priority"] == "immediate"
        assert first["effort"] == "easy"
        assert first["implementation"]["steps"] == list(report.critical[0].implementation_steps)
        assert first["validation"]["monitoring_metrics"][0] == "Page speed scores"
