"""
Tests for the scoring engine.

Sub-scores are checked against their deduction tables, then the
category weighting and the risk adjustment on top.
"""

import pytest

from src.analysis.scoring import (
    OVERALL_WEIGHTS,
    apply_risk_adjustment,
    calculate_breakdown,
    calculate_scores,
    clamp_score,
    combine_categories,
    round_half_up,
    score_depth,
    score_freshness,
    score_headings,
    score_images,
    score_meta_tags,
    score_performance,
    score_readability,
    score_security,
    score_from_breakdown,
)


FULL_SECURITY = {
    "has_ssl": True,
    "has_hsts": True,
    "has_csp": True,
    "has_x_frame_options": True,
    "has_x_content_type_options": True,
    "mixed_content": False,
}


class TestRounding:

    def test_half_rounds_up(self):
        """0.5 always rounds away from zero, unlike banker's rounding."""
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_clamp(self):
        assert clamp_score(-5) == 0
        assert clamp_score(104.2) == 100
        assert clamp_score(67.5) == 68


class TestTechnicalSubScores:

    def test_performance_without_vitals_is_neutral(self):
        assert score_performance(None) == 60

    def test_performance_all_good(self):
        vitals = {"lcp": 1200, "fid": 50, "cls": 0.05, "fcp": 900, "ttfb": 200}
        assert score_performance(vitals) == 100

    def test_performance_poor_lcp(self):
        """A poor LCP scores 25 at 30% weight: 7.5 + 70 = 77.5 -> 78."""
        vitals = {"lcp": 5000, "fid": 50, "cls": 0.05, "fcp": 900, "ttfb": 200}
        assert score_performance(vitals) == 78

    def test_security_full_marks(self):
        assert score_security(FULL_SECURITY) == 100

    def test_security_deductions(self):
        """No SSL and no headers leaves 10 points."""
        assert score_security({}) == 10
        assert score_security({**FULL_SECURITY, "mixed_content": True}) == 80


class TestContentSubScores:

    def test_depth_long_and_organized_caps_at_100(self):
        assert score_depth({"word_count": 2500, "topic_coverage": 0.9, "well_organized": True}) == 100

    def test_depth_short_content(self):
        assert score_depth({"word_count": 350}) == 40
        assert score_depth(None) == 50

    def test_readability_bands(self):
        assert score_readability({"flesch_reading_ease": 85}) == 90
        assert score_readability({"flesch_reading_ease": 20}) == 20
        assert score_readability(None) == 70

    def test_readability_missing_ease_uses_50(self):
        assert score_readability({"flesch_reading_ease": None}) == 60

    def test_freshness_bands(self):
        assert score_freshness({"days_since_update": 10}) == 100
        assert score_freshness({"days_since_update": 120}) == 60
        assert score_freshness({"days_since_update": 400}) == 20
        assert score_freshness({"days_since_update": None}) == 70


class TestOnPageSubScores:

    def test_meta_tags_all_missing(self):
        assert score_meta_tags({}) == 10

    def test_meta_tags_long_title(self):
        data = {
            "title": "x" * 70,
            "description": "d" * 140,
            "canonical": "https://example.com/",
            "open_graph": {"title": "x"},
            "twitter_card": {"card": "summary"},
        }
        assert score_meta_tags(data) == 90

    def test_headings_multiple_h1(self):
        data = {"h1": ["One", "Two"], "hierarchy_valid": True, "keyword_optimized": True}
        assert score_headings(data) == 80

    def test_images_missing_alt_and_no_modern_formats(self):
        """Half missing alt (-20), no modern formats (-10), no lazy loading (-10)."""
        data = {"total": 4, "missing_alt": 2, "modern_formats": 0.0, "lazy_loading": False}
        assert score_images(data) == 60

    def test_images_default(self):
        assert score_images(None) == 80


class TestCategoryWeighting:

    def test_overall_weights_sum_to_one(self):
        assert sum(OVERALL_WEIGHTS.values()) == pytest.approx(1.0)

    def test_combine_categories(self):
        """80*.3 + 60*.25 + 60*.25 + 100*.2 = 74."""
        assert combine_categories({"technical": 80, "content": 60, "onpage": 60, "ux": 100}) == 74

    def test_risk_adjustment(self):
        assert apply_risk_adjustment(80, critical_count=1, high_count=2) == 60
        assert apply_risk_adjustment(15, critical_count=2) == 0
        assert apply_risk_adjustment(72) == 72

    def test_score_from_perfect_breakdown(self):
        breakdown = {
            category: {name: 100 for name in names}
            for category, names in calculate_breakdown({}).items()
        }
        result = score_from_breakdown(breakdown, critical_count=1, high_count=1, previous_score=80)

        assert result.base_score == 100
        assert result.overall == 85
        assert result.risk_penalty == 15
        assert result.score_change == 5
        assert result.category_scores == {"technical": 100, "content": 100, "onpage": 100, "ux": 100}

    def test_calculate_scores_defaults(self):
        """Empty input still yields a full breakdown within range."""
        result = calculate_scores({})

        assert set(result.breakdown) == {"technical", "content", "onpage", "ux"}
        assert 0 <= result.overall <= 100
        assert result.previous_score is None
        assert result.score_change is None
        assert result.weights["overall"] == OVERALL_WEIGHTS
