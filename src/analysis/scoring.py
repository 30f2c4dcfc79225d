"""
SEO Scoring Engine

Weighted 0-100 scores for four categories and an overall score.

Category weights:
    Overall   = Technical 30% + Content 25% + On-Page 25% + UX 20%
    Technical = Performance 40% + Security 20% + Crawlability 20% + Mobile 15% + Structure 5%
    Content   = Depth 30% + Quality 25% + Readability 20% + Keywords 15% + Freshness 10%
    On-Page   = Meta tags 35% + Headings 25% + Images 15% + Links 15% + Schema 10%
    UX        = Accessibility 40% + Usability 30% + Navigation 20% + Engagement 10%

Each sub-score starts from a base and applies deductions; a missing
input section yields that sub-score's neutral default. The overall score
is then risk-adjusted: minus 10 per critical and 5 per high issue.

Inputs are plain dicts (see build_scoring_input) so scores can be
computed from stored analyses as well as live page results.
"""

import logging
import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# WEIGHTS
# =============================================================================

OVERALL_WEIGHTS = {
    "technical": 0.30,
    "content": 0.25,
    "onpage": 0.25,
    "ux": 0.20,
}

TECHNICAL_WEIGHTS = {
    "performance": 0.40,
    "security": 0.20,
    "crawlability": 0.20,
    "mobile": 0.15,
    "structure": 0.05,
}

CONTENT_WEIGHTS = {
    "depth": 0.30,
    "quality": 0.25,
    "readability": 0.20,
    "keywords": 0.15,
    "freshness": 0.10,
}

ONPAGE_WEIGHTS = {
    "meta_tags": 0.35,
    "headings": 0.25,
    "images": 0.15,
    "links": 0.15,
    "schema": 0.10,
}

UX_WEIGHTS = {
    "accessibility": 0.40,
    "usability": 0.30,
    "navigation": 0.20,
    "engagement": 0.10,
}

CRITICAL_PENALTY = 10
HIGH_PENALTY = 5

# Defaults used when a vital is missing from otherwise present data
PERFORMANCE_DEFAULTS = {"lcp": 3000, "fid": 100, "cls": 0.1, "fcp": 2000, "ttfb": 800}
PERFORMANCE_THRESHOLDS = {
    "lcp": (2500, 4000),
    "fid": (100, 300),
    "cls": (0.1, 0.25),
    "fcp": (1800, 3000),
    "ttfb": (600, 1200),
}
PERFORMANCE_METRIC_WEIGHTS = {"lcp": 0.3, "fid": 0.3, "cls": 0.3, "fcp": 0.05, "ttfb": 0.05}

Section = Optional[Dict[str, Any]]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    """Round and clamp to the 0-100 range."""
    return max(0, min(100, round_half_up(value)))


def _weighted(scores: Dict[str, float], weights: Dict[str, float]) -> int:
    return clamp_score(sum(scores[key] * weight for key, weight in weights.items()))


# =============================================================================
# TECHNICAL SUB-SCORES
# =============================================================================

def score_performance(data: Section) -> int:
    if not data:
        return 60

    total = 0.0
    for metric, weight in PERFORMANCE_METRIC_WEIGHTS.items():
        value = data.get(metric)
        if value is None:
            value = PERFORMANCE_DEFAULTS[metric]
        good, poor = PERFORMANCE_THRESHOLDS[metric]
        if value <= good:
            metric_score = 100
        elif value <= poor:
            metric_score = 75
        else:
            metric_score = 25
        total += metric_score * weight

    return round_half_up(total)


def score_security(data: Section) -> int:
    data = data or {}
    score = 100
    if not data.get("has_ssl"):
        score -= 40
    if not data.get("has_hsts"):
        score -= 15
    if not data.get("has_csp"):
        score -= 15
    if not data.get("has_x_frame_options"):
        score -= 10
    if not data.get("has_x_content_type_options"):
        score -= 10
    if data.get("mixed_content"):
        score -= 20
    return max(0, score)


def score_crawlability(data: Section) -> int:
    data = data or {}
    score = 100
    if not data.get("robots_txt_valid"):
        score -= 20
    if not data.get("sitemap_exists"):
        score -= 15
    if not data.get("canonical_valid"):
        score -= 15
    if (data.get("redirect_chain_length") or 0) > 3:
        score -= 10
    if (data.get("orphan_pages") or 0) > 0:
        score -= 10
    return max(0, score)


def score_mobile(data: Section) -> int:
    data = data or {}
    score = 100
    if not data.get("has_viewport"):
        score -= 30
    if not data.get("responsive_design"):
        score -= 25
    if not data.get("touch_friendly"):
        score -= 20
    if data.get("text_too_small"):
        score -= 15
    if data.get("content_wider_than_screen"):
        score -= 10
    return max(0, score)


def score_structure(data: Section) -> int:
    data = data or {}
    score = 100
    if not data.get("semantic_html"):
        score -= 20
    if not data.get("proper_heading_structure"):
        score -= 15
    if not data.get("valid_html"):
        score -= 15
    if not data.get("schema_markup"):
        score -= 25
    if not data.get("breadcrumbs"):
        score -= 10
    return max(0, score)


# =============================================================================
# CONTENT SUB-SCORES
# =============================================================================

def score_depth(data: Section) -> int:
    if not data:
        return 50

    word_count = data.get("word_count") or 0
    if word_count >= 2000:
        score = 100
    elif word_count >= 1500:
        score = 90
    elif word_count >= 1000:
        score = 80
    elif word_count >= 500:
        score = 60
    elif word_count >= 300:
        score = 40
    else:
        score = 20

    if (data.get("topic_coverage") or 0) > 0.8:
        score += 10
    if data.get("well_organized"):
        score += 5

    return min(100, score)


def score_quality(data: Section) -> int:
    if not data:
        return 60

    score = 80
    if data.get("duplicate_content"):
        score -= 30
    if (data.get("grammar_errors") or 0) > 5:
        score -= 10
    if (data.get("spelling_errors") or 0) > 3:
        score -= 10
    if data.get("uniqueness") is not None and data["uniqueness"] < 0.8:
        score -= 15
    if data.get("expertise") is not None and data["expertise"] < 0.7:
        score -= 10
    return max(0, score)


def score_readability(data: Section) -> int:
    if not data:
        return 70

    ease = data.get("flesch_reading_ease")
    if ease is None:
        ease = 50

    if ease >= 90:
        return 100
    if ease >= 80:
        return 90
    if ease >= 70:
        return 80
    if ease >= 60:
        return 70
    if ease >= 50:
        return 60
    if ease >= 30:
        return 40
    return 20


def score_keywords(data: Section) -> int:
    if not data:
        return 50

    score = 70
    density = data.get("density") or 0
    if density > 0.03:
        score -= 20
    if density < 0.005:
        score -= 15
    if not data.get("in_title"):
        score -= 15
    if not data.get("in_h1"):
        score -= 10
    if not data.get("in_meta"):
        score -= 10
    if len(data.get("lsi_keywords") or []) < 3:
        score -= 10
    return max(0, score)


def score_freshness(data: Section) -> int:
    if not data or data.get("days_since_update") is None:
        return 70

    days = data["days_since_update"]
    if days <= 30:
        return 100
    if days <= 90:
        return 80
    if days <= 180:
        return 60
    if days <= 365:
        return 40
    return 20


# =============================================================================
# ON-PAGE SUB-SCORES
# =============================================================================

def score_meta_tags(data: Section) -> int:
    data = data or {}
    score = 100

    title = data.get("title") or ""
    if not title:
        score -= 30
    elif len(title) > 60 or len(title) < 30:
        score -= 10

    description = data.get("description") or ""
    if not description:
        score -= 25
    elif len(description) > 160 or len(description) < 120:
        score -= 10

    if not data.get("canonical"):
        score -= 15
    if not data.get("open_graph"):
        score -= 10
    if not data.get("twitter_card"):
        score -= 10

    return max(0, score)


def score_headings(data: Section) -> int:
    data = data or {}
    score = 100

    h1_count = len(data.get("h1") or [])
    if h1_count == 0:
        score -= 40
    elif h1_count > 1:
        score -= 20

    if not data.get("hierarchy_valid"):
        score -= 20
    if not data.get("keyword_optimized"):
        score -= 15
    if data.get("skipped_levels"):
        score -= 15

    return max(0, score)


def score_images(data: Section) -> int:
    if not data:
        return 80

    total = data.get("total") or 0
    missing_alt = data.get("missing_alt") or 0
    missing_ratio = missing_alt / total if total else 0

    score = 100 - missing_ratio * 40
    if (data.get("oversized") or 0) > 0:
        score -= 15
    if total and (data.get("modern_formats") or 0) < 0.5:
        score -= 10
    if total and not data.get("lazy_loading"):
        score -= 10

    return max(0, round_half_up(score))


def score_links(data: Section) -> int:
    if not data:
        return 80

    score = 100
    if (data.get("broken") or 0) > 0:
        score -= 30
    if (data.get("nofollow") or 0) > (data.get("external") or 0) * 0.8:
        score -= 15
    if (data.get("internal") or 0) < 3:
        score -= 10
    if not data.get("anchor_text_optimized"):
        score -= 15
    return max(0, score)


def score_schema(data: Section) -> int:
    if not data:
        return 60

    score = 80
    if data.get("errors"):
        score -= 20
    if not data.get("rich_results"):
        score -= 15
    if len(data.get("types") or []) < 2:
        score -= 10
    if not data.get("structured"):
        score -= 10
    return max(0, score)


# =============================================================================
# UX SUB-SCORES
# =============================================================================

def score_accessibility(data: Section) -> int:
    if not data:
        return 70

    score = 100
    if (data.get("missing_alt") or 0) > 0:
        score -= 20
    if not data.get("proper_headings"):
        score -= 15
    if not data.get("color_contrast"):
        score -= 15
    if not data.get("keyboard_navigation"):
        score -= 15
    if not data.get("focus_indicators"):
        score -= 10
    if not data.get("alt_text"):
        score -= 10
    return max(0, score)


def score_usability(data: Section) -> int:
    if not data:
        return 75

    score = 100
    if not data.get("mobile_optimized"):
        score -= 25
    if not data.get("fast_loading"):
        score -= 20
    if not data.get("easy_navigation"):
        score -= 15
    if not data.get("clear_cta"):
        score -= 15
    if not data.get("search_functionality"):
        score -= 10
    return max(0, score)


def score_navigation(data: Section) -> int:
    if not data:
        return 75

    score = 100
    if not data.get("breadcrumbs"):
        score -= 20
    if not data.get("main_menu"):
        score -= 15
    if not data.get("footer"):
        score -= 10
    if not data.get("searchable"):
        score -= 15
    if (data.get("depth") or 0) > 4:
        score -= 15
    return max(0, score)


def score_engagement(data: Section) -> int:
    if not data:
        return 70

    score = 80
    bounce_rate = data.get("bounce_rate")
    time_on_page = data.get("time_on_page")
    if bounce_rate is not None and bounce_rate > 0.7:
        score -= 20
    if time_on_page is not None and time_on_page < 60:
        score -= 15
    if not data.get("social_sharing"):
        score -= 10
    if not data.get("interactive_elements"):
        score -= 10
    return max(0, score)


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class ScoreResult:
    """Category scores with their sub-score breakdown."""
    overall: int
    technical: int
    content: int
    onpage: int
    ux: int
    base_score: int
    risk_penalty: int = 0
    breakdown: Dict[str, Dict[str, int]] = field(default_factory=dict)
    weights: Dict[str, Dict[str, float]] = field(default_factory=dict)
    previous_score: Optional[int] = None
    score_change: Optional[int] = None

    @property
    def category_scores(self) -> Dict[str, int]:
        return {
            "technical": self.technical,
            "content": self.content,
            "onpage": self.onpage,
            "ux": self.ux,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def all_weights() -> Dict[str, Dict[str, float]]:
    return {
        "overall": dict(OVERALL_WEIGHTS),
        "technical": dict(TECHNICAL_WEIGHTS),
        "content": dict(CONTENT_WEIGHTS),
        "onpage": dict(ONPAGE_WEIGHTS),
        "ux": dict(UX_WEIGHTS),
    }


def apply_risk_adjustment(base_score: float, critical_count: int = 0, high_count: int = 0) -> int:
    penalty = critical_count * CRITICAL_PENALTY + high_count * HIGH_PENALTY
    return max(0, clamp_score(base_score) - penalty)


def combine_categories(categories: Dict[str, float]) -> int:
    return _weighted(categories, OVERALL_WEIGHTS)


def calculate_breakdown(inputs: Dict[str, Any]) -> Dict[str, Dict[str, int]]:
    """All sub-scores grouped by category."""
    return {
        "technical": {
            "performance": score_performance(inputs.get("performance")),
            "security": score_security(inputs.get("security")),
            "crawlability": score_crawlability(inputs.get("crawlability")),
            "mobile": score_mobile(inputs.get("mobile")),
            "structure": score_structure(inputs.get("structure")),
        },
        "content": {
            "depth": score_depth(inputs.get("depth")),
            "quality": score_quality(inputs.get("quality")),
            "readability": score_readability(inputs.get("readability")),
            "keywords": score_keywords(inputs.get("keywords")),
            "freshness": score_freshness(inputs.get("freshness")),
        },
        "onpage": {
            "meta_tags": score_meta_tags(inputs.get("meta_tags")),
            "headings": score_headings(inputs.get("headings")),
            "images": score_images(inputs.get("images")),
            "links": score_links(inputs.get("links")),
            "schema": score_schema(inputs.get("schema")),
        },
        "ux": {
            "accessibility": score_accessibility(inputs.get("accessibility")),
            "usability": score_usability(inputs.get("usability")),
            "navigation": score_navigation(inputs.get("navigation")),
            "engagement": score_engagement(inputs.get("engagement")),
        },
    }


def score_from_breakdown(
    breakdown: Dict[str, Dict[str, int]],
    critical_count: int = 0,
    high_count: int = 0,
    previous_score: Optional[int] = None,
) -> ScoreResult:
    technical = _weighted(breakdown["technical"], TECHNICAL_WEIGHTS)
    content = _weighted(breakdown["content"], CONTENT_WEIGHTS)
    onpage = _weighted(breakdown["onpage"], ONPAGE_WEIGHTS)
    ux = _weighted(breakdown["ux"], UX_WEIGHTS)

    base = combine_categories({
        "technical": technical,
        "content": content,
        "onpage": onpage,
        "ux": ux,
    })
    overall = apply_risk_adjustment(base, critical_count, high_count)

    return ScoreResult(
        overall=overall,
        technical=technical,
        content=content,
        onpage=onpage,
        ux=ux,
        base_score=base,
        risk_penalty=base - overall,
        breakdown=breakdown,
        weights=all_weights(),
        previous_score=previous_score,
        score_change=overall - previous_score if previous_score is not None else None,
    )


def calculate_scores(
    inputs: Dict[str, Any],
    critical_count: int = 0,
    high_count: int = 0,
    previous_score: Optional[int] = None,
) -> ScoreResult:
    """
    Score one page.

    Args:
        inputs: Section dicts as produced by build_scoring_input
        critical_count: Critical issues detected on the page
        high_count: High issues detected on the page
        previous_score: Prior overall score, for the change value

    Returns:
        ScoreResult with category scores, breakdown and weights
    """
    result = score_from_breakdown(
        calculate_breakdown(inputs),
        critical_count=critical_count,
        high_count=high_count,
        previous_score=previous_score,
    )
    logger.debug(
        f"Scores: overall={result.overall} (base {result.base_score}), "
        f"technical={result.technical}, content={result.content}, "
        f"onpage={result.onpage}, ux={result.ux}"
    )
    return result


# =============================================================================
# INPUT ASSEMBLY
# =============================================================================

def _tabindex(value) -> int:
    """Integer tabindex, or 0 for anything that is not a plain integer."""
    text = str(value or "").strip()
    return int(text) if re.fullmatch(r"-?[0-9]+", text) else 0


def build_scoring_input(ctx, technical, onpage, content, structured, performance) -> Dict[str, Any]:
    """
    Translate analyzer results into scoring sections.

    Args:
        ctx: PageContext
        technical: TechnicalResult
        onpage: OnPageResult
        content: ContentResult
        structured: StructuredDataResult
        performance: PerformanceData
    """
    perf_section = None
    if performance is not None and performance.has_vitals:
        perf_section = performance.core_web_vitals

    load_ms = ctx.elapsed_ms or 0
    fast_loading = (
        performance.performance_score >= 50
        if performance is not None and performance.performance_score is not None
        else load_ms < 3000
    )

    orphan = 1 if (ctx.inbound_links == 0 and ctx.depth > 0) else 0

    schema_section = None
    if structured.has_structured_data or structured.errors:
        schema_section = {
            "errors": structured.errors,
            "rich_results": structured.rich_results_eligible,
            "types": sorted(set(structured.types + structured.microdata_types)),
            "structured": bool(structured.types),
        }

    html_styles = " ".join(el.get_text() for el in ctx.soup.find_all("style")).replace(" ", "").lower()
    positive_tabindex = any(
        _tabindex(el.get("tabindex")) > 0
        for el in ctx.soup.find_all(attrs={"tabindex": True})
    )

    return {
        "performance": perf_section,
        "security": {
            "has_ssl": technical.has_https,
            "has_hsts": technical.has_hsts,
            "has_csp": technical.has_csp,
            "has_x_frame_options": technical.has_x_frame_options,
            "has_x_content_type_options": technical.has_x_content_type_options,
            "mixed_content": technical.mixed_content,
        },
        "crawlability": {
            "robots_txt_valid": technical.robots_txt_status == "found",
            "sitemap_exists": bool(technical.sitemap_url),
            "canonical_valid": bool(technical.canonical) and onpage.canonical_matches,
            "redirect_chain_length": technical.redirect_chain_length,
            "orphan_pages": orphan,
        },
        "mobile": {
            "has_viewport": technical.has_viewport,
            "responsive_design": technical.responsive_design,
            "touch_friendly": technical.responsive_design and not technical.content_wider_than_screen,
            "text_too_small": technical.text_too_small,
            "content_wider_than_screen": technical.content_wider_than_screen,
        },
        "structure": {
            "semantic_html": technical.semantic_html,
            "proper_heading_structure": onpage.hierarchy_valid and not onpage.has_no_h1,
            "valid_html": technical.has_doctype,
            "schema_markup": structured.has_structured_data,
            "breadcrumbs": technical.has_breadcrumbs or structured.has_breadcrumb,
        },
        "depth": {
            "word_count": content.depth.word_count,
            "topic_coverage": content.depth.topic_coverage,
            "well_organized": content.depth.well_organized,
        },
        "quality": {
            "duplicate_content": content.quality.duplicate_content,
            "grammar_errors": content.quality.grammar_errors,
            "spelling_errors": content.quality.spelling_errors,
            "uniqueness": content.quality.uniqueness,
            "expertise": content.quality.expertise,
        },
        "readability": {
            "flesch_reading_ease": content.readability.flesch_reading_ease if content.depth.word_count else None,
        },
        "keywords": {
            "density": content.keywords.max_density,
            "in_title": content.keywords.in_title,
            "in_h1": content.keywords.in_h1,
            "in_meta": content.keywords.in_meta,
            "lsi_keywords": content.keywords.lsi_keywords,
        },
        "freshness": {
            "days_since_update": content.freshness.days_since_update,
        },
        "meta_tags": {
            "title": onpage.title,
            "description": onpage.meta_description,
            "canonical": onpage.canonical,
            "open_graph": onpage.has_open_graph,
            "twitter_card": onpage.has_twitter_card,
        },
        "headings": {
            "h1": onpage.headings.get("h1", []),
            "hierarchy_valid": onpage.hierarchy_valid,
            "keyword_optimized": onpage.keyword_optimized,
            "skipped_levels": onpage.skipped_levels,
        },
        "images": {
            "total": onpage.image_count,
            "missing_alt": onpage.images_missing_alt,
            "oversized": onpage.oversized_images,
            "modern_formats": onpage.modern_format_ratio,
            "lazy_loading": onpage.lazy_loading,
        },
        "links": {
            "broken": ctx.broken_links,
            "nofollow": onpage.nofollow_count,
            "external": onpage.external_link_count,
            "internal": onpage.internal_link_count,
            "anchor_text_optimized": onpage.anchor_text_optimized,
        },
        "schema": schema_section,
        "accessibility": {
            "missing_alt": onpage.images_missing_alt,
            "proper_headings": onpage.hierarchy_valid and not onpage.has_no_h1,
            "color_contrast": True,
            "keyboard_navigation": not positive_tabindex,
            "focus_indicators": "outline:none" not in html_styles and "outline:0" not in html_styles,
            "alt_text": onpage.images_missing_alt == 0,
        },
        "usability": {
            "mobile_optimized": technical.responsive_design,
            "fast_loading": fast_loading,
            "easy_navigation": onpage.has_main_nav,
            "clear_cta": onpage.has_cta,
            "search_functionality": onpage.has_search,
        },
        "navigation": {
            "breadcrumbs": technical.has_breadcrumbs or structured.has_breadcrumb,
            "main_menu": onpage.has_main_nav,
            "footer": onpage.has_footer,
            "searchable": onpage.has_search,
            "depth": ctx.depth,
        },
        "engagement": {
            "social_sharing": onpage.social_sharing,
            "interactive_elements": onpage.interactive_elements,
        },
    }
