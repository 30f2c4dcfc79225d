"""
Page and Site Analyzers

PageAnalyzer runs every analysis module on one fetched page and scores it.
SiteAnalyzer turns a finished crawl into one site-level analysis:

    category scores  mean over analyzed pages, start page counted twice
    issues           page issues merged by type, plus crawl-wide issues
    overall score    weighted categories, risk-adjusted once for the site
    recommendations  regenerated from the merged issues

Usage:
    analyzer = SiteAnalyzer()
    site = await analyzer.analyze(crawl_result)
    print(site.overall_score, site.issue_report.summary)
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.crawler.fetcher import FetchResult

from .content import ContentResult, analyze_content
from .issues import (
    DetectedIssue,
    IssueReport,
    PageFacts,
    build_issue_report,
    detect_page_issues,
    detect_site_issues,
    merge_issues,
)
from .onpage import OnPageResult, analyze_onpage
from .page import PageContext
from .performance import (
    PageSpeedClient,
    PageSpeedError,
    PerformanceData,
    estimate_from_page,
    merge_performance,
)
from .recommendations import RecommendationSet, detailed_recommendations, generate_recommendations
from .scoring import (
    CONTENT_WEIGHTS,
    ONPAGE_WEIGHTS,
    TECHNICAL_WEIGHTS,
    UX_WEIGHTS,
    ScoreResult,
    all_weights,
    apply_risk_adjustment,
    build_scoring_input,
    calculate_scores,
    clamp_score,
    combine_categories,
)
from .structured_data import StructuredDataResult, analyze_structured_data
from .technical import TechnicalResult, analyze_technical

logger = logging.getLogger(__name__)

START_PAGE_WEIGHT = 2
MIN_CONFIDENCE = 50
MAX_CONFIDENCE = 100

CATEGORY_WEIGHTS = {
    "technical": TECHNICAL_WEIGHTS,
    "content": CONTENT_WEIGHTS,
    "onpage": ONPAGE_WEIGHTS,
    "ux": UX_WEIGHTS,
}


def empty_scores(previous_score: Optional[int] = None) -> ScoreResult:
    """Zero scores for pages or sites that could not be analyzed."""
    return ScoreResult(
        overall=0,
        technical=0,
        content=0,
        onpage=0,
        ux=0,
        base_score=0,
        weights=all_weights(),
        previous_score=previous_score,
        score_change=-previous_score if previous_score is not None else None,
    )


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class PageAnalysis:
    """Analysis of one page."""
    url: str
    status_code: int
    depth: int = 0
    scores: ScoreResult = field(default_factory=empty_scores)
    technical: Optional[TechnicalResult] = None
    onpage: Optional[OnPageResult] = None
    content: Optional[ContentResult] = None
    structured: Optional[StructuredDataResult] = None
    performance: Optional[PerformanceData] = None
    issues: List[DetectedIssue] = field(default_factory=list)
    issue_report: IssueReport = field(default_factory=IssueReport)
    recommendations: RecommendationSet = field(default_factory=RecommendationSet)
    confidence: int = MIN_CONFIDENCE
    error: Optional[str] = None
    duration_ms: float = 0.0
    analyzed_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def overall_score(self) -> int:
        return self.scores.overall

    @property
    def word_count(self) -> int:
        return self.content.word_count if self.content else 0

    def summary(self) -> Dict[str, Any]:
        """Compact per-page record stored with the site analysis."""
        return {
            "url": self.url,
            "status_code": self.status_code,
            "depth": self.depth,
            "overall_score": self.overall_score,
            "category_scores": self.scores.category_scores,
            "title": self.onpage.title if self.onpage else "",
            "word_count": self.word_count,
            "issue_count": len(self.issues),
            "issue_ids": [issue.id for issue in self.issues],
            "error": self.error,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.summary(),
            "scores": self.scores.to_dict(),
            "technical": self.technical.to_dict() if self.technical else None,
            "onpage": self.onpage.to_dict() if self.onpage else None,
            "content": self.content.to_dict() if self.content else None,
            "structured_data": self.structured.to_dict() if self.structured else None,
            "performance": self.performance.to_dict() if self.performance else None,
            "issues": self.issue_report.to_dict(),
            "recommendations": self.recommendations.to_dict(),
            "confidence": self.confidence,
            "duration_ms": round(self.duration_ms, 1),
            "analyzed_at": self.analyzed_at.isoformat(),
        }


@dataclass
class SiteAnalysis:
    """Aggregated analysis of a crawl."""
    url: str
    scores: ScoreResult
    pages: List[PageAnalysis] = field(default_factory=list)
    start_page: Optional[PageAnalysis] = None
    issues: List[DetectedIssue] = field(default_factory=list)
    issue_report: IssueReport = field(default_factory=IssueReport)
    recommendations: RecommendationSet = field(default_factory=RecommendationSet)
    detailed_recommendations: List[Dict[str, Any]] = field(default_factory=list)
    insights: Dict[str, Any] = field(default_factory=dict)
    crawl_summary: Dict[str, Any] = field(default_factory=dict)
    confidence: int = MIN_CONFIDENCE
    error: Optional[str] = None
    duration_ms: float = 0.0
    analyzed_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def overall_score(self) -> int:
        return self.scores.overall

    @property
    def analyzed_pages(self) -> List[PageAnalysis]:
        return [page for page in self.pages if page.ok]

    @property
    def average_word_count(self) -> int:
        pages = self.analyzed_pages
        if not pages:
            return 0
        return round(sum(page.word_count for page in pages) / len(pages))

    def issue_counts(self) -> Dict[str, int]:
        counts = {"critical": 0, "high": 0, "medium": 0, "low": 0}
        for issue in self.issues:
            counts[issue.severity] = counts.get(issue.severity, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        start = self.start_page
        return {
            "url": self.url,
            "overall_score": self.overall_score,
            "scores": self.scores.to_dict(),
            "issue_counts": self.issue_counts(),
            "issues": self.issue_report.to_dict(),
            "recommendations": self.recommendations.to_dict(),
            "detailed_recommendations": self.detailed_recommendations,
            "pages": [page.summary() for page in self.pages],
            "start_page": start.to_dict() if start else None,
            "insights": _json_insights(self.insights),
            "crawl_summary": self.crawl_summary,
            "confidence": self.confidence,
            "error": self.error,
            "duration_ms": round(self.duration_ms, 1),
            "analyzed_at": self.analyzed_at.isoformat(),
        }


def _json_insights(insights: Dict[str, Any]) -> Dict[str, Any]:
    """Insights with integer dict keys turned into strings."""
    data = dict(insights)
    structure = dict(data.get("structure") or {})
    if "pages_by_depth" in structure:
        structure["pages_by_depth"] = {str(k): v for k, v in structure["pages_by_depth"].items()}
    if structure:
        data["structure"] = structure
    return data


# =============================================================================
# PAGE ANALYZER
# =============================================================================

class PageAnalyzer:
    """
    Run all analysis modules for one page.

    Args:
        pagespeed: Optional PageSpeedClient for measured Core Web Vitals
        strategy: PageSpeed strategy ("mobile" or "desktop")
        target_keywords: Keywords to check density and placement for
        now: Reference time for freshness (tests)
    """

    def __init__(
        self,
        pagespeed: Optional[PageSpeedClient] = None,
        strategy: str = "mobile",
        target_keywords: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ):
        self.pagespeed = pagespeed
        self.strategy = strategy
        self.target_keywords = list(target_keywords or [])
        self.now = now

    async def analyze(
        self,
        fetch: FetchResult,
        depth: int = 0,
        measure_performance: bool = True,
        previous_score: Optional[int] = None,
        **site_facts,
    ) -> PageAnalysis:
        """
        Analyze a fetched page.

        site_facts are passed to PageContext (robots_txt_status,
        sitemap_url, inbound_links, broken_links, max_similarity).
        """
        if fetch.status_code == 0 or fetch.status_code >= 400:
            return self._error_analysis(
                fetch.url, fetch.status_code, depth,
                fetch.error or f"HTTP {fetch.status_code}",
            )
        if not fetch.is_html or not fetch.html:
            return self._error_analysis(
                fetch.url, fetch.status_code, depth,
                f"Not an HTML page ({fetch.content_type or 'empty response'})",
            )

        ctx = PageContext(
            url=fetch.url,
            html=fetch.html,
            status_code=fetch.status_code,
            headers=fetch.headers,
            final_url=fetch.final_url,
            redirect_chain=fetch.redirect_chain,
            elapsed_ms=fetch.elapsed_ms,
            depth=depth,
            target_keywords=self.target_keywords,
            **site_facts,
        )
        return await self.analyze_context(ctx, measure_performance, previous_score)

    async def analyze_context(
        self,
        ctx: PageContext,
        measure_performance: bool = True,
        previous_score: Optional[int] = None,
    ) -> PageAnalysis:
        started = time.perf_counter()

        try:
            lighthouse = None
            if measure_performance and ctx.performance is None:
                lighthouse = await self._run_pagespeed(ctx.final_url or ctx.url)
            performance = merge_performance(estimate_from_page(ctx), lighthouse or ctx.performance)
            ctx.performance = performance

            technical = analyze_technical(ctx)
            onpage = analyze_onpage(ctx)
            content = analyze_content(ctx, now=self.now)
            structured = analyze_structured_data(ctx)

            issues = detect_page_issues(PageFacts(
                url=ctx.url,
                technical=technical,
                onpage=onpage,
                content=content,
                structured=structured,
                performance=performance,
            ))
            report = build_issue_report(issues)

            scores = calculate_scores(
                build_scoring_input(ctx, technical, onpage, content, structured, performance),
                critical_count=report.summary["critical_count"],
                high_count=report.summary["high_count"],
                previous_score=previous_score,
            )
            recommendations = generate_recommendations(issues, word_count=content.word_count)
        except Exception as e:
            logger.exception(f"Analysis failed for {ctx.url}")
            return self._error_analysis(ctx.url, ctx.status_code, ctx.depth, f"Analysis failed: {e}")

        analysis = PageAnalysis(
            url=ctx.url,
            status_code=ctx.status_code,
            depth=ctx.depth,
            scores=scores,
            technical=technical,
            onpage=onpage,
            content=content,
            structured=structured,
            performance=performance,
            issues=issues,
            issue_report=report,
            recommendations=recommendations,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        analysis.confidence = calculate_confidence(analysis)

        logger.info(
            f"Analyzed {ctx.url}: score={scores.overall}, "
            f"{len(issues)} issues, confidence={analysis.confidence}"
        )
        return analysis

    async def _run_pagespeed(self, url: str) -> Optional[PerformanceData]:
        if self.pagespeed is None:
            return None
        try:
            return await self.pagespeed.run(url, strategy=self.strategy)
        except PageSpeedError as e:
            logger.warning(f"PageSpeed unavailable for {url}: {e}")
            return None

    def _error_analysis(self, url: str, status_code: int, depth: int, error: str) -> PageAnalysis:
        logger.warning(f"Page {url} not analyzed: {error}")
        analysis = PageAnalysis(url=url, status_code=status_code, depth=depth, error=error)
        analysis.confidence = calculate_confidence(analysis)
        return analysis


def calculate_confidence(analysis: PageAnalysis) -> int:
    """
    How much the score can be trusted, 50-100.

    Deductions: no measured Core Web Vitals (15), no browser rendering (10),
    analysis error (25), fewer than five issues checked in (10).
    """
    confidence = 100
    if analysis.performance is None or analysis.performance.source != "pagespeed":
        confidence -= 15
    confidence -= 10
    if analysis.error:
        confidence -= 25
    if len(analysis.issues) < 5:
        confidence -= 10
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


# =============================================================================
# SITE ANALYZER
# =============================================================================

def _weighted_mean(values: List[float], weights: List[int]) -> float:
    total = sum(weights)
    if not total:
        return 0.0
    return sum(v * w for v, w in zip(values, weights)) / total


def aggregate_scores(
    pages: List[PageAnalysis],
    start_url: str,
    critical_count: int,
    high_count: int,
    previous_score: Optional[int] = None,
) -> ScoreResult:
    """Weighted mean of page scores with a single site-level risk adjustment."""
    analyzed = [page for page in pages if page.ok]
    if not analyzed:
        return empty_scores(previous_score)

    weights = [START_PAGE_WEIGHT if page.url == start_url else 1 for page in analyzed]

    breakdown: Dict[str, Dict[str, int]] = {}
    for category, sub_weights in CATEGORY_WEIGHTS.items():
        breakdown[category] = {
            name: clamp_score(_weighted_mean(
                [page.scores.breakdown[category][name] for page in analyzed],
                weights,
            ))
            for name in sub_weights
        }

    categories = {
        name: clamp_score(_weighted_mean([getattr(page.scores, name) for page in analyzed], weights))
        for name in CATEGORY_WEIGHTS
    }

    base = combine_categories(categories)
    overall = apply_risk_adjustment(base, critical_count, high_count)

    return ScoreResult(
        overall=overall,
        technical=categories["technical"],
        content=categories["content"],
        onpage=categories["onpage"],
        ux=categories["ux"],
        base_score=base,
        risk_penalty=base - overall,
        breakdown=breakdown,
        weights=all_weights(),
        previous_score=previous_score,
        score_change=overall - previous_score if previous_score is not None else None,
    )


class SiteAnalyzer:
    """
    Aggregate a CrawlResult into a SiteAnalysis.

    PageSpeed is only queried for the start page.
    """

    def __init__(self, page_analyzer: Optional[PageAnalyzer] = None):
        self.page_analyzer = page_analyzer or PageAnalyzer()

    async def analyze(self, crawl_result, previous_score: Optional[int] = None) -> SiteAnalysis:
        started = time.perf_counter()
        insights = crawl_result.insights or {}
        structure = insights.get("structure") or {}
        inbound = structure.get("inbound_links") or {}
        broken_outlinks = insights.get("broken_outlinks") or {}
        similarity = insights.get("max_similarity") or {}
        multi_page = len(crawl_result.pages) > 1

        pages: List[PageAnalysis] = []
        for page in crawl_result.pages:
            analysis = await self.page_analyzer.analyze(
                page.fetch,
                depth=page.depth,
                measure_performance=page.url == crawl_result.start_url,
                robots_txt_status=crawl_result.robots_status,
                sitemap_url=crawl_result.sitemap_url,
                inbound_links=inbound.get(page.url) if multi_page else None,
                broken_links=broken_outlinks.get(page.url, 0),
                max_similarity=similarity.get(page.url, 0.0),
            )
            pages.append(analysis)

        start_page = next((p for p in pages if p.url == crawl_result.start_url), pages[0] if pages else None)

        issues = merge_issues([page.issues for page in pages if page.ok])
        issues.extend(detect_site_issues(
            insights,
            robots_txt_status=crawl_result.robots_status,
            sitemap_found=bool(crawl_result.sitemap_url),
        ))
        report = build_issue_report(issues)

        scores = aggregate_scores(
            pages,
            crawl_result.start_url,
            critical_count=report.summary["critical_count"],
            high_count=report.summary["high_count"],
            previous_score=previous_score,
        )

        site = SiteAnalysis(
            url=crawl_result.start_url,
            scores=scores,
            pages=pages,
            start_page=start_page,
            issues=report.all_issues,
            issue_report=report,
            insights=insights,
            crawl_summary=crawl_result.summary,
        )
        site.recommendations = generate_recommendations(site.issues, word_count=site.average_word_count)
        site.detailed_recommendations = detailed_recommendations(report)

        if not site.analyzed_pages:
            site.error = start_page.error if start_page else "No pages were crawled"

        confidences = [page.confidence for page in site.analyzed_pages]
        site.confidence = round(sum(confidences) / len(confidences)) if confidences else MIN_CONFIDENCE
        site.duration_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"Site analysis for {site.url}: score={site.overall_score}, "
            f"{len(site.analyzed_pages)}/{len(pages)} pages analyzed, {len(site.issues)} issues"
        )
        return site
