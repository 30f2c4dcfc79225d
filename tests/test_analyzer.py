"""
Tests for the page and site analyzers.
"""

import json
from datetime import datetime

import httpx

from src.analysis.analyzer import (
    MIN_CONFIDENCE,
    PageAnalysis,
    PageAnalyzer,
    SiteAnalyzer,
    aggregate_scores,
    calculate_confidence,
)
from src.analysis.performance import PageSpeedClient
from src.analysis.scoring import calculate_breakdown, score_from_breakdown
from src.crawler.crawler import CrawledPage, CrawlResult
from src.crawler.fetcher import FetchResult
from tests.helpers import LIGHTHOUSE_PAYLOAD


NOW = datetime(2026, 10, 18, 12, 0, 0)


def html_fetch(html: str, url: str = "https://example.com/", **kwargs) -> FetchResult:
    return FetchResult(
        url=url,
        final_url=url,
        status_code=200,
        headers={"content-type": "text/html; charset=utf-8"},
        html=html,
        elapsed_ms=120.0,
        **kwargs,
    )


def counting_pagespeed(status: int = 200):
    calls = []

    def handler(request):
        calls.append(str(request.url.params["url"]))
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json=LIGHTHOUSE_PAYLOAD)

    return PageSpeedClient(transport=httpx.MockTransport(handler)), calls


def uniform_scores(value: int, **kwargs):
    breakdown = {
        category: {name: value for name in names}
        for category, names in calculate_breakdown({}).items()
    }
    return score_from_breakdown(breakdown, **kwargs)


# =============================================================================
# PAGE ANALYZER
# =============================================================================

class TestPageAnalyzer:

    async def test_good_page(self, good_html):
        analysis = await PageAnalyzer(now=NOW).analyze(html_fetch(good_html))

        assert analysis.ok
        assert 0 <= analysis.overall_score <= 100
        assert analysis.onpage.title == "Garden Tools Guide: Choosing Pruners and Spades"
        assert analysis.performance.source == "estimated"
        assert analysis.performance.ttfb == 120.0
        assert analysis.word_count > 50
        assert "missing-security-headers" in {issue.id for issue in analysis.issues}
        assert analysis.issue_report.summary["total_issues"] == len(analysis.issues)
        assert analysis.recommendations.summary["total_recommendations"] >= len(analysis.issues)

    async def test_tabindex_values(self, good_html):
        analyzer = PageAnalyzer(now=NOW)

        def with_tabindex(*values):
            spans = "".join(f'<span tabindex="{v}">Tab</span>' for v in values)
            return good_html.replace("<body>", f"<body>{spans}", 1)

        plain = await analyzer.analyze(html_fetch(with_tabindex("0")))
        malformed = await analyzer.analyze(html_fetch(with_tabindex("--1", "\u00b2", "")))
        positive = await analyzer.analyze(html_fetch(with_tabindex("3")))

        assert malformed.ok
        assert malformed.scores.breakdown["ux"]["accessibility"] == plain.scores.breakdown["ux"]["accessibility"]
        assert positive.scores.breakdown["ux"]["accessibility"] < plain.scores.breakdown["ux"]["accessibility"]

    async def test_bad_page_scores_lower(self, good_html, bad_html):
        analyzer = PageAnalyzer(now=NOW)
        good = await analyzer.analyze(html_fetch(good_html))
        bad = await analyzer.analyze(html_fetch(bad_html))

        assert bad.overall_score < good.overall_score
        assert bad.scores.risk_penalty >= 20
        assert bad.issue_report.summary["critical_count"] >= 2

    async def test_previous_score_change(self, good_html):
        analysis = await PageAnalyzer(now=NOW).analyze(html_fetch(good_html), previous_score=10)
        assert analysis.scores.score_change == analysis.overall_score - 10

    async def test_http_error_page(self):
        fetch = FetchResult(url="https://example.com/gone", final_url="https://example.com/gone", status_code=404)
        analysis = await PageAnalyzer().analyze(fetch, depth=2)

        assert not analysis.ok
        assert analysis.error == "HTTP 404"
        assert analysis.depth == 2
        assert analysis.overall_score == 0
        assert analysis.confidence == MIN_CONFIDENCE

    async def test_non_html_page(self):
        fetch = FetchResult(
            url="https://example.com/file.pdf",
            final_url="https://example.com/file.pdf",
            status_code=200,
            headers={"content-type": "application/pdf"},
        )
        analysis = await PageAnalyzer().analyze(fetch)

        assert analysis.error.startswith("Not an HTML page (application/pdf")

    async def test_pagespeed_metrics_merged(self, good_html):
        client, calls = counting_pagespeed()
        async with client:
            analysis = await PageAnalyzer(pagespeed=client, now=NOW).analyze(html_fetch(good_html))

        assert calls == ["https://example.com/"]
        assert analysis.performance.source == "pagespeed"
        assert analysis.performance.lcp == 2100.457
        assert analysis.performance.mobile_score == 87
        # Measured TTFB survives the merge when Lighthouse has none
        assert analysis.performance.ttfb == 120.0

    async def test_pagespeed_failure_falls_back(self, good_html):
        client, _ = counting_pagespeed(status=403)
        async with client:
            analysis = await PageAnalyzer(pagespeed=client, now=NOW).analyze(html_fetch(good_html))

        assert analysis.ok
        assert analysis.performance.source == "estimated"

    async def test_measure_performance_off(self, good_html):
        client, calls = counting_pagespeed()
        async with client:
            await PageAnalyzer(pagespeed=client).analyze(html_fetch(good_html), measure_performance=False)

        assert calls == []

    async def test_to_dict_is_json_serializable(self, good_html):
        analysis = await PageAnalyzer(now=NOW).analyze(html_fetch(good_html))
        data = json.loads(json.dumps(analysis.to_dict()))

        assert data["url"] == "https://example.com/"
        assert data["structured_data"]["has_structured_data"]


class TestConfidence:

    def test_deductions(self):
        """No vitals (15), no rendering (10), error (25), few issues (10) floors at 50."""
        assert calculate_confidence(PageAnalysis(url="u", status_code=0, error="down")) == 50
        assert calculate_confidence(PageAnalysis(url="u", status_code=200)) == 65


# =============================================================================
# SITE ANALYZER
# =============================================================================

class TestAggregateScores:

    def test_start_page_counts_twice(self):
        pages = [
            PageAnalysis(url="https://example.com/", status_code=200, scores=uniform_scores(90)),
            PageAnalysis(url="https://example.com/a", status_code=200, scores=uniform_scores(60)),
        ]
        scores = aggregate_scores(pages, "https://example.com/", critical_count=1, high_count=0, previous_score=75)

        assert scores.technical == 80
        assert scores.breakdown["content"]["readability"] == 80
        assert scores.base_score == 80
        assert scores.overall == 70
        assert scores.risk_penalty == 10
        assert scores.score_change == -5

    def test_failed_pages_are_ignored(self):
        pages = [
            PageAnalysis(url="https://example.com/", status_code=200, scores=uniform_scores(90)),
            PageAnalysis(url="https://example.com/broken", status_code=500, error="HTTP 500"),
        ]
        assert aggregate_scores(pages, "https://example.com/", 0, 0).overall == 90

    def test_nothing_analyzed(self):
        scores = aggregate_scores([], "https://example.com/", 0, 0, previous_score=40)
        assert scores.overall == 0
        assert scores.score_change == -40


class TestSiteAnalyzer:

    async def test_site_analysis(self, run_site_analysis):
        site = await run_site_analysis(previous_score=50)

        assert site.url == "https://example.com/"
        assert len(site.pages) == 5
        assert len(site.analyzed_pages) == 3
        assert site.start_page.url == "https://example.com/"
        assert 0 <= site.overall_score <= 100
        assert site.scores.score_change == site.overall_score - 50
        assert site.error is None

        found = {issue.id for issue in site.issues}
        assert {"broken-links", "missing-robots-txt", "missing-sitemap"} <= found
        counts = site.issue_counts()
        assert sum(counts.values()) == len(site.issues)
        assert site.issue_report.summary["total_issues"] == len(site.issues)

    async def test_page_issues_are_merged(self, run_site_analysis):
        site = await run_site_analysis()

        headers = next(issue for issue in site.issues if issue.id == "missing-security-headers")
        assert headers.affected_pages == 3
        assert len([i for i in site.issues if i.id == "missing-security-headers"]) == 1

    async def test_recommendations_and_summary(self, run_site_analysis):
        site = await run_site_analysis()

        assert site.recommendations.recommendations
        assert site.detailed_recommendations
        assert site.crawl_summary["pages_crawled"] == 5
        assert site.insights["structure"]["total_pages"] == 5
        assert site.average_word_count > 0

    async def test_to_dict_is_json_serializable(self, run_site_analysis):
        site = await run_site_analysis()
        data = json.loads(json.dumps(site.to_dict()))

        assert set(data["issue_counts"]) == {"critical", "high", "medium", "low"}
        assert len(data["pages"]) == 5
        assert data["start_page"]["url"] == "https://example.com/"
        assert data["insights"]["structure"]["pages_by_depth"]["0"] == 1

    async def test_pagespeed_only_for_start_page(self, site_transport):
        from src.crawler.crawler import CrawlConfig, SiteCrawler
        from src.crawler.fetcher import PageFetcher

        async with PageFetcher(transport=site_transport) as fetcher:
            crawl = await SiteCrawler(
                CrawlConfig(crawl_type="domain", max_pages=10, max_depth=2, crawl_delay_ms=0), fetcher,
            ).crawl("https://example.com/")

        client, calls = counting_pagespeed()
        async with client:
            site = await SiteAnalyzer(PageAnalyzer(pagespeed=client)).analyze(crawl)

        assert calls == ["https://example.com/"]
        assert site.start_page.performance.source == "pagespeed"

    async def test_nothing_analyzable(self):
        url = "https://example.com/"
        crawl = CrawlResult(
            start_url=url,
            pages=[CrawledPage(
                url=url, depth=0, source="start",
                fetch=FetchResult(url=url, final_url=url, status_code=500, error="HTTP 500"),
            )],
        )
        site = await SiteAnalyzer().analyze(crawl)

        assert site.error == "HTTP 500"
        assert site.overall_score == 0
        assert site.confidence == MIN_CONFIDENCE
        assert site.analyzed_pages == []
