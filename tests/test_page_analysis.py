"""
Tests for the per-page analyzers: link extraction, technical, on-page,
structured data and performance.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from bs4 import BeautifulSoup

from src.analysis.onpage import analyze_onpage
from src.analysis.page import PageContext, extract_links
from src.analysis.performance import (
    PageSpeedClient,
    PageSpeedError,
    PerformanceData,
    estimate_from_page,
    merge_performance,
    parse_lighthouse,
    performance_grade,
    rate_metric,
)
from src.analysis.structured_data import analyze_structured_data
from src.analysis.technical import analyze_technical
from tests.helpers import LIGHTHOUSE_PAYLOAD


def make_ctx(html: str, url: str = "https://example.com/", **kwargs) -> PageContext:
    return PageContext(url=url, html=html, **kwargs)


# =============================================================================
# LINKS
# =============================================================================

class TestExtractLinks:

    HTML = (
        '<nav><a href="/a">A</a></nav>'
        '<main><a href="/b" rel="nofollow">B</a><a href="/a#x">A again</a></main>'
        '<footer><a href="https://other.org/">Other</a></footer>'
        '<a href="mailto:x@example.com">mail</a>'
    )

    def test_links_are_deduplicated_and_classified(self):
        soup = BeautifulSoup(self.HTML, "html.parser")
        links = extract_links(soup, "https://example.com/")

        assert [link.url for link in links] == [
            "https://example.com/a",
            "https://example.com/b",
            "https://other.org/",
        ]
        by_url = {link.url: link for link in links}
        assert by_url["https://example.com/a"].source == "navigation"
        assert by_url["https://example.com/a"].anchor == "A"
        assert by_url["https://example.com/b"].source == "content"
        assert by_url["https://example.com/b"].nofollow
        assert by_url["https://other.org/"].source == "footer"
        assert not by_url["https://other.org/"].internal


# =============================================================================
# TECHNICAL
# =============================================================================

class TestTechnicalAnalysis:

    def test_good_page(self, good_html):
        result = analyze_technical(make_ctx(good_html, robots_txt_status="found"))

        assert result.has_https
        assert result.is_indexable
        assert result.canonical == "https://example.com/"
        assert result.has_viewport
        assert result.responsive_design
        assert not result.content_wider_than_screen
        assert result.semantic_html
        assert {"main", "article", "nav"} <= set(result.semantic_tags)
        assert result.has_doctype
        assert not result.mixed_content
        assert result.robots_txt_status == "found"

    def test_security_headers(self, good_html):
        headers = {
            "Strict-Transport-Security": "max-age=63072000",
            "Content-Security-Policy": "default-src 'self'",
        }
        result = analyze_technical(make_ctx(good_html, headers=headers))

        assert result.has_hsts
        assert result.has_csp
        assert not result.has_x_frame_options
        assert "x-frame-options" in result.missing_security_headers
        assert len(result.security_headers) == 2

    def test_noindex_meta_and_header(self, bad_html):
        assert not analyze_technical(make_ctx(bad_html)).is_indexable

        ctx = make_ctx("<html><body></body></html>", headers={"X-Robots-Tag": "noindex"})
        assert not analyze_technical(ctx).is_indexable

    def test_mixed_content_on_https(self):
        html = (
            '<html><head><link rel="stylesheet" href="http://cdn.example.com/s.css">'
            '<link rel="alternate" href="http://example.com/feed"></head>'
            '<body><img src="http://cdn.example.com/a.png"></body></html>'
        )
        result = analyze_technical(make_ctx(html))

        assert result.mixed_content
        assert result.mixed_content_urls == [
            "http://cdn.example.com/a.png",
            "http://cdn.example.com/s.css",
        ]

    def test_no_mixed_content_on_http_page(self):
        html = '<html><body><img src="http://cdn.example.com/a.png"></body></html>'
        result = analyze_technical(make_ctx(html, url="http://example.com/"))

        assert not result.has_https
        assert not result.mixed_content

    def test_mobile_signals(self):
        html = (
            '<html><head><meta name="viewport" content="width=1024">'
            '<style>p { font-size: 10px; }</style></head><body></body></html>'
        )
        result = analyze_technical(make_ctx(html))

        assert result.has_viewport
        assert not result.responsive_design
        assert result.content_wider_than_screen
        assert result.text_too_small

    def test_redirects_and_sitemap(self):
        ctx = make_ctx(
            "<html><body></body></html>",
            redirect_chain=["http://example.com/", "https://example.com"],
            sitemap_url="https://example.com/sitemap.xml",
        )
        result = analyze_technical(ctx)

        assert result.is_redirect
        assert result.redirect_chain_length == 2
        assert result.sitemap_url == "https://example.com/sitemap.xml"

    def test_hreflang_and_breadcrumbs(self):
        html = (
            '<html><head><link rel="alternate" hreflang="sv" href="https://example.com/sv/"></head>'
            '<body><ol class="breadcrumb"><li>Home</li></ol></body></html>'
        )
        result = analyze_technical(make_ctx(html))

        assert result.hreflangs == [{"lang": "sv", "href": "https://example.com/sv/"}]
        assert result.has_breadcrumbs


# =============================================================================
# ON-PAGE
# =============================================================================

class TestOnPageAnalysis:

    def test_good_page(self, good_html):
        result = analyze_onpage(make_ctx(good_html))

        assert result.title == "Garden Tools Guide: Choosing Pruners and Spades"
        assert result.title_length == len(result.title)
        assert result.description_length > 120
        assert result.h1_count == 1
        assert result.hierarchy_valid
        assert not result.skipped_levels
        assert result.keyword_optimized
        assert result.image_count == 1
        assert result.images_missing_alt == 0
        assert result.modern_format_ratio == 1.0
        assert result.lazy_loading
        assert result.has_open_graph
        assert result.has_twitter_card
        assert result.canonical_matches
        assert result.favicon == "/favicon.ico"
        assert result.html_lang == "en"
        assert result.has_main_nav
        assert result.has_footer
        assert result.internal_link_count == 5
        assert result.external_link_count == 2

    def test_bad_page(self, bad_html):
        result = analyze_onpage(make_ctx(bad_html))

        assert result.title == ""
        assert result.has_no_h1
        assert result.images_missing_alt == 2
        assert not result.lazy_loading
        assert result.modern_format_ratio == 0.0
        assert result.has_noindex
        assert result.favicon == ""
        assert result.html_lang == ""
        assert result.generic_anchor_count == 1
        assert not result.anchor_text_optimized

    def test_skipped_heading_levels(self):
        result = analyze_onpage(make_ctx("<html><body><h1>A</h1><h3>B</h3></body></html>"))
        assert result.skipped_levels
        assert not result.hierarchy_valid

    def test_page_starting_below_h2_skips_levels(self):
        result = analyze_onpage(make_ctx("<html><body><h3>Only</h3></body></html>"))
        assert result.skipped_levels

    def test_multiple_h1(self):
        result = analyze_onpage(make_ctx("<html><body><h1>A</h1><h1>B</h1></body></html>"))
        assert result.has_multiple_h1
        assert not result.hierarchy_valid

    def test_oversized_image(self):
        html = '<html><body><img src="/big.jpg" alt="Big" width="3000" height="1000"></body></html>'
        result = analyze_onpage(make_ctx(html))
        assert result.oversized_images == 1

    def test_canonical_mismatch(self):
        html = '<html><head><link rel="canonical" href="https://example.com/other"></head></html>'
        result = analyze_onpage(make_ctx(html))
        assert not result.canonical_matches


# =============================================================================
# STRUCTURED DATA
# =============================================================================

class TestStructuredData:

    def test_article(self, good_html):
        result = analyze_structured_data(make_ctx(good_html))

        assert result.types == ["Article"]
        assert result.has_article
        assert result.rich_results_eligible
        assert result.has_structured_data

    def test_graph_and_type_lists(self):
        html = (
            '<script type="application/ld+json">'
            '{"@graph": [{"@type": "BreadcrumbList"}, {"@type": ["Product", "Thing"]}]}'
            '</script>'
        )
        result = analyze_structured_data(make_ctx(html))

        assert result.types == ["BreadcrumbList", "Product", "Thing"]
        assert result.has_breadcrumb
        assert result.has_product

    def test_invalid_json_recorded(self):
        html = '<script type="application/ld+json">{"@type": "Article",</script>'
        result = analyze_structured_data(make_ctx(html))

        assert len(result.errors) == 1
        assert result.errors[0].startswith("Invalid JSON-LD")
        assert not result.has_structured_data

    def test_duplicate_schemas(self):
        block = '<script type="application/ld+json">{"@type": "Organization"}</script>'
        result = analyze_structured_data(make_ctx(block * 2))

        assert result.duplicate_schemas
        assert not result.rich_results_eligible

    def test_microdata(self):
        html = '<div itemscope itemtype="https://schema.org/FAQPage"></div>'
        result = analyze_structured_data(make_ctx(html))

        assert result.microdata_types == ["FAQPage"]
        assert result.has_faq
        assert result.has_structured_data


# =============================================================================
# PERFORMANCE
# =============================================================================

class TestPerformanceMetrics:

    def test_rate_metric(self):
        assert rate_metric("lcp", 2500) == "good"
        assert rate_metric("lcp", 3000) == "needs-improvement"
        assert rate_metric("lcp", 4500) == "poor"
        assert rate_metric("cls", 0.3) == "poor"

    def test_performance_grade(self):
        assert performance_grade(90) == "A"
        assert performance_grade(65) == "D"
        assert performance_grade(10) == "F"

    def test_estimate_from_page(self):
        html = (
            '<html><head><link rel="stylesheet" href="/s.css"><script src="/a.js"></script></head>'
            '<body><img src="/1.png"><img src="/2.png"></body></html>'
        )
        data = estimate_from_page(make_ctx(html, elapsed_ms=350))

        assert data.ttfb == 350.0
        assert data.load_time == 0.35
        assert data.request_count == 5
        assert data.page_size == len(html.encode("utf-8"))
        assert data.source == "estimated"
        assert not data.has_vitals

    def test_parse_lighthouse(self):
        data = parse_lighthouse(LIGHTHOUSE_PAYLOAD)

        assert data.lcp == 2100.457
        assert data.cls == 0.05
        assert data.tti == 3200
        assert data.load_time == 3.2
        assert data.performance_score == 87
        assert data.seo_score == 92
        assert data.accessibility_score is None
        assert [o["id"] for o in data.opportunities] == ["unused-css-rules", "render-blocking-resources"]
        assert data.source == "pagespeed"

    def test_merge_keeps_measured_page_weight(self):
        measured = PerformanceData(ttfb=120.0, page_size=5000, request_count=7)
        merged = merge_performance(measured, parse_lighthouse(LIGHTHOUSE_PAYLOAD))

        assert merged.lcp == 2100.457
        assert merged.ttfb == 120.0
        assert merged.page_size == 5000
        assert merged.request_count == 7
        assert merged.source == "pagespeed"

    def test_merge_without_lighthouse(self):
        measured = PerformanceData(page_size=10)
        assert merge_performance(measured, None) is measured

    def test_to_dict_ratings_and_grade(self):
        data = parse_lighthouse(LIGHTHOUSE_PAYLOAD).to_dict()

        assert data["ratings"] == {"lcp": "good", "cls": "good"}
        assert data["grade"] == "B"
        assert data["core_web_vitals"]["lcp"] == 2100.457


class TestPageSpeedClient:

    async def test_successful_run(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=LIGHTHOUSE_PAYLOAD)

        async with PageSpeedClient(api_key="k", transport=httpx.MockTransport(handler)) as client:
            data = await client.run("https://example.com/", strategy="mobile")

        assert data.performance_score == 87
        assert data.mobile_score == 87
        params = requests[0].url.params
        assert params["url"] == "https://example.com/"
        assert params["key"] == "k"
        assert params.get_list("category") == PageSpeedClient.CATEGORIES

    async def test_desktop_has_no_mobile_score(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=LIGHTHOUSE_PAYLOAD))
        async with PageSpeedClient(transport=transport) as client:
            data = await client.run("https://example.com/", strategy="desktop")

        assert data.mobile_score is None

    async def test_rate_limit_is_retried(self):
        responses = [httpx.Response(429), httpx.Response(200, json=LIGHTHOUSE_PAYLOAD)]
        transport = httpx.MockTransport(lambda request: responses.pop(0))

        with patch("src.analysis.performance.asyncio.sleep", new=AsyncMock()) as sleep:
            async with PageSpeedClient(transport=transport) as client:
                data = await client.run("https://example.com/")

        assert data.performance_score == 87
        sleep.assert_awaited_once_with(1.0)

    async def test_server_errors_exhaust_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        with patch("src.analysis.performance.asyncio.sleep", new=AsyncMock()):
            async with PageSpeedClient(transport=httpx.MockTransport(handler), max_retries=2) as client:
                with pytest.raises(PageSpeedError) as exc_info:
                    await client.run("https://example.com/")

        assert exc_info.value.status_code == 503
        assert len(calls) == 3

    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403)

        async with PageSpeedClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(PageSpeedError) as exc_info:
                await client.run("https://example.com/")

        assert exc_info.value.status_code == 403
        assert len(calls) == 1

    async def test_closed_client_raises(self):
        client = PageSpeedClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        await client.close()
        with pytest.raises(PageSpeedError):
            await client.run("https://example.com/")
