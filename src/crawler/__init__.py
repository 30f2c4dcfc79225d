"""
Crawler Module

Async site crawler on httpx with robots.txt, sitemap discovery,
prioritized frontier and cross-page insights.

Usage:
    from src.crawler import CrawlConfig, SiteCrawler

    result = await SiteCrawler(CrawlConfig(crawl_type="domain", max_pages=20)).crawl("example.com")
"""

from .crawler import (
    CrawlConfig,
    CrawledPage,
    CrawlError,
    CrawlProgress,
    CrawlResult,
    SiteCrawler,
)
from .fetcher import FetchResult, PageFetcher
from .queue import CrawlQueue, QueuedUrl, calculate_priority
from .robots import RobotsPolicy
from .sitemap import SitemapParser, SitemapResult, SitemapUrl

__all__ = [
    "CrawlConfig",
    "CrawledPage",
    "CrawlError",
    "CrawlProgress",
    "CrawlResult",
    "SiteCrawler",
    "FetchResult",
    "PageFetcher",
    "CrawlQueue",
    "QueuedUrl",
    "calculate_priority",
    "RobotsPolicy",
    "SitemapParser",
    "SitemapResult",
    "SitemapUrl",
]
