"""
Site Crawler

Breadth-first-by-priority crawl of one website with asyncio workers
sharing a CrawlQueue.

Usage:
    config = CrawlConfig(crawl_type="domain", max_pages=50, max_depth=3)
    crawler = SiteCrawler(config, progress_callback=print)
    result = await crawler.crawl("https://example.com")
    print(result.summary)
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from src.analysis.page import HTML_PARSER, Link, extract_links
from src.crawler.fetcher import FetchResult, PageFetcher
from src.crawler.insights import compute_insights, generate_content_hashes
from src.crawler.queue import SOURCE_SITEMAP, SOURCE_START, CrawlQueue, QueuedUrl
from src.crawler.robots import ROBOTS_UNKNOWN, RobotsPolicy
from src.crawler.sitemap import SitemapParser
from src.utils.errors import CrawlStartError, ValidationFailed
from src.utils.urls import (
    ensure_scheme,
    get_hostname,
    is_same_site,
    matches_any,
    normalize_url,
    path_extension,
)

logger = logging.getLogger(__name__)

CRAWL_TYPES = ("single", "subfolder", "domain")

# Resources that are never HTML pages
SKIPPED_EXTENSIONS = {
    "jpg", "jpeg", "png", "gif", "webp", "avif", "svg", "ico", "bmp",
    "pdf", "zip", "gz", "tar", "rar", "7z", "exe", "dmg",
    "mp3", "mp4", "avi", "mov", "wmv", "webm",
    "css", "js", "json", "xml", "txt", "woff", "woff2", "ttf", "eot",
}

RECENTLY_DISCOVERED_LIMIT = 10
IDLE_POLL_SECONDS = 0.05


# =============================================================================
# CONFIG & RESULTS
# =============================================================================

@dataclass
class CrawlConfig:
    """Crawl scope and politeness settings."""
    crawl_type: str = "single"
    max_pages: int = 1
    max_depth: int = 1
    crawl_delay_ms: int = 500
    concurrency: int = 1
    allowed_domains: List[str] = field(default_factory=list)
    include_patterns: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    respect_robots_txt: bool = True
    follow_external: bool = False
    analyze_subdomains: bool = False
    use_sitemap: bool = False

    def __post_init__(self):
        if self.crawl_type not in CRAWL_TYPES:
            raise ValidationFailed(f"Unknown crawl_type '{self.crawl_type}', expected one of {CRAWL_TYPES}")
        if self.max_pages < 1:
            raise ValidationFailed("max_pages must be at least 1")
        if self.max_depth < 0:
            raise ValidationFailed("max_depth must not be negative")
        self.concurrency = max(1, self.concurrency)
        self.crawl_delay_ms = max(0, self.crawl_delay_ms)

    @property
    def page_limit(self) -> int:
        return 1 if self.crawl_type == "single" else self.max_pages

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CrawlConfig":
        """Build from stored JSON, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known and v is not None})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class CrawledPage:
    url: str
    depth: int
    source: str
    fetch: FetchResult
    parent_url: Optional[str] = None
    links: List[Link] = field(default_factory=list)
    content_hash: str = ""
    simhash: Optional[int] = None
    title: str = ""
    meta_description: str = ""


@dataclass
class CrawlError:
    url: str
    error: str
    status_code: int = 0
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "error": self.error,
            "status_code": self.status_code,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class CrawlProgress:
    crawled: int
    total: int
    current_url: Optional[str]
    errors: int
    percentage: float
    pages_per_minute: float
    estimated_minutes_remaining: Optional[float]
    recently_discovered: List[str]
    status: str


@dataclass
class CrawlResult:
    start_url: str
    pages: List[CrawledPage] = field(default_factory=list)
    errors: List[CrawlError] = field(default_factory=list)
    robots_status: str = ROBOTS_UNKNOWN
    sitemap_url: Optional[str] = None
    sitemap_urls_found: int = 0
    insights: Dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0
    stopped: bool = False

    @property
    def successful_pages(self) -> List[CrawledPage]:
        return [p for p in self.pages if p.fetch.ok and p.fetch.is_html]

    @property
    def start_page(self) -> Optional[CrawledPage]:
        for page in self.pages:
            if page.url == self.start_url:
                return page
        return self.pages[0] if self.pages else None

    @property
    def summary(self) -> Dict[str, Any]:
        return {
            "start_url": self.start_url,
            "pages_crawled": len(self.pages),
            "successful_pages": len(self.successful_pages),
            "errors": len(self.errors),
            "robots_status": self.robots_status,
            "sitemap_url": self.sitemap_url,
            "sitemap_urls_found": self.sitemap_urls_found,
            "duration_seconds": round(self.duration_ms / 1000, 2),
            "stopped": self.stopped,
        }


# =============================================================================
# CRAWLER
# =============================================================================

class SiteCrawler:
    """
    Crawl a site within the limits of a CrawlConfig.

    Page failures are recorded as CrawlError and never abort the crawl.
    Only an unreachable start URL raises CrawlStartError.
    """

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        fetcher: Optional[PageFetcher] = None,
        progress_callback: Optional[Callable[[CrawlProgress], Any]] = None,
    ):
        self.config = config or CrawlConfig()
        self.fetcher = fetcher
        self.progress_callback = progress_callback

        self.queue = CrawlQueue()
        self.robots: Optional[RobotsPolicy] = None
        self.allowed_hosts: List[str] = []
        self.folder_prefix: Optional[str] = None

        self._pages: List[CrawledPage] = []
        self._errors: List[CrawlError] = []
        self._recent: List[str] = []
        self._reserved = 0
        self._in_flight = 0
        self._started_at = 0.0
        self._status = "idle"
        self._stopped = False
        self._resume_event = asyncio.Event()
        self._resume_event.set()

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def pause(self):
        if self._status == "running":
            self._status = "paused"
            self._resume_event.clear()
            logger.info("Crawl paused")

    def resume(self):
        if self._status == "paused":
            self._status = "running"
            self._resume_event.set()
            logger.info("Crawl resumed")

    def stop(self):
        self._stopped = True
        self._status = "stopped"
        self._resume_event.set()
        logger.info("Crawl stop requested")

    @property
    def status(self) -> str:
        return self._status

    # -------------------------------------------------------------------------
    # Crawl
    # -------------------------------------------------------------------------

    async def crawl(self, start_url: str) -> CrawlResult:
        start_url = normalize_url(ensure_scheme(start_url))
        if not start_url:
            raise CrawlStartError("Invalid start URL")

        owns_fetcher = self.fetcher is None
        if owns_fetcher:
            self.fetcher = PageFetcher()

        self._started_at = time.perf_counter()
        self._status = "running"
        result = CrawlResult(start_url=start_url)

        try:
            self._configure_scope(start_url)

            self.robots = await RobotsPolicy.load(self.fetcher, start_url)
            result.robots_status = self.robots.status

            await self._discover_sitemap(start_url, result)

            self.queue.add(start_url, depth=0, source=SOURCE_START)

            workers = [
                asyncio.create_task(self._worker(i))
                for i in range(self.config.concurrency)
            ]
            await asyncio.gather(*workers)
        finally:
            if owns_fetcher:
                await self.fetcher.close()

        result.pages = self._pages
        result.errors = self._errors
        result.stopped = self._stopped
        result.duration_ms = (time.perf_counter() - self._started_at) * 1000

        start_page = result.start_page
        if start_page is not None and start_page.fetch.status_code == 0:
            raise CrawlStartError(f"Could not reach {start_url}: {start_page.fetch.error}")

        result.insights = compute_insights(result.pages, start_url)

        if not self._stopped:
            self._status = "completed"
        await self._report_progress(None)

        logger.info(
            f"Crawl of {start_url} finished: {len(result.pages)} pages, "
            f"{len(result.errors)} errors in {result.duration_ms / 1000:.1f}s"
        )
        return result

    def _configure_scope(self, start_url: str):
        start_host = get_hostname(start_url)
        self.allowed_hosts = [h.lower() for h in self.config.allowed_domains] or [start_host]
        if start_host not in self.allowed_hosts:
            self.allowed_hosts.append(start_host)

        if self.config.crawl_type == "subfolder":
            path = urlparse(start_url).path or "/"
            self.folder_prefix = path if path.endswith("/") else path.rsplit("/", 1)[0] + "/"

    async def _discover_sitemap(self, start_url: str, result: CrawlResult):
        parsed = urlparse(start_url)
        base_url = f"{parsed.scheme}://{parsed.netloc}"

        sitemap = await SitemapParser(self.fetcher).discover(base_url, self.robots.sitemaps())
        result.sitemap_url = sitemap.sitemap_location
        result.sitemap_urls_found = sitemap.total_pages

        if not (self.config.use_sitemap and self.config.crawl_type != "single"):
            return

        for entry in sitemap.urls:
            url = normalize_url(entry.loc)
            if url and url != start_url and self._should_follow(url):
                self.queue.add(url, depth=1, source=SOURCE_SITEMAP, parent_url=start_url)

    async def _worker(self, worker_id: int):
        delay = self._politeness_delay()

        while not self._stopped:
            await self._resume_event.wait()
            if self._stopped:
                break

            if self._reserved >= self.config.page_limit:
                break

            item = self.queue.pop()
            if item is None:
                if self._in_flight == 0:
                    break
                # Another worker may still discover links
                await asyncio.sleep(IDLE_POLL_SECONDS)
                continue

            self._reserved += 1
            self._in_flight += 1
            try:
                await self._process(item)
            finally:
                self._in_flight -= 1

            if delay and not self._stopped:
                await asyncio.sleep(delay)

        logger.debug(f"Crawl worker {worker_id} exiting")

    def _politeness_delay(self) -> float:
        delay = self.config.crawl_delay_ms / 1000
        if self.config.respect_robots_txt and self.robots is not None:
            robots_delay = self.robots.crawl_delay()
            if robots_delay:
                delay = max(delay, robots_delay)
        return delay

    async def _process(self, item: QueuedUrl):
        fetch = await self.fetcher.fetch(item.url)
        page = CrawledPage(
            url=item.url,
            depth=item.depth,
            source=item.source,
            parent_url=item.parent_url,
            fetch=fetch,
        )

        if fetch.error or fetch.status_code >= 400:
            self._errors.append(CrawlError(
                url=item.url,
                error=fetch.error or f"HTTP {fetch.status_code}",
                status_code=fetch.status_code,
            ))

        if fetch.ok and fetch.html:
            self._parse_page(page)
            if item.depth < self.config.max_depth:
                self._enqueue_links(page)

        self._pages.append(page)
        await self._report_progress(item.url)

    def _parse_page(self, page: CrawledPage):
        soup = BeautifulSoup(page.fetch.html, HTML_PARSER)

        page.links = extract_links(
            soup,
            page.fetch.final_url,
            allowed_hosts=self.allowed_hosts,
            include_subdomains=self.config.analyze_subdomains,
        )

        if soup.title and soup.title.string:
            page.title = soup.title.string.strip()
        description = soup.find("meta", attrs={"name": lambda v: v and v.lower() == "description"})
        if description is not None:
            page.meta_description = (description.get("content") or "").strip()

        page.content_hash, page.simhash = generate_content_hashes(page.fetch.html)

    def _enqueue_links(self, page: CrawledPage):
        for link in page.links:
            if self._should_follow(link.url, internal=link.internal):
                if self.queue.add(link.url, page.depth + 1, source=link.source, parent_url=page.url):
                    self._recent.append(link.url)
        self._recent = self._recent[-RECENTLY_DISCOVERED_LIMIT:]

    def _should_follow(self, url: str, internal: Optional[bool] = None) -> bool:
        """Scope, pattern and robots filters for a discovered URL."""
        if not url or url in self.queue:
            return False

        if internal is None:
            internal = is_same_site(url, self.allowed_hosts, self.config.analyze_subdomains)
        if not internal and not self.config.follow_external:
            return False

        if self.folder_prefix is not None and not urlparse(url).path.startswith(self.folder_prefix):
            return False

        if self.config.include_patterns and not matches_any(url, self.config.include_patterns):
            return False
        if self.config.exclude_patterns and matches_any(url, self.config.exclude_patterns):
            return False

        if path_extension(url) in SKIPPED_EXTENSIONS:
            return False

        if self.config.respect_robots_txt and self.robots is not None and not self.robots.can_fetch(url):
            logger.debug(f"Disallowed by robots.txt: {url}")
            return False

        return True

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def progress(self, current_url: Optional[str]) -> CrawlProgress:
        crawled = len(self._pages)
        total = self.config.page_limit
        elapsed_minutes = (time.perf_counter() - self._started_at) / 60 if self._started_at else 0

        pages_per_minute = crawled / elapsed_minutes if elapsed_minutes > 0 else 0.0
        remaining = max(0, total - crawled)
        eta = round(remaining / pages_per_minute, 1) if pages_per_minute > 0 else None

        return CrawlProgress(
            crawled=crawled,
            total=total,
            current_url=current_url,
            errors=len(self._errors),
            percentage=round(min(100.0, crawled / total * 100), 1),
            pages_per_minute=round(pages_per_minute, 1),
            estimated_minutes_remaining=eta,
            recently_discovered=list(self._recent),
            status=self._status,
        )

    async def _report_progress(self, current_url: Optional[str]):
        if self.progress_callback is None:
            return
        try:
            outcome = self.progress_callback(self.progress(current_url))
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
