"""
HTTP page fetcher for the crawler.

One httpx.AsyncClient per crawl. Network failures are reported in the
FetchResult (status_code 0, error set) instead of raised.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "SEO-Analyzer/1.0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECTS = 5

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


@dataclass
class FetchResult:
    """Outcome of fetching one URL."""
    url: str
    final_url: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    html: str = ""
    redirect_chain: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def is_html(self) -> bool:
        content_type = self.content_type.lower()
        return not content_type or any(t in content_type for t in HTML_CONTENT_TYPES)

    @property
    def ok(self) -> bool:
        return self.error is None and 0 < self.status_code < 400


class PageFetcher:
    """
    Fetch pages with redirect tracking and timing.

    Usage:
        async with PageFetcher() as fetcher:
            result = await fetcher.fetch("https://example.com")
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            max_redirects=max_redirects,
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
            },
            transport=transport,
        )

    async def fetch(self, url: str) -> FetchResult:
        started = time.perf_counter()
        try:
            response = await self.client.get(url)
        except httpx.TooManyRedirects as e:
            return self._failed(url, started, f"Too many redirects: {e}")
        except httpx.TimeoutException as e:
            return self._failed(url, started, f"Request timed out: {e}")
        except httpx.RequestError as e:
            return self._failed(url, started, f"Request failed: {e}")

        elapsed_ms = (time.perf_counter() - started) * 1000
        headers = {key.lower(): value for key, value in response.headers.items()}

        result = FetchResult(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            headers=headers,
            redirect_chain=[str(r.url) for r in response.history],
            elapsed_ms=elapsed_ms,
        )

        if response.status_code >= 500:
            result.error = f"HTTP {response.status_code}"
        elif result.is_html:
            result.html = response.text

        logger.debug(f"Fetched {url} -> {response.status_code} in {elapsed_ms:.0f}ms")
        return result

    async def get(self, url: str) -> httpx.Response:
        """Raw GET on the shared client (robots.txt, sitemaps)."""
        return await self.client.get(url)

    def _failed(self, url: str, started: float, error: str) -> FetchResult:
        logger.warning(f"Fetch failed for {url}: {error}")
        return FetchResult(
            url=url,
            final_url=url,
            status_code=0,
            elapsed_ms=(time.perf_counter() - started) * 1000,
            error=error,
        )

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
