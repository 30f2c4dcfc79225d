"""
Performance Metrics

Core Web Vitals from Google PageSpeed Insights (optional) plus the
page-weight facts that can be measured from the fetch itself.

PageSpeed is only queried when PAGESPEED_API_KEY is set or
PAGESPEED_ENABLED=true. Failures are logged and the page is analyzed
without vitals.

Usage:
    async with PageSpeedClient(api_key="...") as client:
        data = await client.run("https://example.com", strategy="mobile")
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .page import PageContext

logger = logging.getLogger(__name__)


# Thresholds: (good, poor). At or below good is good, at or below poor needs improvement.
VITAL_THRESHOLDS: Dict[str, tuple] = {
    "lcp": (2500, 4000),
    "fid": (100, 300),
    "cls": (0.1, 0.25),
    "fcp": (1800, 3000),
    "ttfb": (600, 1200),
}

# Lighthouse audit id -> vital name
LIGHTHOUSE_AUDITS = {
    "largest-contentful-paint": "lcp",
    "first-contentful-paint": "fcp",
    "cumulative-layout-shift": "cls",
    "total-blocking-time": "tbt",
    "server-response-time": "ttfb",
    "speed-index": "speed_index",
    "max-potential-fid": "fid",
    "interactive": "tti",
}


class PageSpeedError(Exception):
    """Raised when the PageSpeed Insights API cannot be used."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class PerformanceData:
    """Performance facts for one page."""
    lcp: Optional[float] = None
    fid: Optional[float] = None
    cls: Optional[float] = None
    fcp: Optional[float] = None
    ttfb: Optional[float] = None
    tbt: Optional[float] = None
    speed_index: Optional[float] = None
    tti: Optional[float] = None

    performance_score: Optional[int] = None
    accessibility_score: Optional[int] = None
    seo_score: Optional[int] = None
    best_practices_score: Optional[int] = None
    mobile_score: Optional[int] = None

    load_time: Optional[float] = None  # seconds
    page_size: int = 0                 # bytes of HTML
    request_count: int = 0             # HTML plus referenced subresources
    opportunities: List[Dict[str, Any]] = field(default_factory=list)
    source: str = "estimated"          # "pagespeed" or "estimated"

    @property
    def has_vitals(self) -> bool:
        return self.lcp is not None or self.performance_score is not None

    @property
    def core_web_vitals(self) -> Dict[str, Optional[float]]:
        return {
            "lcp": self.lcp,
            "fid": self.fid,
            "cls": self.cls,
            "fcp": self.fcp,
            "ttfb": self.ttfb,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["core_web_vitals"] = self.core_web_vitals
        data["ratings"] = {
            name: rate_metric(name, value)
            for name, value in self.core_web_vitals.items()
            if value is not None
        }
        if self.performance_score is not None:
            data["grade"] = performance_grade(self.performance_score)
        return data


def rate_metric(name: str, value: float) -> str:
    """good / needs-improvement / poor for one vital."""
    good, poor = VITAL_THRESHOLDS[name]
    if value <= good:
        return "good"
    if value <= poor:
        return "needs-improvement"
    return "poor"


def performance_grade(score: float) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 50:
        return "D"
    return "F"


def estimate_from_page(ctx: PageContext) -> PerformanceData:
    """Page weight and response time measurable without a browser."""
    soup = ctx.soup
    subresources = (
        len(soup.find_all("script", src=True))
        + len(soup.find_all("img", src=True))
        + len([
            link for link in soup.find_all("link", href=True)
            if "stylesheet" in (link.get("rel") or [])
        ])
    )

    return PerformanceData(
        ttfb=round(ctx.elapsed_ms, 1) if ctx.elapsed_ms else None,
        load_time=round(ctx.elapsed_ms / 1000, 3) if ctx.elapsed_ms else None,
        page_size=len((ctx.html or "").encode("utf-8")),
        request_count=1 + subresources,
    )


def merge_performance(measured: PerformanceData, lighthouse: Optional[PerformanceData]) -> PerformanceData:
    """Overlay PageSpeed metrics onto the fetch-based estimate."""
    if lighthouse is None:
        return measured

    merged = PerformanceData(**{**asdict(measured), **{
        key: value for key, value in asdict(lighthouse).items()
        if value is not None and value != []
    }})
    merged.page_size = measured.page_size
    merged.request_count = measured.request_count
    return merged


# =============================================================================
# PAGESPEED INSIGHTS CLIENT
# =============================================================================

class PageSpeedClient:
    """Async client for the PageSpeed Insights v5 API."""

    BASE_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    CATEGORIES = ["performance", "accessibility", "seo", "best-practices"]

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.max_retries = max_retries
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._closed = False

    async def run(self, url: str, strategy: str = "mobile") -> PerformanceData:
        """Run PageSpeed for one URL and parse the Lighthouse result."""
        if self._closed:
            raise PageSpeedError("Client has been closed")

        params = [("url", url), ("strategy", strategy)]
        params.extend(("category", category) for category in self.CATEGORIES)
        if self.api_key:
            params.append(("key", self.api_key))

        last_exception: Optional[PageSpeedError] = None
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.get(self.BASE_URL, params=params)
                if response.status_code == 429 or response.status_code >= 500:
                    last_exception = PageSpeedError(
                        f"PageSpeed API error: {response.status_code}",
                        status_code=response.status_code,
                    )
                elif response.status_code >= 400:
                    raise PageSpeedError(
                        f"PageSpeed API error: {response.status_code}",
                        status_code=response.status_code,
                    )
                else:
                    data = parse_lighthouse(response.json())
                    if strategy == "mobile":
                        data.mobile_score = data.performance_score
                    return data
            except httpx.TimeoutException as e:
                last_exception = PageSpeedError(f"Request timed out: {e}")
            except httpx.RequestError as e:
                last_exception = PageSpeedError(f"Request failed: {e}")

            if attempt < self.max_retries:
                logger.warning(f"PageSpeed request failed, retrying (attempt {attempt + 1})")
                await asyncio.sleep(1.0 * (attempt + 1))

        raise last_exception

    async def close(self):
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _category_score(categories: Dict[str, Any], name: str) -> Optional[int]:
    score = (categories.get(name) or {}).get("score")
    return int(round(score * 100)) if score is not None else None


def parse_lighthouse(payload: Dict[str, Any]) -> PerformanceData:
    """Extract vitals, category scores and opportunities from a PSI response."""
    lighthouse = payload.get("lighthouseResult") or {}
    audits = lighthouse.get("audits") or {}
    categories = lighthouse.get("categories") or {}

    values: Dict[str, Optional[float]] = {}
    for audit_id, name in LIGHTHOUSE_AUDITS.items():
        numeric = (audits.get(audit_id) or {}).get("numericValue")
        values[name] = round(float(numeric), 3) if numeric is not None else None

    opportunities = []
    for audit_id, audit in audits.items():
        details = audit.get("details") or {}
        score = audit.get("score")
        if details.get("type") == "opportunity" and score is not None and score < 0.9:
            opportunities.append({
                "id": audit_id,
                "title": audit.get("title", audit_id),
                "savings_ms": details.get("overallSavingsMs", 0),
            })
    opportunities.sort(key=lambda item: item["savings_ms"], reverse=True)

    interactive = values.get("tti")

    return PerformanceData(
        lcp=values.get("lcp"),
        fid=values.get("fid"),
        cls=values.get("cls"),
        fcp=values.get("fcp"),
        ttfb=values.get("ttfb"),
        tbt=values.get("tbt"),
        speed_index=values.get("speed_index"),
        tti=interactive,
        performance_score=_category_score(categories, "performance"),
        accessibility_score=_category_score(categories, "accessibility"),
        seo_score=_category_score(categories, "seo"),
        best_practices_score=_category_score(categories, "best-practices"),
        load_time=round(interactive / 1000, 3) if interactive else None,
        opportunities=opportunities[:10],
        source="pagespeed",
    )
