"""
Technical SEO Analysis

Checks the transport and markup signals search engines rely on:
HTTPS and security headers, mixed content, robots directives,
sitemap discovery, hreflang, viewport and mobile signals,
redirects and semantic structure.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .page import PageContext

logger = logging.getLogger(__name__)


SECURITY_HEADERS = [
    "content-security-policy",
    "x-content-type-options",
    "x-frame-options",
    "strict-transport-security",
    "x-xss-protection",
    "referrer-policy",
    "permissions-policy",
]

SEMANTIC_TAGS = ["main", "article", "nav", "header", "footer", "section"]

BREADCRUMB_SELECTORS = (
    "nav[aria-label*=breadcrumb i], .breadcrumb, .breadcrumbs, "
    "[itemtype*=BreadcrumbList], ol.breadcrumb"
)

MIN_READABLE_FONT_PX = 12

_FONT_SIZE_RE = re.compile(r"font-size\s*:\s*([0-9.]+)px", re.IGNORECASE)
_FIXED_VIEWPORT_RE = re.compile(r"width\s*=\s*\d+", re.IGNORECASE)


@dataclass
class TechnicalResult:
    """Technical signals for one page."""
    url: str
    status_code: int
    content_type: str = ""
    has_https: bool = False

    # Security
    security_headers: List[str] = field(default_factory=list)
    missing_security_headers: List[str] = field(default_factory=list)
    has_hsts: bool = False
    has_csp: bool = False
    has_x_frame_options: bool = False
    has_x_content_type_options: bool = False
    mixed_content: bool = False
    mixed_content_urls: List[str] = field(default_factory=list)

    # Crawlability / indexability
    canonical: str = ""
    robots_meta: str = ""
    x_robots_tag: str = ""
    is_indexable: bool = True
    robots_txt_status: str = "unknown"
    sitemap_url: Optional[str] = None
    hreflangs: List[Dict[str, str]] = field(default_factory=list)
    amp_html: str = ""
    is_redirect: bool = False
    redirect_chain_length: int = 0

    # Mobile
    has_viewport: bool = False
    viewport_content: str = ""
    responsive_design: bool = False
    text_too_small: bool = False
    content_wider_than_screen: bool = False

    # Structure
    semantic_html: bool = False
    semantic_tags: List[str] = field(default_factory=list)
    has_breadcrumbs: bool = False
    has_doctype: bool = False

    # Server
    response_time_ms: float = 0.0
    html_size: int = 0
    compression: str = ""
    server: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _mixed_content(ctx: PageContext) -> List[str]:
    """http:// subresources referenced from an https page."""
    if not ctx.is_https:
        return []

    insecure = []
    for tag, attr in (("img", "src"), ("script", "src"), ("link", "href"),
                      ("iframe", "src"), ("source", "src"), ("video", "src"), ("audio", "src")):
        for el in ctx.soup.find_all(tag):
            value = (el.get(attr) or "").strip()
            if tag == "link":
                rels = el.get("rel") or []
                if isinstance(rels, str):
                    rels = rels.split()
                # Plain hyperlinks to http pages are navigation, not subresources
                if not {"stylesheet", "icon", "preload", "shortcut"} & {r.lower() for r in rels}:
                    continue
            if value.lower().startswith("http://"):
                insecure.append(value)
    return insecure


def _has_small_text(ctx: PageContext) -> bool:
    styles = " ".join(el.get_text() for el in ctx.soup.find_all("style"))
    styles += " ".join(el.get("style", "") for el in ctx.soup.find_all(style=True))
    return any(float(size) < MIN_READABLE_FONT_PX for size in _FONT_SIZE_RE.findall(styles))


def analyze_technical(ctx: PageContext) -> TechnicalResult:
    """Run the technical checks for one page."""
    headers = ctx.headers

    present = [name for name in SECURITY_HEADERS if name in headers]
    missing = [name for name in SECURITY_HEADERS if name not in headers]

    robots_meta = ctx.meta_content(name="robots").lower()
    x_robots = headers.get("x-robots-tag", "").lower()

    viewport = ctx.meta_content(name="viewport")
    viewport_lower = viewport.lower()

    sitemap_url = ctx.sitemap_url or ctx.link_href("sitemap") or None

    hreflangs = [
        {"lang": link.get("hreflang", ""), "href": link.get("href", "")}
        for link in ctx.soup.find_all("link", hreflang=True)
    ]

    semantic_found = [tag for tag in SEMANTIC_TAGS if ctx.soup.find(tag)]
    breadcrumbs = bool(ctx.soup.select(BREADCRUMB_SELECTORS))
    if not breadcrumbs:
        breadcrumbs = any(
            "BreadcrumbList" in (script.string or "")
            for script in ctx.soup.find_all("script", type="application/ld+json")
        )

    mixed = _mixed_content(ctx)

    result = TechnicalResult(
        url=ctx.url,
        status_code=ctx.status_code,
        content_type=headers.get("content-type", ""),
        has_https=ctx.is_https,
        security_headers=present,
        missing_security_headers=missing,
        has_hsts="strict-transport-security" in headers,
        has_csp="content-security-policy" in headers,
        has_x_frame_options="x-frame-options" in headers,
        has_x_content_type_options="x-content-type-options" in headers,
        mixed_content=bool(mixed),
        mixed_content_urls=mixed[:10],
        canonical=ctx.link_href("canonical"),
        robots_meta=robots_meta,
        x_robots_tag=x_robots,
        is_indexable="noindex" not in robots_meta and "noindex" not in x_robots,
        robots_txt_status=ctx.robots_txt_status,
        sitemap_url=sitemap_url,
        hreflangs=hreflangs,
        amp_html=ctx.link_href("amphtml"),
        is_redirect=len(ctx.redirect_chain) > 0,
        redirect_chain_length=len(ctx.redirect_chain),
        has_viewport=bool(viewport),
        viewport_content=viewport,
        responsive_design="width=device-width" in viewport_lower.replace(" ", ""),
        text_too_small=_has_small_text(ctx),
        content_wider_than_screen=bool(_FIXED_VIEWPORT_RE.search(viewport_lower)),
        semantic_html=len(semantic_found) >= 2,
        semantic_tags=semantic_found,
        has_breadcrumbs=breadcrumbs,
        has_doctype=ctx.has_doctype,
        response_time_ms=round(ctx.elapsed_ms, 1),
        html_size=len((ctx.html or "").encode("utf-8")),
        compression=headers.get("content-encoding", ""),
        server=headers.get("server", ""),
    )

    logger.debug(
        f"Technical analysis for {ctx.url}: https={result.has_https}, "
        f"security_headers={len(present)}/{len(SECURITY_HEADERS)}"
    )
    return result
