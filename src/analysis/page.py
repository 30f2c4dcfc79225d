"""
Parsed page context shared by all analysis modules.

A PageContext wraps one fetched HTML document together with the
site-level facts an analyzer needs (robots.txt status, sitemap location,
duplicate-content similarity, crawl depth) so every module reads from
the same parsed tree.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Doctype, Tag

from src.utils.urls import get_hostname, is_same_site, normalize_url

logger = logging.getLogger(__name__)

HTML_PARSER = "html.parser"

# Link source buckets used for crawl prioritization
SOURCE_NAVIGATION = "navigation"
SOURCE_CONTENT = "content"
SOURCE_FOOTER = "footer"
SOURCE_LINK = "link"

NAVIGATION_SELECTORS = "nav a[href], header a[href], .navigation a[href]"
CONTENT_SELECTORS = "main a[href], article a[href], .content a[href], .post a[href]"
FOOTER_SELECTORS = "footer a[href]"


@dataclass
class Link:
    """One anchor on a page."""
    url: str
    anchor: str = ""
    nofollow: bool = False
    source: str = SOURCE_LINK
    internal: bool = True


@dataclass
class PageContext:
    """Everything the analyzers need to know about one page."""
    url: str
    html: str
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    final_url: Optional[str] = None
    redirect_chain: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    # Site-level facts
    robots_txt_status: str = "unknown"   # found, missing, error, unknown
    sitemap_url: Optional[str] = None
    depth: int = 0
    inbound_links: Optional[int] = None  # None when not crawled as part of a site
    broken_links: int = 0                # outgoing internal links to failed pages
    max_similarity: float = 0.0          # closest duplicate on the same site
    target_keywords: List[str] = field(default_factory=list)

    # Optional Core Web Vitals (PageSpeed Insights)
    performance: Optional[object] = None

    def __post_init__(self):
        self.headers = {key.lower(): value for key, value in (self.headers or {}).items()}
        self.soup = BeautifulSoup(self.html or "", HTML_PARSER)
        if self.final_url is None:
            self.final_url = self.url

    # -------------------------------------------------------------------------
    # Convenience accessors
    # -------------------------------------------------------------------------

    def fresh_soup(self) -> BeautifulSoup:
        """A separate parse tree that callers may mutate."""
        return BeautifulSoup(self.html or "", HTML_PARSER)

    @property
    def hostname(self) -> str:
        return get_hostname(self.final_url or self.url)

    @property
    def is_https(self) -> bool:
        return (self.final_url or self.url).lower().startswith("https://")

    @property
    def has_doctype(self) -> bool:
        return any(isinstance(item, Doctype) for item in self.soup.contents)

    def meta_content(self, name: Optional[str] = None, prop: Optional[str] = None) -> str:
        """Content of <meta name=...> or <meta property=...> ('' when absent)."""
        if name:
            tag = self.soup.find("meta", attrs={"name": lambda v: v and v.lower() == name.lower()})
        else:
            tag = self.soup.find("meta", attrs={"property": lambda v: v and v.lower() == prop.lower()})
        if isinstance(tag, Tag):
            return (tag.get("content") or "").strip()
        return ""

    def link_href(self, rel: str) -> str:
        """href of the first <link rel=...> containing the given rel token."""
        for tag in self.soup.find_all("link", href=True):
            rels = tag.get("rel") or []
            if isinstance(rels, str):
                rels = rels.split()
            if rel.lower() in [r.lower() for r in rels]:
                return tag["href"].strip()
        return ""

    def text_of(self, selector: str) -> List[str]:
        return [el.get_text(" ", strip=True) for el in self.soup.select(selector)]


# =============================================================================
# LINK EXTRACTION
# =============================================================================

def _classify_links(soup: BeautifulSoup) -> Dict[int, str]:
    """Map anchor element ids to their source bucket."""
    sources: Dict[int, str] = {}
    # Later buckets win: footer links inside <header> are rare, nav inside <main> is common
    for selector, source in (
        (CONTENT_SELECTORS, SOURCE_CONTENT),
        (NAVIGATION_SELECTORS, SOURCE_NAVIGATION),
        (FOOTER_SELECTORS, SOURCE_FOOTER),
    ):
        for anchor in soup.select(selector):
            sources[id(anchor)] = source
    return sources


def extract_links(
    soup: BeautifulSoup,
    base_url: str,
    allowed_hosts: Optional[List[str]] = None,
    include_subdomains: bool = False,
) -> List[Link]:
    """
    Extract and normalize all anchors from a document.

    Links are deduplicated by normalized URL; the first occurrence keeps
    its anchor text and source bucket.
    """
    hosts = allowed_hosts or [get_hostname(base_url)]
    sources = _classify_links(soup)

    seen = set()
    links: List[Link] = []

    for anchor in soup.find_all("a", href=True):
        url = normalize_url(anchor["href"], base_url)
        if not url or url in seen:
            continue
        seen.add(url)

        rel = anchor.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()

        links.append(Link(
            url=url,
            anchor=anchor.get_text(" ", strip=True),
            nofollow="nofollow" in [r.lower() for r in rel],
            source=sources.get(id(anchor), SOURCE_LINK),
            internal=is_same_site(url, hosts, include_subdomains),
        ))

    return links
