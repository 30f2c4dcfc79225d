"""
Sitemap discovery and parsing.

Supports:
- Standard sitemap.xml
- Sitemap index files (sitemap_index.xml)
- robots.txt Sitemap directives
- Compressed sitemaps (.gz)
"""

import gzip
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_URLS = 5000


@dataclass
class SitemapUrl:
    """Represents a URL from a sitemap."""
    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None


@dataclass
class SitemapResult:
    """Result of sitemap discovery."""
    urls: List[SitemapUrl] = field(default_factory=list)
    sitemap_found: bool = False
    sitemap_location: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.urls)


class SitemapParser:
    """
    Discover and parse a site's sitemap over the crawl's shared fetcher.

    Usage:
        parser = SitemapParser(fetcher)
        result = await parser.discover("https://example.com", robots_sitemaps)
    """

    def __init__(self, fetcher, max_urls: int = DEFAULT_MAX_URLS):
        self.fetcher = fetcher
        self.max_urls = max_urls

    async def discover(self, base_url: str, robots_sitemaps: Optional[List[str]] = None) -> SitemapResult:
        """
        Try robots.txt Sitemap URLs, then /sitemap.xml, then /sitemap_index.xml.

        The first candidate that yields URLs wins.
        """
        result = SitemapResult()
        base_url = base_url.rstrip("/")

        candidates = list(robots_sitemaps or [])
        candidates += [f"{base_url}/sitemap.xml", f"{base_url}/sitemap_index.xml"]

        for candidate in candidates:
            urls = await self.fetch_sitemap(candidate, result)
            if urls:
                result.sitemap_found = True
                result.sitemap_location = candidate
                result.urls = urls[:self.max_urls]
                logger.info(f"Found sitemap at {candidate} with {len(result.urls)} URLs")
                return result

        logger.info(f"No sitemap found for {base_url}")
        result.errors.append("No sitemap found")
        return result

    async def fetch_sitemap(self, url: str, result: SitemapResult) -> List[SitemapUrl]:
        """Fetch and parse one sitemap URL (recursing into indexes)."""
        try:
            response = await self.fetcher.get(url)
        except httpx.HTTPError as e:
            logger.debug(f"Failed to fetch {url}: {e}")
            return []

        if response.status_code != 200:
            return []

        content = response.content
        if url.endswith(".gz"):
            try:
                content = gzip.decompress(content)
            except OSError:
                logger.debug(f"{url} is not gzip encoded, parsing as plain XML")

        return await self.parse_xml(content.decode("utf-8", errors="ignore"), result)

    async def parse_xml(self, xml_content: str, result: SitemapResult) -> List[SitemapUrl]:
        urls: List[SitemapUrl] = []

        try:
            # Strip the default namespace so tag lookups stay simple
            xml_content = re.sub(r'\sxmlns="[^"]+"', '', xml_content)
            root = ET.fromstring(xml_content)
        except ET.ParseError as e:
            logger.warning(f"XML parse error: {e}")
            result.errors.append(f"XML parse error: {e}")
            return urls

        if root.tag == "sitemapindex":
            for sitemap_elem in root.findall(".//sitemap"):
                loc = _text(sitemap_elem, "loc")
                if not loc:
                    continue
                urls.extend(await self.fetch_sitemap(loc, result))
                if len(urls) >= self.max_urls:
                    break
            return urls

        for url_elem in root.findall(".//url"):
            if len(urls) >= self.max_urls:
                break

            loc = _text(url_elem, "loc")
            if not loc:
                continue

            entry = SitemapUrl(
                loc=loc,
                lastmod=_text(url_elem, "lastmod"),
                changefreq=_text(url_elem, "changefreq"),
            )
            priority = _text(url_elem, "priority")
            if priority:
                try:
                    entry.priority = float(priority)
                except ValueError:
                    logger.debug(f"Ignoring invalid sitemap priority {priority!r} for {loc}")

            urls.append(entry)

        return urls


def _text(element, tag: str) -> Optional[str]:
    child = element.find(tag)
    if child is None or not child.text:
        return None
    return child.text.strip()
