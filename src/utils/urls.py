"""
URL Utilities

Shared URL handling used by the crawler, the analyzers and the API:
- Normalization (fragment and tracking parameter removal)
- Host and registrable-domain extraction
- Glob-style include/exclude pattern matching
- Stable hashing for cache keys
"""

import hashlib
import logging
import re
from typing import Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

logger = logging.getLogger(__name__)


# Query parameters that never change page content
TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "fbclid",
    "gclid",
}

ALLOWED_SCHEMES = {"http", "https"}


def ensure_scheme(url: str) -> str:
    """Prefix bare hosts with https://."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def normalize_url(url: str, base_url: Optional[str] = None) -> Optional[str]:
    """
    Resolve and normalize a URL.

    Resolves relative links against base_url, drops the fragment and
    tracking parameters. Returns None for non-http(s) links
    (mailto:, tel:, javascript:) and unparseable values.
    """
    if not url:
        return None

    url = url.strip()
    if url.startswith(("mailto:", "tel:", "javascript:", "data:")):
        return None

    try:
        absolute = urljoin(base_url, url) if base_url else url
        parsed = urlparse(absolute)
    except ValueError:
        logger.debug(f"Unparseable URL skipped: {url}")
        return None

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        return None

    query = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key.lower() not in TRACKING_PARAMS
    ]

    path = parsed.path or "/"

    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        path,
        parsed.params,
        urlencode(query),
        "",
    ))


def get_hostname(url: str) -> str:
    """Lower-cased hostname without port."""
    return (urlparse(url).hostname or "").lower()


def get_registrable_domain(hostname: str) -> str:
    """
    Registrable domain approximation: the last two labels.

    blog.example.com -> example.com
    """
    labels = [label for label in hostname.lower().split(".") if label]
    return ".".join(labels[-2:]) if len(labels) >= 2 else hostname.lower()


def is_same_site(url: str, allowed_hosts: Iterable[str], include_subdomains: bool) -> bool:
    """Check a URL against allowed hosts, optionally accepting their subdomains."""
    hostname = get_hostname(url)
    allowed = {host.lower() for host in allowed_hosts}

    if hostname in allowed:
        return True

    if include_subdomains:
        registrable = get_registrable_domain(hostname)
        return any(get_registrable_domain(host) == registrable for host in allowed)

    return False


def glob_to_regex(pattern: str) -> "re.Pattern":
    """Convert a crawl glob pattern (* and ?) into a compiled regex."""
    escaped = pattern.replace(".", r"\.").replace("*", ".*").replace("?", ".")
    return re.compile(escaped)


def matches_any(url: str, patterns: List[str]) -> bool:
    """True if any glob pattern matches anywhere in the URL."""
    return any(glob_to_regex(pattern).search(url) for pattern in patterns)


def url_hash(url: str) -> str:
    """MD5 hex digest used as a stable cache key component."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def path_extension(url: str) -> str:
    """File extension of the URL path, without the dot ("" when none)."""
    path = urlparse(url).path
    last_segment = path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        return ""
    return last_segment.rsplit(".", 1)[-1].lower()
