"""
HTTP Cache Headers

Conditional GET support for analysis and trend endpoints: ETags derived
from record timestamps, Cache-Control from the presets in
src.cache.config, and 304 responses for clients that already hold the
current version.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

from fastapi import Request, Response

from src.cache.config import HTTP_CACHE_PRESETS, get_cache_config

logger = logging.getLogger(__name__)

HTTP_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"


# =============================================================================
# ETAGS
# =============================================================================

def generate_etag(*components: Any, weak: bool = False) -> str:
    """Quoted ETag from the first 16 hex chars of an MD5 over the components."""
    digest = hashlib.md5(":".join(str(c) for c in components).encode()).hexdigest()[:16]
    return f'W/"{digest}"' if weak else f'"{digest}"'


def analysis_etag(analysis) -> str:
    """Changes whenever an issue or recommendation of the analysis is updated."""
    return generate_etag(analysis.id, analysis.updated_at)


def project_etag(project, *parts: Any) -> str:
    """Changes when the project is edited or a new audit lands."""
    return generate_etag(project.id, project.updated_at, project.last_scan_date, *parts)


def parse_etag(etag: str) -> str:
    if not etag:
        return ""
    return etag[2:].strip('"') if etag.startswith("W/") else etag.strip('"')


def etags_match(if_none_match: Optional[str], current: str) -> bool:
    """Weak comparison against an If-None-Match list; "*" matches anything."""
    if not if_none_match:
        return False
    wanted = parse_etag(current)
    candidates = [c.strip() for c in if_none_match.split(",")]
    return any(c == "*" or parse_etag(c) == wanted for c in candidates)


# =============================================================================
# CACHE-CONTROL
# =============================================================================

@dataclass
class CachePolicy:
    """Cache-Control directives for one response."""
    max_age: int = 0
    stale_while_revalidate: int = 0
    public: bool = False
    no_store: bool = False

    @classmethod
    def from_preset(cls, name: str) -> "CachePolicy":
        """
        Policy for a named preset ("stable", "moderate" or "realtime").

        Unknown names fall back to "stable"; disabling HTTP caching turns
        every preset into no-store.
        """
        options = HTTP_CACHE_PRESETS.get(name, HTTP_CACHE_PRESETS["stable"])
        if not get_cache_config().http_cache_enabled or options.get("no_store"):
            return cls(no_store=True)
        return cls(
            max_age=options.get("max_age", 0),
            stale_while_revalidate=options.get("stale_while_revalidate", 0),
            public=options.get("public", False),
        )

    @property
    def cache_control(self) -> str:
        if self.no_store:
            return "no-store"
        directives = ["public" if self.public else "private"]
        if self.max_age > 0:
            directives.append(f"max-age={self.max_age}")
        if self.stale_while_revalidate > 0:
            directives.append(f"stale-while-revalidate={self.stale_while_revalidate}")
        return ", ".join(directives)

    def headers(
        self,
        etag: Optional[str] = None,
        last_modified: Optional[datetime] = None,
    ) -> Dict[str, str]:
        # Payloads are per user
        headers = {"Cache-Control": self.cache_control, "Vary": "Authorization"}
        if etag:
            headers["ETag"] = etag
        if last_modified:
            headers["Last-Modified"] = last_modified.strftime(HTTP_DATE_FORMAT)
        return headers


def add_cache_headers(
    response: Response,
    preset: str = "stable",
    etag: Optional[str] = None,
    last_modified: Optional[datetime] = None,
) -> Response:
    """
    Set Cache-Control, Vary, ETag and Last-Modified on a response.

    ETag and Last-Modified are set even under no-store so conditional
    requests keep working.
    """
    response.headers.update(CachePolicy.from_preset(preset).headers(etag, last_modified))
    return response


# =============================================================================
# CONDITIONAL REQUESTS
# =============================================================================

def _if_modified_since(request: Request) -> Optional[datetime]:
    raw = request.headers.get("If-Modified-Since")
    if not raw:
        return None
    try:
        return parsedate_to_datetime(raw).replace(tzinfo=None)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring malformed If-Modified-Since: {raw}")
        return None


def check_not_modified(
    request: Request,
    etag: str,
    last_modified: Optional[datetime] = None,
) -> Optional[Response]:
    """
    A 304 response when the client's copy is current, otherwise None.

    If-None-Match wins over If-Modified-Since.

    Usage:
        not_modified = check_not_modified(request, etag, analysis.updated_at)
        if not_modified:
            return not_modified
    """
    if etags_match(request.headers.get("If-None-Match"), etag):
        return Response(status_code=304, headers={"ETag": etag})

    if last_modified is None:
        return None

    since = _if_modified_since(request)
    if since is not None and last_modified.replace(microsecond=0) <= since:
        return Response(
            status_code=304,
            headers={"Last-Modified": last_modified.strftime(HTTP_DATE_FORMAT)},
        )
    return None
