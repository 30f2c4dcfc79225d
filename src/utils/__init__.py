"""Utility modules for the SEO audit engine."""

from .config import Settings, get_settings, configure_logging
from .errors import (
    SEOAuditError,
    NotFoundError,
    DuplicateProjectError,
    InvalidStatusTransition,
    ValidationFailed,
    AuthError,
    InsufficientDataError,
    CrawlStartError,
)
from .urls import (
    ensure_scheme,
    normalize_url,
    get_hostname,
    get_registrable_domain,
    is_same_site,
    matches_any,
    url_hash,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    # Errors
    "SEOAuditError",
    "NotFoundError",
    "DuplicateProjectError",
    "InvalidStatusTransition",
    "ValidationFailed",
    "AuthError",
    "InsufficientDataError",
    "CrawlStartError",
    # URLs
    "ensure_scheme",
    "normalize_url",
    "get_hostname",
    "get_registrable_domain",
    "is_same_site",
    "matches_any",
    "url_hash",
]
