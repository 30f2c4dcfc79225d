"""
Domain exceptions.

API handlers translate these into JSON error envelopes with the
matching HTTP status code.
"""


class SEOAuditError(Exception):
    """Base class for all audit engine errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SEOAuditError):
    """Requested record does not exist."""

    status_code = 404


class DuplicateProjectError(SEOAuditError):
    """A project with the same URL already exists for this user."""

    status_code = 409


class InvalidStatusTransition(SEOAuditError):
    """Lifecycle transition not allowed from the current status."""

    status_code = 400


class ValidationFailed(SEOAuditError):
    """Input failed a business rule check."""

    status_code = 400


class AuthError(SEOAuditError):
    """Authentication failed (bad credentials, bad or expired token)."""

    status_code = 401


class InsufficientDataError(SEOAuditError):
    """Not enough history to compute the requested statistic."""

    status_code = 422


class CrawlStartError(SEOAuditError):
    """Crawl could not start (unreachable start URL, invalid config)."""

    status_code = 502


class ConfigurationError(SEOAuditError):
    """Server is missing required configuration."""

    status_code = 500
