"""
SEO Audit Services Layer

Orchestration that ties crawler, analysis, storage, trends, cache
and email delivery together.
"""

from .audit import AuditService

__all__ = ["AuditService"]
