"""
SEO Audit Engine

A multi-tenant SEO auditing backend that:
1. Crawls a project's website (single page, subfolder or whole domain)
2. Scores technical, content, on-page and UX quality per page and per site
3. Detects issues and builds prioritized recommendations
4. Tracks score and issue trends over time
5. Exports reports and notifies users by email
"""

__version__ = "0.4.0"
