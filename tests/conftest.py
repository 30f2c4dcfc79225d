"""
Pytest Configuration and Shared Fixtures

Every test runs against a fresh in-memory SQLite database with auth
enabled, PageSpeed disabled and no email API key. HTTP is served by
httpx.MockTransport, so nothing leaves the process.
"""

import re
from typing import Callable, Dict, Optional
from unittest.mock import patch

import httpx
import pytest

from src.auth.config import get_auth_config
from src.cache.analysis_cache import reset_memory_layer
from src.cache.config import get_cache_config
from src.database.session import get_session_factory, init_db, reset_engine
from src.utils.config import get_settings
from tests.helpers import BAD_PAGE_HTML, GOOD_PAGE_HTML, Route, build_transport, site_pages


# ============================================================================
# Environment & Database
# ============================================================================

def _clear_cached_config():
    get_settings.cache_clear()
    get_auth_config.cache_clear()
    get_cache_config.cache_clear()


@pytest.fixture(autouse=True)
def test_environment(monkeypatch):
    """Isolated settings and a new empty database per test."""
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("PAGESPEED_ENABLED", "false")
    monkeypatch.setenv("NOTIFY_ON_COMPLETE", "true")
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    monkeypatch.delenv("PAGESPEED_API_KEY", raising=False)
    monkeypatch.delenv("ADMIN_EMAILS", raising=False)

    _clear_cached_config()
    reset_engine()
    init_db()
    reset_memory_layer()

    yield

    reset_engine()
    reset_memory_layer()
    _clear_cached_config()


@pytest.fixture
def db():
    """A database session on the per-test engine."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# HTML & HTTP Fixtures
# ============================================================================

@pytest.fixture
def good_html() -> str:
    return GOOD_PAGE_HTML


@pytest.fixture
def bad_html() -> str:
    return BAD_PAGE_HTML


@pytest.fixture
def site_routes() -> Dict[str, Route]:
    """Mutable routes for the three page site; add robots.txt or sitemaps per test."""
    return dict(site_pages())


@pytest.fixture
def site_transport(site_routes) -> httpx.MockTransport:
    return build_transport(site_routes)


# ============================================================================
# Email Capture
# ============================================================================

class SentEmails(list):
    """Parameters of every resend.Emails.send call."""

    def tokens(self) -> list:
        found = []
        for params in self:
            match = re.search(r"token=([\w-]+)", params.get("html", "") + params.get("text", ""))
            if match:
                found.append(match.group(1))
        return found

    def last_token(self) -> Optional[str]:
        tokens = self.tokens()
        return tokens[-1] if tokens else None


@pytest.fixture
def sent_emails(monkeypatch) -> SentEmails:
    """Enable email delivery with a fake Resend key and record sends."""
    monkeypatch.setenv("RESEND_API_KEY", "re_test_key")
    get_settings.cache_clear()

    sent = SentEmails()

    def fake_send(params):
        sent.append(params)
        return {"id": f"email_{len(sent)}"}

    with patch("resend.Emails.send", side_effect=fake_send):
        yield sent


# ============================================================================
# Record Factories
# ============================================================================

@pytest.fixture
def make_user(db) -> Callable:
    """Create a user directly in the database."""
    from src.auth.models import User, UserRole
    from src.auth.passwords import hash_password

    counter = {"n": 0}

    def _make(email: Optional[str] = None, password: str = "password123", role=UserRole.USER, **extra):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            full_name=extra.pop("full_name", "Test User"),
            role=role,
            **extra,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(email="owner@example.com")


@pytest.fixture
def project(db, user):
    from src.database import repository

    return repository.create_project(db, user.id, "Example Gardens", "https://example.com")


@pytest.fixture
def run_site_analysis(site_transport) -> Callable:
    """Crawl the mock site and return a SiteAnalysis."""
    from src.analysis.analyzer import SiteAnalyzer
    from src.crawler.crawler import CrawlConfig, SiteCrawler
    from src.crawler.fetcher import PageFetcher

    async def _run(transport: Optional[httpx.MockTransport] = None, previous_score: Optional[int] = None, **config):
        settings = {"crawl_type": "domain", "max_pages": 10, "max_depth": 2, "crawl_delay_ms": 0}
        settings.update(config)
        async with PageFetcher(transport=transport or site_transport) as fetcher:
            crawl = await SiteCrawler(CrawlConfig(**settings), fetcher).crawl("https://example.com/")
        return await SiteAnalyzer().analyze(crawl, previous_score)

    return _run


@pytest.fixture
def stored_analysis(db, project, run_site_analysis):
    """
    Store one analysis for the project and return it.

    Async because the site analysis needs an event loop.
    """
    from src.database import repository

    async def _store(**config):
        site = await run_site_analysis(**config)
        session = repository.create_crawl_session(db, project.id)
        repository.start_crawl_session(db, session.id)
        return repository.store_analysis(db, session.id, site)

    return _store
