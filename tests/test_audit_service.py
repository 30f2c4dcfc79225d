"""
Tests for the background audit run.
"""

import httpx

from src.cache.analysis_cache import AnalysisCacheService
from src.database import repository
from src.database.models import CrawlStatus, ProjectTrend
from src.services.audit import AuditService
from src.utils.config import get_settings

FAST_CRAWL = {"crawl_type": "domain", "max_pages": 5, "max_depth": 2, "crawl_delay_ms": 0}


class TestAuditService:

    async def test_run_stores_analysis_and_notifies(self, db, project, site_transport, sent_emails):
        session = repository.create_crawl_session(db, project.id, crawl_config=FAST_CRAWL)

        analysis_id = await AuditService(transport=site_transport, enable_pagespeed=False).run_crawl_session(session.id)

        db.expire_all()
        session = repository.get_crawl_session(db, session.id)
        assert session.status == CrawlStatus.COMPLETED
        assert session.analysis.id == analysis_id
        assert session.pages_crawled >= 3

        analysis = repository.get_analysis(db, analysis_id)
        assert analysis.previous_score is None
        assert db.query(ProjectTrend).filter(ProjectTrend.project_id == project.id).count() == 1

        cached = AnalysisCacheService(db).get_cached_analysis_result(project.id, session.url, "standard")
        assert cached["id"] == analysis_id

        [email] = sent_emails
        assert email["to"] == ["owner@example.com"]
        assert f"/analyses/{analysis_id}" in email["text"]

    async def test_second_run_records_previous_score(self, db, project, site_transport):
        service = AuditService(transport=site_transport, enable_pagespeed=False)
        first = await service.run_crawl_session(repository.create_crawl_session(db, project.id, FAST_CRAWL).id)
        second = await service.run_crawl_session(repository.create_crawl_session(db, project.id, FAST_CRAWL).id)

        db.expire_all()
        previous = repository.get_analysis(db, first)
        current = repository.get_analysis(db, second)
        assert current.previous_score == previous.overall_score
        assert current.score_change == 0

    async def test_unreachable_site_fails_session(self, db, project):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        session = repository.create_crawl_session(db, project.id)
        result = await AuditService(transport=httpx.MockTransport(refuse), enable_pagespeed=False).run_crawl_session(session.id)

        db.expire_all()
        session = repository.get_crawl_session(db, session.id)
        assert result is None
        assert session.status == CrawlStatus.FAILED
        assert "Could not reach" in session.error_message

    async def test_session_runs_once(self, db, project, site_transport):
        session = repository.create_crawl_session(db, project.id, FAST_CRAWL)
        service = AuditService(transport=site_transport, enable_pagespeed=False)

        assert await service.run_crawl_session(session.id) is not None
        assert await service.run_crawl_session(session.id) is None

    async def test_notification_disabled(self, db, project, site_transport, sent_emails, monkeypatch):
        monkeypatch.setenv("NOTIFY_ON_COMPLETE", "false")
        get_settings.cache_clear()

        session = repository.create_crawl_session(db, project.id, FAST_CRAWL)
        await AuditService(transport=site_transport, enable_pagespeed=False).run_crawl_session(session.id)

        assert sent_emails == []
