"""
Audit Service

Runs one crawl session end to end as a background task:
1. Mark the session running
2. Crawl the project's site with the session's CrawlConfig
3. Analyze and score every page, aggregate to site level
4. Store the analysis and record trend rollups
5. Refresh the project's cache entries
6. Email the project owner (when configured)

Failures at any step mark the session failed; nothing escapes the task.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from src.analysis.analyzer import PageAnalyzer, SiteAnalyzer
from src.analysis.performance import PageSpeedClient
from src.auth.models import User
from src.cache.analysis_cache import AnalysisCacheService
from src.crawler.crawler import CrawlConfig, CrawlProgress, SiteCrawler
from src.crawler.fetcher import PageFetcher
from src.database import repository
from src.database.models import CrawlStatus, IssueSeverity
from src.database.serializers import analysis_to_dict
from src.database.session import get_db_context
from src.delivery.email import EmailDelivery
from src.trends.service import record_trends
from src.utils.config import get_settings
from src.utils.errors import InvalidStatusTransition, NotFoundError

logger = logging.getLogger(__name__)

TOP_ISSUES_IN_EMAIL = 5


class AuditService:
    """
    Usage:
        background_tasks.add_task(AuditService().run_crawl_session, session.id)

    Args:
        transport: Optional httpx transport shared by fetcher and PageSpeed (tests)
        email: Optional EmailDelivery (defaults to Resend from settings)
        enable_pagespeed: Override settings.pagespeed_active
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        email: Optional[EmailDelivery] = None,
        enable_pagespeed: Optional[bool] = None,
    ):
        self.settings = get_settings()
        self.transport = transport
        self.email = email
        self.enable_pagespeed = (
            self.settings.pagespeed_active if enable_pagespeed is None else enable_pagespeed
        )

    def _progress_callback(self, session_id: str):
        def _update(progress: CrawlProgress):
            with get_db_context() as db:
                repository.update_crawl_progress(
                    db,
                    session_id,
                    pages_crawled=progress.crawled,
                    pages_total=progress.total,
                    error_count=progress.errors,
                )
        return _update

    async def run_crawl_session(self, session_id: str) -> Optional[str]:
        """
        Execute a queued crawl session.

        Returns:
            The stored analysis id, or None when the session failed
        """
        try:
            with get_db_context() as db:
                session = repository.start_crawl_session(db, session_id)
                url = session.url
                project_id = session.project_id
                config_data: Dict[str, Any] = dict(session.crawl_config or {})
                previous_score = repository.get_previous_score(db, project_id)
        except (NotFoundError, InvalidStatusTransition) as e:
            logger.warning(f"Crawl session {session_id} not started: {e}")
            return None

        logger.info(f"Running crawl session {session_id} for {url}")

        try:
            analysis_id, notification = await self._execute(
                session_id, project_id, url, config_data, previous_score
            )
        except Exception as e:
            logger.exception(f"Crawl session {session_id} failed: {e}")
            self._mark_failed(session_id, str(e) or e.__class__.__name__)
            return None

        if notification:
            await self._notify(notification)

        return analysis_id

    async def _execute(
        self,
        session_id: str,
        project_id: str,
        url: str,
        config_data: Dict[str, Any],
        previous_score: Optional[int],
    ):
        config = CrawlConfig.from_dict(config_data)
        pagespeed = (
            PageSpeedClient(api_key=self.settings.PAGESPEED_API_KEY, transport=self.transport)
            if self.enable_pagespeed else None
        )

        try:
            async with PageFetcher(
                user_agent=self.settings.CRAWLER_USER_AGENT,
                timeout=self.settings.CRAWLER_TIMEOUT,
                max_redirects=self.settings.CRAWLER_MAX_REDIRECTS,
                transport=self.transport,
            ) as fetcher:
                crawler = SiteCrawler(config, fetcher, progress_callback=self._progress_callback(session_id))
                crawl_result = await crawler.crawl(url)

            page_analyzer = PageAnalyzer(
                pagespeed=pagespeed,
                strategy=self.settings.PAGESPEED_STRATEGY,
                target_keywords=config_data.get("target_keywords"),
            )
            site_analysis = await SiteAnalyzer(page_analyzer).analyze(crawl_result, previous_score)
        finally:
            if pagespeed is not None:
                await pagespeed.close()

        with get_db_context() as db:
            analysis = repository.store_analysis(db, session_id, site_analysis)
            record_trends(db, project_id, analysis)

            cache = AnalysisCacheService(db)
            cache.invalidate_project(project_id)
            cache.cache_analysis_result(project_id, url, "standard", analysis_to_dict(analysis))

            notification = self._notification(db, analysis)
            analysis_id = analysis.id

        logger.info(
            f"Crawl session {session_id} completed: analysis {analysis_id}, "
            f"score {site_analysis.scores.overall}"
        )
        return analysis_id, notification

    def _notification(self, db, analysis) -> Optional[Dict[str, Any]]:
        if not self.settings.NOTIFY_ON_COMPLETE:
            return None
        project = analysis.project
        owner = db.query(User).filter(User.id == project.user_id).first()
        if owner is None or not owner.email:
            return None

        counts = {s.value: 0 for s in IssueSeverity}
        for issue in analysis.issues:
            counts[issue.severity.value] += 1
        top = [
            issue.title for issue in analysis.issues
            if issue.severity in (IssueSeverity.CRITICAL, IssueSeverity.HIGH)
        ][:TOP_ISSUES_IN_EMAIL]

        return {
            "to_email": owner.email,
            "project_name": project.name,
            "url": project.url,
            "analysis_id": analysis.id,
            "overall_score": analysis.overall_score,
            "score_change": analysis.score_change,
            "issue_counts": counts,
            "top_issues": top,
        }

    async def _notify(self, notification: Dict[str, Any]) -> None:
        email = self.email or EmailDelivery()
        result = await email.send_analysis_complete(**notification)
        if not result.success:
            logger.warning(f"Analysis complete email not sent: {result.error}")

    def _mark_failed(self, session_id: str, message: str) -> None:
        try:
            with get_db_context() as db:
                session = repository.get_crawl_session(db, session_id)
                if session.status != CrawlStatus.COMPLETED:
                    repository.fail_crawl_session(db, session_id, message[:2000])
        except Exception as e:
            logger.error(f"Could not mark crawl session {session_id} failed: {e}")

