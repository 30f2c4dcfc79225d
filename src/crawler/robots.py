"""
robots.txt handling for the crawler.

Fetched once per crawl host and parsed with urllib.robotparser.
"""

import logging
from typing import List, Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx

logger = logging.getLogger(__name__)

ROBOTS_FOUND = "found"
ROBOTS_MISSING = "missing"
ROBOTS_ERROR = "error"
ROBOTS_UNKNOWN = "unknown"


class RobotsPolicy:
    """
    Parsed robots.txt for one host.

    Usage:
        policy = await RobotsPolicy.load(fetcher, "https://example.com/")
        if policy.can_fetch(url):
            ...
    """

    def __init__(self, robots_url: str, user_agent: str = "*"):
        self.robots_url = robots_url
        self.user_agent = user_agent
        self.status = ROBOTS_UNKNOWN
        self.parser: Optional[RobotFileParser] = None

    @classmethod
    async def load(cls, fetcher, start_url: str) -> "RobotsPolicy":
        """Fetch and parse robots.txt for the start URL's host."""
        parsed = urlparse(start_url)
        robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"
        policy = cls(robots_url, user_agent=getattr(fetcher, "user_agent", "*"))

        try:
            response = await fetcher.get(robots_url)
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch {robots_url}: {e}")
            policy.status = ROBOTS_ERROR
            return policy

        if response.status_code == 200:
            policy.parse(response.text)
        elif 400 <= response.status_code < 500:
            policy.status = ROBOTS_MISSING
        else:
            policy.status = ROBOTS_ERROR

        logger.debug(f"robots.txt for {parsed.netloc}: {policy.status}")
        return policy

    def parse(self, content: str):
        parser = RobotFileParser()
        parser.set_url(self.robots_url)
        parser.parse(content.splitlines())
        self.parser = parser
        self.status = ROBOTS_FOUND

    @property
    def found(self) -> bool:
        return self.status == ROBOTS_FOUND

    def can_fetch(self, url: str) -> bool:
        # Missing or unreadable robots.txt means everything is allowed
        if self.parser is None:
            return True
        return self.parser.can_fetch(self.user_agent, url)

    def crawl_delay(self) -> Optional[float]:
        """Crawl-delay in seconds for our user agent, if declared."""
        if self.parser is None:
            return None
        delay = self.parser.crawl_delay(self.user_agent)
        return float(delay) if delay is not None else None

    def sitemaps(self) -> List[str]:
        if self.parser is None:
            return []
        return list(self.parser.site_maps() or [])
