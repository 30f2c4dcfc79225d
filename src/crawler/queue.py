"""
Priority queue of URLs waiting to be crawled.

Higher priority pops first; equal priorities pop in insertion order.
"""

import heapq
import itertools
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

SOURCE_START = "start"
SOURCE_SITEMAP = "sitemap"

SOURCE_BONUS = {
    SOURCE_SITEMAP: 30,
    "navigation": 20,
    "content": 10,
    "footer": -10,
}

# (substrings, adjustment) - first matching group in each row applies
URL_PATTERN_BONUS = [
    (("product", "service"), 10),
    (("blog", "article"), 5),
    (("tag", "category"), -15),
    (("search", "filter"), -20),
]


@dataclass
class QueuedUrl:
    url: str
    depth: int
    priority: int
    source: str = "link"
    parent_url: Optional[str] = None


def calculate_priority(url: str, depth: int, source: str) -> int:
    """Crawl priority 0-100: shallow, navigational and sitemap URLs first."""
    priority = 100 - depth * 10
    priority += SOURCE_BONUS.get(source, 0)

    lowered = url.lower()
    if "index" in lowered or lowered.endswith("/"):
        priority += 20

    for needles, bonus in URL_PATTERN_BONUS:
        if any(needle in lowered for needle in needles):
            priority += bonus

    return max(0, min(100, priority))


class CrawlQueue:
    """Heap-backed crawl frontier that never queues a URL twice."""

    def __init__(self):
        self._heap: List[Tuple[int, int, QueuedUrl]] = []
        self._counter = itertools.count()
        self.seen: Set[str] = set()

    def add(
        self,
        url: str,
        depth: int,
        source: str = "link",
        parent_url: Optional[str] = None,
    ) -> bool:
        """Queue a URL; returns False when it was already seen."""
        if url in self.seen:
            return False
        self.seen.add(url)

        item = QueuedUrl(
            url=url,
            depth=depth,
            priority=calculate_priority(url, depth, source),
            source=source,
            parent_url=parent_url,
        )
        heapq.heappush(self._heap, (-item.priority, next(self._counter), item))
        return True

    def pop(self) -> Optional[QueuedUrl]:
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, url: str) -> bool:
        return url in self.seen
