"""
Cross-page insights computed after a crawl.

- Duplicate content (SimHash near-duplicates, SHA-256 exact matches)
- Orphan pages
- Broken internal links
- Site structure (depth distribution, inbound link counts)
- Duplicate titles and meta descriptions
"""

import hashlib
import logging
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Comment
from simhash import Simhash

logger = logging.getLogger(__name__)

SIMHASH_BITS = 64
NEAR_DUPLICATE_DISTANCE = 3
MIN_HASHABLE_WORDS = 5

NOISE_TAGS = ["script", "style", "noscript", "iframe", "nav", "header", "footer", "aside"]


# =============================================================================
# CONTENT HASHING
# =============================================================================

def clean_content_for_hashing(html: str) -> str:
    """Visible body text with boilerplate removed and whitespace collapsed."""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(NOISE_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    body = soup.body or soup
    text = body.get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text).strip().lower()


def generate_content_hashes(html: str) -> Tuple[str, Optional[int]]:
    """(sha256 hex, simhash value) of the cleaned page text."""
    cleaned = clean_content_for_hashing(html)
    if not cleaned:
        return "", None

    sha256 = hashlib.sha256(cleaned.encode("utf-8")).hexdigest()
    if len(cleaned.split()) < MIN_HASHABLE_WORDS:
        return sha256, None
    return sha256, Simhash(cleaned).value


def similarity_from_distance(distance: int) -> float:
    return max(0.0, min(1.0, 1.0 - distance / SIMHASH_BITS))


# =============================================================================
# DUPLICATE CONTENT
# =============================================================================

def find_duplicate_content(pages) -> Tuple[List[Dict], Dict[str, float]]:
    """
    Group near-duplicate pages.

    Pages whose SimHash values are within NEAR_DUPLICATE_DISTANCE bits
    (or whose SHA-256 matches) land in the same group. Returns the groups
    and, per URL, the highest similarity to any other page.
    """
    hashed = [p for p in pages if p.content_hash]
    parent = list(range(len(hashed)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    def union(i: int, j: int):
        root_i, root_j = find(i), find(j)
        if root_i != root_j:
            parent[root_j] = root_i

    max_similarity: Dict[str, float] = {p.url: 0.0 for p in hashed}
    pair_similarity: Dict[Tuple[int, int], float] = {}

    for i in range(len(hashed)):
        for j in range(i + 1, len(hashed)):
            a, b = hashed[i], hashed[j]

            if a.content_hash == b.content_hash:
                similarity = 1.0
            elif a.simhash is not None and b.simhash is not None:
                distance = Simhash(a.simhash).distance(Simhash(b.simhash))
                if distance > NEAR_DUPLICATE_DISTANCE:
                    continue
                similarity = similarity_from_distance(distance)
            else:
                continue

            union(i, j)
            pair_similarity[(i, j)] = similarity
            max_similarity[a.url] = max(max_similarity[a.url], similarity)
            max_similarity[b.url] = max(max_similarity[b.url], similarity)

    members: Dict[int, List[int]] = defaultdict(list)
    for index in range(len(hashed)):
        members[find(index)].append(index)

    groups = []
    for indexes in members.values():
        if len(indexes) < 2:
            continue
        similarities = [
            sim for (i, j), sim in pair_similarity.items()
            if i in indexes and j in indexes
        ]
        groups.append({
            "urls": [hashed[i].url for i in indexes],
            "similarity": round(max(similarities), 3) if similarities else 1.0,
            "exact": len({hashed[i].content_hash for i in indexes}) == 1,
        })

    return groups, max_similarity


# =============================================================================
# LINK GRAPH
# =============================================================================

def count_inbound_links(pages) -> Dict[str, int]:
    """Inbound internal links per crawled URL (self links excluded)."""
    crawled = {p.url for p in pages}
    inbound = {url: 0 for url in crawled}
    for page in pages:
        for link in page.links:
            if link.internal and link.url in crawled and link.url != page.url:
                inbound[link.url] += 1
    return inbound


def find_orphan_pages(pages, start_url: str, inbound: Dict[str, int]) -> List[str]:
    return [
        page.url for page in pages
        if page.url != start_url and inbound.get(page.url, 0) == 0
    ]


def find_broken_links(pages) -> List[Dict]:
    """Internal links pointing at crawled pages that failed (status >= 400 or no response)."""
    failed = {
        p.url: p.fetch.status_code for p in pages
        if p.fetch.status_code == 0 or p.fetch.status_code >= 400
    }

    found_on: Dict[str, List[str]] = defaultdict(list)
    for page in pages:
        for link in page.links:
            if link.url in failed and page.url not in found_on[link.url]:
                found_on[link.url].append(page.url)

    return [
        {"url": url, "status_code": status, "found_on": found_on.get(url, [])}
        for url, status in failed.items()
    ]


def broken_outlinks_by_page(pages, broken: List[Dict]) -> Dict[str, int]:
    counts: Dict[str, int] = defaultdict(int)
    for entry in broken:
        for source in entry["found_on"]:
            counts[source] += 1
    return dict(counts)


def site_structure(pages, inbound: Dict[str, int]) -> Dict:
    pages_by_depth: Dict[int, int] = defaultdict(int)
    for page in pages:
        pages_by_depth[page.depth] += 1

    total_links = sum(len(p.links) for p in pages)
    return {
        "total_pages": len(pages),
        "max_depth": max((p.depth for p in pages), default=0),
        "pages_by_depth": dict(sorted(pages_by_depth.items())),
        "inbound_links": inbound,
        "average_links_per_page": round(total_links / len(pages), 1) if pages else 0.0,
    }


# =============================================================================
# DUPLICATE METADATA
# =============================================================================

def _group_by(pages, attr: str) -> Dict[str, List[str]]:
    groups: Dict[str, List[str]] = defaultdict(list)
    for page in pages:
        value = (getattr(page, attr) or "").strip()
        if value:
            groups[value].append(page.url)
    return {value: urls for value, urls in groups.items() if len(urls) > 1}


def compute_insights(pages, start_url: str) -> Dict:
    """All cross-page insights for a finished crawl."""
    html_pages = [p for p in pages if p.fetch.ok]

    duplicate_groups, max_similarity = find_duplicate_content(html_pages)
    inbound = count_inbound_links(pages)
    broken = find_broken_links(pages)

    insights = {
        "duplicate_content": duplicate_groups,
        "max_similarity": max_similarity,
        "orphan_pages": find_orphan_pages(html_pages, start_url, inbound),
        "broken_links": broken,
        "broken_outlinks": broken_outlinks_by_page(pages, broken),
        "structure": site_structure(pages, inbound),
        "duplicate_titles": _group_by(html_pages, "title"),
        "duplicate_descriptions": _group_by(html_pages, "meta_description"),
    }

    logger.info(
        f"Insights for {start_url}: {len(duplicate_groups)} duplicate groups, "
        f"{len(insights['orphan_pages'])} orphans, {len(broken)} broken links"
    )
    return insights
