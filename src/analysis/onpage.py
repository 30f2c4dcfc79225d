"""
On-Page SEO Analysis

Titles, meta descriptions, headings, images, social tags, links
and the page-level UX affordances (search, CTA, navigation, footer).
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from .page import Link, PageContext, extract_links

logger = logging.getLogger(__name__)


TITLE_MAX_LENGTH = 60
TITLE_MIN_LENGTH = 30
DESCRIPTION_MAX_LENGTH = 160
DESCRIPTION_MIN_LENGTH = 120

MODERN_IMAGE_FORMATS = {"webp", "avif", "svg"}
GENERIC_ANCHORS = {"click here", "here", "read more", "more", "link", "this", "learn more"}
OVERSIZED_IMAGE_PX = 2000

OPEN_GRAPH_FIELDS = ["title", "description", "image", "url", "type"]
TWITTER_FIELDS = ["card", "title", "description", "image"]

SEARCH_SELECTORS = (
    "input[type=search], form[role=search], [role=search], "
    "input[name=q], input[name=s], input[name=search]"
)
CTA_SELECTORS = (
    "button, input[type=submit], a.btn, a.button, a.cta, .cta, "
    "[class*=call-to-action]"
)
INTERACTIVE_SELECTORS = "form, button, video, audio, details, input, select, textarea"
SOCIAL_SHARE_RE = re.compile(
    r"(facebook\.com/sharer|twitter\.com/intent|x\.com/intent|linkedin\.com/share|"
    r"pinterest\.com/pin|wa\.me/|share)",
    re.IGNORECASE,
)


@dataclass
class OnPageResult:
    """On-page signals for one page."""
    url: str

    title: str = ""
    title_length: int = 0
    meta_description: str = ""
    description_length: int = 0
    meta_keywords: str = ""

    headings: Dict[str, List[str]] = field(default_factory=dict)
    heading_sequence: List[int] = field(default_factory=list)
    h1_count: int = 0
    has_no_h1: bool = True
    has_multiple_h1: bool = False
    hierarchy_valid: bool = True
    skipped_levels: bool = False
    keyword_optimized: bool = False

    images: List[Dict[str, Any]] = field(default_factory=list)
    image_count: int = 0
    images_missing_alt: int = 0
    oversized_images: int = 0
    lazy_loading: bool = False
    modern_format_ratio: float = 0.0

    open_graph: Dict[str, str] = field(default_factory=dict)
    has_open_graph: bool = False
    twitter_card: Dict[str, str] = field(default_factory=dict)
    has_twitter_card: bool = False

    canonical: str = ""
    canonical_matches: bool = True

    internal_links: List[Dict[str, Any]] = field(default_factory=list)
    external_links: List[Dict[str, Any]] = field(default_factory=list)
    internal_link_count: int = 0
    external_link_count: int = 0
    nofollow_count: int = 0
    generic_anchor_count: int = 0
    anchor_text_optimized: bool = True

    has_noindex: bool = False
    has_nofollow: bool = False
    favicon: str = ""
    html_lang: str = ""

    has_search: bool = False
    has_cta: bool = False
    has_main_nav: bool = False
    has_footer: bool = False
    interactive_elements: bool = False
    social_sharing: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# HEADINGS
# =============================================================================

def _heading_structure(ctx: PageContext) -> Dict[str, Any]:
    headings: Dict[str, List[str]] = {f"h{level}": [] for level in range(1, 7)}
    sequence: List[int] = []

    for el in ctx.soup.find_all(re.compile(r"^h[1-6]$")):
        level = int(el.name[1])
        headings[el.name].append(el.get_text(" ", strip=True))
        sequence.append(level)

    skipped = any(
        current - previous > 1
        for previous, current in zip(sequence, sequence[1:])
    )
    # A page that opens below h2 has skipped levels too
    if sequence and sequence[0] > 2:
        skipped = True

    return {
        "headings": headings,
        "sequence": sequence,
        "skipped": skipped,
        "valid": not skipped and len(headings["h1"]) <= 1,
    }


def _keyword_optimized(title: str, h1s: List[str]) -> bool:
    if not title or not h1s:
        return False
    first_h1 = h1s[0].lower()
    return any(word in first_h1 for word in title.lower().split() if len(word) > 3)


# =============================================================================
# IMAGES
# =============================================================================

def _image_format(src: str) -> str:
    path = src.split("?", 1)[0].lower()
    if path.startswith("data:image/"):
        return path[len("data:image/"):].split(";", 1)[0]
    return path.rsplit(".", 1)[-1] if "." in path.rsplit("/", 1)[-1] else ""


def _dimension(value) -> int:
    try:
        return int(str(value).strip().rstrip("px"))
    except (TypeError, ValueError):
        return 0


def _images(ctx: PageContext) -> Dict[str, Any]:
    images = []
    for img in ctx.soup.find_all("img"):
        src = img.get("src") or img.get("data-src") or ""
        alt = img.get("alt")
        images.append({
            "src": src,
            "alt": alt.strip() if isinstance(alt, str) else None,
            "loading": (img.get("loading") or "").lower(),
            "format": _image_format(src),
            "width": _dimension(img.get("width")),
            "height": _dimension(img.get("height")),
        })

    total = len(images)
    missing_alt = sum(1 for image in images if not image["alt"])
    modern = sum(1 for image in images if image["format"] in MODERN_IMAGE_FORMATS)
    lazy = sum(1 for image in images if image["loading"] == "lazy")
    oversized = sum(
        1 for image in images
        if image["width"] > OVERSIZED_IMAGE_PX or image["height"] > OVERSIZED_IMAGE_PX
    )

    return {
        "images": images,
        "total": total,
        "missing_alt": missing_alt,
        "oversized": oversized,
        "modern_ratio": round(modern / total, 2) if total else 0.0,
        # The first image is usually above the fold and should load eagerly
        "lazy_loading": total <= 1 or lazy > 0,
    }


# =============================================================================
# LINKS
# =============================================================================

def _link_dict(link: Link) -> Dict[str, Any]:
    return {
        "url": link.url,
        "anchor": link.anchor,
        "nofollow": link.nofollow,
        "source": link.source,
    }


def _links(ctx: PageContext) -> Dict[str, Any]:
    links = extract_links(ctx.soup, ctx.final_url or ctx.url)
    internal = [link for link in links if link.internal]
    external = [link for link in links if not link.internal]

    generic = sum(
        1 for link in links
        if not link.anchor or link.anchor.strip().lower() in GENERIC_ANCHORS
    )

    return {
        "internal": [_link_dict(link) for link in internal],
        "external": [_link_dict(link) for link in external],
        "nofollow": sum(1 for link in links if link.nofollow),
        "generic": generic,
        "anchor_optimized": not links or generic / len(links) <= 0.2,
    }


# =============================================================================
# MAIN ENTRY
# =============================================================================

def analyze_onpage(ctx: PageContext) -> OnPageResult:
    """Run the on-page checks for one page."""
    soup = ctx.soup

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    description = ctx.meta_content(name="description")

    heading_info = _heading_structure(ctx)
    headings = heading_info["headings"]
    image_info = _images(ctx)
    link_info = _links(ctx)

    open_graph = {
        key: ctx.meta_content(prop=f"og:{key}")
        for key in OPEN_GRAPH_FIELDS
        if ctx.meta_content(prop=f"og:{key}")
    }
    twitter = {}
    for key in TWITTER_FIELDS:
        value = ctx.meta_content(name=f"twitter:{key}") or ctx.meta_content(prop=f"twitter:{key}")
        if value:
            twitter[key] = value

    canonical = ctx.link_href("canonical")
    page_url = ctx.final_url or ctx.url
    robots_meta = ctx.meta_content(name="robots").lower()

    html_tag = soup.find("html")
    html_lang = (html_tag.get("lang") or "").strip() if html_tag else ""

    favicon = ctx.link_href("icon") or ctx.link_href("shortcut") or ctx.link_href("apple-touch-icon")

    all_anchor_hrefs = " ".join(a.get("href", "") + " " + " ".join(a.get("class", []))
                                for a in soup.find_all("a"))

    result = OnPageResult(
        url=ctx.url,
        title=title,
        title_length=len(title),
        meta_description=description,
        description_length=len(description),
        meta_keywords=ctx.meta_content(name="keywords"),
        headings=headings,
        heading_sequence=heading_info["sequence"],
        h1_count=len(headings["h1"]),
        has_no_h1=len(headings["h1"]) == 0,
        has_multiple_h1=len(headings["h1"]) > 1,
        hierarchy_valid=heading_info["valid"],
        skipped_levels=heading_info["skipped"],
        keyword_optimized=_keyword_optimized(title, headings["h1"]),
        images=image_info["images"],
        image_count=image_info["total"],
        images_missing_alt=image_info["missing_alt"],
        oversized_images=image_info["oversized"],
        lazy_loading=image_info["lazy_loading"],
        modern_format_ratio=image_info["modern_ratio"],
        open_graph=open_graph,
        has_open_graph=bool(open_graph.get("title") or open_graph.get("description")),
        twitter_card=twitter,
        has_twitter_card="card" in twitter,
        canonical=canonical,
        canonical_matches=not canonical or canonical.rstrip("/") == page_url.rstrip("/"),
        internal_links=link_info["internal"],
        external_links=link_info["external"],
        internal_link_count=len(link_info["internal"]),
        external_link_count=len(link_info["external"]),
        nofollow_count=link_info["nofollow"],
        generic_anchor_count=link_info["generic"],
        anchor_text_optimized=link_info["anchor_optimized"],
        has_noindex="noindex" in robots_meta,
        has_nofollow="nofollow" in robots_meta,
        favicon=favicon,
        html_lang=html_lang,
        has_search=bool(soup.select(SEARCH_SELECTORS)),
        has_cta=bool(soup.select(CTA_SELECTORS)),
        has_main_nav=bool(soup.select("nav, [role=navigation]")),
        has_footer=bool(soup.select("footer, [role=contentinfo]")),
        interactive_elements=bool(soup.select(INTERACTIVE_SELECTORS)),
        social_sharing=bool(SOCIAL_SHARE_RE.search(all_anchor_hrefs)),
    )

    logger.debug(
        f"On-page analysis for {ctx.url}: title={result.title_length} chars, "
        f"h1={result.h1_count}, images={result.image_count}"
    )
    return result
