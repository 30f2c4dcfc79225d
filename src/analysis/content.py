"""
Content Analysis

Evaluates the main body text of a page:

- Depth: word/paragraph/sentence counts, reading time, topic coverage
  and heading organization
- Readability: Flesch-Kincaid, Flesch reading ease, SMOG, ARI,
  Coleman-Liau and Gunning Fog
- Keywords: frequency-derived or target keywords, density, stuffing,
  placement and related terms
- Freshness: published/modified dates and update cadence
- Quality: duplicate flag, uniqueness, expertise signals

Usage:
    from src.analysis.content import analyze_content

    result = analyze_content(ctx)
    print(result.overall_score, result.readability.grade_level)
"""

import logging
import math
import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from .page import PageContext
from .scoring import round_half_up

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

WORDS_PER_MINUTE = 200
THIN_CONTENT_WORDS = 300
STALE_CONTENT_DAYS = 180
KEYWORD_STUFFING_DENSITY = 0.03
DUPLICATE_SIMILARITY = 0.9

NOISE_SELECTORS = "script, style, noscript, nav, header, footer, aside, .navigation, .sidebar"
MAIN_CONTENT_SELECTORS = [
    "main",
    "article",
    ".main-content",
    ".content",
    "#content",
    ".post-content",
    ".entry-content",
]

STOP_WORDS = {
    "the", "and", "for", "with", "that", "this", "from", "are", "was", "but", "not",
    "you", "your", "have", "has", "will", "can", "all", "our", "more", "one", "about",
    "they", "their", "which", "what", "when", "where", "how", "who", "why", "were",
    "had", "his", "her", "its", "out", "use", "any", "may", "each", "she", "him",
    "them", "then", "than", "also", "just", "get", "got", "let", "now", "new", "see",
    "two", "too", "did", "does", "been", "being", "over", "under", "such", "very",
    "much", "many", "most", "some", "other", "into", "only", "own", "off", "per",
    "via", "upon", "yet", "still", "should", "could", "would", "shall", "might",
    "must", "like", "so", "as", "at", "by", "to", "of", "in", "on", "an", "or", "if",
    "is", "it", "be", "do", "up", "no", "yes", "a", "there", "these", "those", "here",
}

PUBLISHED_SELECTORS = [
    "meta[property='article:published_time']",
    "time[datetime]",
    ".published",
    ".date",
]
MODIFIED_SELECTORS = [
    "meta[property='article:modified_time']",
    ".modified",
    ".updated",
]
AUTHOR_SELECTORS = "meta[name=author], [rel=author], .author, [itemprop=author], .byline"

_WORD_CLEAN_RE = re.compile(r"[^\w\s]")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class ReadabilityMetrics:
    flesch_kincaid_grade: float = 0.0
    flesch_reading_ease: float = 0.0
    smog_index: float = 0.0
    automated_readability_index: float = 0.0
    coleman_liau_index: float = 0.0
    gunning_fog_index: float = 0.0
    average_words_per_sentence: float = 0.0
    average_syllables_per_word: float = 0.0
    complex_words: int = 0
    complex_word_ratio: float = 0.0
    overall_score: int = 0
    grade_level: str = ""
    difficulty: str = ""
    suggestions: List[str] = field(default_factory=list)


@dataclass
class ContentDepth:
    word_count: int = 0
    paragraph_count: int = 0
    sentence_count: int = 0
    average_sentence_length: float = 0.0
    reading_time: int = 1
    topic_coverage: float = 0.0
    well_organized: bool = False
    logical_flow: bool = False
    sections: List[str] = field(default_factory=list)
    top_terms: Dict[str, float] = field(default_factory=dict)
    score: int = 0
    recommendations: List[str] = field(default_factory=list)


@dataclass
class KeywordAnalysis:
    primary_keywords: List[str] = field(default_factory=list)
    secondary_keywords: List[str] = field(default_factory=list)
    densities: Dict[str, float] = field(default_factory=dict)
    max_density: float = 0.0
    keyword_stuffing: bool = False
    in_title: bool = False
    in_h1: bool = False
    in_meta: bool = False
    in_first_paragraph: bool = False
    in_last_paragraph: bool = False
    lsi_keywords: List[str] = field(default_factory=list)
    score: int = 0
    recommendations: List[str] = field(default_factory=list)


@dataclass
class FreshnessAnalysis:
    published_date: Optional[str] = None
    modified_date: Optional[str] = None
    days_since_published: Optional[int] = None
    days_since_update: Optional[int] = None
    needs_update: bool = False
    update_frequency: str = "Unknown"
    score: int = 70


@dataclass
class QualityAnalysis:
    duplicate_content: bool = False
    uniqueness: float = 1.0
    expertise: float = 0.5
    thin_content: bool = False
    has_author: bool = False
    external_references: int = 0
    grammar_errors: int = 0
    spelling_errors: int = 0
    score: int = 80


@dataclass
class ContentResult:
    """Complete content analysis for one page."""
    url: str
    depth: ContentDepth
    readability: ReadabilityMetrics
    keywords: KeywordAnalysis
    freshness: FreshnessAnalysis
    quality: QualityAnalysis
    overall_score: int = 0
    recommendations: List[str] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return self.depth.word_count

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# TEXT HELPERS
# =============================================================================

def extract_main_content(soup: BeautifulSoup) -> BeautifulSoup:
    """
    Strip boilerplate and return the element holding the main content.

    Mutates the given tree; pass a fresh parse.
    """
    for el in soup.select(NOISE_SELECTORS):
        el.decompose()

    for selector in MAIN_CONTENT_SELECTORS:
        candidate = soup.select_one(selector)
        if candidate is not None and len(candidate.get_text(" ", strip=True)) > 100:
            return candidate

    return soup.body or soup


def tokenize(text: str) -> List[str]:
    """Lower-case words with punctuation removed."""
    return _WORD_CLEAN_RE.sub(" ", text.lower()).split()


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def count_syllables(word: str) -> int:
    """
    Heuristic English syllable count.

    Words of three letters or fewer count as one syllable; otherwise vowel
    groups are counted, a silent trailing 'e' is dropped and a trailing
    'le' adds one back.
    """
    word = re.sub(r"[^a-z]", "", word.lower())
    if len(word) <= 3:
        return 1

    syllables = len(_VOWEL_GROUP_RE.findall(word))
    if word.endswith("e"):
        syllables -= 1
    if word.endswith("le"):
        syllables += 1

    return max(1, syllables)


def _round1(value: float) -> float:
    return round_half_up(value * 10) / 10


# =============================================================================
# READABILITY
# =============================================================================

def grade_level_label(score: float) -> str:
    if score >= 90:
        return "Elementary (5th-6th grade)"
    if score >= 80:
        return "Middle School (7th-8th grade)"
    if score >= 70:
        return "High School (9th-12th grade)"
    if score >= 60:
        return "College (13th-16th grade)"
    return "Graduate (17th+ grade)"


def difficulty_label(reading_ease: float) -> str:
    if reading_ease >= 90:
        return "Very Easy"
    if reading_ease >= 80:
        return "Easy"
    if reading_ease >= 70:
        return "Fairly Easy"
    if reading_ease >= 60:
        return "Standard"
    if reading_ease >= 50:
        return "Fairly Difficult"
    if reading_ease >= 30:
        return "Difficult"
    return "Very Difficult"


def analyze_readability(text: str) -> ReadabilityMetrics:
    """Compute the six readability formulas and their combined score."""
    words = tokenize(text)
    sentences = split_sentences(text)

    if not words:
        return ReadabilityMetrics(
            grade_level=grade_level_label(0),
            difficulty=difficulty_label(0),
        )

    word_count = len(words)
    sentence_count = max(1, len(sentences))
    syllables = [count_syllables(word) for word in words]
    total_syllables = sum(syllables)
    complex_words = sum(1 for count in syllables if count >= 3)
    characters = sum(len(re.sub(r"[^a-z0-9]", "", word)) for word in words)

    words_per_sentence = word_count / sentence_count
    syllables_per_word = total_syllables / word_count
    chars_per_word = characters / word_count

    fk_grade = 0.39 * words_per_sentence + 11.8 * syllables_per_word - 15.59
    reading_ease = 206.835 - 1.015 * words_per_sentence - 84.6 * syllables_per_word
    smog = 1.043 * math.sqrt(complex_words * (30 / sentence_count)) + 3.1291
    ari = 4.71 * chars_per_word + 0.5 * words_per_sentence - 21.43
    coleman_liau = (
        0.0588 * (chars_per_word * 100)
        - 0.296 * (sentence_count / word_count * 100)
        - 15.8
    )
    fog = 0.4 * (words_per_sentence + 100 * (complex_words / word_count))

    reading_ease_clamped = max(0.0, min(100.0, reading_ease))
    components = [
        max(0.0, 100 - fk_grade * 5),
        reading_ease_clamped,
        max(0.0, 100 - smog * 5),
        max(0.0, 100 - ari * 5),
        max(0.0, 100 - coleman_liau * 5),
        max(0.0, 100 - fog * 5),
    ]
    overall = round_half_up(min(100.0, sum(components) / len(components)))

    complex_ratio = complex_words / word_count
    suggestions = []
    if overall < 60:
        suggestions.append("Use shorter sentences to improve readability")
        suggestions.append("Replace complex words with simpler alternatives")
    if words_per_sentence > 20:
        suggestions.append("Break up long sentences (aim for 15-20 words per sentence)")
    if complex_ratio > 0.15:
        suggestions.append("Reduce the number of words with three or more syllables")

    return ReadabilityMetrics(
        flesch_kincaid_grade=_round1(fk_grade),
        flesch_reading_ease=_round1(reading_ease_clamped),
        smog_index=_round1(smog),
        automated_readability_index=_round1(ari),
        coleman_liau_index=_round1(coleman_liau),
        gunning_fog_index=_round1(fog),
        average_words_per_sentence=_round1(words_per_sentence),
        average_syllables_per_word=round(syllables_per_word, 2),
        complex_words=complex_words,
        complex_word_ratio=round(complex_ratio, 3),
        overall_score=overall,
        grade_level=grade_level_label(overall),
        difficulty=difficulty_label(reading_ease_clamped),
        suggestions=suggestions,
    )


# =============================================================================
# DEPTH
# =============================================================================

def topic_words(words: List[str]) -> List[str]:
    return [word for word in words if len(word) > 3 and word not in STOP_WORDS]


def calculate_topic_coverage(words: List[str]) -> float:
    """Share of distinct subject words among the 20 most frequent, saturating at 10."""
    common = [word for word, _ in Counter(topic_words(words)).most_common(20)]
    return min(1.0, len(set(common)) / 10)


def _heading_levels(main: BeautifulSoup) -> List[int]:
    return [int(el.name[1]) for el in main.find_all(re.compile(r"^h[1-6]$"))]


def depth_score(word_count: int, coverage: float, well_organized: bool, logical_flow: bool) -> int:
    if word_count >= 2000:
        score = 40
    elif word_count >= 1500:
        score = 35
    elif word_count >= 1000:
        score = 30
    elif word_count >= 500:
        score = 20
    else:
        score = 10

    score += coverage * 30
    if well_organized:
        score += 15
    if logical_flow:
        score += 15

    return min(100, round_half_up(score))


def analyze_depth(main: BeautifulSoup, text: str) -> ContentDepth:
    words = tokenize(text)
    sentences = split_sentences(text)

    word_count = len(words)
    paragraphs = [p for p in main.find_all("p") if p.get_text(strip=True)]
    paragraph_count = len(paragraphs)
    if not paragraph_count:
        paragraph_count = len([block for block in re.split(r"\n\s*\n", text) if block.strip()])

    levels = _heading_levels(main)
    organized = bool(levels) and all(b - a <= 1 for a, b in zip(levels, levels[1:]))
    logical_flow = bool(levels) and len(text) > len(levels) * 100

    coverage = calculate_topic_coverage(words)

    term_counts = Counter(topic_words(words)).most_common(5)
    top_terms = {
        term: round(count / word_count * 100, 2)
        for term, count in term_counts
    } if word_count else {}

    recommendations = []
    if word_count < 500:
        recommendations.append("Increase content length to at least 500 words for better SEO value")
    if coverage < 0.5:
        recommendations.append("Expand topic coverage by addressing more related subtopics")
    if not organized:
        recommendations.append("Improve content organization with clear headings and structure")

    return ContentDepth(
        word_count=word_count,
        paragraph_count=paragraph_count,
        sentence_count=len(sentences),
        average_sentence_length=_round1(word_count / len(sentences)) if sentences else 0.0,
        reading_time=max(1, math.ceil(word_count / WORDS_PER_MINUTE)),
        topic_coverage=round(coverage, 2),
        well_organized=organized,
        logical_flow=logical_flow,
        sections=[el.get_text(" ", strip=True) for el in main.find_all(["h2", "h3"])][:20],
        top_terms=top_terms,
        score=depth_score(word_count, coverage, organized, logical_flow),
        recommendations=recommendations,
    )


# =============================================================================
# KEYWORDS
# =============================================================================

def keyword_density(keyword: str, text_lower: str, word_count: int) -> float:
    if not word_count or not keyword:
        return 0.0
    occurrences = len(re.findall(r"\b" + re.escape(keyword.lower()) + r"\b", text_lower))
    return occurrences / word_count


def _related_terms(words: List[str], primary: List[str], window: int = 5) -> List[str]:
    """Terms that frequently appear near the primary keywords."""
    primary_set = set(primary)
    nearby: Counter = Counter()
    for index, word in enumerate(words):
        if word not in primary_set:
            continue
        for neighbour in words[max(0, index - window):index + window + 1]:
            if neighbour not in primary_set and len(neighbour) > 3 and neighbour not in STOP_WORDS:
                nearby[neighbour] += 1
    return [term for term, count in nearby.most_common(5) if count > 1]


def analyze_keywords(
    ctx: PageContext,
    text: str,
    paragraphs: List[str],
    target_keywords: Optional[List[str]] = None,
) -> KeywordAnalysis:
    words = tokenize(text)
    word_count = len(words)
    text_lower = " ".join(words)

    if target_keywords:
        primary = [kw.lower().strip() for kw in target_keywords[:3] if kw.strip()]
        secondary = [kw.lower().strip() for kw in target_keywords[3:8] if kw.strip()]
    else:
        ranked = [word for word, _ in Counter(topic_words(words)).most_common(8)]
        primary, secondary = ranked[:3], ranked[3:8]

    densities = {kw: round(keyword_density(kw, text_lower, word_count), 4) for kw in primary + secondary}
    max_density = max(densities.values()) if densities else 0.0

    title_tag = ctx.soup.find("title")
    title = title_tag.get_text(" ", strip=True).lower() if title_tag else ""
    h1_tag = ctx.soup.find("h1")
    h1 = h1_tag.get_text(" ", strip=True).lower() if h1_tag else ""
    meta = ctx.meta_content(name="description").lower()
    first_para = paragraphs[0].lower() if paragraphs else ""
    last_para = paragraphs[-1].lower() if paragraphs else ""

    lead = primary[0] if primary else ""
    in_title = bool(lead) and lead in title
    in_h1 = bool(lead) and lead in h1
    in_meta = bool(lead) and lead in meta

    stuffing = max_density > KEYWORD_STUFFING_DENSITY

    score = 70
    if stuffing:
        score -= 20
    if not in_title:
        score -= 15
    if not in_h1:
        score -= 10
    if not in_meta:
        score -= 10

    recommendations = []
    if stuffing:
        recommendations.append("Reduce keyword repetition; keep density below 3%")
    if lead and not in_title:
        recommendations.append(f"Include the primary keyword '{lead}' in the page title")
    if lead and not in_h1:
        recommendations.append(f"Use the primary keyword '{lead}' in the main heading")
    if lead and not in_meta:
        recommendations.append(f"Mention '{lead}' in the meta description")

    return KeywordAnalysis(
        primary_keywords=primary,
        secondary_keywords=secondary,
        densities=densities,
        max_density=round(max_density, 4),
        keyword_stuffing=stuffing,
        in_title=in_title,
        in_h1=in_h1,
        in_meta=in_meta,
        in_first_paragraph=bool(lead) and lead in first_para,
        in_last_paragraph=bool(lead) and lead in last_para,
        lsi_keywords=_related_terms(words, primary),
        score=max(0, score),
        recommendations=recommendations,
    )


# =============================================================================
# FRESHNESS
# =============================================================================

def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO-8601 or HTTP dates into naive UTC datetimes."""
    if not value:
        return None
    value = value.strip()

    parsed = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            match = re.search(r"\d{4}-\d{2}-\d{2}", value)
            if match:
                parsed = datetime.fromisoformat(match.group(0))

    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _date_from(ctx: PageContext, selectors: List[str]) -> Optional[datetime]:
    for selector in selectors:
        el = ctx.soup.select_one(selector)
        if el is None:
            continue
        raw = el.get("content") or el.get("datetime") or el.get_text(" ", strip=True)
        parsed = parse_date(raw)
        if parsed:
            return parsed
    return None


def freshness_score(days: Optional[int]) -> int:
    if days is None:
        return 70
    if days <= 30:
        return 100
    if days <= 90:
        return 80
    if days <= 180:
        return 60
    if days <= 365:
        return 40
    return 20


def update_frequency_label(days_since_published: Optional[int]) -> str:
    if days_since_published is None:
        return "Unknown"
    if days_since_published < 30:
        return "Weekly"
    if days_since_published < 90:
        return "Monthly"
    if days_since_published < 365:
        return "Quarterly"
    return "Annually"


def analyze_freshness(ctx: PageContext, now: Optional[datetime] = None) -> FreshnessAnalysis:
    now = now or datetime.utcnow()

    published = _date_from(ctx, PUBLISHED_SELECTORS)
    modified = _date_from(ctx, MODIFIED_SELECTORS) or parse_date(ctx.headers.get("last-modified"))

    days_published = max(0, (now - published).days) if published else None
    days_modified = max(0, (now - modified).days) if modified else None
    relevant_age = days_modified if days_modified is not None else days_published

    return FreshnessAnalysis(
        published_date=published.isoformat() if published else None,
        modified_date=modified.isoformat() if modified else None,
        days_since_published=days_published,
        days_since_update=relevant_age,
        needs_update=relevant_age is not None and relevant_age > STALE_CONTENT_DAYS,
        update_frequency=update_frequency_label(days_published),
        score=freshness_score(relevant_age),
    )


# =============================================================================
# QUALITY
# =============================================================================

def analyze_quality(ctx: PageContext, word_count: int) -> QualityAnalysis:
    has_author = bool(ctx.soup.select(AUTHOR_SELECTORS))
    external_refs = sum(
        1 for a in ctx.soup.find_all("a", href=True)
        if a["href"].startswith(("http://", "https://")) and ctx.hostname not in a["href"]
    )
    has_date = _date_from(ctx, PUBLISHED_SELECTORS + MODIFIED_SELECTORS) is not None

    expertise = 0.5
    if has_author:
        expertise += 0.2
    if external_refs >= 2:
        expertise += 0.15
    if has_date:
        expertise += 0.15

    uniqueness = round(1.0 - ctx.max_similarity, 2)
    duplicate = ctx.max_similarity >= DUPLICATE_SIMILARITY

    score = 80
    if duplicate:
        score -= 30
    if uniqueness < 0.8:
        score -= 15
    if expertise < 0.7:
        score -= 10

    return QualityAnalysis(
        duplicate_content=duplicate,
        uniqueness=uniqueness,
        expertise=round(min(1.0, expertise), 2),
        thin_content=word_count < THIN_CONTENT_WORDS,
        has_author=has_author,
        external_references=external_refs,
        score=max(0, score),
    )


# =============================================================================
# MAIN ENTRY
# =============================================================================

def analyze_content(ctx: PageContext, now: Optional[datetime] = None) -> ContentResult:
    """Run the full content analysis for one page."""
    main = extract_main_content(ctx.fresh_soup())
    text = main.get_text(" ", strip=True)
    paragraphs = [p.get_text(" ", strip=True) for p in main.find_all("p") if p.get_text(strip=True)]

    depth = analyze_depth(main, text)
    readability = analyze_readability(text)
    keywords = analyze_keywords(ctx, text, paragraphs, ctx.target_keywords)
    freshness = analyze_freshness(ctx, now)
    quality = analyze_quality(ctx, depth.word_count)

    overall = (
        depth.score * 0.3
        + quality.score * 0.25
        + readability.overall_score * 0.2
        + keywords.score * 0.15
        + freshness.score * 0.1
    )

    recommendations = list(depth.recommendations)
    recommendations.extend(readability.suggestions)
    recommendations.extend(keywords.recommendations)
    if freshness.needs_update:
        recommendations.append("Refresh this content; it has not been updated in over six months")
    if quality.duplicate_content:
        recommendations.append("Rewrite or consolidate content that duplicates other pages on the site")

    logger.debug(
        f"Content analysis for {ctx.url}: {depth.word_count} words, "
        f"readability={readability.overall_score}, overall={round_half_up(overall)}"
    )

    return ContentResult(
        url=ctx.url,
        depth=depth,
        readability=readability,
        keywords=keywords,
        freshness=freshness,
        quality=quality,
        overall_score=round_half_up(overall),
        recommendations=recommendations,
    )
