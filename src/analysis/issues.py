"""
SEO Issue Detection

Issues are defined once in ISSUE_CATALOG (severity, category, effort,
implementation steps, validation criteria) and raised by detection rules
that read analyzer results. Page rules run per page; site rules run on
crawl insights. The report groups issues by severity, summarizes them and
buckets them for prioritization.

Usage:
    from src.analysis.issues import detect_page_issues, build_issue_report

    issues = detect_page_issues(facts)
    report = build_issue_report(issues)
    print(report.summary["quick_wins_available"])
"""

import logging
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


SEVERITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}

TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 160
THIN_CONTENT_WORDS = 300
POOR_READABILITY_SCORE = 50
SEVERE_PERFORMANCE_SCORE = 30
POOR_PERFORMANCE_SCORE = 50
MOBILE_PERFORMANCE_SCORE = 50

# Headers whose absence is reported (a subset of those the technical module records)
REQUIRED_SECURITY_HEADERS = [
    "content-security-policy",
    "x-content-type-options",
    "x-frame-options",
    "strict-transport-security",
]


# =============================================================================
# ISSUE TYPES
# =============================================================================

@dataclass(frozen=True)
class IssueDefinition:
    """Static description of one kind of issue."""
    id: str
    type: str
    severity: str
    category: str
    title: str
    description: str
    impact: str
    recommendation: str
    fix_complexity: str
    estimated_time: str
    business_impact: str
    implementation_steps: Tuple[str, ...]
    validation_criteria: Tuple[str, ...]
    affected_elements: Tuple[str, ...] = ()
    ranking_impact: Optional[str] = None
    blocking_indexing: bool = False
    security_concern: bool = False
    enhancement_type: Optional[str] = None
    affected_categories: Tuple[str, ...] = ()


@dataclass
class DetectedIssue:
    """An issue found on one or more pages."""
    id: str
    type: str
    severity: str
    category: str
    title: str
    description: str
    impact: str
    recommendation: str
    fix_complexity: str
    estimated_time: str
    business_impact: str
    implementation_steps: List[str] = field(default_factory=list)
    validation_criteria: List[str] = field(default_factory=list)
    affected_elements: List[str] = field(default_factory=list)
    affected_pages: int = 1
    affected_urls: List[str] = field(default_factory=list)
    ranking_impact: Optional[str] = None
    blocking_indexing: bool = False
    security_concern: bool = False
    enhancement_type: Optional[str] = None
    compound_issue: bool = False
    affected_categories: List[str] = field(default_factory=list)

    @property
    def is_quick_win(self) -> bool:
        return self.fix_complexity == "easy" and self.severity in ("critical", "high")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _define(**kwargs) -> IssueDefinition:
    for key in ("implementation_steps", "validation_criteria", "affected_elements", "affected_categories"):
        if key in kwargs:
            kwargs[key] = tuple(kwargs[key])
    return IssueDefinition(**kwargs)


# =============================================================================
# ISSUE CATALOG
# =============================================================================

_DEFINITIONS = [
    # ---- Critical ----------------------------------------------------------
    _define(
        id="noindex-detected", type="indexability", severity="critical", category="technical",
        title="Page blocked from indexing",
        description="The page carries a noindex directive, so search engines will drop it from their index.",
        impact="The page cannot appear in search results and receives no organic traffic.",
        recommendation="Remove the noindex directive from pages that should rank.",
        fix_complexity="easy", estimated_time="5 minutes", business_impact="high",
        blocking_indexing=True,
        affected_elements=["meta robots tag", "X-Robots-Tag header"],
        implementation_steps=[
            "Find the meta robots tag or X-Robots-Tag header that sets noindex",
            "Remove noindex from the directive",
            "Verify the change on a staging copy",
            "Deploy and request re-indexing in Google Search Console",
        ],
        validation_criteria=[
            "Robots directives no longer contain noindex",
            "URL Inspection in Search Console reports the page as indexable",
        ],
    ),
    _define(
        id="missing-title", type="meta-tags", severity="critical", category="onpage",
        title="Missing title tag",
        description="The page has no <title> element.",
        impact="Search engines have to invent a headline for the result, which hurts rankings and click-through.",
        recommendation="Add a unique, descriptive title of 50-60 characters that leads with the main keyword.",
        fix_complexity="easy", estimated_time="10 minutes", business_impact="high",
        affected_elements=["<title>"],
        implementation_steps=[
            "Pick the primary keyword for the page",
            "Write a 50-60 character title that includes it",
            "Add the <title> element to the document head",
        ],
        validation_criteria=[
            "The page source contains exactly one non-empty <title>",
            "The title is between 30 and 60 characters",
        ],
    ),
    _define(
        id="no-ssl", type="security", severity="critical", category="technical",
        title="Site not served over HTTPS",
        description="The page is served over plain HTTP.",
        impact="Browsers flag the site as not secure and HTTPS is a ranking signal.",
        recommendation="Install a TLS certificate and redirect all HTTP traffic to HTTPS.",
        fix_complexity="medium", estimated_time="2-4 hours", business_impact="high",
        security_concern=True,
        affected_elements=["server configuration"],
        implementation_steps=[
            "Obtain a TLS certificate (for example from Let's Encrypt)",
            "Install it on the web server or CDN",
            "Redirect every HTTP URL to its HTTPS equivalent with a 301",
            "Update internal links, canonicals and the sitemap to HTTPS",
        ],
        validation_criteria=[
            "All pages load over HTTPS without certificate warnings",
            "HTTP requests receive a 301 to HTTPS",
            "SSL Labs grades the configuration A or better",
        ],
    ),
    _define(
        id="severe-performance", type="performance", severity="critical", category="technical",
        title="Severe performance problems",
        description="The page scores {score}/100 for performance.",
        impact="Most visitors abandon pages this slow and Core Web Vitals rankings suffer.",
        recommendation="Start with the largest PageSpeed opportunities: render-blocking resources, image weight and server response time.",
        fix_complexity="hard", estimated_time="1-2 weeks", business_impact="high",
        affected_elements=["page resources", "server response"],
        implementation_steps=[
            "Run PageSpeed Insights and list the top opportunities",
            "Compress and resize images, serve modern formats",
            "Defer non-critical JavaScript and inline critical CSS",
            "Enable caching and a CDN",
        ],
        validation_criteria=[
            "PageSpeed performance score above 50",
            "LCP under 4 seconds on mobile",
        ],
    ),
    # ---- High --------------------------------------------------------------
    _define(
        id="title-too-long", type="meta-tags", severity="high", category="onpage",
        title="Title tag too long",
        description="The title is {length} characters; results truncate after about 60.",
        impact="Truncated titles lose keywords and read poorly in search results.",
        recommendation="Shorten the title to 60 characters or less, keeping the main keyword near the start.",
        fix_complexity="easy", estimated_time="15 minutes", business_impact="medium",
        ranking_impact="moderate",
        affected_elements=["<title>"],
        implementation_steps=[
            "Rewrite the title to 50-60 characters",
            "Move the primary keyword to the front",
        ],
        validation_criteria=["Title length is 60 characters or less"],
    ),
    _define(
        id="missing-meta-description", type="meta-tags", severity="high", category="onpage",
        title="Missing meta description",
        description="The page has no meta description.",
        impact="Search engines pick an arbitrary snippet, which usually lowers click-through.",
        recommendation="Write a compelling 120-160 character description that includes the main keyword.",
        fix_complexity="easy", estimated_time="10 minutes", business_impact="medium",
        ranking_impact="moderate",
        affected_elements=['<meta name="description">'],
        implementation_steps=[
            "Summarize the page value in 120-160 characters",
            "Include the primary keyword and a call to action",
            'Add <meta name="description" content="..."> to the head',
        ],
        validation_criteria=["A single meta description of 120-160 characters is present"],
    ),
    _define(
        id="poor-page-speed", type="performance", severity="high", category="technical",
        title="Poor page speed",
        description="The page scores {score}/100 for performance.",
        impact="Slow pages rank lower and convert fewer visitors.",
        recommendation="Optimize images, reduce JavaScript and improve server response time.",
        fix_complexity="medium", estimated_time="3-5 days", business_impact="high",
        ranking_impact="major",
        affected_elements=["page resources"],
        implementation_steps=[
            "Audit the page with PageSpeed Insights",
            "Fix the three largest opportunities",
            "Re-test on mobile and desktop",
        ],
        validation_criteria=["PageSpeed performance score of 50 or more"],
    ),
    _define(
        id="missing-h1", type="headings", severity="high", category="onpage",
        title="Missing H1 heading",
        description="The page has no <h1> element.",
        impact="The main topic of the page is unclear to search engines and screen readers.",
        recommendation="Add one H1 that states the page topic and includes the main keyword.",
        fix_complexity="easy", estimated_time="10 minutes", business_impact="medium",
        ranking_impact="moderate",
        affected_elements=["<h1>"],
        implementation_steps=[
            "Decide the page's main topic",
            "Add a single <h1> at the top of the main content",
        ],
        validation_criteria=["Exactly one non-empty <h1> is present"],
    ),
    _define(
        id="duplicate-content", type="content", severity="high", category="content",
        title="Duplicate content across pages",
        description="{count} groups of pages share near-identical content.",
        impact="Search engines split ranking signals between duplicates or filter them out.",
        recommendation="Consolidate duplicates, or point them at one canonical URL.",
        fix_complexity="medium", estimated_time="2-4 hours", business_impact="high",
        ranking_impact="major",
        affected_elements=["page body"],
        implementation_steps=[
            "Review each duplicate group and choose the preferred URL",
            "Merge or rewrite the other pages, or add rel=canonical to the preferred URL",
            "301-redirect pages that no longer need to exist",
        ],
        validation_criteria=["No duplicate groups remain in the next crawl"],
    ),
    _define(
        id="broken-links", type="links", severity="high", category="technical",
        title="Broken internal links",
        description="{count} internal URLs return errors.",
        impact="Broken links waste crawl budget, leak link equity and frustrate visitors.",
        recommendation="Fix or remove links pointing to failing URLs, or redirect those URLs.",
        fix_complexity="easy", estimated_time="1-2 hours", business_impact="medium",
        ranking_impact="moderate",
        affected_elements=["<a href>"],
        implementation_steps=[
            "Export the broken URLs and the pages linking to them",
            "Update each link to a working URL or remove it",
            "Add 301 redirects for moved content",
        ],
        validation_criteria=["No internal link returns a 4xx or 5xx status"],
    ),
    # ---- Medium ------------------------------------------------------------
    _define(
        id="multiple-h1", type="headings", severity="medium", category="onpage",
        title="Multiple H1 headings",
        description="The page has {count} <h1> elements.",
        impact="Competing main headings dilute the page topic.",
        recommendation="Keep one H1 and demote the others to H2.",
        fix_complexity="easy", estimated_time="20 minutes", business_impact="low",
        affected_elements=["<h1>"],
        implementation_steps=["Keep the H1 that best describes the page", "Change the others to <h2>"],
        validation_criteria=["Exactly one <h1> is present"],
    ),
    _define(
        id="images-missing-alt", type="accessibility", severity="medium", category="onpage",
        title="Images missing alt text",
        description="{count} images have no alt attribute.",
        impact="Screen reader users miss the images and image search cannot understand them.",
        recommendation="Describe each meaningful image in its alt attribute; use alt=\"\" for decorative ones.",
        fix_complexity="easy", estimated_time="30 minutes", business_impact="medium",
        affected_elements=["<img>"],
        implementation_steps=[
            "List images without alt text",
            "Write a short, specific description for each",
            "Mark decorative images with an empty alt attribute",
        ],
        validation_criteria=["Every <img> has an alt attribute"],
    ),
    _define(
        id="meta-description-too-long", type="meta-tags", severity="medium", category="onpage",
        title="Meta description too long",
        description="The meta description is {length} characters; snippets truncate after about 160.",
        impact="The end of the description, often the call to action, is cut off.",
        recommendation="Trim the description to 160 characters or less.",
        fix_complexity="easy", estimated_time="15 minutes", business_impact="low",
        affected_elements=['<meta name="description">'],
        implementation_steps=["Rewrite the description to 120-160 characters"],
        validation_criteria=["Meta description is 160 characters or less"],
    ),
    _define(
        id="thin-content", type="content", severity="medium", category="content",
        title="Thin content",
        description="The main content has only {count} words.",
        impact="Short pages rarely satisfy search intent and struggle to rank.",
        recommendation="Expand the page to at least 300 words of useful, original content.",
        fix_complexity="medium", estimated_time="4-8 hours", business_impact="medium",
        affected_elements=["main content"],
        implementation_steps=[
            "Research the questions searchers ask about the topic",
            "Add sections answering them with examples and data",
            "Link to related pages on the site",
        ],
        validation_criteria=["Main content has at least 300 words"],
    ),
    _define(
        id="missing-canonical", type="crawlability", severity="medium", category="technical",
        title="Missing canonical tag",
        description="The page does not declare a canonical URL.",
        impact="Parameter and protocol variants of the URL may be indexed as duplicates.",
        recommendation='Add <link rel="canonical"> pointing at the preferred URL.',
        fix_complexity="easy", estimated_time="15 minutes", business_impact="medium",
        affected_elements=['<link rel="canonical">'],
        implementation_steps=["Add a self-referencing canonical link to the head"],
        validation_criteria=["A single canonical link with an absolute URL is present"],
    ),
    _define(
        id="poor-readability", type="readability", severity="medium", category="content",
        title="Poor readability",
        description="The content scores {score}/100 for readability.",
        impact="Hard-to-read content increases bounce rate and reduces engagement.",
        recommendation="Shorten sentences, prefer simple words and break text into short paragraphs.",
        fix_complexity="easy", estimated_time="2-3 hours", business_impact="medium",
        affected_elements=["main content"],
        implementation_steps=[
            "Split sentences longer than 20 words",
            "Replace jargon with plain language",
            "Use lists and subheadings to break up long passages",
        ],
        validation_criteria=["Readability score of 60 or more"],
    ),
    _define(
        id="invalid-structured-data", type="structured-data", severity="medium", category="onpage",
        title="Invalid structured data",
        description="{count} JSON-LD blocks could not be parsed.",
        impact="Broken markup makes the page ineligible for rich results.",
        recommendation="Fix the JSON syntax and validate with the Rich Results Test.",
        fix_complexity="easy", estimated_time="30 minutes", business_impact="medium",
        affected_elements=['<script type="application/ld+json">'],
        implementation_steps=[
            "Copy each JSON-LD block into a JSON validator",
            "Fix syntax errors such as trailing commas",
            "Validate with Google's Rich Results Test",
        ],
        validation_criteria=["All JSON-LD blocks parse and validate"],
    ),
    _define(
        id="missing-security-headers", type="security", severity="medium", category="technical",
        title="Missing security headers",
        description="The response lacks {count} recommended security headers.",
        impact="The site is more exposed to clickjacking, MIME sniffing and injection attacks.",
        recommendation="Send Content-Security-Policy, X-Content-Type-Options, X-Frame-Options and Strict-Transport-Security.",
        fix_complexity="easy", estimated_time="1 hour", business_impact="medium",
        security_concern=True,
        affected_elements=["HTTP response headers"],
        implementation_steps=[
            "Add the missing headers in the web server or CDN configuration",
            "Start CSP in report-only mode and tighten it",
        ],
        validation_criteria=["securityheaders.com reports all four headers"],
    ),
    _define(
        id="duplicate-title", type="meta-tags", severity="medium", category="onpage",
        title="Duplicate title tags",
        description="{count} titles are shared by more than one page.",
        impact="Pages with the same title compete with each other in search results.",
        recommendation="Give every page a unique title.",
        fix_complexity="easy", estimated_time="30 minutes", business_impact="medium",
        affected_elements=["<title>"],
        implementation_steps=["List pages sharing a title", "Rewrite each title around the page's own topic"],
        validation_criteria=["No two crawled pages share a title"],
    ),
    _define(
        id="orphan-pages", type="crawlability", severity="medium", category="technical",
        title="Orphan pages",
        description="{count} pages have no internal links pointing to them.",
        impact="Search engines find orphan pages slowly and treat them as unimportant.",
        recommendation="Link to each orphan page from relevant pages or navigation.",
        fix_complexity="easy", estimated_time="1 hour", business_impact="medium",
        affected_elements=["internal links"],
        implementation_steps=["Identify relevant parent pages", "Add contextual links to each orphan page"],
        validation_criteria=["Every crawled page has at least one inbound internal link"],
    ),
    _define(
        id="missing-robots-txt", type="crawlability", severity="medium", category="technical",
        title="Missing robots.txt",
        description="No robots.txt file was found at the site root.",
        impact="Crawlers get no guidance on what to skip or where the sitemap lives.",
        recommendation="Publish a robots.txt that lists the sitemap and blocks private areas.",
        fix_complexity="easy", estimated_time="30 minutes", business_impact="medium",
        affected_elements=["/robots.txt"],
        implementation_steps=[
            "Create robots.txt at the site root",
            "Disallow admin and private paths",
            "Add a Sitemap: line with the sitemap URL",
        ],
        validation_criteria=["/robots.txt returns 200 and passes the robots.txt tester"],
    ),
    _define(
        id="missing-sitemap", type="crawlability", severity="medium", category="technical",
        title="Missing XML sitemap",
        description="No XML sitemap was found via robots.txt or the standard locations.",
        impact="New and deep pages are discovered more slowly.",
        recommendation="Generate an XML sitemap, reference it in robots.txt and submit it to Search Console.",
        fix_complexity="easy", estimated_time="1 hour", business_impact="medium",
        affected_elements=["/sitemap.xml"],
        implementation_steps=[
            "Generate sitemap.xml listing all indexable URLs",
            "Reference it from robots.txt",
            "Submit it in Google Search Console",
        ],
        validation_criteria=["/sitemap.xml returns valid XML listing indexable URLs"],
    ),
    # ---- Low ---------------------------------------------------------------
    _define(
        id="missing-favicon", type="branding", severity="low", category="ux",
        title="Missing favicon",
        description="The page does not declare a favicon.",
        impact="Tabs, bookmarks and mobile results show a generic icon.",
        recommendation="Add a favicon link in the head.",
        fix_complexity="easy", estimated_time="30 minutes", business_impact="low",
        enhancement_type="usability",
        affected_elements=['<link rel="icon">'],
        implementation_steps=["Create a square icon", 'Add <link rel="icon" href="/favicon.ico">'],
        validation_criteria=["The favicon appears in the browser tab"],
    ),
    _define(
        id="missing-open-graph", type="social-media", severity="low", category="onpage",
        title="Missing Open Graph tags",
        description="The page has no Open Graph title or description.",
        impact="Shared links render without a proper title, description or image.",
        recommendation="Add og:title, og:description, og:image and og:url.",
        fix_complexity="easy", estimated_time="45 minutes", business_impact="low",
        enhancement_type="usability",
        affected_elements=['<meta property="og:*">'],
        implementation_steps=["Add the four core Open Graph tags", "Check the preview with a sharing debugger"],
        validation_criteria=["Sharing debuggers show the intended title, description and image"],
    ),
    _define(
        id="missing-structured-data", type="structured-data", severity="low", category="onpage",
        title="No structured data",
        description="The page has no JSON-LD or microdata markup.",
        impact="The page cannot earn rich results such as breadcrumbs, FAQs or product details.",
        recommendation="Add schema.org JSON-LD that matches the page type.",
        fix_complexity="medium", estimated_time="1-2 hours", business_impact="low",
        enhancement_type="usability",
        affected_elements=['<script type="application/ld+json">'],
        implementation_steps=[
            "Choose the schema.org type for the page",
            "Add a JSON-LD block with the required properties",
            "Validate with the Rich Results Test",
        ],
        validation_criteria=["The Rich Results Test detects valid items"],
    ),
    _define(
        id="missing-lang", type="accessibility", severity="low", category="ux",
        title="Missing language declaration",
        description="The <html> element has no lang attribute.",
        impact="Screen readers and search engines have to guess the page language.",
        recommendation='Declare the language, for example <html lang="en">.',
        fix_complexity="easy", estimated_time="5 minutes", business_impact="low",
        enhancement_type="accessibility",
        affected_elements=["<html lang>"],
        implementation_steps=["Add a lang attribute to the <html> element"],
        validation_criteria=["The <html> element declares a valid language code"],
    ),
    # ---- Cross-category ------------------------------------------------------
    _define(
        id="poor-mobile-experience", type="mobile", severity="high", category="ux",
        title="Poor mobile experience",
        description="The page is not responsive and performs poorly on mobile devices.",
        impact="Mobile-first indexing ranks the mobile version; most visitors are on phones.",
        recommendation="Adopt a responsive layout with a device-width viewport and optimize mobile performance.",
        fix_complexity="hard", estimated_time="1-2 weeks", business_impact="high",
        ranking_impact="major",
        affected_categories=["technical", "ux", "onpage"],
        affected_elements=['<meta name="viewport">', "layout CSS"],
        implementation_steps=[
            'Add <meta name="viewport" content="width=device-width, initial-scale=1">',
            "Rebuild fixed-width layouts with fluid grids and media queries",
            "Optimize images and scripts for mobile connections",
        ],
        validation_criteria=[
            "Layout adapts to a 360px wide screen without horizontal scrolling",
            "Mobile PageSpeed score of 50 or more",
        ],
    ),
]

ISSUE_CATALOG: Dict[str, IssueDefinition] = {definition.id: definition for definition in _DEFINITIONS}


def make_issue(
    issue_id: str,
    url: Optional[str] = None,
    elements: Optional[List[str]] = None,
    affected_urls: Optional[List[str]] = None,
    **params: Any,
) -> DetectedIssue:
    """Instantiate a catalog issue, formatting its description with params."""
    definition = ISSUE_CATALOG[issue_id]
    urls = list(affected_urls or ([url] if url else []))

    return DetectedIssue(
        id=definition.id,
        type=definition.type,
        severity=definition.severity,
        category=definition.category,
        title=definition.title,
        description=definition.description.format(**params) if params else definition.description,
        impact=definition.impact,
        recommendation=definition.recommendation,
        fix_complexity=definition.fix_complexity,
        estimated_time=definition.estimated_time,
        business_impact=definition.business_impact,
        implementation_steps=list(definition.implementation_steps),
        validation_criteria=list(definition.validation_criteria),
        affected_elements=list(elements or definition.affected_elements),
        affected_pages=max(1, len(urls)) if urls else 1,
        affected_urls=urls,
        ranking_impact=definition.ranking_impact,
        blocking_indexing=definition.blocking_indexing,
        security_concern=definition.security_concern,
        enhancement_type=definition.enhancement_type,
        compound_issue=bool(definition.affected_categories),
        affected_categories=list(definition.affected_categories),
    )


# =============================================================================
# PAGE RULES
# =============================================================================

@dataclass
class PageFacts:
    """Analyzer results for one page, as read by the detection rules."""
    url: str
    technical: Any
    onpage: Any
    content: Any
    structured: Any
    performance: Any = None

    @property
    def performance_score(self) -> Optional[int]:
        return getattr(self.performance, "performance_score", None)

    @property
    def mobile_score(self) -> Optional[int]:
        return getattr(self.performance, "mobile_score", None)


Rule = Tuple[str, Callable[[PageFacts], bool], Callable[[PageFacts], Dict[str, Any]]]


def _no_params(facts: PageFacts) -> Dict[str, Any]:
    return {}


def _poor_mobile(facts: PageFacts) -> bool:
    if facts.technical.responsive_design:
        return False
    mobile = facts.mobile_score
    return not facts.technical.has_viewport or (mobile is not None and mobile < MOBILE_PERFORMANCE_SCORE)


PAGE_RULES: List[Rule] = [
    ("noindex-detected",
     lambda f: not f.technical.is_indexable,
     _no_params),
    ("missing-title",
     lambda f: not f.onpage.title,
     _no_params),
    ("no-ssl",
     lambda f: not f.technical.has_https,
     _no_params),
    ("severe-performance",
     lambda f: f.performance_score is not None and f.performance_score < SEVERE_PERFORMANCE_SCORE,
     lambda f: {"score": f.performance_score}),
    ("title-too-long",
     lambda f: f.onpage.title_length > TITLE_MAX_LENGTH,
     lambda f: {"length": f.onpage.title_length}),
    ("missing-meta-description",
     lambda f: not f.onpage.meta_description,
     _no_params),
    ("poor-page-speed",
     lambda f: f.performance_score is not None and f.performance_score < POOR_PERFORMANCE_SCORE,
     lambda f: {"score": f.performance_score}),
    ("missing-h1",
     lambda f: f.onpage.has_no_h1,
     _no_params),
    ("multiple-h1",
     lambda f: f.onpage.has_multiple_h1,
     lambda f: {"count": f.onpage.h1_count}),
    ("images-missing-alt",
     lambda f: f.onpage.images_missing_alt > 0,
     lambda f: {"count": f.onpage.images_missing_alt}),
    ("meta-description-too-long",
     lambda f: f.onpage.description_length > DESCRIPTION_MAX_LENGTH,
     lambda f: {"length": f.onpage.description_length}),
    ("thin-content",
     lambda f: f.content.depth.word_count < THIN_CONTENT_WORDS,
     lambda f: {"count": f.content.depth.word_count}),
    ("missing-canonical",
     lambda f: not f.technical.canonical,
     _no_params),
    ("poor-readability",
     lambda f: f.content.depth.word_count > 0 and f.content.readability.overall_score < POOR_READABILITY_SCORE,
     lambda f: {"score": f.content.readability.overall_score}),
    ("invalid-structured-data",
     lambda f: bool(f.structured.errors),
     lambda f: {"count": len(f.structured.errors)}),
    ("missing-security-headers",
     lambda f: any(h in f.technical.missing_security_headers for h in REQUIRED_SECURITY_HEADERS),
     lambda f: {"count": len([h for h in REQUIRED_SECURITY_HEADERS if h in f.technical.missing_security_headers])}),
    ("missing-favicon",
     lambda f: not f.onpage.favicon,
     _no_params),
    ("missing-open-graph",
     lambda f: not f.onpage.has_open_graph,
     _no_params),
    ("missing-structured-data",
     lambda f: not f.structured.has_structured_data and not f.structured.errors,
     _no_params),
    ("missing-lang",
     lambda f: not f.onpage.html_lang,
     _no_params),
    ("poor-mobile-experience",
     _poor_mobile,
     _no_params),
]


def _page_elements(issue_id: str, facts: PageFacts) -> Optional[List[str]]:
    """Concrete offending elements where the page exposes them."""
    if issue_id == "images-missing-alt":
        return [image["src"] for image in facts.onpage.images if not image["alt"]][:20]
    if issue_id == "missing-security-headers":
        return [h for h in REQUIRED_SECURITY_HEADERS if h in facts.technical.missing_security_headers]
    if issue_id == "invalid-structured-data":
        return list(facts.structured.errors)
    if issue_id == "multiple-h1":
        return facts.onpage.headings.get("h1", [])[:10]
    return None


def detect_page_issues(facts: PageFacts) -> List[DetectedIssue]:
    """Evaluate every page rule against one page's analyzer results."""
    issues = []
    for issue_id, condition, params in PAGE_RULES:
        try:
            triggered = condition(facts)
        except (AttributeError, TypeError, KeyError) as e:
            logger.warning(f"Issue rule {issue_id} failed on {facts.url}: {e}")
            continue
        if triggered:
            issues.append(make_issue(
                issue_id,
                url=facts.url,
                elements=_page_elements(issue_id, facts),
                **params(facts),
            ))
    return issues


# =============================================================================
# SITE RULES
# =============================================================================

def detect_site_issues(
    insights: Dict[str, Any],
    robots_txt_status: str = "unknown",
    sitemap_found: bool = True,
) -> List[DetectedIssue]:
    """Issues only visible across a whole crawl."""
    issues = []

    duplicate_groups = insights.get("duplicate_content") or []
    if duplicate_groups:
        urls = sorted({url for group in duplicate_groups for url in group["urls"]})
        issues.append(make_issue(
            "duplicate-content",
            affected_urls=urls,
            count=len(duplicate_groups),
        ))

    duplicate_titles = insights.get("duplicate_titles") or {}
    if duplicate_titles:
        urls = sorted({url for group in duplicate_titles.values() for url in group})
        issues.append(make_issue(
            "duplicate-title",
            elements=list(duplicate_titles.keys())[:20],
            affected_urls=urls,
            count=len(duplicate_titles),
        ))

    broken = insights.get("broken_links") or []
    if broken:
        issues.append(make_issue(
            "broken-links",
            elements=[item["url"] for item in broken][:50],
            affected_urls=sorted({page for item in broken for page in item.get("found_on", [])}),
            count=len(broken),
        ))

    orphans = insights.get("orphan_pages") or []
    if orphans:
        issues.append(make_issue(
            "orphan-pages",
            affected_urls=list(orphans),
            count=len(orphans),
        ))

    if robots_txt_status == "missing":
        issues.append(make_issue("missing-robots-txt"))

    if not sitemap_found:
        issues.append(make_issue("missing-sitemap"))

    return issues


def merge_issues(page_issues: List[List[DetectedIssue]]) -> List[DetectedIssue]:
    """
    Merge per-page issues by type.

    The first occurrence keeps its description; affected pages, URLs and
    elements accumulate across pages.
    """
    merged: Dict[str, DetectedIssue] = {}

    for issues in page_issues:
        for issue in issues:
            existing = merged.get(issue.id)
            if existing is None:
                merged[issue.id] = replace(
                    issue,
                    affected_urls=list(issue.affected_urls),
                    affected_elements=list(issue.affected_elements),
                )
                continue

            for url in issue.affected_urls:
                if url not in existing.affected_urls:
                    existing.affected_urls.append(url)
            for element in issue.affected_elements:
                if element not in existing.affected_elements:
                    existing.affected_elements.append(element)
            existing.affected_pages = max(len(existing.affected_urls), existing.affected_pages + 1)

    for issue in merged.values():
        if issue.affected_pages > 1:
            issue.description = f"{issue.description} Found on {issue.affected_pages} pages."

    return list(merged.values())


# =============================================================================
# REPORT
# =============================================================================

_TIME_UNITS_IN_HOURS = {
    "minute": 1 / 60,
    "hour": 1.0,
    "day": 8.0,
    "week": 40.0,
    "month": 160.0,
}
_TIME_RE = re.compile(r"(\d+(?:\.\d+)?)(?:\s*-\s*(\d+(?:\.\d+)?))?\s*(minute|hour|day|week|month)s?")


def estimate_to_hours(estimate: str) -> Optional[float]:
    """
    Working hours for an estimate such as '30 minutes', '2-4 hours',
    '1-2 weeks' or '30 minutes - 1 hour'. Ranges use their midpoint;
    compound ranges use the midpoint of both ends. None when unparseable.
    """
    if not estimate:
        return None

    matches = _TIME_RE.findall(estimate.lower())
    if not matches:
        return None

    values = []
    for low, high, unit in matches:
        factor = _TIME_UNITS_IN_HOURS[unit]
        if high:
            values.append((float(low) + float(high)) / 2 * factor)
        else:
            values.append(float(low) * factor)

    return sum(values) / len(values)


def format_hours(hours: float) -> str:
    if hours < 8:
        return f"{round(hours, 1):g} hours"
    if hours < 40:
        return f"{round(hours / 8, 1):g} days"
    return f"{round(hours / 40, 1):g} weeks"


@dataclass
class IssueReport:
    """Issues grouped by severity, with summary and prioritization."""
    critical: List[DetectedIssue] = field(default_factory=list)
    high: List[DetectedIssue] = field(default_factory=list)
    medium: List[DetectedIssue] = field(default_factory=list)
    low: List[DetectedIssue] = field(default_factory=list)
    cross_category: List[DetectedIssue] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
    prioritization: Dict[str, Any] = field(default_factory=dict)

    @property
    def all_issues(self) -> List[DetectedIssue]:
        return self.critical + self.high + self.medium + self.low + self.cross_category

    def count(self, severity: str) -> int:
        return sum(1 for issue in self.all_issues if issue.severity == severity)

    def to_dict(self) -> Dict[str, Any]:
        def ids(issues: List[DetectedIssue]) -> List[str]:
            return [issue.id for issue in issues]

        return {
            "critical": [issue.to_dict() for issue in self.critical],
            "high": [issue.to_dict() for issue in self.high],
            "medium": [issue.to_dict() for issue in self.medium],
            "low": [issue.to_dict() for issue in self.low],
            "cross_category": [issue.to_dict() for issue in self.cross_category],
            "summary": self.summary,
            "prioritization": {
                key: ids(value) if isinstance(value, list) else {k: ids(v) for k, v in value.items()}
                for key, value in self.prioritization.items()
            },
        }


def summarize_issues(issues: List[DetectedIssue]) -> Dict[str, Any]:
    hours = [h for h in (estimate_to_hours(issue.estimated_time) for issue in issues) if h is not None]

    return {
        "total_issues": len(issues),
        "critical_count": sum(1 for i in issues if i.severity == "critical"),
        "high_count": sum(1 for i in issues if i.severity == "high"),
        "medium_count": sum(1 for i in issues if i.severity == "medium"),
        "low_count": sum(1 for i in issues if i.severity == "low"),
        "avg_fix_time": format_hours(sum(hours) / len(hours)) if hours else "Unknown",
        "quick_wins_available": sum(1 for i in issues if i.is_quick_win),
    }


def prioritize_issues(issues: List[DetectedIssue]) -> Dict[str, Any]:
    immediate = [
        i for i in issues
        if i.severity == "critical" or (i.severity == "high" and i.fix_complexity == "easy")
    ]
    short_term = [
        i for i in issues
        if (i.severity == "high" and i.fix_complexity != "easy")
        or (i.severity == "medium" and i.business_impact == "high")
    ]
    long_term = [
        i for i in issues
        if (i.severity == "medium" and i.business_impact != "high") or i.severity == "low"
    ]

    return {
        "immediate": immediate,
        "short_term": short_term,
        "long_term": long_term,
        "quick_wins": [i for i in issues if i.is_quick_win],
        "impact_matrix": {
            "high_impact_easy_fix": [
                i for i in issues if i.business_impact == "high" and i.fix_complexity == "easy"
            ],
            "high_impact_hard_fix": [
                i for i in issues if i.business_impact == "high" and i.fix_complexity == "hard"
            ],
            "low_impact_easy_fix": [
                i for i in issues if i.business_impact == "low" and i.fix_complexity == "easy"
            ],
            "low_impact_hard_fix": [
                i for i in issues if i.business_impact == "low" and i.fix_complexity == "hard"
            ],
        },
    }


def build_issue_report(issues: List[DetectedIssue]) -> IssueReport:
    """Group issues by severity and derive summary and priorities."""
    report = IssueReport()
    for issue in sorted(issues, key=lambda i: -SEVERITY_ORDER.get(i.severity, 0)):
        if issue.compound_issue:
            report.cross_category.append(issue)
        else:
            getattr(report, issue.severity).append(issue)

    ordered = report.all_issues
    report.summary = summarize_issues(ordered)
    report.prioritization = prioritize_issues(ordered)
    return report
