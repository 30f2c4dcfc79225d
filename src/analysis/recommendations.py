"""
Recommendation Engine

Turns detected issues into actionable recommendations with
implementation steps, tooling, expected results and a strategic value,
then groups them into a remediation strategy.

Strategic value (1-10):
    5 base, +2 high / +1 medium business impact,
    +2 easy / +1 medium / -1 hard fix.

Usage:
    from src.analysis.recommendations import generate_recommendations

    result = generate_recommendations(issues, word_count=850)
    for rec in result.recommendations[:5]:
        print(rec.key, rec.priority, rec.strategic_value)
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .issues import SEVERITY_ORDER, DetectedIssue, IssueReport, estimate_to_hours

logger = logging.getLogger(__name__)


PROACTIVE_CONTENT_MIN_WORDS = 500

TIMELINE_BY_SEVERITY = {
    "critical": "immediate",
    "high": "short-term",
    "medium": "medium-term",
    "low": "long-term",
}

DETAIL_PRIORITY_BY_SEVERITY = {
    "critical": "immediate",
    "high": "high",
    "medium": "medium",
    "low": "low",
}

BUSINESS_IMPACT_ESTIMATES = {
    "high": {
        "technical": "25-40% improvement in search visibility",
        "content": "15-30% increase in organic traffic",
        "onpage": "20-35% improvement in click-through rates",
        "ux": "10-25% improvement in conversion rates",
    },
    "medium": {
        "technical": "10-20% improvement in search visibility",
        "content": "5-15% increase in organic traffic",
        "onpage": "8-20% improvement in click-through rates",
        "ux": "5-15% improvement in conversion rates",
    },
    "low": {
        "technical": "2-8% improvement in search visibility",
        "content": "1-5% increase in organic traffic",
        "onpage": "2-8% improvement in click-through rates",
        "ux": "1-5% improvement in conversion rates",
    },
}

TOOLS_BY_CATEGORY = {
    "technical": ["Google PageSpeed Insights", "GTmetrix", "Lighthouse"],
    "onpage": ["Screaming Frog", "Ahrefs Site Audit", "SEMrush"],
    "content": ["Hemingway Editor", "Grammarly", "Yoast SEO"],
}

RESOURCES_BY_TYPE = {
    "meta-tags": [
        "Google's Title Link Guidelines",
        "Meta Description Best Practices",
        "Moz's On-Page SEO Guide",
    ],
    "performance": [
        "Web.dev Performance Guide",
        "Google Core Web Vitals",
        "PageSpeed Insights Documentation",
    ],
}

SEO_IMPACT_BY_SEVERITY = {
    "critical": "High - fixing this will significantly improve search visibility and rankings",
    "high": "Medium-High - noticeable improvement in search performance expected",
    "medium": "Medium - moderate improvement in specific ranking factors",
    "low": "Low - minor improvement in overall SEO health",
}

RESULT_TIMEFRAME_BY_SEVERITY = {
    "critical": "1-2 weeks for immediate impact, full benefits within 4-6 weeks",
    "high": "2-4 weeks for noticeable improvement",
    "medium": "4-8 weeks for measurable results",
    "low": "8-12 weeks for visible impact",
}

TESTING_METHODS_BY_CATEGORY = {
    "technical": ["Browser developer tools", "Automated testing tools"],
    "onpage": ["SEO audit tools", "SERP preview tools"],
    "ux": ["User testing", "Accessibility audit tools"],
}

MONITORING_BY_CATEGORY = {
    "technical": ["Page speed scores", "Core Web Vitals", "Search Console performance"],
    "onpage": ["Click-through rates", "Search rankings", "Impressions"],
    "content": ["Time on page", "Bounce rate", "Engagement metrics"],
    "ux": ["User satisfaction", "Conversion rates", "Accessibility scores"],
}

CODE_EXAMPLES = {
    "missing-title": {
        "html": "<title>Your Compelling Page Title - Brand Name</title>",
    },
    "missing-meta-description": {
        "html": '<meta name="description" content="Compelling description of your page content that encourages clicks.">',
    },
    "no-ssl": {
        "nginx": (
            "server {\n"
            "    listen 80;\n"
            "    server_name example.com;\n"
            "    return 301 https://$server_name$request_uri;\n"
            "}\n\n"
            "server {\n"
            "    listen 443 ssl;\n"
            "    server_name example.com;\n"
            "    ssl_certificate /path/to/certificate.crt;\n"
            "    ssl_certificate_key /path/to/private.key;\n"
            "}"
        ),
    },
    "missing-canonical": {
        "html": '<link rel="canonical" href="https://example.com/page/">',
    },
    "missing-robots-txt": {
        "robots.txt": "User-agent: *\nDisallow: /admin/\nAllow: /\n\nSitemap: https://example.com/sitemap.xml",
    },
    "missing-lang": {
        "html": '<html lang="en">',
    },
}


# =============================================================================
# IMPLEMENTATION GUIDES
# =============================================================================

def _steps(*steps: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{"step": index, **step} for index, step in enumerate(steps, start=1)]


GENERIC_IMPLEMENTATIONS = {
    "technical": {
        "implementation": {
            "difficulty": "intermediate",
            "estimated_time": "1-2 hours",
            "required_skills": ["technical SEO", "web development"],
        },
        "validation": {
            "testing_steps": ["Technical verification"],
            "success_metrics": ["Technical issue resolved"],
            "monitoring": ["Regular technical audits"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/search/docs"],
            "tools": ["Google Search Console", "Screaming Frog"],
        },
    },
    "content": {
        "implementation": {
            "difficulty": "beginner",
            "estimated_time": "2-4 hours",
            "required_skills": ["content writing", "SEO"],
        },
        "validation": {
            "testing_steps": ["Content quality check"],
            "success_metrics": ["Improved content metrics"],
            "monitoring": ["Content performance monitoring"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/search/docs/fundamentals/creating-helpful-content"],
            "tools": ["Grammarly", "Hemingway Editor"],
        },
    },
    "onpage": {
        "implementation": {
            "difficulty": "beginner",
            "estimated_time": "30 minutes - 1 hour",
            "required_skills": ["basic HTML", "SEO"],
        },
        "validation": {
            "testing_steps": ["On-page element verification"],
            "success_metrics": ["Proper on-page optimization"],
            "monitoring": ["Regular on-page audits"],
        },
        "resources": {
            "documentation": ["https://moz.com/learn/seo"],
            "tools": ["Yoast SEO", "Screaming Frog"],
        },
    },
    "generic": {
        "implementation": {
            "difficulty": "intermediate",
            "estimated_time": "1-2 hours",
            "required_skills": ["SEO basics"],
        },
        "validation": {
            "testing_steps": ["Verify issue resolution"],
            "success_metrics": ["Issue no longer detected"],
            "monitoring": ["Monitor for regression"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/search/docs"],
            "tools": ["Google Search Console"],
        },
    },
}

SPECIFIC_IMPLEMENTATIONS = {
    "no-ssl": {
        "implementation": {
            "difficulty": "intermediate",
            "estimated_time": "2-4 hours",
            "required_skills": ["server administration", "SSL/TLS"],
            "steps": _steps(
                {"title": "Obtain an SSL certificate",
                 "description": "Get a certificate from a trusted authority or issue a free one with Let's Encrypt.",
                 "tools": ["Let's Encrypt", "Cloudflare", "AWS Certificate Manager"]},
                {"title": "Install the certificate",
                 "description": "Configure the web server to serve the certificate.",
                 "code_example": "SSLEngine on\nSSLCertificateFile /path/to/certificate.crt\nSSLCertificateKeyFile /path/to/private.key"},
                {"title": "Redirect HTTP to HTTPS",
                 "description": "Send a 301 from every HTTP URL to its HTTPS equivalent.",
                 "code_example": "RewriteEngine On\nRewriteCond %{HTTPS} off\nRewriteRule ^(.*)$ https://%{HTTP_HOST}%{REQUEST_URI} [L,R=301]"},
                {"title": "Update internal links",
                 "description": "Point internal links, canonicals and the sitemap at HTTPS URLs."},
            ),
        },
        "validation": {
            "testing_steps": [
                "Load every page over HTTPS",
                "Verify the certificate chain",
                "Check for mixed content warnings",
                "Confirm HTTP requests redirect with 301",
            ],
            "success_metrics": [
                "All pages accessible via HTTPS",
                "No certificate errors",
                "No mixed content warnings",
            ],
            "monitoring": ["Monitor certificate expiry", "Schedule regular security scans"],
        },
        "resources": {
            "documentation": [
                "https://developers.google.com/search/blog/2014/08/https-as-ranking-signal",
                "https://letsencrypt.org/getting-started/",
            ],
            "tools": ["SSL Labs Test", "Qualys SSL Test", "Mozilla Observatory"],
        },
    },
    "missing-robots-txt": {
        "implementation": {
            "difficulty": "beginner",
            "estimated_time": "30 minutes",
            "required_skills": ["basic web development"],
            "steps": _steps(
                {"title": "Create robots.txt",
                 "description": "Create the file with crawl rules and the sitemap location.",
                 "code_example": CODE_EXAMPLES["missing-robots-txt"]["robots.txt"]},
                {"title": "Publish at the site root",
                 "description": "Serve it at https://yourdomain.com/robots.txt."},
                {"title": "Test robots.txt",
                 "description": "Validate the rules with the Search Console robots.txt report."},
            ),
        },
        "validation": {
            "testing_steps": ["Open /robots.txt in a browser", "Validate in Search Console"],
            "success_metrics": ["robots.txt returns 200", "Sitemap line present"],
            "monitoring": ["Monitor crawl errors in Search Console"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/search/docs/crawling-indexing/robots/intro"],
            "tools": ["Google Search Console", "Screaming Frog"],
        },
    },
    "thin-content": {
        "implementation": {
            "difficulty": "intermediate",
            "estimated_time": "4-8 hours",
            "required_skills": ["content writing", "keyword research"],
            "steps": _steps(
                {"title": "Research search intent",
                 "description": "List the questions searchers ask about the topic.",
                 "tools": ["Google Search Console", "AnswerThePublic"]},
                {"title": "Expand the content",
                 "description": "Add sections with examples, data and answers to those questions."},
                {"title": "Add internal links",
                 "description": "Link to and from related pages on the site."},
            ),
        },
        "validation": {
            "testing_steps": ["Re-run the audit", "Compare word count and depth score"],
            "success_metrics": ["At least 300 words of main content", "Depth score above 60"],
            "monitoring": ["Track rankings and time on page for the URL"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/search/docs/fundamentals/creating-helpful-content"],
            "tools": ["Google Search Console", "Hemingway Editor"],
        },
    },
    "poor-readability": {
        "implementation": {
            "difficulty": "beginner",
            "estimated_time": "2-3 hours",
            "required_skills": ["copy editing"],
            "steps": _steps(
                {"title": "Shorten sentences",
                 "description": "Split sentences longer than 20 words.",
                 "tools": ["Hemingway Editor"]},
                {"title": "Simplify vocabulary",
                 "description": "Replace jargon and long words with plain alternatives."},
                {"title": "Improve layout",
                 "description": "Use short paragraphs, lists and descriptive subheadings."},
            ),
        },
        "validation": {
            "testing_steps": ["Re-run the readability analysis"],
            "success_metrics": ["Readability score of 60 or more"],
            "monitoring": ["Track bounce rate for the page"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/style/tone"],
            "tools": ["Hemingway Editor", "Grammarly"],
        },
    },
    "missing-title": {
        "implementation": {
            "difficulty": "beginner",
            "estimated_time": "15 minutes",
            "required_skills": ["basic HTML"],
            "steps": _steps(
                {"title": "Write the title",
                 "description": "Write a unique 50-60 character title leading with the main keyword."},
                {"title": "Add it to the head",
                 "description": "Place a single <title> element in the document head.",
                 "code_example": CODE_EXAMPLES["missing-title"]["html"]},
            ),
        },
        "validation": {
            "testing_steps": ["View page source", "Preview the search snippet"],
            "success_metrics": ["One <title> of 30-60 characters"],
            "monitoring": ["Track click-through rate in Search Console"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/search/docs/appearance/title-link"],
            "tools": ["SERP preview tools", "Screaming Frog"],
        },
    },
    "missing-meta-description": {
        "implementation": {
            "difficulty": "beginner",
            "estimated_time": "15 minutes",
            "required_skills": ["copywriting", "basic HTML"],
            "steps": _steps(
                {"title": "Write the description",
                 "description": "Summarize the page in 120-160 characters with a call to action."},
                {"title": "Add the meta tag",
                 "description": "Place the meta description in the document head.",
                 "code_example": CODE_EXAMPLES["missing-meta-description"]["html"]},
            ),
        },
        "validation": {
            "testing_steps": ["View page source", "Preview the search snippet"],
            "success_metrics": ["One meta description of 120-160 characters"],
            "monitoring": ["Track click-through rate in Search Console"],
        },
        "resources": {
            "documentation": ["https://developers.google.com/search/docs/appearance/snippet"],
            "tools": ["SERP preview tools", "Yoast SEO"],
        },
    },
}


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class SmartRecommendation:
    """One actionable recommendation."""
    key: str
    issue_id: Optional[str]
    category: str
    priority: str
    title: str
    description: str
    business_impact: Dict[str, Any] = field(default_factory=dict)
    implementation: Dict[str, Any] = field(default_factory=dict)
    validation: Dict[str, Any] = field(default_factory=dict)
    resources: Dict[str, Any] = field(default_factory=dict)
    code_examples: Dict[str, str] = field(default_factory=dict)
    expected_results: Dict[str, str] = field(default_factory=dict)
    timeline: str = "medium-term"
    quick_win: bool = False
    strategic_value: int = 5
    related_issues: List[str] = field(default_factory=list)

    @property
    def effort_level(self) -> str:
        return self.implementation.get("difficulty", "intermediate")

    @property
    def time_estimate(self) -> str:
        return self.implementation.get("estimated_time", "")

    @property
    def implementation_steps(self) -> List[Dict[str, Any]]:
        return self.implementation.get("steps", [])

    @property
    def tools(self) -> List[str]:
        return self.resources.get("tools", [])

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["effort_level"] = self.effort_level
        data["time_estimate"] = self.time_estimate
        return data


@dataclass
class RecommendationSet:
    recommendations: List[SmartRecommendation] = field(default_factory=list)
    strategy: Dict[str, Any] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        def keys(recs: List[SmartRecommendation]) -> List[str]:
            return [rec.key for rec in recs]

        return {
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "strategy": {
                "quick_wins": keys(self.strategy.get("quick_wins", [])),
                "strategic_initiatives": keys(self.strategy.get("strategic_initiatives", [])),
                "long_term_goals": keys(self.strategy.get("long_term_goals", [])),
                "priority_matrix": {
                    name: keys(recs)
                    for name, recs in self.strategy.get("priority_matrix", {}).items()
                },
            },
            "summary": self.summary,
        }


# =============================================================================
# BUILDERS
# =============================================================================

def estimate_business_impact(impact: str, category: str) -> str:
    return BUSINESS_IMPACT_ESTIMATES.get(impact, {}).get(category, "Minor improvement expected")


def calculate_strategic_value(issue: DetectedIssue) -> int:
    value = 5
    value += {"high": 2, "medium": 1}.get(issue.business_impact, 0)
    value += {"easy": 2, "medium": 1, "hard": -1}.get(issue.fix_complexity, 0)
    return max(1, min(10, value))


def user_impact(issue: DetectedIssue) -> str:
    if issue.category == "ux" or issue.type == "performance":
        return "High - users get faster, more usable pages"
    if issue.type == "accessibility":
        return "High - improved accessibility for users with disabilities"
    return "Medium - indirect improvement through better search visibility"


def _implementation_for(issue: DetectedIssue) -> Dict[str, Any]:
    specific = SPECIFIC_IMPLEMENTATIONS.get(issue.id)
    if specific is not None:
        return {
            "implementation": dict(specific["implementation"]),
            "validation": dict(specific["validation"]),
            "resources": dict(specific["resources"]),
        }

    generic = GENERIC_IMPLEMENTATIONS.get(issue.category, GENERIC_IMPLEMENTATIONS["generic"])
    implementation = dict(generic["implementation"])
    implementation["steps"] = _steps(*[
        {"title": step, "description": step} for step in issue.implementation_steps
    ]) or _steps({"title": "Investigate", "description": issue.description})

    resources = dict(generic["resources"])
    resources["tools"] = list(dict.fromkeys(
        resources["tools"] + TOOLS_BY_CATEGORY.get(issue.category, [])
    ))
    resources["documentation"] = resources["documentation"] + RESOURCES_BY_TYPE.get(issue.type, [])

    validation = dict(generic["validation"])
    validation["success_metrics"] = list(issue.validation_criteria) or validation["success_metrics"]

    return {"implementation": implementation, "validation": validation, "resources": resources}


def recommendation_from_issue(issue: DetectedIssue) -> SmartRecommendation:
    guide = _implementation_for(issue)
    validation = guide["validation"]
    validation["testing_methods"] = ["Manual verification"] + TESTING_METHODS_BY_CATEGORY.get(issue.category, [])
    validation["monitoring"] = list(dict.fromkeys(
        validation.get("monitoring", []) + MONITORING_BY_CATEGORY.get(issue.category, [])
    ))

    return SmartRecommendation(
        key=f"rec_{issue.id}",
        issue_id=issue.id,
        category=issue.category,
        priority=issue.severity,
        title=issue.title,
        description=issue.recommendation or issue.description,
        business_impact={
            "severity": issue.business_impact,
            "description": issue.impact,
            "estimated_impact": estimate_business_impact(issue.business_impact, issue.category),
        },
        implementation=guide["implementation"],
        validation=validation,
        resources=guide["resources"],
        code_examples=dict(CODE_EXAMPLES.get(issue.id, {})),
        expected_results={
            "seo_impact": SEO_IMPACT_BY_SEVERITY.get(issue.severity, "Variable impact"),
            "user_impact": user_impact(issue),
            "business_impact": issue.impact,
            "timeframe": RESULT_TIMEFRAME_BY_SEVERITY.get(issue.severity, "Varies by implementation"),
        },
        timeline=TIMELINE_BY_SEVERITY.get(issue.severity, "medium-term"),
        quick_win=issue.fix_complexity == "easy" and issue.business_impact != "low",
        strategic_value=calculate_strategic_value(issue),
        related_issues=[issue.id],
    )


def proactive_recommendations(word_count: int) -> List[SmartRecommendation]:
    if word_count <= PROACTIVE_CONTENT_MIN_WORDS:
        return []

    return [SmartRecommendation(
        key="proactive_content_enhancement",
        issue_id=None,
        category="content",
        priority="medium",
        title="Content enhancement opportunity",
        description=(
            "The content already has good length. Add depth with examples, "
            "case studies or related subtopics."
        ),
        business_impact={
            "severity": "medium",
            "description": "Richer content can improve rankings and engagement",
            "estimated_impact": "10-20% increase in organic traffic",
        },
        implementation={
            "difficulty": "intermediate",
            "estimated_time": "4-6 hours",
            "required_skills": ["content writing", "research"],
            "steps": _steps(
                {"title": "Content gap analysis",
                 "description": "Find related questions the page does not answer yet."},
                {"title": "Add supporting content",
                 "description": "Include examples, case studies or additional perspectives."},
            ),
        },
        validation={
            "testing_steps": ["Monitor engagement", "Track time on page"],
            "success_metrics": ["Longer dwell time", "More engaged sessions"],
            "monitoring": ["Track organic traffic growth"],
        },
        resources={
            "documentation": ["https://developers.google.com/search/docs/fundamentals/creating-helpful-content"],
            "tools": ["Google Analytics", "Google Search Console"],
        },
        expected_results={
            "seo_impact": SEO_IMPACT_BY_SEVERITY["medium"],
            "user_impact": "Medium - more complete answers for readers",
            "business_impact": "Richer content can improve rankings and engagement",
            "timeframe": RESULT_TIMEFRAME_BY_SEVERITY["medium"],
        },
        timeline="short-term",
        quick_win=False,
        strategic_value=7,
    )]


def sort_recommendations(recommendations: List[SmartRecommendation]) -> List[SmartRecommendation]:
    return sorted(
        recommendations,
        key=lambda rec: (-SEVERITY_ORDER.get(rec.priority, 0), -rec.strategic_value),
    )


def build_strategy(recommendations: List[SmartRecommendation]) -> Dict[str, Any]:
    return {
        "quick_wins": [rec for rec in recommendations if rec.quick_win],
        "strategic_initiatives": [
            rec for rec in recommendations if rec.strategic_value >= 7 and not rec.quick_win
        ],
        "long_term_goals": [
            rec for rec in recommendations
            if rec.timeline == "long-term" or rec.effort_level == "expert"
        ],
        "priority_matrix": {
            "immediate": [rec for rec in recommendations if rec.timeline == "immediate"],
            "short_term": [rec for rec in recommendations if rec.timeline == "short-term"],
            "medium_term": [rec for rec in recommendations if rec.timeline == "medium-term"],
            "long_term": [rec for rec in recommendations if rec.timeline == "long-term"],
        },
    }


def total_implementation_time(recommendations: List[SmartRecommendation]) -> str:
    """Sum of estimated times, as hours below a working day, days below a week, else weeks."""
    estimates = [estimate_to_hours(rec.time_estimate) for rec in recommendations]
    estimates = [hours for hours in estimates if hours is not None]
    if not estimates:
        return "Unknown"

    hours = math.floor(sum(estimates) + 0.5)
    if hours < 8:
        return f"{hours} hours"
    if hours < 40:
        return f"{math.floor(hours / 8 + 0.5)} days"
    return f"{math.floor(hours / 40 + 0.5)} weeks"


def summarize_recommendations(
    recommendations: List[SmartRecommendation],
    strategy: Dict[str, Any],
) -> Dict[str, Any]:
    categories: Dict[str, int] = {}
    for rec in recommendations:
        categories[rec.category] = categories.get(rec.category, 0) + 1

    average = (
        round(sum(rec.strategic_value for rec in recommendations) / len(recommendations), 1)
        if recommendations else 0
    )

    return {
        "total_recommendations": len(recommendations),
        "quick_wins_count": len(strategy["quick_wins"]),
        "strategic_initiatives_count": len(strategy["strategic_initiatives"]),
        "estimated_implementation_time": total_implementation_time(recommendations),
        "priority_distribution": {
            severity: sum(1 for rec in recommendations if rec.priority == severity)
            for severity in ("critical", "high", "medium", "low")
        },
        "category_distribution": categories,
        "average_strategic_value": average,
    }


def generate_recommendations(issues: List[DetectedIssue], word_count: int = 0) -> RecommendationSet:
    """
    Build the prioritized recommendation set for a list of issues.

    Args:
        issues: Detected (and, for sites, merged) issues
        word_count: Main-content word count, for proactive suggestions

    Returns:
        RecommendationSet sorted by priority then strategic value
    """
    recommendations = [recommendation_from_issue(issue) for issue in issues]
    recommendations.extend(proactive_recommendations(word_count))
    recommendations = sort_recommendations(recommendations)

    strategy = build_strategy(recommendations)
    summary = summarize_recommendations(recommendations, strategy)

    logger.debug(
        f"Generated {len(recommendations)} recommendations "
        f"({summary['quick_wins_count']} quick wins)"
    )
    return RecommendationSet(recommendations=recommendations, strategy=strategy, summary=summary)


def detailed_recommendations(report: IssueReport) -> List[Dict[str, Any]]:
    """
    Expanded guidance for the issues worth acting on first:
    all critical and high issues, the first five medium and first three low.
    """
    selected = (
        report.critical
        + report.high
        + report.cross_category
        + report.medium[:5]
        + report.low[:3]
    )

    details = []
    for issue in selected:
        rec = recommendation_from_issue(issue)
        details.append({
            "id": f"rec-{issue.id}",
            "issue_id": issue.id,
            "title": issue.title,
            "description": issue.description,
            "priority": DETAIL_PRIORITY_BY_SEVERITY.get(issue.severity, "low"),
            "impact": issue.business_impact,
            "effort": issue.fix_complexity,
            "time_to_implement": issue.estimated_time,
            "implementation": {
                "steps": list(issue.implementation_steps),
                "code_examples": rec.code_examples,
                "tools": TOOLS_BY_CATEGORY.get(issue.category, []),
                "resources": RESOURCES_BY_TYPE.get(issue.type, []),
            },
            "expected_results": rec.expected_results,
            "validation": {
                "success_criteria": list(issue.validation_criteria),
                "testing_methods": rec.validation["testing_methods"],
                "monitoring_metrics": MONITORING_BY_CATEGORY.get(issue.category, []),
            },
        })
    return details
