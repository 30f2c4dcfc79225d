"""
SEO Audit Report Builder

Self-contained HTML report for one analysis:
- Executive summary with overall score and issue counts
- Category scores with sub-score bars
- Inline SVG score trend chart
- Issues grouped by severity
- Prioritized recommendations
- Content metrics
"""

import html
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .charts import ChartGenerator, score_color

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ["critical", "high", "medium", "low"]

CATEGORY_LABELS = {
    "technical": "Technical",
    "content": "Content",
    "onpage": "On-Page",
    "ux": "User Experience",
}

REPORT_CSS = """
    body { font-family: 'Helvetica Neue', Arial, sans-serif; color: #222; margin: 0; background: #f5f6fa; }
    .page { max-width: 960px; margin: 0 auto; background: white; padding: 32px 40px; }
    .cover { background: linear-gradient(135deg, #4361ee, #3f37c9); color: white; padding: 48px 40px; }
    .cover .domain-title { font-size: 30px; font-weight: bold; }
    .cover .report-type { font-size: 16px; opacity: 0.85; margin-top: 6px; }
    .section-header h1 { font-size: 22px; border-bottom: 2px solid #4361ee; padding-bottom: 6px; }
    .section-number { color: #4361ee; margin-right: 10px; }
    .metric-grid { display: flex; gap: 12px; flex-wrap: wrap; }
    .metric-card { flex: 1; min-width: 120px; background: #f8f9fa; border-radius: 8px; padding: 14px; text-align: center; }
    .metric-card .value { font-size: 26px; font-weight: bold; }
    .metric-card .label { font-size: 12px; color: #666; }
    .progress-bar { background: #eee; border-radius: 4px; height: 8px; }
    .progress-bar .fill { height: 8px; border-radius: 4px; }
    table { width: 100%; border-collapse: collapse; margin: 12px 0; font-size: 13px; }
    th, td { text-align: left; padding: 8px; border-bottom: 1px solid #eee; vertical-align: top; }
    th { background: #f8f9fa; }
    .severity { display: inline-block; padding: 2px 8px; border-radius: 10px; color: white; font-size: 11px; }
    .severity.critical { background: #e63946; }
    .severity.high { background: #f4a261; }
    .severity.medium { background: #e9c46a; color: #333; }
    .severity.low { background: #8ecae6; color: #333; }
    .quick-win { color: #2a9d8f; font-weight: bold; font-size: 11px; }
    .muted { color: #888; font-size: 12px; }
"""


def _step_text(step: Any) -> str:
    if isinstance(step, dict):
        return step.get("title") or step.get("description") or ""
    return str(step)


class ReportBuilder:
    """
    Builds the HTML audit report from a serialized analysis.

    Usage:
        html_doc = ReportBuilder().build(analysis_dict, trend_points, project_name)
    """

    def __init__(self):
        self.charts = ChartGenerator()
        self.section_num = 0

    def build(
        self,
        analysis: Dict[str, Any],
        trend_points: Optional[List[Dict[str, Any]]] = None,
        project_name: Optional[str] = None,
    ) -> str:
        self.section_num = 0
        url = analysis.get("url") or ""
        title = project_name or url or "SEO Audit"

        sections = [
            self._build_cover(title, url, analysis),
            self._build_executive_summary(analysis),
            self._build_category_scores(analysis),
            self._build_trend(trend_points or []),
            self._build_issues(analysis.get("issues", [])),
            self._build_recommendations(analysis.get("recommendations", [])),
            self._build_content(analysis.get("content")),
        ]

        logger.info(
            f"Built HTML report for analysis {analysis.get('id')}: "
            f"{len(analysis.get('issues', []))} issues, "
            f"{len(analysis.get('recommendations', []))} recommendations"
        )
        return self._wrap_html(sections, title)

    def _wrap_html(self, sections: List[str], title: str) -> str:
        content = "\n".join(s for s in sections if s)
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{html.escape(title)} - SEO Audit Report</title>
    <style>{REPORT_CSS}</style>
</head>
<body>
    {content}
</body>
</html>"""

    def _section_header(self, title: str) -> str:
        self.section_num += 1
        return f'''
        <div class="section-header">
            <h1><span class="section-number">{self.section_num}</span>{html.escape(title)}</h1>
        </div>
        '''

    def _progress_bar(self, value: Optional[float], max_val: float = 100) -> str:
        pct = min(100, ((value or 0) / max_val) * 100) if max_val > 0 else 0
        return f'''
        <div class="progress-bar">
            <div class="fill" style="width: {pct:.0f}%; background: {score_color(value)}"></div>
        </div>
        '''

    # =========================================================================
    # SECTIONS
    # =========================================================================

    def _build_cover(self, title: str, url: str, analysis: Dict[str, Any]) -> str:
        created = analysis.get("created_at") or datetime.utcnow().isoformat()
        return f"""
        <div class="page cover">
            <div class="domain-title">{html.escape(title)}</div>
            <div class="report-type">SEO Audit Report &middot; {html.escape(url)}</div>
            <div class="report-type">{html.escape(created[:10])}</div>
        </div>
        """

    def _build_executive_summary(self, analysis: Dict[str, Any]) -> str:
        scores = analysis.get("scores", {})
        overall = scores.get("overall", analysis.get("overall_score", 0))
        change = analysis.get("score_change")
        change_text = "First audit" if change is None else f"{change:+d} since last audit"

        counts = {s: 0 for s in SEVERITY_ORDER}
        for issue in analysis.get("issues", []):
            counts[issue.get("severity", "low")] = counts.get(issue.get("severity", "low"), 0) + 1

        confidence = ((analysis.get("score_breakdown") or {}).get("benchmarks") or {}).get("confidence")
        confidence_card = (
            f'<div class="metric-card"><div class="value">{confidence}%</div>'
            f'<div class="label">Data Confidence</div></div>'
            if confidence is not None else ""
        )

        severity_cards = "".join(
            f'<div class="metric-card"><div class="value">{counts[s]}</div>'
            f'<div class="label">{s.title()} issues</div></div>'
            for s in SEVERITY_ORDER
        )

        return f"""
        <div class="page">
            {self._section_header("Executive Summary")}
            <div class="metric-grid">
                <div class="metric-card">
                    <div class="value" style="color: {score_color(overall)}">{overall}</div>
                    <div class="label">Overall score ({html.escape(change_text)})</div>
                </div>
                <div class="metric-card">
                    <div class="value">{analysis.get("pages_analyzed", 0)}</div>
                    <div class="label">Pages analyzed</div>
                </div>
                {confidence_card}
            </div>
            <div class="metric-grid" style="margin-top: 10px;">{severity_cards}</div>
        </div>
        """

    def _build_category_scores(self, analysis: Dict[str, Any]) -> str:
        scores = analysis.get("scores", {})
        breakdown = analysis.get("score_breakdown") or {}

        chart = self.charts.generate_bar_chart([
            {"label": CATEGORY_LABELS[c], "value": scores.get(c, 0)} for c in CATEGORY_LABELS
        ])

        rows = ""
        for category, label in CATEGORY_LABELS.items():
            subs = breakdown.get(category) or {}
            sub_html = "".join(
                f"<div>{html.escape(name.replace('_', ' ').title())}: {value}"
                f"{self._progress_bar(value)}</div>"
                for name, value in subs.items()
            ) or '<span class="muted">No breakdown recorded</span>'
            rows += f"<tr><th>{label}</th><td>{scores.get(category, 0)}</td><td>{sub_html}</td></tr>"

        return f"""
        <div class="page">
            {self._section_header("Category Scores")}
            {chart}
            <table>
                <tr><th>Category</th><th>Score</th><th>Sub-scores</th></tr>
                {rows}
            </table>
        </div>
        """

    def _build_trend(self, trend_points: List[Dict[str, Any]]) -> str:
        return f"""
        <div class="page">
            {self._section_header("Score Trend")}
            {self.charts.generate_trend_chart(trend_points)}
        </div>
        """

    def _build_issues(self, issues: List[Dict[str, Any]]) -> str:
        if not issues:
            body = "<p>No issues detected.</p>"
        else:
            body = ""
            for severity in SEVERITY_ORDER:
                group = [i for i in issues if i.get("severity") == severity]
                if not group:
                    continue
                rows = "".join(
                    f"<tr><td>{html.escape(i.get('title') or '')}</td>"
                    f"<td>{html.escape(i.get('category') or '')}</td>"
                    f"<td>{i.get('affected_pages', 1)}</td>"
                    f"<td>{html.escape(i.get('recommendation') or '')}</td></tr>"
                    for i in group
                )
                body += f"""
                <h2><span class="severity {severity}">{severity.upper()}</span> {len(group)} issue(s)</h2>
                <table>
                    <tr><th>Issue</th><th>Category</th><th>Pages</th><th>How to fix</th></tr>
                    {rows}
                </table>
                """

        return f"""
        <div class="page">
            {self._section_header("Issues")}
            {body}
        </div>
        """

    def _build_recommendations(self, recommendations: List[Dict[str, Any]]) -> str:
        if not recommendations:
            return ""

        rows = ""
        for rec in recommendations:
            steps = "".join(
                f"<li>{html.escape(_step_text(s))}</li>" for s in (rec.get("implementation_steps") or [])[:5]
            )
            quick = '<div class="quick-win">QUICK WIN</div>' if rec.get("quick_win") else ""
            rows += f"""
            <tr>
                <td><span class="severity {rec.get('priority', 'low')}">{html.escape(rec.get('priority') or '')}</span></td>
                <td><strong>{html.escape(rec.get('title') or '')}</strong>{quick}
                    <div class="muted">{html.escape(rec.get('description') or '')}</div>
                    <ol>{steps}</ol></td>
                <td>{html.escape(rec.get('effort_level') or '')}<div class="muted">{html.escape(rec.get('time_estimate') or '')}</div></td>
            </tr>
            """

        return f"""
        <div class="page">
            {self._section_header("Recommendations")}
            <table>
                <tr><th>Priority</th><th>Recommendation</th><th>Effort</th></tr>
                {rows}
            </table>
        </div>
        """

    def _build_content(self, content: Optional[Dict[str, Any]]) -> str:
        if not content:
            return ""

        readability = content.get("readability") or {}
        keywords = content.get("keywords") or {}
        top_keywords = ", ".join(
            html.escape(str(k)) for k in (keywords.get("primary_keywords") or [])[:8]
        ) or "n/a"

        return f"""
        <div class="page">
            {self._section_header("Content")}
            <div class="metric-grid">
                <div class="metric-card"><div class="value">{content.get("word_count", 0)}</div><div class="label">Words</div></div>
                <div class="metric-card"><div class="value">{content.get("reading_time", 0)} min</div><div class="label">Reading time</div></div>
                <div class="metric-card"><div class="value">{readability.get("flesch_reading_ease", "n/a")}</div><div class="label">Flesch reading ease</div></div>
                <div class="metric-card"><div class="value">{content.get("overall_score", 0)}</div><div class="label">Content score</div></div>
            </div>
            <p class="muted">Top keywords: {top_keywords}</p>
        </div>
        """
