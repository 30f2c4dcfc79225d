"""
Report Generator - renders one analysis as JSON, CSV or HTML.

Input is the dict produced by analysis_to_dict(); output is a
GeneratedReport ready to be returned as a download.
"""

import csv
import io
import json
import logging
import os
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.utils.errors import ValidationFailed

from .report import ReportBuilder

logger = logging.getLogger(__name__)

REPORT_FORMATS = {
    "json": "application/json",
    "csv": "text/csv",
    "html": "text/html",
}


@dataclass
class GeneratedReport:
    """A rendered report."""
    filename: str
    content: str
    media_type: str
    generated_at: datetime

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))


def site_analysis_to_report_input(site) -> Dict[str, Any]:
    """
    Shape an unsaved SiteAnalysis like analysis_to_dict() output.

    Used by the command line audit, which runs without a database.
    """
    scores = site.scores
    start = site.start_page

    content = None
    if start is not None and start.content is not None:
        c = start.content
        content = {
            "word_count": c.depth.word_count,
            "reading_time": c.depth.reading_time,
            "readability": asdict(c.readability),
            "keywords": asdict(c.keywords),
            "overall_score": c.overall_score,
            "recommendations": list(c.recommendations),
        }

    issues = []
    for issue in site.issues:
        data = issue.to_dict()
        data["type"] = issue.id
        data["subcategory"] = issue.type
        data["status"] = "new"
        issues.append(data)

    recommendations = []
    for rec in site.recommendations.recommendations:
        data = rec.to_dict()
        data["implementation_steps"] = rec.implementation_steps
        data["status"] = "pending"
        recommendations.append(data)

    return {
        "id": None,
        "url": site.url,
        "scores": {"overall": scores.overall, **scores.category_scores},
        "overall_score": scores.overall,
        "previous_score": scores.previous_score,
        "score_change": scores.score_change,
        "pages_analyzed": len(site.analyzed_pages),
        "issue_summary": site.issue_report.summary,
        "recommendation_summary": site.recommendations.summary,
        "created_at": site.analyzed_at.isoformat(),
        "score_breakdown": {
            **scores.breakdown,
            "weights": scores.weights,
            "trends": {"base_score": scores.base_score, "risk_penalty": scores.risk_penalty},
            "benchmarks": {"confidence": site.confidence},
        },
        "content": content,
        "insights": site.to_dict()["insights"],
        "pages": [page.summary() for page in site.pages],
        "issues": issues,
        "recommendations": recommendations,
    }


def _slug(value: str) -> str:
    value = re.sub(r"^https?://", "", value or "report")
    return re.sub(r"[^A-Za-z0-9]+", "-", value).strip("-").lower() or "report"


class ReportGenerator:
    """
    Report generator for a single analysis.

    Usage:
        report = ReportGenerator().generate(analysis_dict, "html", trend_points)
    """

    def __init__(self):
        self.builder = ReportBuilder()

    def generate(
        self,
        analysis: Dict[str, Any],
        format: str = "json",
        trend_points: Optional[List[Dict[str, Any]]] = None,
        project_name: Optional[str] = None,
    ) -> GeneratedReport:
        format = (format or "").lower()
        if format not in REPORT_FORMATS:
            raise ValidationFailed(f"Unsupported report format '{format}', expected json, csv or html")

        if format == "json":
            content = self._to_json(analysis, trend_points)
        elif format == "csv":
            content = self._to_csv(analysis)
        else:
            content = self.builder.build(analysis, trend_points, project_name)

        now = datetime.utcnow()
        filename = f"{_slug(project_name or analysis.get('url') or '')}_seo_audit_{now.strftime('%Y%m%d')}.{format}"
        logger.info(f"Generated {format} report {filename} ({len(content)} chars)")

        return GeneratedReport(
            filename=filename,
            content=content,
            media_type=REPORT_FORMATS[format],
            generated_at=now,
        )

    def _to_json(self, analysis: Dict[str, Any], trend_points: Optional[List[Dict[str, Any]]]) -> str:
        payload = dict(analysis)
        if trend_points is not None:
            payload["trend"] = trend_points
        payload["generated_at"] = datetime.utcnow().isoformat()
        return json.dumps(payload, indent=2, default=str)

    def _to_csv(self, analysis: Dict[str, Any]) -> str:
        """Scores block followed by one row per issue."""
        buffer = io.StringIO()
        writer = csv.writer(buffer)

        writer.writerow(["section", "metric", "value"])
        for category, score in (analysis.get("scores") or {}).items():
            writer.writerow(["score", category, score])
        writer.writerow(["score", "previous", analysis.get("previous_score")])
        writer.writerow(["score", "change", analysis.get("score_change")])
        writer.writerow(["summary", "pages_analyzed", analysis.get("pages_analyzed")])
        content = analysis.get("content") or {}
        for metric in ("word_count", "reading_time", "overall_score"):
            if metric in content:
                writer.writerow(["content", metric, content[metric]])
        writer.writerow([])

        writer.writerow([
            "issue_type", "severity", "category", "title", "affected_pages",
            "status", "fix_complexity", "estimated_time", "recommendation",
        ])
        for issue in analysis.get("issues") or []:
            writer.writerow([
                issue.get("type"),
                issue.get("severity"),
                issue.get("category"),
                issue.get("title"),
                issue.get("affected_pages"),
                issue.get("status"),
                issue.get("fix_complexity"),
                issue.get("estimated_time"),
                issue.get("recommendation"),
            ])

        return buffer.getvalue()

    def save_report(self, report: GeneratedReport, output_dir: str) -> str:
        """
        Save report to disk.

        Returns:
            Full path to saved file
        """
        os.makedirs(output_dir, exist_ok=True)
        filepath = os.path.join(output_dir, report.filename)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(report.content)

        logger.info(f"Saved report: {filepath}")
        return filepath
