"""
Bulk export of many analyses into one JSON or CSV file.

Each analysis becomes one flattened record; optional sections add
score breakdown, content, technical, performance and trend columns.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.utils.errors import ValidationFailed

from .generator import GeneratedReport

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
    "json": "application/json",
    "csv": "text/csv",
}

EXPORT_SECTIONS = ("breakdown", "content", "technical", "performance", "trends")
GROUP_BY = ("none", "project", "date", "score")


@dataclass
class ExportOptions:
    sections: List[str] = field(default_factory=list)
    group_by: str = "none"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def __post_init__(self):
        unknown = [s for s in self.sections if s not in EXPORT_SECTIONS]
        if unknown:
            raise ValidationFailed(f"Unknown export sections: {', '.join(unknown)}")
        if self.group_by not in GROUP_BY:
            raise ValidationFailed(f"Unknown group_by '{self.group_by}'")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExportOptions":
        data = data or {}
        return cls(
            sections=list(data.get("sections") or []),
            group_by=data.get("group_by") or "none",
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
        )


@dataclass
class ExportResult(GeneratedReport):
    row_count: int = 0


def _flatten(prefix: str, data: Any, out: Dict[str, Any]) -> None:
    """Nested dicts become prefix_key columns; lists are JSON encoded."""
    if isinstance(data, dict):
        for key, value in data.items():
            _flatten(f"{prefix}_{key}" if prefix else str(key), value, out)
    elif isinstance(data, list):
        out[prefix] = json.dumps(data, default=str)
    else:
        out[prefix] = data


class BulkExporter:
    """
    Usage:
        result = BulkExporter().export(analysis_dicts, "csv", ExportOptions(sections=["content"]))
    """

    def build_record(self, analysis: Dict[str, Any], options: ExportOptions) -> Dict[str, Any]:
        scores = analysis.get("scores") or {}
        record: Dict[str, Any] = {
            "analysis_id": analysis.get("id"),
            "project_id": analysis.get("project_id"),
            "project_name": analysis.get("project_name") or "Unknown",
            "url": analysis.get("url") or "",
            "analysis_date": analysis.get("created_at"),
            "overall_score": scores.get("overall"),
            "technical_score": scores.get("technical"),
            "content_score": scores.get("content"),
            "onpage_score": scores.get("onpage"),
            "ux_score": scores.get("ux"),
            "score_change": analysis.get("score_change"),
            "pages_analyzed": analysis.get("pages_analyzed"),
            "issue_count": len(analysis.get("issues") or []),
        }

        if "breakdown" in options.sections and analysis.get("score_breakdown"):
            breakdown = analysis["score_breakdown"]
            record["breakdown"] = {c: breakdown.get(c) for c in ("technical", "content", "onpage", "ux")}
        if "content" in options.sections and analysis.get("content"):
            content = analysis["content"]
            record["content"] = {
                "word_count": content.get("word_count"),
                "reading_time": content.get("reading_time"),
                "overall_score": content.get("overall_score"),
                "recommendations": content.get("recommendations"),
            }
        if "technical" in options.sections and analysis.get("technical"):
            record["technical"] = analysis["technical"]
        if "performance" in options.sections and analysis.get("performance"):
            perf = analysis["performance"]
            record["performance"] = {
                "performance_score": perf.get("performance_score"),
                "load_time": perf.get("load_time"),
                "core_web_vitals": perf.get("core_web_vitals"),
            }
        if "trends" in options.sections and analysis.get("trends") is not None:
            record["trends"] = analysis["trends"]

        return record

    def _select(self, records: List[Dict[str, Any]], options: ExportOptions) -> List[Dict[str, Any]]:
        if options.start_date or options.end_date:
            def _in_range(record: Dict[str, Any]) -> bool:
                if not record.get("analysis_date"):
                    return False
                when = datetime.fromisoformat(record["analysis_date"])
                if options.start_date and when < options.start_date:
                    return False
                if options.end_date and when > options.end_date:
                    return False
                return True
            records = [r for r in records if _in_range(r)]

        if options.group_by == "project":
            records.sort(key=lambda r: (r["project_name"] or "").lower())
        elif options.group_by == "date":
            records.sort(key=lambda r: r.get("analysis_date") or "", reverse=True)
        elif options.group_by == "score":
            records.sort(key=lambda r: r.get("overall_score") or 0, reverse=True)

        return records

    def export(
        self,
        analyses: List[Dict[str, Any]],
        format: str = "json",
        options: Optional[ExportOptions] = None,
    ) -> ExportResult:
        format = (format or "").lower()
        if format not in EXPORT_FORMATS:
            raise ValidationFailed(f"Unsupported export format '{format}', expected json or csv")
        options = options or ExportOptions()

        records = self._select([self.build_record(a, options) for a in analyses], options)
        now = datetime.utcnow()

        if format == "json":
            content = json.dumps({
                "exported_at": now.isoformat(),
                "count": len(records),
                "sections": options.sections,
                "analyses": records,
            }, indent=2, default=str)
        else:
            content = self._to_csv(records)

        filename = f"bulk-export-{now.strftime('%Y%m%d-%H%M%S')}.{format}"
        logger.info(f"Exported {len(records)} analyses as {format}")

        return ExportResult(
            filename=filename,
            content=content,
            media_type=EXPORT_FORMATS[format],
            generated_at=now,
            row_count=len(records),
        )

    def _to_csv(self, records: List[Dict[str, Any]]) -> str:
        rows = []
        for record in records:
            flat: Dict[str, Any] = {}
            _flatten("", record, flat)
            rows.append(flat)

        columns: List[str] = []
        for row in rows:
            for column in row:
                if column not in columns:
                    columns.append(column)

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()
