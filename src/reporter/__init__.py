"""
SEO Audit Report Generation

- Single-analysis reports in JSON, CSV or self-contained HTML
  (executive summary, category scores, SVG trend chart, issues,
  recommendations, content metrics)
- Bulk export of many analyses as JSON or flattened CSV
"""

from .charts import ChartGenerator
from .report import ReportBuilder
from .generator import ReportGenerator, GeneratedReport, REPORT_FORMATS, site_analysis_to_report_input
from .export import BulkExporter, ExportOptions, ExportResult

__all__ = [
    "ChartGenerator",
    "ReportBuilder",
    "ReportGenerator",
    "GeneratedReport",
    "REPORT_FORMATS",
    "site_analysis_to_report_input",
    "BulkExporter",
    "ExportOptions",
    "ExportResult",
]
