"""
Structured data (JSON-LD and microdata) extraction.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from .page import PageContext

logger = logging.getLogger(__name__)


@dataclass
class StructuredDataResult:
    json_ld: List[Any] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    microdata_types: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    has_breadcrumb: bool = False
    has_article: bool = False
    has_product: bool = False
    has_faq: bool = False
    duplicate_schemas: bool = False
    rich_results_eligible: bool = False

    @property
    def has_structured_data(self) -> bool:
        return bool(self.types or self.microdata_types)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["has_structured_data"] = self.has_structured_data
        return data


def _collect_types(node: Any, types: List[str]) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_types(item, types)
        return
    if not isinstance(node, dict):
        return

    schema_type = node.get("@type")
    if isinstance(schema_type, list):
        types.extend(str(t) for t in schema_type)
    elif schema_type:
        types.append(str(schema_type))

    if "@graph" in node:
        _collect_types(node["@graph"], types)


def analyze_structured_data(ctx: PageContext) -> StructuredDataResult:
    result = StructuredDataResult()

    for script in ctx.soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError as e:
            result.errors.append(f"Invalid JSON-LD: {e}")
            continue
        result.json_ld.append(data)
        _collect_types(data, result.types)

    result.microdata_types = [
        el.get("itemtype", "").rstrip("/").rsplit("/", 1)[-1]
        for el in ctx.soup.find_all(attrs={"itemtype": True})
    ]

    all_types = result.types + result.microdata_types
    result.has_breadcrumb = "BreadcrumbList" in all_types
    result.has_article = any(t in ("Article", "NewsArticle", "BlogPosting") for t in all_types)
    result.has_product = "Product" in all_types
    result.has_faq = "FAQPage" in all_types
    result.duplicate_schemas = len(result.types) != len(set(result.types))
    result.rich_results_eligible = any([
        result.has_breadcrumb,
        result.has_article,
        result.has_product,
        result.has_faq,
    ])

    if result.errors:
        logger.debug(f"{len(result.errors)} invalid JSON-LD block(s) on {ctx.url}")

    return result
