"""
Chart Generator for Reports

Generates inline SVG charts for HTML audit reports.
"""

import html
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def score_color(score: Optional[float]) -> str:
    """Green / amber / red by score band."""
    if score is None:
        return "#adb5bd"
    if score >= 80:
        return "#2a9d8f"
    if score >= 50:
        return "#f4a261"
    return "#e63946"


class ChartGenerator:
    """
    Generates charts for reports.

    Uses inline SVG so reports stay a single self-contained file.
    """

    @staticmethod
    def generate_trend_chart(
        data: List[Dict[str, Any]],
        x_key: str = "date",
        y_key: str = "overall_score",
        width: int = 600,
        height: int = 260,
        color: str = "#4361ee",
        fixed_scale: bool = True,
    ) -> str:
        """
        Generate a simple line chart as SVG.

        Args:
            data: List of {x_key: x, y_key: y} dicts, oldest first
            x_key: Key for x-axis values
            y_key: Key for y-axis values
            width: Chart width
            height: Chart height
            color: Line color
            fixed_scale: Plot on a 0-100 axis instead of min..max

        Returns:
            SVG string
        """
        points_data = [d for d in data if d.get(y_key) is not None]
        if len(points_data) < 2:
            return "<p>Not enough history for a trend chart yet.</p>"

        values = [float(d[y_key]) for d in points_data]
        labels = [str(d.get(x_key, ""))[:10] for d in points_data]

        if fixed_scale:
            min_val, max_val = 0.0, 100.0
        else:
            min_val, max_val = min(values), max(values)
        range_val = max_val - min_val or 1

        margin = {"top": 20, "right": 20, "bottom": 40, "left": 50}
        chart_width = width - margin["left"] - margin["right"]
        chart_height = height - margin["top"] - margin["bottom"]

        def _x(i: int) -> float:
            return margin["left"] + (i / (len(values) - 1)) * chart_width

        def _y(v: float) -> float:
            return margin["top"] + chart_height - ((v - min_val) / range_val) * chart_height

        path_d = "M " + " L ".join(f"{_x(i):.1f},{_y(v):.1f}" for i, v in enumerate(values))

        grid = "".join(
            f'<line x1="{margin["left"]}" y1="{margin["top"] + i * chart_height / 4:.1f}" '
            f'x2="{width - margin["right"]}" y2="{margin["top"] + i * chart_height / 4:.1f}" '
            f'stroke="#eee" stroke-width="1"/>'
            for i in range(5)
        )
        dots = "".join(
            f'<circle cx="{_x(i):.1f}" cy="{_y(v):.1f}" r="4" fill="{color}"/>'
            for i, v in enumerate(values)
        )
        x_labels = (
            f'<text x="{_x(0):.1f}" y="{height - 10}" text-anchor="start" font-size="10" fill="#666">'
            f'{html.escape(labels[0])}</text>'
            f'<text x="{_x(len(values) - 1):.1f}" y="{height - 10}" text-anchor="end" font-size="10" fill="#666">'
            f'{html.escape(labels[-1])}</text>'
        )

        return f"""
        <svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg" class="trend-chart">
            <rect width="{width}" height="{height}" fill="white"/>
            {grid}
            <path d="{path_d}" fill="none" stroke="{color}" stroke-width="2"/>
            {dots}
            <text x="{margin["left"] - 10}" y="{margin["top"] + 4}" text-anchor="end" font-size="10" fill="#666">{max_val:,.0f}</text>
            <text x="{margin["left"] - 10}" y="{margin["top"] + chart_height}" text-anchor="end" font-size="10" fill="#666">{min_val:,.0f}</text>
            {x_labels}
        </svg>
        """

    @staticmethod
    def generate_bar_chart(
        data: List[Dict[str, Any]],
        label_key: str = "label",
        value_key: str = "value",
        width: int = 600,
        height: int = 200,
        max_value: Optional[float] = 100,
    ) -> str:
        """
        Generate a horizontal bar chart as SVG, bars colored by score band.

        Args:
            data: List of {label_key: label, value_key: value} dicts
            max_value: Full-width value; None scales to the largest bar

        Returns:
            SVG string
        """
        if not data:
            return "<p>No data available for chart.</p>"

        data = data[:10]
        top = max_value or max(d.get(value_key) or 0 for d in data) or 1

        margin = {"left": 120, "right": 50, "top": 10, "bottom": 10}
        chart_width = width - margin["left"] - margin["right"]
        slot = (height - margin["top"] - margin["bottom"]) / len(data)
        bar_height = slot * 0.7

        bars = ""
        for i, d in enumerate(data):
            label = html.escape(str(d.get(label_key, ""))[:18])
            value = d.get(value_key) or 0
            bar_width = min(1.0, value / top) * chart_width
            y = margin["top"] + i * slot

            bars += f"""
            <text x="{margin["left"] - 10}" y="{y + bar_height / 2 + 4:.1f}" text-anchor="end" font-size="11" fill="#333">{label}</text>
            <rect x="{margin["left"]}" y="{y:.1f}" width="{bar_width:.1f}" height="{bar_height:.1f}" fill="{score_color(value)}" rx="2"/>
            <text x="{margin["left"] + bar_width + 5:.1f}" y="{y + bar_height / 2 + 4:.1f}" font-size="11" fill="#666">{value:,.0f}</text>
            """

        return f"""
        <svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg" class="bar-chart">
            <rect width="{width}" height="{height}" fill="white"/>
            {bars}
        </svg>
        """
