"""
Chart images for reports.

Charts are rendered by quickchart.io from a Chart.js config carried in
the URL, so the bot only builds a link and Telegram fetches the image.
Nothing here talks to the network.
"""

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from dompet.models.ledger import WindowSummary


QUICKCHART_URL = "https://quickchart.io/chart"

EXPENSE_COLOR = "#e74c3c"
INCOME_COLOR = "#2ecc71"
DEFAULT_COLOR = "#95a5a6"

CATEGORY_COLORS = {
    "MAKANAN": "#e74c3c",
    "TRANSPORT": "#3498db",
    "BELANJA": "#9b59b6",
    "TAGIHAN": "#e67e22",
    "HIBURAN": "#1abc9c",
    "KESEHATAN": "#2ecc71",
    "PENDIDIKAN": "#f39c12",
    "PAKAIAN": "#34495e",
    "LAINNYA": DEFAULT_COLOR,
    "GAJI": "#27ae60",
    "FREELANCE": "#3498db",
    "BISNIS": "#8e44ad",
    "INVESTASI": "#16a085",
    "HADIAH": "#f39c12",
}

# Categories beyond this are left off the bar chart
MAX_BARS = 8


@dataclass(frozen=True)
class ChartPoint:
    label: str
    value: Decimal
    color: str = DEFAULT_COLOR


@dataclass(frozen=True)
class Chart:
    """A rendered chart link and the caption to send with it."""
    url: str
    caption: str


def category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category, DEFAULT_COLOR)


def _chart_url(config: dict, width: int, height: int) -> str:
    encoded = quote(json.dumps(config, separators=(",", ":"), ensure_ascii=False), safe="")
    return f"{QUICKCHART_URL}?c={encoded}&w={width}&h={height}"


def _plain_number(value: Decimal):
    # Chart.js wants JSON numbers; whole Rupiah amounts stay integers
    return int(value) if value == value.to_integral_value() else float(value)


def pie_chart_url(points: list[ChartPoint], title: str) -> str:
    config = {
        "type": "pie",
        "data": {
            "labels": [p.label for p in points],
            "datasets": [{
                "data": [_plain_number(p.value) for p in points],
                "backgroundColor": [p.color for p in points],
            }],
        },
        "options": {
            "title": {"display": True, "text": title, "fontSize": 16, "fontColor": "#333"},
            "legend": {"position": "bottom", "labels": {"fontSize": 12, "fontColor": "#666"}},
            "plugins": {"datalabels": {"color": "#fff", "font": {"weight": "bold", "size": 14}}},
        },
    }
    return _chart_url(config, 500, 300)


def bar_chart_url(points: list[ChartPoint], title: str, ylabel: str = "") -> str:
    config = {
        "type": "bar",
        "data": {
            "labels": [p.label for p in points],
            "datasets": [{
                "label": ylabel,
                "data": [_plain_number(p.value) for p in points],
                "backgroundColor": [p.color for p in points],
            }],
        },
        "options": {
            "title": {"display": True, "text": title, "fontSize": 16},
            "legend": {"display": False},
            "scales": {"yAxes": [{"ticks": {"beginAtZero": True}}]},
        },
    }
    return _chart_url(config, 600, 400)


def daily_chart(summary: WindowSummary, title: str, caption: str) -> Optional[Chart]:
    """
    Expense against income for one day.

    Returns None for a day with no money moving.
    """
    if summary.total_expense == 0 and summary.total_income == 0:
        return None
    points = [
        ChartPoint("Pengeluaran", summary.total_expense, EXPENSE_COLOR),
        ChartPoint("Pemasukan", summary.total_income, INCOME_COLOR),
    ]
    return Chart(url=pie_chart_url(points, title), caption=caption)


def monthly_chart(summary: WindowSummary, title: str, caption: str) -> Optional[Chart]:
    """Largest expense categories of a month, or None without expenses."""
    if not summary.by_category:
        return None
    ranked = sorted(summary.by_category.items(), key=lambda kv: (-kv[1], kv[0]))[:MAX_BARS]
    points = [ChartPoint(category, total, category_color(category)) for category, total in ranked]
    return Chart(url=bar_chart_url(points, title, "Amount"), caption=caption)
