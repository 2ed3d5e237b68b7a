"""Tests for report chart links."""

import json
from datetime import date
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest

from dompet.ledger.aggregation import AggregationEngine
from dompet.models.ledger import TransactionKind
from dompet.notifications.charts import (
    DEFAULT_COLOR,
    MAX_BARS,
    ChartPoint,
    bar_chart_url,
    category_color,
    daily_chart,
    monthly_chart,
    pie_chart_url,
)

from conftest import january_2025_entries, make_entry


def chart_config(url: str) -> tuple[dict, dict]:
    query = parse_qs(urlparse(url).query)
    return json.loads(query["c"][0]), query


class TestChartUrls:
    """Tests for the QuickChart URL builders."""

    def test_pie_chart(self):
        """Test labels, values and colors survive URL encoding."""
        url = pie_chart_url([
            ChartPoint("Pengeluaran", Decimal("70000"), "#e74c3c"),
            ChartPoint("Pemasukan", Decimal("5000000"), "#2ecc71"),
        ], "Pengeluaran & Pemasukan")

        config, query = chart_config(url)
        assert url.startswith("https://quickchart.io/chart?c=")
        assert query["w"] == ["500"] and query["h"] == ["300"]
        assert config["type"] == "pie"
        assert config["data"]["labels"] == ["Pengeluaran", "Pemasukan"]
        assert config["data"]["datasets"][0]["data"] == [70000, 5000000]
        assert config["options"]["title"]["text"] == "Pengeluaran & Pemasukan"

    def test_bar_chart_keeps_fractions(self):
        """Test non-whole amounts are sent as decimals."""
        url = bar_chart_url([ChartPoint("MAKANAN", Decimal("12500.5"))], "Top", "Amount")
        config, query = chart_config(url)
        assert config["type"] == "bar"
        assert config["data"]["datasets"][0] == {
            "label": "Amount",
            "data": [12500.5],
            "backgroundColor": [DEFAULT_COLOR],
        }
        assert query["w"] == ["600"]

    def test_unknown_category_is_grey(self):
        """Test hand-typed keys fall back to the default color."""
        assert category_color("MAKANAN") == "#e74c3c"
        assert category_color("JAJAN_ANAK") == DEFAULT_COLOR


class TestReportCharts:
    """Tests for choosing what to chart from a summary."""

    def test_daily_chart_expense_against_income(self):
        """Test the day's totals become two slices."""
        day = date(2025, 1, 25)
        summary = AggregationEngine.summarize([
            make_entry(day, 20000, "TRANSPORT"),
            make_entry(day, 5000000, "GAJI", TransactionKind.INCOME),
        ], day, day)

        chart = daily_chart(summary, "Harian", "📊 Visualisasi Harian - Papa")

        config, _ = chart_config(chart.url)
        assert config["data"]["datasets"][0]["data"] == [20000, 5000000]
        assert chart.caption == "📊 Visualisasi Harian - Papa"

    def test_monthly_chart_ranks_categories(self):
        """Test bars are ordered by spend with their category colors."""
        summary = AggregationEngine.summarize(january_2025_entries(), date(2025, 1, 1), date(2025, 1, 31))

        config, _ = chart_config(monthly_chart(summary, "Top Pengeluaran", "caption").url)

        assert config["data"]["labels"] == ["MAKANAN", "TRANSPORT"]
        assert config["data"]["datasets"][0]["data"] == [50000, 20000]
        assert config["data"]["datasets"][0]["backgroundColor"] == ["#e74c3c", "#3498db"]

    def test_monthly_chart_caps_bars(self):
        """Test only the largest categories are drawn."""
        day = date(2025, 1, 5)
        entries = [make_entry(day, 1000 * (i + 1), f"KATEGORI_{i}") for i in range(MAX_BARS + 3)]
        summary = AggregationEngine.summarize(entries, date(2025, 1, 1), date(2025, 1, 31))

        config, _ = chart_config(monthly_chart(summary, "Top", "caption").url)

        assert len(config["data"]["labels"]) == MAX_BARS
        assert config["data"]["labels"][0] == f"KATEGORI_{MAX_BARS + 2}"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
