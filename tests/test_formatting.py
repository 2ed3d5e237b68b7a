"""Tests for message formatting."""

import pytest
from datetime import date
from decimal import Decimal

from dompet.ledger.aggregation import AggregationEngine
from dompet.models.ledger import EntryDraft, TransactionKind, WindowComparison
from dompet.models.notification import NotificationPreferences
from dompet.notifications.formatting import (
    basic_comparison_insight,
    format_confirmation,
    format_currency,
    format_daily_recap,
    format_daily_report,
    format_date,
    format_monthly_insights,
    format_monthly_report,
    format_percent,
    format_settings,
    format_weekly_recap,
)

from conftest import january_2025_entries, make_entry


def comparison(change, per_category=None) -> WindowComparison:
    return WindowComparison(
        current_total=Decimal("100000"),
        previous_total=Decimal("100000"),
        percent_change=Decimal(change),
        per_category_change=per_category or {},
    )


class TestBasics:
    """Tests for currency, date and percent formatting."""

    @pytest.mark.parametrize("amount,expected", [
        (1250000, "Rp 1.250.000"),
        (Decimal("50000"), "Rp 50.000"),
        (0, "Rp 0"),
        (Decimal("999.5"), "Rp 1.000"),
        (Decimal("-4930000"), "-Rp 4.930.000"),
    ])
    def test_format_currency(self, amount, expected):
        """Test Rupiah formatting."""
        assert format_currency(amount) == expected

    def test_format_date(self):
        """Test Indonesian day and month names."""
        assert format_date(date(2025, 1, 15)) == "Rabu, 15 Januari 2025"
        assert format_date(date(2025, 1, 15), "short") == "15 Jan 2025"

    def test_format_percent_is_unsigned(self):
        """Test one decimal place, sign dropped."""
        assert format_percent(Decimal("-66.67")) == "66.7%"
        assert format_percent(Decimal("20")) == "20.0%"


class TestReports:
    """Tests for on-demand reports."""

    def test_daily_report_lists_entries(self):
        """Test entries appear largest first."""
        day = date(2025, 1, 5)
        summary = AggregationEngine.summarize(
            [make_entry(day, 5000, "TRANSPORT"), make_entry(day, 50000, "MAKANAN", description="makan siang")],
            day,
            day,
        )
        text = format_daily_report(summary)
        assert "Ringkasan Harian" in text
        assert "Transaksi (2)" in text
        assert text.index("Rp 50.000 - 🍔") < text.index("Rp 5.000 - 🚗")
        assert "📝 makan siang" in text

    def test_empty_daily_report(self):
        """Test a day without transactions."""
        summary = AggregationEngine.summarize([], date(2025, 1, 5), date(2025, 1, 5))
        assert "Belum ada transaksi" in format_daily_report(summary)

    def test_monthly_report_shares(self):
        """Test category shares of the January example."""
        summary = AggregationEngine.summarize(january_2025_entries(), date(2025, 1, 1), date(2025, 1, 31))
        text = format_monthly_report(summary)
        assert "Januari 2025" in text
        assert "Rp 50.000 (71.4%)" in text
        assert "Rp 20.000 (28.6%)" in text
        assert "Saldo: Rp 4.930.000" in text
        assert "💰 Gaji: Rp 5.000.000" in text

    def test_family_report_breakdown(self):
        """Test the per-member section and owner names."""
        entries = january_2025_entries("100") + [
            make_entry(date(2025, 1, 5), 30000, owner_id="200", owner_name="Mama"),
        ]
        family = AggregationEngine.summarize(entries, date(2025, 1, 5), date(2025, 1, 5))
        text = format_daily_report(family, "Ringkasan Harian Keluarga", AggregationEngine.member_breakdown(family))
        assert "Per Anggota" in text
        assert "(Mama)" in text
        assert "• Papa: Rp 50.000 keluar" in text


class TestScheduledMessages:
    """Tests for recap and insight messages."""

    def test_busy_day_warning(self):
        """Test the warning above ten entries."""
        day = date(2025, 1, 15)
        summary = AggregationEngine.summarize([make_entry(day, 1000) for _ in range(11)], day, day)
        text = format_daily_recap(summary, "Papa", AggregationEngine.top_categories(summary, 1))
        assert "Banyak transaksi" in text
        assert "Selamat istirahat, Papa" in text

    def test_quiet_day_has_no_warning(self):
        """Test ten entries or fewer."""
        day = date(2025, 1, 15)
        summary = AggregationEngine.summarize([make_entry(day, 1000) for _ in range(10)], day, day)
        assert "Banyak transaksi" not in format_daily_recap(summary, "Papa", [])

    @pytest.mark.parametrize("change,phrase", [
        ("25", "naik signifikan"),
        ("-25", "turun signifikan"),
    ])
    def test_weekly_significant_change(self, change, phrase):
        """Test the week-over-week callout."""
        summary = AggregationEngine.summarize([], date(2025, 1, 9), date(2025, 1, 15))
        assert phrase in format_weekly_recap(summary, comparison(change), [])

    def test_weekly_small_change_has_no_callout(self):
        """Test changes within 20% are not called out."""
        summary = AggregationEngine.summarize([], date(2025, 1, 9), date(2025, 1, 15))
        text = format_weekly_recap(summary, comparison("10"), [])
        assert "signifikan" not in text
        assert "↑ 10.0%" in text

    @pytest.mark.parametrize("change,phrase", [
        ("3", "relatif stabil"),
        ("-4.99", "relatif stabil"),
        ("12.5", "naik 12.5%"),
        ("-10", "turun 10.0%"),
    ])
    def test_basic_insight_direction(self, change, phrase):
        """Test the deterministic month-over-month text."""
        assert phrase in basic_comparison_insight(comparison(change))

    def test_basic_insight_category_alert(self):
        """Test the largest category change is called out above 20%."""
        text = basic_comparison_insight(comparison("10", {
            "MAKANAN": Decimal("45"),
            "TRANSPORT": Decimal("-5"),
        }))
        assert "⚠️ 🍔 Makanan & Minuman naik 45.0%" in text
        assert "Rekomendasi" in text


class TestMarkdownEscaping:
    """Tests that typed names, descriptions and AI text cannot break Markdown."""

    def test_member_name_in_daily_recap(self):
        """Test underscores in a display name are escaped."""
        day = date(2025, 1, 15)
        summary = AggregationEngine.summarize([make_entry(day, 1000)], day, day)
        text = format_daily_recap(summary, "papa_bear", [])
        assert "Selamat istirahat, papa\\_bear!" in text

    def test_description_and_owner_in_family_report(self):
        """Test descriptions and owner names are escaped in reports."""
        day = date(2025, 1, 15)
        entry = make_entry(day, 75000, owner_id="200", owner_name="mama_ku",
                           description="beli kado_ulang tahun *spesial")
        summary = AggregationEngine.summarize([entry], day, day)
        text = format_daily_report(summary, "Ringkasan Harian Keluarga", AggregationEngine.member_breakdown(summary))
        assert "📝 beli kado\\_ulang tahun \\*spesial" in text
        assert "(mama\\_ku)" in text
        assert "• mama\\_ku: Rp 75.000 keluar" in text

    def test_unknown_category_key(self):
        """Test a hand-typed category key is escaped."""
        day = date(2025, 1, 15)
        summary = AggregationEngine.summarize([make_entry(day, 1000, category="JAJAN_ANAK")], day, day)
        assert "📦 JAJAN\\_ANAK" in format_daily_report(summary)

    def test_ai_insight_text(self):
        """Test model output is treated as plain text."""
        summary = AggregationEngine.summarize(january_2025_entries(), date(2025, 1, 1), date(2025, 1, 31))
        text = format_monthly_insights(summary, "Makan di luar *naik* tajam_", [])
        assert "Makan di luar \\*naik\\* tajam\\_" in text

    def test_confirmation_description(self):
        """Test the draft description is escaped."""
        text = format_confirmation(EntryDraft(
            kind=TransactionKind.EXPENSE,
            category="BELANJA",
            amount=Decimal("20000"),
            description="sabun_cair [refill]",
            occurred_date=date(2025, 1, 15),
            owner_id="100",
            owner_name="Papa",
        ))
        assert "sabun\\_cair \\[refill]" in text


class TestConversationMessages:
    """Tests for confirmation and settings messages."""

    def test_confirmation(self):
        """Test the draft summary shown before saving."""
        text = format_confirmation(EntryDraft(
            kind=TransactionKind.EXPENSE,
            category="MAKANAN",
            amount=Decimal("50000"),
            description="makan siang",
            occurred_date=date(2025, 1, 15),
            owner_id="100",
            owner_name="Papa",
        ))
        assert "Pengeluaran" in text
        assert "Rp 50.000" in text
        assert "🍔 Makanan & Minuman" in text
        assert "15 Jan 2025" in text

    def test_settings(self):
        """Test enabled and disabled marks."""
        text = format_settings(NotificationPreferences(daily=False))
        assert "☑️ Rekap harian" in text
        assert "✅ Rekap mingguan" in text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
