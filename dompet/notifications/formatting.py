"""
Message formatting.

Everything the bot says about money goes through here, so reports,
scheduled recaps and confirmations share one currency and date format.
Messages are written for Telegram's legacy Markdown parse mode. Anything a
member typed, and anything Gemini wrote, goes through md_escape first.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from telegram.helpers import escape_markdown

from dompet.models.categories import category_display
from dompet.models.ledger import (
    EntryDraft,
    MemberBreakdown,
    TransactionKind,
    WindowComparison,
    WindowSummary,
)
from dompet.models.notification import NotificationPreferences


DIVIDER = "━━━━━━━━━━━━━━━"

_DAY_NAMES = ("Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu")
_MONTH_NAMES = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)

# Above this many entries the daily recap adds a warning line
BUSY_DAY_THRESHOLD = 10
# Week-over-week change (in percent) worth calling out
SIGNIFICANT_CHANGE = Decimal("20")


def md_escape(text) -> str:
    """Escape legacy-Markdown entity characters in free text."""
    return escape_markdown(str(text), version=1)


def _category(category: str, kind: Optional[TransactionKind] = None) -> str:
    # Hand-typed sheet rows can carry arbitrary category keys
    return md_escape(category_display(category, kind))


def format_currency(amount) -> str:
    """Format an amount as Rupiah without decimals, e.g. "Rp 1.250.000"."""
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,}".replace(",", ".")
    return f"{sign}Rp {digits}"


def month_name(month: int) -> str:
    return _MONTH_NAMES[month - 1]


def format_date(value: date, style: str = "full") -> str:
    """
    Indonesian date.

    full:  "Rabu, 15 Januari 2025"
    short: "15 Jan 2025"
    """
    if style == "short":
        return f"{value.day} {month_name(value.month)[:3]} {value.year}"
    return f"{_DAY_NAMES[value.weekday()]}, {value.day} {month_name(value.month)} {value.year}"


def format_percent(value: Decimal) -> str:
    return f"{abs(value).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}%"


def _change_arrow(change: Decimal) -> str:
    if change > 0:
        return "↑"
    if change < 0:
        return "↓"
    return "→"


def _share(part: Decimal, total: Decimal) -> str:
    if total <= 0:
        return "0.0%"
    return format_percent(part / total * Decimal("100"))


# =============================================================================
# CONFIRMATION
# =============================================================================

def format_confirmation(draft: EntryDraft) -> str:
    label = "💸 Pengeluaran" if draft.kind == TransactionKind.EXPENSE else "💰 Pemasukan"
    return (
        f"{label}\n"
        f"{DIVIDER}\n"
        f"💵 *Jumlah:* {format_currency(draft.amount)}\n"
        f"📁 *Kategori:* {_category(draft.category, draft.kind)}\n"
        f"📝 *Deskripsi:* {md_escape(draft.description or '-')}\n"
        f"📅 *Tanggal:* {format_date(draft.occurred_date, 'short')}\n"
        f"{DIVIDER}\n\n"
        f"Simpan transaksi ini?"
    )


# =============================================================================
# ON-DEMAND REPORTS
# =============================================================================

def _totals_block(summary: WindowSummary) -> list[str]:
    return [
        f"💸 Total Pengeluaran: {format_currency(summary.total_expense)}",
        f"💰 Total Pemasukan: {format_currency(summary.total_income)}",
        f"💵 Saldo: {format_currency(summary.balance)}",
    ]


def format_daily_report(
    summary: WindowSummary,
    title: str = "Ringkasan Harian",
    breakdown: Optional[list[MemberBreakdown]] = None,
) -> str:
    """Daily report listing every entry, largest first."""
    lines = [f"📊 *{title}*", f"📅 {format_date(summary.start)}", ""]
    lines += _totals_block(summary)
    lines += ["", f"📋 *Transaksi ({summary.entry_count})*", DIVIDER]

    if summary.is_empty:
        lines.append("Belum ada transaksi")
    for i, entry in enumerate(summary.entries, start=1):
        icon = "💸" if entry.kind == TransactionKind.EXPENSE else "💰"
        line = f"{i}. {icon} {format_currency(entry.amount)} - {_category(entry.category, entry.kind)}"
        if breakdown is not None:
            line += f" ({md_escape(entry.owner_name)})"
        lines.append(line)
        if entry.description:
            lines.append(f"   📝 {md_escape(entry.description)}")

    if breakdown:
        lines += ["", *_breakdown_lines(breakdown)]
    return "\n".join(lines)


def format_monthly_report(
    summary: WindowSummary,
    title: str = "Ringkasan Bulanan",
    breakdown: Optional[list[MemberBreakdown]] = None,
) -> str:
    """Monthly report with the expense share of every category."""
    lines = [
        f"📊 *{title}*",
        f"📅 {month_name(summary.start.month)} {summary.start.year}",
        "",
    ]
    lines += _totals_block(summary)
    lines += ["", "📁 *Pengeluaran per Kategori*", DIVIDER]

    ranked = sorted(summary.by_category.items(), key=lambda item: (-item[1], item[0]))
    if not ranked:
        lines.append("Belum ada data")
    for category, total in ranked:
        lines.append(
            f"{_category(category, TransactionKind.EXPENSE)}: "
            f"{format_currency(total)} ({_share(total, summary.total_expense)})"
        )

    if summary.income_by_category:
        lines += ["", "💰 *Pemasukan per Kategori*", DIVIDER]
        for category, total in sorted(summary.income_by_category.items(), key=lambda item: (-item[1], item[0])):
            lines.append(f"{_category(category, TransactionKind.INCOME)}: {format_currency(total)}")

    if breakdown:
        lines += ["", *_breakdown_lines(breakdown)]
    return "\n".join(lines)


def _breakdown_lines(breakdown: list[MemberBreakdown]) -> list[str]:
    lines = ["👨‍👩‍👧 *Per Anggota*", DIVIDER]
    for item in breakdown:
        lines.append(
            f"• {md_escape(item.owner_name)}: {format_currency(item.summary.total_expense)} "
            f"keluar, {format_currency(item.summary.total_income)} masuk "
            f"({item.summary.entry_count} transaksi)"
        )
    return lines


# =============================================================================
# SCHEDULED NOTIFICATIONS
# =============================================================================

def format_daily_recap(
    summary: WindowSummary,
    member_name: str,
    top: list[tuple[str, Decimal]],
) -> str:
    lines = [
        f"🌙 *Rekap Harian* - {format_date(summary.start)}",
        "",
        f"💰 Total Pengeluaran: {format_currency(summary.total_expense)}",
    ]
    if summary.total_income > 0:
        lines.append(f"💵 Total Pemasukan: {format_currency(summary.total_income)}")
    lines.append(f"📝 Transaksi: {summary.entry_count}")

    if top:
        category, total = top[0]
        lines.append(f"🏆 Kategori Terbanyak: {_category(category)} ({format_currency(total)})")
    if summary.entry_count > BUSY_DAY_THRESHOLD:
        lines += ["", "⚠️ Banyak transaksi hari ini!"]

    lines += ["", f"💤 Selamat istirahat, {md_escape(member_name)}!"]
    return "\n".join(lines)


def format_weekly_recap(
    summary: WindowSummary,
    comparison: WindowComparison,
    top: list[tuple[str, Decimal]],
) -> str:
    change = comparison.percent_change
    lines = [
        "📊 *Rekap Mingguan*",
        f"📅 {format_date(summary.start, 'short')} - {format_date(summary.end, 'short')}",
        "",
        f"💸 Minggu Ini: {format_currency(comparison.current_total)}",
        f"📈 vs Minggu Lalu: {_change_arrow(change)} {format_percent(change)}",
    ]

    if top:
        lines += ["", "🏆 *Top 3 Kategori:*"]
        for i, (category, total) in enumerate(top, start=1):
            lines.append(f"{i}. {_category(category)}: {format_currency(total)}")

    if change > SIGNIFICANT_CHANGE:
        lines += ["", "💡 Pengeluaran naik signifikan minggu ini!"]
    elif change < -SIGNIFICANT_CHANGE:
        lines += ["", "👍 Pengeluaran turun signifikan! Pertahankan!"]
    return "\n".join(lines)


def format_monthly_insights(
    summary: WindowSummary,
    insight_text: str,
    top: list[tuple[str, Decimal]],
) -> str:
    lines = [
        f"🎯 *Insights Bulanan - {month_name(summary.start.month)} {summary.start.year}*",
        "",
        f"💰 Total: {format_currency(summary.total_expense)}",
        f"📊 Transaksi: {summary.entry_count}",
        "",
        md_escape(insight_text.strip()),
    ]

    if top:
        lines += ["", "📈 *Pengeluaran per Kategori:*"]
        for category, total in top:
            lines.append(
                f"• {_category(category)}: {format_currency(total)} "
                f"({_share(total, summary.total_expense)})"
            )

    next_month = summary.start.month % 12 + 1
    lines += ["", f"📅 Siap untuk {month_name(next_month)}!"]
    return "\n".join(lines)


def basic_comparison_insight(comparison: WindowComparison) -> str:
    """
    Deterministic month-over-month text.

    Used whenever the AI insight cannot be generated. Returns plain text;
    format_monthly_insights escapes it like any other insight.
    """
    change = comparison.percent_change
    if abs(change) < 5:
        lines = ["🎯 Pengeluaran relatif stabil bulan ini"]
    elif change > 0:
        lines = [f"🎯 Pengeluaran naik {format_percent(change)} dibanding bulan lalu"]
    else:
        lines = [f"🎯 Pengeluaran turun {format_percent(change)} - bagus! 👍"]

    if comparison.per_category_change:
        category, cat_change = max(
            sorted(comparison.per_category_change.items()),
            key=lambda item: abs(item[1]),
        )
        if abs(cat_change) > SIGNIFICANT_CHANGE:
            direction = "naik" if cat_change > 0 else "turun"
            lines += ["", f"⚠️ {category_display(category)} {direction} {format_percent(cat_change)}"]

    lines += [
        "",
        "💡 Rekomendasi:",
        "• Review kategori dengan pengeluaran terbesar",
        "• Pertahankan kategori yang sudah efisien",
    ]
    return "\n".join(lines)


# =============================================================================
# SETTINGS
# =============================================================================

def format_settings(prefs: NotificationPreferences) -> str:
    def mark(enabled: bool) -> str:
        return "✅" if enabled else "☑️"

    return (
        "🔔 *Pengaturan Notifikasi*\n\n"
        f"{mark(prefs.daily)} Rekap harian\n"
        f"{mark(prefs.weekly)} Rekap mingguan\n"
        f"{mark(prefs.monthly)} Insights bulanan\n\n"
        "Ketuk tombol di bawah untuk mengubah."
    )
