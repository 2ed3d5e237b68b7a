"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and stateless.
Every summary is recomputed from the ledger on each call. Nothing is
cached between calls, so two calls over an unchanged ledger always
produce identical results and there is no cache to invalidate.

All arithmetic is Decimal. `by_category` covers expenses only and always
partitions `total_expense` exactly.
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from dompet.ledger.query import LedgerQuery
from dompet.models.ledger import (
    EntryFilter,
    LedgerEntry,
    MemberBreakdown,
    TransactionKind,
    WindowComparison,
    WindowSummary,
)


ZERO = Decimal("0")
_PERCENT_PLACES = Decimal("0.01")


def month_window(month: int, year: int) -> tuple[date, date]:
    """First and last day of a month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1-12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def previous_month(month: int, year: int) -> tuple[int, int]:
    """(month, year) of the month before the given one."""
    if month == 1:
        return 12, year - 1
    return month - 1, year


def week_window(end_day: date) -> tuple[date, date]:
    """Seven-day window ending on (and including) `end_day`."""
    return end_day - timedelta(days=6), end_day


def percent_change(current: Decimal, previous: Decimal) -> Decimal:
    """
    (current - previous) / previous * 100, rounded to 2 places.

    Saturates to 0 when previous is 0.
    """
    if previous == ZERO:
        return ZERO
    change = (current - previous) / previous * Decimal("100")
    return change.quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)


class AggregationEngine:
    """
    Computes window summaries over the ledger.

    `summarize` is a pure function of its input. The window helpers
    (`daily_summary`, `weekly_summary`, `monthly_summary`) fetch the
    window's entries and delegate to it.
    """

    def __init__(self, query: LedgerQuery):
        self._query = query

    # =========================================================================
    # PURE AGGREGATION
    # =========================================================================

    @staticmethod
    def summarize(
        entries: Iterable[LedgerEntry],
        start: date,
        end: date,
        owner_id: Optional[str] = None,
    ) -> WindowSummary:
        """
        Aggregate entries in a single linear pass.

        Entries outside [start, end] or belonging to another owner are
        ignored, so callers may pass an unfiltered feed.
        """
        total_expense = ZERO
        total_income = ZERO
        by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
        income_by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
        selected = []

        for entry in entries:
            if not start <= entry.occurred_date <= end:
                continue
            if owner_id is not None and entry.owner_id != owner_id:
                continue

            selected.append(entry)
            if entry.kind == TransactionKind.EXPENSE:
                total_expense += entry.amount
                by_category[entry.category] += entry.amount
            else:
                total_income += entry.amount
                income_by_category[entry.category] += entry.amount

        # Largest first; ties keep recording order
        selected.sort(key=lambda e: (-e.amount, e.timestamp))

        return WindowSummary(
            owner_id=owner_id,
            start=start,
            end=end,
            total_expense=total_expense,
            total_income=total_income,
            balance=total_income - total_expense,
            entry_count=len(selected),
            by_category=dict(by_category),
            income_by_category=dict(income_by_category),
            entries=selected,
        )

    @staticmethod
    def compare_windows(current: WindowSummary, previous: WindowSummary) -> WindowComparison:
        """
        Compare expense totals of two windows.

        The same saturating rule is applied per expense category: a
        category absent from `previous` reports 0.
        """
        categories = sorted(set(current.by_category) | set(previous.by_category))
        per_category = {
            category: percent_change(
                current.by_category.get(category, ZERO),
                previous.by_category.get(category, ZERO),
            )
            for category in categories
        }
        return WindowComparison(
            current_total=current.total_expense,
            previous_total=previous.total_expense,
            percent_change=percent_change(current.total_expense, previous.total_expense),
            per_category_change=per_category,
        )

    @staticmethod
    def top_categories(summary: WindowSummary, n: int) -> list[tuple[str, Decimal]]:
        """Expense categories by total descending, ties by name ascending."""
        if n <= 0:
            return []
        ranked = sorted(summary.by_category.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:n]

    @classmethod
    def member_breakdown(cls, summary: WindowSummary) -> list[MemberBreakdown]:
        """
        Split a family window into one summary per owner.

        The display name is the one on the owner's most recently
        recorded entry in the window. Ordered by expense descending.
        """
        by_owner: dict[str, list[LedgerEntry]] = defaultdict(list)
        for entry in summary.entries:
            by_owner[entry.owner_id].append(entry)

        breakdown = []
        for owner_id, owned in by_owner.items():
            latest = max(owned, key=lambda e: e.timestamp)
            breakdown.append(MemberBreakdown(
                owner_id=owner_id,
                owner_name=latest.owner_name,
                summary=cls.summarize(owned, summary.start, summary.end, owner_id=owner_id),
            ))

        breakdown.sort(key=lambda b: (-b.summary.total_expense, b.owner_name))
        return breakdown

    # =========================================================================
    # WINDOWS
    # =========================================================================

    async def window_summary(
        self,
        start: date,
        end: date,
        owner_id: Optional[str] = None,
    ) -> WindowSummary:
        """
        Summary of an arbitrary closed window.

        Raises:
            StoreUnavailable: If the ledger cannot be read
        """
        entries = await self._query.fetch_entries(
            EntryFilter(owner_id=owner_id, date_from=start, date_to=end)
        )
        return self.summarize(entries, start, end, owner_id=owner_id)

    async def daily_summary(self, day: date, owner_id: Optional[str] = None) -> WindowSummary:
        return await self.window_summary(day, day, owner_id)

    async def weekly_summary(self, end_day: date, owner_id: Optional[str] = None) -> WindowSummary:
        start, end = week_window(end_day)
        return await self.window_summary(start, end, owner_id)

    async def monthly_summary(
        self,
        month: int,
        year: int,
        owner_id: Optional[str] = None,
    ) -> WindowSummary:
        """
        Summary from the 1st to the last day of the month.

        Raises:
            ValueError: If month is outside 1-12
        """
        start, end = month_window(month, year)
        return await self.window_summary(start, end, owner_id)
