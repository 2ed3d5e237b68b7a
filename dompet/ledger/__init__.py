"""Ledger access: queries, aggregation and the member roster."""

from dompet.ledger.aggregation import (
    AggregationEngine,
    month_window,
    percent_change,
    previous_month,
    week_window,
)
from dompet.ledger.members import MemberRegistry, PermissionDenied
from dompet.ledger.query import LedgerQuery

__all__ = [
    "AggregationEngine",
    "LedgerQuery",
    "MemberRegistry",
    "PermissionDenied",
    "month_window",
    "percent_change",
    "previous_month",
    "week_window",
]
