"""
Data Models Package

This package contains all Pydantic models used in Dompet.
All data flowing through the system must conform to these schemas.
"""

from dompet.models.ledger import (
    EntryDraft,
    EntryFilter,
    LedgerEntry,
    Member,
    MemberBreakdown,
    MemberRole,
    PendingTransaction,
    TransactionKind,
    WindowComparison,
    WindowSummary,
)
from dompet.models.notification import (
    BatchResult,
    DispatchOutcome,
    JobRunReport,
    JobStatus,
    NotificationKind,
    NotificationPreferences,
)
from dompet.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "EntryDraft",
    "EntryFilter",
    "LedgerEntry",
    "Member",
    "MemberBreakdown",
    "MemberRole",
    "PendingTransaction",
    "TransactionKind",
    "WindowComparison",
    "WindowSummary",
    # Notification models
    "BatchResult",
    "DispatchOutcome",
    "JobRunReport",
    "JobStatus",
    "NotificationKind",
    "NotificationPreferences",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
