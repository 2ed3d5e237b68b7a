"""
Audit Models for Dompet

An AuditEvent is the operator's view of what happened: a transaction
recorded, a member removed, a scheduled recap that could not be
delivered. Failed notifications are never shown to members, so this
trail is where they surface.

Events are append-only and are never edited once written.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from dompet.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_PROPOSED = "transaction_proposed"
    TRANSACTION_CANCELLED = "transaction_cancelled"
    TRANSACTION_RECORDED = "transaction_recorded"

    # Members
    MEMBER_REGISTERED = "member_registered"
    MEMBER_RENAMED = "member_renamed"
    MEMBER_REMOVED = "member_removed"
    PREFERENCES_UPDATED = "preferences_updated"

    # Scheduled jobs
    JOB_STARTED = "job_started"
    JOB_SKIPPED = "job_skipped"
    JOB_COMPLETED = "job_completed"
    MEMBER_PROCESSING_FAILED = "member_processing_failed"

    # Notifications
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_SKIPPED = "notification_skipped"
    NOTIFICATION_FAILED = "notification_failed"
    INSIGHT_FALLBACK = "insight_fallback"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_SHEET_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """One line of the audit trail."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When it happened (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What the event is about: a member, a job kind, a pending token...
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Shared by every event of one job run or one chat flow"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    is_user_action: bool = Field(
        default=False,
        description="Triggered by a member's chat message rather than the scheduler"
    )

    def to_log_dict(self) -> dict:
        """Flatten for structlog."""
        return self.model_dump(mode="json")

    def to_sheets_row(self) -> list:
        """Row in AUDIT_SHEET_COLUMNS order."""
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]

    @classmethod
    def from_sheets_row(cls, row: list[str]) -> "AuditEvent":
        """
        Inverse of to_sheets_row.

        Short rows are padded; raises ValueError for anything that does
        not decode.
        """
        cells = dict(zip(AUDIT_SHEET_COLUMNS, list(row) + [""] * len(AUDIT_SHEET_COLUMNS)))
        return cls(
            event_id=UUID(cells["event_id"]),
            timestamp=datetime.fromisoformat(cells["timestamp"]),
            event_type=AuditEventType(cells["event_type"]),
            severity=AuditSeverity(cells["severity"]),
            entity_type=cells["entity_type"] or None,
            entity_id=cells["entity_id"] or None,
            correlation_id=UUID(cells["correlation_id"]) if cells["correlation_id"] else None,
            description=cells["description"],
            details=json.loads(cells["details_json"]) if cells["details_json"] else {},
            error_message=cells["error_message"] or None,
            is_user_action=cells["is_user_action"].lower() == "true",
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_recorded(owner_id, kind, category, amount)
        event = AuditEventBuilder.job_completed(kind, counts, correlation_id)
    """

    @staticmethod
    def transaction_proposed(
        token: str,
        owner_id: str,
        kind: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_PROPOSED,
            entity_type="transaction",
            entity_id=token,
            description=f"Transaction proposed by {owner_id}: {kind} {amount}",
            details={"owner_id": owner_id, "kind": kind, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_cancelled(token: str, owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CANCELLED,
            entity_type="transaction",
            entity_id=token,
            description="Member cancelled a pending transaction",
            details={"owner_id": owner_id},
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        owner_id: str,
        kind: str,
        category: str,
        amount: str,
        occurred_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="member",
            entity_id=owner_id,
            description=f"Recorded {kind} {category} {amount} on {occurred_date}",
            details={
                "kind": kind,
                "category": category,
                "amount": amount,
                "occurred_date": occurred_date,
            },
            is_user_action=True,
        )

    @staticmethod
    def member_registered(member_id: str, display_name: str, role: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_REGISTERED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member registered: {display_name} ({role})",
            details={"display_name": display_name, "role": role},
            is_user_action=True,
        )

    @staticmethod
    def member_renamed(member_id: str, old_name: str, new_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_RENAMED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member renamed: {old_name} -> {new_name}",
            details={"old_name": old_name, "new_name": new_name},
            is_user_action=True,
        )

    @staticmethod
    def member_removed(admin_id: str, member_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_REMOVED,
            severity=AuditSeverity.WARNING,
            entity_type="member",
            entity_id=member_id,
            description=f"Member removed by admin {admin_id}",
            details={"admin_id": admin_id},
            is_user_action=True,
        )

    @staticmethod
    def preferences_updated(member_id: str, preferences: dict) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREFERENCES_UPDATED,
            entity_type="member",
            entity_id=member_id,
            description="Notification preferences updated",
            details=preferences,
            is_user_action=True,
        )

    @staticmethod
    def job_started(kind: str, member_count: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.JOB_STARTED,
            entity_type="job",
            entity_id=kind,
            correlation_id=correlation_id,
            description=f"{kind} job started for {member_count} members",
            details={"member_count": member_count},
        )

    @staticmethod
    def job_skipped(kind: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.JOB_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="job",
            entity_id=kind,
            description=f"{kind} job skipped: previous run still in progress",
        )

    @staticmethod
    def job_completed(kind: str, counts: dict, correlation_id: UUID) -> AuditEvent:
        severity = AuditSeverity.WARNING if counts.get("members_failed") or counts.get("failed") else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.JOB_COMPLETED,
            severity=severity,
            entity_type="job",
            entity_id=kind,
            correlation_id=correlation_id,
            description=(
                f"{kind} job completed: {counts.get('sent', 0)} sent, "
                f"{counts.get('skipped', 0)} skipped, {counts.get('failed', 0)} failed"
            ),
            details=counts,
        )

    @staticmethod
    def member_processing_failed(
        kind: str,
        member_id: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_PROCESSING_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"{kind} job failed for member: {error_type}",
            error_message=error_message,
            details={"kind": kind, "error_type": error_type},
        )

    @staticmethod
    def notification_outcome(
        member_id: str,
        kind: str,
        outcome: str,
        attempts: int,
        error_message: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = {
            "sent": AuditEventType.NOTIFICATION_SENT,
            "skipped": AuditEventType.NOTIFICATION_SKIPPED,
        }.get(outcome, AuditEventType.NOTIFICATION_FAILED)
        severity = (
            AuditSeverity.ERROR
            if event_type == AuditEventType.NOTIFICATION_FAILED
            else AuditSeverity.INFO
        )
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"{kind} notification {outcome} after {attempts} attempt(s)",
            error_message=error_message,
            details={"kind": kind, "attempts": attempts},
        )

    @staticmethod
    def insight_fallback(member_id: str, error_message: str, correlation_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description="AI insight unavailable, used deterministic comparison",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
