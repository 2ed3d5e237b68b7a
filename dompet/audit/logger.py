"""
Audit Logger

Every ledger write, member change, scheduled run and delivery attempt
becomes an AuditEvent. Each event goes to the JSON log and, when Sheets
is configured, to the AuditLog worksheet.

Members are never told that a notification failed. This log, and the
counters in JobRunReport, are the only place those failures show up.
A broken AuditLog sheet is itself only logged: audit writes never raise
into the flow that produced them.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from dompet.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from dompet.services.storage import AuditStorageInterface


structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """Writes AuditEvents to the local log and, optionally, an audit store."""

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("dompet.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when the audit store rejected the event; with
        no store configured the local log line is enough.
        """
        fields = event.to_log_dict()
        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **fields)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **fields)
        else:
            self._logger.info("audit_event", **fields)

        if self._storage is None:
            return True
        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error("audit_store_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def log_transaction_proposed(self, token: str, owner_id: str, kind: str, amount: str) -> None:
        await self.log(AuditEventBuilder.transaction_proposed(token, owner_id, kind, amount))

    async def log_transaction_cancelled(self, token: str, owner_id: str) -> None:
        await self.log(AuditEventBuilder.transaction_cancelled(token, owner_id))

    async def log_transaction_recorded(
        self,
        owner_id: str,
        kind: str,
        category: str,
        amount: str,
        occurred_date: str,
    ) -> None:
        """Log a ledger append."""
        await self.log(AuditEventBuilder.transaction_recorded(
            owner_id=owner_id,
            kind=kind,
            category=category,
            amount=amount,
            occurred_date=occurred_date,
        ))

    async def log_member_registered(self, member_id: str, display_name: str, role: str) -> None:
        await self.log(AuditEventBuilder.member_registered(member_id, display_name, role))

    async def log_member_renamed(self, member_id: str, old_name: str, new_name: str) -> None:
        await self.log(AuditEventBuilder.member_renamed(member_id, old_name, new_name))

    async def log_member_removed(self, admin_id: str, member_id: str) -> None:
        await self.log(AuditEventBuilder.member_removed(admin_id, member_id))

    async def log_preferences_updated(self, member_id: str, preferences: dict) -> None:
        await self.log(AuditEventBuilder.preferences_updated(member_id, preferences))

    async def log_job_started(self, kind: str, member_count: int, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.job_started(kind, member_count, correlation_id))

    async def log_job_skipped(self, kind: str) -> None:
        await self.log(AuditEventBuilder.job_skipped(kind))

    async def log_job_completed(self, kind: str, counts: dict, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.job_completed(kind, counts, correlation_id))

    async def log_member_failed(
        self,
        kind: str,
        member_id: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        """Log a per-member failure inside a scheduled batch."""
        await self.log(AuditEventBuilder.member_processing_failed(
            kind=kind,
            member_id=member_id,
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    async def log_notification_outcome(
        self,
        member_id: str,
        kind: str,
        outcome: str,
        attempts: int,
        error_message: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.notification_outcome(
            member_id=member_id,
            kind=kind,
            outcome=outcome,
            attempts=attempts,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_insight_fallback(
        self,
        member_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.insight_fallback(member_id, error_message, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Unexpected failure outside a specific service (e.g. a chat handler)."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Sheets, Gemini or Telegram failed."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """New id shared by every event of one job run or chat flow."""
    return uuid4()
