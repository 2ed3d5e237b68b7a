"""
Main Orchestrator for Dompet

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (text → parse → classify → confirm → append to ledger)
2. Reports (daily/monthly, personal or family-wide)
3. Notification settings (show and toggle preferences)

and builds the scheduler that sends the daily, weekly and monthly recaps.

DESIGN DECISION: The orchestrator enforces the boundaries:
- Only registered members can record or read anything
- Nothing reaches the ledger without an explicit confirmation
- Every step is audited

Chat handlers in app/main.py only translate between Telegram and these
flows; they hold no state of their own.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

import structlog

from dompet.agents.insights import InsightAgent, InsightGeneratorInterface
from dompet.audit.logger import AuditLogger
from dompet.config import get_settings
from dompet.config.settings import AppSettings, DispatchSettings, SchedulerSettings
from dompet.conversation.parsing import parse_transaction_text
from dompet.conversation.pending import PendingActionStore
from dompet.ledger.aggregation import AggregationEngine
from dompet.ledger.members import MemberRegistry, PermissionDenied
from dompet.ledger.query import LedgerQuery
from dompet.models.categories import is_known_category
from dompet.models.ledger import EntryDraft, LedgerEntry, PendingTransaction, TransactionKind
from dompet.models.notification import NotificationKind, NotificationPreferences
from dompet.notifications.charts import Chart, daily_chart, monthly_chart
from dompet.notifications.dispatcher import NotificationDispatcher
from dompet.notifications.formatting import (
    format_daily_report,
    format_monthly_report,
    format_settings,
)
from dompet.notifications.preferences import PreferenceStore
from dompet.notifications.transport import TransportInterface
from dompet.scheduler.jobs import DailySummaryJob, MonthlyInsightsJob, WeeklySummaryJob
from dompet.scheduler.scheduler import NotificationScheduler, load_scheduler_settings
from dompet.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    JsonFileStorage,
    LedgerStorageInterface,
    StoreUnavailable,
)


logger = structlog.get_logger(__name__)


class TransactionFlow:
    """
    Orchestrates recording a transaction from chat text.

    Flow:
    1. Propose → parse the text, classify, store a pending draft
    2. Review → member sees the draft (PAUSE - require confirmation)
    3. Optionally change the category
    4. Confirm → append to the ledger, or Cancel → discard

    Human confirmation (step 4) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        query: LedgerQuery,
        members: MemberRegistry,
        pending: PendingActionStore,
        audit_logger: Optional[AuditLogger] = None,
        max_amount: Optional[Decimal] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._query = query
        self._members = members
        self._pending = pending
        self._audit = audit_logger or AuditLogger()
        self._max_amount = max_amount
        self._today = today or date.today

    async def propose(
        self,
        member_id: str,
        chat_id: str,
        text: str,
        kind: Optional[TransactionKind] = None,
    ) -> PendingTransaction:
        """
        Parse a message into a pending draft.

        `kind` is set by the /expense and /income commands and skips
        expense/income detection.

        Raises:
            PermissionDenied: If the sender is not a registered member
            TransactionParseError: If the text has no usable amount
        """
        member = await self._members.get(member_id)
        if member is None:
            raise PermissionDenied(f"{member_id} is not a registered member")

        parsed = parse_transaction_text(text, today=self._today(), max_amount=self._max_amount, kind=kind)
        draft = EntryDraft(
            kind=parsed.kind,
            category=parsed.category,
            amount=parsed.amount,
            description=parsed.description,
            occurred_date=parsed.occurred_date,
            owner_id=member.member_id,
            owner_name=member.display_name,
        )
        token = self._pending.create(chat_id, draft)

        await self._audit.log_transaction_proposed(token, member.member_id, draft.kind.value, str(draft.amount))
        return self._pending.get(token)

    def get_pending(self, token: str) -> PendingTransaction:
        return self._pending.get(token)

    async def change_category(self, token: str, category: str) -> PendingTransaction:
        """
        Raises:
            PendingActionExpired: If the token is unknown or expired
            ValueError: If the category does not fit the draft's kind
        """
        pending = self._pending.get(token)
        if not is_known_category(category, pending.draft.kind):
            raise ValueError(f"{category} is not a {pending.draft.kind.value} category")
        return self._pending.update_category(token, category)

    async def confirm(self, token: str) -> LedgerEntry:
        """
        Append the confirmed draft to the ledger.

        The pending draft is only discarded after the append succeeds,
        so a failed write can be retried with the same button.

        Raises:
            PendingActionExpired: If the token is unknown or expired
            StoreUnavailable: If the ledger could not be written
        """
        pending = self._pending.get(token)
        try:
            entry = await self._query.record(pending.draft.to_entry())
        except StoreUnavailable as e:
            await self._audit.log_external_service_error(service="google_sheets", error_message=str(e))
            raise
        self._pending.confirm(token)

        await self._audit.log_transaction_recorded(
            owner_id=entry.owner_id,
            kind=entry.kind.value,
            category=entry.category,
            amount=str(entry.amount),
            occurred_date=entry.occurred_date.isoformat(),
        )
        return entry

    async def cancel(self, token: str) -> PendingTransaction:
        pending = self._pending.cancel(token)
        await self._audit.log_transaction_cancelled(token, pending.draft.owner_id)
        return pending


@dataclass
class Report:
    """Report text, plus the chart image to send before it when there is one."""
    text: str
    chart: Optional[Chart] = None


class ReportFlow:
    """
    On-demand reports.

    Personal reports cover the requesting member's entries; family
    reports cover everyone and add a per-member breakdown.
    """

    def __init__(
        self,
        engine: AggregationEngine,
        members: MemberRegistry,
        today: Optional[Callable[[], date]] = None,
    ):
        self._engine = engine
        self._members = members
        self._today = today or date.today

    async def _require_member(self, member_id: str) -> None:
        if not await self._members.is_authorized(member_id):
            raise PermissionDenied(f"{member_id} is not a registered member")

    async def daily_report(
        self,
        member_id: str,
        family: bool = False,
        day: Optional[date] = None,
    ) -> Report:
        await self._require_member(member_id)
        day = day or self._today()

        if family:
            summary = await self._engine.daily_summary(day)
            breakdown = self._engine.member_breakdown(summary)
            return Report(
                text=format_daily_report(summary, "Ringkasan Harian Keluarga", breakdown),
                chart=daily_chart(summary, "Pengeluaran vs Pemasukan Keluarga", "📊 Visualisasi Harian Keluarga"),
            )

        summary = await self._engine.daily_summary(day, owner_id=str(member_id))
        name = await self._members.display_name(str(member_id))
        return Report(
            text=format_daily_report(summary),
            chart=daily_chart(summary, "Pengeluaran vs Pemasukan", f"📊 Visualisasi Harian - {name}"),
        )

    async def monthly_report(
        self,
        member_id: str,
        family: bool = False,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> Report:
        await self._require_member(member_id)
        today = self._today()
        month = month or today.month
        year = year or today.year

        if family:
            summary = await self._engine.monthly_summary(month, year)
            breakdown = self._engine.member_breakdown(summary)
            return Report(
                text=format_monthly_report(summary, "Ringkasan Bulanan Keluarga", breakdown),
                chart=monthly_chart(
                    summary,
                    "Pengeluaran Keluarga per Kategori",
                    "📊 Pengeluaran Keluarga per Kategori",
                ),
            )

        summary = await self._engine.monthly_summary(month, year, owner_id=str(member_id))
        name = await self._members.display_name(str(member_id))
        return Report(
            text=format_monthly_report(summary),
            chart=monthly_chart(summary, "Top Pengeluaran", f"📊 Pengeluaran per Kategori - {name}"),
        )


class SettingsFlow:
    """Notification preferences as shown in /settings."""

    def __init__(self, preferences: PreferenceStore):
        self._preferences = preferences

    async def show(self, member_id: str) -> tuple[str, NotificationPreferences]:
        prefs = await self._preferences.get(member_id)
        return format_settings(prefs), prefs

    async def toggle(self, member_id: str, kind: NotificationKind) -> tuple[str, NotificationPreferences]:
        prefs = await self._preferences.toggle(member_id, kind)
        return format_settings(prefs), prefs


@dataclass
class AppComponents:
    members: MemberRegistry
    preferences: PreferenceStore
    transactions: TransactionFlow
    reports: ReportFlow
    settings: SettingsFlow
    scheduler: NotificationScheduler
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    transport: TransportInterface,
    use_storage: bool = True,
    insight_agent: Optional[InsightGeneratorInterface] = None,
    scheduler_settings: Optional[SchedulerSettings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        transport: Chat transport used for scheduled notifications.
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against an in-memory ledger.
        insight_agent: Monthly insight generator. Defaults to Gemini when
                    GEMINI_API_KEY is configured, otherwise deterministic text.

    Raises:
        ConfigurationError: If the scheduler configuration is invalid
    """
    settings = get_settings()
    app_settings: AppSettings = settings.app
    scheduler_settings = scheduler_settings or load_scheduler_settings()
    tz = scheduler_settings.tzinfo

    sheets_client = None
    ledger_storage: LedgerStorageInterface
    audit_logger: AuditLogger

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client, timezone=tz)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            ledger_storage = InMemoryLedgerStorage(timezone=tz)
            audit_logger = AuditLogger()  # Local-only logging
    else:
        ledger_storage = InMemoryLedgerStorage(timezone=tz)
        audit_logger = AuditLogger()  # Local-only logging

    if insight_agent is None:
        try:
            insight_agent = InsightAgent()
        except Exception as e:
            logger.warning("insight_agent_not_configured", error=str(e))

    def local_today() -> date:
        return datetime.now(tz).date()

    query = LedgerQuery(ledger_storage)
    engine = AggregationEngine(query)
    members = MemberRegistry(JsonFileStorage(app_settings.members_path), audit_logger)
    preferences = PreferenceStore(JsonFileStorage(app_settings.preferences_path), audit_logger)
    pending = PendingActionStore(ttl=timedelta(minutes=app_settings.pending_ttl_minutes))

    dispatcher = NotificationDispatcher(
        transport,
        preferences,
        settings=DispatchSettings(),
        audit_logger=audit_logger,
    )

    job_args = dict(
        members=members,
        engine=engine,
        dispatcher=dispatcher,
        audit_logger=audit_logger,
        timezone=tz,
    )
    scheduler = NotificationScheduler(
        jobs={
            NotificationKind.DAILY: DailySummaryJob(**job_args),
            NotificationKind.WEEKLY: WeeklySummaryJob(**job_args),
            NotificationKind.MONTHLY: MonthlyInsightsJob(insight_agent=insight_agent, **job_args),
        },
        settings=scheduler_settings,
    )

    return AppComponents(
        members=members,
        preferences=preferences,
        transactions=TransactionFlow(
            query,
            members,
            pending,
            audit_logger=audit_logger,
            max_amount=Decimal(str(app_settings.max_transaction_amount)),
            today=local_today,
        ),
        reports=ReportFlow(engine, members, today=local_today),
        settings=SettingsFlow(preferences),
        scheduler=scheduler,
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
