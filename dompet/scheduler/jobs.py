"""
Scheduled notification jobs.

DESIGN DECISION: One job object per notification kind, each with its
own JobGuard. The guard is a check-and-set on a flag, independent of
the timer: a firing that finds its job still running is skipped and
reported, never queued. Manual triggers go through the same guard.

Inside a firing members are processed strictly one after another.
Anything that goes wrong for one member is logged, counted, and the
loop moves on.
"""

import threading
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog

from dompet.agents.insights import InsightGenerationFailure, InsightGeneratorInterface
from dompet.audit.logger import AuditLogger, create_correlation_id
from dompet.ledger.aggregation import AggregationEngine, previous_month
from dompet.ledger.members import MemberRegistry
from dompet.models.ledger import Member, utcnow
from dompet.models.notification import DispatchOutcome, JobRunReport, JobStatus, NotificationKind
from dompet.notifications.dispatcher import NotificationDispatcher
from dompet.notifications.formatting import (
    basic_comparison_insight,
    format_daily_recap,
    format_monthly_insights,
    format_weekly_recap,
)


logger = structlog.get_logger(__name__)


class JobGuard:
    """
    Idle/Running flag for one job kind.

    `try_begin` is an atomic check-and-set; it returns False if the job
    is already running. Every successful `try_begin` must be paired
    with `finish`.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._running = False

    def try_begin(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            return True

    def finish(self) -> None:
        with self._lock:
            self._running = False

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running


class SummaryJob(ABC):
    """
    Base for the scheduled jobs.

    Subclasses only decide what to say to one member; the base class
    owns the guard, the member loop, failure isolation and reporting.
    """

    kind: NotificationKind

    def __init__(
        self,
        members: MemberRegistry,
        engine: AggregationEngine,
        dispatcher: NotificationDispatcher,
        audit_logger: Optional[AuditLogger] = None,
        timezone: Optional[ZoneInfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._members = members
        self._engine = engine
        self._dispatcher = dispatcher
        self._audit = audit_logger or AuditLogger()
        self._timezone = timezone or ZoneInfo("Asia/Jakarta")
        self._clock = clock or (lambda: datetime.now(self._timezone))
        self.guard = JobGuard()

    def today(self) -> date:
        return self._clock().astimezone(self._timezone).date()

    @abstractmethod
    async def build_message(self, member: Member, today: date) -> Optional[str]:
        """
        Render this job's message for one member.

        Returns None when the member has nothing in the current window.
        """
        pass

    async def run(self) -> JobRunReport:
        """Run one firing, or report SKIPPED if a firing is in progress."""
        if not self.guard.try_begin():
            logger.warning("job_skipped_overlap", kind=self.kind.value)
            await self._audit.log_job_skipped(self.kind.value)
            now = utcnow()
            return JobRunReport(kind=self.kind, status=JobStatus.SKIPPED, started_at=now, finished_at=now)

        try:
            return await self._run_members()
        finally:
            self.guard.finish()

    async def _run_members(self) -> JobRunReport:
        correlation_id = create_correlation_id()
        report = JobRunReport(kind=self.kind, status=JobStatus.COMPLETED)
        today = self.today()

        members = await self._members.list_members()
        report.members_total = len(members)
        await self._audit.log_job_started(self.kind.value, len(members), correlation_id)

        messages: dict[str, str] = {}
        opted_out: list[str] = []
        for member in members:
            try:
                # Opted-out members are dropped before any ledger read or model call
                if not await self._dispatcher.is_enabled(member.member_id, self.kind, correlation_id=correlation_id):
                    opted_out.append(member.member_id)
                    continue
                message = await self.build_message(member, today)
            except Exception as e:
                report.members_failed += 1
                logger.exception("job_member_failed", kind=self.kind.value, member_id=member.member_id)
                await self._audit.log_member_failed(self.kind.value, member.member_id, e, correlation_id)
                continue

            if message is None:
                report.members_empty += 1
                continue
            messages[member.member_id] = message

        report.batch = await self._dispatcher.dispatch_batch(
            self.kind, messages, correlation_id=correlation_id
        )
        for member_id in opted_out:
            report.batch.record(member_id, DispatchOutcome.SKIPPED)
        report.finished_at = utcnow()

        logger.info("job_completed", **report.to_log_dict())
        await self._audit.log_job_completed(self.kind.value, report.to_log_dict(), correlation_id)
        return report


class DailySummaryJob(SummaryJob):
    """Today's recap, per member."""

    kind = NotificationKind.DAILY

    async def build_message(self, member: Member, today: date) -> Optional[str]:
        summary = await self._engine.daily_summary(today, owner_id=member.member_id)
        if summary.is_empty:
            return None
        top = self._engine.top_categories(summary, 1)
        return format_daily_recap(summary, member.display_name, top)


class WeeklySummaryJob(SummaryJob):
    """Last seven days compared with the seven days before."""

    kind = NotificationKind.WEEKLY

    async def build_message(self, member: Member, today: date) -> Optional[str]:
        current = await self._engine.weekly_summary(today, owner_id=member.member_id)
        if current.is_empty:
            return None
        previous = await self._engine.weekly_summary(today - timedelta(days=7), owner_id=member.member_id)
        comparison = self._engine.compare_windows(current, previous)
        return format_weekly_recap(current, comparison, self._engine.top_categories(current, 3))


class MonthlyInsightsJob(SummaryJob):
    """
    Current month compared with the previous one.

    The AI insight is best-effort: on InsightGenerationFailure the
    message carries a deterministic comparison instead.
    """

    kind = NotificationKind.MONTHLY

    def __init__(self, *args, insight_agent: Optional[InsightGeneratorInterface] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._insight_agent = insight_agent

    async def build_message(self, member: Member, today: date) -> Optional[str]:
        current = await self._engine.monthly_summary(today.month, today.year, owner_id=member.member_id)
        if current.is_empty:
            return None

        prev_month, prev_year = previous_month(today.month, today.year)
        previous = await self._engine.monthly_summary(prev_month, prev_year, owner_id=member.member_id)
        comparison = self._engine.compare_windows(current, previous)

        insight = await self._insight_text(member, current, previous, comparison)
        return format_monthly_insights(current, insight, self._engine.top_categories(current, 5))

    async def _insight_text(self, member, current, previous, comparison) -> str:
        if self._insight_agent is None:
            return basic_comparison_insight(comparison)
        try:
            return await self._insight_agent.summarize_comparison(current, previous)
        except InsightGenerationFailure as e:
            logger.warning("insight_fallback", member_id=member.member_id, error=str(e))
            await self._audit.log_insight_fallback(member.member_id, str(e))
            return basic_comparison_insight(comparison)
