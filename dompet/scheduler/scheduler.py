"""
Notification Scheduler

Wires the three summary jobs to calendar triggers in the configured
timezone using APScheduler's CronTrigger.

DESIGN DECISION: Every trigger is built before anything is scheduled.
A schedule that cannot be turned into a trigger raises
ConfigurationError and the scheduler is never started, instead of
running with an undefined cadence.
"""

import asyncio
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import ValidationError

from dompet.config.settings import ConfigurationError, SchedulerSettings, parse_clock
from dompet.models.notification import JobRunReport, NotificationKind
from dompet.scheduler.jobs import SummaryJob


logger = structlog.get_logger(__name__)


def load_scheduler_settings() -> SchedulerSettings:
    """Load SCHEDULER_* settings, reporting bad values as ConfigurationError."""
    try:
        return SchedulerSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid scheduler configuration: {e}") from e


class NotificationScheduler:
    """Runs one SummaryJob per enabled notification kind."""

    def __init__(
        self,
        jobs: dict[NotificationKind, SummaryJob],
        settings: Optional[SchedulerSettings] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self._jobs = jobs
        self._settings = settings or load_scheduler_settings()
        self._scheduler = scheduler
        self.last_reports: dict[NotificationKind, JobRunReport] = {}

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def is_enabled(self, kind: NotificationKind) -> bool:
        return getattr(self._settings, f"{kind.value}_enabled")

    def build_triggers(self) -> dict[NotificationKind, CronTrigger]:
        """
        Cron triggers for every enabled kind that has a job.

        Raises:
            ConfigurationError: If a schedule value is malformed
        """
        s = self._settings
        triggers = {}
        try:
            tz = s.tzinfo
            for kind in self._jobs:
                if not self.is_enabled(kind):
                    continue
                if kind == NotificationKind.DAILY:
                    hour, minute = parse_clock(s.daily_time)
                    triggers[kind] = CronTrigger(hour=hour, minute=minute, timezone=tz)
                elif kind == NotificationKind.WEEKLY:
                    hour, minute = parse_clock(s.weekly_time)
                    triggers[kind] = CronTrigger(
                        day_of_week=s.weekly_day, hour=hour, minute=minute, timezone=tz
                    )
                elif kind == NotificationKind.MONTHLY:
                    if not 1 <= s.monthly_day <= 28:
                        raise ValueError(f"monthly_day must be 1-28, got {s.monthly_day}")
                    hour, minute = parse_clock(s.monthly_time)
                    triggers[kind] = CronTrigger(
                        day=s.monthly_day, hour=hour, minute=minute, timezone=tz
                    )
        except (ValueError, KeyError) as e:
            raise ConfigurationError(f"Invalid schedule: {e}") from e
        return triggers

    def start(self) -> None:
        """
        Schedule all enabled jobs and start the timer.

        Must be called from inside a running event loop.

        Raises:
            ConfigurationError: If any schedule is malformed
        """
        triggers = self.build_triggers()

        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone=self._settings.tzinfo)

        for kind, trigger in triggers.items():
            self._scheduler.add_job(
                self._fire,
                trigger,
                args=[kind],
                id=f"{kind.value}_summary",
                name=f"{kind.value} summary",
                misfire_grace_time=self._settings.misfire_grace_seconds,
                coalesce=True,
                replace_existing=True,
            )
            logger.info("job_scheduled", kind=kind.value, trigger=str(trigger))

        self._scheduler.start()
        logger.info("scheduler_started", timezone=self._settings.timezone, jobs=len(triggers))

    async def shutdown(self, wait: bool = False) -> None:
        """
        Stop the timer.

        AsyncIOScheduler queues its shutdown on the event loop, so yield
        once before reporting the scheduler as stopped.
        """
        if not self.running:
            return
        self._scheduler.shutdown(wait=wait)
        await asyncio.sleep(0)
        logger.info("scheduler_stopped", running=self._scheduler.running)

    async def trigger_now(self, kind: NotificationKind) -> JobRunReport:
        """
        Run a job immediately, outside its schedule.

        Goes through the same guard as timed firings, so it returns a
        SKIPPED report if that job is already running.
        """
        job = self._jobs.get(kind)
        if job is None:
            raise ValueError(f"No job registered for {kind.value}")
        report = await job.run()
        self.last_reports[kind] = report
        return report

    async def _fire(self, kind: NotificationKind) -> None:
        try:
            await self.trigger_now(kind)
        except Exception:
            # The timer must keep going; the job itself has already reset its guard
            logger.exception("job_run_failed", kind=kind.value)
