"""Scheduled notification jobs."""

from dompet.scheduler.jobs import (
    DailySummaryJob,
    JobGuard,
    MonthlyInsightsJob,
    SummaryJob,
    WeeklySummaryJob,
)
from dompet.scheduler.scheduler import NotificationScheduler, load_scheduler_settings

__all__ = [
    "DailySummaryJob",
    "JobGuard",
    "MonthlyInsightsJob",
    "NotificationScheduler",
    "SummaryJob",
    "WeeklySummaryJob",
    "load_scheduler_settings",
]
