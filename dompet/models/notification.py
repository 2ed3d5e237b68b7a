"""
Notification and job models.

Outcomes are plain enums and counters; nothing here talks to the
transport or the scheduler.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dompet.models.ledger import utcnow


class NotificationKind(str, Enum):
    """
    Notification cadence. Also used as the job kind: there is exactly
    one scheduled job per notification kind.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class DispatchOutcome(str, Enum):
    """Result of one dispatch to one member."""
    SENT = "sent"
    SKIPPED = "skipped"   # Member opted out of this kind
    FAILED = "failed"     # All delivery attempts failed


class JobStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"   # A run of the same kind was still in progress


class NotificationPreferences(BaseModel):
    """
    Per-member opt-out flags.

    DESIGN DECISION: Everything is enabled by default. A member who has
    never opened /settings receives all notifications.
    """
    model_config = ConfigDict(extra="forbid")

    daily: bool = True
    weekly: bool = True
    monthly: bool = True

    def is_enabled(self, kind: NotificationKind) -> bool:
        return getattr(self, kind.value)

    def merged(self, patch: dict[str, bool]) -> "NotificationPreferences":
        """Return a copy with only the keys in `patch` overwritten."""
        unknown = set(patch) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown notification kinds: {sorted(unknown)}")
        return self.model_copy(update={k: bool(v) for k, v in patch.items()})


class BatchResult(BaseModel):
    """Per-recipient outcomes of one batch, with counters for observability."""

    sent: int = 0
    skipped: int = 0
    failed: int = 0
    outcomes: dict[str, DispatchOutcome] = Field(default_factory=dict)

    def record(self, member_id: str, outcome: DispatchOutcome) -> None:
        self.outcomes[member_id] = outcome
        if outcome == DispatchOutcome.SENT:
            self.sent += 1
        elif outcome == DispatchOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def total(self) -> int:
        return self.sent + self.skipped + self.failed


class JobRunReport(BaseModel):
    """What happened during one firing of a scheduled job."""

    kind: NotificationKind
    status: JobStatus
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    members_total: int = 0
    members_empty: int = 0
    members_failed: int = 0
    batch: BatchResult = Field(default_factory=BatchResult)

    @property
    def members_notified(self) -> int:
        return self.batch.sent

    def to_log_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "status": self.status.value,
            "members_total": self.members_total,
            "members_empty": self.members_empty,
            "members_failed": self.members_failed,
            "sent": self.batch.sent,
            "skipped": self.batch.skipped,
            "failed": self.batch.failed,
        }
