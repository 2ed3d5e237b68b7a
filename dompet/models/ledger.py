"""
Core Data Models for Dompet

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep the ledger append-only (entries are frozen)

DESIGN DECISION: Ledger entries carry the owner's display name as it was
when the entry was recorded. The name is never re-resolved from the member
roster, so historical reports show who recorded an entry under the name
they had at the time.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """
    Direction of a transaction.

    Amounts are always positive; the kind alone decides whether an entry
    adds to or subtracts from the balance.
    """
    EXPENSE = "expense"
    INCOME = "income"


class MemberRole(str, Enum):
    """Member role. The first registered member is the admin."""
    ADMIN = "admin"
    MEMBER = "member"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# LEDGER
# =============================================================================

class LedgerEntry(BaseModel):
    """
    One recorded transaction.

    CRITICAL: Entries are immutable once persisted. Corrections are made
    by recording an offsetting entry, never by editing.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the entry was recorded (ordering key)"
    )
    occurred_date: date = Field(
        ...,
        description="Calendar date the transaction belongs to"
    )
    kind: TransactionKind
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Category key; unknown keys are kept literally"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive magnitude, currency-agnostic"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Member who recorded the entry"
    )
    owner_name: str = Field(
        default="Unknown",
        description="Display name of the owner at recording time"
    )

    @field_validator('owner_name')
    @classmethod
    def default_blank_name(cls, v: str) -> str:
        return v or "Unknown"

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the balance direction applied."""
        return self.amount if self.kind == TransactionKind.INCOME else -self.amount


class EntryDraft(BaseModel):
    """
    A transaction proposed from chat input, before confirmation.

    Becomes a LedgerEntry only when the member confirms it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    kind: TransactionKind
    category: str
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None
    occurred_date: date
    owner_id: str
    owner_name: str

    def to_entry(self, recorded_at: Optional[datetime] = None) -> LedgerEntry:
        return LedgerEntry(
            timestamp=recorded_at or utcnow(),
            occurred_date=self.occurred_date,
            kind=self.kind,
            category=self.category,
            amount=self.amount,
            description=self.description,
            owner_id=self.owner_id,
            owner_name=self.owner_name,
        )


class EntryFilter(BaseModel):
    """
    Filter for ledger queries.

    Both date bounds are inclusive and match against `occurred_date`.
    """

    owner_id: Optional[str] = None
    date_from: date
    date_to: date
    kind: Optional[TransactionKind] = None

    @model_validator(mode='after')
    def validate_range(self) -> 'EntryFilter':
        if self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self

    def matches(self, entry: LedgerEntry) -> bool:
        if self.owner_id is not None and entry.owner_id != self.owner_id:
            return False
        if self.kind is not None and entry.kind != self.kind:
            return False
        return self.date_from <= entry.occurred_date <= self.date_to


# =============================================================================
# MEMBERS
# =============================================================================

class Member(BaseModel):
    """A registered household participant."""
    model_config = ConfigDict(str_strip_whitespace=True)

    member_id: str = Field(..., min_length=1)
    display_name: str = Field(default="User", min_length=1, max_length=100)
    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN


# =============================================================================
# AGGREGATES
# =============================================================================

class WindowSummary(BaseModel):
    """
    Aggregate of the ledger over one closed date window.

    `owner_id` is None for a family-wide window. `by_category` covers
    expenses only and partitions `total_expense` exactly.
    `entries` is ordered by amount descending.
    """

    owner_id: Optional[str] = None
    start: date
    end: date
    total_expense: Decimal = Decimal("0")
    total_income: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    entry_count: int = Field(default=0, ge=0)
    by_category: dict[str, Decimal] = Field(default_factory=dict)
    income_by_category: dict[str, Decimal] = Field(default_factory=dict)
    entries: list[LedgerEntry] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_totals(self) -> 'WindowSummary':
        if self.balance != self.total_income - self.total_expense:
            raise ValueError("balance must equal total_income - total_expense")
        if self.end < self.start:
            raise ValueError("Window end cannot be before start")
        return self

    @property
    def is_empty(self) -> bool:
        return self.entry_count == 0


class WindowComparison(BaseModel):
    """Change in spending between a current and a previous window."""

    current_total: Decimal
    previous_total: Decimal
    percent_change: Decimal = Field(
        ...,
        description="(current - previous) / previous * 100, 0 if previous is 0"
    )
    per_category_change: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def direction(self) -> str:
        if self.percent_change > 0:
            return "up"
        if self.percent_change < 0:
            return "down"
        return "flat"


class MemberBreakdown(BaseModel):
    """One member's share of a family window."""

    owner_id: str
    owner_name: str
    summary: WindowSummary


# =============================================================================
# CONFIRMATION WORKFLOW
# =============================================================================

class PendingTransaction(BaseModel):
    """
    A draft awaiting the member's confirm/cancel tap.

    Keyed by a generated token, not by chat message id, and always
    carries an expiry.
    """

    token: str = Field(default_factory=lambda: uuid4().hex)
    chat_id: str
    draft: EntryDraft
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


