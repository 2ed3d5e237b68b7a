"""Shared fixtures and fakes. No test talks to Telegram, Sheets or Gemini."""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from dompet.agents.insights import InsightGenerationFailure, InsightGeneratorInterface
from dompet.audit.logger import AuditLogger
from dompet.config.settings import DispatchSettings
from dompet.ledger.aggregation import AggregationEngine
from dompet.ledger.members import MemberRegistry
from dompet.ledger.query import LedgerQuery
from dompet.models.ledger import LedgerEntry, TransactionKind
from dompet.notifications.dispatcher import NotificationDispatcher
from dompet.notifications.preferences import PreferenceStore
from dompet.notifications.transport import TransportFailure, TransportInterface
from dompet.services.storage import (
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    InMemoryLedgerStorage,
)
from dompet.services.storage.rows import entry_to_row


def make_entry(
    occurred: date,
    amount,
    category: str = "MAKANAN",
    kind: TransactionKind = TransactionKind.EXPENSE,
    owner_id: str = "100",
    owner_name: str = "Papa",
    description: Optional[str] = None,
    recorded_at: Optional[datetime] = None,
) -> LedgerEntry:
    return LedgerEntry(
        timestamp=recorded_at or datetime(occurred.year, occurred.month, occurred.day, 12, tzinfo=timezone.utc),
        occurred_date=occurred,
        kind=kind,
        category=category,
        amount=Decimal(str(amount)),
        description=description,
        owner_id=owner_id,
        owner_name=owner_name,
    )


def january_2025_entries(owner_id: str = "100") -> list[LedgerEntry]:
    return [
        make_entry(date(2025, 1, 5), 50000, "MAKANAN", owner_id=owner_id),
        make_entry(date(2025, 1, 10), 20000, "TRANSPORT", owner_id=owner_id),
        make_entry(date(2025, 1, 25), 5000000, "GAJI", TransactionKind.INCOME, owner_id=owner_id),
    ]


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every requested wait."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class FakeTransport(TransportInterface):
    """
    In-memory transport.

    `failures` maps recipient -> number of attempts to fail before
    succeeding. `always_fail` recipients never succeed. When `gate` is
    set, every send waits for it first.
    """

    def __init__(
        self,
        failures: Optional[dict[str, int]] = None,
        always_fail: Optional[set[str]] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.failures = dict(failures or {})
        self.always_fail = set(always_fail or ())
        self.gate = gate
        self.attempts: dict[str, int] = {}
        self.sent: list[tuple[str, str]] = []

    async def send(self, recipient_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        self.attempts[recipient_id] = self.attempts.get(recipient_id, 0) + 1
        if self.gate is not None:
            await self.gate.wait()
        if recipient_id in self.always_fail:
            raise TransportFailure(f"{recipient_id} unreachable")
        if self.failures.get(recipient_id, 0) > 0:
            self.failures[recipient_id] -= 1
            raise TransportFailure("temporary network error")
        self.sent.append((recipient_id, text))

    def messages_for(self, recipient_id: str) -> list[str]:
        return [text for rid, text in self.sent if rid == recipient_id]


class FakeInsightAgent(InsightGeneratorInterface):

    def __init__(self, text: str = "🎯 AI insight", fail: bool = False):
        self.text = text
        self.fail = fail
        self.calls = 0

    async def summarize_comparison(self, current, previous) -> str:
        self.calls += 1
        if self.fail:
            raise InsightGenerationFailure("quota exceeded")
        return self.text


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger_storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def query(ledger_storage) -> LedgerQuery:
    return LedgerQuery(ledger_storage)


@pytest.fixture
def engine(query) -> AggregationEngine:
    return AggregationEngine(query)


@pytest.fixture
def members(audit_logger) -> MemberRegistry:
    return MemberRegistry(InMemoryKeyValueStorage(), audit_logger)


@pytest.fixture
def preferences(audit_logger) -> PreferenceStore:
    return PreferenceStore(InMemoryKeyValueStorage(), audit_logger)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def dispatch_settings() -> DispatchSettings:
    return DispatchSettings(
        max_attempts=3,
        backoff_initial_seconds=1.0,
        backoff_max_seconds=4.0,
        inter_recipient_delay_seconds=0.1,
        send_timeout_seconds=15.0,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def dispatcher(transport, preferences, dispatch_settings, audit_logger, sleep) -> NotificationDispatcher:
    return NotificationDispatcher(
        transport,
        preferences,
        settings=dispatch_settings,
        audit_logger=audit_logger,
        sleep=sleep,
    )


def seed_ledger(storage: InMemoryLedgerStorage, entries: list[LedgerEntry]) -> None:
    storage.rows.extend(entry_to_row(e) for e in entries)
