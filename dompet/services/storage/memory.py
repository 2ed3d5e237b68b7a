"""In-memory storage backends, for tests and local runs without Sheets."""

from datetime import tzinfo
from typing import Optional

from dompet.models.audit import AuditEvent
from dompet.models.ledger import LedgerEntry
from dompet.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStorageInterface,
    LedgerStorageInterface,
    StoreUnavailable,
)
from dompet.services.storage.rows import entry_to_row


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Ledger kept as a list of raw rows, exactly like the sheet would.

    Set `available = False` to simulate an unreachable backend.
    """

    def __init__(self, rows: Optional[list[list[str]]] = None, timezone: Optional[tzinfo] = None):
        self.rows: list[list[str]] = [list(r) for r in rows or []]
        self.timezone = timezone
        self.available = True
        self.read_count = 0

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailable("In-memory ledger marked unavailable")

    async def append(self, entry: LedgerEntry) -> bool:
        self._check()
        self.rows.append(entry_to_row(entry, self.timezone))
        return True

    async def query_all(self) -> list[list[str]]:
        self._check()
        self.read_count += 1
        return [list(r) for r in self.rows]


class InMemoryKeyValueStorage(KeyValueStorageInterface):

    def __init__(self):
        self.records: dict[str, dict] = {}

    async def get(self, key: str) -> Optional[dict]:
        record = self.records.get(key)
        return dict(record) if record is not None else None

    async def put(self, key: str, value: dict) -> None:
        self.records[key] = dict(value)

    async def delete(self, key: str) -> bool:
        return self.records.pop(key, None) is not None

    async def items(self) -> dict[str, dict]:
        return {k: dict(v) for k, v in self.records.items()}


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
