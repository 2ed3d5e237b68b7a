"""
Storage interfaces

Three narrow collaborators sit behind these ABCs: the ledger (Sheets
or in-memory), a key-value store for members and preferences (JSON
file or in-memory), and the audit trail.

DESIGN DECISION: The ledger only appends rows and hands back the raw
feed. All filtering and aggregation happens in `dompet.ledger`,
client-side, so any backend that can append a row will do.
"""

from abc import ABC, abstractmethod
from typing import Optional

from dompet.models.ledger import LedgerEntry
from dompet.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Append-only transaction log.

    Implementations own the durable rows. Nothing in the core mutates
    or deletes an existing row.
    """

    @abstractmethod
    async def append(self, entry: LedgerEntry) -> bool:
        """
        Append one entry to the log.

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def query_all(self) -> list[list[str]]:
        """
        Return every data row (header excluded), as stored.

        Rows are raw cell values in LEDGER_COLUMNS order. Rows may be
        short, blank or malformed; callers decide what to skip.

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        pass


class KeyValueStorageInterface(ABC):
    """
    Durable key-value records.

    Used for member records and notification preferences. Writes are
    always scoped to one key, so no multi-key transactions are needed.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        """Return the record for `key`, or None if absent."""
        pass

    @abstractmethod
    async def put(self, key: str, value: dict) -> None:
        """Create or replace the record for `key`."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete the record for `key`. Returns False if it was absent."""
        pass

    @abstractmethod
    async def items(self) -> dict[str, dict]:
        """Return all records, in insertion order."""
        pass


class AuditStorageInterface(ABC):
    """Append-only audit trail."""

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Store one event. Returns False instead of raising on a failed write."""
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Newest first, at most `limit`."""
        pass


class StorageError(Exception):
    """Root of every storage failure."""
    pass


class NotFoundError(StorageError):
    """No record under that key."""
    pass


class DuplicateError(StorageError):
    """A record already exists under that key."""
    pass


class StoreUnavailable(StorageError):
    """
    The backing store could not be reached.

    Never retried by the storage or query layer; the caller decides.
    """
    pass
