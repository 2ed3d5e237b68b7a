"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The ledger lives in Google Sheets; members and preferences live in JSON
files. In-memory versions of each are used by the tests.
"""

from dompet.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    KeyValueStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnavailable,
)
from dompet.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)
from dompet.services.storage.json_store import JsonFileStorage
from dompet.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "StoreUnavailable",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    # Local implementations
    "InMemoryAuditStorage",
    "InMemoryKeyValueStorage",
    "InMemoryLedgerStorage",
    "JsonFileStorage",
]
