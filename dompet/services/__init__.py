"""Services package."""

from dompet.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    InMemoryLedgerStorage,
    JsonFileStorage,
    KeyValueStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnavailable,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStorage",
    "InMemoryLedgerStorage",
    "JsonFileStorage",
    "KeyValueStorageInterface",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
    "StoreUnavailable",
]
