"""
JSON file key-value storage.

Holds the member roster and notification preferences, one JSON
document per file:

    {"records": {"<member id>": {...}, ...}}

The whole file is rewritten on every put, through a temp file and an
atomic rename, so a crash mid-write leaves the previous version intact.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

from dompet.services.storage.interface import KeyValueStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class JsonFileStorage(KeyValueStorageInterface):
    """Key-value records persisted to a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._records: Optional[dict[str, dict]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, dict]:
        if self._records is None:
            if self._path.exists():
                try:
                    data = json.loads(self._path.read_text(encoding="utf-8"))
                except (OSError, json.JSONDecodeError) as e:
                    raise StorageError(f"Cannot read {self._path}: {e}")
                self._records = dict(data.get("records", {}))
            else:
                self._records = {}
        return self._records

    def _flush(self, records: dict[str, dict]) -> None:
        payload = json.dumps({"records": records}, indent=2, ensure_ascii=False)
        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Cannot write {self._path}: {e}")

    def _commit(self, records: dict[str, dict]) -> None:
        # The cache only moves once the file holds the same records
        self._flush(records)
        self._records = records

    async def get(self, key: str) -> Optional[dict]:
        async with self._lock:
            record = self._load().get(key)
            return dict(record) if record is not None else None

    async def put(self, key: str, value: dict) -> None:
        async with self._lock:
            self._commit({**self._load(), key: dict(value)})

    async def delete(self, key: str) -> bool:
        async with self._lock:
            records = self._load()
            if key not in records:
                return False
            self._commit({k: v for k, v in records.items() if k != key})
            return True

    async def items(self) -> dict[str, dict]:
        async with self._lock:
            return {k: dict(v) for k, v in self._load().items()}
