"""
Notification Preference Store

Per-member opt-out flags for the three scheduled notification kinds.
A member with no record gets all-true defaults, which are written back
the first time they are read.
"""

import asyncio
from typing import Optional

from dompet.audit.logger import AuditLogger
from dompet.models.notification import NotificationKind, NotificationPreferences
from dompet.services.storage import KeyValueStorageInterface


class PreferenceStore:
    """Reads and merges notification preferences, keyed by member id."""

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._write_lock = asyncio.Lock()

    async def get(self, member_id: str) -> NotificationPreferences:
        """Preferences for a member; defaults (all enabled) if none stored."""
        member_id = str(member_id)
        record = await self._storage.get(member_id)
        if record is None:
            prefs = NotificationPreferences()
            await self._storage.put(member_id, prefs.model_dump())
            return prefs
        # Older records may lack a key; missing keys fall back to the default
        known = {k: v for k, v in record.items() if k in NotificationPreferences.model_fields}
        return NotificationPreferences(**known)

    async def set(self, member_id: str, patch: dict[str, bool]) -> NotificationPreferences:
        """
        Merge `patch` into the member's preferences.

        Only keys present in the patch change.

        Raises:
            ValueError: If the patch names an unknown notification kind
        """
        return await self._update(str(member_id), lambda current: patch)

    async def toggle(self, member_id: str, kind: NotificationKind) -> NotificationPreferences:
        """Flip one flag and return the new preferences."""
        return await self._update(
            str(member_id),
            lambda current: {kind.value: not current.is_enabled(kind)},
        )

    async def _update(self, member_id, make_patch) -> NotificationPreferences:
        async with self._write_lock:
            current = await self.get(member_id)
            updated = current.merged(make_patch(current))
            await self._storage.put(member_id, updated.model_dump())

        await self._audit.log_preferences_updated(member_id, updated.model_dump())
        return updated

    async def is_enabled(self, member_id: str, kind: NotificationKind) -> bool:
        prefs = await self.get(member_id)
        return prefs.is_enabled(kind)
