"""
Member Registry

The roster of household members allowed to use the bot. Membership is
deliberately simple: the very first member to register becomes the
admin, everybody after that is a plain member, and only the admin can
remove people.

Removing or renaming a member never touches the ledger. Historical
entries keep their `owner_id` and the `owner_name` they were recorded
with.
"""

from typing import Optional

from dompet.audit.logger import AuditLogger
from dompet.models.ledger import Member, MemberRole
from dompet.services.storage import DuplicateError, KeyValueStorageInterface, NotFoundError


class PermissionDenied(Exception):
    """The acting member is not allowed to perform this operation."""
    pass


class MemberRegistry:
    """Member roster backed by a key-value store (keyed by member id)."""

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def register(self, member_id: str, display_name: Optional[str] = None) -> Member:
        """
        Register a new member.

        The first member becomes ADMIN.

        Raises:
            DuplicateError: If the member is already registered
        """
        member_id = str(member_id)
        if await self._storage.get(member_id) is not None:
            raise DuplicateError(f"Member {member_id} is already registered")

        is_first = not await self._storage.items()
        member = Member(
            member_id=member_id,
            display_name=(display_name or "").strip() or "User",
            role=MemberRole.ADMIN if is_first else MemberRole.MEMBER,
        )
        await self._storage.put(member_id, member.model_dump(mode="json"))

        await self._audit.log_member_registered(member.member_id, member.display_name, member.role.value)
        return member

    async def get(self, member_id: str) -> Optional[Member]:
        record = await self._storage.get(str(member_id))
        if record is None:
            return None
        return Member.model_validate(record)

    async def list_members(self) -> list[Member]:
        """All members in registration order."""
        records = await self._storage.items()
        return [Member.model_validate(r) for r in records.values()]

    async def count(self) -> int:
        return len(await self._storage.items())

    async def is_authorized(self, member_id: str) -> bool:
        return await self.get(member_id) is not None

    async def is_admin(self, member_id: str) -> bool:
        member = await self.get(member_id)
        return member is not None and member.is_admin

    async def display_name(self, member_id: str) -> str:
        member = await self.get(member_id)
        return member.display_name if member else "Unknown"

    async def rename(self, member_id: str, new_name: str) -> Member:
        """
        Change a member's display name.

        Only future ledger entries carry the new name.

        Raises:
            NotFoundError: If the member is not registered
            ValueError: If the new name is blank
        """
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValueError("Display name cannot be empty")

        member = await self.get(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found")

        old_name = member.display_name
        updated = member.model_copy(update={"display_name": new_name})
        await self._storage.put(updated.member_id, updated.model_dump(mode="json"))

        await self._audit.log_member_renamed(updated.member_id, old_name, new_name)
        return updated

    async def remove(self, admin_id: str, member_id: str) -> Member:
        """
        Remove a member from the roster.

        Raises:
            PermissionDenied: If the actor is not an admin, or removes themselves
            NotFoundError: If the member is not registered
        """
        admin_id, member_id = str(admin_id), str(member_id)
        if not await self.is_admin(admin_id):
            raise PermissionDenied("Only admins can remove members")
        if admin_id == member_id:
            raise PermissionDenied("Admins cannot remove themselves")

        member = await self.get(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found")

        await self._storage.delete(member_id)
        await self._audit.log_member_removed(admin_id, member_id)
        return member
