"""
Pending confirmation store.

Drafts waiting for the member's Save/Cancel tap live here, keyed by a
generated token that is embedded in the inline button's callback data.
Every entry carries an expiry; an expired token behaves exactly like
an unknown one.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from dompet.models.ledger import EntryDraft, PendingTransaction, utcnow


logger = structlog.get_logger(__name__)


class PendingActionExpired(Exception):
    """The token is unknown, already used, or past its expiry."""
    pass


class PendingActionStore:
    """In-process, time-bounded map of token -> PendingTransaction."""

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = utcnow,
    ):
        self._ttl = ttl
        self._clock = clock
        self._items: dict[str, PendingTransaction] = {}

    def __len__(self) -> int:
        return len(self._items)

    def create(self, chat_id: str, draft: EntryDraft) -> str:
        """Store a draft and return its token."""
        self.evict_expired()
        now = self._clock()
        pending = PendingTransaction(
            chat_id=str(chat_id),
            draft=draft,
            created_at=now,
            expires_at=now + self._ttl,
        )
        self._items[pending.token] = pending
        return pending.token

    def get(self, token: str) -> PendingTransaction:
        """
        Raises:
            PendingActionExpired: If the token is unknown or expired
        """
        pending = self._items.get(token)
        if pending is None:
            raise PendingActionExpired(f"Unknown confirmation token {token}")
        if pending.is_expired(self._clock()):
            del self._items[token]
            raise PendingActionExpired(f"Confirmation token {token} expired")
        return pending

    def confirm(self, token: str) -> PendingTransaction:
        """Remove and return the pending draft, ready to be recorded."""
        pending = self.get(token)
        del self._items[token]
        return pending

    def cancel(self, token: str) -> PendingTransaction:
        pending = self.get(token)
        del self._items[token]
        return pending

    def update_category(self, token: str, category: str) -> PendingTransaction:
        """Swap the draft's category; the expiry is unchanged."""
        pending = self.get(token)
        draft = pending.draft.model_copy(update={"category": category})
        updated = pending.model_copy(update={"draft": draft})
        self._items[token] = updated
        return updated

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        """Drop every expired entry. Returns how many were dropped."""
        now = now or self._clock()
        expired = [t for t, p in self._items.items() if p.is_expired(now)]
        for token in expired:
            del self._items[token]
        if expired:
            logger.info("pending_evicted", count=len(expired))
        return len(expired)
