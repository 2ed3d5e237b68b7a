"""
Notification Dispatcher

Delivers rendered messages to members over an unreliable transport.

DESIGN DECISION: Delivery failures are never fatal and never shown to
the member. Each recipient gets a bounded number of attempts with
exponential backoff; after that the outcome is FAILED, counted, and
logged for the operator. One slow or broken recipient cannot stall the
batch beyond its own retry budget, because every attempt has its own
timeout.
"""

import asyncio
from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dompet.audit.logger import AuditLogger
from dompet.config.settings import DispatchSettings
from dompet.models.notification import BatchResult, DispatchOutcome, NotificationKind
from dompet.notifications.preferences import PreferenceStore
from dompet.notifications.transport import TransportFailure, TransportInterface


logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    """
    Preference-aware, retrying message delivery.

    `sleep` is used for both backoff waits and the pause between
    recipients; tests pass a recorder instead of asyncio.sleep.
    """

    def __init__(
        self,
        transport: TransportInterface,
        preferences: PreferenceStore,
        settings: Optional[DispatchSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        parse_mode: Optional[str] = None,
    ):
        self._transport = transport
        self._preferences = preferences
        self._settings = settings or DispatchSettings()
        self._audit = audit_logger or AuditLogger()
        self._sleep = sleep
        self._parse_mode = parse_mode

    async def is_enabled(
        self,
        member_id: str,
        kind: NotificationKind,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Check the member's preference for `kind`.

        A disabled kind is logged and audited as SKIPPED here, so callers
        can drop the member before rendering anything.
        """
        member_id = str(member_id)
        if await self._preferences.is_enabled(member_id, kind):
            return True
        logger.info("notification_skipped", member_id=member_id, kind=kind.value)
        await self._audit.log_notification_outcome(
            member_id, kind.value, DispatchOutcome.SKIPPED.value, 0,
            correlation_id=correlation_id,
        )
        return False

    async def dispatch(
        self,
        member_id: str,
        kind: NotificationKind,
        rendered_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> DispatchOutcome:
        """
        Deliver one message, honoring the member's preferences.

        Returns SKIPPED if the member disabled `kind`, SENT on the first
        successful attempt, FAILED once every attempt has failed.
        """
        member_id = str(member_id)
        if not await self.is_enabled(member_id, kind, correlation_id=correlation_id):
            return DispatchOutcome.SKIPPED

        attempts = 0
        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    await self._send_once(member_id, rendered_message)
        except TransportFailure as e:
            logger.error(
                "notification_failed",
                member_id=member_id,
                kind=kind.value,
                attempts=attempts,
                error=str(e),
            )
            await self._audit.log_notification_outcome(
                member_id, kind.value, DispatchOutcome.FAILED.value, attempts,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return DispatchOutcome.FAILED

        logger.info("notification_sent", member_id=member_id, kind=kind.value, attempts=attempts)
        await self._audit.log_notification_outcome(
            member_id, kind.value, DispatchOutcome.SENT.value, attempts,
            correlation_id=correlation_id,
        )
        return DispatchOutcome.SENT

    async def dispatch_batch(
        self,
        kind: NotificationKind,
        messages: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> BatchResult:
        """
        Dispatch to several members in order, pausing between recipients.

        `messages` maps member id to the rendered text for that member.
        """
        result = BatchResult()
        for index, (member_id, text) in enumerate(messages.items()):
            if index > 0:
                await self._sleep(self._settings.inter_recipient_delay_seconds)
            try:
                outcome = await self.dispatch(member_id, kind, text, correlation_id=correlation_id)
            except Exception as e:
                # e.g. the preference store could not be read
                logger.exception("notification_dispatch_error", member_id=member_id, kind=kind.value)
                await self._audit.log_notification_outcome(
                    member_id, kind.value, DispatchOutcome.FAILED.value, 0,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                outcome = DispatchOutcome.FAILED
            result.record(str(member_id), outcome)

        logger.info(
            "notification_batch_finished",
            kind=kind.value,
            sent=result.sent,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result

    def _retrying(self) -> AsyncRetrying:
        # Waits: initial, 2*initial, ... capped at backoff_max_seconds
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(
                multiplier=self._settings.backoff_initial_seconds,
                min=self._settings.backoff_initial_seconds,
                max=self._settings.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(TransportFailure),
            sleep=self._sleep,
            reraise=True,
        )

    async def _send_once(self, member_id: str, text: str) -> None:
        try:
            await asyncio.wait_for(
                self._transport.send(member_id, text, parse_mode=self._parse_mode),
                timeout=self._settings.send_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TransportFailure(
                f"Send timed out after {self._settings.send_timeout_seconds}s"
            ) from e
