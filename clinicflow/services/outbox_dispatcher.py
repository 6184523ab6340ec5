"""Delivery of outbox events to downstream consumers."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from clinicflow.domain.entities import OutboxEvent
from clinicflow.domain.ports import (
    ContactDirectory,
    NotificationSender,
    OutboxRepository,
    TimeSource,
    UnitOfWork,
)
from clinicflow.domain.statuses import OutboxEventStatus, OutboxEventType

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass
class DispatchSummary:
    """Counts from one dispatch pass."""

    processed: int = 0
    retried: int = 0
    failed: int = 0


class OutboxDispatcher:
    """
    Routes pending outbox events to their handlers.

    A handler error leaves the event PENDING for the next pass until
    ``max_attempts`` is reached, after which it is marked FAILED.
    """

    def __init__(
        self,
        outbox: OutboxRepository,
        sender: NotificationSender,
        contacts: ContactDirectory,
        uow: UnitOfWork,
        clock: TimeSource,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """Initialize dispatcher with its collaborators."""
        self.outbox = outbox
        self.sender = sender
        self.contacts = contacts
        self.uow = uow
        self.clock = clock
        self.max_attempts = max_attempts
        self._handlers: dict[str, Callable[[dict], Awaitable[None]]] = {
            OutboxEventType.STAFF_INVITED.value: self._on_staff_invited,
            OutboxEventType.STAFF_INVITE_ACCEPTED.value: self._on_invite_accepted,
            OutboxEventType.STAFF_INVITE_DECLINED.value: self._on_invite_declined,
            OutboxEventType.STAFF_INVITE_CANCELLED.value: self._on_invite_cancelled,
        }

    async def process_pending(self, limit: int = 50) -> DispatchSummary:
        """Process up to ``limit`` pending events and commit their new status."""
        summary = DispatchSummary()
        events = await self.outbox.find_pending(limit)

        for event in events:
            await self._dispatch(event, summary)
            await self.outbox.update(event)

        await self.uow.commit()
        if events:
            logger.info(
                "outbox_dispatch_completed",
                processed=summary.processed,
                retried=summary.retried,
                failed=summary.failed,
            )
        return summary

    async def _dispatch(self, event: OutboxEvent, summary: DispatchSummary) -> None:
        handler = self._handlers.get(event.type)
        event.attempts += 1
        try:
            if handler is None:
                logger.warning("outbox_event_unhandled", event_id=event.id, type=event.type)
            else:
                await handler(event.payload)
        except Exception as e:
            event.last_error = str(e)
            if event.attempts >= self.max_attempts:
                event.status = OutboxEventStatus.FAILED
                summary.failed += 1
                logger.error("outbox_event_failed", event_id=event.id, type=event.type, error=str(e))
            else:
                summary.retried += 1
                logger.warning(
                    "outbox_event_retry_scheduled",
                    event_id=event.id,
                    type=event.type,
                    attempts=event.attempts,
                    error=str(e),
                )
            return

        event.status = OutboxEventStatus.PROCESSED
        event.processed_at = self.clock.now()
        event.last_error = None
        summary.processed += 1

    async def _email(self, user_id: str | None, subject: str, body: str) -> None:
        if not user_id:
            logger.warning("outbox_event_missing_recipient", subject=subject)
            return
        contact = await self.contacts.get_contact(user_id)
        if contact is None or not contact.email:
            logger.info("outbox_recipient_without_email", user_id=user_id, subject=subject)
            return
        await self.sender.send_email(contact.email, subject, body)

    async def _on_staff_invited(self, payload: dict) -> None:
        await self._email(
            payload.get("invitedUserId"),
            "Surgical Team Invitation",
            f"You have been invited to join surgical case {payload.get('surgicalCaseId')} "
            f"as {payload.get('role')}.",
        )

    async def _on_invite_accepted(self, payload: dict) -> None:
        await self._email(
            payload.get("invitedByUserId"),
            "Invitation Accepted",
            f"Your invitation for surgical case {payload.get('surgicalCaseId')} "
            f"({payload.get('role')}) was accepted.",
        )

    async def _on_invite_declined(self, payload: dict) -> None:
        await self._email(
            payload.get("invitedByUserId"),
            "Invitation Declined",
            f"Your invitation for surgical case {payload.get('surgicalCaseId')} "
            f"({payload.get('role')}) was declined.",
        )

    async def _on_invite_cancelled(self, payload: dict) -> None:
        await self._email(
            payload.get("invitedUserId") or payload.get("userId"),
            "Invitation Cancelled",
            f"Your invitation to join surgical case {payload.get('surgicalCaseId')} "
            f"as {payload.get('role')} has been cancelled.",
        )
