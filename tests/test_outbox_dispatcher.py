"""Tests for outbox event delivery."""

import pytest

from clinicflow.domain.entities import ContactInfo, OutboxEvent
from clinicflow.domain.statuses import OutboxEventStatus, OutboxEventType
from clinicflow.services.outbox_dispatcher import OutboxDispatcher


@pytest.fixture
def dispatcher(outbox_repo, email_sender, contacts, uow, clock) -> OutboxDispatcher:
    contacts.contacts["nurse-7"] = ContactInfo(user_id="nurse-7", email="nurse7@example.com")
    return OutboxDispatcher(outbox_repo, email_sender, contacts, uow, clock, max_attempts=2)


def cancelled_event(user_id: str = "nurse-7") -> OutboxEvent:
    return OutboxEvent(
        type=OutboxEventType.STAFF_INVITE_CANCELLED.value,
        payload={
            "inviteId": "inv-1",
            "surgicalCaseId": "case-42",
            "invitedUserId": user_id,
            "role": "SCRUB_NURSE",
        },
    )


@pytest.mark.asyncio
async def test_cancelled_invite_emails_invitee(dispatcher, outbox_repo, email_sender, uow) -> None:
    await outbox_repo.create(cancelled_event())

    summary = await dispatcher.process_pending()

    assert summary.processed == 1
    to, subject, body = email_sender.sent[0]
    assert to == "nurse7@example.com"
    assert subject == "Invitation Cancelled"
    assert "case-42" in body
    assert outbox_repo.events[0].status == OutboxEventStatus.PROCESSED
    assert outbox_repo.events[0].processed_at == dispatcher.clock.now()
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_failed_delivery_is_retried_then_failed(dispatcher, outbox_repo, email_sender) -> None:
    await outbox_repo.create(cancelled_event())
    email_sender.fail = True

    first = await dispatcher.process_pending()
    assert first.retried == 1
    assert outbox_repo.events[0].status == OutboxEventStatus.PENDING
    assert outbox_repo.events[0].attempts == 1

    second = await dispatcher.process_pending()
    assert second.failed == 1
    assert outbox_repo.events[0].status == OutboxEventStatus.FAILED
    assert "SMTP server unreachable" in outbox_repo.events[0].last_error

    third = await dispatcher.process_pending()
    assert third.processed == third.retried == third.failed == 0


@pytest.mark.asyncio
async def test_recipient_without_email_is_processed(dispatcher, outbox_repo, email_sender) -> None:
    await outbox_repo.create(cancelled_event(user_id="unknown-user"))

    summary = await dispatcher.process_pending()

    assert summary.processed == 1
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_unknown_event_type_is_marked_processed(dispatcher, outbox_repo) -> None:
    await outbox_repo.create(OutboxEvent(type="CASE_ARCHIVED", payload={}))

    summary = await dispatcher.process_pending()

    assert summary.processed == 1


@pytest.mark.asyncio
async def test_batch_limit(dispatcher, outbox_repo) -> None:
    for _ in range(3):
        await outbox_repo.create(cancelled_event())

    summary = await dispatcher.process_pending(limit=2)

    assert summary.processed == 2
    assert [e.status for e in outbox_repo.events].count(OutboxEventStatus.PENDING) == 1
