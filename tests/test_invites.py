"""Tests for staff invite cancellation."""

from uuid import uuid4

import pytest

from clinicflow.core.exceptions import (
    ConflictDetectedException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from clinicflow.domain.entities import StaffInvite
from clinicflow.domain.statuses import InviteStatus, OutboxEventStatus, OutboxEventType
from clinicflow.services.invite_service import InviteService

INVITER = "surgeon-1"


@pytest.fixture
def pending_invite(invite_repo) -> StaffInvite:
    return invite_repo.add(
        StaffInvite(
            id=uuid4(),
            surgical_case_id="case-42",
            invited_by_user_id=INVITER,
            invited_user_id="nurse-7",
            invited_role="SCRUB_NURSE",
        )
    )


@pytest.mark.asyncio
async def test_cancel_invite_writes_outbox_event(
    ctx, pending_invite, invite_repo, outbox_repo, uow, email_sender
) -> None:
    result = await InviteService(ctx).cancel_invite(pending_invite.id, INVITER)

    assert result.status == InviteStatus.CANCELLED
    assert result.cancelled_at == ctx.clock.now()
    assert invite_repo.rows[pending_invite.id].status == InviteStatus.CANCELLED

    [event] = outbox_repo.events
    assert event.type == OutboxEventType.STAFF_INVITE_CANCELLED.value
    assert event.status == OutboxEventStatus.PENDING
    assert event.payload == {
        "inviteId": str(pending_invite.id),
        "surgicalCaseId": "case-42",
        "invitedUserId": "nurse-7",
        "role": "SCRUB_NURSE",
    }
    assert uow.commits == 1
    # Notification is left to the outbox consumer
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_only_inviter_can_cancel(ctx, pending_invite, outbox_repo) -> None:
    with pytest.raises(ForbiddenException) as exc_info:
        await InviteService(ctx).cancel_invite(pending_invite.id, "someone-else")

    assert exc_info.value.message == "Only the user who sent this invite can cancel it"
    assert outbox_repo.events == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [InviteStatus.ACCEPTED, InviteStatus.DECLINED, InviteStatus.CANCELLED],
)
async def test_only_pending_invites_can_be_cancelled(ctx, invite_repo, outbox_repo, status) -> None:
    invite = invite_repo.add(
        StaffInvite(
            id=uuid4(),
            surgical_case_id="case-42",
            invited_by_user_id=INVITER,
            invited_user_id="nurse-7",
            invited_role="SCRUB_NURSE",
            status=status,
        )
    )

    with pytest.raises(InvalidTransitionException):
        await InviteService(ctx).cancel_invite(invite.id, INVITER)

    assert outbox_repo.events == []


@pytest.mark.asyncio
async def test_cancel_unknown_invite(ctx) -> None:
    with pytest.raises(NotFoundException):
        await InviteService(ctx).cancel_invite(uuid4(), INVITER)


@pytest.mark.asyncio
async def test_racing_cancel_writes_single_event(ctx, pending_invite, invite_repo, outbox_repo, uow) -> None:
    """Test a cancel that loses the race to another writer emits no event."""

    def cancelled_elsewhere(stored: StaffInvite) -> None:
        stored.status = InviteStatus.CANCELLED

    invite_repo.simulate_concurrent_write(pending_invite.id, cancelled_elsewhere)

    with pytest.raises(ConflictDetectedException) as exc_info:
        await InviteService(ctx).cancel_invite(pending_invite.id, INVITER)

    assert exc_info.value.reason == "stale_status"
    assert outbox_repo.events == []
    assert uow.commits == 0


@pytest.mark.asyncio
async def test_second_cancel_after_first_commits_is_rejected(ctx, pending_invite, outbox_repo) -> None:
    service = InviteService(ctx)
    await service.cancel_invite(pending_invite.id, INVITER)

    with pytest.raises(InvalidTransitionException):
        await service.cancel_invite(pending_invite.id, INVITER)

    assert len(outbox_repo.events) == 1
