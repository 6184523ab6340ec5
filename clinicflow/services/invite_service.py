"""Surgical case staff invite cancellation."""

from uuid import UUID

import structlog

from clinicflow.core.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from clinicflow.domain.entities import OutboxEvent, StaffInvite
from clinicflow.domain.statuses import InviteStatus, OutboxEventType
from clinicflow.services.context import WorkflowContext

logger = structlog.get_logger(__name__)


class InviteService:
    """Manages staff invites for surgical cases."""

    def __init__(self, ctx: WorkflowContext):
        """Initialize service with workflow collaborators."""
        self.ctx = ctx

    async def cancel_invite(self, invite_id: UUID, canceller_user_id: str) -> StaffInvite:
        """
        Cancel a pending invite.

        Only the user who sent the invite may cancel it. The invite update and
        the STAFF_INVITE_CANCELLED outbox event are committed together;
        downstream consumers handle notification.

        Raises:
            NotFoundException: If the invite does not exist
            ForbiddenException: If the canceller did not send the invite
            InvalidTransitionException: If the invite is no longer pending
            ConflictDetectedException: If a concurrent request changed the invite first
        """
        invite = await self.ctx.invites.find_by_id(invite_id)
        if invite is None:
            raise NotFoundException(f"Invite {invite_id} not found")

        # TODO: allow an admin role to cancel invites sent by other users
        if invite.invited_by_user_id != canceller_user_id:
            raise ForbiddenException("Only the user who sent this invite can cancel it")

        if invite.status != InviteStatus.PENDING:
            raise InvalidTransitionException(
                f"Cannot cancel an invite that is {invite.status.value}",
                current_status=invite.status.value,
                target_status=InviteStatus.CANCELLED.value,
            )

        invite.status = InviteStatus.CANCELLED
        invite.cancelled_at = self.ctx.clock.now()
        updated = await self.ctx.invites.update(invite, expected_status=InviteStatus.PENDING)

        await self.ctx.outbox.create(
            OutboxEvent(
                type=OutboxEventType.STAFF_INVITE_CANCELLED.value,
                payload={
                    "inviteId": str(updated.id),
                    "surgicalCaseId": updated.surgical_case_id,
                    "invitedUserId": updated.invited_user_id,
                    "role": updated.invited_role,
                },
            )
        )
        await self.ctx.uow.commit()

        logger.info(
            "staff_invite_cancelled",
            invite_id=str(updated.id),
            surgical_case_id=updated.surgical_case_id,
            cancelled_by=canceller_user_id,
        )
        return updated
