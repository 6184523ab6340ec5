"""Staff invite endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from clinicflow.dependencies import CurrentPrincipal, Workflow
from clinicflow.services.invite_service import InviteService

router = APIRouter()


@router.post(
    "/{invite_id}/cancel",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel a pending staff invite",
)
async def cancel_invite(
    invite_id: UUID,
    principal: CurrentPrincipal,
    ctx: Workflow,
) -> None:
    """Cancel an invite sent by the current user."""
    await InviteService(ctx).cancel_invite(invite_id, principal.user_id)
