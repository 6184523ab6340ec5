"""SQL storage for surgical case staff invites."""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.exceptions import ConflictDetectedException, NotFoundException
from clinicflow.domain.entities import StaffInvite
from clinicflow.domain.statuses import InviteStatus
from clinicflow.models.staff_invites import staff_invites


def _to_entity(row: Row) -> StaffInvite:
    return StaffInvite(
        id=row.id,
        surgical_case_id=row.surgical_case_id,
        invited_by_user_id=row.invited_by_user_id,
        invited_user_id=row.invited_user_id,
        invited_role=row.invited_role,
        status=InviteStatus(row.status),
        created_at=row.created_at,
        cancelled_at=row.cancelled_at,
    )


class SqlStaffInviteRepository:
    """Staff invite repository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def find_by_id(self, invite_id: UUID) -> StaffInvite | None:
        result = await self.db.execute(select(staff_invites).where(staff_invites.c.id == invite_id))
        row = result.fetchone()
        return _to_entity(row) if row else None

    async def update(self, invite: StaffInvite, expected_status: InviteStatus) -> StaffInvite:
        """
        Write the invite only if its stored status is still ``expected_status``.

        Raises:
            NotFoundException: If the invite does not exist
            ConflictDetectedException: If another request changed the status first
        """
        stmt = (
            update(staff_invites)
            .where(
                staff_invites.c.id == invite.id,
                staff_invites.c.status == expected_status.value,
            )
            .values(
                status=invite.status.value,
                cancelled_at=invite.cancelled_at,
                updated_at=func.now(),
            )
            .returning(staff_invites)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if row is not None:
            return _to_entity(row)

        if await self.find_by_id(invite.id) is None:
            raise NotFoundException(f"Invite {invite.id} not found")
        raise ConflictDetectedException(
            f"Invite {invite.id} was modified by another request.",
            reason="stale_status",
        )
