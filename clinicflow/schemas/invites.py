"""Staff invite schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from clinicflow.domain.statuses import InviteStatus


class StaffInviteResponse(BaseModel):
    """Staff invite details."""

    id: UUID
    surgical_case_id: str
    invited_by_user_id: str
    invited_user_id: str
    invited_role: str
    status: InviteStatus
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}
