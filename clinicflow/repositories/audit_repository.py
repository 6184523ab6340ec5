"""SQL audit sink."""

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.domain.entities import AuditEvent
from clinicflow.models.audit_logs import audit_logs


class SqlAuditSink:
    """Appends audit events to the audit_logs table."""

    def __init__(self, db: AsyncSession):
        """Initialize sink with database session."""
        self.db = db

    async def record_event(self, event: AuditEvent) -> None:
        """
        Insert one audit row and commit it.

        The insert runs in a savepoint, so a failed write leaves the request's
        session usable for the statements that follow.
        """
        async with self.db.begin_nested():
            await self.db.execute(
                insert(audit_logs).values(
                    user_id=event.user_id,
                    record_id=event.record_id,
                    action=event.action,
                    model=event.model,
                    details=event.details,
                )
            )
        await self.db.commit()
