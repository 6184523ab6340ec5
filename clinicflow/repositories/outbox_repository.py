"""SQL storage for outbox events."""

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.domain.entities import OutboxEvent
from clinicflow.domain.statuses import OutboxEventStatus
from clinicflow.models.outbox_events import outbox_events


def _to_entity(row: Row) -> OutboxEvent:
    return OutboxEvent(
        id=row.id,
        type=row.type,
        payload=dict(row.payload or {}),
        status=OutboxEventStatus(row.status),
        attempts=row.attempts,
        last_error=row.last_error,
        created_at=row.created_at,
        processed_at=row.processed_at,
    )


class SqlOutboxRepository:
    """Outbox repository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def create(self, event: OutboxEvent) -> OutboxEvent:
        stmt = (
            insert(outbox_events)
            .values(type=event.type, payload=event.payload, status=event.status.value)
            .returning(outbox_events)
        )
        result = await self.db.execute(stmt)
        return _to_entity(result.fetchone())

    async def find_pending(self, limit: int) -> list[OutboxEvent]:
        """Claim the oldest pending events, skipping rows locked by another dispatcher."""
        stmt = (
            select(outbox_events)
            .where(outbox_events.c.status == OutboxEventStatus.PENDING.value)
            .order_by(outbox_events.c.created_at, outbox_events.c.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self.db.execute(stmt)
        return [_to_entity(row) for row in result.fetchall()]

    async def update(self, event: OutboxEvent) -> OutboxEvent:
        stmt = (
            update(outbox_events)
            .where(outbox_events.c.id == event.id)
            .values(
                status=event.status.value,
                attempts=event.attempts,
                last_error=event.last_error,
                processed_at=event.processed_at,
            )
            .returning(outbox_events)
        )
        result = await self.db.execute(stmt)
        return _to_entity(result.fetchone())
