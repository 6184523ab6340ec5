"""Outbox table for asynchronously dispatched events."""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Identity,
    Index,
    Integer,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

from clinicflow.models.appointments import metadata

outbox_events = Table(
    "outbox_events",
    metadata,
    Column("id", BigInteger, Identity(), primary_key=True),
    Column("type", Text, nullable=False),
    Column("payload", JSONB, nullable=False),
    Column("status", Text, nullable=False, server_default="PENDING"),
    Column("attempts", Integer, nullable=False, server_default="0"),
    Column("last_error", Text, nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("processed_at", TIMESTAMP(timezone=True), nullable=True),
    CheckConstraint(
        "status IN ('PENDING', 'PROCESSED', 'FAILED')",
        name="outbox_events_status_check",
    ),
    Index("idx_outbox_events_status_created", "status", "created_at"),
)
