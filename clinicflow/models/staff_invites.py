"""Surgical case staff invites table."""

from sqlalchemy import CheckConstraint, Column, Table, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from clinicflow.models.appointments import metadata

staff_invites = Table(
    "staff_invites",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("surgical_case_id", Text, nullable=False, index=True),
    Column("invited_by_user_id", Text, nullable=False),
    Column("invited_user_id", Text, nullable=False, index=True),
    Column("invited_role", Text, nullable=False),
    Column("status", Text, nullable=False, server_default="PENDING"),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("cancelled_at", TIMESTAMP(timezone=True), nullable=True),
    CheckConstraint(
        "status IN ('PENDING', 'ACCEPTED', 'DECLINED', 'CANCELLED')",
        name="staff_invites_status_check",
    ),
)
