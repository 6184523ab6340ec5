"""Consultation session table using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Identity,
    Integer,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP

from clinicflow.models.appointments import metadata

consultations = Table(
    "consultations",
    metadata,
    Column("id", Integer, Identity(), primary_key=True),
    Column(
        "appointment_id",
        Integer,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("doctor_id", Text, nullable=False),
    Column("started_by_user_id", Text, nullable=True),
    Column("state", Text, nullable=False, server_default="NOT_STARTED"),
    Column("started_at", TIMESTAMP(timezone=True), nullable=True),
    Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
    # Outcome
    Column("outcome", Text, nullable=True),
    Column("outcome_type", Text, nullable=True),
    Column("patient_decision", Text, nullable=True),
    # Structured notes
    Column("chief_complaint", Text, nullable=True),
    Column("examination", Text, nullable=True),
    Column("assessment", Text, nullable=True),
    Column("plan", Text, nullable=True),
    Column("notes_text", Text, nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "state IN ('NOT_STARTED', 'IN_PROGRESS', 'COMPLETED')",
        name="consultations_state_check",
    ),
)
