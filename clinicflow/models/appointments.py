"""Appointments and consultation request tables using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Identity,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, VARCHAR

# Metadata for all tables
metadata = MetaData()

APPOINTMENT_STATUSES = (
    "PENDING",
    "SCHEDULED",
    "CONFIRMED",
    "CHECKED_IN",
    "READY_FOR_CONSULTATION",
    "IN_CONSULTATION",
    "COMPLETED",
    "CANCELLED",
    "NO_SHOW",
)

CONSULTATION_REQUEST_STATUSES = (
    "SUBMITTED",
    "PENDING_REVIEW",
    "NEEDS_MORE_INFO",
    "APPROVED",
    "SCHEDULED",
    "CONFIRMED",
    "CANCELLED",
)


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Integer, Identity(), primary_key=True),
    # Ownership / references
    Column("patient_id", Text, nullable=False, index=True),
    Column("doctor_id", Text, nullable=False),
    # Appointment details (wall-clock time, clinic-local)
    Column("appointment_date", Date, nullable=False),
    Column("time", VARCHAR(5), nullable=False),
    Column("type", Text, nullable=False),
    Column("status", Text, nullable=False, server_default="PENDING"),
    # Append-only workflow log
    Column("note", Text, nullable=True),
    # Arrival
    Column("checked_in_at", TIMESTAMP(timezone=True), nullable=True),
    Column("checked_in_by", Text, nullable=True),
    Column("late_arrival", Boolean, nullable=False, server_default=text("false")),
    Column("late_by_minutes", Integer, nullable=True),
    Column("no_show", Boolean, nullable=False, server_default=text("false")),
    Column("no_show_at", TIMESTAMP(timezone=True), nullable=True),
    # Consultation timing
    Column("consultation_started_at", TIMESTAMP(timezone=True), nullable=True),
    Column("consultation_ended_at", TIMESTAMP(timezone=True), nullable=True),
    Column("consultation_duration", Integer, nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("cancelled_at", TIMESTAMP(timezone=True), nullable=True),
    # Optimistic concurrency
    Column("version", Integer, nullable=False, server_default=text("1")),
    # Constraints
    CheckConstraint(_in_list("status", APPOINTMENT_STATUSES), name="appointments_status_check"),
    CheckConstraint(
        "late_by_minutes IS NULL OR late_by_minutes > 0",
        name="appointments_late_minutes_check",
    ),
    Index("idx_appointments_doctor_date", "doctor_id", "appointment_date"),
    # At most one live consultation per doctor
    Index(
        "uq_appointments_doctor_in_consultation",
        "doctor_id",
        unique=True,
        postgresql_where=text("status = 'IN_CONSULTATION'"),
    ),
)

# Consultation request projection (1:1 with appointments)
consultation_requests = Table(
    "consultation_requests",
    metadata,
    Column(
        "appointment_id",
        Integer,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("status", Text, nullable=False, server_default="SUBMITTED"),
    Column("reviewed_by", Text, nullable=True),
    Column("reviewed_at", TIMESTAMP(timezone=True), nullable=True),
    Column("review_notes", Text, nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        _in_list("status", CONSULTATION_REQUEST_STATUSES),
        name="consultation_requests_status_check",
    ),
)
