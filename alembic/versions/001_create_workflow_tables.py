"""Create appointment workflow tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # gen_random_uuid() for staff invites
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Users (contact directory)
    op.create_table(
        "users",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("role", sa.Text(), server_default=sa.text("'patient'"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # Appointments
    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("patient_id", sa.Text(), nullable=False),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="PENDING", nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("checked_in_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("checked_in_by", sa.Text(), nullable=True),
        sa.Column("late_arrival", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("late_by_minutes", sa.Integer(), nullable=True),
        sa.Column("no_show", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("no_show_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("consultation_started_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("consultation_ended_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("consultation_duration", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING', 'SCHEDULED', 'CONFIRMED', 'CHECKED_IN', "
            "'READY_FOR_CONSULTATION', 'IN_CONSULTATION', 'COMPLETED', 'CANCELLED', 'NO_SHOW')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "late_by_minutes IS NULL OR late_by_minutes > 0",
            name="appointments_late_minutes_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("idx_appointments_doctor_date", "appointments", ["doctor_id", "appointment_date"])
    # At most one live consultation per doctor
    op.create_index(
        "uq_appointments_doctor_in_consultation",
        "appointments",
        ["doctor_id"],
        unique=True,
        postgresql_where=sa.text("status = 'IN_CONSULTATION'"),
    )

    # Consultation request projection
    op.create_table(
        "consultation_requests",
        sa.Column("appointment_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), server_default="SUBMITTED", nullable=False),
        sa.Column("reviewed_by", sa.Text(), nullable=True),
        sa.Column("reviewed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('SUBMITTED', 'PENDING_REVIEW', 'NEEDS_MORE_INFO', 'APPROVED', "
            "'SCHEDULED', 'CONFIRMED', 'CANCELLED')",
            name="consultation_requests_status_check",
        ),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("appointment_id"),
    )

    # Consultations
    op.create_table(
        "consultations",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=False),
        sa.Column("doctor_id", sa.Text(), nullable=False),
        sa.Column("started_by_user_id", sa.Text(), nullable=True),
        sa.Column("state", sa.Text(), server_default="NOT_STARTED", nullable=False),
        sa.Column("started_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("outcome", sa.Text(), nullable=True),
        sa.Column("outcome_type", sa.Text(), nullable=True),
        sa.Column("patient_decision", sa.Text(), nullable=True),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("examination", sa.Text(), nullable=True),
        sa.Column("assessment", sa.Text(), nullable=True),
        sa.Column("plan", sa.Text(), nullable=True),
        sa.Column("notes_text", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "state IN ('NOT_STARTED', 'IN_PROGRESS', 'COMPLETED')",
            name="consultations_state_check",
        ),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id"),
    )

    # Consultation bills
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("patient_id", sa.Text(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=False),
        sa.Column(
            "bill_date",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("payment_date", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("discount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("payment_method", sa.Text(), server_default="CASH", nullable=False),
        sa.Column("status", sa.Text(), server_default="UNPAID", nullable=False),
        sa.Column("receipt_number", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('PAID', 'UNPAID', 'PART')", name="payments_status_check"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id"),
    )
    op.create_index("ix_payments_patient_id", "payments", ["patient_id"])

    op.create_table(
        "payment_items",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="1", nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "service_date",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint("quantity > 0", name="payment_items_quantity_check"),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payment_items_payment_id", "payment_items", ["payment_id"])

    # Audit trail
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("record_id", sa.Text(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_logs_record", "audit_logs", ["model", "record_id"])

    # Staff invites
    op.create_table(
        "staff_invites",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("surgical_case_id", sa.Text(), nullable=False),
        sa.Column("invited_by_user_id", sa.Text(), nullable=False),
        sa.Column("invited_user_id", sa.Text(), nullable=False),
        sa.Column("invited_role", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="PENDING", nullable=False),
        *_timestamps(),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'DECLINED', 'CANCELLED')",
            name="staff_invites_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_staff_invites_surgical_case_id", "staff_invites", ["surgical_case_id"])
    op.create_index("ix_staff_invites_invited_user_id", "staff_invites", ["invited_user_id"])

    # Outbox
    op.create_table(
        "outbox_events",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.Text(), server_default="PENDING", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("processed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PROCESSED', 'FAILED')",
            name="outbox_events_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_outbox_events_status_created", "outbox_events", ["status", "created_at"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_outbox_events_status_created", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_staff_invites_invited_user_id", table_name="staff_invites")
    op.drop_index("ix_staff_invites_surgical_case_id", table_name="staff_invites")
    op.drop_table("staff_invites")

    op.drop_index("idx_audit_logs_record", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_payment_items_payment_id", table_name="payment_items")
    op.drop_table("payment_items")
    op.drop_index("ix_payments_patient_id", table_name="payments")
    op.drop_table("payments")

    op.drop_table("consultations")
    op.drop_table("consultation_requests")

    op.drop_index("uq_appointments_doctor_in_consultation", table_name="appointments")
    op.drop_index("idx_appointments_doctor_date", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
