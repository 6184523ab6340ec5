"""Consultation bills and their line items."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Identity,
    Integer,
    Numeric,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP

from clinicflow.models.appointments import metadata

payments = Table(
    "payments",
    metadata,
    Column("id", Integer, Identity(), primary_key=True),
    Column("patient_id", Text, nullable=False, index=True),
    Column(
        "appointment_id",
        Integer,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("bill_date", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("payment_date", TIMESTAMP(timezone=True), nullable=True),
    Column("discount", Numeric(12, 2), nullable=False, server_default="0"),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("amount_paid", Numeric(12, 2), nullable=False, server_default="0"),
    Column("payment_method", Text, nullable=False, server_default="CASH"),
    Column("status", Text, nullable=False, server_default="UNPAID"),
    Column("receipt_number", Text, nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint("status IN ('PAID', 'UNPAID', 'PART')", name="payments_status_check"),
)

payment_items = Table(
    "payment_items",
    metadata,
    Column("id", Integer, Identity(), primary_key=True),
    Column(
        "payment_id",
        Integer,
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("description", Text, nullable=False),
    Column("quantity", Integer, nullable=False, server_default="1"),
    Column("unit_cost", Numeric(12, 2), nullable=False),
    Column("total_cost", Numeric(12, 2), nullable=False),
    Column("service_date", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint("quantity > 0", name="payment_items_quantity_check"),
)
