"""User directory table using SQLAlchemy Core."""

from sqlalchemy import Boolean, Column, DateTime, String, Table, Text, text

from clinicflow.models.appointments import metadata

users = Table(
    "users",
    metadata,
    # External identity (JWT subject)
    Column("id", Text, primary_key=True),
    Column("email", Text, nullable=True, index=True),
    Column("full_name", Text),
    Column("phone", String(20)),
    Column("role", Text, nullable=False, server_default=text("'patient'")),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)
