"""Database models."""

from clinicflow.models.appointments import appointments, consultation_requests, metadata
from clinicflow.models.audit_logs import audit_logs
from clinicflow.models.consultations import consultations
from clinicflow.models.outbox_events import outbox_events
from clinicflow.models.payments import payment_items, payments
from clinicflow.models.staff_invites import staff_invites
from clinicflow.models.users import users

__all__ = [
    "appointments",
    "audit_logs",
    "consultation_requests",
    "consultations",
    "metadata",
    "outbox_events",
    "payment_items",
    "payments",
    "staff_invites",
    "users",
]
