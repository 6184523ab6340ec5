"""
Collaborator interfaces consumed by the workflow services.

SQL implementations live in ``clinicflow.repositories``; tests provide
in-memory fakes. Lookups return None for missing records and never raise.
"""

from datetime import date, datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from clinicflow.domain.entities import (
    Appointment,
    AuditEvent,
    AvailabilityResult,
    Consultation,
    ConsultationRequestFields,
    ContactInfo,
    OutboxEvent,
    Payment,
    StaffInvite,
)
from clinicflow.domain.statuses import AppointmentStatus, InviteStatus


@runtime_checkable
class TimeSource(Protocol):
    """Supplies the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware instant."""
        ...


@runtime_checkable
class AppointmentRepository(Protocol):
    """Appointment aggregate storage."""

    async def find_by_id(self, appointment_id: int) -> Appointment | None: ...

    async def find_by_patient(self, patient_id: str) -> list[Appointment]: ...

    async def find_by_doctor(
        self,
        doctor_id: str,
        on_date: date | None = None,
    ) -> list[Appointment]: ...

    async def find_by_doctor_and_status(
        self,
        doctor_id: str,
        status: AppointmentStatus,
    ) -> list[Appointment]: ...

    async def save(self, appointment: Appointment) -> Appointment:
        """Insert a new appointment and return it with its generated id."""
        ...

    async def update(
        self,
        appointment: Appointment,
        request_fields: ConsultationRequestFields | None = None,
    ) -> Appointment:
        """
        Replace all mutable fields of an existing appointment.

        When ``request_fields`` is given it is upserted in the same write.

        Raises:
            ConflictDetectedException: If the row changed since it was loaded
                or a storage guard rejects the new state
        """
        ...

    async def get_consultation_request_fields(
        self,
        appointment_id: int,
    ) -> ConsultationRequestFields | None: ...


@runtime_checkable
class ConsultationRepository(Protocol):
    """Consultation session storage (one per appointment)."""

    async def find_by_appointment_id(self, appointment_id: int) -> Consultation | None: ...

    async def save(self, consultation: Consultation) -> Consultation: ...

    async def update(self, consultation: Consultation) -> Consultation: ...


@runtime_checkable
class StaffInviteRepository(Protocol):
    """Surgical-case staff invite storage."""

    async def find_by_id(self, invite_id: UUID) -> StaffInvite | None: ...

    async def update(self, invite: StaffInvite, expected_status: InviteStatus) -> StaffInvite:
        """
        Compare-and-set write guarded on the stored status.

        Raises:
            ConflictDetectedException: If the stored status is no longer ``expected_status``
        """
        ...


@runtime_checkable
class OutboxRepository(Protocol):
    """Outbox event storage."""

    async def create(self, event: OutboxEvent) -> OutboxEvent: ...

    async def find_pending(self, limit: int) -> list[OutboxEvent]: ...

    async def update(self, event: OutboxEvent) -> OutboxEvent: ...


@runtime_checkable
class AuditSink(Protocol):
    """Append-only audit trail."""

    async def record_event(self, event: AuditEvent) -> None: ...


@runtime_checkable
class NotificationSender(Protocol):
    """Outbound email delivery."""

    async def send_email(self, to: str, subject: str, body: str) -> None: ...


@runtime_checkable
class ContactDirectory(Protocol):
    """Lookup of patient and staff contact details."""

    async def get_contact(self, user_id: str) -> ContactInfo | None: ...


@runtime_checkable
class AvailabilityValidator(Protocol):
    """Slot availability check for a doctor."""

    async def is_available(
        self,
        doctor_id: str,
        appointment_date: date,
        time: str,
        duration_minutes: int,
        exclude_appointment_id: int | None = None,
    ) -> AvailabilityResult: ...


@runtime_checkable
class UnitOfWork(Protocol):
    """Transaction boundary shared by the repositories of one request."""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@runtime_checkable
class PaymentRepository(Protocol):
    """Consultation bill storage (one per appointment)."""

    async def find_by_appointment_id(self, appointment_id: int) -> Payment | None: ...

    async def create(self, payment: Payment) -> Payment: ...

    async def replace_items(self, payment: Payment) -> Payment: ...
