"""In-memory collaborators for workflow service tests."""

import copy
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from uuid import UUID

from clinicflow.core.exceptions import ConflictDetectedException
from clinicflow.core.security import create_access_token
from clinicflow.domain.entities import (
    Appointment,
    AuditEvent,
    Consultation,
    ConsultationRequestFields,
    ContactInfo,
    OutboxEvent,
    Payment,
    StaffInvite,
)
from clinicflow.domain.statuses import AppointmentStatus, InviteStatus, OutboxEventStatus

DOCTOR_ID = "doc-1"
OTHER_DOCTOR_ID = "doc-2"
PATIENT_ID = "pat-1"
STAFF_ID = "staff-1"

# Tuesday morning, clinic-local (UTC)
NOW = datetime(2026, 3, 10, 9, 5, tzinfo=UTC)
TODAY = NOW.date()


def make_token(user_id: str, role: str | None = None, doctor_id: str | None = None) -> str:
    """Create a signed access token for the given caller."""
    return create_access_token(user_id, role=role, doctor_id=doctor_id, expires_delta=timedelta(minutes=30))


class FixedClock:
    """Time source that only moves when told to."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class InMemoryAppointmentRepository:
    """
    Appointment store that mirrors the SQL guards.

    Updates check the version token and reject a second IN_CONSULTATION
    appointment for the same doctor.
    """

    def __init__(self) -> None:
        self.rows: dict[int, Appointment] = {}
        self.request_fields: dict[int, ConsultationRequestFields] = {}
        self.update_calls = 0
        self._next_id = 1
        self._before_update: dict[int, Callable[[Appointment], None]] = {}

    def add(self, appointment: Appointment) -> Appointment:
        """Seed a stored appointment and return a detached copy."""
        stored = copy.deepcopy(appointment)
        if stored.id is None:
            stored.id = self._next_id
        self._next_id = max(self._next_id, stored.id + 1)
        stored.created_at = stored.created_at or datetime(2026, 1, 1, tzinfo=UTC)
        self.rows[stored.id] = stored
        return copy.deepcopy(stored)

    def simulate_concurrent_write(
        self,
        appointment_id: int,
        mutate: Callable[[Appointment], None],
    ) -> None:
        """Apply ``mutate`` to the stored row just before the next update."""
        self._before_update[appointment_id] = mutate

    async def find_by_id(self, appointment_id: int) -> Appointment | None:
        stored = self.rows.get(appointment_id)
        return copy.deepcopy(stored) if stored else None

    async def find_by_patient(self, patient_id: str) -> list[Appointment]:
        return [copy.deepcopy(a) for a in self.rows.values() if a.patient_id == patient_id]

    async def find_by_doctor(
        self,
        doctor_id: str,
        on_date: date | None = None,
    ) -> list[Appointment]:
        return [
            copy.deepcopy(a)
            for a in self.rows.values()
            if a.doctor_id == doctor_id and (on_date is None or a.appointment_date == on_date)
        ]

    async def find_by_doctor_and_status(
        self,
        doctor_id: str,
        status: AppointmentStatus,
    ) -> list[Appointment]:
        return [
            copy.deepcopy(a)
            for a in self.rows.values()
            if a.doctor_id == doctor_id and a.status == status
        ]

    async def save(self, appointment: Appointment) -> Appointment:
        self._check_active_session(appointment)
        appointment = copy.deepcopy(appointment)
        appointment.id = None
        appointment.version = 1
        return self.add(appointment)

    async def update(
        self,
        appointment: Appointment,
        request_fields: ConsultationRequestFields | None = None,
    ) -> Appointment:
        self.update_calls += 1
        mutate = self._before_update.pop(appointment.id, None)
        if mutate is not None:
            stored = self.rows[appointment.id]
            mutate(stored)
            stored.version += 1

        stored = self.rows.get(appointment.id)
        if stored is None or stored.version != appointment.version:
            raise ConflictDetectedException(
                f"Appointment {appointment.id} was modified by another request.",
                reason="stale_version",
                conflicting_appointment_id=appointment.id,
            )
        self._check_active_session(appointment)

        updated = copy.deepcopy(appointment)
        updated.version = stored.version + 1
        updated.updated_at = datetime.now(UTC)
        self.rows[updated.id] = updated
        if request_fields is not None:
            self.request_fields[updated.id] = copy.deepcopy(request_fields)
        return copy.deepcopy(updated)

    async def get_consultation_request_fields(
        self,
        appointment_id: int,
    ) -> ConsultationRequestFields | None:
        fields = self.request_fields.get(appointment_id)
        return copy.deepcopy(fields) if fields else None

    def _check_active_session(self, appointment: Appointment) -> None:
        if appointment.status != AppointmentStatus.IN_CONSULTATION:
            return
        for other in self.rows.values():
            if (
                other.id != appointment.id
                and other.doctor_id == appointment.doctor_id
                and other.status == AppointmentStatus.IN_CONSULTATION
            ):
                raise ConflictDetectedException(
                    "Doctor already has an active consultation. Complete it first.",
                    reason="active_session",
                )


class InMemoryConsultationRepository:
    def __init__(self, fail_on_update: bool = False) -> None:
        self.rows: dict[int, Consultation] = {}
        self.fail_on_update = fail_on_update
        self._next_id = 1

    def add(self, consultation: Consultation) -> Consultation:
        stored = copy.deepcopy(consultation)
        stored.id = stored.id or self._next_id
        self._next_id = max(self._next_id, stored.id + 1)
        self.rows[stored.appointment_id] = stored
        return copy.deepcopy(stored)

    async def find_by_appointment_id(self, appointment_id: int) -> Consultation | None:
        stored = self.rows.get(appointment_id)
        return copy.deepcopy(stored) if stored else None

    async def save(self, consultation: Consultation) -> Consultation:
        return self.add(consultation)

    async def update(self, consultation: Consultation) -> Consultation:
        if self.fail_on_update:
            raise RuntimeError("consultation store unavailable")
        self.rows[consultation.appointment_id] = copy.deepcopy(consultation)
        return copy.deepcopy(consultation)


class InMemoryInviteRepository:
    """Invite store whose updates compare-and-set on the stored status."""

    def __init__(self) -> None:
        self.rows: dict[UUID, StaffInvite] = {}
        self._before_update: dict[UUID, Callable[[StaffInvite], None]] = {}

    def add(self, invite: StaffInvite) -> StaffInvite:
        self.rows[invite.id] = copy.deepcopy(invite)
        return copy.deepcopy(invite)

    def simulate_concurrent_write(self, invite_id: UUID, mutate: Callable[[StaffInvite], None]) -> None:
        """Apply ``mutate`` to the stored row just before the next update."""
        self._before_update[invite_id] = mutate

    async def find_by_id(self, invite_id: UUID) -> StaffInvite | None:
        stored = self.rows.get(invite_id)
        return copy.deepcopy(stored) if stored else None

    async def update(self, invite: StaffInvite, expected_status: InviteStatus) -> StaffInvite:
        mutate = self._before_update.pop(invite.id, None)
        if mutate is not None:
            mutate(self.rows[invite.id])

        if self.rows[invite.id].status != expected_status:
            raise ConflictDetectedException(
                f"Invite {invite.id} was modified by another request.",
                reason="stale_status",
            )
        self.rows[invite.id] = copy.deepcopy(invite)
        return copy.deepcopy(invite)


class InMemoryPaymentRepository:
    def __init__(self, fail: bool = False) -> None:
        self.rows: dict[int, Payment] = {}
        self.fail = fail
        self._next_id = 1

    def add(self, payment: Payment) -> Payment:
        stored = copy.deepcopy(payment)
        stored.id = stored.id or self._next_id
        self._next_id = max(self._next_id, stored.id + 1)
        self.rows[stored.appointment_id] = stored
        return copy.deepcopy(stored)

    async def find_by_appointment_id(self, appointment_id: int) -> Payment | None:
        stored = self.rows.get(appointment_id)
        return copy.deepcopy(stored) if stored else None

    async def create(self, payment: Payment) -> Payment:
        if self.fail:
            raise RuntimeError("billing store unavailable")
        return self.add(payment)

    async def replace_items(self, payment: Payment) -> Payment:
        self.rows[payment.appointment_id] = copy.deepcopy(payment)
        return copy.deepcopy(payment)


class InMemoryOutboxRepository:
    def __init__(self) -> None:
        self.events: list[OutboxEvent] = []

    async def create(self, event: OutboxEvent) -> OutboxEvent:
        stored = copy.deepcopy(event)
        stored.id = len(self.events) + 1
        self.events.append(stored)
        return copy.deepcopy(stored)

    async def find_pending(self, limit: int) -> list[OutboxEvent]:
        pending = [e for e in self.events if e.status == OutboxEventStatus.PENDING]
        return [copy.deepcopy(e) for e in pending[:limit]]

    async def update(self, event: OutboxEvent) -> OutboxEvent:
        self.events[event.id - 1] = copy.deepcopy(event)
        return copy.deepcopy(event)


class RecordingAuditSink:
    def __init__(self, fail: bool = False, fail_times: int = 0) -> None:
        self.events: list[AuditEvent] = []
        self.fail = fail
        self.fail_times = fail_times

    async def record_event(self, event: AuditEvent) -> None:
        if self.fail:
            raise RuntimeError("audit store unavailable")
        if self.fail_times:
            self.fail_times -= 1
            raise RuntimeError("audit insert rejected")
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action for event in self.events]


class RecordingEmailSender:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = fail

    async def send_email(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append((to, subject, body))

    def subjects(self) -> list[str]:
        return [subject for _, subject, _ in self.sent]


class InMemoryContactDirectory:
    def __init__(self, contacts: dict[str, ContactInfo] | None = None) -> None:
        self.contacts = contacts or {}

    async def get_contact(self, user_id: str) -> ContactInfo | None:
        return self.contacts.get(user_id)


class RecordingUnitOfWork:
    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1
