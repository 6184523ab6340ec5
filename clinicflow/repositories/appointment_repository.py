"""SQL storage for appointment aggregates."""

from datetime import date
from typing import Any

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.exceptions import ConflictDetectedException, NotFoundException
from clinicflow.domain.entities import Appointment, ConsultationRequestFields
from clinicflow.domain.statuses import AppointmentStatus, ConsultationRequestStatus
from clinicflow.models.appointments import appointments, consultation_requests

logger = structlog.get_logger(__name__)

ACTIVE_SESSION_INDEX = "uq_appointments_doctor_in_consultation"

# Columns rewritten on every update
MUTABLE_FIELDS = (
    "appointment_date",
    "time",
    "type",
    "status",
    "note",
    "checked_in_at",
    "checked_in_by",
    "late_arrival",
    "late_by_minutes",
    "no_show",
    "no_show_at",
    "consultation_started_at",
    "consultation_ended_at",
    "consultation_duration",
    "cancelled_at",
)


def _to_entity(row: Row) -> Appointment:
    data = dict(row._mapping)
    data["status"] = AppointmentStatus(data["status"])
    return Appointment(**{key: data[key] for key in Appointment.__dataclass_fields__ if key in data})


def _mutable_values(appointment: Appointment) -> dict[str, Any]:
    values = {name: getattr(appointment, name) for name in MUTABLE_FIELDS}
    values["status"] = appointment.status.value
    return values


class SqlAppointmentRepository:
    """Appointment repository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def find_by_id(self, appointment_id: int) -> Appointment | None:
        result = await self.db.execute(select(appointments).where(appointments.c.id == appointment_id))
        row = result.fetchone()
        return _to_entity(row) if row else None

    async def find_by_patient(self, patient_id: str) -> list[Appointment]:
        stmt = (
            select(appointments)
            .where(appointments.c.patient_id == patient_id)
            .order_by(appointments.c.appointment_date.desc(), appointments.c.time.desc())
        )
        result = await self.db.execute(stmt)
        return [_to_entity(row) for row in result.fetchall()]

    async def find_by_doctor(
        self,
        doctor_id: str,
        on_date: date | None = None,
    ) -> list[Appointment]:
        conditions = [appointments.c.doctor_id == doctor_id]
        if on_date is not None:
            conditions.append(appointments.c.appointment_date == on_date)

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.appointment_date, appointments.c.time)
        )
        result = await self.db.execute(stmt)
        return [_to_entity(row) for row in result.fetchall()]

    async def find_by_doctor_and_status(
        self,
        doctor_id: str,
        status: AppointmentStatus,
    ) -> list[Appointment]:
        stmt = select(appointments).where(
            and_(
                appointments.c.doctor_id == doctor_id,
                appointments.c.status == status.value,
            )
        )
        result = await self.db.execute(stmt)
        return [_to_entity(row) for row in result.fetchall()]

    async def save(self, appointment: Appointment) -> Appointment:
        """
        Insert a new appointment.

        Returns:
            The persisted appointment including its generated id
        """
        values = _mutable_values(appointment)
        values["patient_id"] = appointment.patient_id
        values["doctor_id"] = appointment.doctor_id

        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self._execute_guarded(stmt)
        return _to_entity(result.fetchone())

    async def update(
        self,
        appointment: Appointment,
        request_fields: ConsultationRequestFields | None = None,
    ) -> Appointment:
        """
        Replace the mutable fields of an appointment.

        The write only applies when the stored version still matches the
        loaded one; ``request_fields`` is upserted in the same transaction.

        Raises:
            NotFoundException: If the appointment has no id
            ConflictDetectedException: If the row changed concurrently or the
                doctor already has another consultation in progress
        """
        if appointment.id is None:
            raise NotFoundException("Cannot update an appointment that was never saved")

        values = _mutable_values(appointment)
        values["updated_at"] = func.now()
        values["version"] = appointments.c.version + 1

        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment.id,
                    appointments.c.version == appointment.version,
                )
            )
            .values(**values)
            .returning(appointments)
        )
        result = await self._execute_guarded(stmt)
        row = result.fetchone()

        if row is None:
            logger.warning(
                "appointment_version_conflict",
                appointment_id=appointment.id,
                expected_version=appointment.version,
            )
            raise ConflictDetectedException(
                f"Appointment {appointment.id} was modified by another request. "
                "Reload it and try again.",
                reason="stale_version",
                conflicting_appointment_id=appointment.id,
            )

        if request_fields is not None:
            await self._upsert_request_fields(appointment.id, request_fields)

        return _to_entity(row)

    async def get_consultation_request_fields(
        self,
        appointment_id: int,
    ) -> ConsultationRequestFields | None:
        stmt = select(consultation_requests).where(
            consultation_requests.c.appointment_id == appointment_id
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            return None

        return ConsultationRequestFields(
            consultation_request_status=ConsultationRequestStatus(row.status),
            reviewed_by=row.reviewed_by,
            reviewed_at=row.reviewed_at,
            review_notes=row.review_notes,
        )

    async def _upsert_request_fields(
        self,
        appointment_id: int,
        fields: ConsultationRequestFields,
    ) -> None:
        status = fields.consultation_request_status or ConsultationRequestStatus.SUBMITTED
        values = {
            "status": status.value,
            "reviewed_by": fields.reviewed_by,
            "reviewed_at": fields.reviewed_at,
            "review_notes": fields.review_notes,
        }
        stmt = pg_insert(consultation_requests).values(appointment_id=appointment_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[consultation_requests.c.appointment_id],
            set_={**values, "updated_at": func.now()},
        )
        await self.db.execute(stmt)

    async def _execute_guarded(self, stmt: Any) -> Any:
        try:
            return await self.db.execute(stmt)
        except IntegrityError as e:
            await self.db.rollback()
            if ACTIVE_SESSION_INDEX in str(e.orig):
                raise ConflictDetectedException(
                    "Doctor already has an active consultation. Complete it first.",
                    reason="active_session",
                ) from e
            raise
