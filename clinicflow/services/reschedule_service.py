"""Appointment rescheduling."""

from datetime import date

import structlog

from clinicflow.core.clock import parse_wall_clock
from clinicflow.core.exceptions import (
    ConflictDetectedException,
    DomainValidationException,
    InvalidTransitionException,
    NotFoundException,
)
from clinicflow.domain.entities import Appointment
from clinicflow.domain.statuses import AppointmentStatus
from clinicflow.domain.transitions import is_terminal
from clinicflow.services.context import WorkflowContext

logger = structlog.get_logger(__name__)


class RescheduleService:
    """Moves an appointment to a new slot with the same doctor."""

    def __init__(self, ctx: WorkflowContext):
        """Initialize service with workflow collaborators."""
        self.ctx = ctx

    async def reschedule(
        self,
        appointment_id: int,
        new_date: date,
        new_time: str,
        actor_id: str,
        reason: str | None = None,
    ) -> Appointment:
        """
        Reschedule an appointment.

        The slot is re-validated here, at write time, and a doctor-initiated
        reschedule confirms itself (status becomes SCHEDULED).

        Raises:
            NotFoundException: If the appointment does not exist
            InvalidTransitionException: If the appointment is closed or in consultation
            DomainValidationException: If the new time is malformed
            ConflictDetectedException: If the new slot is unavailable
        """
        appointment = await self.ctx.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")

        if is_terminal(appointment.status) or appointment.status == AppointmentStatus.IN_CONSULTATION:
            raise InvalidTransitionException(
                f"Cannot reschedule an appointment that is {appointment.status.value}",
                current_status=appointment.status.value,
                target_status=AppointmentStatus.SCHEDULED.value,
            )

        try:
            parse_wall_clock(new_time)
        except ValueError as e:
            raise DomainValidationException(str(e)) from e

        availability = await self.ctx.availability.is_available(
            appointment.doctor_id,
            new_date,
            new_time,
            self.ctx.default_duration_minutes,
            exclude_appointment_id=appointment.id,
        )
        if not availability.is_available:
            raise ConflictDetectedException(
                f"Selected slot is not available: {availability.reason}",
                reason=availability.reason,
            )

        old_date, old_time, old_status = appointment.appointment_date, appointment.time, appointment.status

        appointment.appointment_date = new_date
        appointment.time = new_time
        appointment.status = AppointmentStatus.SCHEDULED
        # The patient is no longer expected on site for the old slot
        appointment.checked_in_at = None
        appointment.checked_in_by = None
        appointment.late_arrival = False
        appointment.late_by_minutes = None
        appointment.no_show = False
        appointment.no_show_at = None
        entry = f"From {old_date.isoformat()} {old_time} to {new_date.isoformat()} {new_time}."
        if reason and reason.strip():
            entry += f" Reason: {reason.strip()}"
        appointment.add_note("Rescheduled", entry)

        updated = await self.ctx.appointments.update(appointment)
        await self.ctx.uow.commit()
        logger.info(
            "appointment_rescheduled",
            appointment_id=appointment_id,
            old_date=old_date.isoformat(),
            new_date=new_date.isoformat(),
        )

        body = (
            "Your appointment has been rescheduled.\n\n"
            f"Old Time: {old_date.isoformat()} at {old_time}\n"
            f"New Time: {new_date.isoformat()} at {new_time}"
        )
        if reason and reason.strip():
            body += f"\n\nReason: {reason.strip()}"
        await self.ctx.notifier.notify(updated.patient_id, "Appointment Rescheduled", body)

        await self.ctx.audit.record(
            user_id=actor_id,
            record_id=updated.id,
            action="RESCHEDULE",
            details=(
                f"Rescheduled from {old_date.isoformat()} {old_time} to "
                f"{new_date.isoformat()} {new_time}. "
                f"Status: {old_status.value} -> {AppointmentStatus.SCHEDULED.value}."
            ),
        )
        return updated
