"""Patient check-in."""

import math
from datetime import datetime

import structlog

from clinicflow.core.clock import scheduled_instant
from clinicflow.core.exceptions import (
    ConflictDetectedException,
    InvalidTransitionException,
    NotFoundException,
)
from clinicflow.domain.entities import Appointment
from clinicflow.domain.statuses import AppointmentStatus
from clinicflow.domain.transitions import (
    ARRIVED_STATUSES,
    CHECK_IN_SOURCE_STATUSES,
    evaluate_transition,
)
from clinicflow.services.context import WorkflowContext

logger = structlog.get_logger(__name__)


def calculate_lateness(appointment: Appointment, now: datetime) -> int | None:
    """
    Whole minutes the patient arrived after the scheduled time.

    Returns None for on-time or early arrivals (less than a full minute late).
    """
    scheduled = scheduled_instant(appointment.appointment_date, appointment.time, now.tzinfo)
    if now <= scheduled:
        return None
    minutes = math.floor((now - scheduled).total_seconds() / 60)
    return minutes if minutes > 0 else None


class CheckInService:
    """Records patient arrival for an appointment."""

    def __init__(self, ctx: WorkflowContext):
        """Initialize service with workflow collaborators."""
        self.ctx = ctx

    async def check_in(
        self,
        appointment_id: int,
        user_id: str,
        notes: str | None = None,
    ) -> Appointment:
        """
        Check a patient in.

        Repeated calls are safe: once the patient is on site the status is left
        alone, missing arrival metadata is backfilled and the attempt is audited.

        Args:
            appointment_id: Appointment to check in
            user_id: Staff member performing the check-in
            notes: Optional arrival notes appended to the note log

        Returns:
            The appointment after check-in

        Raises:
            NotFoundException: If the appointment does not exist
            InvalidTransitionException: If the appointment is cancelled or completed
        """
        appointment = await self._load(appointment_id)

        if appointment.status in ARRIVED_STATUSES:
            return await self._repeat_check_in(appointment, user_id)

        try:
            return await self._first_check_in(appointment, user_id, notes)
        except ConflictDetectedException as e:
            if e.reason != "stale_version":
                raise
            # A concurrent check-in won the race; re-read and treat this call as the repeat
            await self.ctx.uow.rollback()
            appointment = await self._load(appointment_id)
            if appointment.status not in ARRIVED_STATUSES:
                raise
            return await self._repeat_check_in(appointment, user_id)

    async def _load(self, appointment_id: int) -> Appointment:
        appointment = await self.ctx.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")

        if appointment.status in (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED):
            raise InvalidTransitionException(
                f"Cannot check in: appointment is {appointment.status.value}",
                current_status=appointment.status.value,
                target_status=AppointmentStatus.CHECKED_IN.value,
            )
        return appointment

    async def _first_check_in(
        self,
        appointment: Appointment,
        user_id: str,
        notes: str | None,
    ) -> Appointment:
        if appointment.status not in CHECK_IN_SOURCE_STATUSES:
            result = evaluate_transition(appointment.status, AppointmentStatus.CHECKED_IN)
            raise InvalidTransitionException(
                result.reason or "Cannot check in",
                current_status=appointment.status.value,
                target_status=AppointmentStatus.CHECKED_IN.value,
            )

        now = self.ctx.clock.now()
        late_by = calculate_lateness(appointment, now)
        previous_status = appointment.status

        appointment.status = AppointmentStatus.CHECKED_IN
        appointment.record_arrival(now, user_id, late_by)
        if notes and notes.strip():
            appointment.add_note("Checked In", notes.strip())

        updated = await self.ctx.appointments.update(appointment)
        await self.ctx.uow.commit()

        logger.info(
            "patient_checked_in",
            appointment_id=updated.id,
            previous_status=previous_status.value,
            late_by_minutes=late_by,
        )

        lateness = f" ({late_by} minutes late)" if late_by else ""
        await self.ctx.audit.record(
            user_id=user_id,
            record_id=updated.id,
            action="UPDATE",
            details=(
                f"Patient checked in for appointment {updated.id}{lateness}. "
                f"Status changed from {previous_status.value} to {AppointmentStatus.CHECKED_IN.value}."
            ),
        )
        return updated

    async def _repeat_check_in(self, appointment: Appointment, user_id: str) -> Appointment:
        if appointment.checked_in_at is None:
            now = self.ctx.clock.now()
            appointment.record_arrival(now, user_id, calculate_lateness(appointment, now))
            appointment = await self.ctx.appointments.update(appointment)
            await self.ctx.uow.commit()
            logger.info("arrival_metadata_backfilled", appointment_id=appointment.id)

        await self.ctx.audit.record(
            user_id=user_id,
            record_id=appointment.id,
            action="VIEW",
            details=f"Patient check-in attempted for appointment {appointment.id} (already checked in).",
        )
        return appointment
