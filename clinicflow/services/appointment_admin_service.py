"""Administrative appointment actions: booking decisions, no-show, cancellation and stale resolution."""

from enum import Enum

import structlog

from clinicflow.core.exceptions import (
    DomainValidationException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from clinicflow.domain.entities import Appointment
from clinicflow.domain.statuses import AppointmentStatus, ConsultationOutcomeType, ConsultationState
from clinicflow.domain.transitions import ARRIVED_STATUSES, evaluate_transition, is_terminal
from clinicflow.services.consultation_service import consultation_minutes
from clinicflow.services.context import WorkflowContext

logger = structlog.get_logger(__name__)

RESOLVED_OUTCOME = "Resolved by front desk"


class ResolutionAction(str, Enum):
    """How a stuck appointment is closed."""

    COMPLETE = "complete"
    CANCEL = "cancel"


class BookingDecision(str, Enum):
    """Doctor's answer to a pending booking."""

    CONFIRM = "confirm"
    REJECT = "reject"


class AppointmentAdminService:
    """Front-desk corrections to the appointment lifecycle."""

    def __init__(self, ctx: WorkflowContext):
        """Initialize service with workflow collaborators."""
        self.ctx = ctx

    async def mark_no_show(
        self,
        appointment_id: int,
        user_id: str,
        reason: str | None,
        notes: str | None = None,
    ) -> Appointment:
        """
        Mark an appointment as a no-show.

        Raises:
            NotFoundException: If the appointment does not exist
            InvalidTransitionException: If the patient arrived or the appointment is closed
            DomainValidationException: If no reason is given
        """
        appointment = await self._load(appointment_id)

        if appointment.status == AppointmentStatus.CANCELLED:
            raise self._rejected(appointment, "Cannot mark a cancelled appointment as no-show")
        if appointment.status == AppointmentStatus.COMPLETED:
            raise self._rejected(appointment, "Cannot mark a completed appointment as no-show")
        if not reason or not reason.strip():
            raise DomainValidationException("No-show reason is required")
        if appointment.checked_in_at is not None or appointment.status in ARRIVED_STATUSES:
            raise self._rejected(
                appointment,
                "Cannot mark appointment as no-show: patient has already checked in",
            )
        if appointment.no_show or appointment.status == AppointmentStatus.NO_SHOW:
            raise self._rejected(appointment, "Appointment is already marked as no-show")

        result = evaluate_transition(appointment.status, AppointmentStatus.NO_SHOW)
        if not result.is_valid:
            raise self._rejected(appointment, result.reason or "Cannot mark as no-show")

        previous_status = appointment.status
        appointment.status = AppointmentStatus.NO_SHOW
        appointment.no_show = True
        appointment.no_show_at = self.ctx.clock.now()
        entry = f"Reason: {reason.strip()}"
        if notes and notes.strip():
            entry += f"\nNotes: {notes.strip()}"
        appointment.add_note("No-Show", entry)

        updated = await self.ctx.appointments.update(appointment)
        await self.ctx.uow.commit()
        logger.info("appointment_marked_no_show", appointment_id=appointment_id)

        await self.ctx.audit.record(
            user_id=user_id,
            record_id=updated.id,
            action="UPDATE",
            details=(
                f"Appointment {appointment_id} marked as no-show. Reason: {reason.strip()}. "
                f"Status: {previous_status.value} -> {AppointmentStatus.NO_SHOW.value}."
            ),
        )
        return updated

    async def cancel(
        self,
        appointment_id: int,
        user_id: str,
        reason: str | None,
    ) -> Appointment:
        """
        Cancel any appointment that is not yet closed.

        Raises:
            NotFoundException: If the appointment does not exist
            InvalidTransitionException: If the appointment is completed or cancelled
            DomainValidationException: If no reason is given
        """
        appointment = await self._load(appointment_id)
        if is_terminal(appointment.status):
            raise self._rejected(appointment, f"Appointment is already {appointment.status.value}")
        if not reason or not reason.strip():
            raise DomainValidationException("Cancellation reason is required")

        previous_status = appointment.status
        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_at = self.ctx.clock.now()
        appointment.add_note("Cancelled", reason.strip())

        updated = await self.ctx.appointments.update(appointment)
        await self.ctx.uow.commit()
        logger.info("appointment_cancelled", appointment_id=appointment_id)

        await self.ctx.notifier.notify(
            updated.patient_id,
            "Appointment Cancelled",
            f"Your appointment on {updated.appointment_date.isoformat()} at {updated.time} "
            f"has been cancelled.\n\nReason: {reason.strip()}",
        )
        await self.ctx.audit.record(
            user_id=user_id,
            record_id=updated.id,
            action="CANCEL",
            details=(
                f"Appointment {appointment_id} cancelled. Reason: {reason.strip()}. "
                f"Status: {previous_status.value} -> {AppointmentStatus.CANCELLED.value}."
            ),
        )
        return updated

    async def resolve(
        self,
        appointment_id: int,
        user_id: str,
        action: ResolutionAction,
        notes: str | None = None,
    ) -> Appointment:
        """
        Close an appointment left checked in or in consultation.

        Completing walks the legal path through IN_CONSULTATION and finalizes
        the consultation record with a consultation-only outcome.

        Raises:
            NotFoundException: If the appointment does not exist
            InvalidTransitionException: If the appointment is not awaiting resolution
        """
        appointment = await self._load(appointment_id)
        if appointment.status not in ARRIVED_STATUSES:
            raise self._rejected(
                appointment,
                "Only checked-in or in-consultation appointments can be resolved "
                f"(status: {appointment.status.value})",
            )

        now = self.ctx.clock.now()
        previous_status = appointment.status
        path = [previous_status.value]

        if action == ResolutionAction.CANCEL:
            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancelled_at = now
        else:
            if previous_status != AppointmentStatus.IN_CONSULTATION:
                path.append(AppointmentStatus.IN_CONSULTATION.value)
            appointment.status = AppointmentStatus.COMPLETED
            appointment.consultation_ended_at = appointment.consultation_ended_at or now
            appointment.consultation_duration = consultation_minutes(
                appointment.consultation_started_at, appointment.consultation_ended_at
            )
        path.append(appointment.status.value)

        entry = f"Resolved as {action.value}."
        if notes and notes.strip():
            entry += f" {notes.strip()}"
        appointment.add_note("Resolved", entry)

        updated = await self.ctx.appointments.update(appointment)
        if action == ResolutionAction.COMPLETE:
            await self._close_consultation(appointment_id, user_id)
        await self.ctx.uow.commit()
        logger.info("appointment_resolved", appointment_id=appointment_id, action=action.value)

        await self.ctx.audit.record(
            user_id=user_id,
            record_id=updated.id,
            action="RESOLVE",
            details=f"Appointment {appointment_id} resolved ({action.value}). Status: {' -> '.join(path)}.",
        )
        return updated

    async def confirm_booking(
        self,
        appointment_id: int,
        doctor_id: str,
        user_id: str,
        decision: BookingDecision,
        notes: str | None = None,
        reason: str | None = None,
    ) -> Appointment:
        """
        Doctor decision on a pending booking.

        CONFIRM moves the appointment to SCHEDULED; REJECT cancels it and
        requires a reason. Either way the patient is notified.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the appointment belongs to another doctor
            InvalidTransitionException: If the appointment is not pending
            DomainValidationException: If a rejection has no reason
        """
        appointment = await self._load(appointment_id)
        if appointment.doctor_id != doctor_id:
            raise ForbiddenException("You can only confirm appointments assigned to you")
        if appointment.status != AppointmentStatus.PENDING:
            raise self._rejected(
                appointment,
                f"Cannot confirm appointment with status {appointment.status.value}. "
                "Only PENDING appointments can be confirmed.",
            )
        if decision == BookingDecision.REJECT and (not reason or not reason.strip()):
            raise DomainValidationException("Rejection reason is required")

        if decision == BookingDecision.CONFIRM:
            appointment.status = AppointmentStatus.SCHEDULED
            if notes and notes.strip():
                appointment.add_note("Doctor Confirmed", notes.strip())
        else:
            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancelled_at = self.ctx.clock.now()
            appointment.add_note("Doctor Rejected", reason.strip())

        updated = await self.ctx.appointments.update(appointment)
        await self.ctx.uow.commit()
        logger.info("booking_decided", appointment_id=appointment_id, decision=decision.value)

        when = f"{updated.appointment_date.isoformat()} at {updated.time}"
        if decision == BookingDecision.CONFIRM:
            await self.ctx.notifier.notify(
                updated.patient_id,
                "Appointment Confirmed",
                f"Your appointment on {when} has been confirmed by your doctor.",
            )
            details = f"Appointment {appointment_id} confirmed by doctor {doctor_id}"
        else:
            await self.ctx.notifier.notify(
                updated.patient_id,
                "Appointment Status Update",
                f"Your appointment request for {when} could not be accepted.\n\n"
                f"Reason: {reason.strip()}",
            )
            details = f"Appointment {appointment_id} rejected by doctor {doctor_id}. Reason: {reason.strip()}"

        await self.ctx.audit.record(
            user_id=user_id,
            record_id=updated.id,
            action=decision.value.upper(),
            details=details,
        )
        return updated

    async def _close_consultation(self, appointment_id: int, user_id: str) -> None:
        consultation = await self.ctx.consultations.find_by_appointment_id(appointment_id)
        if consultation is None or consultation.state == ConsultationState.COMPLETED:
            return
        now = self.ctx.clock.now()
        if consultation.state == ConsultationState.NOT_STARTED:
            consultation.start(user_id, now)
        consultation.complete(RESOLVED_OUTCOME, ConsultationOutcomeType.CONSULTATION_ONLY, now)
        await self.ctx.consultations.update(consultation)

    async def _load(self, appointment_id: int) -> Appointment:
        appointment = await self.ctx.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")
        return appointment

    @staticmethod
    def _rejected(appointment: Appointment, message: str) -> InvalidTransitionException:
        return InvalidTransitionException(message, current_status=appointment.status.value)
