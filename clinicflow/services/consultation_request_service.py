"""Review workflow for patient-submitted consultation requests."""

from dataclasses import dataclass
from datetime import date

import structlog

from clinicflow.core.clock import scheduled_instant
from clinicflow.core.exceptions import (
    ConflictDetectedException,
    DomainValidationException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from clinicflow.domain.entities import Appointment, ConsultationRequestFields
from clinicflow.domain.statuses import AppointmentStatus, ConsultationRequestStatus
from clinicflow.domain.transitions import is_valid_request_transition, is_valid_transition
from clinicflow.services.audit_service import CONSULTATION_REQUEST_MODEL
from clinicflow.services.context import WorkflowContext

logger = structlog.get_logger(__name__)

MIN_DECLINE_REASON_LENGTH = 10


@dataclass
class ConsultationRequestResult:
    """Appointment plus its consultation request projection."""

    appointment: Appointment
    request: ConsultationRequestFields


class ConsultationRequestService:
    """Moves consultation requests through review."""

    def __init__(self, ctx: WorkflowContext):
        """Initialize service with workflow collaborators."""
        self.ctx = ctx

    async def request_more_info(
        self,
        appointment_id: int,
        doctor_id: str,
        questions: str | None,
        notes: str | None = None,
    ) -> ConsultationRequestResult:
        """
        Ask the patient for more information.

        Only a request in PENDING_REVIEW may move to NEEDS_MORE_INFO.

        Raises:
            DomainValidationException: If no questions are given
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the doctor is not assigned
            InvalidTransitionException: If the request is not pending review
        """
        if not questions or not questions.strip():
            raise DomainValidationException(
                "Questions are required when requesting more information"
            )
        questions = questions.strip()
        notes = notes.strip() if notes else None

        appointment = await self._load_open_appointment(appointment_id)
        if appointment.doctor_id != doctor_id:
            raise ForbiddenException("You are not assigned to this consultation request")

        fields = await self._request_fields(appointment_id)
        current = fields.consultation_request_status or ConsultationRequestStatus.SUBMITTED
        if current != ConsultationRequestStatus.PENDING_REVIEW:
            raise InvalidTransitionException(
                "Consultation request must be in PENDING_REVIEW state to request more "
                f"information. Current status: {current.value}",
                current_status=current.value,
                target_status=ConsultationRequestStatus.NEEDS_MORE_INFO.value,
            )
        self._ensure_request_transition(current, ConsultationRequestStatus.NEEDS_MORE_INFO)

        review_notes = f"Questions: {questions}\n\nAdditional Notes: {notes}" if notes else questions
        appointment.add_note("Doctor Requested More Info", review_notes)
        new_fields = ConsultationRequestFields(
            consultation_request_status=ConsultationRequestStatus.NEEDS_MORE_INFO,
            reviewed_by=doctor_id,
            reviewed_at=self.ctx.clock.now(),
            review_notes=review_notes,
        )

        updated = await self.ctx.appointments.update(appointment, new_fields)
        await self.ctx.uow.commit()
        logger.info("consultation_request_needs_more_info", appointment_id=appointment_id)

        body = (
            "The doctor reviewing your consultation request needs more information.\n\n"
            f"Questions:\n{questions}"
        )
        if notes:
            body += f"\n\nAdditional Notes:\n{notes}"
        await self.ctx.notifier.notify(
            updated.patient_id,
            "Consultation Request - Additional Information Needed",
            body,
        )

        await self.ctx.audit.record(
            user_id=doctor_id,
            record_id=updated.id,
            action="UPDATE",
            model=CONSULTATION_REQUEST_MODEL,
            details=(
                f"Doctor {doctor_id} requested more information for consultation request "
                f"{appointment_id}. Status: {current.value} -> "
                f"{ConsultationRequestStatus.NEEDS_MORE_INFO.value}."
            ),
        )
        return ConsultationRequestResult(appointment=updated, request=new_fields)

    async def begin_review(
        self,
        appointment_id: int,
        reviewer_id: str,
    ) -> ConsultationRequestResult:
        """Move a submitted (or re-submitted) request into PENDING_REVIEW."""
        return await self._transition(
            appointment_id,
            reviewer_id,
            ConsultationRequestStatus.PENDING_REVIEW,
            review_notes=None,
        )

    async def approve(
        self,
        appointment_id: int,
        reviewer_id: str,
        notes: str | None = None,
    ) -> ConsultationRequestResult:
        """Approve a request under review so it can be scheduled."""
        result = await self._transition(
            appointment_id,
            reviewer_id,
            ConsultationRequestStatus.APPROVED,
            review_notes=notes,
        )
        await self.ctx.notifier.notify(
            result.appointment.patient_id,
            "Consultation Request Approved",
            "Your consultation request has been approved. "
            "The clinic will contact you to confirm the appointment time.",
        )
        return result

    async def decline(
        self,
        appointment_id: int,
        reviewer_id: str,
        reason: str | None,
    ) -> ConsultationRequestResult:
        """
        Decline a request and cancel its appointment.

        Raises:
            DomainValidationException: If the reason is shorter than 10 characters
        """
        if not reason or len(reason.strip()) < MIN_DECLINE_REASON_LENGTH:
            raise DomainValidationException(
                f"A decline reason of at least {MIN_DECLINE_REASON_LENGTH} characters is required"
            )
        reason = reason.strip()

        result = await self._transition(
            appointment_id,
            reviewer_id,
            ConsultationRequestStatus.CANCELLED,
            review_notes=reason,
            cancel_appointment=True,
        )
        await self.ctx.notifier.notify(
            result.appointment.patient_id,
            "Consultation Request Declined",
            f"Unfortunately your consultation request could not be accepted.\n\nReason: {reason}",
        )
        return result

    async def schedule(
        self,
        appointment_id: int,
        doctor_id: str,
        appointment_date: date,
        time: str,
        notes: str | None = None,
    ) -> ConsultationRequestResult:
        """
        Propose a slot for an approved request.

        The appointment moves to the proposed date and time and becomes
        SCHEDULED; the request waits for the patient's confirmation.

        Raises:
            DomainValidationException: If the slot is malformed or not in the future
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the doctor is not assigned
            InvalidTransitionException: If the request is not approved
            ConflictDetectedException: If the slot is unavailable
        """
        now = self.ctx.clock.now()
        try:
            proposed_at = scheduled_instant(appointment_date, time, now.tzinfo)
        except ValueError as e:
            raise DomainValidationException(str(e)) from e
        if proposed_at <= now:
            raise DomainValidationException("Proposed appointment time must be in the future")

        appointment = await self._load_open_appointment(appointment_id)
        if appointment.doctor_id != doctor_id:
            raise ForbiddenException("You are not assigned to this consultation request")

        fields = await self._request_fields(appointment_id)
        current = fields.consultation_request_status or ConsultationRequestStatus.SUBMITTED
        self._ensure_request_transition(current, ConsultationRequestStatus.SCHEDULED)
        self._ensure_bookable(appointment)

        availability = await self.ctx.availability.is_available(
            doctor_id,
            appointment_date,
            time,
            self.ctx.default_duration_minutes,
            exclude_appointment_id=appointment.id,
        )
        if not availability.is_available:
            raise ConflictDetectedException(
                f"Selected slot is not available: {availability.reason}",
                reason=availability.reason,
            )

        appointment.appointment_date = appointment_date
        appointment.time = time
        if appointment.status == AppointmentStatus.PENDING:
            appointment.status = AppointmentStatus.SCHEDULED
        entry = f"Scheduled for {appointment_date.isoformat()} at {time}."
        if notes and notes.strip():
            entry += f" {notes.strip()}"
        appointment.add_note("Doctor Accepted", entry)
        new_fields = ConsultationRequestFields(
            consultation_request_status=ConsultationRequestStatus.SCHEDULED,
            reviewed_by=doctor_id,
            reviewed_at=now,
            review_notes=notes.strip() if notes and notes.strip() else fields.review_notes,
        )

        updated = await self.ctx.appointments.update(appointment, new_fields)
        await self.ctx.uow.commit()
        logger.info(
            "consultation_request_scheduled",
            appointment_id=appointment_id,
            appointment_date=appointment_date.isoformat(),
            time=time,
        )

        await self.ctx.notifier.notify(
            updated.patient_id,
            "Consultation Request Accepted",
            "Your consultation request has been accepted. "
            f"Appointment scheduled for {appointment_date.isoformat()} at {time}. "
            "Please confirm the appointment.",
        )
        await self.ctx.audit.record(
            user_id=doctor_id,
            record_id=updated.id,
            action="UPDATE",
            model=CONSULTATION_REQUEST_MODEL,
            details=(
                f"Doctor accepted consultation request. Status: {current.value} -> "
                f"{ConsultationRequestStatus.SCHEDULED.value}. "
                f"Scheduled for {appointment_date.isoformat()} at {time}."
            ),
        )
        return ConsultationRequestResult(appointment=updated, request=new_fields)

    async def confirm(
        self,
        appointment_id: int,
        patient_id: str,
    ) -> ConsultationRequestResult:
        """
        Patient confirmation of a scheduled consultation.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the appointment belongs to another patient
            InvalidTransitionException: If the request is not scheduled
        """
        appointment = await self._load_open_appointment(appointment_id)
        if appointment.patient_id != patient_id:
            raise ForbiddenException("Appointment does not belong to this patient")

        fields = await self._request_fields(appointment_id)
        current = fields.consultation_request_status or ConsultationRequestStatus.SUBMITTED
        if not is_valid_request_transition(current, ConsultationRequestStatus.CONFIRMED):
            raise InvalidTransitionException(
                "Consultation must be scheduled before confirmation. "
                f"Current status: {current.value}",
                current_status=current.value,
                target_status=ConsultationRequestStatus.CONFIRMED.value,
            )
        self._ensure_bookable(appointment)

        if appointment.status == AppointmentStatus.PENDING:
            appointment.status = AppointmentStatus.SCHEDULED
        new_fields = ConsultationRequestFields(
            consultation_request_status=ConsultationRequestStatus.CONFIRMED,
            reviewed_by=fields.reviewed_by,
            reviewed_at=fields.reviewed_at,
            review_notes=fields.review_notes,
        )

        updated = await self.ctx.appointments.update(appointment, new_fields)
        await self.ctx.uow.commit()
        logger.info("consultation_request_confirmed", appointment_id=appointment_id)

        await self.ctx.notifier.notify(
            updated.patient_id,
            "Consultation Confirmed",
            f"Your consultation has been confirmed for {updated.appointment_date.isoformat()} "
            f"at {updated.time}. We look forward to seeing you.",
        )
        await self.ctx.audit.record(
            user_id=patient_id,
            record_id=updated.id,
            action="UPDATE",
            model=CONSULTATION_REQUEST_MODEL,
            details=(
                f"Patient confirmed consultation scheduled for "
                f"{updated.appointment_date.isoformat()} at {updated.time}"
            ),
        )
        return ConsultationRequestResult(appointment=updated, request=new_fields)

    async def resubmit(
        self,
        appointment_id: int,
        patient_id: str,
        response: str | None,
    ) -> ConsultationRequestResult:
        """
        Send the patient's answers back for review.

        Raises:
            DomainValidationException: If the response is empty
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the appointment belongs to another patient
            InvalidTransitionException: If no information was requested
        """
        if not response or not response.strip():
            raise DomainValidationException("A response to the doctor's questions is required")
        response = response.strip()

        appointment = await self._load_open_appointment(appointment_id)
        if appointment.patient_id != patient_id:
            raise ForbiddenException("Appointment does not belong to this patient")

        fields = await self._request_fields(appointment_id)
        current = fields.consultation_request_status or ConsultationRequestStatus.SUBMITTED
        if current != ConsultationRequestStatus.NEEDS_MORE_INFO:
            raise InvalidTransitionException(
                "Consultation request is not awaiting more information. "
                f"Current status: {current.value}",
                current_status=current.value,
                target_status=ConsultationRequestStatus.SUBMITTED.value,
            )
        self._ensure_request_transition(current, ConsultationRequestStatus.SUBMITTED)

        appointment.add_note("Patient Response", response)
        new_fields = ConsultationRequestFields(
            consultation_request_status=ConsultationRequestStatus.SUBMITTED,
            reviewed_by=fields.reviewed_by,
            reviewed_at=fields.reviewed_at,
            review_notes=fields.review_notes,
        )

        updated = await self.ctx.appointments.update(appointment, new_fields)
        await self.ctx.uow.commit()
        logger.info("consultation_request_resubmitted", appointment_id=appointment_id)

        await self.ctx.audit.record(
            user_id=patient_id,
            record_id=updated.id,
            action="UPDATE",
            model=CONSULTATION_REQUEST_MODEL,
            details=(
                f"Patient answered the doctor's questions for consultation request {appointment_id}. "
                f"Status: {current.value} -> {ConsultationRequestStatus.SUBMITTED.value}."
            ),
        )
        return ConsultationRequestResult(appointment=updated, request=new_fields)

    async def _transition(
        self,
        appointment_id: int,
        reviewer_id: str,
        target: ConsultationRequestStatus,
        review_notes: str | None,
        cancel_appointment: bool = False,
    ) -> ConsultationRequestResult:
        appointment = await self._load_open_appointment(appointment_id)
        fields = await self._request_fields(appointment_id)
        current = fields.consultation_request_status or ConsultationRequestStatus.SUBMITTED
        self._ensure_request_transition(current, target)

        now = self.ctx.clock.now()
        new_fields = ConsultationRequestFields(
            consultation_request_status=target,
            reviewed_by=reviewer_id,
            reviewed_at=now,
            review_notes=review_notes or fields.review_notes,
        )
        if review_notes:
            appointment.add_note(f"Request {target.value.replace('_', ' ').title()}", review_notes)
        if cancel_appointment and is_valid_transition(appointment.status, AppointmentStatus.CANCELLED):
            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancelled_at = now

        updated = await self.ctx.appointments.update(appointment, new_fields)
        await self.ctx.uow.commit()
        logger.info(
            "consultation_request_transitioned",
            appointment_id=appointment_id,
            from_status=current.value,
            to_status=target.value,
        )

        await self.ctx.audit.record(
            user_id=reviewer_id,
            record_id=updated.id,
            action="UPDATE",
            model=CONSULTATION_REQUEST_MODEL,
            details=(
                f"Consultation request {appointment_id} moved from {current.value} "
                f"to {target.value} by {reviewer_id}."
            ),
        )
        return ConsultationRequestResult(appointment=updated, request=new_fields)

    async def _load_open_appointment(self, appointment_id: int) -> Appointment:
        appointment = await self.ctx.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")
        if appointment.status in (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED):
            raise InvalidTransitionException(
                f"Consultation request is closed: appointment is {appointment.status.value}",
                current_status=appointment.status.value,
            )
        return appointment

    async def _request_fields(self, appointment_id: int) -> ConsultationRequestFields:
        fields = await self.ctx.appointments.get_consultation_request_fields(appointment_id)
        return fields or ConsultationRequestFields(
            consultation_request_status=ConsultationRequestStatus.SUBMITTED
        )

    @staticmethod
    def _ensure_bookable(appointment: Appointment) -> None:
        if appointment.status in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            return
        if not is_valid_transition(appointment.status, AppointmentStatus.SCHEDULED):
            raise InvalidTransitionException(
                f"Cannot schedule an appointment that is {appointment.status.value}",
                current_status=appointment.status.value,
                target_status=AppointmentStatus.SCHEDULED.value,
            )

    @staticmethod
    def _ensure_request_transition(
        current: ConsultationRequestStatus,
        target: ConsultationRequestStatus,
    ) -> None:
        if not is_valid_request_transition(current, target):
            raise InvalidTransitionException(
                f"Cannot move consultation request from {current.value} to {target.value}",
                current_status=current.value,
                target_status=target.value,
            )
