"""Consultation lifecycle: start, complete and stale-session reconciliation."""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

import structlog

from clinicflow.core.clock import scheduled_instant
from clinicflow.core.exceptions import (
    ConflictDetectedException,
    DomainValidationException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from clinicflow.domain.entities import (
    Appointment,
    BillingItem,
    Consultation,
    ConsultationNotes,
    Payment,
)
from clinicflow.domain.statuses import (
    AppointmentStatus,
    ConsultationOutcomeType,
    ConsultationState,
    PatientDecision,
)
from clinicflow.domain.transitions import evaluate_transition, start_consultation_message
from clinicflow.services.context import WorkflowContext

logger = structlog.get_logger(__name__)

SYSTEM_USER_ID = "system"
STALE_OUTCOME = "Auto-resolved stale consultation"


def consultation_minutes(started_at: datetime | None, ended_at: datetime) -> int | None:
    """Whole minutes between consultation start and end."""
    if started_at is None:
        return None
    return max(0, math.floor((ended_at - started_at).total_seconds() / 60))


@dataclass
class ReconciliationResult:
    """Outcome of reconciling a doctor's IN_CONSULTATION appointments."""

    resolved: list[Appointment] = field(default_factory=list)
    active: list[Appointment] = field(default_factory=list)


class SessionReconciler:
    """
    Detects and closes stale IN_CONSULTATION appointments for a doctor.

    An appointment is stale when its consultation is completed or has an
    outcome, when it already has an end timestamp, when no consultation
    record exists, or when it was scheduled for another day. Stale
    appointments are forced to COMPLETED; the rest are returned as active.
    """

    def __init__(self, ctx: WorkflowContext):
        """Initialize reconciler with workflow collaborators."""
        self.ctx = ctx

    @staticmethod
    def staleness_reason(
        appointment: Appointment,
        consultation: Consultation | None,
        today: date,
    ) -> str | None:
        """Explain why an IN_CONSULTATION appointment is stale, or None if it is live."""
        if consultation is None:
            return "no consultation record"
        if consultation.state == ConsultationState.COMPLETED or consultation.completed_at:
            return "consultation already completed"
        if consultation.has_outcome:
            return "consultation outcome already recorded"
        if appointment.consultation_ended_at is not None:
            return "consultation end time already recorded"
        if appointment.appointment_date != today:
            return f"scheduled for {appointment.appointment_date.isoformat()}"
        return None

    async def reconcile_stale_active_sessions(
        self,
        doctor_id: str,
        excluding_appointment_id: int | None = None,
        acting_user_id: str | None = None,
    ) -> ReconciliationResult:
        """
        Close stale sessions and report the ones still genuinely active.

        Args:
            doctor_id: Doctor whose sessions are reconciled
            excluding_appointment_id: Appointment to leave untouched
            acting_user_id: User recorded in the audit trail

        Returns:
            Resolved and still-active appointments
        """
        result = ReconciliationResult()
        now = self.ctx.clock.now()
        today = now.date()

        candidates = await self.ctx.appointments.find_by_doctor_and_status(
            doctor_id, AppointmentStatus.IN_CONSULTATION
        )
        for candidate in candidates:
            if candidate.id == excluding_appointment_id:
                continue

            consultation = await self.ctx.consultations.find_by_appointment_id(candidate.id)
            reason = self.staleness_reason(candidate, consultation, today)
            if reason is None:
                result.active.append(candidate)
                continue

            candidate.status = AppointmentStatus.COMPLETED
            if candidate.consultation_ended_at is None:
                candidate.consultation_ended_at = now
            if candidate.consultation_duration is None:
                candidate.consultation_duration = consultation_minutes(
                    candidate.consultation_started_at, candidate.consultation_ended_at
                )
            candidate.add_note("Auto-Resolved", f"Stale consultation closed ({reason}).")
            resolved = await self.ctx.appointments.update(candidate)
            if consultation is not None and consultation.state != ConsultationState.COMPLETED:
                self._close(consultation, acting_user_id or SYSTEM_USER_ID, now)
                await self.ctx.consultations.update(consultation)
            await self.ctx.uow.commit()
            result.resolved.append(resolved)

            logger.warning(
                "stale_consultation_resolved",
                appointment_id=resolved.id,
                doctor_id=doctor_id,
                reason=reason,
            )
            await self.ctx.audit.record(
                user_id=acting_user_id or SYSTEM_USER_ID,
                record_id=resolved.id,
                action="AUTO_RESOLVE",
                details=(
                    f"Stale consultation for appointment {resolved.id} auto-completed ({reason}). "
                    f"Status: {AppointmentStatus.IN_CONSULTATION.value} -> "
                    f"{AppointmentStatus.COMPLETED.value}."
                ),
            )

        return result

    @staticmethod
    def _close(consultation: Consultation, user_id: str, now: datetime) -> None:
        # Keeps an outcome the doctor already recorded
        if consultation.state == ConsultationState.NOT_STARTED:
            consultation.start(user_id, now)
        outcome_type = consultation.outcome_type or ConsultationOutcomeType.CONSULTATION_ONLY
        decision = consultation.patient_decision
        if outcome_type == ConsultationOutcomeType.PROCEDURE_RECOMMENDED and decision is None:
            decision = PatientDecision.PENDING
        consultation.complete(consultation.outcome or STALE_OUTCOME, outcome_type, now, decision)


class StartConsultationService:
    """Starts the doctor's consultation for a checked-in patient."""

    def __init__(self, ctx: WorkflowContext):
        """Initialize service with workflow collaborators."""
        self.ctx = ctx
        self.reconciler = SessionReconciler(ctx)

    async def start(
        self,
        appointment_id: int,
        doctor_id: str,
        user_id: str,
        notes: str | None = None,
    ) -> Appointment:
        """
        Start a consultation.

        Raises:
            ConflictDetectedException: If the doctor has another live consultation
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the doctor is not assigned to the appointment
            InvalidTransitionException: If the patient is not ready to be seen
        """
        reconciliation = await self.reconciler.reconcile_stale_active_sessions(
            doctor_id,
            excluding_appointment_id=appointment_id,
            acting_user_id=user_id,
        )
        if reconciliation.active:
            blocking = reconciliation.active[0]
            patient = await self._patient_label(blocking.patient_id)
            raise ConflictDetectedException(
                f"You already have an active consultation with {patient} "
                f"(appointment #{blocking.id}). Complete it first.",
                reason="active_session",
                conflicting_appointment_id=blocking.id,
            )

        appointment = await self.ctx.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")

        if appointment.doctor_id != doctor_id:
            raise ForbiddenException("You are not assigned to this appointment")

        message = start_consultation_message(appointment.status)
        if message is not None:
            raise InvalidTransitionException(
                message,
                current_status=appointment.status.value,
                target_status=AppointmentStatus.IN_CONSULTATION.value,
            )

        now = self.ctx.clock.now()
        previous_status = appointment.status
        appointment.status = AppointmentStatus.IN_CONSULTATION
        appointment.consultation_started_at = now
        if notes and notes.strip():
            appointment.add_note("Consultation Started", notes.strip())

        updated = await self.ctx.appointments.update(appointment)

        consultation = await self.ctx.consultations.find_by_appointment_id(appointment_id)
        is_new = consultation is None
        if consultation is None:
            consultation = Consultation(appointment_id=appointment_id, doctor_id=doctor_id)
        consultation.start(user_id, now)
        if notes and notes.strip():
            consultation.attach_notes(ConsultationNotes.from_text(notes))

        if is_new:
            await self.ctx.consultations.save(consultation)
        else:
            await self.ctx.consultations.update(consultation)
        await self.ctx.uow.commit()

        logger.info(
            "consultation_started",
            appointment_id=appointment_id,
            doctor_id=doctor_id,
            previous_status=previous_status.value,
            resolved_stale=len(reconciliation.resolved),
        )

        await self.ctx.audit.record(
            user_id=user_id,
            record_id=updated.id,
            action="UPDATE",
            details=f"Consultation started for appointment {appointment_id} by doctor {doctor_id}",
        )
        return updated

    async def _patient_label(self, patient_id: str) -> str:
        contact = await self.ctx.contacts.get_contact(patient_id)
        if contact and contact.full_name:
            return contact.full_name
        return f"patient {patient_id}"


@dataclass(frozen=True)
class FollowUpRequest:
    """Requested follow-up booking."""

    appointment_date: date
    time: str
    type: str


@dataclass
class CompletionResult:
    """Completed appointment plus side outcomes."""

    appointment: Appointment
    follow_up_appointment_id: int | None = None
    notification_sent: bool = False
    payment_id: int | None = None
    billing_total: Decimal | None = None


class CompleteConsultationService:
    """Finalizes a consultation and its follow-up actions."""

    def __init__(self, ctx: WorkflowContext):
        """Initialize service with workflow collaborators."""
        self.ctx = ctx

    async def complete(
        self,
        appointment_id: int,
        doctor_id: str,
        outcome: str | None,
        outcome_type: ConsultationOutcomeType | None,
        patient_decision: PatientDecision | None = None,
        procedure_recommended: str | None = None,
        referral_info: str | None = None,
        follow_up: FollowUpRequest | None = None,
        billing_items: list[BillingItem] | None = None,
        user_id: str | None = None,
    ) -> CompletionResult:
        """
        Complete a consultation.

        Validation happens before any write. After the appointment is stored
        as COMPLETED, the consultation record is finalized, the follow-up is
        booked, an UNPAID bill is raised and the patient is notified. Failures
        in those steps are logged and do not undo the completion.

        Args:
            user_id: Acting user recorded in the audit trail, defaults to the doctor

        Raises:
            DomainValidationException: Missing outcome or a follow-up not in the future
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the doctor is not assigned
            InvalidTransitionException: If the appointment cannot be completed
        """
        now = self.ctx.clock.now()
        outcome_text = self._validate(outcome, outcome_type, patient_decision, follow_up, now)

        appointment = await self.ctx.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")

        if appointment.doctor_id != doctor_id:
            raise ForbiddenException("You are not assigned to this appointment")

        self._ensure_can_complete(appointment)

        appointment.status = AppointmentStatus.COMPLETED
        appointment.consultation_ended_at = now
        appointment.consultation_duration = consultation_minutes(
            appointment.consultation_started_at, now
        )
        appointment.add_note("Consultation Completed", outcome_text)
        if procedure_recommended and procedure_recommended.strip():
            appointment.add_note("Procedure Recommended", procedure_recommended.strip())
        if referral_info and referral_info.strip():
            appointment.add_note("Referral", referral_info.strip())

        updated = await self.ctx.appointments.update(appointment)
        await self.ctx.uow.commit()
        logger.info(
            "consultation_completed",
            appointment_id=appointment_id,
            doctor_id=doctor_id,
            outcome_type=outcome_type.value if outcome_type else None,
        )

        await self._finalize_consultation(appointment_id, outcome_text, outcome_type, patient_decision, now)

        follow_up_appointment = None
        if follow_up is not None:
            follow_up_appointment = await self._create_follow_up(updated, follow_up)

        items = billing_items or []
        payment = await self._record_billing(updated, items)

        notification_sent = await self.ctx.notifier.notify(
            updated.patient_id,
            "Consultation Completed",
            self._completion_email(updated, outcome_text, follow_up_appointment),
        )

        details = f"Consultation completed for appointment {appointment_id} by doctor {doctor_id}"
        if payment is not None:
            details += f" (billing total: {payment.total_amount}, {len(payment.items)} items)"
        if follow_up_appointment is not None:
            details += f" (follow-up scheduled: {follow_up_appointment.id})"
        await self.ctx.audit.record(
            user_id=user_id or doctor_id,
            record_id=updated.id,
            action="UPDATE",
            details=details,
        )

        return CompletionResult(
            appointment=updated,
            follow_up_appointment_id=follow_up_appointment.id if follow_up_appointment else None,
            notification_sent=notification_sent,
            payment_id=payment.id if payment else None,
            billing_total=payment.total_amount if payment else None,
        )

    async def _record_billing(
        self,
        appointment: Appointment,
        items: list[BillingItem],
    ) -> Payment | None:
        """
        Raise or refresh the appointment's bill.

        A bill saved earlier in the visit keeps its lines unless new items are
        given and it is not yet paid. Without items a new bill carries the
        clinic's default consultation fee.
        """
        try:
            existing = await self.ctx.payments.find_by_appointment_id(appointment.id)
            if existing is not None:
                if items and not existing.is_settled:
                    existing.replace_items(items)
                    existing = await self.ctx.payments.replace_items(existing)
                    await self.ctx.uow.commit()
                return existing

            payment = Payment(
                patient_id=appointment.patient_id,
                appointment_id=appointment.id,
                total_amount=self.ctx.default_consultation_fee,
            )
            if items:
                payment.replace_items(items)
            created = await self.ctx.payments.create(payment)
            await self.ctx.uow.commit()
            logger.info(
                "consultation_bill_created",
                appointment_id=appointment.id,
                payment_id=created.id,
                total_amount=str(created.total_amount),
            )
            return created
        except Exception as e:
            await self.ctx.uow.rollback()
            logger.error("billing_record_failed", appointment_id=appointment.id, error=str(e))
            return None

    def _validate(
        self,
        outcome: str | None,
        outcome_type: ConsultationOutcomeType | None,
        patient_decision: PatientDecision | None,
        follow_up: FollowUpRequest | None,
        now: datetime,
    ) -> str:
        if not outcome or not outcome.strip():
            raise DomainValidationException("Consultation outcome is required")
        if outcome_type is None:
            raise DomainValidationException("Consultation outcome type is required")
        if outcome_type == ConsultationOutcomeType.PROCEDURE_RECOMMENDED and patient_decision is None:
            raise DomainValidationException(
                "Patient decision is required when a procedure is recommended"
            )
        if follow_up is not None:
            try:
                follow_up_at = scheduled_instant(follow_up.appointment_date, follow_up.time, now.tzinfo)
            except ValueError as e:
                raise DomainValidationException(str(e)) from e
            if follow_up_at <= now:
                raise DomainValidationException("Follow-up appointment date must be in the future")
        return outcome.strip()

    @staticmethod
    def _ensure_can_complete(appointment: Appointment) -> None:
        if appointment.status == AppointmentStatus.CANCELLED:
            raise InvalidTransitionException(
                "Cannot complete a cancelled appointment",
                current_status=appointment.status.value,
                target_status=AppointmentStatus.COMPLETED.value,
            )
        if appointment.status == AppointmentStatus.COMPLETED:
            raise InvalidTransitionException(
                "Appointment is already completed",
                current_status=appointment.status.value,
                target_status=AppointmentStatus.COMPLETED.value,
            )
        result = evaluate_transition(appointment.status, AppointmentStatus.COMPLETED)
        if not result.is_valid:
            raise InvalidTransitionException(
                f"Consultation has not been started (status: {appointment.status.value})",
                current_status=appointment.status.value,
                target_status=AppointmentStatus.COMPLETED.value,
            )

    async def _finalize_consultation(
        self,
        appointment_id: int,
        outcome: str,
        outcome_type: ConsultationOutcomeType,
        patient_decision: PatientDecision | None,
        now: datetime,
    ) -> None:
        try:
            consultation = await self.ctx.consultations.find_by_appointment_id(appointment_id)
            if consultation is None:
                logger.warning("consultation_record_missing", appointment_id=appointment_id)
                return
            if consultation.state == ConsultationState.COMPLETED:
                return
            if consultation.state == ConsultationState.NOT_STARTED:
                consultation.start(consultation.doctor_id, now)
            consultation.complete(outcome, outcome_type, now, patient_decision)
            await self.ctx.consultations.update(consultation)
            await self.ctx.uow.commit()
        except Exception as e:
            await self.ctx.uow.rollback()
            logger.error(
                "consultation_finalize_failed",
                appointment_id=appointment_id,
                error=str(e),
            )

    async def _create_follow_up(
        self,
        original: Appointment,
        follow_up: FollowUpRequest,
    ) -> Appointment | None:
        try:
            created = await self.ctx.appointments.save(
                Appointment(
                    patient_id=original.patient_id,
                    doctor_id=original.doctor_id,
                    appointment_date=follow_up.appointment_date,
                    time=follow_up.time,
                    type=follow_up.type,
                    status=AppointmentStatus.PENDING,
                    note=f"Follow-up appointment for appointment {original.id}",
                )
            )
            await self.ctx.uow.commit()
            logger.info(
                "follow_up_created",
                appointment_id=original.id,
                follow_up_appointment_id=created.id,
            )
            return created
        except Exception as e:
            await self.ctx.uow.rollback()
            logger.error("follow_up_creation_failed", appointment_id=original.id, error=str(e))
            return None

    @staticmethod
    def _completion_email(
        appointment: Appointment,
        outcome: str,
        follow_up: Appointment | None,
    ) -> str:
        body = (
            f"Your consultation on {appointment.appointment_date.isoformat()} has been completed."
            f"\n\nOutcome: {outcome}"
        )
        if follow_up is not None:
            body += (
                f"\n\nFollow-up appointment scheduled for "
                f"{follow_up.appointment_date.isoformat()} at {follow_up.time}."
            )
        return body
