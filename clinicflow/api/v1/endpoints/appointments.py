"""Appointment workflow endpoints."""

from fastapi import APIRouter, status

from clinicflow.core.exceptions import NotFoundException
from clinicflow.dependencies import CheckInStaff, Clinician, CurrentPrincipal, FrontDesk, Workflow
from clinicflow.domain.entities import BillingItem
from clinicflow.schemas.appointments import (
    AppointmentResponse,
    CancelAppointmentRequest,
    CheckInRequest,
    CompleteConsultationRequest,
    CompleteConsultationResponse,
    ConfirmBookingRequest,
    NoShowRequest,
    RescheduleRequest,
    ResolveAppointmentRequest,
    StartConsultationRequest,
)
from clinicflow.services.appointment_admin_service import AppointmentAdminService
from clinicflow.services.check_in_service import CheckInService
from clinicflow.services.consultation_service import (
    CompleteConsultationService,
    FollowUpRequest,
    StartConsultationService,
)
from clinicflow.services.reschedule_service import RescheduleService

router = APIRouter()


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: int,
    principal: CurrentPrincipal,
    ctx: Workflow,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    appointment = await ctx.appointments.find_by_id(appointment_id)
    if appointment is None:
        raise NotFoundException(f"Appointment {appointment_id} not found")
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm or reject a pending booking",
)
async def confirm_booking(
    appointment_id: int,
    data: ConfirmBookingRequest,
    principal: Clinician,
    ctx: Workflow,
) -> AppointmentResponse:
    """The assigned doctor accepts a pending booking, or rejects it with a reason."""
    appointment = await AppointmentAdminService(ctx).confirm_booking(
        appointment_id,
        doctor_id=principal.acting_doctor_id,
        user_id=principal.user_id,
        decision=data.decision,
        notes=data.notes,
        reason=data.reason,
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/check-in",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Check patient in",
)
async def check_in(
    appointment_id: int,
    data: CheckInRequest,
    principal: CheckInStaff,
    ctx: Workflow,
) -> AppointmentResponse:
    """
    Record the patient's arrival.

    Checking in an already checked-in patient succeeds without changing status.
    """
    appointment = await CheckInService(ctx).check_in(appointment_id, principal.user_id, data.notes)
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/start-consultation",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Start consultation",
)
async def start_consultation(
    appointment_id: int,
    data: StartConsultationRequest,
    principal: CurrentPrincipal,
    ctx: Workflow,
) -> AppointmentResponse:
    """Start the consultation for a checked-in patient."""
    appointment = await StartConsultationService(ctx).start(
        appointment_id,
        doctor_id=principal.acting_doctor_id,
        user_id=principal.user_id,
        notes=data.notes,
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/complete-consultation",
    response_model=CompleteConsultationResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete consultation",
)
async def complete_consultation(
    appointment_id: int,
    data: CompleteConsultationRequest,
    principal: CurrentPrincipal,
    ctx: Workflow,
) -> CompleteConsultationResponse:
    """
    Complete a consultation with its outcome.

    Optionally books a follow-up appointment and captures billing items.
    """
    follow_up = None
    if data.follow_up is not None:
        follow_up = FollowUpRequest(
            appointment_date=data.follow_up.appointment_date,
            time=data.follow_up.time,
            type=data.follow_up.type,
        )

    result = await CompleteConsultationService(ctx).complete(
        appointment_id,
        doctor_id=principal.acting_doctor_id,
        outcome=data.outcome,
        outcome_type=data.outcome_type,
        patient_decision=data.patient_decision,
        procedure_recommended=data.procedure_recommended,
        referral_info=data.referral_info,
        follow_up=follow_up,
        billing_items=[
            BillingItem(description=item.description, amount=item.amount, quantity=item.quantity)
            for item in data.billing_items
        ],
        user_id=principal.user_id,
    )
    return CompleteConsultationResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        follow_up_appointment_id=result.follow_up_appointment_id,
        notification_sent=result.notification_sent,
        payment_id=result.payment_id,
        billing_total=result.billing_total,
    )


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    principal: FrontDesk,
    ctx: Workflow,
) -> AppointmentResponse:
    """Move an appointment to a new date and time with the same doctor."""
    appointment = await RescheduleService(ctx).reschedule(
        appointment_id,
        new_date=data.new_date,
        new_time=data.new_time,
        actor_id=principal.user_id,
        reason=data.reason,
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/no-show",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark appointment as no-show",
)
async def mark_no_show(
    appointment_id: int,
    data: NoShowRequest,
    principal: FrontDesk,
    ctx: Workflow,
) -> AppointmentResponse:
    """Mark a scheduled appointment as a no-show."""
    appointment = await AppointmentAdminService(ctx).mark_no_show(
        appointment_id, principal.user_id, data.reason, data.notes
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest,
    principal: FrontDesk,
    ctx: Workflow,
) -> AppointmentResponse:
    """Cancel an appointment that is not yet completed."""
    appointment = await AppointmentAdminService(ctx).cancel(
        appointment_id, principal.user_id, data.reason
    )
    return AppointmentResponse.model_validate(appointment)


@router.post(
    "/{appointment_id}/resolve",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Resolve stuck appointment",
)
async def resolve_appointment(
    appointment_id: int,
    data: ResolveAppointmentRequest,
    principal: FrontDesk,
    ctx: Workflow,
) -> AppointmentResponse:
    """Complete or cancel an appointment left checked in or in consultation."""
    appointment = await AppointmentAdminService(ctx).resolve(
        appointment_id, principal.user_id, data.action, data.notes
    )
    return AppointmentResponse.model_validate(appointment)
