"""Consultation request review endpoints."""

from fastapi import APIRouter, status

from clinicflow.dependencies import Clinician, CurrentPrincipal, Workflow
from clinicflow.schemas.appointments import AppointmentResponse
from clinicflow.schemas.consultation_requests import (
    ConsultationRequestResponse,
    DeclineRequest,
    RequestMoreInfoRequest,
    ResubmitRequest,
    ReviewNotesRequest,
    ScheduleRequestSlot,
)
from clinicflow.services.consultation_request_service import (
    ConsultationRequestResult,
    ConsultationRequestService,
)

router = APIRouter()


def _to_response(result: ConsultationRequestResult) -> ConsultationRequestResponse:
    return ConsultationRequestResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        consultation_request_status=result.request.consultation_request_status,
        reviewed_by=result.request.reviewed_by,
        reviewed_at=result.request.reviewed_at,
        review_notes=result.request.review_notes,
    )


@router.post(
    "/{appointment_id}/request-info",
    response_model=ConsultationRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Request more information from the patient",
)
async def request_more_info(
    appointment_id: int,
    data: RequestMoreInfoRequest,
    principal: Clinician,
    ctx: Workflow,
) -> ConsultationRequestResponse:
    """Ask the patient for more information about a request under review."""
    result = await ConsultationRequestService(ctx).request_more_info(
        appointment_id,
        doctor_id=principal.acting_doctor_id,
        questions=data.questions,
        notes=data.notes,
    )
    return _to_response(result)


@router.post(
    "/{appointment_id}/review",
    response_model=ConsultationRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Begin reviewing a consultation request",
)
async def begin_review(
    appointment_id: int,
    principal: Clinician,
    ctx: Workflow,
) -> ConsultationRequestResponse:
    """Move a submitted request into review."""
    result = await ConsultationRequestService(ctx).begin_review(appointment_id, principal.user_id)
    return _to_response(result)


@router.post(
    "/{appointment_id}/approve",
    response_model=ConsultationRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve a consultation request",
)
async def approve_request(
    appointment_id: int,
    data: ReviewNotesRequest,
    principal: Clinician,
    ctx: Workflow,
) -> ConsultationRequestResponse:
    """Approve a request under review."""
    result = await ConsultationRequestService(ctx).approve(
        appointment_id, principal.user_id, data.notes
    )
    return _to_response(result)


@router.post(
    "/{appointment_id}/decline",
    response_model=ConsultationRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Decline a consultation request",
)
async def decline_request(
    appointment_id: int,
    data: DeclineRequest,
    principal: Clinician,
    ctx: Workflow,
) -> ConsultationRequestResponse:
    """Decline a request and cancel its appointment."""
    result = await ConsultationRequestService(ctx).decline(
        appointment_id, principal.user_id, data.reason
    )
    return _to_response(result)


@router.post(
    "/{appointment_id}/schedule",
    response_model=ConsultationRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Schedule an approved consultation request",
)
async def schedule_request(
    appointment_id: int,
    data: ScheduleRequestSlot,
    principal: Clinician,
    ctx: Workflow,
) -> ConsultationRequestResponse:
    """Propose a date and time; the patient confirms it afterwards."""
    result = await ConsultationRequestService(ctx).schedule(
        appointment_id,
        doctor_id=principal.acting_doctor_id,
        appointment_date=data.appointment_date,
        time=data.time,
        notes=data.notes,
    )
    return _to_response(result)


@router.post(
    "/{appointment_id}/confirm",
    response_model=ConsultationRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm a scheduled consultation",
)
async def confirm_request(
    appointment_id: int,
    principal: CurrentPrincipal,
    ctx: Workflow,
) -> ConsultationRequestResponse:
    """Patient confirmation of the proposed slot."""
    result = await ConsultationRequestService(ctx).confirm(appointment_id, principal.user_id)
    return _to_response(result)


@router.post(
    "/{appointment_id}/resubmit",
    response_model=ConsultationRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Answer the doctor's questions",
)
async def resubmit_request(
    appointment_id: int,
    data: ResubmitRequest,
    principal: CurrentPrincipal,
    ctx: Workflow,
) -> ConsultationRequestResponse:
    """Send a request back for review with the patient's answers."""
    result = await ConsultationRequestService(ctx).resubmit(
        appointment_id, principal.user_id, data.response
    )
    return _to_response(result)
