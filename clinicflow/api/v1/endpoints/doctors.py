"""Doctor session endpoints."""

from fastapi import APIRouter, status

from clinicflow.core.exceptions import ForbiddenException
from clinicflow.dependencies import CurrentPrincipal, Workflow
from clinicflow.schemas.appointments import ReconcileSessionsResponse
from clinicflow.services.consultation_service import SessionReconciler

router = APIRouter()


@router.post(
    "/{doctor_id}/reconcile-sessions",
    response_model=ReconcileSessionsResponse,
    status_code=status.HTTP_200_OK,
    summary="Close stale active consultations",
)
async def reconcile_sessions(
    doctor_id: str,
    principal: CurrentPrincipal,
    ctx: Workflow,
) -> ReconcileSessionsResponse:
    """
    Force stale IN_CONSULTATION appointments of a doctor to COMPLETED.

    Doctors may reconcile their own sessions; admins may reconcile anyone's.
    """
    if principal.role != "admin" and not principal.acts_for_doctor(doctor_id):
        raise ForbiddenException("You can only reconcile your own consultations")

    result = await SessionReconciler(ctx).reconcile_stale_active_sessions(
        doctor_id, acting_user_id=principal.user_id
    )
    return ReconcileSessionsResponse(
        resolved_appointment_ids=[appointment.id for appointment in result.resolved],
        active_appointment_ids=[appointment.id for appointment in result.active],
    )
