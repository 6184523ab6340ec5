"""Tests for no-show, cancellation and resolution of stuck appointments."""

from datetime import UTC, datetime

import pytest

from clinicflow.core.exceptions import (
    DomainValidationException,
    ForbiddenException,
    InvalidTransitionException,
)
from clinicflow.domain.entities import Consultation
from clinicflow.domain.statuses import (
    AppointmentStatus,
    ConsultationOutcomeType,
    ConsultationState,
)
from clinicflow.domain.transitions import is_valid_transition
from clinicflow.services.appointment_admin_service import (
    AppointmentAdminService,
    BookingDecision,
    ResolutionAction,
)
from fakes import DOCTOR_ID, OTHER_DOCTOR_ID, STAFF_ID

ARRIVED = datetime(2026, 3, 10, 8, 55, tzinfo=UTC)


@pytest.mark.asyncio
async def test_mark_no_show(ctx, make_appointment, audit_sink) -> None:
    appointment = make_appointment(status=AppointmentStatus.SCHEDULED, time="08:00")

    result = await AppointmentAdminService(ctx).mark_no_show(
        appointment.id, STAFF_ID, "Did not arrive", notes="Phone unreachable"
    )

    assert result.status == AppointmentStatus.NO_SHOW
    assert result.no_show is True
    assert result.no_show_at == ctx.clock.now()
    assert "[No-Show] Reason: Did not arrive\nNotes: Phone unreachable" in result.note
    assert "Status: SCHEDULED -> NO_SHOW." in audit_sink.events[-1].details


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,fields,message",
    [
        (AppointmentStatus.CANCELLED, {}, "Cannot mark a cancelled appointment as no-show"),
        (AppointmentStatus.COMPLETED, {}, "Cannot mark a completed appointment as no-show"),
        (
            AppointmentStatus.CHECKED_IN,
            {"checked_in_at": ARRIVED},
            "Cannot mark appointment as no-show: patient has already checked in",
        ),
        (
            AppointmentStatus.NO_SHOW,
            {"no_show": True},
            "Appointment is already marked as no-show",
        ),
    ],
)
async def test_mark_no_show_rejected(ctx, make_appointment, status, fields, message) -> None:
    appointment = make_appointment(status=status, **fields)

    with pytest.raises(InvalidTransitionException) as exc_info:
        await AppointmentAdminService(ctx).mark_no_show(appointment.id, STAFF_ID, "Did not arrive")

    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_mark_no_show_requires_reason(ctx, make_appointment) -> None:
    appointment = make_appointment()

    with pytest.raises(DomainValidationException):
        await AppointmentAdminService(ctx).mark_no_show(appointment.id, STAFF_ID, "  ")


@pytest.mark.asyncio
async def test_pending_appointment_cannot_be_no_show(ctx, make_appointment) -> None:
    appointment = make_appointment(status=AppointmentStatus.PENDING)

    with pytest.raises(InvalidTransitionException):
        await AppointmentAdminService(ctx).mark_no_show(appointment.id, STAFF_ID, "Did not arrive")


@pytest.mark.asyncio
async def test_cancel_appointment(ctx, make_appointment, email_sender, audit_sink) -> None:
    appointment = make_appointment(status=AppointmentStatus.CHECKED_IN)

    result = await AppointmentAdminService(ctx).cancel(appointment.id, STAFF_ID, "Patient felt better")

    assert result.status == AppointmentStatus.CANCELLED
    assert result.cancelled_at == ctx.clock.now()
    assert "[Cancelled] Patient felt better" in result.note
    assert email_sender.subjects() == ["Appointment Cancelled"]
    assert audit_sink.actions() == ["CANCEL"]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED])
async def test_cancel_closed_appointment(ctx, make_appointment, status) -> None:
    appointment = make_appointment(status=status)

    with pytest.raises(InvalidTransitionException) as exc_info:
        await AppointmentAdminService(ctx).cancel(appointment.id, STAFF_ID, "Duplicate booking")

    assert exc_info.value.message == f"Appointment is already {status.value}"


@pytest.mark.asyncio
async def test_resolve_checked_in_as_complete(
    ctx, make_appointment, consultation_repo, audit_sink
) -> None:
    """Test completing a stuck check-in walks through IN_CONSULTATION."""
    appointment = make_appointment(status=AppointmentStatus.CHECKED_IN, checked_in_at=ARRIVED)
    consultation_repo.add(Consultation(appointment_id=appointment.id, doctor_id="doc-1"))

    result = await AppointmentAdminService(ctx).resolve(
        appointment.id, STAFF_ID, ResolutionAction.COMPLETE, "Seen off the books"
    )

    assert result.status == AppointmentStatus.COMPLETED
    assert result.consultation_ended_at == ctx.clock.now()
    assert "[Resolved] Resolved as complete. Seen off the books" in result.note
    consultation = consultation_repo.rows[appointment.id]
    assert consultation.state == ConsultationState.COMPLETED
    assert consultation.outcome_type == ConsultationOutcomeType.CONSULTATION_ONLY
    assert audit_sink.events[-1].action == "RESOLVE"
    assert audit_sink.events[-1].details.endswith(
        "Status: CHECKED_IN -> IN_CONSULTATION -> COMPLETED."
    )


@pytest.mark.asyncio
async def test_resolve_in_consultation_as_cancel(ctx, make_appointment, audit_sink) -> None:
    appointment = make_appointment(status=AppointmentStatus.IN_CONSULTATION)

    result = await AppointmentAdminService(ctx).resolve(appointment.id, STAFF_ID, ResolutionAction.CANCEL)

    assert result.status == AppointmentStatus.CANCELLED
    assert audit_sink.events[-1].details.endswith("Status: IN_CONSULTATION -> CANCELLED.")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW],
)
async def test_resolve_only_arrived_appointments(ctx, make_appointment, status) -> None:
    appointment = make_appointment(status=status)

    with pytest.raises(InvalidTransitionException):
        await AppointmentAdminService(ctx).resolve(appointment.id, STAFF_ID, ResolutionAction.COMPLETE)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", list(AppointmentStatus))
async def test_no_show_follows_transition_table(ctx, make_appointment, status) -> None:
    appointment = make_appointment(status=status)
    service = AppointmentAdminService(ctx)

    if is_valid_transition(status, AppointmentStatus.NO_SHOW):
        result = await service.mark_no_show(appointment.id, STAFF_ID, "Did not arrive")
        assert result.status == AppointmentStatus.NO_SHOW
    else:
        with pytest.raises(InvalidTransitionException):
            await service.mark_no_show(appointment.id, STAFF_ID, "Did not arrive")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", list(AppointmentStatus))
async def test_cancel_follows_transition_table(ctx, make_appointment, status) -> None:
    appointment = make_appointment(status=status)
    service = AppointmentAdminService(ctx)

    if is_valid_transition(status, AppointmentStatus.CANCELLED):
        result = await service.cancel(appointment.id, STAFF_ID, "Clinic closed")
        assert result.status == AppointmentStatus.CANCELLED
    else:
        with pytest.raises(InvalidTransitionException):
            await service.cancel(appointment.id, STAFF_ID, "Clinic closed")


@pytest.mark.asyncio
async def test_doctor_confirms_pending_booking(ctx, make_appointment, email_sender, audit_sink) -> None:
    appointment = make_appointment(status=AppointmentStatus.PENDING)

    result = await AppointmentAdminService(ctx).confirm_booking(
        appointment.id, DOCTOR_ID, "user-doc-1", BookingDecision.CONFIRM, notes="See you then"
    )

    assert result.status == AppointmentStatus.SCHEDULED
    assert "[Doctor Confirmed] See you then" in result.note
    assert email_sender.subjects() == ["Appointment Confirmed"]
    assert audit_sink.actions() == ["CONFIRM"]
    assert audit_sink.events[-1].user_id == "user-doc-1"


@pytest.mark.asyncio
async def test_doctor_rejects_pending_booking(ctx, make_appointment, email_sender, audit_sink) -> None:
    appointment = make_appointment(status=AppointmentStatus.PENDING)

    result = await AppointmentAdminService(ctx).confirm_booking(
        appointment.id, DOCTOR_ID, "user-doc-1", BookingDecision.REJECT, reason="On leave that week"
    )

    assert result.status == AppointmentStatus.CANCELLED
    assert result.cancelled_at == ctx.clock.now()
    assert email_sender.subjects() == ["Appointment Status Update"]
    assert audit_sink.actions() == ["REJECT"]


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", [None, "", "   "])
async def test_rejecting_booking_requires_reason(ctx, make_appointment, appointment_repo, reason) -> None:
    appointment = make_appointment(status=AppointmentStatus.PENDING)

    with pytest.raises(DomainValidationException):
        await AppointmentAdminService(ctx).confirm_booking(
            appointment.id, DOCTOR_ID, "user-doc-1", BookingDecision.REJECT, reason=reason
        )

    assert appointment_repo.rows[appointment.id].status == AppointmentStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status", [s for s in AppointmentStatus if s != AppointmentStatus.PENDING]
)
async def test_only_pending_bookings_can_be_confirmed(ctx, make_appointment, status) -> None:
    appointment = make_appointment(status=status)

    with pytest.raises(InvalidTransitionException):
        await AppointmentAdminService(ctx).confirm_booking(
            appointment.id, DOCTOR_ID, "user-doc-1", BookingDecision.CONFIRM
        )


@pytest.mark.asyncio
async def test_booking_for_other_doctor_is_forbidden(ctx, make_appointment) -> None:
    appointment = make_appointment(status=AppointmentStatus.PENDING, doctor_id=OTHER_DOCTOR_ID)

    with pytest.raises(ForbiddenException):
        await AppointmentAdminService(ctx).confirm_booking(
            appointment.id, DOCTOR_ID, "user-doc-1", BookingDecision.CONFIRM
        )
