"""Tests for rescheduling appointments."""

from datetime import UTC, datetime, timedelta

import pytest

from clinicflow.core.exceptions import (
    ConflictDetectedException,
    DomainValidationException,
    InvalidTransitionException,
)
from clinicflow.domain.statuses import AppointmentStatus
from clinicflow.domain.transitions import is_terminal
from clinicflow.services.reschedule_service import RescheduleService
from fakes import DOCTOR_ID, OTHER_DOCTOR_ID, TODAY

TOMORROW = TODAY + timedelta(days=1)


@pytest.mark.asyncio
async def test_reschedule_pending_appointment(ctx, make_appointment, email_sender, audit_sink) -> None:
    appointment = make_appointment(status=AppointmentStatus.PENDING, time="11:00")

    result = await RescheduleService(ctx).reschedule(
        appointment.id, TOMORROW, "14:00", DOCTOR_ID, reason="Doctor in surgery"
    )

    assert result.status == AppointmentStatus.SCHEDULED
    assert result.appointment_date == TOMORROW
    assert result.time == "14:00"
    assert "[Rescheduled]" in result.note
    assert "Reason: Doctor in surgery" in result.note

    to, subject, body = email_sender.sent[0]
    assert to == "ada@example.com"
    assert subject == "Appointment Rescheduled"
    assert f"Old Time: {TODAY.isoformat()} at 11:00" in body
    assert f"New Time: {TOMORROW.isoformat()} at 14:00" in body

    event = audit_sink.events[-1]
    assert event.action == "RESCHEDULE"
    assert event.details == (
        f"Rescheduled from {TODAY.isoformat()} 11:00 to {TOMORROW.isoformat()} 14:00. "
        "Status: PENDING -> SCHEDULED."
    )


@pytest.mark.asyncio
async def test_reschedule_clears_arrival_metadata(ctx, make_appointment) -> None:
    appointment = make_appointment(
        status=AppointmentStatus.CHECKED_IN,
        checked_in_at=datetime(2026, 3, 10, 9, 0, tzinfo=UTC),
        checked_in_by="staff-1",
        late_arrival=True,
        late_by_minutes=3,
    )

    result = await RescheduleService(ctx).reschedule(appointment.id, TOMORROW, "09:00", DOCTOR_ID)

    assert result.status == AppointmentStatus.SCHEDULED
    assert result.checked_in_at is None
    assert result.checked_in_by is None
    assert result.late_arrival is False
    assert result.late_by_minutes is None


@pytest.mark.asyncio
async def test_reschedule_within_same_slot_ignores_itself(ctx, make_appointment) -> None:
    appointment = make_appointment(appointment_date=TOMORROW, time="10:00")

    result = await RescheduleService(ctx).reschedule(appointment.id, TOMORROW, "10:15", DOCTOR_ID)

    assert result.time == "10:15"


@pytest.mark.asyncio
async def test_reschedule_into_taken_slot(ctx, make_appointment, appointment_repo) -> None:
    make_appointment(appointment_date=TOMORROW, time="14:00")
    appointment = make_appointment(time="11:00")

    with pytest.raises(ConflictDetectedException) as exc_info:
        await RescheduleService(ctx).reschedule(appointment.id, TOMORROW, "14:15", DOCTOR_ID)

    assert exc_info.value.message == (
        "Selected slot is not available: Doctor already has an appointment from 14:00 to 14:30"
    )
    stored = await appointment_repo.find_by_id(appointment.id)
    assert stored.appointment_date == TODAY


@pytest.mark.asyncio
async def test_cancelled_booking_does_not_block_slot(ctx, make_appointment) -> None:
    make_appointment(status=AppointmentStatus.CANCELLED, appointment_date=TOMORROW, time="14:00")
    make_appointment(appointment_date=TOMORROW, time="14:00", doctor_id=OTHER_DOCTOR_ID)
    appointment = make_appointment(time="11:00")

    result = await RescheduleService(ctx).reschedule(appointment.id, TOMORROW, "14:00", DOCTOR_ID)

    assert result.appointment_date == TOMORROW


@pytest.mark.asyncio
async def test_reschedule_into_past(ctx, make_appointment) -> None:
    appointment = make_appointment()

    with pytest.raises(ConflictDetectedException) as exc_info:
        await RescheduleService(ctx).reschedule(
            appointment.id, TODAY - timedelta(days=1), "10:00", DOCTOR_ID
        )

    assert exc_info.value.message == (
        "Selected slot is not available: Appointment date cannot be in the past"
    )


@pytest.mark.asyncio
async def test_reschedule_rejects_malformed_time(ctx, make_appointment) -> None:
    appointment = make_appointment()

    with pytest.raises(DomainValidationException):
        await RescheduleService(ctx).reschedule(appointment.id, TOMORROW, "2pm", DOCTOR_ID)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.IN_CONSULTATION],
)
async def test_reschedule_rejected_for_status(ctx, make_appointment, email_sender, status) -> None:
    appointment = make_appointment(status=status)

    with pytest.raises(InvalidTransitionException):
        await RescheduleService(ctx).reschedule(appointment.id, TOMORROW, "10:00", DOCTOR_ID)

    assert email_sender.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", list(AppointmentStatus))
async def test_reschedule_sweep_over_statuses(ctx, make_appointment, status) -> None:
    appointment = make_appointment(status=status)
    service = RescheduleService(ctx)

    if is_terminal(status) or status == AppointmentStatus.IN_CONSULTATION:
        with pytest.raises(InvalidTransitionException):
            await service.reschedule(appointment.id, TOMORROW, "10:00", DOCTOR_ID)
    else:
        result = await service.reschedule(appointment.id, TOMORROW, "10:00", DOCTOR_ID)
        assert result.status == AppointmentStatus.SCHEDULED
        assert result.checked_in_at is None
