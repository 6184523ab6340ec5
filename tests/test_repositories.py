"""Tests for the PostgreSQL repositories (require TEST_DATABASE_URL)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import insert, select, text
from sqlalchemy.exc import IntegrityError

from clinicflow.core.exceptions import ConflictDetectedException
from clinicflow.domain.entities import (
    Appointment,
    AuditEvent,
    BillingItem,
    Consultation,
    ConsultationRequestFields,
    OutboxEvent,
    Payment,
)
from clinicflow.domain.statuses import (
    AppointmentStatus,
    ConsultationRequestStatus,
    ConsultationState,
    InviteStatus,
    PaymentStatus,
)
from clinicflow.models import audit_logs, staff_invites, users
from clinicflow.repositories.appointment_repository import SqlAppointmentRepository
from clinicflow.repositories.audit_repository import SqlAuditSink
from clinicflow.repositories.consultation_repository import SqlConsultationRepository
from clinicflow.repositories.contact_repository import SqlContactDirectory
from clinicflow.repositories.invite_repository import SqlStaffInviteRepository
from clinicflow.repositories.outbox_repository import SqlOutboxRepository
from clinicflow.repositories.payment_repository import SqlPaymentRepository


def new_appointment(status: AppointmentStatus = AppointmentStatus.SCHEDULED, time: str = "09:00"):
    return Appointment(
        patient_id="pat-1",
        doctor_id="doc-1",
        appointment_date=date(2026, 3, 10),
        time=time,
        type="General Consultation",
        status=status,
    )


@pytest.mark.asyncio
async def test_save_returns_generated_id(db_session) -> None:
    repo = SqlAppointmentRepository(db_session)

    saved = await repo.save(new_appointment())
    await db_session.commit()

    assert saved.id is not None
    assert saved.version == 1
    assert (await repo.find_by_id(saved.id)).time == "09:00"


@pytest.mark.asyncio
async def test_update_with_stale_version_is_rejected(db_session) -> None:
    repo = SqlAppointmentRepository(db_session)
    saved = await repo.save(new_appointment())
    await db_session.commit()

    first = await repo.update(saved)
    assert first.version == 2

    with pytest.raises(ConflictDetectedException) as exc_info:
        await repo.update(saved)
    assert exc_info.value.reason == "stale_version"


@pytest.mark.asyncio
async def test_second_active_session_violates_index(db_session) -> None:
    repo = SqlAppointmentRepository(db_session)
    await repo.save(new_appointment(AppointmentStatus.IN_CONSULTATION))
    other = await repo.save(new_appointment(AppointmentStatus.CHECKED_IN, time="09:30"))
    await db_session.commit()

    other.status = AppointmentStatus.IN_CONSULTATION
    with pytest.raises(ConflictDetectedException) as exc_info:
        await repo.update(other)
    assert exc_info.value.reason == "active_session"


@pytest.mark.asyncio
async def test_request_fields_are_upserted(db_session) -> None:
    repo = SqlAppointmentRepository(db_session)
    saved = await repo.save(new_appointment(AppointmentStatus.PENDING))
    await db_session.commit()

    saved = await repo.update(
        saved, ConsultationRequestFields(consultation_request_status=ConsultationRequestStatus.PENDING_REVIEW)
    )
    await repo.update(
        saved,
        ConsultationRequestFields(
            consultation_request_status=ConsultationRequestStatus.NEEDS_MORE_INFO,
            reviewed_by="doc-1",
            review_notes="Any allergies?",
        ),
    )
    await db_session.commit()

    fields = await repo.get_consultation_request_fields(saved.id)
    assert fields.consultation_request_status == ConsultationRequestStatus.NEEDS_MORE_INFO
    assert fields.review_notes == "Any allergies?"


@pytest.mark.asyncio
async def test_consultation_round_trip(db_session) -> None:
    appointment = await SqlAppointmentRepository(db_session).save(new_appointment())
    repo = SqlConsultationRepository(db_session)

    saved = await repo.save(Consultation(appointment_id=appointment.id, doctor_id="doc-1"))
    saved.state = ConsultationState.IN_PROGRESS
    await repo.update(saved)
    await db_session.commit()

    found = await repo.find_by_appointment_id(appointment.id)
    assert found.state == ConsultationState.IN_PROGRESS


@pytest.mark.asyncio
async def test_invite_and_outbox(db_session) -> None:
    invite_id = uuid4()
    await db_session.execute(
        insert(staff_invites).values(
            id=invite_id,
            surgical_case_id="case-42",
            invited_by_user_id="surgeon-1",
            invited_user_id="nurse-7",
            invited_role="SCRUB_NURSE",
        )
    )
    invites = SqlStaffInviteRepository(db_session)
    invite = await invites.find_by_id(invite_id)
    invite.status = InviteStatus.CANCELLED
    await invites.update(invite, expected_status=InviteStatus.PENDING)

    outbox = SqlOutboxRepository(db_session)
    await outbox.create(OutboxEvent(type="STAFF_INVITE_CANCELLED", payload={"inviteId": str(invite_id)}))
    await db_session.commit()

    assert (await invites.find_by_id(invite_id)).status == InviteStatus.CANCELLED
    [pending] = await outbox.find_pending(10)
    assert pending.payload == {"inviteId": str(invite_id)}


@pytest.mark.asyncio
async def test_audit_sink_and_contacts(db_session) -> None:
    await db_session.execute(
        insert(users).values(id="pat-1", email="ada@example.com", full_name="Ada Patient")
    )
    await SqlAuditSink(db_session).record_event(
        AuditEvent(user_id="u1", record_id="1", action="UPDATE", model="Appointment", details="x")
    )

    rows = (await db_session.execute(select(audit_logs))).fetchall()
    assert len(rows) == 1

    contact = await SqlContactDirectory(db_session).get_contact("pat-1")
    assert contact.email == "ada@example.com"
    assert await SqlContactDirectory(db_session).get_contact("missing") is None


@pytest.mark.asyncio
async def test_invite_update_is_guarded_on_status(db_session) -> None:
    invite_id = uuid4()
    await db_session.execute(
        insert(staff_invites).values(
            id=invite_id,
            surgical_case_id="case-42",
            invited_by_user_id="surgeon-1",
            invited_user_id="nurse-7",
            invited_role="SCRUB_NURSE",
        )
    )
    invites = SqlStaffInviteRepository(db_session)
    first = await invites.find_by_id(invite_id)
    second = await invites.find_by_id(invite_id)

    first.status = InviteStatus.CANCELLED
    await invites.update(first, expected_status=InviteStatus.PENDING)

    second.status = InviteStatus.CANCELLED
    with pytest.raises(ConflictDetectedException) as exc_info:
        await invites.update(second, expected_status=InviteStatus.PENDING)
    assert exc_info.value.reason == "stale_status"


@pytest.mark.asyncio
async def test_failed_audit_insert_leaves_session_usable(db_session) -> None:
    sink = SqlAuditSink(db_session)
    with pytest.raises(IntegrityError):
        await sink.record_event(
            AuditEvent(user_id=None, record_id="1", action="UPDATE", model="Appointment", details="x")
        )

    saved = await SqlAppointmentRepository(db_session).save(new_appointment())
    await db_session.commit()

    assert saved.id is not None
    assert (await db_session.execute(text("SELECT 1"))).scalar() == 1


@pytest.mark.asyncio
async def test_payment_round_trip(db_session) -> None:
    appointment = await SqlAppointmentRepository(db_session).save(new_appointment())
    repo = SqlPaymentRepository(db_session)

    created = await repo.create(
        Payment(
            patient_id="pat-1",
            appointment_id=appointment.id,
            total_amount=Decimal("5000"),
        )
    )
    created.replace_items(
        [
            BillingItem("Consultation", Decimal("4000")),
            BillingItem("Blood panel", Decimal("750.25"), quantity=2),
        ]
    )
    await repo.replace_items(created)
    await db_session.commit()

    found = await repo.find_by_appointment_id(appointment.id)
    assert found.id == created.id
    assert found.status == PaymentStatus.UNPAID
    assert found.total_amount == Decimal("5500.50")
    assert [(item.description, item.quantity) for item in found.items] == [
        ("Consultation", 1),
        ("Blood panel", 2),
    ]
    assert await repo.find_by_appointment_id(appointment.id + 1) is None
