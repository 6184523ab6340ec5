import os
from collections.abc import AsyncGenerator, Callable
from datetime import date, time

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from clinicflow.config import settings
from clinicflow.database import build_engine
from clinicflow.dependencies import get_workflow_context
from clinicflow.domain.entities import Appointment, ContactInfo
from clinicflow.domain.statuses import AppointmentStatus
from clinicflow.main import app
from clinicflow.models import metadata
from clinicflow.services.audit_service import AuditRecorder
from clinicflow.services.availability_service import AppointmentAvailabilityService
from clinicflow.services.context import WorkflowContext
from clinicflow.services.notification_service import PatientNotifier
from fakes import (
    DOCTOR_ID,
    NOW,
    PATIENT_ID,
    STAFF_ID,
    TODAY,
    FixedClock,
    InMemoryAppointmentRepository,
    InMemoryConsultationRepository,
    InMemoryContactDirectory,
    InMemoryInviteRepository,
    InMemoryOutboxRepository,
    InMemoryPaymentRepository,
    RecordingAuditSink,
    RecordingEmailSender,
    RecordingUnitOfWork,
    make_token,
)


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 09:05 on the test day."""
    return FixedClock(NOW)


@pytest.fixture
def appointment_repo() -> InMemoryAppointmentRepository:
    return InMemoryAppointmentRepository()


@pytest.fixture
def consultation_repo() -> InMemoryConsultationRepository:
    return InMemoryConsultationRepository()


@pytest.fixture
def invite_repo() -> InMemoryInviteRepository:
    return InMemoryInviteRepository()


@pytest.fixture
def outbox_repo() -> InMemoryOutboxRepository:
    return InMemoryOutboxRepository()


@pytest.fixture
def payment_repo() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def contacts() -> InMemoryContactDirectory:
    return InMemoryContactDirectory(
        {
            PATIENT_ID: ContactInfo(
                user_id=PATIENT_ID,
                full_name="Ada Patient",
                email="ada@example.com",
                phone="+15550100",
            ),
            STAFF_ID: ContactInfo(user_id=STAFF_ID, full_name="Sam Staff", email="sam@example.com"),
        }
    )


@pytest.fixture
def uow() -> RecordingUnitOfWork:
    return RecordingUnitOfWork()


@pytest.fixture
def ctx(
    appointment_repo: InMemoryAppointmentRepository,
    consultation_repo: InMemoryConsultationRepository,
    payment_repo: InMemoryPaymentRepository,
    invite_repo: InMemoryInviteRepository,
    outbox_repo: InMemoryOutboxRepository,
    audit_sink: RecordingAuditSink,
    email_sender: RecordingEmailSender,
    contacts: InMemoryContactDirectory,
    clock: FixedClock,
    uow: RecordingUnitOfWork,
) -> WorkflowContext:
    """Workflow collaborators wired to in-memory fakes."""
    return WorkflowContext(
        appointments=appointment_repo,
        consultations=consultation_repo,
        payments=payment_repo,
        invites=invite_repo,
        outbox=outbox_repo,
        contacts=contacts,
        audit=AuditRecorder(audit_sink, strict=True),
        notifier=PatientNotifier(email_sender, contacts),
        availability=AppointmentAvailabilityService(
            appointment_repo,
            clock,
            opening_time=time(8, 0),
            closing_time=time(18, 0),
        ),
        clock=clock,
        uow=uow,
        default_duration_minutes=30,
    )


@pytest.fixture
def make_appointment(appointment_repo: InMemoryAppointmentRepository) -> Callable[..., Appointment]:
    """Factory that stores an appointment for today at 09:00 with doctor doc-1."""

    def _make(
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        appointment_date: date = TODAY,
        time: str = "09:00",
        doctor_id: str = DOCTOR_ID,
        patient_id: str = PATIENT_ID,
        **fields,
    ) -> Appointment:
        return appointment_repo.add(
            Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                appointment_date=appointment_date,
                time=time,
                type="General Consultation",
                status=status,
                **fields,
            )
        )

    return _make


@pytest.fixture
def staff_headers() -> dict:
    """Authentication headers for front-desk staff."""
    return {"Authorization": f"Bearer {make_token(STAFF_ID, role='staff')}"}


@pytest.fixture
def doctor_headers() -> dict:
    """Authentication headers for doctor doc-1."""
    return {"Authorization": f"Bearer {make_token('user-doc-1', role='doctor', doctor_id=DOCTOR_ID)}"}


@pytest_asyncio.fixture
async def client(ctx: WorkflowContext) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by the in-memory workflow context."""

    async def override_get_workflow_context() -> WorkflowContext:
        return ctx

    app.dependency_overrides[get_workflow_context] = override_get_workflow_context

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# Repository tests run only against a dedicated PostgreSQL test database
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session with fresh workflow tables."""
    if not TEST_DATABASE_URL:
        pytest.skip("TEST_DATABASE_URL not set")
    if TEST_DATABASE_URL == settings.database_url:
        pytest.fail("TEST_DATABASE_URL must not point at the application database")

    # NullPool avoids event loop issues between tests
    test_engine = build_engine(TEST_DATABASE_URL, poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await test_engine.dispose()
