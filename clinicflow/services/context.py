"""Collaborators shared by the workflow services of one request."""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.config import Settings
from clinicflow.core.clock import SystemClock, get_clinic_timezone, parse_wall_clock
from clinicflow.domain.ports import (
    AppointmentRepository,
    AvailabilityValidator,
    ConsultationRepository,
    ContactDirectory,
    OutboxRepository,
    PaymentRepository,
    StaffInviteRepository,
    TimeSource,
    UnitOfWork,
)
from clinicflow.repositories.appointment_repository import SqlAppointmentRepository
from clinicflow.repositories.audit_repository import SqlAuditSink
from clinicflow.repositories.contact_repository import SqlContactDirectory
from clinicflow.repositories.consultation_repository import SqlConsultationRepository
from clinicflow.repositories.invite_repository import SqlStaffInviteRepository
from clinicflow.repositories.outbox_repository import SqlOutboxRepository
from clinicflow.repositories.payment_repository import SqlPaymentRepository
from clinicflow.repositories.unit_of_work import SqlUnitOfWork
from clinicflow.services.audit_service import AuditRecorder
from clinicflow.services.availability_service import AppointmentAvailabilityService
from clinicflow.services.notification_service import PatientNotifier, build_email_sender


@dataclass
class WorkflowContext:
    """Ports and policies a workflow service needs."""

    appointments: AppointmentRepository
    consultations: ConsultationRepository
    payments: PaymentRepository
    invites: StaffInviteRepository
    outbox: OutboxRepository
    contacts: ContactDirectory
    audit: AuditRecorder
    notifier: PatientNotifier
    availability: AvailabilityValidator
    clock: TimeSource
    uow: UnitOfWork
    default_duration_minutes: int = 30
    default_consultation_fee: Decimal = Decimal("5000")


def build_sql_context(db: AsyncSession, settings: Settings) -> WorkflowContext:
    """Wire the SQL implementations around one database session."""
    clock = SystemClock(get_clinic_timezone(settings.clinic_timezone))
    appointments = SqlAppointmentRepository(db)
    contacts = SqlContactDirectory(db)

    return WorkflowContext(
        appointments=appointments,
        consultations=SqlConsultationRepository(db),
        payments=SqlPaymentRepository(db),
        invites=SqlStaffInviteRepository(db),
        outbox=SqlOutboxRepository(db),
        contacts=contacts,
        audit=AuditRecorder(SqlAuditSink(db), strict=settings.audit_is_strict),
        notifier=PatientNotifier(build_email_sender(settings), contacts),
        availability=AppointmentAvailabilityService(
            appointments,
            clock,
            opening_time=parse_wall_clock(settings.clinic_opening_time),
            closing_time=parse_wall_clock(settings.clinic_closing_time),
        ),
        clock=clock,
        uow=SqlUnitOfWork(db),
        default_duration_minutes=settings.default_appointment_duration_minutes,
        default_consultation_fee=settings.default_consultation_fee,
    )
