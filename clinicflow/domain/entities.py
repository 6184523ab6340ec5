"""Workflow aggregates and value objects."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from clinicflow.core.exceptions import DomainValidationException, InvalidTransitionException
from clinicflow.domain.statuses import (
    AppointmentStatus,
    ConsultationOutcomeType,
    ConsultationRequestStatus,
    ConsultationState,
    InviteStatus,
    OutboxEventStatus,
    PatientDecision,
    PaymentStatus,
)
from clinicflow.domain.transitions import is_valid_consultation_transition

NOTE_SEPARATOR = "\n\n"


def append_note(existing: str | None, tag: str, text: str) -> str:
    """Append a tagged entry to an append-only note log."""
    entry = f"[{tag}] {text}"
    if existing:
        return f"{existing}{NOTE_SEPARATOR}{entry}"
    return entry


@dataclass
class Appointment:
    """Scheduled patient-doctor encounter."""

    patient_id: str
    doctor_id: str
    appointment_date: date
    time: str
    type: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    note: str | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Arrival
    checked_in_at: datetime | None = None
    checked_in_by: str | None = None
    late_arrival: bool = False
    late_by_minutes: int | None = None
    no_show: bool = False
    no_show_at: datetime | None = None
    # Consultation timing
    consultation_started_at: datetime | None = None
    consultation_ended_at: datetime | None = None
    consultation_duration: int | None = None
    cancelled_at: datetime | None = None
    # Optimistic concurrency token
    version: int = 1

    def add_note(self, tag: str, text: str) -> None:
        """Append a tagged workflow annotation to the note log."""
        self.note = append_note(self.note, tag, text)

    def record_arrival(
        self,
        at: datetime,
        by_user_id: str,
        late_by_minutes: int | None,
    ) -> None:
        """Store arrival metadata and clear any earlier no-show mark."""
        self.checked_in_at = at
        self.checked_in_by = by_user_id
        self.late_arrival = late_by_minutes is not None
        self.late_by_minutes = late_by_minutes
        self.no_show = False
        self.no_show_at = None


@dataclass
class ConsultationRequestFields:
    """Review state of an appointment that started as a patient inquiry."""

    consultation_request_status: ConsultationRequestStatus | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None


@dataclass
class ConsultationNotes:
    """Structured clinical notes attached to a consultation."""

    chief_complaint: str | None = None
    examination: str | None = None
    assessment: str | None = None
    plan: str | None = None
    raw_text: str | None = None

    @classmethod
    def from_text(cls, text: str) -> "ConsultationNotes":
        """Wrap free-text doctor notes."""
        return cls(raw_text=text.strip())

    def merged_with(self, other: "ConsultationNotes") -> "ConsultationNotes":
        """Return notes where fields set on ``other`` take precedence."""
        return ConsultationNotes(
            chief_complaint=other.chief_complaint or self.chief_complaint,
            examination=other.examination or self.examination,
            assessment=other.assessment or self.assessment,
            plan=other.plan or self.plan,
            raw_text=other.raw_text or self.raw_text,
        )

    def is_empty(self) -> bool:
        """Check whether no field carries content."""
        return not any(
            (self.chief_complaint, self.examination, self.assessment, self.plan, self.raw_text)
        )


@dataclass
class Consultation:
    """Clinical session record, one per appointment."""

    appointment_id: int
    doctor_id: str
    state: ConsultationState = ConsultationState.NOT_STARTED
    id: int | None = None
    started_by_user_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    outcome: str | None = None
    outcome_type: ConsultationOutcomeType | None = None
    patient_decision: PatientDecision | None = None
    notes: ConsultationNotes = field(default_factory=ConsultationNotes)

    @property
    def has_outcome(self) -> bool:
        """Check whether an outcome was recorded."""
        return self.outcome_type is not None or bool(self.outcome)

    def start(self, user_id: str, at: datetime) -> bool:
        """
        Move the session to IN_PROGRESS.

        Returns:
            False when the session was already in progress (no change)

        Raises:
            InvalidTransitionException: If the session is already completed
        """
        if self.state == ConsultationState.IN_PROGRESS:
            return False
        if not is_valid_consultation_transition(self.state, ConsultationState.IN_PROGRESS):
            raise InvalidTransitionException(
                f"Consultation cannot be started from {self.state.value}",
                current_status=self.state.value,
                target_status=ConsultationState.IN_PROGRESS.value,
            )
        self.state = ConsultationState.IN_PROGRESS
        self.started_by_user_id = user_id
        if self.started_at is None:
            self.started_at = at
        return True

    def complete(
        self,
        outcome: str,
        outcome_type: ConsultationOutcomeType,
        at: datetime,
        patient_decision: PatientDecision | None = None,
    ) -> None:
        """
        Finalize the session with its outcome.

        Raises:
            InvalidTransitionException: If the session is not in progress
            DomainValidationException: If a procedure is recommended without a patient decision
        """
        if not is_valid_consultation_transition(self.state, ConsultationState.COMPLETED):
            raise InvalidTransitionException(
                f"Consultation cannot be completed from {self.state.value}",
                current_status=self.state.value,
                target_status=ConsultationState.COMPLETED.value,
            )
        if outcome_type == ConsultationOutcomeType.PROCEDURE_RECOMMENDED and patient_decision is None:
            raise DomainValidationException(
                "Patient decision is required when a procedure is recommended"
            )
        self.state = ConsultationState.COMPLETED
        self.completed_at = at
        self.outcome = outcome
        self.outcome_type = outcome_type
        self.patient_decision = patient_decision

    def attach_notes(self, notes: ConsultationNotes) -> None:
        """Merge new notes into the session notes."""
        self.notes = self.notes.merged_with(notes)


@dataclass
class StaffInvite:
    """Invitation for a staff member to join a surgical case team."""

    id: UUID
    surgical_case_id: str
    invited_by_user_id: str
    invited_user_id: str
    invited_role: str
    status: InviteStatus = InviteStatus.PENDING
    created_at: datetime | None = None
    cancelled_at: datetime | None = None


@dataclass(frozen=True)
class BillingItem:
    """Charge captured at completion."""

    description: str
    amount: Decimal
    quantity: int = 1

    @property
    def total(self) -> Decimal:
        return self.amount * self.quantity


@dataclass
class Payment:
    """Bill raised for an appointment, settled later at the front desk."""

    patient_id: str
    appointment_id: int
    total_amount: Decimal
    discount: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")
    status: PaymentStatus = PaymentStatus.UNPAID
    payment_method: str = "CASH"
    items: list[BillingItem] = field(default_factory=list)
    id: int | None = None
    bill_date: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.status == PaymentStatus.PAID

    def replace_items(self, items: list[BillingItem]) -> None:
        """Swap the bill lines and recompute the total from them."""
        self.items = list(items)
        self.total_amount = sum((item.total for item in items), Decimal("0"))


@dataclass(frozen=True)
class AuditEvent:
    """Immutable audit trail entry."""

    user_id: str
    record_id: str
    action: str
    model: str
    details: str


@dataclass
class OutboxEvent:
    """Durably recorded event for asynchronous consumers."""

    type: str
    payload: dict[str, Any]
    id: int | None = None
    status: OutboxEventStatus = OutboxEventStatus.PENDING
    attempts: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


@dataclass(frozen=True)
class AvailabilityResult:
    """Answer from the availability validator."""

    is_available: bool
    reason: str | None = None


@dataclass(frozen=True)
class ContactInfo:
    """Reachable contact details for a patient or staff member."""

    user_id: str
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
