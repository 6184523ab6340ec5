"""Appointment workflow schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from clinicflow.domain.statuses import (
    AppointmentStatus,
    ConsultationOutcomeType,
    PatientDecision,
)
from clinicflow.services.appointment_admin_service import BookingDecision, ResolutionAction

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AppointmentResponse(BaseModel):
    """Appointment summary returned by every workflow endpoint."""

    id: int
    patient_id: str
    doctor_id: str
    appointment_date: date
    time: str
    type: str
    status: AppointmentStatus
    note: str | None = None
    checked_in_at: datetime | None = None
    checked_in_by: str | None = None
    late_arrival: bool = False
    late_by_minutes: int | None = None
    no_show: bool = False
    no_show_at: datetime | None = None
    consultation_started_at: datetime | None = None
    consultation_ended_at: datetime | None = None
    consultation_duration: int | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CheckInRequest(BaseModel):
    """Schema for checking a patient in."""

    notes: str | None = Field(None, max_length=2000)


class StartConsultationRequest(BaseModel):
    """Schema for starting a consultation."""

    notes: str | None = Field(None, max_length=5000)


class FollowUpDetails(BaseModel):
    """Follow-up booking requested at completion."""

    appointment_date: date
    time: str = Field(..., pattern=TIME_PATTERN)
    type: str = Field(..., min_length=1, max_length=200)


class BillingItemIn(BaseModel):
    """Billing line captured at completion."""

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class CompleteConsultationRequest(BaseModel):
    """Schema for completing a consultation."""

    outcome: str | None = Field(None, max_length=5000)
    outcome_type: ConsultationOutcomeType | None = None
    patient_decision: PatientDecision | None = None
    procedure_recommended: str | None = Field(None, max_length=2000)
    referral_info: str | None = Field(None, max_length=2000)
    follow_up: FollowUpDetails | None = None
    billing_items: list[BillingItemIn] = Field(default_factory=list)


class CompleteConsultationResponse(BaseModel):
    """Completion result."""

    appointment: AppointmentResponse
    follow_up_appointment_id: int | None = None
    notification_sent: bool
    payment_id: int | None = None
    billing_total: Decimal | None = None


class RescheduleRequest(BaseModel):
    """Schema for rescheduling an appointment."""

    new_date: date
    new_time: str = Field(..., pattern=TIME_PATTERN)
    reason: str | None = Field(None, max_length=1000)


class ConfirmBookingRequest(BaseModel):
    """Schema for a doctor's decision on a pending booking."""

    decision: BookingDecision = BookingDecision.CONFIRM
    notes: str | None = Field(None, max_length=2000)
    reason: str | None = Field(None, max_length=2000)


class NoShowRequest(BaseModel):
    """Schema for marking a no-show."""

    reason: str = Field(..., min_length=1, max_length=1000)
    notes: str | None = Field(None, max_length=2000)


class CancelAppointmentRequest(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str = Field(..., min_length=1, max_length=1000)


class ResolveAppointmentRequest(BaseModel):
    """Schema for resolving a stuck appointment."""

    action: ResolutionAction
    notes: str | None = Field(None, max_length=2000)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        """Treat blank notes as absent."""
        if v is not None and not v.strip():
            return None
        return v


class ReconcileSessionsResponse(BaseModel):
    """Result of reconciling a doctor's active sessions."""

    resolved_appointment_ids: list[int]
    active_appointment_ids: list[int]
