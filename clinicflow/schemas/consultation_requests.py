"""Consultation request review schemas."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from clinicflow.domain.statuses import ConsultationRequestStatus
from clinicflow.schemas.appointments import TIME_PATTERN, AppointmentResponse


class RequestMoreInfoRequest(BaseModel):
    """Schema for asking the patient for more information."""

    questions: str | None = Field(None, max_length=5000)
    notes: str | None = Field(None, max_length=5000)


class ReviewNotesRequest(BaseModel):
    """Optional reviewer notes."""

    notes: str | None = Field(None, max_length=5000)


class DeclineRequest(BaseModel):
    """Schema for declining a consultation request."""

    reason: str | None = Field(None, max_length=2000)


class ScheduleRequestSlot(BaseModel):
    """Slot proposed for an approved request."""

    appointment_date: date
    time: str = Field(..., pattern=TIME_PATTERN)
    notes: str | None = Field(None, max_length=2000)


class ResubmitRequest(BaseModel):
    """Patient answers to the doctor's questions."""

    response: str | None = Field(None, max_length=5000)


class ConsultationRequestResponse(BaseModel):
    """Appointment with its consultation request state."""

    appointment: AppointmentResponse
    consultation_request_status: ConsultationRequestStatus | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
