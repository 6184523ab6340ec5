"""Status enumerations shared by the workflow rules, storage and API layers."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    READY_FOR_CONSULTATION = "READY_FOR_CONSULTATION"
    IN_CONSULTATION = "IN_CONSULTATION"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class ConsultationRequestStatus(str, Enum):
    """Status of a patient-submitted consultation inquiry."""

    SUBMITTED = "SUBMITTED"
    PENDING_REVIEW = "PENDING_REVIEW"
    NEEDS_MORE_INFO = "NEEDS_MORE_INFO"
    APPROVED = "APPROVED"
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ConsultationState(str, Enum):
    """State of the clinical session record."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ConsultationOutcomeType(str, Enum):
    """Outcome category chosen by the doctor on completion."""

    CONSULTATION_ONLY = "CONSULTATION_ONLY"
    PROCEDURE_RECOMMENDED = "PROCEDURE_RECOMMENDED"
    FOLLOW_UP_CONSULTATION_NEEDED = "FOLLOW_UP_CONSULTATION_NEEDED"
    PATIENT_DECIDING = "PATIENT_DECIDING"
    REFERRAL_NEEDED = "REFERRAL_NEEDED"


class PatientDecision(str, Enum):
    """Patient decision on a recommended procedure."""

    YES = "YES"
    NO = "NO"
    PENDING = "PENDING"


class InviteStatus(str, Enum):
    """Surgical-case staff invite status."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


class OutboxEventType(str, Enum):
    """Event types written to the outbox for asynchronous consumers."""

    STAFF_INVITED = "STAFF_INVITED"
    STAFF_INVITE_ACCEPTED = "STAFF_INVITE_ACCEPTED"
    STAFF_INVITE_DECLINED = "STAFF_INVITE_DECLINED"
    STAFF_INVITE_CANCELLED = "STAFF_INVITE_CANCELLED"


class OutboxEventStatus(str, Enum):
    """Delivery status of an outbox event."""

    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class PaymentStatus(str, Enum):
    """Settlement status of a consultation bill."""

    PAID = "PAID"
    UNPAID = "UNPAID"
    PART = "PART"
