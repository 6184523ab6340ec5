"""
Status transition rules for appointments, consultation requests and sessions.

Pure decision tables with no I/O. Every use case consults these before a
status write so the allowed graph lives in exactly one place.
"""

from dataclasses import dataclass

from clinicflow.domain.statuses import (
    AppointmentStatus,
    ConsultationRequestStatus,
    ConsultationState,
)

APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {
            AppointmentStatus.SCHEDULED,
            AppointmentStatus.CHECKED_IN,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CHECKED_IN,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.CHECKED_IN,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CHECKED_IN: frozenset(
        {
            AppointmentStatus.READY_FOR_CONSULTATION,
            AppointmentStatus.IN_CONSULTATION,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.READY_FOR_CONSULTATION: frozenset(
        {
            AppointmentStatus.IN_CONSULTATION,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.IN_CONSULTATION: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        }
    ),
    # Late arrival after a no-show mark is recoverable
    AppointmentStatus.NO_SHOW: frozenset(
        {
            AppointmentStatus.CHECKED_IN,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

# Statuses from which a check-in performs a real status write
CHECK_IN_SOURCE_STATUSES = frozenset(
    {
        AppointmentStatus.PENDING,
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.NO_SHOW,
    }
)

# Statuses where the patient is already on site
ARRIVED_STATUSES = frozenset(
    {
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.READY_FOR_CONSULTATION,
        AppointmentStatus.IN_CONSULTATION,
    }
)

NOT_ARRIVED_MESSAGE = "Patient hasn't arrived yet"

START_CONSULTATION_MESSAGES: dict[AppointmentStatus, str] = {
    AppointmentStatus.PENDING: NOT_ARRIVED_MESSAGE,
    AppointmentStatus.SCHEDULED: NOT_ARRIVED_MESSAGE,
    AppointmentStatus.CONFIRMED: NOT_ARRIVED_MESSAGE,
    AppointmentStatus.CANCELLED: "This appointment was cancelled",
    AppointmentStatus.COMPLETED: "This consultation has already been completed",
    AppointmentStatus.IN_CONSULTATION: "Consultation already in progress",
    AppointmentStatus.NO_SHOW: "Patient was marked as no-show",
}

REQUEST_TRANSITIONS: dict[ConsultationRequestStatus | None, frozenset[ConsultationRequestStatus]] = {
    None: frozenset({ConsultationRequestStatus.SUBMITTED}),
    ConsultationRequestStatus.SUBMITTED: frozenset(
        {
            ConsultationRequestStatus.PENDING_REVIEW,
            ConsultationRequestStatus.CANCELLED,
        }
    ),
    ConsultationRequestStatus.PENDING_REVIEW: frozenset(
        {
            ConsultationRequestStatus.APPROVED,
            ConsultationRequestStatus.NEEDS_MORE_INFO,
            ConsultationRequestStatus.CANCELLED,
        }
    ),
    ConsultationRequestStatus.NEEDS_MORE_INFO: frozenset(
        {
            ConsultationRequestStatus.SUBMITTED,
            ConsultationRequestStatus.PENDING_REVIEW,
            ConsultationRequestStatus.CANCELLED,
        }
    ),
    ConsultationRequestStatus.APPROVED: frozenset(
        {
            ConsultationRequestStatus.SCHEDULED,
            ConsultationRequestStatus.CANCELLED,
        }
    ),
    ConsultationRequestStatus.SCHEDULED: frozenset(
        {
            ConsultationRequestStatus.CONFIRMED,
            ConsultationRequestStatus.CANCELLED,
        }
    ),
    ConsultationRequestStatus.CONFIRMED: frozenset(),
    ConsultationRequestStatus.CANCELLED: frozenset(),
}

CONSULTATION_STATE_TRANSITIONS: dict[ConsultationState, frozenset[ConsultationState]] = {
    ConsultationState.NOT_STARTED: frozenset({ConsultationState.IN_PROGRESS}),
    ConsultationState.IN_PROGRESS: frozenset({ConsultationState.COMPLETED}),
    ConsultationState.COMPLETED: frozenset(),
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of evaluating a requested appointment status change."""

    is_valid: bool
    new_status: AppointmentStatus
    reason: str | None = None


def valid_next_states(current: AppointmentStatus) -> frozenset[AppointmentStatus]:
    """Return the statuses reachable from ``current`` in one step."""
    return APPOINTMENT_TRANSITIONS.get(current, frozenset())


def is_valid_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Check whether ``current -> target`` is an allowed appointment transition."""
    return target in valid_next_states(current)


def is_terminal(status: AppointmentStatus) -> bool:
    """Check whether no further status transitions are allowed."""
    return status in TERMINAL_STATUSES


def evaluate_transition(current: AppointmentStatus, target: AppointmentStatus) -> TransitionResult:
    """Evaluate a transition and explain a rejection in plain words."""
    if is_valid_transition(current, target):
        return TransitionResult(is_valid=True, new_status=target)

    if is_terminal(current):
        reason = f"Appointment is {current.value} and cannot change status"
    else:
        allowed = ", ".join(sorted(status.value for status in valid_next_states(current)))
        reason = f"Cannot move appointment from {current.value} to {target.value} (allowed: {allowed})"
    return TransitionResult(is_valid=False, new_status=current, reason=reason)


def start_consultation_message(current: AppointmentStatus) -> str | None:
    """
    Explain why a consultation cannot start from ``current``.

    Returns None when the appointment may move to IN_CONSULTATION.
    """
    result = evaluate_transition(current, AppointmentStatus.IN_CONSULTATION)
    if result.is_valid:
        return None
    return START_CONSULTATION_MESSAGES.get(
        current,
        f"Unable to start consultation ({result.reason})",
    )


def is_valid_request_transition(
    current: ConsultationRequestStatus | None,
    target: ConsultationRequestStatus,
) -> bool:
    """Check whether a consultation-request status change is allowed."""
    return target in REQUEST_TRANSITIONS.get(current, frozenset())


def is_valid_consultation_transition(current: ConsultationState, target: ConsultationState) -> bool:
    """Check whether a consultation session state change is allowed."""
    return target in CONSULTATION_STATE_TRANSITIONS.get(current, frozenset())
