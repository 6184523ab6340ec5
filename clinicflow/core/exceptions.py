"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        context: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and optional context."""
        self.message = message
        self.status_code = status_code
        self.context = context or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found", context: dict[str, Any] | None = None):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, context=context)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden", context: dict[str, Any] | None = None):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403, context=context)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request", context: dict[str, Any] | None = None):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, context=context)


class DomainValidationException(BadRequestException):
    """A required field is missing or semantically invalid."""


class InvalidTransitionException(BadRequestException):
    """Requested status change is not allowed from the current status."""

    def __init__(
        self,
        message: str,
        current_status: str | None = None,
        target_status: str | None = None,
    ):
        """Initialize with the blocking status carried in the context."""
        context: dict[str, Any] = {"current_status": current_status}
        if target_status is not None:
            context["target_status"] = target_status
        super().__init__(message, context=context)
        self.current_status = current_status
        self.target_status = target_status


class ConflictDetectedException(BadRequestException):
    """Slot unavailable or a competing active session exists."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        conflicting_appointment_id: int | None = None,
    ):
        """Initialize with the conflicting context."""
        context: dict[str, Any] = {}
        if reason is not None:
            context["reason"] = reason
        if conflicting_appointment_id is not None:
            context["conflicting_appointment_id"] = conflicting_appointment_id
        super().__init__(message, context=context)
        self.reason = reason
        self.conflicting_appointment_id = conflicting_appointment_id


class AuditRecordingError(AppException):
    """Audit trail could not be written for a completed state change."""

    def __init__(self, message: str = "Failed to record audit event", context: dict[str, Any] | None = None):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500, context=context)
