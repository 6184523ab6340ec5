"""Audit recording with a configurable failure policy."""

import structlog

from clinicflow.core.exceptions import AuditRecordingError
from clinicflow.domain.entities import AuditEvent
from clinicflow.domain.ports import AuditSink

logger = structlog.get_logger(__name__)

APPOINTMENT_MODEL = "Appointment"
CONSULTATION_REQUEST_MODEL = "ConsultationRequest"


class AuditRecorder:
    """
    Writes audit events through an ``AuditSink``.

    In strict mode a sink failure raises ``AuditRecordingError`` so the caller
    learns that a state change went unaudited. In lenient mode the failure is
    logged and the caller continues.
    """

    def __init__(self, sink: AuditSink, strict: bool = True):
        """Initialize recorder with its sink and failure policy."""
        self.sink = sink
        self.strict = strict

    async def record(
        self,
        user_id: str,
        record_id: int | str,
        action: str,
        details: str,
        model: str = APPOINTMENT_MODEL,
    ) -> None:
        """
        Record one audit event.

        Raises:
            AuditRecordingError: If the sink fails and the policy is strict
        """
        event = AuditEvent(
            user_id=user_id,
            record_id=str(record_id),
            action=action,
            model=model,
            details=details,
        )
        try:
            await self.sink.record_event(event)
        except Exception as e:
            logger.error(
                "audit_record_failed",
                action=action,
                model=model,
                record_id=event.record_id,
                error=str(e),
                strict=self.strict,
            )
            if self.strict:
                raise AuditRecordingError(
                    f"State change for {model} {event.record_id} was saved but could not be audited",
                    context={"action": action, "record_id": event.record_id},
                ) from e
