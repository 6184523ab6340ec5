"""SQL storage for consultation sessions."""

from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.exceptions import NotFoundException
from clinicflow.domain.entities import Consultation, ConsultationNotes
from clinicflow.domain.statuses import ConsultationOutcomeType, ConsultationState, PatientDecision
from clinicflow.models.consultations import consultations


def _to_entity(row: Row) -> Consultation:
    return Consultation(
        id=row.id,
        appointment_id=row.appointment_id,
        doctor_id=row.doctor_id,
        state=ConsultationState(row.state),
        started_by_user_id=row.started_by_user_id,
        started_at=row.started_at,
        completed_at=row.completed_at,
        outcome=row.outcome,
        outcome_type=ConsultationOutcomeType(row.outcome_type) if row.outcome_type else None,
        patient_decision=PatientDecision(row.patient_decision) if row.patient_decision else None,
        notes=ConsultationNotes(
            chief_complaint=row.chief_complaint,
            examination=row.examination,
            assessment=row.assessment,
            plan=row.plan,
            raw_text=row.notes_text,
        ),
    )


def _values(consultation: Consultation) -> dict[str, Any]:
    return {
        "doctor_id": consultation.doctor_id,
        "started_by_user_id": consultation.started_by_user_id,
        "state": consultation.state.value,
        "started_at": consultation.started_at,
        "completed_at": consultation.completed_at,
        "outcome": consultation.outcome,
        "outcome_type": consultation.outcome_type.value if consultation.outcome_type else None,
        "patient_decision": (
            consultation.patient_decision.value if consultation.patient_decision else None
        ),
        "chief_complaint": consultation.notes.chief_complaint,
        "examination": consultation.notes.examination,
        "assessment": consultation.notes.assessment,
        "plan": consultation.notes.plan,
        "notes_text": consultation.notes.raw_text,
    }


class SqlConsultationRepository:
    """Consultation repository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def find_by_appointment_id(self, appointment_id: int) -> Consultation | None:
        stmt = select(consultations).where(consultations.c.appointment_id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return _to_entity(row) if row else None

    async def save(self, consultation: Consultation) -> Consultation:
        stmt = (
            insert(consultations)
            .values(appointment_id=consultation.appointment_id, **_values(consultation))
            .returning(consultations)
        )
        result = await self.db.execute(stmt)
        return _to_entity(result.fetchone())

    async def update(self, consultation: Consultation) -> Consultation:
        stmt = (
            update(consultations)
            .where(consultations.c.id == consultation.id)
            .values(**_values(consultation), updated_at=func.now())
            .returning(consultations)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if row is None:
            raise NotFoundException(f"Consultation {consultation.id} not found")
        return _to_entity(row)
