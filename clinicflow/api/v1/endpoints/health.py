"""Liveness and readiness probes."""

from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from clinicflow.config import settings
from clinicflow.core.clock import SystemClock
from clinicflow.database import ping_database

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Liveness probe payload."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Readiness probe payload with dependency status."""

    database: str
    database_latency_ms: float | None = None
    email_delivery: str
    audit_failure_policy: str
    clinic_time: datetime


@router.get("/health", response_model=HealthResponse, summary="Liveness probe")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    summary="Readiness probe",
    responses={503: {"description": "Database unreachable"}},
)
async def detailed_health_check(response: Response) -> DetailedHealthResponse:
    """
    Report database reachability and the workflow settings in effect.

    Responds 503 when the database cannot be reached, so orchestrators stop
    routing workflow traffic to this instance.
    """
    latency = await ping_database()
    if latency is None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return DetailedHealthResponse(
        status="healthy" if latency is not None else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if latency is not None else "unreachable",
        database_latency_ms=latency,
        email_delivery="smtp" if settings.smtp_configured else "log-only",
        audit_failure_policy=settings.audit_failure_policy,
        clinic_time=SystemClock().now(),
    )


@router.get("/ping", summary="Simple ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
