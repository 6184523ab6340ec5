"""API v1 router configuration."""

from fastapi import APIRouter

from clinicflow.api.v1.endpoints import (
    appointments,
    consultation_requests,
    doctors,
    health,
    invites,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(
    consultation_requests.router,
    prefix="/consultation-requests",
    tags=["Consultation Requests"],
)
api_router.include_router(invites.router, prefix="/invites", tags=["Staff Invites"])
api_router.include_router(doctors.router, prefix="/doctors", tags=["Doctors"])
