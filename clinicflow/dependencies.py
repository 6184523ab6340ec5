"""FastAPI dependencies."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.config import settings
from clinicflow.core.exceptions import ForbiddenException
from clinicflow.core.security import decode_access_token
from clinicflow.database import get_db
from clinicflow.services.context import WorkflowContext, build_sql_context

# Security
security = HTTPBearer()


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""

    user_id: str
    role: str | None = None
    doctor_id: str | None = None

    @property
    def acting_doctor_id(self) -> str:
        """
        Doctor identity used for doctor-only actions.

        Raises:
            ForbiddenException: If the caller is not a doctor
        """
        if self.doctor_id:
            return self.doctor_id
        if self.role == "doctor":
            return self.user_id
        raise ForbiddenException("Only doctors can perform this action")

    def acts_for_doctor(self, doctor_id: str) -> bool:
        """Whether the caller is the given doctor, by claim or by doctor login."""
        if self.doctor_id:
            return self.doctor_id == doctor_id
        return self.role == "doctor" and self.user_id == doctor_id


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Principal:
    """
    Extract and validate the caller from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Authenticated principal

    Raises:
        HTTPException: If token is invalid or expired
    """
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Principal(
        user_id=claims["sub"],
        role=claims.get("role"),
        doctor_id=claims.get("doctor_id"),
    )


# Roles allowed per workflow surface
FRONT_DESK_ROLES = frozenset({"admin", "doctor", "frontdesk", "staff"})
CHECK_IN_ROLES = frozenset({"admin", "nurse", "frontdesk", "staff"})
CLINICIAN_ROLES = frozenset({"admin", "doctor"})


def require_roles(roles: frozenset[str]) -> Callable[..., Awaitable[Principal]]:
    """
    Build a dependency that admits only callers holding one of the roles.

    Raises:
        ForbiddenException: If the caller's role is missing or not allowed
    """

    async def check_role(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        role = (principal.role or "").lower()
        if role not in roles:
            raise ForbiddenException(
                "Your role does not allow this action",
                context={"role": principal.role, "allowed_roles": sorted(roles)},
            )
        return principal

    return check_role


async def get_workflow_context(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkflowContext:
    """Build the workflow collaborators for the request's database session."""
    return build_sql_context(db, settings)


# Type aliases for dependency injection
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
Workflow = Annotated[WorkflowContext, Depends(get_workflow_context)]
FrontDesk = Annotated[Principal, Depends(require_roles(FRONT_DESK_ROLES))]
CheckInStaff = Annotated[Principal, Depends(require_roles(CHECK_IN_ROLES))]
Clinician = Annotated[Principal, Depends(require_roles(CLINICIAN_ROLES))]
