"""Bearer token issuing and verification."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from clinicflow.config import settings

TOKEN_TYPE = "access"


def create_access_token(
    user_id: str,
    role: str | None = None,
    doctor_id: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Issue a signed access token for a clinic user.

    Args:
        user_id: Acting user id, stored as ``sub``
        role: Optional role claim (``doctor``, ``staff``, ``admin``)
        doctor_id: Doctor identity for doctor accounts
        expires_delta: Lifetime, defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims: dict[str, Any] = {
        "sub": user_id,
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if role:
        claims["role"] = role
    if doctor_id:
        claims["doctor_id"] = doctor_id

    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Return the token's claims, or None when it is invalid, expired or not an access token."""
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if claims.get("type") != TOKEN_TYPE or not isinstance(claims.get("sub"), str):
        return None
    return claims
