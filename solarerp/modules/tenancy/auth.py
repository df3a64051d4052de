"""JWT authentication dependency for FastAPI.

Validates Bearer tokens from the Authorization header, extracts user claims,
and sets request.state.user for the tenant resolver. The tenant is taken from
the verified token only, never from headers or the request body.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from solarerp.config import settings
from solarerp.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)

# FastAPI security scheme — extracts Bearer token from Authorization header
_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    """Represents the authenticated user extracted from a JWT token."""

    id: str
    email: str | None
    tenant_id: str | None
    role: str | None = None


def _decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises UnauthorizedException on failure."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc


def user_from_claims(payload: dict) -> AuthenticatedUser:
    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise UnauthorizedException("Token is missing required claims")
    tenant_id = payload.get("tenant_id")
    return AuthenticatedUser(
        id=str(user_id),
        email=payload.get("email"),
        tenant_id=str(tenant_id) if tenant_id else None,
        role=payload.get("role"),
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """FastAPI dependency that extracts and validates the current user from JWT.

    Sets request.state.user so that the tenant resolver can read the
    ``tenant_id`` claim.
    """
    if credentials is None:
        raise UnauthorizedException("Authentication required")

    user = user_from_claims(_decode_token(credentials.credentials))
    request.state.user = user
    return user

