"""API-key guard for the tenant administration endpoints."""

import hmac
import logging

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from solarerp.config import settings
from solarerp.exceptions import RegistryNotConfiguredError, ServiceUnavailableException, UnauthorizedException

logger = logging.getLogger(__name__)

_admin_bearer = HTTPBearer(auto_error=False)


async def require_admin_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(_admin_bearer),
    x_admin_api_key: str | None = Header(default=None, alias="X-Admin-Api-Key"),
) -> None:
    """Accept ``Authorization: Bearer <key>`` or ``X-Admin-Api-Key: <key>``.

    Answers 503 while the admin key or the registry is not configured.
    """
    expected = settings.admin_api_key.strip()
    if not expected:
        raise ServiceUnavailableException("Admin API not configured")
    if not settings.registry_configured:
        raise RegistryNotConfiguredError("Registry not configured")

    provided = credentials.credentials.strip() if credentials else (x_admin_api_key or "").strip()
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Rejected admin API call with invalid key")
        raise UnauthorizedException("Unauthorized")
