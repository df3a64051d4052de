"""Per-request usage counting for shared-mode billing.

Writes happen after the response is sent and never affect the request's
outcome. Disabled unless ``ENABLE_REGISTRY_USAGE_TRACKING`` is set.
"""

import logging

from fastapi import BackgroundTasks, Depends
from sqlalchemy.exc import SQLAlchemyError

from solarerp.config import settings
from solarerp.database.registry import get_registry_sessionmaker
from solarerp.modules.billing.usage_service import UsageService
from solarerp.modules.tenancy.auth import AuthenticatedUser, get_current_user
from solarerp.modules.tenancy.dependencies import resolve_tenant_context
from solarerp.modules.tenancy.schemas import RequestTenantContext

logger = logging.getLogger(__name__)


async def record_request_usage(tenant_id: str, user_id: str | None) -> None:
    session_factory = get_registry_sessionmaker()
    if session_factory is None:
        return
    try:
        async with session_factory() as session:
            usage = UsageService(session)
            await usage.increment_api_requests(tenant_id)
            if user_id:
                await usage.record_user_activity(tenant_id, user_id)
            await session.commit()
    except (SQLAlchemyError, OSError, ValueError) as exc:
        logger.debug("Usage tracking write failed for tenant %s: %s", tenant_id, exc)


async def track_usage(
    background_tasks: BackgroundTasks,
    tenant: RequestTenantContext = Depends(resolve_tenant_context),
    user: AuthenticatedUser = Depends(get_current_user),
) -> None:
    if not settings.enable_registry_usage_tracking or not tenant.id:
        return
    background_tasks.add_task(record_request_usage, tenant.id, user.id)
