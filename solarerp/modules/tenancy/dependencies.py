"""FastAPI dependency functions for tenant context injection."""

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from solarerp.config import settings
from solarerp.exceptions import (
    BucketConfigMissingError,
    TenantAccessError,
    UnauthorizedException,
)
from solarerp.logging_config import bind_tenant_id
from solarerp.models.enums import TenantMode, TenantStatus
from solarerp.modules.tenancy.auth import AuthenticatedUser, get_current_user
from solarerp.modules.tenancy.constants import MUTATING_METHODS, TENANT_UNAUTHORIZED_MESSAGE
from solarerp.modules.tenancy.runtime import TenancyServices
from solarerp.modules.tenancy.schemas import BucketHandle, RequestTenantContext
from solarerp.modules.tenancy.transaction import RequestTransaction, rollback_request_transaction

logger = logging.getLogger(__name__)


def get_tenancy(request: Request) -> TenancyServices:
    return request.app.state.tenancy


async def resolve_tenant_context(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    services: TenancyServices = Depends(get_tenancy),
) -> RequestTenantContext:
    """Resolve the caller's tenant to a database pool and bucket and attach it to the request.

    The tenant comes from the verified token only. In shared mode a missing
    claim, an unknown tenant and a suspended tenant all answer with the same
    401 so callers cannot discover which tenants exist.
    """
    if services.shared_mode:
        tenant = await _resolve_shared(user, services)
    else:
        tenant = _resolve_dedicated(user, services)

    request.state.tenant = tenant
    if tenant.id:
        bind_tenant_id(tenant.id)
        logger.info("tenant_id=%s %s %s", tenant.id, request.method, request.url.path)
    return tenant


async def _resolve_shared(user: AuthenticatedUser, services: TenancyServices) -> RequestTenantContext:
    if not user.tenant_id:
        raise UnauthorizedException(TENANT_UNAUTHORIZED_MESSAGE)
    try:
        config = await services.registry.get_by_id(user.tenant_id)
        if config is None:
            raise UnauthorizedException(TENANT_UNAUTHORIZED_MESSAGE)
        engine = await services.pools.get_pool(config.id, config)
        bucket = await services.buckets.get_bucket_client(config.id, config)
    except TenantAccessError as exc:
        logger.warning("Tenant access denied (%s)", exc.code)
        raise UnauthorizedException(TENANT_UNAUTHORIZED_MESSAGE) from None
    return RequestTenantContext(
        id=config.id,
        tenant_key=config.tenant_key,
        mode=config.mode,
        status=config.status,
        engine=engine,
        bucket=bucket,
    )


def _resolve_dedicated(user: AuthenticatedUser, services: TenancyServices) -> RequestTenantContext:
    # A deployment without object storage can still serve database routes.
    bucket: BucketHandle | None
    try:
        bucket = services.buckets.get_default_client()
    except BucketConfigMissingError:
        bucket = None
    return RequestTenantContext(
        id=user.tenant_id or settings.dedicated_tenant_id or None,
        tenant_key=None,
        mode=TenantMode.DEDICATED.value,
        status=TenantStatus.ACTIVE.value,
        engine=services.pools.default_engine,
        bucket=bucket,
    )


def get_tenant_context(request: Request) -> RequestTenantContext | None:
    """Extract the RequestTenantContext from request state, or return None if not set."""
    return getattr(request.state, "tenant", None)


async def open_tenant_transaction(
    request: Request,
    tenant: RequestTenantContext = Depends(resolve_tenant_context),
) -> RequestTransaction | None:
    """Open the request's transaction on the tenant pool for mutating verbs.

    ``TenantTransactionMiddleware`` commits or rolls it back once the
    response status is known.
    """
    if request.method.upper() not in MUTATING_METHODS or tenant.engine is None:
        return None

    await rollback_request_transaction(request)
    txn = await RequestTransaction.begin(tenant.engine, settings.transaction_timeout_seconds)
    request.state.transaction = txn
    return txn


def require_tenant(
    tenant: RequestTenantContext = Depends(resolve_tenant_context),
    _txn: RequestTransaction | None = Depends(open_tenant_transaction),
) -> RequestTenantContext:
    """Resolved tenant context for tenant-scoped routes.

    Mutating requests always get the request transaction here, so a handler
    that writes through ``tenant.engine`` never runs outside it.
    """
    return tenant


async def get_tenant_session(
    tenant: RequestTenantContext = Depends(require_tenant),
    txn: RequestTransaction | None = Depends(open_tenant_transaction),
) -> AsyncGenerator[AsyncSession, None]:
    """Session on the caller's tenant database.

    Mutating requests get the request transaction's session. Reads get a
    plain session that is closed when the request finishes.
    """
    if txn is not None:
        yield txn.session
        return
    async with AsyncSession(bind=tenant.engine, expire_on_commit=False) as session:
        yield session
