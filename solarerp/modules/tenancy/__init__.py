"""Tenancy module — per-tenant database pools, buckets and transactions."""

from solarerp.modules.tenancy.auth import AuthenticatedUser, get_current_user
from solarerp.modules.tenancy.dependencies import (
    get_tenancy,
    get_tenant_context,
    get_tenant_session,
    open_tenant_transaction,
    require_tenant,
    resolve_tenant_context,
)
from solarerp.modules.tenancy.runtime import TenancyServices, build_tenancy_services
from solarerp.modules.tenancy.schemas import BucketHandle, RequestTenantContext, TenantConfig
from solarerp.modules.tenancy.transaction import RequestTransaction, TenantTransactionMiddleware

__all__ = [
    # Schemas
    "TenantConfig",
    "BucketHandle",
    "RequestTenantContext",
    # Auth
    "AuthenticatedUser",
    "get_current_user",
    # Services
    "TenancyServices",
    "build_tenancy_services",
    # Dependencies
    "get_tenancy",
    "get_tenant_context",
    "resolve_tenant_context",
    "require_tenant",
    "open_tenant_transaction",
    "get_tenant_session",
    # Transactions
    "RequestTransaction",
    "TenantTransactionMiddleware",
]
