"""Tenancy module API routers — tenant administration and tenant-scoped context/storage."""

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from solarerp.database.session import get_registry_db
from solarerp.exceptions import NotFoundException
from solarerp.models.enums import TenantMode, TenantStatus
from solarerp.modules.billing.schemas import TenantUsageResponse
from solarerp.modules.billing.tracking import track_usage
from solarerp.modules.billing.usage_service import current_month
from solarerp.modules.tenancy import storage
from solarerp.modules.tenancy.admin_auth import require_admin_key
from solarerp.modules.tenancy.admin_schemas import TenantCreate, TenantResponse, TenantUpdate
from solarerp.modules.tenancy.admin_service import TenantAdminService
from solarerp.modules.tenancy.crypto import get_cipher
from solarerp.modules.tenancy.dependencies import get_tenancy, require_tenant
from solarerp.modules.tenancy.runtime import TenancyServices
from solarerp.modules.tenancy.schemas import RequestTenantContext
from solarerp.modules.tenancy.tenant_schemas import (
    PresignedUrlResponse,
    StoredObjectResponse,
    TenantContextResponse,
)

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])
router = APIRouter(prefix="/tenancy", tags=["tenancy"], dependencies=[Depends(track_usage)])
limiter = Limiter(key_func=get_remote_address)


def _admin_service(
    db: AsyncSession = Depends(get_registry_db),
    services: TenancyServices = Depends(get_tenancy),
) -> TenantAdminService:
    return TenantAdminService(db, services.cipher or get_cipher(), on_tenant_changed=services.evict_tenant)


# ---------------------------------------------------------------------------
# Tenant administration
# ---------------------------------------------------------------------------


@admin_router.get("/tenants", response_model=list[TenantResponse])
async def list_tenants(
    mode: TenantMode | None = Query(None),
    tenant_status: TenantStatus | None = Query(None, alias="status"),
    svc: TenantAdminService = Depends(_admin_service),
):
    """List registry tenants, optionally filtered by mode and status. No secrets are returned."""
    return await svc.list_tenants(mode=mode, status=tenant_status)


@admin_router.post("/tenants", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    body: TenantCreate,
    svc: TenantAdminService = Depends(_admin_service),
):
    """Provision a tenant. Credentials are encrypted before they are stored."""
    return await svc.create_tenant(body)


@admin_router.get("/tenants/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: uuid.UUID,
    svc: TenantAdminService = Depends(_admin_service),
):
    return await svc.get_tenant(tenant_id)


@admin_router.patch("/tenants/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: uuid.UUID,
    body: TenantUpdate,
    svc: TenantAdminService = Depends(_admin_service),
):
    """Change a tenant's status and/or mode (dedicated -> shared is refused)."""
    return await svc.update_tenant(tenant_id, body)


@admin_router.get("/tenants/{tenant_id}/usage", response_model=TenantUsageResponse)
async def get_tenant_usage(
    tenant_id: uuid.UUID,
    month: str | None = Query(None, description="YYYY-MM, defaults to the current month"),
    svc: TenantAdminService = Depends(_admin_service),
):
    month = month or current_month()
    totals = await svc.get_usage(tenant_id, month)
    return TenantUsageResponse(
        month=month,
        api_requests=totals.api_requests,
        pdf_generated=totals.pdf_generated,
        active_users=totals.active_users,
        storage_gb=totals.storage_gb,
        usage_score=totals.usage_score,
    )


# ---------------------------------------------------------------------------
# Tenant-scoped endpoints
# ---------------------------------------------------------------------------


@router.get("/context", response_model=TenantContextResponse)
async def get_current_tenant(tenant: RequestTenantContext = Depends(require_tenant)):
    """Describe the tenant the caller's token resolves to."""
    return TenantContextResponse(
        id=tenant.id,
        tenant_key=tenant.tenant_key,
        mode=tenant.mode,
        status=tenant.status,
        bucket_name=tenant.bucket.bucket_name if tenant.bucket else None,
    )


@router.put(
    "/files/{prefix}/{filename}",
    response_model=StoredObjectResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
async def upload_file(
    prefix: str,
    filename: str,
    request: Request,
    tenant: RequestTenantContext = Depends(require_tenant),
):
    """Store the raw request body in the tenant's bucket under a generated key."""
    data = await request.body()
    stored = await storage.upload_bytes(
        tenant.require_bucket(),
        data,
        filename,
        prefix=prefix,
        content_type=request.headers.get("content-type"),
    )
    return StoredObjectResponse(
        path=stored.path,
        filename=stored.filename,
        size=stored.size,
        mime_type=stored.mime_type,
        uploaded_at=stored.uploaded_at,
    )


@router.get("/files/url", response_model=PresignedUrlResponse)
async def get_file_url(
    key: str = Query(..., min_length=1),
    tenant: RequestTenantContext = Depends(require_tenant),
):
    url = await storage.presigned_get_url(tenant.require_bucket(), key)
    return PresignedUrlResponse(key=key, url=url)


@router.delete("/files", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    key: str = Query(..., min_length=1),
    tenant: RequestTenantContext = Depends(require_tenant),
):
    deleted = await storage.delete_object(tenant.require_bucket(), key)
    if not deleted:
        raise NotFoundException("File not found")
