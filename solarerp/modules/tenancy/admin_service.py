"""Tenant provisioning against the registry database."""

import logging
import uuid
from collections.abc import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from solarerp.exceptions import BadRequestException, ConflictException, NotFoundException
from solarerp.models.enums import TenantMode, TenantStatus
from solarerp.models.tenant import Tenant
from solarerp.modules.billing.schemas import UsageTotals
from solarerp.modules.billing.usage_service import UsageService
from solarerp.modules.tenancy.admin_schemas import TenantCreate, TenantUpdate
from solarerp.modules.tenancy.crypto import CredentialCipher

logger = logging.getLogger(__name__)

TenantChangedHook = Callable[[str], Awaitable[None]]


class TenantAdminService:
    """Create, inspect and update registry rows.

    Tenants are never deleted; suspension is the way to switch one off.
    ``on_tenant_changed`` is awaited after every committed update so the
    process drops the tenant's cached config, pool and bucket client.
    """

    def __init__(
        self,
        db: AsyncSession,
        cipher: CredentialCipher,
        on_tenant_changed: TenantChangedHook | None = None,
    ):
        self.db = db
        self.cipher = cipher
        self.on_tenant_changed = on_tenant_changed

    async def list_tenants(
        self, mode: TenantMode | None = None, status: TenantStatus | None = None
    ) -> list[Tenant]:
        query = select(Tenant)
        if mode is not None:
            query = query.where(Tenant.mode == mode.value)
        if status is not None:
            query = query.where(Tenant.status == status.value)
        result = await self.db.execute(query.order_by(Tenant.tenant_key))
        return list(result.scalars().all())

    async def get_tenant(self, tenant_id: uuid.UUID) -> Tenant:
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id).limit(1))
        tenant = result.scalar_one_or_none()
        if tenant is None:
            raise NotFoundException("Tenant not found")
        return tenant

    async def create_tenant(self, payload: TenantCreate) -> Tenant:
        """Insert a tenant with its secrets encrypted.

        Shared-mode tenants need at least a database name, user and password.
        Bucket fields are stored only when a bucket name is given.
        """
        tenant_key = payload.tenant_key.strip()
        if not tenant_key:
            raise BadRequestException("tenant_key is required")

        existing = await self.db.execute(select(Tenant.id).where(Tenant.tenant_key == tenant_key).limit(1))
        if existing.scalar_one_or_none() is not None:
            raise ConflictException("tenant_key already exists")

        tenant = Tenant(tenant_key=tenant_key, mode=payload.mode.value, status=payload.status.value)
        if payload.mode == TenantMode.SHARED:
            if not payload.db_name or not payload.db_user or payload.db_password is None:
                raise BadRequestException("shared mode requires db_name, db_user, db_password")
            tenant.db_host = payload.db_host
            tenant.db_port = payload.db_port
            tenant.db_name = payload.db_name
            tenant.db_user = payload.db_user
            tenant.db_password_encrypted = self.cipher.encrypt(payload.db_password)

            if payload.bucket_name:
                tenant.bucket_provider = payload.bucket_provider.value if payload.bucket_provider else None
                tenant.bucket_name = payload.bucket_name
                tenant.bucket_region = payload.bucket_region
                tenant.bucket_endpoint = payload.bucket_endpoint
                tenant.bucket_access_key_encrypted = self._encrypt_optional(payload.bucket_access_key)
                tenant.bucket_secret_key_encrypted = self._encrypt_optional(payload.bucket_secret_key)

        self.db.add(tenant)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictException("tenant_key already exists") from exc
        await self.db.commit()
        await self.db.refresh(tenant)
        logger.info("Created tenant %s (key=%s, mode=%s)", tenant.id, tenant.tenant_key, tenant.mode)
        return tenant

    async def update_tenant(self, tenant_id: uuid.UUID, payload: TenantUpdate) -> Tenant:
        """Change status and/or mode. Moving a tenant from dedicated to shared is refused."""
        tenant = await self.get_tenant(tenant_id)

        changed = False
        if payload.status is not None and payload.status.value != tenant.status:
            tenant.status = payload.status.value
            changed = True
        if payload.mode is not None and payload.mode.value != tenant.mode:
            if tenant.mode == TenantMode.DEDICATED.value and payload.mode == TenantMode.SHARED:
                raise BadRequestException("Cannot change mode from dedicated to shared")
            tenant.mode = payload.mode.value
            changed = True

        if not changed:
            return tenant

        await self.db.commit()
        await self.db.refresh(tenant)
        logger.info("Updated tenant %s (mode=%s, status=%s)", tenant.id, tenant.mode, tenant.status)
        if self.on_tenant_changed is not None:
            await self.on_tenant_changed(str(tenant.id))
        return tenant

    async def get_usage(self, tenant_id: uuid.UUID, month: str) -> UsageTotals:
        await self.get_tenant(tenant_id)
        return await UsageService(self.db).get_tenant_usage(str(tenant_id), month)

    def _encrypt_optional(self, value: str | None) -> str | None:
        return self.cipher.encrypt(value) if value else None
