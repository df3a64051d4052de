"""Tenant registry reader: tenant id/key -> decrypted config, with bounded staleness."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solarerp.exceptions import (
    CredentialDecryptFailedError,
    DecryptionFailedError,
    TenantSuspendedError,
)
from solarerp.models.enums import TenantMode, TenantStatus
from solarerp.models.tenant import Tenant
from solarerp.modules.tenancy.cache import TTLCache
from solarerp.modules.tenancy.crypto import CredentialCipher
from solarerp.modules.tenancy.schemas import TenantConfig, parse_tenant_id

logger = logging.getLogger(__name__)


class TenantRegistry:
    """Single source of truth mapping tenants to their decrypted configuration.

    Active configs are cached for ``cache_ttl`` seconds, which is the staleness
    bound for picking up registry edits. Suspended tenants are never cached, so
    reactivation is visible on the next lookup.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None,
        cipher: CredentialCipher | None,
        cache_ttl: float = 60,
        cache: TTLCache[TenantConfig] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher
        self._cache: TTLCache[TenantConfig] = cache if cache is not None else TTLCache(cache_ttl)

    @property
    def configured(self) -> bool:
        return self._session_factory is not None

    async def get_by_id(self, tenant_id: str | uuid.UUID) -> TenantConfig | None:
        """Return the active tenant's config, or None if no such tenant exists.

        Raises:
            TenantSuspendedError: The tenant exists but is not active.
            CredentialDecryptFailedError: A stored secret could not be decrypted.
        """
        if self._session_factory is None:
            return None
        key = parse_tenant_id(tenant_id)
        if key is None:
            return None

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        async with self._session_factory() as session:
            result = await session.execute(select(Tenant).where(Tenant.id == uuid.UUID(key)).limit(1))
            row = result.scalar_one_or_none()
        if row is None:
            return None

        if row.status != TenantStatus.ACTIVE.value:
            raise TenantSuspendedError("Tenant is not active")

        config = self._to_config(row)
        self._cache.set(key, config)
        return config

    async def get_by_key(self, tenant_key: str) -> TenantConfig | None:
        """Resolve an active tenant by its slug, for login-time tenant selection.

        Suspended tenants are filtered out by the query, so they cannot even
        begin a login.
        """
        if self._session_factory is None or not tenant_key or not tenant_key.strip():
            return None

        async with self._session_factory() as session:
            result = await session.execute(
                select(Tenant)
                .where(
                    Tenant.tenant_key == tenant_key.strip(),
                    Tenant.status == TenantStatus.ACTIVE.value,
                )
                .limit(1)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return None

        config = self._to_config(row)
        self._cache.set(config.id, config)
        return config

    async def list_active_for_migrations(self, shared_only: bool = True) -> list[TenantConfig]:
        """Decrypted DB configs of every active tenant, ordered by key.

        Used by the tenant migration runner. Unlike request-time lookups, a
        password that fails to decrypt is reported as None so one broken row
        does not stop the whole run.
        """
        if self._session_factory is None:
            return []

        query = select(Tenant).where(Tenant.status == TenantStatus.ACTIVE.value)
        if shared_only:
            query = query.where(Tenant.mode == TenantMode.SHARED.value)
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(Tenant.tenant_key))
            rows = list(result.scalars().all())

        configs = []
        for row in rows:
            try:
                password = self._decrypt_field(row.db_password_encrypted)
            except CredentialDecryptFailedError:
                logger.warning("Skipping undecryptable DB password for tenant %s", row.id)
                password = None
            configs.append(
                TenantConfig.from_row(
                    row, db_password=password, bucket_access_key=None, bucket_secret_key=None
                )
            )
        return configs

    def invalidate(self, tenant_id: str | uuid.UUID) -> None:
        """Drop one cached config so the next lookup re-reads the registry."""
        key = parse_tenant_id(tenant_id)
        if key is not None:
            self._cache.delete(key)

    def invalidate_all(self) -> None:
        count = self._cache.clear()
        logger.info("Tenant config cache cleared (%d entries)", count)

    def _to_config(self, row: Tenant) -> TenantConfig:
        return TenantConfig.from_row(
            row,
            db_password=self._decrypt_field(row.db_password_encrypted),
            bucket_access_key=self._decrypt_field(row.bucket_access_key_encrypted),
            bucket_secret_key=self._decrypt_field(row.bucket_secret_key_encrypted),
        )

    def _decrypt_field(self, envelope: str | None) -> str | None:
        if envelope is None or envelope == "":
            return None
        if self._cipher is None:
            raise CredentialDecryptFailedError("Failed to decrypt tenant credentials")
        try:
            return self._cipher.decrypt(envelope)
        except DecryptionFailedError as exc:
            raise CredentialDecryptFailedError("Failed to decrypt tenant credentials") from exc
