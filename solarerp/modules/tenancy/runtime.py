"""Process-scoped tenancy services, built once in the application lifespan."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from solarerp.config import settings
from solarerp.database.registry import (
    get_registry_engine,
    get_registry_sessionmaker,
    probe_registry,
)
from solarerp.modules.tenancy.bucket_factory import BucketClientFactory
from solarerp.modules.tenancy.crypto import CredentialCipher, get_cipher, validate_cipher_config
from solarerp.modules.tenancy.pool_manager import TenantPoolManager
from solarerp.modules.tenancy.registry import TenantRegistry

logger = logging.getLogger(__name__)


@dataclass
class TenancyServices:
    """Owner of every tenant cache in the process (registry, pools, buckets).

    Stored on ``app.state.tenancy``; tests build their own instance with fakes.
    """

    registry: TenantRegistry
    pools: TenantPoolManager
    buckets: BucketClientFactory
    cipher: CredentialCipher | None = None
    shared_mode: bool = False

    @property
    def mode(self) -> str:
        return "shared" if self.shared_mode else "dedicated"

    def invalidate_tenant_cache(self, tenant_id: str) -> None:
        """Forget the registry entry and bucket client so the next request re-reads them."""
        self.registry.invalidate(tenant_id)
        self.buckets.clear_client(tenant_id)

    async def evict_tenant(self, tenant_id: str) -> None:
        """Drop everything cached for one tenant, including its pool."""
        self.invalidate_tenant_cache(tenant_id)
        await self.pools.clear_pool(tenant_id)

    async def shutdown(self) -> None:
        await self.pools.close_all_pools()
        self.buckets.clear_all()
        self.registry.invalidate_all()


async def build_tenancy_services(default_engine: AsyncEngine) -> TenancyServices:
    """Decide the routing mode once and wire the tenant caches.

    Shared mode is on only when a registry URL is configured, the master key
    is present, and the registry answers a health check. Otherwise every request is
    served by ``default_engine`` for the lifetime of the process.
    """
    cipher: CredentialCipher | None = None
    if settings.registry_configured:
        validate_cipher_config()
        cipher = get_cipher()

    registry_engine = get_registry_engine()
    shared_mode = await probe_registry(registry_engine)

    registry = TenantRegistry(
        get_registry_sessionmaker() if shared_mode else None,
        cipher,
        cache_ttl=settings.tenant_config_cache_ttl,
    )
    services = TenancyServices(
        registry=registry,
        pools=TenantPoolManager(registry, default_engine, shared_mode),
        buckets=BucketClientFactory(registry, shared_mode),
        cipher=cipher,
        shared_mode=shared_mode,
    )
    logger.info("Tenancy running in %s mode", services.mode)
    return services
