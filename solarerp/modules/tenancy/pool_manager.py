"""One long-lived connection pool per tenant database."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from solarerp.config import settings
from solarerp.database.tls import build_tls_connect_args
from solarerp.exceptions import TenantDbConfigIncompleteError, TenantNotFoundError
from solarerp.modules.tenancy.constants import DEFAULT_DB_PORT
from solarerp.modules.tenancy.registry import TenantRegistry
from solarerp.modules.tenancy.schemas import TenantConfig, parse_tenant_id

logger = logging.getLogger(__name__)

EngineFactory = Callable[[TenantConfig], AsyncEngine]


def build_tenant_engine(config: TenantConfig) -> AsyncEngine:
    """Create the async engine (connection pool) for a tenant's database.

    The pool ceiling is the same as the default pool's, so N tenants cannot
    exhaust a managed cluster's connection slots faster than N default pools.
    """
    if not config.db_host or not config.db_name or not config.db_user:
        raise TenantDbConfigIncompleteError("Tenant DB config incomplete")

    url = URL.create(
        "postgresql+asyncpg",
        username=config.db_user,
        password=config.db_password or None,
        host=config.db_host,
        port=config.db_port or DEFAULT_DB_PORT,
        database=config.db_name,
    )
    return create_async_engine(
        url,
        pool_size=settings.db_pool_max,
        max_overflow=0,
        pool_pre_ping=True,
        pool_timeout=settings.db_pool_timeout_seconds,
        pool_recycle=settings.db_pool_recycle_seconds,
        connect_args=build_tls_connect_args(settings.is_production),
        echo=False,
    )


class TenantPoolManager:
    """Cache of tenant id -> pool, with routing to the default pool in dedicated mode.

    A pool is built from the tenant's config the first time it is requested;
    later calls for the same id are cache hits whatever the config says now.
    Credential changes therefore need an explicit :meth:`clear_pool`.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        default_engine: AsyncEngine,
        shared_mode: bool,
        engine_factory: EngineFactory = build_tenant_engine,
    ) -> None:
        self._registry = registry
        self._default_engine = default_engine
        self._shared_mode = shared_mode
        self._engine_factory = engine_factory
        self._pools: dict[str, AsyncEngine] = {}
        self._lock = asyncio.Lock()

    def is_shared_mode(self) -> bool:
        return self._shared_mode

    @property
    def default_engine(self) -> AsyncEngine:
        return self._default_engine

    async def get_pool(self, tenant_id: str, config: TenantConfig | None = None) -> AsyncEngine:
        """Return the pool for ``tenant_id``.

        ``config`` may be passed when the caller already resolved the tenant,
        saving a second registry read.

        Raises:
            TenantNotFoundError: Shared mode and the registry has no such tenant.
            TenantDbConfigIncompleteError: The tenant row lacks host/name/user.
        """
        if not self._shared_mode:
            return self._default_engine

        key = parse_tenant_id(tenant_id)
        cached = self._pools.get(key) if key else None
        if cached is not None:
            return cached

        if config is None or config.id != key:
            config = await self._registry.get_by_id(tenant_id)
            if config is None:
                raise TenantNotFoundError("Tenant not found")

        async with self._lock:
            pool = self._pools.get(config.id)
            if pool is None:
                pool = self._engine_factory(config)
                self._pools[config.id] = pool
                logger.info("Created connection pool for tenant %s (db=%s)", config.id, config.db_name)
        return pool

    async def clear_pool(self, tenant_id: str) -> None:
        """Evict and close one tenant's pool. Close errors are ignored."""
        key = parse_tenant_id(tenant_id)
        if key is None:
            return
        async with self._lock:
            pool = self._pools.pop(key, None)
        if pool is not None:
            await _dispose_quietly(key, pool)

    async def close_all_pools(self) -> None:
        """Close every tenant pool concurrently, releasing their connection slots."""
        async with self._lock:
            pools = list(self._pools.items())
            self._pools.clear()
        await asyncio.gather(*(_dispose_quietly(tenant_id, pool) for tenant_id, pool in pools))
        if pools:
            logger.info("Closed %d tenant connection pools", len(pools))

    def __len__(self) -> int:
        return len(self._pools)


async def _dispose_quietly(tenant_id: str, pool: AsyncEngine) -> None:
    # The pool may already be dead.
    try:
        await pool.dispose()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Ignoring dispose error for tenant %s pool: %s", tenant_id, exc)
