"""Connection to the central tenant registry database."""

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from solarerp.config import settings
from solarerp.database.tls import build_tls_connect_args

logger = logging.getLogger(__name__)

_registry_engine: AsyncEngine | None = None
_registry_session: async_sessionmaker[AsyncSession] | None = None


def get_registry_engine() -> AsyncEngine | None:
    """Return the registry engine, or None when no registry URL is configured."""
    global _registry_engine, _registry_session

    if not settings.registry_configured:
        return None
    if _registry_engine is None:
        _registry_engine = create_async_engine(
            settings.tenant_registry_db_url,
            pool_size=settings.registry_db_pool_max,
            max_overflow=0,
            pool_pre_ping=True,
            pool_timeout=settings.db_pool_timeout_seconds,
            connect_args=build_tls_connect_args(settings.is_production),
        )
        _registry_session = async_sessionmaker(
            _registry_engine, class_=AsyncSession, expire_on_commit=False
        )
    return _registry_engine


def get_registry_sessionmaker() -> async_sessionmaker[AsyncSession] | None:
    if get_registry_engine() is None:
        return None
    return _registry_session


async def probe_registry(registry_engine: AsyncEngine | None) -> bool:
    """Check once whether the registry is reachable.

    The result decides for the whole process lifetime whether multi-tenant
    routing is active.
    """
    if registry_engine is None:
        return False
    try:
        async with registry_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Tenant registry unreachable, running in dedicated mode: %s", exc)
        return False
    return True


async def close_registry_engine() -> None:
    """Release registry connection slots on shutdown."""
    global _registry_engine, _registry_session

    if _registry_engine is None:
        return
    try:
        await _registry_engine.dispose()
    except (SQLAlchemyError, OSError) as exc:
        logger.debug("Ignoring registry dispose error: %s", exc)
    _registry_engine = None
    _registry_session = None
