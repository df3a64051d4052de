from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from solarerp.database.registry import get_registry_sessionmaker
from solarerp.exceptions import RegistryNotConfiguredError


async def get_registry_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a session on the tenant registry database."""
    session_factory = get_registry_sessionmaker()
    if session_factory is None:
        raise RegistryNotConfiguredError("Registry not configured")
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
