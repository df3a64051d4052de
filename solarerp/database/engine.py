from sqlalchemy.ext.asyncio import create_async_engine

from solarerp.config import settings
from solarerp.database.tls import build_tls_connect_args

# Default pool: used for every request in dedicated mode. Tenant pools share the same ceiling.
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_max,
    max_overflow=0,
    pool_pre_ping=True,
    pool_timeout=settings.db_pool_timeout_seconds,
    pool_recycle=settings.db_pool_recycle_seconds,
    connect_args=build_tls_connect_args(settings.is_production),
    echo=settings.environment == "development",
)
