from solarerp.database.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin
from solarerp.database.engine import engine
from solarerp.database.registry import (
    close_registry_engine,
    get_registry_engine,
    get_registry_sessionmaker,
    probe_registry,
)
from solarerp.database.session import get_registry_db
from solarerp.database.tenant import set_transaction_timeout

__all__ = [
    "Base",
    "CreatedAtMixin",
    "UUIDPrimaryKeyMixin",
    "engine",
    "get_registry_db",
    "get_registry_engine",
    "get_registry_sessionmaker",
    "probe_registry",
    "close_registry_engine",
    "set_transaction_timeout",
]
