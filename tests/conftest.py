"""Pytest fixtures for SolarERP integration tests.

The application is built with in-memory tenancy services: a fake registry,
real pool and bucket caches with fake engine/client factories, and request
transactions over mocked sessions. No database or object store is needed.
"""

import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from solarerp.app import create_app
from solarerp.config import settings
from solarerp.exceptions import TenantSuspendedError
from solarerp.modules.tenancy import dependencies
from solarerp.modules.tenancy.bucket_factory import BucketClientFactory
from solarerp.modules.tenancy.pool_manager import TenantPoolManager
from solarerp.modules.tenancy.runtime import TenancyServices
from solarerp.modules.tenancy.schemas import TenantConfig
from solarerp.modules.tenancy.transaction import RequestTransaction


class FakeRegistry:
    """In-memory stand-in for TenantRegistry with the same lookup contract."""

    def __init__(self, *configs: TenantConfig) -> None:
        self.configs = {config.id: config for config in configs}
        self.lookups: list[str] = []
        self.invalidated: list[str] = []

    @property
    def configured(self) -> bool:
        return True

    async def get_by_id(self, tenant_id):
        self.lookups.append(str(tenant_id))
        config = self.configs.get(str(tenant_id))
        if config is not None and not config.is_active:
            raise TenantSuspendedError("Tenant is suspended")
        return config

    def invalidate(self, tenant_id) -> None:
        self.invalidated.append(str(tenant_id))

    def invalidate_all(self) -> None:
        self.invalidated.append("*")


def make_tenant_config(tenant_key: str, status: str = "active") -> TenantConfig:
    return TenantConfig(
        id=str(uuid.uuid4()),
        tenant_key=tenant_key,
        mode="shared",
        status=status,
        db_host="db.internal",
        db_port=5432,
        db_name=f"{tenant_key}_db",
        db_user=f"{tenant_key}_app",
        db_password="pw",
        bucket_provider="r2",
        bucket_name=f"{tenant_key}-files",
        bucket_access_key="AK",
        bucket_secret_key="SK",
    )


def _fake_engine(label: str):
    engine = MagicMock(name=label)
    engine.label = label
    engine.dispose = AsyncMock()
    return engine


@pytest.fixture
def tenant_a() -> TenantConfig:
    return make_tenant_config("acme")


@pytest.fixture
def tenant_b() -> TenantConfig:
    return make_tenant_config("sunco")


@pytest.fixture
def suspended_tenant() -> TenantConfig:
    return make_tenant_config("lapsed", status="suspended")


@pytest.fixture
def default_engine():
    return _fake_engine("default")


@pytest.fixture
def shared_services(tenant_a, tenant_b, suspended_tenant, default_engine) -> TenancyServices:
    registry = FakeRegistry(tenant_a, tenant_b, suspended_tenant)
    return TenancyServices(
        registry=registry,
        pools=TenantPoolManager(
            registry, default_engine, True, engine_factory=lambda config: _fake_engine(config.db_name)
        ),
        buckets=BucketClientFactory(
            registry, True, client_factory=lambda endpoint, access_key, secret_key, region: MagicMock()
        ),
        shared_mode=True,
    )


@pytest.fixture
def dedicated_services(default_engine, monkeypatch) -> TenancyServices:
    monkeypatch.setattr(settings, "bucket_endpoint", "https://minio.internal:9000")
    monkeypatch.setattr(settings, "bucket_name", "solarerp-files")
    monkeypatch.setattr(settings, "bucket_access_key_id", "AK")
    monkeypatch.setattr(settings, "bucket_secret_access_key", "SK")
    registry = FakeRegistry()
    return TenancyServices(
        registry=registry,
        pools=TenantPoolManager(registry, default_engine, False),
        buckets=BucketClientFactory(
            registry, False, client_factory=lambda endpoint, access_key, secret_key, region: MagicMock()
        ),
        shared_mode=False,
    )


@pytest.fixture
def opened_transactions(monkeypatch) -> list[tuple[object, RequestTransaction]]:
    """Record every request transaction as ``(engine, txn)``; sessions are AsyncMocks."""
    opened: list[tuple[object, RequestTransaction]] = []

    async def begin(engine, timeout_seconds, clock=None):
        txn = RequestTransaction(AsyncMock(), timeout_seconds)
        await txn.open()
        opened.append((engine, txn))
        return txn

    monkeypatch.setattr(dependencies.RequestTransaction, "begin", staticmethod(begin))
    return opened


@pytest.fixture
def make_token():
    """Mint an access token signed with the application's JWT settings."""

    def _make(tenant_id: str | None = None, user_id: str = "user-1", **claims) -> str:
        payload = {"sub": user_id, **claims}
        if tenant_id is not None:
            payload["tenant_id"] = tenant_id
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    return _make


async def _client_for(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def shared_app(shared_services):
    return create_app(tenancy=shared_services)


@pytest.fixture
def dedicated_app(dedicated_services):
    return create_app(tenancy=dedicated_services)


@pytest_asyncio.fixture
async def async_client(shared_app) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient wired to a shared-mode app."""
    async for client in _client_for(shared_app):
        yield client


@pytest_asyncio.fixture
async def dedicated_client(dedicated_app) -> AsyncGenerator[AsyncClient, None]:
    async for client in _client_for(dedicated_app):
        yield client
