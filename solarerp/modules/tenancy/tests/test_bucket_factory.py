"""Unit tests for BucketClientFactory and endpoint inference."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from minio import Minio

from solarerp.config import settings
from solarerp.exceptions import (
    BucketConfigMissingError,
    TenantBucketConfigIncompleteError,
    TenantNotFoundError,
)
from solarerp.modules.tenancy.bucket_factory import (
    BucketClientFactory,
    _split_endpoint,
    build_bucket_client,
    infer_endpoint,
)
from solarerp.modules.tenancy.schemas import TenantConfig


def _make_config(**overrides) -> TenantConfig:
    fields = {
        "id": str(uuid.uuid4()),
        "tenant_key": "acme",
        "mode": "shared",
        "status": "active",
        "bucket_provider": "r2",
        "bucket_name": "acme-files",
        "bucket_access_key": "AK",
        "bucket_secret_key": "SK",
    }
    fields.update(overrides)
    return TenantConfig(**fields)


def _make_registry(*configs: TenantConfig):
    by_id = {config.id: config for config in configs}
    registry = MagicMock()
    registry.get_by_id = AsyncMock(side_effect=lambda tenant_id: by_id.get(str(tenant_id)))
    return registry


def _client_factory():
    calls: list[tuple] = []

    def factory(endpoint, access_key, secret_key, region):
        calls.append((endpoint, access_key, secret_key, region))
        return MagicMock(name=f"client-{len(calls)}")

    return factory, calls


@pytest.fixture
def no_bucket_endpoint(monkeypatch):
    monkeypatch.setattr(settings, "bucket_endpoint", "")
    monkeypatch.setattr(settings, "cloudflare_account_id", "cf123")


def test_infer_endpoint_per_provider(no_bucket_endpoint):
    assert infer_endpoint("r2") == "https://cf123.r2.cloudflarestorage.com"
    assert infer_endpoint("spaces") == "https://nyc3.digitaloceanspaces.com"
    assert infer_endpoint("s3") == "https://s3.amazonaws.com"
    assert infer_endpoint(None) == "https://s3.amazonaws.com"


def test_deployment_endpoint_overrides_inference(monkeypatch):
    monkeypatch.setattr(settings, "bucket_endpoint", "https://minio.internal:9000")
    assert infer_endpoint("r2") == "https://minio.internal:9000"


@pytest.mark.asyncio
async def test_shared_mode_builds_tenant_client_once(no_bucket_endpoint):
    config = _make_config()
    factory, calls = _client_factory()
    buckets = BucketClientFactory(_make_registry(config), shared_mode=True, client_factory=factory)

    first = await buckets.get_bucket_client(config.id, config)
    second = await buckets.get_bucket_client(config.id)

    assert first is second
    assert first.bucket_name == "acme-files"
    assert calls == [("https://cf123.r2.cloudflarestorage.com", "AK", "SK", None)]


@pytest.mark.asyncio
async def test_stored_endpoint_wins_over_provider(no_bucket_endpoint):
    config = _make_config(bucket_endpoint="https://files.acme.test")
    factory, calls = _client_factory()
    buckets = BucketClientFactory(_make_registry(), shared_mode=True, client_factory=factory)

    handle = await buckets.get_bucket_client(config.id, config)

    assert handle.endpoint == "https://files.acme.test"
    assert calls[0][0] == "https://files.acme.test"


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["bucket_name", "bucket_access_key", "bucket_secret_key"])
async def test_incomplete_tenant_bucket_never_falls_back(missing, no_bucket_endpoint):
    config = _make_config(**{missing: None})
    factory, calls = _client_factory()
    buckets = BucketClientFactory(_make_registry(config), shared_mode=True, client_factory=factory)

    with pytest.raises(TenantBucketConfigIncompleteError):
        await buckets.get_bucket_client(config.id, config)
    assert calls == []


@pytest.mark.asyncio
async def test_unknown_tenant_raises_not_found():
    factory, _ = _client_factory()
    buckets = BucketClientFactory(_make_registry(), shared_mode=True, client_factory=factory)
    with pytest.raises(TenantNotFoundError):
        await buckets.get_bucket_client(str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_clear_client_forces_rebuild(no_bucket_endpoint):
    config = _make_config()
    factory, calls = _client_factory()
    buckets = BucketClientFactory(_make_registry(config), shared_mode=True, client_factory=factory)

    first = await buckets.get_bucket_client(config.id, config)
    buckets.clear_client(config.id)
    second = await buckets.get_bucket_client(config.id, config)

    assert first is not second
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_dedicated_mode_returns_default_client(monkeypatch):
    monkeypatch.setattr(settings, "bucket_endpoint", "https://minio.internal:9000")
    monkeypatch.setattr(settings, "bucket_name", "solarerp")
    monkeypatch.setattr(settings, "bucket_access_key_id", "DAK")
    monkeypatch.setattr(settings, "bucket_secret_access_key", "DSK")
    factory, calls = _client_factory()
    registry = _make_registry()
    buckets = BucketClientFactory(registry, shared_mode=False, client_factory=factory)

    first = await buckets.get_bucket_client(str(uuid.uuid4()))
    second = await buckets.get_bucket_client("anything")

    assert first is second
    assert first.bucket_name == "solarerp"
    assert len(calls) == 1
    registry.get_by_id.assert_not_called()


@pytest.mark.asyncio
async def test_dedicated_mode_without_default_config_raises(monkeypatch):
    monkeypatch.setattr(settings, "bucket_endpoint", "")
    monkeypatch.setattr(settings, "bucket_name", "")
    factory, _ = _client_factory()
    buckets = BucketClientFactory(_make_registry(), shared_mode=False, client_factory=factory)

    with pytest.raises(BucketConfigMissingError):
        await buckets.get_bucket_client(str(uuid.uuid4()))


@pytest.mark.parametrize(
    ("endpoint", "expected"),
    [
        ("http://minio.internal:9000", ("minio.internal:9000", False)),
        ("https://cf123.r2.cloudflarestorage.com", ("cf123.r2.cloudflarestorage.com", True)),
        ("minio.internal:9000/", ("minio.internal:9000", True)),
    ],
)
def test_split_endpoint(endpoint, expected):
    assert _split_endpoint(endpoint) == expected


def test_build_bucket_client_returns_minio_client():
    assert isinstance(build_bucket_client("http://minio.internal:9000", "AK", "SK", None), Minio)
