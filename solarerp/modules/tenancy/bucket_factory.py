"""Per-tenant object-storage clients (S3-compatible, via MinIO's client)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from urllib.parse import urlsplit

from minio import Minio

from solarerp.config import settings
from solarerp.exceptions import (
    BucketConfigMissingError,
    TenantBucketConfigIncompleteError,
    TenantNotFoundError,
)
from solarerp.models.enums import BucketProvider
from solarerp.modules.tenancy.constants import (
    DEFAULT_BUCKET_REGION,
    R2_ENDPOINT_TEMPLATE,
    S3_DEFAULT_ENDPOINT,
    SPACES_DEFAULT_ENDPOINT,
)
from solarerp.modules.tenancy.registry import TenantRegistry
from solarerp.modules.tenancy.schemas import BucketHandle, TenantConfig, parse_tenant_id

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Minio]


def infer_endpoint(provider: str | None) -> str:
    """Default endpoint for a provider when the tenant row stores none.

    A deployment-wide ``BUCKET_ENDPOINT`` wins over the provider template.
    """
    if settings.bucket_endpoint:
        return settings.bucket_endpoint
    if provider == BucketProvider.R2.value:
        return R2_ENDPOINT_TEMPLATE.format(account_id=settings.cloudflare_account_id or "account")
    if provider == BucketProvider.SPACES.value:
        return SPACES_DEFAULT_ENDPOINT
    return S3_DEFAULT_ENDPOINT


def _split_endpoint(endpoint: str) -> tuple[str, bool]:
    """Turn ``https://host[:port]`` into MinIO's ``(host[:port], secure)``."""
    if "://" not in endpoint:
        return endpoint.strip("/"), True
    parts = urlsplit(endpoint)
    return parts.netloc, parts.scheme == "https"


def build_bucket_client(
    endpoint: str,
    access_key: str,
    secret_key: str,
    region: str | None,
) -> Minio:
    host, secure = _split_endpoint(endpoint)
    return Minio(
        host,
        access_key=access_key,
        secret_key=secret_key,
        secure=secure,
        region=region or DEFAULT_BUCKET_REGION,
    )


class BucketClientFactory:
    """Cache of tenant id -> bucket client, mirroring :class:`TenantPoolManager`.

    There is no fallback to the default bucket for a shared-mode tenant: a
    half-provisioned tenant fails loudly instead of writing into another
    tenant's storage.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        shared_mode: bool,
        client_factory: ClientFactory = build_bucket_client,
    ) -> None:
        self._registry = registry
        self._shared_mode = shared_mode
        self._client_factory = client_factory
        self._clients: dict[str, BucketHandle] = {}
        self._default: BucketHandle | None = None
        self._lock = asyncio.Lock()

    def is_shared_mode(self) -> bool:
        return self._shared_mode

    def get_default_client(self) -> BucketHandle:
        """The deployment-configured client used in dedicated mode.

        Raises:
            BucketConfigMissingError: ``BUCKET_*`` settings are incomplete.
        """
        if self._default is None:
            if not (
                settings.bucket_endpoint
                and settings.bucket_name
                and settings.bucket_access_key_id
                and settings.bucket_secret_access_key
            ):
                raise BucketConfigMissingError(
                    "Bucket config missing: set BUCKET_ENDPOINT, BUCKET_NAME, "
                    "BUCKET_ACCESS_KEY_ID, BUCKET_SECRET_ACCESS_KEY"
                )
            client = self._client_factory(
                settings.bucket_endpoint,
                settings.bucket_access_key_id,
                settings.bucket_secret_access_key,
                settings.bucket_region,
            )
            self._default = BucketHandle(
                client=client, bucket_name=settings.bucket_name, endpoint=settings.bucket_endpoint
            )
        return self._default

    async def get_bucket_client(
        self, tenant_id: str, config: TenantConfig | None = None
    ) -> BucketHandle:
        """Return the bucket handle for ``tenant_id``.

        Raises:
            TenantNotFoundError: Shared mode and the registry has no such tenant.
            TenantBucketConfigIncompleteError: Bucket name or keys are missing.
        """
        if not self._shared_mode:
            return self.get_default_client()

        key = parse_tenant_id(tenant_id)
        cached = self._clients.get(key) if key else None
        if cached is not None:
            return cached

        if config is None or config.id != key:
            config = await self._registry.get_by_id(tenant_id)
            if config is None:
                raise TenantNotFoundError("Tenant not found")

        async with self._lock:
            handle = self._clients.get(config.id)
            if handle is None:
                handle = self._build_handle(config)
                self._clients[config.id] = handle
                logger.info(
                    "Created bucket client for tenant %s (bucket=%s)", config.id, config.bucket_name
                )
        return handle

    def clear_client(self, tenant_id: str) -> None:
        key = parse_tenant_id(tenant_id)
        if key is not None:
            self._clients.pop(key, None)

    def clear_all(self) -> None:
        self._clients.clear()

    def _build_handle(self, config: TenantConfig) -> BucketHandle:
        if not config.bucket_name or not config.bucket_access_key or not config.bucket_secret_key:
            raise TenantBucketConfigIncompleteError("Tenant bucket config incomplete")
        endpoint = config.bucket_endpoint or infer_endpoint(config.bucket_provider)
        client = self._client_factory(
            endpoint,
            config.bucket_access_key,
            config.bucket_secret_key,
            config.bucket_region,
        )
        return BucketHandle(client=client, bucket_name=config.bucket_name, endpoint=endpoint)
