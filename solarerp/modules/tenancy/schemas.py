"""Runtime types for resolved tenants and per-request tenant context."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from solarerp.exceptions import BucketConfigMissingError
from solarerp.models.enums import TenantMode, TenantStatus

if TYPE_CHECKING:
    from minio import Minio
    from sqlalchemy.ext.asyncio import AsyncEngine

    from solarerp.models.tenant import Tenant


@dataclass(frozen=True)
class TenantConfig:
    """A registry row with its secrets decrypted.

    Lives only in process memory. Secret fields are excluded from ``repr`` so
    an accidental log line never carries them.
    """

    id: str
    tenant_key: str
    mode: str
    status: str
    db_host: str | None = None
    db_port: int | None = None
    db_name: str | None = None
    db_user: str | None = None
    db_password: str | None = field(default=None, repr=False)
    bucket_provider: str | None = None
    bucket_name: str | None = None
    bucket_access_key: str | None = field(default=None, repr=False)
    bucket_secret_key: str | None = field(default=None, repr=False)
    bucket_region: str | None = None
    bucket_endpoint: str | None = None
    created_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE.value

    @classmethod
    def from_row(
        cls,
        row: Tenant,
        *,
        db_password: str | None,
        bucket_access_key: str | None,
        bucket_secret_key: str | None,
    ) -> TenantConfig:
        return cls(
            id=str(row.id),
            tenant_key=row.tenant_key,
            mode=row.mode,
            status=row.status,
            db_host=row.db_host,
            db_port=row.db_port,
            db_name=row.db_name,
            db_user=row.db_user,
            db_password=db_password,
            bucket_provider=row.bucket_provider,
            bucket_name=row.bucket_name,
            bucket_access_key=bucket_access_key,
            bucket_secret_key=bucket_secret_key,
            bucket_region=row.bucket_region,
            bucket_endpoint=row.bucket_endpoint,
            created_at=row.created_at,
        )


@dataclass(frozen=True)
class BucketHandle:
    """An object-storage client paired with the one bucket it may touch."""

    client: Minio
    bucket_name: str
    endpoint: str | None = None


@dataclass(frozen=True)
class RequestTenantContext:
    """Resolved tenant for one request, stored on ``request.state.tenant``.

    Domain handlers reach persistence and storage only through ``engine`` and
    ``bucket``; they never build their own pool or client.
    """

    id: str | None
    tenant_key: str | None
    mode: str
    status: str
    engine: AsyncEngine
    bucket: BucketHandle | None

    @property
    def is_dedicated(self) -> bool:
        return self.mode == TenantMode.DEDICATED.value

    def require_bucket(self) -> BucketHandle:
        if self.bucket is None:
            raise BucketConfigMissingError("Object storage is not configured")
        return self.bucket


def parse_tenant_id(value: str | uuid.UUID | None) -> str | None:
    """Normalize a tenant id claim to its canonical string form, or None if unusable."""
    if value is None or value == "":
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None
