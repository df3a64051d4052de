"""Pydantic v2 schemas for the tenant administration API."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from solarerp.models.enums import BucketProvider, TenantMode, TenantStatus

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TenantCreate(BaseModel):
    tenant_key: str = Field(..., min_length=1, max_length=255)
    mode: TenantMode
    status: TenantStatus = TenantStatus.ACTIVE
    db_host: str | None = None
    db_port: int | None = Field(None, ge=1, le=65535)
    db_name: str | None = None
    db_user: str | None = None
    db_password: str | None = Field(None, repr=False)
    bucket_provider: BucketProvider | None = None
    bucket_name: str | None = None
    bucket_region: str | None = None
    bucket_endpoint: str | None = None
    bucket_access_key: str | None = Field(None, repr=False)
    bucket_secret_key: str | None = Field(None, repr=False)


class TenantUpdate(BaseModel):
    status: TenantStatus | None = None
    mode: TenantMode | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BillingReadiness(BaseModel):
    shared_billing: bool
    dedicated_billing: bool


class TenantResponse(BaseModel):
    """A registry row without any credential, encrypted or not."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_key: str
    mode: TenantMode
    status: TenantStatus
    db_name: str | None = None
    bucket_name: str | None = None
    created_at: datetime | None = None

    @computed_field
    @property
    def billing_readiness(self) -> BillingReadiness:
        return BillingReadiness(
            shared_billing=self.mode == TenantMode.SHARED,
            dedicated_billing=self.mode == TenantMode.DEDICATED,
        )
