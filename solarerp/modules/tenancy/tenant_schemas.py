"""Pydantic v2 schemas for tenant-scoped endpoints."""

from datetime import datetime

from pydantic import BaseModel


class TenantContextResponse(BaseModel):
    id: str | None = None
    tenant_key: str | None = None
    mode: str
    status: str
    bucket_name: str | None = None


class StoredObjectResponse(BaseModel):
    path: str
    filename: str
    size: int
    mime_type: str
    uploaded_at: datetime


class PresignedUrlResponse(BaseModel):
    key: str
    url: str
