"""Object-storage helpers that operate on the caller's tenant bucket.

Every function takes the :class:`BucketHandle` resolved for the request, so a
handler can only ever reach its own tenant's bucket. The MinIO client is
blocking; calls run in a worker thread.
"""

import asyncio
import io
import logging
import mimetypes
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath

from minio.error import S3Error

from solarerp.modules.tenancy.schemas import BucketHandle

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_PREFIX = "uploads"
DEFAULT_PRESIGN_EXPIRY = timedelta(hours=1)


@dataclass
class StoredObject:
    path: str
    filename: str
    size: int
    mime_type: str
    uploaded_at: datetime


def generate_file_path(prefix: str, filename: str, now: datetime | None = None) -> str:
    """Object key of the form ``prefix/YYYY/MM/<stem>_<16 hex><suffix>``."""
    now = now or datetime.now(timezone.utc)
    original = PurePosixPath(filename or "file")
    unique_id = secrets.token_hex(8)
    return f"{prefix or DEFAULT_UPLOAD_PREFIX}/{now.year}/{now.month:02d}/{original.stem}_{unique_id}{original.suffix}"


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


async def upload_bytes(
    bucket: BucketHandle,
    data: bytes,
    filename: str,
    *,
    prefix: str = DEFAULT_UPLOAD_PREFIX,
    content_type: str | None = None,
    key: str | None = None,
) -> StoredObject:
    """Upload ``data`` under a generated key (or ``key``) and describe the stored object."""
    object_key = key or generate_file_path(prefix, filename)
    mime_type = content_type or guess_content_type(filename)

    await asyncio.to_thread(
        bucket.client.put_object,
        bucket.bucket_name,
        object_key,
        io.BytesIO(data),
        length=len(data),
        content_type=mime_type,
    )
    logger.info("Uploaded %d bytes to %s/%s", len(data), bucket.bucket_name, object_key)
    return StoredObject(
        path=object_key,
        filename=filename,
        size=len(data),
        mime_type=mime_type,
        uploaded_at=datetime.now(timezone.utc),
    )


async def presigned_get_url(
    bucket: BucketHandle, key: str, expires: timedelta = DEFAULT_PRESIGN_EXPIRY
) -> str:
    return await asyncio.to_thread(
        bucket.client.presigned_get_object, bucket.bucket_name, key, expires=expires
    )


async def delete_object(bucket: BucketHandle, key: str) -> bool:
    """Remove one object. Returns False when the store rejects the delete."""
    try:
        await asyncio.to_thread(bucket.client.remove_object, bucket.bucket_name, key)
    except S3Error as exc:
        logger.warning("Failed to delete %s/%s: %s", bucket.bucket_name, key, exc.code)
        return False
    return True
