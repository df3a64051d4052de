import enum


class TenantMode(str, enum.Enum):
    SHARED = "shared"
    DEDICATED = "dedicated"


class TenantStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class BucketProvider(str, enum.Enum):
    S3 = "s3"
    R2 = "r2"
    SPACES = "spaces"
    MINIO = "minio"
