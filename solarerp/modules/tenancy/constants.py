"""Tenancy module constants for tenant routing and credential handling."""

# Credential cipher (AES-256-GCM, PBKDF2-HMAC-SHA256 key stretching)
CIPHER_NONCE_LENGTH = 16
CIPHER_TAG_LENGTH = 16
CIPHER_KEY_LENGTH = 32
CIPHER_KDF_ITERATIONS = 100_000
CIPHER_KDF_SALT = b"tenant-registry-salt"

# HTTP verbs that get a tenant-scoped transaction
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Default Postgres port when a tenant row leaves it empty
DEFAULT_DB_PORT = 5432

# Object storage
DEFAULT_BUCKET_REGION = "auto"
R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"
SPACES_DEFAULT_ENDPOINT = "https://nyc3.digitaloceanspaces.com"
S3_DEFAULT_ENDPOINT = "https://s3.amazonaws.com"

# Message returned for every tenant routing failure (no tenant enumeration)
TENANT_UNAUTHORIZED_MESSAGE = "Unauthorized"
