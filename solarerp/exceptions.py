"""Domain exception hierarchy for structured error responses."""

from __future__ import annotations


class AppException(Exception):
    """Base exception for all domain errors.

    Subclasses set ``code`` and ``status_code`` at the class level; callers
    provide ``message`` and an optional ``details`` list.
    """

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class BadRequestException(AppException):
    code = "BAD_REQUEST"
    status_code = 400


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class ConflictException(AppException):
    code = "CONFLICT"
    status_code = 409


class UnauthorizedException(AppException):
    code = "UNAUTHORIZED"
    status_code = 401


class ServiceUnavailableException(AppException):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503


# ---------------------------------------------------------------------------
# Tenancy errors
#
# Raised by the tenancy components with a stable machine-readable code. Only
# the HTTP boundary decides what the caller sees: access errors collapse into
# one generic 401, provisioning errors into an opaque 500.
# ---------------------------------------------------------------------------


class TenancyError(AppException):
    """Base class for tenant routing and isolation failures."""

    code = "TENANCY_ERROR"
    status_code = 500


class ConfigMissingError(TenancyError):
    """Required process configuration is absent. Fatal at boot."""

    code = "CRYPTO_CONFIG_MISSING"


class DecryptionFailedError(TenancyError):
    code = "CRYPTO_DECRYPT_FAILED"


class CredentialDecryptFailedError(TenancyError):
    code = "TENANT_DECRYPT_FAILED"


class TenantAccessError(TenancyError):
    """Tenant cannot be routed to. Always surfaced as a generic 401."""

    code = "TENANT_ACCESS_DENIED"
    status_code = 401


class TenantNotFoundError(TenantAccessError):
    code = "TENANT_NOT_FOUND"


class TenantSuspendedError(TenantAccessError):
    code = "TENANT_SUSPENDED"


class TenantDbConfigIncompleteError(TenancyError):
    code = "TENANT_DB_CONFIG_INCOMPLETE"


class TenantBucketConfigIncompleteError(TenancyError):
    code = "TENANT_BUCKET_CONFIG_INCOMPLETE"


class BucketConfigMissingError(TenancyError):
    code = "BUCKET_CONFIG_MISSING"


class TransactionTimeoutError(TenancyError):
    code = "TRANSACTION_TIMEOUT"


class RegistryNotConfiguredError(TenancyError):
    code = "REGISTRY_NOT_CONFIGURED"
    status_code = 503
