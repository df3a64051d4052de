# Import all registry models so SQLAlchemy metadata is complete
from solarerp.models.enums import BucketProvider, TenantMode, TenantStatus
from solarerp.models.tenant import Tenant
from solarerp.models.usage import CustomerUsageDaily, UserActivityDaily

__all__ = [
    "BucketProvider",
    "TenantMode",
    "TenantStatus",
    "Tenant",
    "CustomerUsageDaily",
    "UserActivityDaily",
]
