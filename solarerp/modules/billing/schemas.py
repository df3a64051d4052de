"""Pydantic v2 schemas and value types for billing."""

import datetime as dt
import uuid
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from solarerp.modules.billing.constants import MONTH_PATTERN, USAGE_WEIGHTS


@dataclass(frozen=True)
class UsageTotals:
    """Summed usage counters for one tenant over a period."""

    api_requests: int = 0
    pdf_generated: int = 0
    active_users: int = 0
    storage_gb: float = 0.0

    @property
    def usage_score(self) -> float:
        return (
            self.api_requests * USAGE_WEIGHTS["api_requests"]
            + self.pdf_generated * USAGE_WEIGHTS["pdf_generated"]
            + self.active_users * USAGE_WEIGHTS["active_users"]
            + self.storage_gb * USAGE_WEIGHTS["storage_gb"]
        )


@dataclass(frozen=True)
class TenantUsage:
    tenant_id: str
    totals: UsageTotals


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class InvoiceCalculationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    month: str = Field(..., pattern=MONTH_PATTERN)
    total_infra_cost: float = Field(..., ge=0, alias="totalInfraCost")


class AggregateActiveUsersRequest(BaseModel):
    date: dt.date | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class UsageBreakdown(BaseModel):
    api_requests: int
    pdf_generated: int
    active_users: int
    storage_gb: float


class InvoiceLine(BaseModel):
    tenant_id: uuid.UUID
    usage_score: float
    usage_percentage: float
    final_amount: float
    breakdown: UsageBreakdown


class InvoiceListResponse(BaseModel):
    month: str
    invoices: list[InvoiceLine]


class AggregateActiveUsersResponse(BaseModel):
    date: dt.date
    tenants_updated: int


class TenantUsageResponse(UsageBreakdown):
    month: str
    usage_score: float
