"""Billing API router: usage-weighted invoices and usage roll-up jobs."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from solarerp.database.session import get_registry_db
from solarerp.modules.billing.invoice_service import InvoiceService
from solarerp.modules.billing.schemas import (
    AggregateActiveUsersRequest,
    AggregateActiveUsersResponse,
    InvoiceCalculationRequest,
    InvoiceListResponse,
)
from solarerp.modules.billing.usage_service import UsageService, yesterday
from solarerp.modules.tenancy.admin_auth import require_admin_key

router = APIRouter(prefix="/billing", tags=["billing"], dependencies=[Depends(require_admin_key)])


@router.post("/invoices", response_model=InvoiceListResponse)
async def calculate_invoices(
    body: InvoiceCalculationRequest,
    db: AsyncSession = Depends(get_registry_db),
):
    """Allocate the month's shared infrastructure cost across active shared tenants."""
    svc = InvoiceService(db)
    invoices = await svc.calculate_invoices(body.month, body.total_infra_cost)
    return InvoiceListResponse(month=body.month, invoices=invoices)


@router.post("/jobs/aggregate-active-users", response_model=AggregateActiveUsersResponse)
async def aggregate_active_users(
    body: AggregateActiveUsersRequest | None = None,
    db: AsyncSession = Depends(get_registry_db),
):
    """Roll distinct daily users into the usage table. Defaults to yesterday (UTC)."""
    day = (body.date if body else None) or yesterday()
    updated = await UsageService(db).aggregate_active_users_for_date(day)
    return AggregateActiveUsersResponse(date=day, tenants_updated=updated)
