"""Usage-weighted allocation of the shared infrastructure bill across tenants."""

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from solarerp.modules.billing.constants import AMOUNT_DECIMALS
from solarerp.modules.billing.schemas import InvoiceLine, TenantUsage, UsageBreakdown
from solarerp.modules.billing.usage_service import UsageService

logger = logging.getLogger(__name__)

_QUANTUM = Decimal(1).scaleb(-AMOUNT_DECIMALS)


def round_amount(value: float) -> float:
    """Round half-up to cents (``2.675`` -> ``2.68``), unlike ``round()``'s banker's rounding."""
    return float(Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP))


def allocate_costs(usages: list[TenantUsage], total_infra_cost: float) -> list[InvoiceLine]:
    """Split ``total_infra_cost`` across tenants by their share of the summed usage score.

    When every tenant has a zero score each one is allocated 0.
    """
    total_score = sum(usage.totals.usage_score for usage in usages)

    lines = []
    for usage in usages:
        score = usage.totals.usage_score
        share = score / total_score if total_score > 0 else 0.0
        lines.append(
            InvoiceLine(
                tenant_id=usage.tenant_id,
                usage_score=score,
                usage_percentage=round_amount(share * 100),
                final_amount=round_amount(share * total_infra_cost),
                breakdown=UsageBreakdown(
                    api_requests=usage.totals.api_requests,
                    pdf_generated=usage.totals.pdf_generated,
                    active_users=usage.totals.active_users,
                    storage_gb=usage.totals.storage_gb,
                ),
            )
        )
    return lines


class InvoiceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def calculate_invoices(self, month: str, total_infra_cost: float) -> list[InvoiceLine]:
        """Per-tenant invoices for ``month``. Dedicated and suspended tenants are excluded."""
        usages = await UsageService(self.db).get_monthly_usage_by_tenant(month)
        if not usages:
            return []
        lines = allocate_costs(usages, total_infra_cost)
        logger.info("Calculated %d invoices for %s", len(lines), month)
        return lines
