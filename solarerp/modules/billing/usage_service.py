"""Usage counters in the registry database, and their monthly roll-ups."""

import calendar
import logging
import re
import uuid
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, literal, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from solarerp.exceptions import BadRequestException
from solarerp.models.enums import TenantMode, TenantStatus
from solarerp.models.tenant import Tenant
from solarerp.models.usage import CustomerUsageDaily, UserActivityDaily
from solarerp.modules.billing.constants import MONTH_PATTERN
from solarerp.modules.billing.schemas import TenantUsage, UsageTotals

logger = logging.getLogger(__name__)


def month_bounds(month: str) -> tuple[date, date]:
    """First and last day of a ``YYYY-MM`` month.

    Raises:
        BadRequestException: ``month`` is not a valid ``YYYY-MM`` value.
    """
    if not re.match(MONTH_PATTERN, month or ""):
        raise BadRequestException("month must be YYYY-MM")
    year, month_number = (int(part) for part in month.split("-"))
    if not 1 <= month_number <= 12:
        raise BadRequestException("month must be YYYY-MM")
    last_day = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, last_day)


def current_month() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m")


def yesterday() -> date:
    return datetime.now(timezone.utc).date() - timedelta(days=1)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _usage_sums():
    return (
        func.coalesce(func.sum(CustomerUsageDaily.api_requests), 0).label("api_requests"),
        func.coalesce(func.sum(CustomerUsageDaily.pdf_generated), 0).label("pdf_generated"),
        func.coalesce(func.sum(CustomerUsageDaily.active_users), 0).label("active_users"),
        func.coalesce(func.sum(CustomerUsageDaily.storage_gb), 0).label("storage_gb"),
    )


def _totals_from_row(row) -> UsageTotals:
    return UsageTotals(
        api_requests=int(row.api_requests or 0),
        pdf_generated=int(row.pdf_generated or 0),
        active_users=int(row.active_users or 0),
        storage_gb=float(row.storage_gb or 0),
    )


class UsageService:
    """Reads and writes ``customer_usage_daily`` / ``user_activity_daily``.

    The session must be bound to the registry database.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _bump_counter(self, tenant_id: str, column: str, day: date | None = None) -> None:
        values = {
            "tenant_id": uuid.UUID(tenant_id),
            "date": day or _today(),
            "api_requests": 0,
            "pdf_generated": 0,
            "active_users": 0,
            "storage_gb": 0,
        }
        values[column] = 1
        stmt = insert(CustomerUsageDaily).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CustomerUsageDaily.tenant_id, CustomerUsageDaily.date],
            set_={column: getattr(CustomerUsageDaily, column) + 1},
        )
        await self.db.execute(stmt)

    async def increment_api_requests(self, tenant_id: str, day: date | None = None) -> None:
        await self._bump_counter(tenant_id, "api_requests", day)

    async def increment_pdf_generated(self, tenant_id: str, day: date | None = None) -> None:
        await self._bump_counter(tenant_id, "pdf_generated", day)

    async def record_user_activity(self, tenant_id: str, user_id: str, day: date | None = None) -> None:
        stmt = (
            insert(UserActivityDaily)
            .values(tenant_id=uuid.UUID(tenant_id), date=day or _today(), user_id=str(user_id))
            .on_conflict_do_nothing(
                index_elements=[UserActivityDaily.tenant_id, UserActivityDaily.date, UserActivityDaily.user_id]
            )
        )
        await self.db.execute(stmt)

    async def set_storage_gb(self, tenant_id: str, day: date, storage_gb: float) -> None:
        stmt = insert(CustomerUsageDaily).values(
            tenant_id=uuid.UUID(tenant_id),
            date=day,
            api_requests=0,
            pdf_generated=0,
            active_users=0,
            storage_gb=storage_gb,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CustomerUsageDaily.tenant_id, CustomerUsageDaily.date],
            set_={"storage_gb": stmt.excluded.storage_gb},
        )
        await self.db.execute(stmt)

    async def aggregate_active_users_for_date(self, day: date) -> int:
        """Roll distinct users seen on ``day`` into ``customer_usage_daily.active_users``.

        Returns the number of tenants updated.
        """
        per_tenant = (
            select(
                UserActivityDaily.tenant_id,
                literal(day).label("date"),
                literal(0).label("api_requests"),
                literal(0).label("pdf_generated"),
                func.count(func.distinct(UserActivityDaily.user_id)).label("active_users"),
                literal(0).label("storage_gb"),
            )
            .where(UserActivityDaily.date == day)
            .group_by(UserActivityDaily.tenant_id)
        )
        stmt = insert(CustomerUsageDaily).from_select(
            ["tenant_id", "date", "api_requests", "pdf_generated", "active_users", "storage_gb"],
            per_tenant,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CustomerUsageDaily.tenant_id, CustomerUsageDaily.date],
            set_={"active_users": stmt.excluded.active_users},
        )
        result = await self.db.execute(stmt)
        updated = result.rowcount or 0
        logger.info("Aggregated active users for %s (%d tenants)", day.isoformat(), updated)
        return updated

    async def get_monthly_usage_by_tenant(self, month: str) -> list[TenantUsage]:
        """Monthly totals per tenant, for active shared-mode tenants only."""
        start, end = month_bounds(month)
        result = await self.db.execute(
            select(CustomerUsageDaily.tenant_id, *_usage_sums())
            .join(Tenant, Tenant.id == CustomerUsageDaily.tenant_id)
            .where(
                Tenant.status == TenantStatus.ACTIVE.value,
                Tenant.mode == TenantMode.SHARED.value,
                CustomerUsageDaily.date >= start,
                CustomerUsageDaily.date <= end,
            )
            .group_by(CustomerUsageDaily.tenant_id)
            .order_by(CustomerUsageDaily.tenant_id)
        )
        return [TenantUsage(tenant_id=str(row.tenant_id), totals=_totals_from_row(row)) for row in result.all()]

    async def get_tenant_usage(self, tenant_id: str, month: str) -> UsageTotals:
        start, end = month_bounds(month)
        result = await self.db.execute(
            select(*_usage_sums()).where(
                CustomerUsageDaily.tenant_id == uuid.UUID(tenant_id),
                CustomerUsageDaily.date >= start,
                CustomerUsageDaily.date <= end,
            )
        )
        row = result.one_or_none()
        if row is None:
            return UsageTotals()
        return _totals_from_row(row)
