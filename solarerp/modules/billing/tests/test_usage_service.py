"""Unit tests for usage counters and month arithmetic."""

import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from solarerp.exceptions import BadRequestException
from solarerp.modules.billing.schemas import UsageTotals
from solarerp.modules.billing.usage_service import UsageService, month_bounds


class TestMonthBounds:
    def test_regular_month(self):
        assert month_bounds("2025-04") == (date(2025, 4, 1), date(2025, 4, 30))

    def test_leap_february(self):
        assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))

    def test_common_february(self):
        assert month_bounds("2025-02")[1] == date(2025, 2, 28)

    @pytest.mark.parametrize("value", ["2025-13", "2025-00", "2025-1", "25-01", "", "January"])
    def test_invalid_month_is_bad_request(self, value):
        with pytest.raises(BadRequestException):
            month_bounds(value)


def _compiled(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


@pytest.mark.asyncio
async def test_increment_api_requests_upserts_one():
    db = MagicMock()
    db.execute = AsyncMock()
    tenant_id = str(uuid.uuid4())

    await UsageService(db).increment_api_requests(tenant_id, date(2025, 1, 2))

    sql = _compiled(db.execute.await_args.args[0])
    assert "INSERT INTO customer_usage_daily" in sql
    assert "ON CONFLICT (tenant_id, date) DO UPDATE" in sql
    assert "customer_usage_daily.api_requests +" in sql


@pytest.mark.asyncio
async def test_record_user_activity_ignores_duplicates():
    db = MagicMock()
    db.execute = AsyncMock()

    await UsageService(db).record_user_activity(str(uuid.uuid4()), "user-1", date(2025, 1, 2))

    sql = _compiled(db.execute.await_args.args[0])
    assert "INSERT INTO user_activity_daily" in sql
    assert "ON CONFLICT (tenant_id, date, user_id) DO NOTHING" in sql


@pytest.mark.asyncio
async def test_increment_rejects_non_uuid_tenant():
    db = MagicMock()
    db.execute = AsyncMock()
    with pytest.raises(ValueError):
        await UsageService(db).increment_api_requests("not-a-uuid")
    db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_aggregate_active_users_reports_rowcount():
    db = MagicMock()
    db.execute = AsyncMock(return_value=MagicMock(rowcount=4))

    updated = await UsageService(db).aggregate_active_users_for_date(date(2025, 1, 2))

    assert updated == 4
    sql = _compiled(db.execute.await_args.args[0])
    assert "distinct(user_activity_daily.user_id)" in sql.lower()
    assert "active_users = excluded.active_users" in sql


@pytest.mark.asyncio
async def test_tenant_usage_sums_the_month():
    row = MagicMock(api_requests=10, pdf_generated=1, active_users=2, storage_gb=0.5)
    db = MagicMock()
    db.execute = AsyncMock(return_value=MagicMock(one_or_none=MagicMock(return_value=row)))

    totals = await UsageService(db).get_tenant_usage(str(uuid.uuid4()), "2025-01")

    assert totals == UsageTotals(api_requests=10, pdf_generated=1, active_users=2, storage_gb=0.5)


@pytest.mark.asyncio
async def test_monthly_usage_only_counts_active_shared_tenants():
    tenant_id = uuid.uuid4()
    row = MagicMock(tenant_id=tenant_id, api_requests=5, pdf_generated=0, active_users=1, storage_gb=None)
    db = MagicMock()
    db.execute = AsyncMock(return_value=MagicMock(all=MagicMock(return_value=[row])))

    usages = await UsageService(db).get_monthly_usage_by_tenant("2025-01")

    assert usages[0].tenant_id == str(tenant_id)
    assert usages[0].totals.storage_gb == 0.0
    sql = _compiled(db.execute.await_args.args[0])
    assert "JOIN tenants" in sql
    assert "tenants.status =" in sql
    assert "tenants.mode =" in sql


@pytest.mark.asyncio
async def test_increment_pdf_generated_bumps_its_own_counter():
    db = MagicMock()
    db.execute = AsyncMock()

    await UsageService(db).increment_pdf_generated(str(uuid.uuid4()), date(2025, 1, 2))

    sql = _compiled(db.execute.await_args.args[0])
    assert "customer_usage_daily.pdf_generated +" in sql
    assert "customer_usage_daily.api_requests +" not in sql


@pytest.mark.asyncio
async def test_set_storage_gb_overwrites_snapshot():
    db = MagicMock()
    db.execute = AsyncMock()

    await UsageService(db).set_storage_gb(str(uuid.uuid4()), date(2025, 1, 31), 12.5)

    sql = _compiled(db.execute.await_args.args[0])
    assert "storage_gb = excluded.storage_gb" in sql
