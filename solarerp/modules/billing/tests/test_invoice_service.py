"""Unit tests for usage-weighted invoice allocation."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from solarerp.modules.billing.invoice_service import InvoiceService, allocate_costs, round_amount
from solarerp.modules.billing.schemas import TenantUsage, UsageTotals


def _usage(api_requests=0, pdf_generated=0, active_users=0, storage_gb=0.0) -> TenantUsage:
    return TenantUsage(
        tenant_id=str(uuid.uuid4()),
        totals=UsageTotals(
            api_requests=api_requests,
            pdf_generated=pdf_generated,
            active_users=active_users,
            storage_gb=storage_gb,
        ),
    )


class TestUsageScore:
    def test_weights(self):
        totals = UsageTotals(api_requests=100, pdf_generated=2, active_users=3, storage_gb=1.5)
        assert totals.usage_score == pytest.approx(100 + 100 + 30 + 7.5)

    def test_empty_totals_score_zero(self):
        assert UsageTotals().usage_score == 0


class TestAllocateCosts:
    def test_split_follows_usage_share(self):
        a = _usage(api_requests=300)
        b = _usage(api_requests=700)

        lines = allocate_costs([a, b], 1000)

        assert [line.usage_percentage for line in lines] == [30.0, 70.0]
        assert [line.final_amount for line in lines] == [300.0, 700.0]
        assert str(lines[0].tenant_id) == a.tenant_id
        assert lines[1].breakdown.api_requests == 700

    def test_weighted_metrics_contribute_to_share(self):
        # 50 API requests vs one PDF (weight 50): equal scores
        lines = allocate_costs([_usage(api_requests=50), _usage(pdf_generated=1)], 100)
        assert [line.final_amount for line in lines] == [50.0, 50.0]

    def test_all_zero_scores_allocate_nothing(self):
        lines = allocate_costs([_usage(), _usage()], 500)
        assert [line.final_amount for line in lines] == [0.0, 0.0]
        assert [line.usage_percentage for line in lines] == [0.0, 0.0]

    def test_amounts_are_rounded_to_cents(self):
        lines = allocate_costs([_usage(api_requests=1), _usage(api_requests=2)], 100)
        assert [line.final_amount for line in lines] == [33.33, 66.67]
        assert [line.usage_percentage for line in lines] == [33.33, 66.67]

    def test_empty_usage_list(self):
        assert allocate_costs([], 1000) == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.675, 2.68), (0.125, 0.13), (1.004, 1.0), (-0.0, 0.0), (99.995, 100.0)],
)
def test_round_amount_half_up(value, expected):
    assert round_amount(value) == expected


@pytest.mark.asyncio
async def test_calculate_invoices_with_no_usage_returns_empty(monkeypatch):
    get_monthly = AsyncMock(return_value=[])
    monkeypatch.setattr(
        "solarerp.modules.billing.invoice_service.UsageService.get_monthly_usage_by_tenant", get_monthly
    )

    assert await InvoiceService(MagicMock()).calculate_invoices("2025-01", 1000) == []
    get_monthly.assert_awaited_once_with("2025-01")


@pytest.mark.asyncio
async def test_calculate_invoices_allocates_monthly_usage(monkeypatch):
    usages = [_usage(api_requests=300), _usage(api_requests=700)]
    monkeypatch.setattr(
        "solarerp.modules.billing.invoice_service.UsageService.get_monthly_usage_by_tenant",
        AsyncMock(return_value=usages),
    )

    lines = await InvoiceService(MagicMock()).calculate_invoices("2025-01", 1000)

    assert [line.final_amount for line in lines] == [300.0, 700.0]
