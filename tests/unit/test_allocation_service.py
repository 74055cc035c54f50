"""Tests for allocation suggestions."""

from decimal import Decimal

import pytest

from condo.services.allocation_service import (
    BASE_FEE_DESCRIPTION,
    AllocationService,
    AllocationStrategy,
)
from condo.services.records import ExtraChargeRecord, RateRecord


@pytest.fixture
def service():
    return AllocationService()


@pytest.fixture
def rate_history():
    return [RateRecord(amount="45", effective_from="2025-01")]


@pytest.fixture
def extra_charges():
    return [
        ExtraChargeRecord(
            amount="10", effective_from="2025-01", effective_to="2025-01", description="Roof repair", id=7
        )
    ]


class TestSplitEvenly:
    """Tests for even splitting across months."""

    def test_remainder_goes_to_earliest_month(self, service):
        result = service.split_evenly("100", ["2025-03", "2025-01", "2025-02"])
        assert [s.month for s in result] == ["2025-01", "2025-02", "2025-03"]
        assert [s.amount for s in result] == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]

    def test_sum_matches_amount(self, service):
        result = service.split_evenly("250.07", [f"2025-{m:02d}" for m in range(1, 8)])
        assert sum(s.amount for s in result) == Decimal("250.07")

    def test_sign_is_ignored(self, service):
        result = service.split_evenly("-90", ["2025-01", "2025-02"])
        assert [s.amount for s in result] == [Decimal("45.00"), Decimal("45.00")]

    def test_no_months_raises(self, service):
        with pytest.raises(ValueError):
            service.split_evenly("100", [])

    def test_all_rows_are_base_fee(self, service):
        result = service.split_evenly("10", ["2025-01"])
        assert result[0].extra_charge_id is None
        assert result[0].description == BASE_FEE_DESCRIPTION


class TestSuggestAllocations:
    """Tests for filling expected charges month by month."""

    def test_fills_base_then_extras(self, service, rate_history, extra_charges):
        result = service.suggest_allocations("100", ["2025-01", "2025-02"], rate_history, extra_charges, Decimal(0))
        assert [(s.month, s.amount, s.extra_charge_id) for s in result] == [
            ("2025-01", Decimal("45"), None),
            ("2025-01", Decimal("10"), 7),
            ("2025-02", Decimal("45"), None),
        ]

    def test_partial_payment_stops_when_amount_runs_out(self, service, rate_history, extra_charges):
        result = service.suggest_allocations("50", ["2025-01", "2025-02"], rate_history, extra_charges, Decimal(0))
        assert [(s.month, s.amount) for s in result] == [("2025-01", Decimal("45")), ("2025-01", Decimal("5.00"))]

    def test_surplus_added_to_last_month_base_fee(self, service, rate_history, extra_charges):
        result = service.suggest_allocations("120", ["2025-01"], rate_history, extra_charges, Decimal(0))
        assert sum(s.amount for s in result) == Decimal("120")
        base = [s for s in result if s.extra_charge_id is None]
        assert base[0].amount == Decimal("110.00")

    def test_zero_expected_month_gets_surplus_row(self, service):
        result = service.suggest_allocations("30", ["2025-01"], [], [], Decimal(0))
        assert [(s.month, s.amount, s.extra_charge_id) for s in result] == [("2025-01", Decimal("30.00"), None)]

    def test_no_months_raises(self, service):
        with pytest.raises(ValueError):
            service.suggest_allocations("30", [], [], [], Decimal(0))


class TestSuggest:
    """Tests for strategy dispatch."""

    def test_even_strategy(self, service):
        result = service.suggest("even", "90", ["2025-01", "2025-02"])
        assert [s.amount for s in result] == [Decimal("45.00"), Decimal("45.00")]

    def test_by_expected_strategy(self, service, rate_history, extra_charges):
        result = service.suggest(
            AllocationStrategy.BY_EXPECTED, "55", ["2025-01"], rate_history, extra_charges, Decimal(0), 1
        )
        assert [s.extra_charge_id for s in result] == [None, 7]

    def test_unknown_strategy_raises(self, service):
        with pytest.raises(ValueError, match="Unknown allocation strategy"):
            service.suggest("random", "90", ["2025-01"])
