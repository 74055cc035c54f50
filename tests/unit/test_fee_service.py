"""Tests for expected-charge resolution."""

from decimal import Decimal

import pytest

from condo.services.fee_service import (
    count_months_in_range,
    expected_for_months,
    extra_charges_for_month,
    resolve_rate,
    resolve_total,
)
from condo.services.months import iter_months
from condo.services.records import ExtraChargeRecord, RateRecord


@pytest.fixture
def fee_history():
    return [
        RateRecord(amount="37.50", effective_from="2024-01", effective_to="2024-12"),
        RateRecord(amount="45.00", effective_from="2025-01"),
    ]


class TestResolveRate:
    """Tests for effective-dated rate lookup."""

    def test_rate_in_effect(self, fee_history):
        assert resolve_rate(fee_history, "2024-06", "50") == Decimal("37.50")
        assert resolve_rate(fee_history, "2025-01", "50") == Decimal("45.00")
        assert resolve_rate(fee_history, "2031-01", "50") == Decimal("45.00")

    def test_fee_change_mid_year(self):
        history = [
            RateRecord(amount="37.5", effective_from="2024-01", effective_to="2024-05"),
            RateRecord(amount="45", effective_from="2024-06"),
        ]
        assert resolve_rate(history, "2024-03", "45") == Decimal("37.5")
        assert resolve_rate(history, "2024-08", "45") == Decimal("45")
        assert resolve_rate(history, "2023-01", "45") == Decimal("45")

    def test_uncovered_month_uses_default(self, fee_history):
        assert resolve_rate(fee_history, "2023-12", "50") == Decimal("50")

    def test_empty_history_uses_default(self):
        assert resolve_rate([], "2024-01", 30) == Decimal("30")

    def test_overlap_resolves_to_latest_start(self):
        history = [
            RateRecord(amount="40", effective_from="2024-06"),
            RateRecord(amount="30", effective_from="2024-01"),
        ]
        assert resolve_rate(history, "2024-03", 0) == Decimal("30")
        assert resolve_rate(history, "2024-08", 0) == Decimal("40")

    def test_exact_tie_takes_later_input(self):
        history = [
            RateRecord(amount="40", effective_from="2024-01"),
            RateRecord(amount="41", effective_from="2024-01"),
        ]
        assert resolve_rate(history, "2024-05", 0) == Decimal("41")


class TestResolveTotal:
    """Tests for base fee plus extra charges."""

    def test_base_fee_change_over_year(self):
        """37.50 through 2024 and 45.00 from 2025 give 450.00 and 540.00 yearly."""
        history = [
            RateRecord(amount="37.50", effective_from="2024-01", effective_to="2024-12"),
            RateRecord(amount="45.00", effective_from="2025-01"),
        ]
        assert resolve_total(history, [], "2024-06", 0).total == Decimal("37.50")
        assert resolve_total(history, [], "2025-01", 0).total == Decimal("45.00")
        assert expected_for_months(history, [], iter_months("2024-01", "2024-12"), Decimal(0)) == Decimal("450.00")
        assert expected_for_months(history, [], iter_months("2025-01", "2025-12"), Decimal(0)) == Decimal("540.00")

    def test_global_and_unit_extras(self):
        """Base 45 plus global 10, with a unit-scoped 5 in March to May."""
        history = [RateRecord(amount="45", effective_from="2024-01")]
        extras = [
            ExtraChargeRecord(amount="10", effective_from="2024-01", description="Reserve", id=1),
            ExtraChargeRecord(
                amount="5", effective_from="2024-03", effective_to="2024-05", unit_id=1, description="Lift", id=2
            ),
        ]
        april = resolve_total(history, extras, "2024-04", 0, entity_id=1)
        june = resolve_total(history, extras, "2024-06", 0, entity_id=1)
        other_unit = resolve_total(history, extras, "2024-04", 0, entity_id=2)

        assert april.total == Decimal("60")
        assert april.base_fee == Decimal("45")
        assert [line.id for line in april.extras] == [1, 2]
        assert april.extras_total == Decimal("15")
        assert june.total == Decimal("55")
        assert other_unit.total == Decimal("55")

    def test_total_is_base_plus_extras(self, fee_history):
        extras = [ExtraChargeRecord(amount="10", effective_from="2025-01", effective_to="2025-06", id=1)]
        for month in iter_months("2024-10", "2025-09"):
            charge = resolve_total(fee_history, extras, month, 0, entity_id=1)
            assert charge.total == charge.base_fee + charge.extras_total

    def test_creditor_without_extras(self):
        assert resolve_total([], [], "2024-01", "120").total == Decimal("120")

    def test_extra_charges_for_month_filters(self):
        extras = [
            ExtraChargeRecord(amount="10", effective_from="2024-01", effective_to="2024-02"),
            ExtraChargeRecord(amount="5", effective_from="2024-01", unit_id=9),
        ]
        assert extra_charges_for_month(extras, "2024-03", 1) == []
        assert len(extra_charges_for_month(extras, "2024-01", 9)) == 2


class TestCountMonthsInRange:
    """Tests for inclusive month counting."""

    def test_closed_range(self):
        assert count_months_in_range("2025-01", "2025-06", "2026-06") == 6

    def test_open_range_runs_to_current_month(self):
        assert count_months_in_range("2025-01", None, "2025-03") == 3

    def test_future_start_counts_zero(self):
        assert count_months_in_range("2026-01", None, "2025-12") == 0
