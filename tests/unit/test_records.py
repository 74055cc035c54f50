"""Tests for immutable engine records."""

from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal

import pytest

from condo.services.errors import AmountFormatError, MonthFormatError
from condo.services.records import (
    Allocation,
    AllocationKind,
    EntityKind,
    EntityRef,
    ExtraChargeRecord,
    LedgerSnapshot,
    LedgerTransaction,
    OwnerPeriod,
    RateRecord,
    TransactionType,
    UnitRecord,
    kind_for_amount,
)


class TestAllocation:
    """Tests for allocation normalization."""

    def test_expense_amount_is_absolute(self):
        signed = Allocation(month="2024-01", amount="-120.00", kind=AllocationKind.EXPENSE)
        unsigned = Allocation(month="2024-01", amount="120.00", kind=AllocationKind.EXPENSE)
        assert signed.amount == unsigned.amount == Decimal("120.00")

    def test_income_keeps_sign(self):
        allocation = Allocation(month="2024-01", amount="-5")
        assert allocation.amount == Decimal("-5")
        assert allocation.kind is AllocationKind.INCOME

    def test_kind_accepts_string(self):
        assert Allocation(month="2024-01", amount=1, kind="expense").kind is AllocationKind.EXPENSE

    def test_prev_debt_has_no_year(self):
        allocation = Allocation(month="PREV-DEBT", amount=100)
        assert allocation.is_prev_debt
        assert allocation.year is None
        assert Allocation(month="2025-03", amount=1).year == 2025

    def test_bad_month_fails_at_construction(self):
        with pytest.raises(MonthFormatError):
            Allocation(month="2024-1", amount=10)

    def test_bad_amount_fails_at_construction(self):
        with pytest.raises(AmountFormatError):
            Allocation(month="2024-01", amount="ten")

    def test_records_are_frozen(self):
        allocation = Allocation(month="2024-01", amount=10)
        with pytest.raises(FrozenInstanceError):
            allocation.amount = Decimal("20")


class TestLedgerTransaction:
    """Tests for transactions and allocation binding."""

    def test_allocate_copies_entity_and_kind(self):
        tx = LedgerTransaction(
            id=7,
            amount="-240",
            date=date(2024, 2, 1),
            type="expense",
            entity=EntityRef.creditor(3),
        )
        allocation = tx.allocate("2024-01", "-120", allocation_id=11)
        assert allocation.kind is AllocationKind.EXPENSE
        assert allocation.amount == Decimal("120")
        assert allocation.entity == EntityRef.creditor(3)
        assert allocation.transaction_id == 7
        assert allocation.id == 11

    def test_with_allocations_returns_copy(self):
        tx = LedgerTransaction(id=1, amount=90, date=date(2024, 1, 5), entity=EntityRef.unit(1))
        filled = tx.with_allocations(tx.allocate("2024-01", 45), tx.allocate("2024-02", 45))
        assert tx.allocations == ()
        assert len(filled.allocations) == 2
        assert filled.type is TransactionType.PAYMENT

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            LedgerTransaction(id=1, amount=1, date=date(2024, 1, 1), type="gift")

    def test_kind_for_amount(self):
        assert kind_for_amount(Decimal("-1")) is AllocationKind.EXPENSE
        assert kind_for_amount(Decimal("0")) is AllocationKind.INCOME


class TestRangeRecords:
    """Tests for fee history, extra charge and owner records."""

    def test_rate_record_covers(self):
        record = RateRecord(amount="45", effective_from="2025-01")
        assert record.is_open_ended
        assert record.covers("2030-01")
        assert not record.covers("2024-12")

    def test_rate_record_blank_end_is_open(self):
        assert RateRecord(amount=1, effective_from="2024-01", effective_to="").effective_to is None

    def test_rate_record_bad_month(self):
        with pytest.raises(MonthFormatError):
            RateRecord(amount=1, effective_from="2024-13")

    def test_rate_record_trailing_newline_is_rejected(self):
        """A month read with its line ending would otherwise stop covering itself."""
        with pytest.raises(MonthFormatError):
            RateRecord(amount="37.5", effective_from="2024-03\n")

    def test_extra_charge_scope(self):
        global_charge = ExtraChargeRecord(amount=10, effective_from="2024-01", description="Roof")
        unit_charge = ExtraChargeRecord(amount=5, effective_from="2024-01", unit_id=2, description="Roof")
        assert global_charge.applies_to(1)
        assert not unit_charge.applies_to(1)
        assert unit_charge.applies_to(2)
        assert global_charge.scope_key != unit_charge.scope_key

    def test_owner_period(self):
        owner = OwnerPeriod(name="Ana", end_month="2024-12", previous_debt="100")
        assert not owner.is_current
        assert owner.covers("2020-01")
        assert not owner.covers("2025-01")
        assert owner.previous_debt == Decimal("100")


class TestSnapshot:
    """Tests for snapshot lookups."""

    def test_lookups(self):
        unit = UnitRecord(id=1, code="1A", monthly_fee="45")
        charges = (
            ExtraChargeRecord(amount=10, effective_from="2024-01", id=1),
            ExtraChargeRecord(amount=5, effective_from="2024-01", unit_id=2, id=2),
        )
        allocations = (
            Allocation(month="2024-01", amount=45, entity=EntityRef.unit(1)),
            Allocation(month="2024-01", amount=50, entity=EntityRef.unit(2)),
        )
        snapshot = LedgerSnapshot(units=(unit,), extra_charges=charges, allocations=allocations)

        assert snapshot.unit(1) is unit
        assert snapshot.unit(99) is None
        assert [c.id for c in snapshot.extra_charges_for_unit(1)] == [1]
        assert len(snapshot.allocations_for(EntityRef.unit(1))) == 1
        assert unit.entity.kind is EntityKind.UNIT
