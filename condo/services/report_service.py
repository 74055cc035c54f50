"""Payment history and the building-wide debt summary."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, NamedTuple, Sequence

from condo.services.debt_service import CAPPED, CARRY_FORWARD, POLICIES, YearFigures
from condo.services.fee_service import resolve_total
from condo.services.history_validator import current_owner
from condo.services.months import ZERO, iter_months, month_of, year_of
from condo.services.reconciliation_service import previous_debt_paid
from condo.services.records import (
    Allocation,
    AllocationKind,
    CreditorRecord,
    EntityId,
    EntityRef,
    ExtraChargeRecord,
    LedgerSnapshot,
    UnitRecord,
)

logger = logging.getLogger(__name__)


class HistoryYear(NamedTuple):
    """One row of the yearly payment history."""

    year: int
    paid: Decimal
    expected: Decimal
    debt: Decimal
    accumulated_capped: Decimal
    accumulated_carry_forward: Decimal


@dataclass
class PaymentHistory:
    """Month-by-month paid and expected amounts with yearly totals."""

    payments: dict[str, Decimal] = field(default_factory=dict)
    expected: dict[str, Decimal] = field(default_factory=dict)
    years: list[HistoryYear] = field(default_factory=list)


def _paid_by_month(allocations: Iterable[Allocation], entity: EntityRef, kind: AllocationKind) -> dict[str, Decimal]:
    payments: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for allocation in allocations:
        if allocation.entity == entity and allocation.kind is kind and not allocation.is_prev_debt:
            payments[allocation.month] += allocation.amount
    return dict(payments)


def _build_history(
    payments: dict[str, Decimal],
    expected: dict[str, Decimal],
    years: Iterable[int],
) -> PaymentHistory:
    figures = []
    for year in years:
        prefix = f"{year}-"
        paid = sum((v for m, v in payments.items() if m.startswith(prefix)), ZERO)
        due = sum((v for m, v in expected.items() if m.startswith(prefix)), ZERO)
        figures.append(YearFigures(year, due, paid))

    capped = POLICIES[CAPPED].running_totals(figures)
    carry_forward = POLICIES[CARRY_FORWARD].running_totals(figures)
    rows = [
        HistoryYear(f.year, f.paid, f.expected, f.shortfall, c, cf)
        for f, c, cf in zip(figures, capped, carry_forward)
    ]
    return PaymentHistory(payments=payments, expected=expected, years=rows)


def unit_payment_history(
    unit: UnitRecord,
    extra_charges: Sequence[ExtraChargeRecord],
    allocations: Sequence[Allocation],
    current_month: str,
) -> PaymentHistory:
    """
    Paid and expected per month from the unit's earliest activity through current_month.

    Earliest activity is the first allocated month, fee record or extra charge.
    A unit with no activity at all gets an empty history.
    """
    extras = [c for c in extra_charges if c.applies_to(unit.id)]
    payments = _paid_by_month(allocations, unit.entity, AllocationKind.INCOME)

    starts = list(payments) + [r.effective_from for r in unit.fee_history]
    starts += [c.effective_from for c in extras]
    if not starts:
        return PaymentHistory()

    earliest = min(starts)
    expected = {
        month: resolve_total(unit.fee_history, extras, month, unit.monthly_fee, unit.id).total
        for month in iter_months(earliest, current_month)
    }
    return _build_history(payments, expected, range(year_of(earliest), year_of(current_month) + 1))


def creditor_payment_history(
    creditor: CreditorRecord,
    allocations: Sequence[Allocation],
    current_month: str,
    first_digital_year: int,
) -> PaymentHistory:
    """
    Paid and expected per month for a creditor.

    Covers every year with allocations or dues records, plus the first
    digital year and the current year. Only fixed creditors have expected
    amounts; months after current_month are not expected yet.
    """
    current_year = year_of(current_month)
    payments = _paid_by_month(allocations, creditor.entity, AllocationKind.EXPENSE)

    years = {year_of(m) for m in payments} | {first_digital_year, current_year}
    for record in creditor.fee_history:
        end = year_of(record.effective_to) if record.effective_to else current_year
        years.update(range(year_of(record.effective_from), end + 1))
    years = sorted(years)

    expected = {}
    for year in years:
        for m in range(1, 13):
            month = month_of(year, m)
            if month > current_month:
                break
            if creditor.is_fixed:
                expected[month] = resolve_total(creditor.fee_history, (), month, creditor.amount_due).total
            else:
                expected[month] = ZERO
    return _build_history(payments, expected, years)


class SummaryCell(NamedTuple):
    expected: Decimal = ZERO
    paid: Decimal = ZERO
    debt: Decimal = ZERO

    def __add__(self, other: "SummaryCell") -> "SummaryCell":
        return SummaryCell(
            self.expected + other.expected, self.paid + other.paid, self.debt + other.debt
        )


@dataclass
class UnitSummary:
    id: EntityId
    code: str
    name: str
    legacy: SummaryCell
    years: dict[int, SummaryCell]

    @property
    def total(self) -> SummaryCell:
        return sum(self.years.values(), self.legacy)


@dataclass
class ExtraChargeTotals:
    id: EntityId
    description: str
    yearly_totals: dict[int, Decimal]


@dataclass
class DebtSummary:
    """Building-wide expected/paid/debt table, one row per unit."""

    start_year: int
    end_year: int
    units: list[UnitSummary] = field(default_factory=list)
    legacy_total: SummaryCell = SummaryCell()
    year_totals: dict[int, SummaryCell] = field(default_factory=dict)
    year_base_fees: dict[int, Decimal] = field(default_factory=dict)
    extra_charges: list[ExtraChargeTotals] = field(default_factory=list)

    @property
    def grand_total(self) -> SummaryCell:
        return sum(self.year_totals.values(), self.legacy_total)


def _display_name(unit: UnitRecord) -> str:
    owner = current_owner(unit.owners)
    if owner is not None:
        return owner.name
    if unit.owners:
        return unit.owners[0].name
    return unit.code


def debt_summary(snapshot: LedgerSnapshot, first_digital_year: int, end_year: int) -> DebtSummary:
    """
    Per-unit, per-year expected, paid and capped debt from first_digital_year to end_year.

    The legacy column holds the owners' previous debt against PREV-DEBT
    allocations.
    """
    years = list(range(first_digital_year, end_year + 1))
    summary = DebtSummary(start_year=first_digital_year, end_year=end_year)
    summary.year_totals = {year: SummaryCell() for year in years}
    summary.year_base_fees = {year: ZERO for year in years}
    charge_totals = {
        charge.id: ExtraChargeTotals(charge.id, charge.description, {year: ZERO for year in years})
        for charge in snapshot.extra_charges
        if charge.id is not None
    }

    for unit in sorted(snapshot.units, key=lambda u: u.code):
        entity = unit.entity
        extras = snapshot.extra_charges_for_unit(unit.id)
        payments = _paid_by_month(snapshot.allocations, entity, AllocationKind.INCOME)

        previous_debt = sum((o.previous_debt for o in unit.owners), ZERO)
        legacy_paid = previous_debt_paid(snapshot.allocations, entity)
        legacy = SummaryCell(previous_debt, legacy_paid, max(ZERO, previous_debt - legacy_paid))

        cells = {}
        for year in years:
            expected = paid = base_fees = ZERO
            for m in range(1, 13):
                month = month_of(year, m)
                charge = resolve_total(unit.fee_history, extras, month, unit.monthly_fee, unit.id)
                expected += charge.total
                base_fees += charge.base_fee
                paid += payments.get(month, ZERO)
                for line in charge.extras:
                    if line.id in charge_totals:
                        charge_totals[line.id].yearly_totals[year] += line.amount
            cells[year] = SummaryCell(expected, paid, max(ZERO, expected - paid))
            summary.year_totals[year] += cells[year]
            summary.year_base_fees[year] += base_fees

        summary.legacy_total += legacy
        summary.units.append(UnitSummary(unit.id, unit.code, _display_name(unit), legacy, cells))

    summary.extra_charges = [
        totals for totals in charge_totals.values() if any(v > ZERO for v in totals.yearly_totals.values())
    ]
    logger.debug("Debt summary %d-%d over %d units", first_digital_year, end_year, len(summary.units))
    return summary
