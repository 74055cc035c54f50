"""Debt accumulation for units and creditors.

Debt is computed fresh on every call from a snapshot of fee history, extra
charges and allocations; nothing is cached or stored.

Two accumulation policies exist and both are legitimate views of the same
data:
- CAPPED ("capped"): each year's shortfall counted on its own, surpluses ignored
- CARRY_FORWARD ("carry_forward"): running balance where a surplus year offsets
  earlier deficits, floored at zero after every year

Capped is always >= carry-forward; the difference is explained by the years in
which more was paid than expected (see ``DebtDivergence``).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple, Sequence

from condo.services.fee_service import count_months_in_range, resolve_total
from condo.services.months import (
    MONEY_EPSILON,
    ZERO,
    exceeds,
    month_of_date,
    months_of_year,
    parse_month,
    year_of,
)
from condo.services.reconciliation_service import monthly_actual, previous_debt_paid
from condo.services.records import (
    Allocation,
    AllocationKind,
    CreditorRecord,
    EntityRef,
    ExtraChargeRecord,
    OwnerPeriod,
    RateRecord,
    UnitRecord,
)

logger = logging.getLogger(__name__)

CAPPED = "capped"
CARRY_FORWARD = "carry_forward"
DEFAULT_POLICY = CARRY_FORWARD


class YearFigures(NamedTuple):
    """Expected and paid totals for one calendar year."""

    year: int
    expected: Decimal
    paid: Decimal

    @property
    def balance(self) -> Decimal:
        """Positive for a deficit, negative for a surplus."""
        return self.expected - self.paid

    @property
    def shortfall(self) -> Decimal:
        return max(ZERO, self.balance)

    @property
    def is_surplus(self) -> bool:
        return exceeds(self.paid, self.expected)


class DebtPolicy(ABC):
    """Strategy folding yearly figures into a debt amount."""

    name: str = ""

    @abstractmethod
    def step(self, balance: Decimal, figures: YearFigures) -> Decimal:
        """Debt after adding one year to the running balance."""

    def running_totals(self, years: Iterable[YearFigures]) -> list[Decimal]:
        """Accumulated debt after each year, in input order."""
        balance = ZERO
        totals = []
        for figures in years:
            balance = self.step(balance, figures)
            totals.append(balance)
        return totals

    def accumulate(self, years: Iterable[YearFigures]) -> Decimal:
        totals = self.running_totals(years)
        return totals[-1] if totals else ZERO

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(name={self.name!r})>"


class CappedPolicy(DebtPolicy):
    """Sum of max(0, expected - paid) per year."""

    name = CAPPED

    def step(self, balance: Decimal, figures: YearFigures) -> Decimal:
        return balance + figures.shortfall


class CarryForwardPolicy(DebtPolicy):
    """Running max(0, balance + expected - paid)."""

    name = CARRY_FORWARD

    def step(self, balance: Decimal, figures: YearFigures) -> Decimal:
        return max(ZERO, balance + figures.balance)


POLICIES: dict[str, DebtPolicy] = {
    CAPPED: CappedPolicy(),
    CARRY_FORWARD: CarryForwardPolicy(),
}


def get_policy(policy: "str | DebtPolicy | None" = None) -> DebtPolicy:
    """
    Resolve a policy by name (None means the default).

    Raises:
        ValueError: If the name is unknown
    """
    if isinstance(policy, DebtPolicy):
        return policy
    name = policy or DEFAULT_POLICY
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown debt policy: {name!r} (expected one of {', '.join(POLICIES)})"
        ) from None


class DebtDivergence(NamedTuple):
    """Both policy totals side by side, with the years that explain the gap."""

    capped: Decimal
    carry_forward: Decimal
    difference: Decimal
    surplus_years: tuple[int, ...]

    @property
    def diverges(self) -> bool:
        return exceeds(self.difference)


def explain_divergence(years: Sequence[YearFigures]) -> DebtDivergence:
    capped = POLICIES[CAPPED].accumulate(years)
    carry_forward = POLICIES[CARRY_FORWARD].accumulate(years)
    return DebtDivergence(
        capped=capped,
        carry_forward=carry_forward,
        difference=capped - carry_forward,
        surplus_years=tuple(f.year for f in years if f.is_surplus),
    )


class LegacyDebt(NamedTuple):
    """Balance carried over from before the digital records."""

    previous_debt: Decimal
    paid: Decimal
    remaining: Decimal


NO_LEGACY_DEBT = LegacyDebt(ZERO, ZERO, ZERO)


def legacy_debt(
    owners: Iterable[OwnerPeriod],
    allocations: Iterable[Allocation],
    entity: EntityRef,
) -> LegacyDebt:
    """Sum the owners' previous_debt and subtract PREV-DEBT allocations (floored at zero)."""
    previous_debt = sum((o.previous_debt for o in owners), ZERO)
    paid = previous_debt_paid(allocations, entity)
    return LegacyDebt(previous_debt, paid, max(ZERO, previous_debt - paid))


class OutstandingExtra(NamedTuple):
    """Expected versus paid over the whole life of one extra charge."""

    id: object
    description: str
    total_expected: Decimal
    total_paid: Decimal
    remaining: Decimal


def outstanding_extras(
    extra_charges: Iterable[ExtraChargeRecord],
    allocations: Iterable[Allocation],
    entity: EntityRef,
    current_month: str,
) -> list[OutstandingExtra]:
    """
    Per-charge totals for charges that still have something owed or were paid.

    Charges without an id cannot be referenced by allocations and are skipped.
    """
    allocations = [a for a in allocations if a.entity == entity]
    result = []
    for charge in extra_charges:
        if charge.id is None or not charge.applies_to(entity.id):
            continue
        months = count_months_in_range(charge.effective_from, charge.effective_to, current_month)
        total_expected = charge.amount * months
        total_paid = sum((a.amount for a in allocations if a.extra_charge_id == charge.id), ZERO)
        remaining = max(ZERO, total_expected - total_paid)
        if exceeds(remaining) or exceeds(total_paid):
            result.append(
                OutstandingExtra(charge.id, charge.description, total_expected, total_paid, remaining)
            )
    return result


def _record_years(records: Iterable, current_year: int) -> set[int]:
    years = set()
    for record in records:
        start = year_of(record.effective_from)
        end = year_of(record.effective_to) if record.effective_to else current_year - 1
        years.update(range(start, min(end, current_year - 1) + 1))
    return years


def years_to_evaluate(
    allocations: Iterable[Allocation],
    rate_history: Iterable[RateRecord],
    extra_charges: Iterable[ExtraChargeRecord],
    current_year: int,
    first_digital_year: int,
    owner: OwnerPeriod | None = None,
) -> list[int]:
    """
    Past years that carry any activity, ascending.

    Activity is an allocation, a rate or extra-charge record (open ends run to
    last year), or the selected owner's period. Only years within
    [first_digital_year, current_year - 1] are returned.
    """
    years = {
        a.year
        for a in allocations
        if not a.is_prev_debt and (owner is None or owner.covers(a.month))
    }
    years |= _record_years(rate_history, current_year)
    years |= _record_years(extra_charges, current_year)
    if owner is not None and owner.start_month:
        years.update(range(year_of(owner.start_month), current_year))
    return sorted(y for y in years if first_digital_year <= y < current_year)


def yearly_figures(
    years: Iterable[int],
    rate_history: Sequence[RateRecord],
    extra_charges: Sequence[ExtraChargeRecord],
    allocations: Sequence[Allocation],
    entity: EntityRef,
    default_rate: Decimal,
    kind: AllocationKind = AllocationKind.INCOME,
    owner: OwnerPeriod | None = None,
    through_month: int = 12,
) -> list[YearFigures]:
    """Expected and paid per year, over months 1..through_month inside the owner period."""
    entity_id = entity.id if kind is AllocationKind.INCOME else None
    figures = []
    for year in years:
        expected = paid = ZERO
        for month in months_of_year(year, through_month):
            if owner is not None and not owner.covers(month):
                continue
            expected += resolve_total(rate_history, extra_charges, month, default_rate, entity_id).total
            paid += monthly_actual(allocations, entity, month, kind)
        figures.append(YearFigures(year, expected, paid))
    return figures


@dataclass(frozen=True)
class EntityDebt:
    """Debt statement for one unit (optionally one owner) or creditor."""

    entity: EntityRef
    years: tuple[YearFigures, ...]
    current_year: YearFigures
    legacy: LegacyDebt = NO_LEGACY_DEBT
    outstanding_extras: tuple[OutstandingExtra, ...] = ()
    owner_id: object = None

    def past_years_debt(self, policy: "str | DebtPolicy | None" = None) -> Decimal:
        return get_policy(policy).accumulate(self.years)

    def running_totals(self, policy: "str | DebtPolicy | None" = None) -> list[Decimal]:
        return get_policy(policy).running_totals(self.years)

    @property
    def current_year_shortfall(self) -> Decimal:
        return self.current_year.shortfall

    def total_debt(
        self,
        policy: "str | DebtPolicy | None" = None,
        include_current_year: bool = False,
    ) -> Decimal:
        """Past-years debt under policy, plus legacy debt, plus (optionally) this year's shortfall."""
        total = self.past_years_debt(policy) + self.legacy.remaining
        if include_current_year:
            total += self.current_year_shortfall
        return total

    @property
    def divergence(self) -> DebtDivergence:
        return explain_divergence(self.years)


UnitDebt = EntityDebt


class DebtCalculator:
    """
    Computes debt statements as of a given month.

    Args:
        current_month: Month treated as "now" (YYYY-MM); its year is the
            current year, excluded from past-years debt
        first_digital_year: First year covered by digital records
    """

    def __init__(self, current_month: str, first_digital_year: int):
        self.current_month = parse_month(current_month)
        self.first_digital_year = first_digital_year

    @classmethod
    def as_of(cls, today: date, first_digital_year: int) -> "DebtCalculator":
        return cls(month_of_date(today), first_digital_year)

    @property
    def current_year(self) -> int:
        return year_of(self.current_month)

    def _current_year_figures(
        self,
        rate_history: Sequence[RateRecord],
        extra_charges: Sequence[ExtraChargeRecord],
        allocations: Sequence[Allocation],
        entity: EntityRef,
        default_rate: Decimal,
        kind: AllocationKind,
        owner: OwnerPeriod | None = None,
    ) -> YearFigures:
        """Expected through the current month; paid counts every month of the year."""
        (expected_to_date,) = yearly_figures(
            [self.current_year],
            rate_history,
            extra_charges,
            allocations,
            entity,
            default_rate,
            kind,
            owner,
            through_month=int(self.current_month[5:7]),
        )
        (whole_year,) = yearly_figures(
            [self.current_year], (), (), allocations, entity, ZERO, kind, owner
        )
        return YearFigures(self.current_year, expected_to_date.expected, whole_year.paid)

    def compute_unit_debt(
        self,
        unit: UnitRecord,
        extra_charges: Sequence[ExtraChargeRecord],
        allocations: Sequence[Allocation],
        owner_id: object = None,
    ) -> EntityDebt:
        """
        Debt statement for a unit, or for one of its owners.

        With owner_id, only months inside that owner's period count and only
        that owner's legacy balance is included.

        Raises:
            ValueError: If owner_id does not belong to the unit
        """
        entity = unit.entity
        owner = None
        owners = unit.owners
        if owner_id is not None:
            owner = unit.owner(owner_id)
            if owner is None:
                raise ValueError(f"Owner {owner_id} does not belong to unit {unit.code}")
            owners = (owner,)

        extras = [c for c in extra_charges if c.applies_to(unit.id)]
        allocations = [
            a for a in allocations if a.entity == entity and a.kind is AllocationKind.INCOME
        ]

        years = years_to_evaluate(
            allocations,
            unit.fee_history,
            extras,
            self.current_year,
            self.first_digital_year,
            owner,
        )
        figures = yearly_figures(
            years, unit.fee_history, extras, allocations, entity, unit.monthly_fee, owner=owner
        )
        current = self._current_year_figures(
            unit.fee_history, extras, allocations, entity, unit.monthly_fee, AllocationKind.INCOME, owner
        )
        debt = EntityDebt(
            entity=entity,
            years=tuple(figures),
            current_year=current,
            legacy=legacy_debt(owners, allocations, entity),
            outstanding_extras=tuple(outstanding_extras(extras, allocations, entity, self.current_month)),
            owner_id=owner_id,
        )
        logger.debug(
            "Unit %s debt: years=%s carry_forward=%s capped=%s legacy=%s",
            unit.code,
            years,
            debt.past_years_debt(CARRY_FORWARD),
            debt.past_years_debt(CAPPED),
            debt.legacy.remaining,
        )
        return debt

    def compute_creditor_debt(
        self,
        creditor: CreditorRecord,
        allocations: Sequence[Allocation],
    ) -> EntityDebt:
        """
        Unpaid dues owed to a creditor.

        Only fixed creditors have expected amounts; paid is the sum of expense
        allocations. The first digital year is always evaluated.
        """
        entity = creditor.entity
        allocations = [
            a for a in allocations if a.entity == entity and a.kind is AllocationKind.EXPENSE
        ]
        if creditor.is_fixed:
            rate_history, default_rate = creditor.fee_history, creditor.amount_due
        else:
            rate_history, default_rate = (), ZERO

        years = set(
            years_to_evaluate(
                allocations, rate_history, (), self.current_year, self.first_digital_year
            )
        )
        if self.first_digital_year < self.current_year:
            years.add(self.first_digital_year)

        figures = yearly_figures(
            sorted(years), rate_history, (), allocations, entity, default_rate, AllocationKind.EXPENSE
        )
        current = self._current_year_figures(
            rate_history, (), allocations, entity, default_rate, AllocationKind.EXPENSE
        )
        return EntityDebt(entity=entity, years=tuple(figures), current_year=current)


def is_settled(debt: EntityDebt, policy: "str | DebtPolicy | None" = None) -> bool:
    return debt.total_debt(policy) <= MONEY_EPSILON
