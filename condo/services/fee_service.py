"""Expected-charge resolution for units and fixed creditors.

Effective-dated rate resolution tolerates dirty data: overlapping records are
resolved in favour of the most recently started one, and months not covered by
any record fall back to the entity's default rate. Integrity problems in the
history are reported separately by ``history_validator``.
"""

from decimal import Decimal
from typing import Iterable, NamedTuple, Sequence

from condo.services.months import ZERO, months_between, parse_amount
from condo.services.records import EntityId, ExtraChargeRecord, RateRecord


class ChargeLine(NamedTuple):
    """One extra charge expected in a month."""

    id: EntityId | None
    description: str
    amount: Decimal


class MonthCharge(NamedTuple):
    """Expected amount for a month, itemized by category."""

    month: str
    base_fee: Decimal
    extras: tuple[ChargeLine, ...]
    total: Decimal

    @property
    def extras_total(self) -> Decimal:
        return sum((line.amount for line in self.extras), ZERO)


def resolve_rate(
    history: Iterable[RateRecord],
    month: str,
    default_amount: Decimal | float | int | str,
) -> Decimal:
    """
    Amount in effect for a month.

    Args:
        history: Rate records of one entity, in any order
        month: Target month (YYYY-MM)
        default_amount: Fallback when no record covers the month

    Returns:
        Amount of the covering record with the greatest effective_from
        (the later one in input order on an exact tie), else default_amount
    """
    chosen: RateRecord | None = None
    for record in history:
        if not record.covers(month):
            continue
        if chosen is None or record.effective_from >= chosen.effective_from:
            chosen = record
    if chosen is None:
        return parse_amount(default_amount)
    return chosen.amount


def extra_charges_for_month(
    extra_charges: Iterable[ExtraChargeRecord],
    month: str,
    entity_id: EntityId | None = None,
) -> list[ExtraChargeRecord]:
    """Global charges plus those scoped to entity_id that are active in month."""
    return [
        charge
        for charge in extra_charges
        if charge.covers(month) and charge.applies_to(entity_id)
    ]


def resolve_total(
    rate_history: Iterable[RateRecord],
    extra_charges: Iterable[ExtraChargeRecord],
    month: str,
    default_rate: Decimal | float | int | str,
    entity_id: EntityId | None = None,
) -> MonthCharge:
    """
    Total expected for a month: base fee plus every active extra charge.

    Creditors call this with no extra charges.
    """
    base_fee = resolve_rate(rate_history, month, default_rate)
    extras = tuple(
        ChargeLine(charge.id, charge.description, charge.amount)
        for charge in extra_charges_for_month(extra_charges, month, entity_id)
    )
    total = base_fee + sum((line.amount for line in extras), ZERO)
    return MonthCharge(month=month, base_fee=base_fee, extras=extras, total=total)


def expected_for_months(
    rate_history: Sequence[RateRecord],
    extra_charges: Sequence[ExtraChargeRecord],
    months: Iterable[str],
    default_rate: Decimal,
    entity_id: EntityId | None = None,
) -> Decimal:
    """Sum of ``resolve_total(...).total`` over the given months."""
    return sum(
        (
            resolve_total(rate_history, extra_charges, month, default_rate, entity_id).total
            for month in months
        ),
        ZERO,
    )


def count_months_in_range(start: str, end: str | None, current_month: str) -> int:
    """
    Inclusive number of months a record is active.

    An open end counts through current_month. Records starting after their
    end (or in the future) count zero.
    """
    return months_between(start, end or current_month)
