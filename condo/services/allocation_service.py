"""Allocation suggestions for newly entered transactions.

Supports two ways of proposing month allocations for a payment:
- EVEN: split the amount equally across the selected months
- BY_EXPECTED: fill each month's expected lines (base fee, then extras) in order
"""

from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import NamedTuple, Sequence

from condo.services.fee_service import resolve_total
from condo.services.months import ZERO, parse_amount, parse_month
from condo.services.records import EntityId, ExtraChargeRecord, RateRecord

CENT = Decimal("0.01")
BASE_FEE_DESCRIPTION = "Base fee"


class AllocationStrategy(str, Enum):
    """How a payment is spread over the selected months."""

    EVEN = "even"
    BY_EXPECTED = "by_expected"


class SuggestedAllocation(NamedTuple):
    """Proposed allocation row."""

    month: str
    amount: Decimal
    extra_charge_id: EntityId | None = None
    description: str = BASE_FEE_DESCRIPTION


class AllocationService:
    """Allocation suggestion engine with multiple strategies."""

    def split_evenly(
        self,
        amount: Decimal | float | int | str,
        months: Sequence[str],
    ) -> list[SuggestedAllocation]:
        """Split an amount across months, allocating remainder cents to the earliest months.

        Ensures: sum(result) == abs(amount) rounded to cents (zero money loss/creation)

        Args:
            amount: Transaction amount (sign is ignored; allocations follow the parent)
            months: Target months (YYYY-MM)

        Returns:
            One base-fee allocation per month, in chronological order

        Raises:
            ValueError: If months is empty
        """
        if not months:
            raise ValueError("At least one month is required to split an amount")

        ordered = sorted(parse_month(m) for m in months)
        total = abs(parse_amount(amount)).quantize(CENT)
        count = Decimal(len(ordered))

        per_month = (total / count).quantize(CENT, rounding=ROUND_DOWN)
        remainder_cents = int((total - per_month * count) / CENT)

        result = []
        for i, month in enumerate(ordered):
            share = per_month + (CENT if i < remainder_cents else ZERO)
            result.append(SuggestedAllocation(month=month, amount=share))
        return result

    def suggest_allocations(
        self,
        amount: Decimal | float | int | str,
        months: Sequence[str],
        rate_history: Sequence[RateRecord],
        extra_charges: Sequence[ExtraChargeRecord],
        default_rate: Decimal,
        entity_id: EntityId | None = None,
    ) -> list[SuggestedAllocation]:
        """Fill expected charges month by month until the amount runs out.

        Within a month the base fee is filled first, then each extra charge in
        input order. Money left after every line is covered is added to the
        base fee of the last month, so the suggestion always sums to the amount.

        Raises:
            ValueError: If months is empty
        """
        if not months:
            raise ValueError("At least one month is required to suggest allocations")

        ordered = sorted(parse_month(m) for m in months)
        remaining = abs(parse_amount(amount)).quantize(CENT)
        suggestions: list[SuggestedAllocation] = []

        for month in ordered:
            charge = resolve_total(rate_history, extra_charges, month, default_rate, entity_id)
            lines = [(None, BASE_FEE_DESCRIPTION, charge.base_fee)]
            lines.extend((extra.id, extra.description, extra.amount) for extra in charge.extras)
            for extra_charge_id, description, expected in lines:
                if remaining <= ZERO:
                    break
                take = min(remaining, expected)
                if take <= ZERO:
                    continue
                suggestions.append(SuggestedAllocation(month, take, extra_charge_id, description))
                remaining -= take

        if remaining > ZERO:
            last_month = ordered[-1]
            for i, suggestion in enumerate(suggestions):
                if suggestion.month == last_month and suggestion.extra_charge_id is None:
                    suggestions[i] = suggestion._replace(amount=suggestion.amount + remaining)
                    break
            else:
                suggestions.append(SuggestedAllocation(last_month, remaining))

        return suggestions

    def suggest(
        self,
        strategy: AllocationStrategy | str,
        amount: Decimal | float | int | str,
        months: Sequence[str],
        rate_history: Sequence[RateRecord] = (),
        extra_charges: Sequence[ExtraChargeRecord] = (),
        default_rate: Decimal = ZERO,
        entity_id: EntityId | None = None,
    ) -> list[SuggestedAllocation]:
        """Dispatch to the allocation strategy.

        Raises:
            ValueError: If the strategy is unknown or months is empty
        """
        try:
            strategy = AllocationStrategy(strategy)
        except ValueError:
            raise ValueError(f"Unknown allocation strategy: {strategy!r}") from None

        if strategy is AllocationStrategy.EVEN:
            return self.split_evenly(amount, months)
        return self.suggest_allocations(
            amount, months, rate_history, extra_charges, default_rate, entity_id
        )
