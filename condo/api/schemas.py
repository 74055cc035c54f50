"""Response and request schemas for the HTTP API.

Amounts leave the engine as Decimal and are serialized as JSON numbers
rounded to cents.
"""

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, field_validator

from condo.services.months import parse_allocation_month, parse_month
from condo.services.records import TransactionType

CENT = Decimal("0.01")


def money(value: Decimal) -> float:
    """Round to cents for JSON output."""
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


# Debt
class YearFiguresResponse(BaseModel):
    """One evaluated year of a debt statement."""

    year: int
    expected: float
    paid: float
    debt: float  # max(0, expected - paid)
    cumulative: float  # running debt under the selected policy

    model_config = ConfigDict(from_attributes=True)


class DivergenceResponse(BaseModel):
    """Capped versus carry-forward totals."""

    capped: float
    carry_forward: float
    difference: float
    surplus_years: list[int]


class OutstandingExtraResponse(BaseModel):
    id: int | str | None
    description: str
    total_expected: float
    total_paid: float
    remaining: float


class CurrentYearResponse(BaseModel):
    year: int
    expected: float  # through the current month
    paid: float
    shortfall: float


class UnitDebtResponse(BaseModel):
    """Response schema for /api/units/{unit_id}/debt."""

    unit_id: int
    unit_code: str
    owner_id: int | None = None
    policy: str
    as_of_month: str
    past_years_debt: float
    capped_debt: float
    carry_forward_debt: float
    divergence: DivergenceResponse
    previous_debt: float
    previous_debt_paid: float
    previous_debt_remaining: float
    outstanding_extras: list[OutstandingExtraResponse]
    current_year: CurrentYearResponse
    years: list[YearFiguresResponse]
    total_debt: float


# Payment history
class HistoryYearResponse(BaseModel):
    year: int
    paid: float
    expected: float
    debt: float
    accumulated_capped: float
    accumulated_carry_forward: float


class PaymentHistoryResponse(BaseModel):
    """Month-by-month paid/expected and yearly rows."""

    payments: dict[str, float]
    expected: dict[str, float]
    years: list[HistoryYearResponse]


# Monthly status
class ChargeLineResponse(BaseModel):
    id: int | str | None
    description: str
    amount: float


class ExtraPaidResponse(BaseModel):
    extra_charge_id: int | str
    amount: float


class MonthStatusResponse(BaseModel):
    month: str
    paid: float
    expected: float
    base_fee: float
    extras: list[ChargeLineResponse]
    base_fee_paid: float
    extras_paid: list[ExtraPaidResponse]
    is_paid: bool


class MonthlyStatusResponse(BaseModel):
    year: int
    months: list[MonthStatusResponse]


# Debt summary
class SummaryCellResponse(BaseModel):
    expected: float
    paid: float
    debt: float


class UnitSummaryResponse(BaseModel):
    id: int
    code: str
    name: str
    legacy: SummaryCellResponse
    years: dict[int, SummaryCellResponse]
    total: SummaryCellResponse


class ExtraChargeTotalsResponse(BaseModel):
    id: int | str
    description: str
    yearly_totals: dict[int, float]


class DebtSummaryResponse(BaseModel):
    """Building-wide debt table."""

    start_year: int
    end_year: int
    years: list[int]
    legacy_label: str
    units: list[UnitSummaryResponse]
    legacy_total: SummaryCellResponse
    year_totals: dict[int, SummaryCellResponse]
    year_base_fees: dict[int, float]
    extra_charges: list[ExtraChargeTotalsResponse]
    grand_total: SummaryCellResponse


# Allocation tools
class AllocationRequest(BaseModel):
    """One allocation row entered for a transaction."""

    month: str
    amount: Decimal
    extra_charge_id: int | None = None

    @field_validator("month")
    @classmethod
    def _check_month(cls, value: str) -> str:
        return parse_allocation_month(value)


class ValidateAllocationsRequest(BaseModel):
    """Request body for /api/transactions/validate-allocations."""

    amount: Decimal
    type: TransactionType = TransactionType.PAYMENT
    allocations: list[AllocationRequest] = []


class ValidateAllocationsResponse(BaseModel):
    allocated_sum: float
    diff: float
    is_balanced: bool
    remaining: float
    problems: list[str]


class SuggestAllocationsRequest(BaseModel):
    """Request body for /api/units/{unit_id}/suggest-allocations."""

    amount: Decimal
    months: list[str]
    strategy: str = "by_expected"

    @field_validator("months")
    @classmethod
    def _check_months(cls, value: list[str]) -> list[str]:
        return [parse_month(m) for m in value]


class SuggestedAllocationResponse(BaseModel):
    month: str
    amount: float
    extra_charge_id: int | str | None = None
    description: str

    model_config = ConfigDict(from_attributes=True)


class SuggestAllocationsResponse(BaseModel):
    allocations: list[SuggestedAllocationResponse]
    total: float
