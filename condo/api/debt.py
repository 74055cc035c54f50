"""Debt, payment history, monthly status and debt summary endpoints."""

import logging
import time
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from condo.api.dependencies import get_settings, get_today
from condo.api.schemas import (
    ChargeLineResponse,
    CurrentYearResponse,
    DebtSummaryResponse,
    DivergenceResponse,
    ExtraChargeTotalsResponse,
    ExtraPaidResponse,
    HistoryYearResponse,
    MonthlyStatusResponse,
    MonthStatusResponse,
    OutstandingExtraResponse,
    PaymentHistoryResponse,
    SummaryCellResponse,
    UnitDebtResponse,
    UnitSummaryResponse,
    YearFiguresResponse,
    money,
)
from condo.services import get_db
from condo.services.config import Settings
from condo.services.debt_service import CAPPED, CARRY_FORWARD, DEFAULT_POLICY, DebtCalculator, get_policy
from condo.services.errors import EntityNotFoundError
from condo.services.months import month_of_date
from condo.services.reconciliation_service import month_status
from condo.services.records import EntityRef
from condo.services.report_service import (
    PaymentHistory,
    SummaryCell,
    creditor_payment_history,
    debt_summary,
    unit_payment_history,
)
from condo.services.snapshot_service import SnapshotLoader

logger = logging.getLogger(__name__)

# Create router for debt and report endpoints
router = APIRouter(prefix="/api", tags=["debt"])


def _log_debug(endpoint: str, start_time: float, **kwargs) -> None:
    duration_ms = int((time.time() - start_time) * 1000)
    extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.debug("api.%s: %s duration_ms=%d", endpoint, extra, duration_ms)


def _history_response(history: PaymentHistory) -> PaymentHistoryResponse:
    return PaymentHistoryResponse(
        payments={month: money(v) for month, v in sorted(history.payments.items())},
        expected={month: money(v) for month, v in sorted(history.expected.items())},
        years=[
            HistoryYearResponse(
                year=row.year,
                paid=money(row.paid),
                expected=money(row.expected),
                debt=money(row.debt),
                accumulated_capped=money(row.accumulated_capped),
                accumulated_carry_forward=money(row.accumulated_carry_forward),
            )
            for row in history.years
        ],
    )


def _cell(cell: SummaryCell) -> SummaryCellResponse:
    return SummaryCellResponse(expected=money(cell.expected), paid=money(cell.paid), debt=money(cell.debt))


@router.get("/units/{unit_id}/debt", response_model=UnitDebtResponse)
def get_unit_debt(
    unit_id: int,
    owner_id: int | None = None,
    policy: str = DEFAULT_POLICY,
    include_current_year: bool = False,
    db: Session = Depends(get_db),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
    today: date = Depends(get_today),  # noqa: B008
) -> UnitDebtResponse:
    """Debt statement for a unit, optionally restricted to one owner's period.

    Raises:
        400: Unknown policy or owner not belonging to the unit
        404: Unit not found
        500: Server error
    """
    start_time = time.time()
    try:
        debt_policy = get_policy(policy)
        snapshot = SnapshotLoader(db).load_unit(unit_id)
        unit = snapshot.units[0]
        calculator = DebtCalculator.as_of(today, settings.first_digital_year)
        debt = calculator.compute_unit_debt(unit, snapshot.extra_charges, snapshot.allocations, owner_id)

        divergence = debt.divergence
        cumulative = debt.running_totals(debt_policy)
        response = UnitDebtResponse(
            unit_id=unit.id,
            unit_code=unit.code,
            owner_id=owner_id,
            policy=debt_policy.name,
            as_of_month=calculator.current_month,
            past_years_debt=money(debt.past_years_debt(debt_policy)),
            capped_debt=money(debt.past_years_debt(CAPPED)),
            carry_forward_debt=money(debt.past_years_debt(CARRY_FORWARD)),
            divergence=DivergenceResponse(
                capped=money(divergence.capped),
                carry_forward=money(divergence.carry_forward),
                difference=money(divergence.difference),
                surplus_years=list(divergence.surplus_years),
            ),
            previous_debt=money(debt.legacy.previous_debt),
            previous_debt_paid=money(debt.legacy.paid),
            previous_debt_remaining=money(debt.legacy.remaining),
            outstanding_extras=[
                OutstandingExtraResponse(
                    id=extra.id,
                    description=extra.description,
                    total_expected=money(extra.total_expected),
                    total_paid=money(extra.total_paid),
                    remaining=money(extra.remaining),
                )
                for extra in debt.outstanding_extras
            ],
            current_year=CurrentYearResponse(
                year=debt.current_year.year,
                expected=money(debt.current_year.expected),
                paid=money(debt.current_year.paid),
                shortfall=money(debt.current_year_shortfall),
            ),
            years=[
                YearFiguresResponse(
                    year=figures.year,
                    expected=money(figures.expected),
                    paid=money(figures.paid),
                    debt=money(figures.shortfall),
                    cumulative=money(running),
                )
                for figures, running in zip(debt.years, cumulative)
            ],
            total_debt=money(debt.total_debt(debt_policy, include_current_year)),
        )
        _log_debug("unit_debt", start_time, unit_id=unit_id, owner_id=owner_id, policy=debt_policy.name)
        return response

    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error in /api/units/{unit_id}/debt: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.get("/units/{unit_id}/payment-history", response_model=PaymentHistoryResponse)
def get_unit_payment_history(
    unit_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    today: date = Depends(get_today),  # noqa: B008
) -> PaymentHistoryResponse:
    """Paid and expected per month from the unit's first activity through this month."""
    try:
        snapshot = SnapshotLoader(db).load_unit(unit_id)
        history = unit_payment_history(
            snapshot.units[0], snapshot.extra_charges, snapshot.allocations, month_of_date(today)
        )
        return _history_response(history)

    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error in /api/units/{unit_id}/payment-history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.get("/creditors/{creditor_id}/payment-history", response_model=PaymentHistoryResponse)
def get_creditor_payment_history(
    creditor_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
    today: date = Depends(get_today),  # noqa: B008
) -> PaymentHistoryResponse:
    """Dues and payments per month for a creditor."""
    try:
        snapshot = SnapshotLoader(db).load_creditor(creditor_id)
        history = creditor_payment_history(
            snapshot.creditors[0],
            snapshot.allocations,
            month_of_date(today),
            settings.first_digital_year,
        )
        return _history_response(history)

    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error in /api/creditors/{creditor_id}/payment-history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.get("/monthly-status", response_model=MonthlyStatusResponse)
def get_monthly_status(
    unit_id: int | None = None,
    creditor_id: int | None = None,
    year: int | None = None,
    db: Session = Depends(get_db),  # noqa: B008
    today: date = Depends(get_today),  # noqa: B008
) -> MonthlyStatusResponse:
    """Twelve month rows (paid, expected, breakdown) for a unit or a creditor.

    Raises:
        400: Neither unit_id nor creditor_id given
        404: Unit or creditor not found
    """
    if unit_id is None and creditor_id is None:
        raise HTTPException(status_code=400, detail="unit_id or creditor_id required")

    if year is None:
        year = today.year
    try:
        loader = SnapshotLoader(db)
        if unit_id is not None:
            snapshot = loader.load_unit(unit_id)
            unit = snapshot.units[0]
            rows = month_status(
                unit.fee_history,
                snapshot.extra_charges,
                snapshot.allocations,
                EntityRef.unit(unit.id),
                year,
                unit.monthly_fee,
            )
        else:
            snapshot = loader.load_creditor(creditor_id)
            creditor = snapshot.creditors[0]
            rows = month_status(
                creditor.fee_history if creditor.is_fixed else (),
                (),
                snapshot.allocations,
                EntityRef.creditor(creditor.id),
                year,
                creditor.amount_due if creditor.is_fixed else 0,
            )

        return MonthlyStatusResponse(
            year=year,
            months=[
                MonthStatusResponse(
                    month=row.month,
                    paid=money(row.paid),
                    expected=money(row.expected),
                    base_fee=money(row.base_fee),
                    extras=[
                        ChargeLineResponse(id=line.id, description=line.description, amount=money(line.amount))
                        for line in row.extras
                    ],
                    base_fee_paid=money(row.paid_by_category.base_fee_paid),
                    extras_paid=[
                        ExtraPaidResponse(extra_charge_id=charge_id, amount=money(amount))
                        for charge_id, amount in row.paid_by_category.per_extra_paid.items()
                    ],
                    is_paid=row.is_paid,
                )
                for row in rows
            ],
        )

    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error in /api/monthly-status: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.get("/reports/debt-summary", response_model=DebtSummaryResponse)
def get_debt_summary(
    end_year: int | None = None,
    db: Session = Depends(get_db),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
    today: date = Depends(get_today),  # noqa: B008
) -> DebtSummaryResponse:
    """Building-wide expected/paid/debt per unit and year."""
    end_year = end_year or today.year
    if end_year < settings.first_digital_year:
        raise HTTPException(
            status_code=400,
            detail=f"end_year must be >= {settings.first_digital_year}",
        )
    try:
        snapshot = SnapshotLoader(db).load()
        summary = debt_summary(snapshot, settings.first_digital_year, end_year)
        return DebtSummaryResponse(
            start_year=summary.start_year,
            end_year=summary.end_year,
            years=list(range(summary.start_year, summary.end_year + 1)),
            legacy_label=f"Before {summary.start_year}",
            units=[
                UnitSummaryResponse(
                    id=row.id,
                    code=row.code,
                    name=row.name,
                    legacy=_cell(row.legacy),
                    years={year: _cell(cell) for year, cell in row.years.items()},
                    total=_cell(row.total),
                )
                for row in summary.units
            ],
            legacy_total=_cell(summary.legacy_total),
            year_totals={year: _cell(cell) for year, cell in summary.year_totals.items()},
            year_base_fees={year: money(v) for year, v in summary.year_base_fees.items()},
            extra_charges=[
                ExtraChargeTotalsResponse(
                    id=totals.id,
                    description=totals.description,
                    yearly_totals={year: money(v) for year, v in totals.yearly_totals.items()},
                )
                for totals in summary.extra_charges
            ],
            grand_total=_cell(summary.grand_total),
        )

    except Exception as e:
        logger.error(f"Error in /api/reports/debt-summary: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e
