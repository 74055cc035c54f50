"""Allocation tools used while entering transactions."""

import logging
from collections import Counter
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from condo.api.dependencies import get_today
from condo.api.schemas import (
    SuggestAllocationsRequest,
    SuggestAllocationsResponse,
    SuggestedAllocationResponse,
    ValidateAllocationsRequest,
    ValidateAllocationsResponse,
    money,
)
from condo.models.extra_charge import ExtraCharge
from condo.services import get_db
from condo.services.allocation_service import AllocationService
from condo.services.errors import EntityNotFoundError
from condo.services.locale_service import format_amount
from condo.services.months import ZERO
from condo.services.reconciliation_service import reconcile_transaction, unbalanced_amount
from condo.services.records import LedgerTransaction, TransactionType
from condo.services.snapshot_service import SnapshotLoader

logger = logging.getLogger(__name__)

# Create router for transaction tools
router = APIRouter(prefix="/api", tags=["transactions"])


@router.post("/transactions/validate-allocations", response_model=ValidateAllocationsResponse)
def validate_allocations(
    body: ValidateAllocationsRequest,
    db: Session = Depends(get_db),  # noqa: B008
    today: date = Depends(get_today),  # noqa: B008
) -> ValidateAllocationsResponse:
    """Check proposed allocations against the transaction amount before saving.

    Raises:
        422: Malformed month or amount
    """
    tx = LedgerTransaction(id=0, amount=body.amount, date=today, type=body.type)
    tx = tx.with_allocations(
        *(tx.allocate(row.month, row.amount, row.extra_charge_id) for row in body.allocations)
    )
    balance = reconcile_transaction(tx)

    problems = []
    if not balance.is_balanced:
        problems.append(
            f"Allocation sum {format_amount(balance.allocated_sum)} does not match "
            f"transaction amount {format_amount(abs(tx.amount))} (diff {format_amount(balance.diff)})"
        )
    if tx.type is TransactionType.PAYMENT and not tx.allocations:
        problems.append("Payment has no month allocations")

    known_charges = set(db.execute(select(ExtraCharge.id)).scalars().all())
    for i, allocation in enumerate(tx.allocations, start=1):
        if allocation.extra_charge_id is not None and allocation.extra_charge_id not in known_charges:
            problems.append(f"Row {i}: extra charge {allocation.extra_charge_id} does not exist")
        if tx.is_income and allocation.amount < ZERO:
            problems.append(f"Row {i}: negative amount {format_amount(allocation.amount)} on a payment")

    targets = Counter((a.month, a.extra_charge_id) for a in tx.allocations)
    for (month, charge_id), count in targets.items():
        if count > 1:
            category = f"extra charge {charge_id}" if charge_id is not None else "base fee"
            problems.append(f"{count} rows allocate {month} {category}")

    return ValidateAllocationsResponse(
        allocated_sum=money(balance.allocated_sum),
        diff=money(balance.diff),
        is_balanced=balance.is_balanced,
        remaining=money(unbalanced_amount(tx)),
        problems=problems,
    )


@router.post("/units/{unit_id}/suggest-allocations", response_model=SuggestAllocationsResponse)
def suggest_allocations(
    unit_id: int,
    body: SuggestAllocationsRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> SuggestAllocationsResponse:
    """Propose month allocations for a payment from a unit.

    Raises:
        400: No months or unknown strategy
        404: Unit not found
    """
    try:
        snapshot = SnapshotLoader(db).load_unit(unit_id)
        unit = snapshot.units[0]
        suggestions = AllocationService().suggest(
            body.strategy,
            body.amount,
            body.months,
            unit.fee_history,
            snapshot.extra_charges,
            unit.monthly_fee,
            unit.id,
        )
        return SuggestAllocationsResponse(
            allocations=[
                SuggestedAllocationResponse(
                    month=s.month,
                    amount=money(s.amount),
                    extra_charge_id=s.extra_charge_id,
                    description=s.description,
                )
                for s in suggestions
            ],
            total=money(sum((s.amount for s in suggestions), ZERO)),
        )

    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error in /api/units/{unit_id}/suggest-allocations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e
