"""Allocation reconciliation: balances, actuals per month and allocation audits.

Allocation amounts are already direction-normalized by ``records`` (expense
rows carry positive amounts), so nothing here takes ``abs()`` of an allocation.
"""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, NamedTuple, Sequence

from condo.services.fee_service import ChargeLine, resolve_total
from condo.services.findings import Finding, error, warning
from condo.services.locale_service import format_amount
from condo.services.months import MONEY_EPSILON, ZERO, exceeds, months_of_year
from condo.services.records import (
    Allocation,
    AllocationKind,
    EntityId,
    EntityKind,
    EntityRef,
    ExtraChargeRecord,
    LedgerTransaction,
    RateRecord,
    TransactionType,
)

logger = logging.getLogger(__name__)

ALLOCATION_SUM_CHECK = "allocation-sum"
ORPHANED_DATA_CHECK = "orphaned-data"
ADDITIONAL_CHECK = "additional"


class TransactionBalance(NamedTuple):
    """Result of comparing a transaction with its allocations."""

    allocated_sum: Decimal
    diff: Decimal
    is_balanced: bool


class CategoryBreakdown(NamedTuple):
    """Paid amounts split into base fee and each extra charge."""

    base_fee_paid: Decimal
    per_extra_paid: dict[EntityId, Decimal]

    @property
    def total(self) -> Decimal:
        return self.base_fee_paid + sum(self.per_extra_paid.values(), ZERO)


class MonthStatus(NamedTuple):
    """Paid versus expected for one calendar month."""

    month: str
    paid: Decimal
    expected: Decimal
    base_fee: Decimal
    extras: tuple[ChargeLine, ...]
    paid_by_category: CategoryBreakdown
    is_paid: bool


def reconcile_transaction(tx: LedgerTransaction) -> TransactionBalance:
    """
    Check that a transaction's allocations add up to its amount.

    Returns:
        allocated_sum, diff = | |amount| - allocated_sum |, and whether diff is
        within one cent
    """
    allocated_sum = sum((a.amount for a in tx.allocations), ZERO)
    diff = abs(abs(tx.amount) - allocated_sum)
    return TransactionBalance(allocated_sum, diff, diff <= MONEY_EPSILON)


def monthly_actual(
    allocations: Iterable[Allocation],
    entity: EntityRef,
    month: str,
    kind: AllocationKind = AllocationKind.INCOME,
) -> Decimal:
    """Sum of the entity's allocations of the given kind targeting month."""
    return sum(
        (
            a.amount
            for a in allocations
            if a.month == month and not a.is_prev_debt and a.entity == entity and a.kind is kind
        ),
        ZERO,
    )


def previous_debt_paid(
    allocations: Iterable[Allocation],
    entity: EntityRef,
    kind: AllocationKind = AllocationKind.INCOME,
) -> Decimal:
    """Sum of the entity's PREV-DEBT allocations."""
    return sum(
        (a.amount for a in allocations if a.is_prev_debt and a.entity == entity and a.kind is kind),
        ZERO,
    )


def categorize(allocations: Iterable[Allocation]) -> CategoryBreakdown:
    """Split calendar-month allocations by charge category (PREV-DEBT rows are skipped)."""
    base_fee_paid = ZERO
    per_extra: dict[EntityId, Decimal] = defaultdict(lambda: ZERO)
    for allocation in allocations:
        if allocation.is_prev_debt:
            continue
        if allocation.extra_charge_id is None:
            base_fee_paid += allocation.amount
        else:
            per_extra[allocation.extra_charge_id] += allocation.amount
    return CategoryBreakdown(base_fee_paid, dict(per_extra))


def is_month_paid(paid: Decimal, expected: Decimal) -> bool:
    if expected > ZERO:
        return paid >= expected - MONEY_EPSILON
    return paid > ZERO


def month_status(
    rate_history: Sequence[RateRecord],
    extra_charges: Sequence[ExtraChargeRecord],
    allocations: Sequence[Allocation],
    entity: EntityRef,
    year: int,
    default_rate: Decimal,
) -> list[MonthStatus]:
    """
    Twelve month rows for a unit or creditor.

    Units are matched against income allocations and their extra charges;
    creditors against expense allocations and their dues only.
    """
    if entity.kind is EntityKind.UNIT:
        kind, entity_id = AllocationKind.INCOME, entity.id
    else:
        kind, entity_id, extra_charges = AllocationKind.EXPENSE, None, ()

    rows = []
    for month in months_of_year(year):
        charge = resolve_total(rate_history, extra_charges, month, default_rate, entity_id)
        in_month = [
            a for a in allocations if a.month == month and a.entity == entity and a.kind is kind
        ]
        paid = sum((a.amount for a in in_month), ZERO)
        rows.append(
            MonthStatus(
                month=month,
                paid=paid,
                expected=charge.total,
                base_fee=charge.base_fee,
                extras=charge.extras,
                paid_by_category=categorize(in_month),
                is_paid=is_month_paid(paid, charge.total),
            )
        )
    return rows


def _entity_label(tx: LedgerTransaction, labels: Mapping[EntityRef, str]) -> str:
    if tx.entity is None:
        return "N/A"
    return labels.get(tx.entity, str(tx.entity.id))


def check_allocation_sums(
    transactions: Iterable[LedgerTransaction],
    labels: Mapping[EntityRef, str] | None = None,
) -> list[Finding]:
    """Payments with allocations must balance (error); expenses should (warning)."""
    labels = labels or {}
    findings = []
    for tx in transactions:
        if not tx.allocations or tx.type not in (TransactionType.PAYMENT, TransactionType.EXPENSE):
            continue
        balance = reconcile_transaction(tx)
        if balance.is_balanced:
            continue
        if tx.type is TransactionType.PAYMENT:
            findings.append(
                error(
                    ALLOCATION_SUM_CHECK,
                    f"Transaction {tx.id} ({_entity_label(tx, labels)}, {tx.date.isoformat()}, "
                    f"{format_amount(tx.amount)}): allocation sum = "
                    f"{format_amount(balance.allocated_sum)}, diff = {format_amount(balance.diff)}",
                    subject=str(tx.id),
                )
            )
        else:
            findings.append(
                warning(
                    ALLOCATION_SUM_CHECK,
                    f"Expense {tx.id} ({tx.description[:40]}, {format_amount(tx.amount)}): "
                    f"allocation sum = {format_amount(balance.allocated_sum)}, "
                    f"diff = {format_amount(balance.diff)}",
                    subject=str(tx.id),
                )
            )
    return findings


def check_unallocated_payments(
    transactions: Iterable[LedgerTransaction],
    labels: Mapping[EntityRef, str] | None = None,
) -> list[Finding]:
    labels = labels or {}
    return [
        warning(
            ORPHANED_DATA_CHECK,
            f"Payment {tx.id} ({_entity_label(tx, labels)}, {tx.date.isoformat()}, "
            f'{format_amount(tx.amount)}, "{tx.description[:50]}") has NO month allocations',
            subject=str(tx.id),
        )
        for tx in transactions
        if tx.type is TransactionType.PAYMENT and not tx.allocations
    ]


def check_unassigned_payments(transactions: Iterable[LedgerTransaction]) -> list[Finding]:
    return [
        warning(
            ORPHANED_DATA_CHECK,
            f"Payment {tx.id} ({tx.date.isoformat()}, {format_amount(tx.amount)}, "
            f'"{tx.description[:50]}") has NO unit',
            subject=str(tx.id),
        )
        for tx in transactions
        if tx.type is TransactionType.PAYMENT
        and (tx.entity is None or tx.entity.kind is not EntityKind.UNIT)
    ]


def check_orphan_allocations(
    transactions: Iterable[LedgerTransaction],
    allocations: Iterable[Allocation],
    extra_charge_ids: Iterable[EntityId],
) -> list[Finding]:
    """Allocations must reference an existing transaction and, if any, an existing extra charge."""
    tx_ids = {tx.id for tx in transactions}
    charge_ids = set(extra_charge_ids)
    findings = []
    for allocation in allocations:
        if allocation.transaction_id not in tx_ids:
            findings.append(
                error(
                    ORPHANED_DATA_CHECK,
                    f"Allocation {allocation.id} ({allocation.month}, "
                    f"{format_amount(allocation.amount)}) references non-existent transaction "
                    f"{allocation.transaction_id}",
                    subject=str(allocation.id),
                )
            )
        if allocation.extra_charge_id is not None and allocation.extra_charge_id not in charge_ids:
            findings.append(
                error(
                    ORPHANED_DATA_CHECK,
                    f"Allocation {allocation.id} ({allocation.month}) references non-existent "
                    f"extra charge {allocation.extra_charge_id}",
                    subject=str(allocation.id),
                )
            )
    return findings


def check_negative_allocations(transactions: Iterable[LedgerTransaction]) -> list[Finding]:
    return [
        warning(
            ADDITIONAL_CHECK,
            f"Allocation {allocation.id} has negative amount {format_amount(allocation.amount)} "
            f"on positive transaction {tx.id}",
            subject=str(tx.id),
        )
        for tx in transactions
        if tx.is_income
        for allocation in tx.allocations
        if allocation.amount < ZERO
    ]


def check_duplicates(
    transactions: Iterable[LedgerTransaction],
    labels: Mapping[EntityRef, str] | None = None,
) -> list[Finding]:
    """Transactions sharing date, amount, entity and description look duplicated."""
    labels = labels or {}
    groups: dict[tuple, list[LedgerTransaction]] = defaultdict(list)
    for tx in transactions:
        groups[(tx.date, tx.amount, tx.entity, tx.description)].append(tx)

    findings = []
    for (tx_date, amount, _, description), group in groups.items():
        if len(group) < 2:
            continue
        findings.append(
            warning(
                ADDITIONAL_CHECK,
                f"{len(group)} transactions with same date={tx_date.isoformat()}, "
                f"amount={format_amount(amount)}, unit={_entity_label(group[0], labels)}, "
                f'desc="{description[:40]}"',
                subject=", ".join(str(tx.id) for tx in group),
            )
        )
    return findings


def check_future_dated(transactions: Iterable[LedgerTransaction], as_of: date) -> list[Finding]:
    return [
        warning(
            ADDITIONAL_CHECK,
            f"Transaction {tx.id} has future date {tx.date.isoformat()}",
            subject=str(tx.id),
        )
        for tx in transactions
        if tx.date > as_of
    ]


def find_allocation_issues(
    transactions: Sequence[LedgerTransaction],
    allocations: Sequence[Allocation],
    extra_charge_ids: Iterable[EntityId],
    as_of: date,
    labels: Mapping[EntityRef, str] | None = None,
) -> list[Finding]:
    """
    Every allocation-level problem across the dataset.

    Args:
        transactions: All transactions, each carrying its allocations
        allocations: All allocation rows, including rows whose transaction is gone
        extra_charge_ids: Ids of existing extra charges
        as_of: Reference date for future-dated transactions
        labels: Display names for entities (unit codes, creditor names)

    Returns:
        Findings in check order; nothing is dropped or corrected
    """
    findings = []
    findings.extend(check_allocation_sums(transactions, labels))
    findings.extend(check_unallocated_payments(transactions, labels))
    findings.extend(check_unassigned_payments(transactions))
    findings.extend(check_orphan_allocations(transactions, allocations, extra_charge_ids))
    findings.extend(check_negative_allocations(transactions))
    findings.extend(check_duplicates(transactions, labels))
    findings.extend(check_future_dated(transactions, as_of))
    logger.debug(
        "Allocation checks over %d transactions produced %d findings", len(transactions), len(findings)
    )
    return findings


def unbalanced_amount(tx: LedgerTransaction) -> Decimal:
    """Portion of a transaction not yet covered by allocations (never negative)."""
    balance = reconcile_transaction(tx)
    remaining = abs(tx.amount) - balance.allocated_sum
    return remaining if exceeds(remaining) else ZERO
