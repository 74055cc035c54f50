"""Dataset-wide data integrity audit.

Runs every integrity check over a ``LedgerSnapshot`` and returns an
``AuditReport``. Sections, in order:

1. Rejected rows (values that failed parsing at load time)
2. Transaction allocation integrity
3. Expected vs paid per unit per month
4. Fee history consistency
5. Extra charge consistency
6. Orphaned data
7. Owner period consistency
8. Debt calculation cross-check
9. Additional checks (duplicates, future dates, negative allocations)

A failure while checking one unit is logged and recorded as an error; the
remaining units are still checked.
"""

import logging
from datetime import date

from condo.services.debt_service import CAPPED, CARRY_FORWARD, DebtCalculator, is_settled
from condo.services.fee_service import resolve_total
from condo.services.findings import AuditReport, error, info, warning
from condo.services.history_validator import (
    EXTRA_CHARGE_CHECK,
    FEE_HISTORY_CHECK,
    OWNER_PERIOD_CHECK,
    validate_extra_charges,
    validate_history,
    validate_owner_periods,
)
from condo.services.locale_service import format_amount
from condo.services.months import exceeds, iter_months, month_of_date, money_equal
from condo.services.reconciliation_service import (
    ADDITIONAL_CHECK,
    ALLOCATION_SUM_CHECK,
    ORPHANED_DATA_CHECK,
    check_allocation_sums,
    check_duplicates,
    check_future_dated,
    check_negative_allocations,
    check_orphan_allocations,
    check_unallocated_payments,
    check_unassigned_payments,
    monthly_actual,
    reconcile_transaction,
)
from condo.services.records import (
    AllocationKind,
    EntityRef,
    LedgerSnapshot,
    TransactionType,
    UnitRecord,
)

logger = logging.getLogger(__name__)

REJECTED_ROWS_CHECK = "rejected-rows"
EXPECTED_VS_PAID_CHECK = "expected-vs-paid"
DEBT_CHECK = "debt"

SECTIONS = [
    (REJECTED_ROWS_CHECK, "Rejected rows"),
    (ALLOCATION_SUM_CHECK, "Transaction allocation integrity"),
    (EXPECTED_VS_PAID_CHECK, "Expected vs paid per unit per month"),
    (FEE_HISTORY_CHECK, "Fee history consistency"),
    (EXTRA_CHARGE_CHECK, "Extra charge consistency"),
    (ORPHANED_DATA_CHECK, "Orphaned data"),
    (OWNER_PERIOD_CHECK, "Owner period consistency"),
    (DEBT_CHECK, "Debt calculation cross-check"),
    (ADDITIONAL_CHECK, "Additional checks"),
]


def entity_labels(snapshot: LedgerSnapshot) -> dict[EntityRef, str]:
    """Display names: unit codes and creditor names."""
    labels = {unit.entity: unit.code for unit in snapshot.units}
    labels.update({creditor.entity: creditor.name for creditor in snapshot.creditors})
    return labels


def _audit_rejected_rows(snapshot: LedgerSnapshot, report: AuditReport) -> None:
    for row in snapshot.rejected:
        report.add(
            error(
                REJECTED_ROWS_CHECK,
                f"{row.table} row {row.row_id} was rejected: {row.reason}",
                subject=f"{row.table}:{row.row_id}",
            )
        )
    if not snapshot.rejected:
        report.ok(REJECTED_ROWS_CHECK, "All rows loaded without format errors")


def _audit_allocation_sums(snapshot: LedgerSnapshot, report: AuditReport, labels) -> None:
    problems = report.extend(check_allocation_sums(snapshot.transactions, labels))

    payments = [
        tx for tx in snapshot.transactions if tx.type is TransactionType.PAYMENT and tx.allocations
    ]
    expenses = [
        tx for tx in snapshot.transactions if tx.type is TransactionType.EXPENSE and tx.allocations
    ]
    unbalanced_payments = [tx for tx in payments if not reconcile_transaction(tx).is_balanced]
    if not unbalanced_payments:
        report.ok(
            ALLOCATION_SUM_CHECK,
            f"All {len(payments)} payment transactions with allocations have matching sums",
        )
    if expenses and problems == len(unbalanced_payments):
        report.ok(
            ALLOCATION_SUM_CHECK,
            f"All {len(expenses)} expense transactions with allocations have matching sums",
        )


def _months_to_check(unit: UnitRecord, allocations, current_month: str) -> list[str]:
    months = {a.month for a in allocations if not a.is_prev_debt}
    for record in unit.fee_history:
        end = record.effective_to or current_month
        months.update(m for m in iter_months(record.effective_from, end) if m <= current_month)
    return sorted(months)


def _audit_unit_months(
    snapshot: LedgerSnapshot, unit: UnitRecord, current_month: str, report: AuditReport
) -> None:
    extras = snapshot.extra_charges_for_unit(unit.id)
    allocations = [
        a for a in snapshot.allocations_for(unit.entity) if a.kind is AllocationKind.INCOME
    ]
    months = _months_to_check(unit, allocations, current_month)
    if not months:
        report.add(
            warning(
                EXPECTED_VS_PAID_CHECK,
                f"Unit {unit.code}: no month allocations or fee history found",
                subject=unit.code,
            )
        )
        return

    discrepancies = 0
    for month in months:
        expected = resolve_total(unit.fee_history, extras, month, unit.monthly_fee, unit.id).total
        paid = monthly_actual(allocations, unit.entity, month)
        if money_equal(paid, expected):
            continue
        discrepancies += 1
        direction = "underpaid" if paid < expected else "overpaid"
        report.add(
            warning(
                EXPECTED_VS_PAID_CHECK,
                f"Unit {unit.code} {month}: expected {format_amount(expected)}, paid "
                f"{format_amount(paid)} ({direction} by {format_amount(abs(paid - expected))})",
                subject=unit.code,
            )
        )
    if discrepancies == 0:
        report.ok(
            EXPECTED_VS_PAID_CHECK,
            f"Unit {unit.code}: all {len(months)} months match expected fees",
            subject=unit.code,
        )


def _audit_fee_history(snapshot: LedgerSnapshot, report: AuditReport) -> None:
    histories = {unit.entity: unit.fee_history for unit in snapshot.units if unit.fee_history}
    histories.update(
        {creditor.entity: creditor.fee_history for creditor in snapshot.creditors if creditor.fee_history}
    )
    if not histories:
        report.add(warning(FEE_HISTORY_CHECK, "No fee history records found at all"))
        return

    labels = {unit.entity: f"Unit {unit.code}" for unit in snapshot.units}
    labels.update({c.entity: f"Creditor {c.name}" for c in snapshot.creditors})

    history_report = validate_history(histories)
    report.extend(history_report.findings(labels))

    for entity, records in histories.items():
        if len(records) == 1:
            record = records[0]
            report.add(
                info(
                    FEE_HISTORY_CHECK,
                    f"{labels[entity]}: single record from {record.effective_from} "
                    f"({format_amount(record.amount)})",
                    subject=labels[entity],
                )
            )
    if not history_report.overlaps:
        total = sum(len(records) for records in histories.values())
        report.ok(FEE_HISTORY_CHECK, f"All {total} fee history records have no overlaps")


def _audit_extra_charges(snapshot: LedgerSnapshot, report: AuditReport) -> None:
    if not snapshot.extra_charges:
        report.add(info(EXTRA_CHARGE_CHECK, "No extra charges defined"))
        return
    charge_report = validate_extra_charges(snapshot.extra_charges)
    report.extend(charge_report.findings({unit.id: unit.code for unit in snapshot.units}))
    if not charge_report.invalid_ranges:
        report.ok(
            EXTRA_CHARGE_CHECK,
            f"All {len(snapshot.extra_charges)} extra charges have valid date ranges",
        )


def _audit_orphans(snapshot: LedgerSnapshot, report: AuditReport, labels) -> None:
    if not report.extend(check_unallocated_payments(snapshot.transactions, labels)):
        report.ok(ORPHANED_DATA_CHECK, "All payment transactions have month allocations")
    if not report.extend(check_unassigned_payments(snapshot.transactions)):
        report.ok(ORPHANED_DATA_CHECK, "All payment transactions are assigned to a unit")
    orphan_findings = check_orphan_allocations(
        snapshot.transactions,
        snapshot.allocations,
        [c.id for c in snapshot.extra_charges if c.id is not None],
    )
    if not report.extend(orphan_findings):
        report.ok(ORPHANED_DATA_CHECK, "All allocations reference existing transactions and extra charges")


def _audit_owner_periods(snapshot: LedgerSnapshot, report: AuditReport) -> None:
    clean = 0
    for unit in snapshot.units:
        owner_report = validate_owner_periods(unit.code, unit.owners)
        if not report.extend(owner_report.findings()):
            clean += 1
    if snapshot.units and clean == len(snapshot.units):
        report.ok(OWNER_PERIOD_CHECK, f"All {clean} units have consistent owner periods")


def _audit_unit_debt(
    snapshot: LedgerSnapshot, unit: UnitRecord, calculator: DebtCalculator, report: AuditReport
) -> None:
    debt = calculator.compute_unit_debt(unit, snapshot.extra_charges, snapshot.allocations)
    cumulative = debt.running_totals(CARRY_FORWARD)
    for figures, running in zip(debt.years, cumulative):
        if exceeds(figures.balance):
            status = f"debt {format_amount(figures.balance)}"
        elif figures.is_surplus:
            status = f"surplus {format_amount(-figures.balance)}"
        else:
            status = "balanced"
        report.add(
            info(
                DEBT_CHECK,
                f"Unit {unit.code} {figures.year}: expected {format_amount(figures.expected)}, "
                f"paid {format_amount(figures.paid)} => {status} "
                f"(cumulative: {format_amount(running)})",
                subject=unit.code,
            )
        )

    if is_settled(debt, CARRY_FORWARD):
        report.ok(DEBT_CHECK, f"Unit {unit.code} has no outstanding debt", subject=unit.code)
    else:
        report.add(
            warning(
                DEBT_CHECK,
                f"Unit {unit.code} total debt: {format_amount(debt.total_debt(CARRY_FORWARD))} "
                f"(past years: {format_amount(debt.past_years_debt(CARRY_FORWARD))}, "
                f"previous debt: {format_amount(debt.legacy.remaining)})",
                subject=unit.code,
            )
        )

    for extra in debt.outstanding_extras:
        if exceeds(extra.remaining):
            report.add(
                info(
                    DEBT_CHECK,
                    f'Unit {unit.code} extra "{extra.description}": expected '
                    f"{format_amount(extra.total_expected)}, paid {format_amount(extra.total_paid)}, "
                    f"remaining {format_amount(extra.remaining)}",
                    subject=unit.code,
                )
            )

    divergence = debt.divergence
    if divergence.diverges:
        years = ", ".join(str(y) for y in divergence.surplus_years)
        report.add(
            info(
                DEBT_CHECK,
                f"Unit {unit.code}: {CAPPED} method = {format_amount(divergence.capped)} vs "
                f"{CARRY_FORWARD} method = {format_amount(divergence.carry_forward)} "
                f"(surplus carried forward from {years})",
                subject=unit.code,
            )
        )


def _audit_additional(snapshot: LedgerSnapshot, as_of: date, report: AuditReport, labels) -> None:
    if not report.extend(check_duplicates(snapshot.transactions, labels)):
        report.ok(ADDITIONAL_CHECK, "No potential duplicate transactions found")
    if not report.extend(check_future_dated(snapshot.transactions, as_of)):
        report.ok(ADDITIONAL_CHECK, "No transactions with future dates")
    if not report.extend(check_negative_allocations(snapshot.transactions)):
        report.ok(ADDITIONAL_CHECK, "No negative allocations on positive (payment) transactions")


def _per_unit(check: str, snapshot: LedgerSnapshot, report: AuditReport, func, *args) -> None:
    for unit in sorted(snapshot.units, key=lambda u: u.code):
        try:
            func(snapshot, unit, *args, report)
        except Exception as e:
            logger.exception("Audit check %s failed for unit %s", check, unit.code)
            report.add(error(check, f"Unit {unit.code}: check failed: {e}", subject=unit.code))


def run_audit(snapshot: LedgerSnapshot, as_of: date, first_digital_year: int) -> AuditReport:
    """
    Run every integrity check over a snapshot.

    Args:
        snapshot: Full dataset
        as_of: Reference date; its month is the "current" month
        first_digital_year: First year covered by digital records

    Returns:
        AuditReport with findings tagged by section (see SECTIONS)
    """
    report = AuditReport()
    labels = entity_labels(snapshot)
    current_month = month_of_date(as_of)
    calculator = DebtCalculator(current_month, first_digital_year)

    _audit_rejected_rows(snapshot, report)
    _audit_allocation_sums(snapshot, report, labels)
    _per_unit(EXPECTED_VS_PAID_CHECK, snapshot, report, _audit_unit_months, current_month)
    _audit_fee_history(snapshot, report)
    _audit_extra_charges(snapshot, report)
    _audit_orphans(snapshot, report, labels)
    _audit_owner_periods(snapshot, report)
    _per_unit(DEBT_CHECK, snapshot, report, _audit_unit_debt, calculator)
    _audit_additional(snapshot, as_of, report, labels)

    logger.info(
        "Audit as of %s: %d passed, %d warnings, %d errors",
        as_of.isoformat(),
        len(report.passed),
        len(report.warnings),
        len(report.errors),
    )
    return report
