"""Snapshot loading: ORM rows to immutable engine records.

Every row goes through the parsing boundary here. A row with a malformed
month or amount is logged, recorded as a ``RejectedRecord`` and skipped; the
rest of the dataset still loads. Allocations are queried on their own (not
through their transaction) so rows pointing at a missing transaction stay
visible to the audit.
"""

import logging
from typing import Callable, Iterable, TypeVar

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from condo.models.creditor import Creditor
from condo.models.extra_charge import ExtraCharge
from condo.models.fee_history import FeeHistory
from condo.models.owner import Owner
from condo.models.transaction import Transaction, TransactionMonth
from condo.models.unit import Unit
from condo.services.errors import EntityNotFoundError
from condo.services.months import ZERO, parse_amount
from condo.services.records import (
    Allocation,
    CreditorRecord,
    EntityRef,
    ExtraChargeRecord,
    LedgerSnapshot,
    LedgerTransaction,
    OwnerPeriod,
    RateRecord,
    RejectedRecord,
    UnitRecord,
    kind_for_amount,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotLoader:
    """Build ``LedgerSnapshot`` values from a database session."""

    def __init__(self, session: Session):
        """Initialize with database session.

        Args:
            session: Session used for all queries; it is not committed or closed
        """
        self.session = session
        self.rejected: list[RejectedRecord] = []

    def _convert(self, table: str, row_id, build: Callable[[], T]) -> T | None:
        try:
            return build()
        except ValueError as e:
            logger.warning("Skipping %s row %s: %s", table, row_id, e)
            self.rejected.append(RejectedRecord(table, row_id, str(e)))
            return None

    def _rate_records(self, rows: Iterable[FeeHistory]) -> tuple[RateRecord, ...]:
        records = (
            self._convert(
                "fee_history",
                row.id,
                lambda row=row: RateRecord(
                    amount=row.amount,
                    effective_from=row.effective_from,
                    effective_to=row.effective_to,
                    id=row.id,
                ),
            )
            for row in rows
        )
        return tuple(r for r in records if r is not None)

    def _owner_periods(self, rows: Iterable[Owner]) -> tuple[OwnerPeriod, ...]:
        periods = (
            self._convert(
                "owners",
                row.id,
                lambda row=row: OwnerPeriod(
                    name=row.name,
                    start_month=row.start_month,
                    end_month=row.end_month,
                    previous_debt=row.previous_debt if row.previous_debt is not None else ZERO,
                    id=row.id,
                ),
            )
            for row in rows
        )
        return tuple(p for p in periods if p is not None)

    def _unit(self, row: Unit) -> UnitRecord | None:
        return self._convert(
            "units",
            row.id,
            lambda: UnitRecord(
                id=row.id,
                code=row.code,
                monthly_fee=parse_amount(row.monthly_fee),
                fee_history=self._rate_records(row.fee_history),
                owners=self._owner_periods(row.owners),
                description=row.description or "",
            ),
        )

    def _creditor(self, row: Creditor) -> CreditorRecord | None:
        return self._convert(
            "creditors",
            row.id,
            lambda: CreditorRecord(
                id=row.id,
                name=row.name,
                amount_due=row.amount_due if row.amount_due is not None else ZERO,
                fee_history=self._rate_records(row.fee_history),
                is_fixed=bool(row.is_fixed),
                category=row.category or "other",
            ),
        )

    def _extra_charge(self, row: ExtraCharge) -> ExtraChargeRecord | None:
        return self._convert(
            "extra_charges",
            row.id,
            lambda: ExtraChargeRecord(
                amount=row.amount,
                effective_from=row.effective_from,
                effective_to=row.effective_to,
                unit_id=row.unit_id,
                description=row.description,
                id=row.id,
            ),
        )

    def _transaction(self, row: Transaction) -> LedgerTransaction | None:
        if row.unit_id is not None:
            entity = EntityRef.unit(row.unit_id)
        elif row.creditor_id is not None:
            entity = EntityRef.creditor(row.creditor_id)
        else:
            entity = None
        return self._convert(
            "transactions",
            row.id,
            lambda: LedgerTransaction(
                id=row.id,
                amount=row.amount,
                date=row.transaction_date,
                type=row.type,
                entity=entity,
                description=row.description or "",
            ),
        )

    def _allocation(
        self, row: TransactionMonth, parents: dict[int, LedgerTransaction]
    ) -> Allocation | None:
        parent = parents.get(row.transaction_id)
        if parent is not None:
            return self._convert(
                "transaction_months",
                row.id,
                lambda: parent.allocate(row.month, row.amount, row.extra_charge_id, row.id),
            )

        def orphan() -> Allocation:
            amount = parse_amount(row.amount)
            return Allocation(
                month=row.month,
                amount=amount,
                kind=kind_for_amount(amount),
                extra_charge_id=row.extra_charge_id,
                transaction_id=row.transaction_id,
                id=row.id,
            )

        return self._convert("transaction_months", row.id, orphan)

    def _assemble(
        self,
        units: list[UnitRecord | None],
        creditors: list[CreditorRecord | None],
        charge_rows: Iterable[ExtraCharge],
        tx_rows: Iterable[Transaction],
        allocation_rows: Iterable[TransactionMonth],
        rejected_tx_ids: set[int] | None = None,
    ) -> LedgerSnapshot:
        charges = [self._extra_charge(row) for row in charge_rows]

        parents: dict[int, LedgerTransaction] = {}
        rejected_tx_ids = set(rejected_tx_ids or ())
        for row in tx_rows:
            tx = self._transaction(row)
            if tx is None:
                rejected_tx_ids.add(row.id)
            else:
                parents[tx.id] = tx

        allocations = []
        by_transaction: dict[int, list[Allocation]] = {}
        for row in allocation_rows:
            if row.transaction_id in rejected_tx_ids:
                self.rejected.append(
                    RejectedRecord("transaction_months", row.id, "parent transaction was rejected")
                )
                continue
            allocation = self._allocation(row, parents)
            if allocation is None:
                continue
            allocations.append(allocation)
            by_transaction.setdefault(allocation.transaction_id, []).append(allocation)

        transactions = tuple(
            tx.with_allocations(*by_transaction.get(tx.id, ())) for tx in parents.values()
        )
        snapshot = LedgerSnapshot(
            units=tuple(u for u in units if u is not None),
            creditors=tuple(c for c in creditors if c is not None),
            extra_charges=tuple(c for c in charges if c is not None),
            transactions=transactions,
            allocations=tuple(allocations),
            rejected=tuple(self.rejected),
        )
        logger.debug(
            "Loaded snapshot: %d units, %d creditors, %d transactions, %d allocations, %d rejected",
            len(snapshot.units),
            len(snapshot.creditors),
            len(snapshot.transactions),
            len(snapshot.allocations),
            len(snapshot.rejected),
        )
        return snapshot

    def load(self) -> LedgerSnapshot:
        """Load the whole dataset."""
        self.rejected = []
        unit_rows = (
            self.session.execute(
                select(Unit)
                .options(selectinload(Unit.fee_history), selectinload(Unit.owners))
                .order_by(Unit.code)
            )
            .scalars()
            .all()
        )
        creditor_rows = (
            self.session.execute(
                select(Creditor).options(selectinload(Creditor.fee_history)).order_by(Creditor.name)
            )
            .scalars()
            .all()
        )
        charge_rows = self.session.execute(select(ExtraCharge).order_by(ExtraCharge.id)).scalars().all()
        tx_rows = self.session.execute(select(Transaction).order_by(Transaction.id)).scalars().all()
        allocation_rows = (
            self.session.execute(select(TransactionMonth).order_by(TransactionMonth.id)).scalars().all()
        )
        return self._assemble(
            [self._unit(row) for row in unit_rows],
            [self._creditor(row) for row in creditor_rows],
            charge_rows,
            tx_rows,
            allocation_rows,
        )

    def _allocations_of(self, tx_rows: list[Transaction]) -> list[TransactionMonth]:
        tx_ids = [row.id for row in tx_rows]
        if not tx_ids:
            return []
        stmt = (
            select(TransactionMonth)
            .where(TransactionMonth.transaction_id.in_(tx_ids))
            .order_by(TransactionMonth.id)
        )
        return list(self.session.execute(stmt).scalars().all())

    def load_unit(self, unit_id: int) -> LedgerSnapshot:
        """
        Load one unit with the extra charges that apply to it and its transactions.

        Raises:
            EntityNotFoundError: If the unit does not exist
        """
        self.rejected = []
        row = self.session.get(Unit, unit_id)
        if row is None:
            raise EntityNotFoundError(f"Unit {unit_id} not found")
        unit = self._unit(row)
        if unit is None:
            raise EntityNotFoundError(f"Unit {unit_id} could not be loaded: {self.rejected[-1].reason}")

        charge_rows = (
            self.session.execute(
                select(ExtraCharge)
                .where(or_(ExtraCharge.unit_id.is_(None), ExtraCharge.unit_id == unit_id))
                .order_by(ExtraCharge.id)
            )
            .scalars()
            .all()
        )
        tx_rows = list(
            self.session.execute(
                select(Transaction).where(Transaction.unit_id == unit_id).order_by(Transaction.id)
            )
            .scalars()
            .all()
        )
        return self._assemble([unit], [], charge_rows, tx_rows, self._allocations_of(tx_rows))

    def load_creditor(self, creditor_id: int) -> LedgerSnapshot:
        """
        Load one creditor with its transactions.

        Raises:
            EntityNotFoundError: If the creditor does not exist
        """
        self.rejected = []
        row = self.session.get(Creditor, creditor_id)
        if row is None:
            raise EntityNotFoundError(f"Creditor {creditor_id} not found")
        creditor = self._creditor(row)
        if creditor is None:
            raise EntityNotFoundError(
                f"Creditor {creditor_id} could not be loaded: {self.rejected[-1].reason}"
            )

        tx_rows = list(
            self.session.execute(
                select(Transaction)
                .where(Transaction.creditor_id == creditor_id)
                .order_by(Transaction.id)
            )
            .scalars()
            .all()
        )
        return self._assemble([], [creditor], [], tx_rows, self._allocations_of(tx_rows))
