"""Immutable engine records.

These are the plain values the reconciliation engine works on. They are built
from ORM rows by ``SnapshotLoader`` (or directly in tests) and never mutated:
every field is validated and normalized in ``__post_init__``, so malformed
months or amounts fail at construction time instead of corrupting sums later.

Sign convention for allocations: an allocation amount is expressed in the
direction of its parent transaction. Expense allocations are normalized to
their absolute value here (rows stored signed or unsigned both load the same);
income allocations keep their sign so a negative row under a payment stays
visible to the audit.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import NamedTuple

from condo.services.months import (
    PREV_DEBT,
    ZERO,
    is_month_in_range,
    parse_allocation_month,
    parse_amount,
    parse_month,
    parse_optional_month,
)

EntityId = int | str


class EntityKind(str, Enum):
    """Owner of fee history and allocations."""

    UNIT = "unit"
    CREDITOR = "creditor"


class EntityRef(NamedTuple):
    """Reference to a unit or creditor."""

    kind: EntityKind
    id: EntityId

    @classmethod
    def unit(cls, unit_id: EntityId) -> "EntityRef":
        return cls(EntityKind.UNIT, unit_id)

    @classmethod
    def creditor(cls, creditor_id: EntityId) -> "EntityRef":
        return cls(EntityKind.CREDITOR, creditor_id)


class TransactionType(str, Enum):
    """Bank transaction classification."""

    PAYMENT = "payment"
    EXPENSE = "expense"
    FEE = "fee"
    TRANSFER = "transfer"


class AllocationKind(str, Enum):
    """Direction of the money an allocation carries."""

    INCOME = "income"
    """Part of a positive transaction (owner paying the building)"""

    EXPENSE = "expense"
    """Part of a negative transaction (building paying a creditor)"""


def kind_for_amount(amount: Decimal) -> AllocationKind:
    return AllocationKind.EXPENSE if amount < 0 else AllocationKind.INCOME


@dataclass(frozen=True)
class RateRecord:
    """Effective-dated base fee (unit) or recurring due (creditor)."""

    amount: Decimal
    effective_from: str
    effective_to: str | None = None
    id: EntityId | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", parse_amount(self.amount))
        object.__setattr__(self, "effective_from", parse_month(self.effective_from))
        object.__setattr__(self, "effective_to", parse_optional_month(self.effective_to))

    @property
    def is_open_ended(self) -> bool:
        return self.effective_to is None

    def covers(self, month: str) -> bool:
        return is_month_in_range(month, self.effective_from, self.effective_to)


@dataclass(frozen=True)
class ExtraChargeRecord:
    """Additional charge layered on the base fee, global or unit-scoped."""

    amount: Decimal
    effective_from: str
    effective_to: str | None = None
    unit_id: EntityId | None = None
    description: str = ""
    id: EntityId | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", parse_amount(self.amount))
        object.__setattr__(self, "effective_from", parse_month(self.effective_from))
        object.__setattr__(self, "effective_to", parse_optional_month(self.effective_to))

    @property
    def is_global(self) -> bool:
        return self.unit_id is None

    @property
    def is_open_ended(self) -> bool:
        return self.effective_to is None

    @property
    def scope_key(self) -> tuple[str, EntityId | None]:
        """Identity of the conceptual charge: same description within the same scope."""
        return (self.description, self.unit_id)

    def applies_to(self, entity_id: EntityId | None) -> bool:
        return self.is_global or self.unit_id == entity_id

    def covers(self, month: str) -> bool:
        return is_month_in_range(month, self.effective_from, self.effective_to)


@dataclass(frozen=True)
class Allocation:
    """Assignment of part of a transaction to a month and charge category.

    ``extra_charge_id`` None means the base-fee category. ``entity`` and ``kind``
    are copied from the parent transaction at ingestion; rows whose parent no
    longer exists keep ``entity`` None and take their kind from their own sign.
    """

    month: str
    amount: Decimal
    kind: AllocationKind = AllocationKind.INCOME
    extra_charge_id: EntityId | None = None
    transaction_id: EntityId | None = None
    entity: EntityRef | None = None
    id: EntityId | None = None

    def __post_init__(self) -> None:
        amount = parse_amount(self.amount)
        kind = AllocationKind(self.kind)
        if kind is AllocationKind.EXPENSE:
            amount = abs(amount)
        object.__setattr__(self, "month", parse_allocation_month(self.month))
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "kind", kind)

    @property
    def is_prev_debt(self) -> bool:
        return self.month == PREV_DEBT

    @property
    def year(self) -> int | None:
        return None if self.is_prev_debt else int(self.month[:4])


@dataclass(frozen=True)
class LedgerTransaction:
    """Bank movement with zero or more month allocations."""

    id: EntityId
    amount: Decimal
    date: date
    type: TransactionType = TransactionType.PAYMENT
    entity: EntityRef | None = None
    description: str = ""
    allocations: tuple[Allocation, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", parse_amount(self.amount))
        object.__setattr__(self, "type", TransactionType(self.type))
        object.__setattr__(self, "allocations", tuple(self.allocations))

    @property
    def kind(self) -> AllocationKind:
        return kind_for_amount(self.amount)

    @property
    def is_income(self) -> bool:
        return self.amount > ZERO

    def allocate(
        self,
        month: str,
        amount: Decimal | float | int | str,
        extra_charge_id: EntityId | None = None,
        allocation_id: EntityId | None = None,
    ) -> Allocation:
        """Build an allocation bound to this transaction (not attached)."""
        return Allocation(
            month=month,
            amount=amount,
            kind=self.kind,
            extra_charge_id=extra_charge_id,
            transaction_id=self.id,
            entity=self.entity,
            id=allocation_id,
        )

    def with_allocations(self, *allocations: Allocation) -> "LedgerTransaction":
        """Copy of this transaction carrying the given allocations."""
        return replace(self, allocations=tuple(allocations))


@dataclass(frozen=True)
class OwnerPeriod:
    """Ownership of a unit over a month range, with its legacy balance."""

    name: str
    start_month: str | None = None
    end_month: str | None = None
    previous_debt: Decimal = ZERO
    id: EntityId | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_month", parse_optional_month(self.start_month))
        object.__setattr__(self, "end_month", parse_optional_month(self.end_month))
        object.__setattr__(self, "previous_debt", parse_amount(self.previous_debt))

    @property
    def is_current(self) -> bool:
        return self.end_month is None

    def covers(self, month: str) -> bool:
        return is_month_in_range(month, self.start_month, self.end_month)


@dataclass(frozen=True)
class UnitRecord:
    """Unit snapshot: default fee, fee history and owner history."""

    id: EntityId
    code: str
    monthly_fee: Decimal = ZERO
    fee_history: tuple[RateRecord, ...] = ()
    owners: tuple[OwnerPeriod, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "monthly_fee", parse_amount(self.monthly_fee))
        object.__setattr__(self, "fee_history", tuple(self.fee_history))
        object.__setattr__(self, "owners", tuple(self.owners))

    @property
    def entity(self) -> EntityRef:
        return EntityRef.unit(self.id)

    def owner(self, owner_id: EntityId) -> OwnerPeriod | None:
        return next((o for o in self.owners if o.id == owner_id), None)


@dataclass(frozen=True)
class CreditorRecord:
    """Creditor snapshot. Only fixed creditors have expected monthly dues."""

    id: EntityId
    name: str
    amount_due: Decimal = ZERO
    fee_history: tuple[RateRecord, ...] = ()
    is_fixed: bool = False
    category: str = "other"

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount_due", parse_amount(self.amount_due))
        object.__setattr__(self, "fee_history", tuple(self.fee_history))

    @property
    def entity(self) -> EntityRef:
        return EntityRef.creditor(self.id)


class RejectedRecord(NamedTuple):
    """Row that failed boundary parsing and was left out of the snapshot."""

    table: str
    row_id: EntityId | None
    reason: str


@dataclass(frozen=True)
class LedgerSnapshot:
    """Everything a dataset-wide computation needs, fetched in one go."""

    units: tuple[UnitRecord, ...] = ()
    creditors: tuple[CreditorRecord, ...] = ()
    extra_charges: tuple[ExtraChargeRecord, ...] = ()
    transactions: tuple[LedgerTransaction, ...] = ()
    allocations: tuple[Allocation, ...] = ()
    rejected: tuple[RejectedRecord, ...] = field(default=())

    def unit(self, unit_id: EntityId) -> UnitRecord | None:
        return next((u for u in self.units if u.id == unit_id), None)

    def creditor(self, creditor_id: EntityId) -> CreditorRecord | None:
        return next((c for c in self.creditors if c.id == creditor_id), None)

    def extra_charges_for_unit(self, unit_id: EntityId) -> list[ExtraChargeRecord]:
        return [charge for charge in self.extra_charges if charge.applies_to(unit_id)]

    def allocations_for(self, entity: EntityRef) -> list[Allocation]:
        return [a for a in self.allocations if a.entity == entity]
