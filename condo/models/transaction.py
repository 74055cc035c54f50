"""Transaction ORM models: bank movements and their month allocations."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo.models import Base, BaseModel


class Transaction(Base, BaseModel):
    """Model representing a bank movement.

    Positive amounts are income (owner payments), negative amounts are
    expenses (creditor payments). A payment belongs to a unit, an expense
    usually to a creditor.
    """

    __tablename__ = "transactions"

    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="Value date",
    )
    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="",
        comment="Bank statement description",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Signed amount: positive = income, negative = expense",
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="payment",
        comment="Classification: payment, expense, fee or transfer",
    )
    unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("units.id"),
        nullable=True,
        index=True,
        comment="Paying unit (payments)",
    )
    creditor_id: Mapped[int | None] = mapped_column(
        ForeignKey("creditors.id"),
        nullable=True,
        index=True,
        comment="Paid creditor (expenses)",
    )

    # Relationships
    unit: Mapped["Unit | None"] = relationship(  # noqa: F821
        "Unit",
        back_populates="transactions",
    )
    creditor: Mapped["Creditor | None"] = relationship(  # noqa: F821
        "Creditor",
        back_populates="transactions",
    )
    month_allocations: Mapped[list["TransactionMonth"]] = relationship(
        "TransactionMonth",
        back_populates="transaction",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_transaction_date", "transaction_date"),
        Index("idx_transaction_unit", "unit_id"),
        Index("idx_transaction_creditor", "creditor_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, date={self.transaction_date}, amount={self.amount}, "
            f"type={self.type}, unit_id={self.unit_id}, creditor_id={self.creditor_id})>"
        )


class TransactionMonth(Base, BaseModel):
    """Model representing the part of a transaction assigned to a month.

    month is YYYY-MM or PREV-DEBT (legacy debt). extra_charge_id NULL means
    the allocation pays the base fee.
    """

    __tablename__ = "transaction_months"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
        index=True,
        comment="Parent transaction",
    )
    month: Mapped[str] = mapped_column(
        String(9),
        nullable=False,
        comment="Target month (YYYY-MM) or PREV-DEBT",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Allocated amount",
    )
    extra_charge_id: Mapped[int | None] = mapped_column(
        ForeignKey("extra_charges.id"),
        nullable=True,
        index=True,
        comment="Extra charge paid, NULL = base fee",
    )

    # Relationships
    transaction: Mapped["Transaction"] = relationship(
        "Transaction",
        back_populates="month_allocations",
    )

    __table_args__ = (Index("idx_transaction_month", "transaction_id", "month"),)

    def __repr__(self) -> str:
        return (
            f"<TransactionMonth(id={self.id}, transaction_id={self.transaction_id}, "
            f"month={self.month}, amount={self.amount})>"
        )


__all__ = ["Transaction", "TransactionMonth"]
