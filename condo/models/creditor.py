"""Creditor ORM model (suppliers the building pays)."""

from decimal import Decimal

from sqlalchemy import Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo.models import Base, BaseModel


class Creditor(Base, BaseModel):
    """Model representing a supplier or service provider.

    Fixed creditors (cleaning, elevator maintenance, insurance) have an
    expected monthly due; variable ones (repairs) do not.
    """

    __tablename__ = "creditors"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        unique=True,
        comment="Creditor name",
    )
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="other",
        comment="Expense category (e.g., 'cleaning', 'electricity', 'insurance')",
    )
    amount_due: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Default monthly due when no fee history record applies",
    )
    is_fixed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Whether the creditor has a recurring expected due",
    )

    # Relationships
    fee_history: Mapped[list["FeeHistory"]] = relationship(  # noqa: F821
        "FeeHistory",
        back_populates="creditor",
        cascade="all, delete-orphan",
        order_by="FeeHistory.effective_from",
    )
    transactions: Mapped[list["Transaction"]] = relationship(  # noqa: F821
        "Transaction",
        back_populates="creditor",
    )

    def __repr__(self) -> str:
        return f"<Creditor(id={self.id}, name={self.name!r}, is_fixed={self.is_fixed})>"


__all__ = ["Creditor"]
