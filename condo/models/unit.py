"""Unit ORM model (apartment, shop or garage in the building)."""

from decimal import Decimal

from sqlalchemy import Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo.models import Base, BaseModel


class Unit(Base, BaseModel):
    """Model representing a unit that pays monthly condominium fees.

    ``monthly_fee`` is the default fee, used for any month not covered by a
    fee history record.
    """

    __tablename__ = "units"

    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        comment="Unit code (e.g., '1A', 'Garagem')",
    )
    description: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
        comment="Optional free-text description",
    )
    monthly_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Default monthly fee when no fee history record applies",
    )

    # Relationships
    owners: Mapped[list["Owner"]] = relationship(  # noqa: F821
        "Owner",
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by="Owner.start_month",
    )
    fee_history: Mapped[list["FeeHistory"]] = relationship(  # noqa: F821
        "FeeHistory",
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by="FeeHistory.effective_from",
    )
    transactions: Mapped[list["Transaction"]] = relationship(  # noqa: F821
        "Transaction",
        back_populates="unit",
    )

    __table_args__ = (Index("idx_unit_code", "code"),)

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, code={self.code!r}, monthly_fee={self.monthly_fee})>"


__all__ = ["Unit"]
