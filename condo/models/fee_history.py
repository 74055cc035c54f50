"""Fee history ORM model: effective-dated base fees and creditor dues."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo.models import Base, BaseModel


class FeeHistory(Base, BaseModel):
    """
    Model representing an amount valid over a range of months.

    Belongs to either a unit (base fee) or a creditor (recurring due).
    A record is superseded by closing its effective_to, never deleted.
    """

    __tablename__ = "fee_history"

    unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("units.id"),
        nullable=True,
        index=True,
        comment="Unit whose base fee this is",
    )
    creditor_id: Mapped[int | None] = mapped_column(
        ForeignKey("creditors.id"),
        nullable=True,
        index=True,
        comment="Creditor whose due this is",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Monthly amount",
    )
    effective_from: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="First month the amount applies (YYYY-MM)",
    )
    effective_to: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
        comment="Last month the amount applies (YYYY-MM), NULL = ongoing",
    )

    # Relationships
    unit: Mapped["Unit | None"] = relationship(  # noqa: F821
        "Unit",
        back_populates="fee_history",
    )
    creditor: Mapped["Creditor | None"] = relationship(  # noqa: F821
        "Creditor",
        back_populates="fee_history",
    )

    __table_args__ = (
        Index("idx_fee_history_unit", "unit_id", "effective_from"),
        Index("idx_fee_history_creditor", "creditor_id", "effective_from"),
    )

    def __repr__(self) -> str:
        return (
            f"<FeeHistory(id={self.id}, unit_id={self.unit_id}, creditor_id={self.creditor_id}, "
            f"amount={self.amount}, from={self.effective_from}, to={self.effective_to})>"
        )


__all__ = ["FeeHistory"]
