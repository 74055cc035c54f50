"""Extra charge ORM model: charges layered on top of the base fee."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from condo.models import Base, BaseModel


class ExtraCharge(Base, BaseModel):
    """Model representing a recurring or time-boxed extra charge.

    unit_id NULL makes the charge global (every unit pays it).
    """

    __tablename__ = "extra_charges"

    unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("units.id"),
        nullable=True,
        index=True,
        comment="Unit the charge applies to, NULL = all units",
    )
    description: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Charge description (e.g., 'Obras fachada')",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Monthly amount",
    )
    effective_from: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="First month charged (YYYY-MM)",
    )
    effective_to: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
        comment="Last month charged (YYYY-MM), NULL = ongoing",
    )

    __table_args__ = (Index("idx_extra_charge_scope", "unit_id", "description"),)

    def __repr__(self) -> str:
        return (
            f"<ExtraCharge(id={self.id}, unit_id={self.unit_id}, description={self.description!r}, "
            f"amount={self.amount})>"
        )


__all__ = ["ExtraCharge"]
