"""Owner ORM model: who owned a unit during which months."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo.models import Base, BaseModel


class Owner(Base, BaseModel):
    """Model representing one ownership period of a unit.

    start_month NULL means "since the beginning", end_month NULL means the
    current owner. previous_debt is the legacy balance recorded when the
    owner took over.
    """

    __tablename__ = "owners"

    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
        comment="Owned unit",
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Owner display name",
    )
    start_month: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
        comment="First owned month (YYYY-MM), NULL = since the beginning",
    )
    end_month: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
        comment="Last owned month (YYYY-MM), NULL = current owner",
    )
    previous_debt: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Legacy debt from before the digital records",
    )

    # Relationships
    unit: Mapped["Unit"] = relationship(  # noqa: F821
        "Unit",
        back_populates="owners",
    )

    __table_args__ = (Index("idx_owner_unit_start", "unit_id", "start_month"),)

    def __repr__(self) -> str:
        return (
            f"<Owner(id={self.id}, unit_id={self.unit_id}, name={self.name!r}, "
            f"start={self.start_month}, end={self.end_month})>"
        )


__all__ = ["Owner"]
