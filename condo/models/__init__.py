"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from condo.models.creditor import Creditor  # noqa: E402
from condo.models.extra_charge import ExtraCharge  # noqa: E402
from condo.models.fee_history import FeeHistory  # noqa: E402
from condo.models.owner import Owner  # noqa: E402
from condo.models.transaction import Transaction, TransactionMonth  # noqa: E402
from condo.models.unit import Unit  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "Unit",
    "Owner",
    "Creditor",
    "FeeHistory",
    "ExtraCharge",
    "Transaction",
    "TransactionMonth",
]
