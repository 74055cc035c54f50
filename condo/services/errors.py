"""Exception classes for the ledger engine and its collaborators.

Data-integrity problems (overlapping fee records, unbalanced allocations,
orphaned rows) are never raised: they are returned as findings. Exceptions are
reserved for malformed input at the parsing boundary and for lookups that
cannot be satisfied.
"""


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class InputFormatError(LedgerError, ValueError):
    """A raw value could not be parsed into an engine value."""

    pass


class MonthFormatError(InputFormatError):
    """Month is not a valid YYYY-MM value (or PREV-DEBT where allowed)."""

    pass


class AmountFormatError(InputFormatError):
    """Amount is missing, non-numeric or not finite."""

    pass


class EntityNotFoundError(LedgerError):
    """Requested unit, creditor or owner does not exist."""

    pass


class ConfigError(LedgerError):
    """Configuration loading or validation error."""

    pass
