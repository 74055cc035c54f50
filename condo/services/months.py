"""Month and money parsing utilities.

Months are "YYYY-MM" strings. Zero-padded values sort lexicographically in
chronological order, so range checks are plain string comparisons once a value
has passed ``parse_month``. Allocations may also target ``PREV_DEBT``, the
sentinel for legacy balances that predate the digital records.

All money comparisons use ``MONEY_EPSILON`` (one cent).

Example:
    >>> parse_month("2024-03")
    '2024-03'
    >>> next_month("2024-12")
    '2025-01'
    >>> parse_amount("37.50")
    Decimal('37.50')
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterator

from condo.services.errors import AmountFormatError, MonthFormatError

PREV_DEBT = "PREV-DEBT"
MONEY_EPSILON = Decimal("0.01")
ZERO = Decimal("0")

_MONTH_RE = re.compile(r"(\d{4})-(\d{2})", re.ASCII)


def parse_month(value: object) -> str:
    """
    Validate a "YYYY-MM" month value.

    Args:
        value: Candidate month string

    Returns:
        The month string, unchanged

    Raises:
        MonthFormatError: If value is not a string of the form YYYY-MM with month 01..12
    """
    if not isinstance(value, str):
        raise MonthFormatError(f"Cannot parse month {value!r}: expected 'YYYY-MM' string")
    match = _MONTH_RE.fullmatch(value)
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise MonthFormatError(f"Cannot parse month {value!r}: expected 'YYYY-MM'")
    return value


def parse_optional_month(value: object) -> str | None:
    """Like ``parse_month`` but None and blank strings mean "open-ended"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_month(value)


def parse_allocation_month(value: object) -> str:
    """Validate an allocation target: a calendar month or ``PREV_DEBT``."""
    if value == PREV_DEBT:
        return PREV_DEBT
    return parse_month(value)


def parse_amount(value: object) -> Decimal:
    """
    Convert a raw amount to Decimal.

    Floats go through ``str()`` so that 37.5 becomes Decimal('37.5') rather than
    its binary expansion.

    Raises:
        AmountFormatError: If value is None, boolean, non-numeric or not finite
    """
    if value is None or isinstance(value, bool):
        raise AmountFormatError(f"Cannot parse amount {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise AmountFormatError(f"Cannot parse amount {value!r}") from e
    else:
        raise AmountFormatError(f"Cannot parse amount {value!r}: unsupported type")
    if not result.is_finite():
        raise AmountFormatError(f"Cannot parse amount {value!r}: not a finite number")
    return result


def month_of(year: int, month: int) -> str:
    """Build a month string from its parts."""
    return f"{year:04d}-{month:02d}"


def month_of_date(value: date) -> str:
    """Calendar month containing a date."""
    return month_of(value.year, value.month)


def year_of(month: str) -> int:
    return int(month[:4])


def _index(month: str) -> int:
    return int(month[:4]) * 12 + int(month[5:7]) - 1


def _from_index(index: int) -> str:
    return month_of(index // 12, index % 12 + 1)


def next_month(month: str) -> str:
    return _from_index(_index(month) + 1)


def previous_month(month: str) -> str:
    return _from_index(_index(month) - 1)


def months_between(start: str, end: str) -> int:
    """Inclusive number of months from start to end (0 when end precedes start)."""
    return max(0, _index(end) - _index(start) + 1)


def iter_months(start: str, end: str) -> Iterator[str]:
    """Yield every month from start to end inclusive."""
    for index in range(_index(start), _index(end) + 1):
        yield _from_index(index)


def months_of_year(year: int, through: int = 12) -> list[str]:
    """Months 1..through of a calendar year."""
    return [month_of(year, m) for m in range(1, through + 1)]


def is_month_in_range(month: str, start: str | None, end: str | None) -> bool:
    """Inclusive range check; a None bound is open."""
    if start and month < start:
        return False
    if end and month > end:
        return False
    return True


def exceeds(value: Decimal, threshold: Decimal = ZERO) -> bool:
    """True when value is larger than threshold by more than one cent."""
    return value - threshold > MONEY_EPSILON


def money_equal(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) <= MONEY_EPSILON
