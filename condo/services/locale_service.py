"""Locale-aware money formatting for audit output and log messages.

Configuration:
    LOCALE env var (default: pt_PT) - determines currency and number formatting

Example:
    >>> from condo.services.locale_service import format_amount
    >>> format_amount(1234.56)
    '1234,56 €'
"""

import logging
import os
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal as babel_format_decimal
from babel.numbers import get_territory_currencies

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "pt_PT"
DEFAULT_CURRENCY = "EUR"


def _get_locale() -> str:
    """Get locale from environment with validation and fallback."""
    locale_str = os.getenv("LOCALE", DEFAULT_LOCALE)
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Invalid LOCALE '%s': %s. Falling back to '%s'", locale_str, e, DEFAULT_LOCALE)
        return DEFAULT_LOCALE


def _get_currency(locale_str: str) -> str:
    """Use CURRENCY when set, otherwise derive it from the locale territory."""
    explicit = os.getenv("CURRENCY")
    if explicit:
        return explicit.strip().upper()
    try:
        territory = Locale.parse(locale_str).territory
        if territory:
            currencies = get_territory_currencies(territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Could not derive currency from locale '%s': %s", locale_str, e)
    return DEFAULT_CURRENCY


# Module-level constants (computed once at import)
LOCALE = _get_locale()
CURRENCY = _get_currency(LOCALE)


def format_amount(amount: float | Decimal, include_symbol: bool = True) -> str:
    """Format monetary amount according to locale.

    Args:
        amount: Numeric amount to format
        include_symbol: Whether to include currency symbol (default True)

    Returns:
        Formatted currency string (e.g., '1234,56 €')
    """
    if include_symbol:
        return babel_format_currency(Decimal(str(amount)), CURRENCY, locale=LOCALE)
    return babel_format_decimal(Decimal(str(amount)), format="#,##0.00", locale=LOCALE)


__all__ = ["LOCALE", "CURRENCY", "format_amount"]
