"""
Shared money parsing utilities for order emails.

Order confirmations are parsed locale-invariantly:
- Comma as group separator: 1,234.56
- Dot as decimal point
- Currency symbols and codes are stripped
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional
import re


CENTS = Decimal('0.01')


def parse_money(amount_str: str, allow_negative: bool = False) -> Optional[Decimal]:
    """
    Parse a captured money string into a Decimal.

    Args:
        amount_str: String containing amount (e.g., "$1,234.56", "45.00")
        allow_negative: Whether to allow negative amounts

    Returns:
        Decimal amount or None if parsing fails

    Examples:
        >>> parse_money("$1,234.56")
        Decimal('1234.56')
        >>> parse_money("9.99")
        Decimal('9.99')
        >>> parse_money("(12.34)", allow_negative=True)
        Decimal('-12.34')
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    is_negative = False
    cleaned = amount_str.strip()

    # Parentheses notation for negative amounts
    if cleaned.startswith('(') and cleaned.endswith(')'):
        if not allow_negative:
            return None
        is_negative = True
        cleaned = cleaned[1:-1].strip()

    if cleaned.startswith('-'):
        if not allow_negative:
            return None
        is_negative = True
        cleaned = cleaned[1:].strip()

    # Strip currency symbols and codes ($, £, €, ¥, USD, CAD, ...)
    cleaned = re.sub(r'[$£€¥]\s*|[A-Z]{3}\s*', '', cleaned, flags=re.IGNORECASE)

    # Group separators and stray spaces
    cleaned = cleaned.replace(',', '').replace(' ', '')

    if not cleaned:
        return None

    try:
        result = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None

    if not result.is_finite():
        return None

    return -result if is_negative else result


def round_price(amount: Decimal) -> Decimal:
    """Round to two fractional digits, half-up (12.345 -> 12.35)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(amount: Optional[Decimal], currency: str = 'USD') -> str:
    """
    Format Decimal amount as money string.

    Examples:
        >>> format_money(Decimal('1234.56'))
        '$1,234.56'
        >>> format_money(Decimal('1234.56'), 'EUR')
        '€1,234.56'
    """
    if amount is None:
        return 'N/A'

    symbol_map = {
        'USD': '$',
        'CAD': '$',
        'EUR': '€',
        'GBP': '£',
        'JPY': '¥',
        'AUD': '$',
    }
    symbol = symbol_map.get(currency.upper(), currency)

    return f"{symbol}{round_price(amount):,}"
