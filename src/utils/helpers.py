"""
Common utility functions used across the bots and feeds.

These helpers handle edge cases from price API responses and format amounts
for alert messages.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, Optional, Union


def safe_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Safely convert an API value to Decimal.

    Price APIs return:
    - JSON floats (1.0857) that must not be rounded through binary floats again
    - String numbers "1.0857"
    - Empty strings or None for missing quotes

    Args:
        value: Value to convert (str, int, float, None, etc.)
        default: Value returned when conversion fails

    Returns:
        Decimal value or default

    Examples:
        >>> safe_decimal("1.25")
        Decimal('1.25')
        >>> safe_decimal(1.25)
        Decimal('1.25')
        >>> safe_decimal("") is None
        True
    """
    if value is None or value == "" or value == " " or isinstance(value, bool):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def format_amount(value: Union[Decimal, int, str, Any], decimals: int = 2) -> str:
    """
    Format an amount with thousands separators, truncated (not rounded)
    to the given number of decimals.

    FixedPoint values are formatted through their decimal representation.

    Examples:
        >>> format_amount(Decimal("10000"))
        '10,000.00'
        >>> format_amount(Decimal("99.999"))
        '99.99'
    """
    if hasattr(value, "to_decimal"):
        value = value.to_decimal()
    quantum = Decimal(1).scaleb(-decimals)
    truncated = Decimal(str(value)).quantize(quantum, rounding=ROUND_DOWN)
    return f"{truncated:,.{decimals}f}"
