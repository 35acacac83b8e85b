"""
Money Helpers

Decimal conversion, cent rounding and display formatting for USD amounts.
NEVER uses float for monetary values: inputs coming from JSON or forms are
converted through str() before reaching Decimal.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable

ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_decimal(value: Any) -> Decimal:
    """
    Convert a value to Decimal.

    None and empty strings become zero, which mirrors how blank form fields
    are treated by the collection screens.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid monetary amount: {value!r}")


def round_cents(amount: Decimal) -> Decimal:
    """Round to whole cents, half-up"""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    """Sum Decimals starting from an exact zero"""
    total = ZERO
    for amount in amounts:
        total += to_decimal(amount)
    return total


def amounts_match(a: Decimal, b: Decimal, tolerance: Decimal = CENT) -> bool:
    """Check whether two amounts are equal within tolerance, inclusive"""
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance


def format_currency(amount: Decimal, symbol: str = "$") -> str:
    """
    Format for display, e.g. "$1,234.50" or "-$20.00".

    Display only: nothing in the engine parses these strings back.
    """
    rounded = round_cents(amount)
    sign = "-" if rounded < ZERO else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"
