"""
Indian number formatting used in notifications, exports and messages.

    1234       -> 1,234
    123456     -> 1,23,456
    250000     -> 2.50 Lac
    35000000   -> 3.50 Cr
"""

import math
from typing import Optional

LAKH = 100_000
CRORE = 10_000_000


def _group_indian(integer_digits: str) -> str:
    """Comma after the last three digits, then every two."""
    if len(integer_digits) <= 3:
        return integer_digits
    last_three = integer_digits[-3:]
    remaining = integer_digits[:-3]
    chunks = []
    while remaining:
        chunks.insert(0, remaining[-2:])
        remaining = remaining[:-2]
    return ",".join(chunks) + "," + last_three


def format_indian_number_with_decimals(value: Optional[float], max_decimals: int = 2) -> str:
    """Indian comma grouping with trailing zeros dropped."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "0.00"

    rounded = round(value, max_decimals)
    text = f"{abs(rounded):.{max_decimals}f}".rstrip("0").rstrip(".")
    integer_part, _, decimal_part = text.partition(".")

    formatted = _group_indian(integer_part)
    if rounded < 0:
        formatted = "-" + formatted
    return f"{formatted}.{decimal_part}" if decimal_part else formatted


def format_indian_number(value: float, decimals: int = 2) -> str:
    """Compact form with Lac / Cr suffixes for large values."""
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    abs_value = abs(value)

    if abs_value >= CRORE:
        return f"{sign}{abs_value / CRORE:.{decimals}f} Cr"
    if abs_value >= LAKH:
        return f"{sign}{abs_value / LAKH:.{decimals}f} Lac"
    return f"{sign}{abs_value:,.{decimals}f}"


def format_currency(value: Optional[float]) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "₹0"

    sign = "-" if value < 0 else ""
    abs_value = abs(value)

    if abs_value >= CRORE:
        return f"{sign}₹{format_indian_number_with_decimals(abs_value / CRORE)} Cr"
    if abs_value >= LAKH:
        return f"{sign}₹{format_indian_number_with_decimals(abs_value / LAKH)} Lac"
    return f"{sign}₹{format_indian_number_with_decimals(abs_value)}"


def format_quantity(value: float, unit: Optional[str] = None) -> str:
    """Quantity with up to 2 decimals and its unit, e.g. '15 kg'."""
    text = format_indian_number_with_decimals(value)
    return f"{text} {unit}" if unit else text
