"""
Area (SQM) calculations for carpet dimensions.

Recipes are expressed per square meter of the parent product, so every
material quantity in production planning is scaled by the values
computed here.
"""

from typing import Any, Optional, Union

Number = Union[int, float, str, None]

SQFT_PER_SQM = 10.7639

# Multiplier that converts a value in the given unit to meters
_TO_METERS = {
    "mm": 0.001,
    "cm": 0.01,
    "centimeters": 0.01,
    "feet": 0.3048,
    "ft": 0.3048,
    "inches": 0.0254,
    "in": 0.0254,
    "yards": 0.9144,
    "yd": 0.9144,
    "m": 1.0,
    "meter": 1.0,
    "meters": 1.0,
}


def to_number(value: Number) -> float:
    """
    Parse a dimension leniently.

    Non-numeric strings and None become 0 so that a half-filled product
    form never raises.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return 0.0


def convert_to_meters(value: float, unit: Optional[str]) -> float:
    """Convert a length to meters. Unknown units are assumed to be meters."""
    factor = _TO_METERS.get((unit or "m").strip().lower(), 1.0)
    return value * factor


def calculate_sqm(
    length: Number,
    width: Number,
    length_unit: Optional[str] = "m",
    width_unit: Optional[str] = "m",
) -> float:
    """
    Area in square meters of a length x width rectangle.

    Examples:
        calculate_sqm(2, 1.5, "m", "m") -> 3.0
        calculate_sqm(10, 10, "feet", "feet") -> 9.290304
    """
    length_m = convert_to_meters(to_number(length), length_unit)
    width_m = convert_to_meters(to_number(width), width_unit)
    return length_m * width_m


def sqm_to_square_feet(sqm: float) -> float:
    return sqm * SQFT_PER_SQM


def format_sqm_with_square_feet(sqm: float) -> str:
    """Format as '3.0000 sqm (32.2917 sqft)'."""
    return f"{sqm:.4f} sqm ({sqm_to_square_feet(sqm):.4f} sqft)"


def product_sqm(product: dict[str, Any], default_unit: str = "m") -> float:
    """SQM of one unit of a product row, defaulting missing units."""
    return calculate_sqm(
        product.get("length"),
        product.get("width"),
        product.get("length_unit") or default_unit,
        product.get("width_unit") or default_unit,
    )
