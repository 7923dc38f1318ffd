"""
Unit conversion and price calculation for carpet order lines.

Supported pricing units:
    unit  - flat price per product
    sqm   - price per square meter of the product
    sqft  - price per square foot of the product
    gsm   - price per gram-per-square-meter
    kg    - price per kilogram (weight derived from GSM and area)
"""

import re
from typing import Any, Optional

from utils.sqm_calculator import convert_to_meters

SQFT_PER_SQM = 10.764

_TO_FEET = {
    "mm": 1 / 304.8,
    "cm": 1 / 30.48,
    "centimeters": 1 / 30.48,
    "m": 3.28084,
    "meter": 3.28084,
    "meters": 3.28084,
    "inches": 1 / 12,
    "in": 1 / 12,
    "yards": 3.0,
    "yd": 3.0,
    "feet": 1.0,
    "ft": 1.0,
}

_AREA_UNITS = {"sqm", "sqft"}


def convert_area(value: float, from_unit: str, to_unit: str) -> float:
    """Convert an area between sqm and sqft."""
    if from_unit not in _AREA_UNITS or to_unit not in _AREA_UNITS:
        raise ValueError(f"Unsupported area unit: {from_unit} -> {to_unit}")
    if from_unit == to_unit:
        return value
    if from_unit == "sqm":
        return value * SQFT_PER_SQM
    return value / SQFT_PER_SQM


def convert_to_feet(value: float, unit: Optional[str]) -> float:
    """Convert a length to feet. Unknown units are assumed to be feet."""
    return value * _TO_FEET.get((unit or "ft").strip().lower(), 1.0)


def _parse_gsm(dimensions: dict[str, Any]) -> float:
    gsm = dimensions.get("gsm")
    if gsm:
        return float(gsm)
    # weight is sometimes stored as text like "650 GSM"
    raw = re.sub(r"[^\d.-]", "", str(dimensions.get("weight") or "0"))
    try:
        return float(raw) if raw else 0.0
    except ValueError:
        return 0.0


def calculate_total_price(
    unit_price: float,
    quantity: float,
    pricing_unit: str,
    dimensions: Optional[dict[str, Any]] = None,
    length_unit: Optional[str] = None,
    width_unit: Optional[str] = None,
) -> float:
    """
    Line total for quantity products priced in pricing_unit.

    Falls back to unit_price * quantity whenever the dimensions needed
    for the pricing unit are missing.
    """
    dimensions = dimensions or {}
    flat = unit_price * quantity
    length = dimensions.get("length")
    width = dimensions.get("width")

    if pricing_unit == "sqm":
        if not length or not width:
            return flat
        sqm = convert_to_meters(length, length_unit or "m") * convert_to_meters(width, width_unit or "m")
        return unit_price * sqm * quantity

    if pricing_unit == "sqft":
        if not length or not width:
            return flat
        sqft = convert_to_feet(length, length_unit or "m") * convert_to_feet(width, width_unit or "m")
        return unit_price * sqft * quantity

    if pricing_unit in ("gsm", "kg"):
        gsm = _parse_gsm(dimensions)
        if gsm <= 0:
            return flat
        if not length or not width:
            return unit_price * gsm * quantity if pricing_unit == "gsm" else flat
        sqm = convert_to_meters(length, length_unit or "m") * convert_to_meters(width, width_unit or "m")
        if pricing_unit == "gsm":
            return unit_price * gsm * sqm * quantity
        weight_kg = gsm * sqm / 1000
        return unit_price * weight_kg * quantity

    return flat
