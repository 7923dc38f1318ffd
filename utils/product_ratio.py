"""
Ratio between a parent product and a product used as its material.

Example: a 3 SQM rug backed with a 1.5 SQM underlay roll needs
1 / 1.5 = 0.6667 rolls of underlay per SQM of rug.
"""

import math
from typing import Any, Optional

from utils.sqm_calculator import calculate_sqm


def _has_units(product: dict[str, Any]) -> bool:
    return bool(product.get("length_unit") and product.get("width_unit"))


def calculate_product_ratio(
    source_product: dict[str, Any],
    target_product: Optional[dict[str, Any]] = None,
) -> float:
    """
    Units of source_product consumed per 1 SQM of target_product.

    Returns 0 when either product is missing a dimension unit or the
    source area is 0. Callers must check is_usable_ratio() before using
    the result.
    """
    if not _has_units(source_product):
        return 0.0
    if target_product is not None and not _has_units(target_product):
        return 0.0

    source_sqm = calculate_sqm(
        source_product.get("length"),
        source_product.get("width"),
        source_product["length_unit"],
        source_product["width_unit"],
    )
    if source_sqm <= 0:
        return 0.0
    return 1 / source_sqm


def is_usable_ratio(ratio: Optional[float]) -> bool:
    """A ratio can drive auto-calculation only if positive and finite."""
    if ratio is None:
        return False
    return ratio > 0 and not math.isnan(ratio) and math.isfinite(ratio)
