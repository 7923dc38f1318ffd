"""
Stock status labels and material availability classification.
"""

from typing import Optional

# Manually set statuses that stock changes never overwrite
PASSTHROUGH_STATUSES = {"inactive", "discontinued"}


def calculate_stock_status(
    current_stock: float,
    min_level: Optional[float],
    status: Optional[str] = None,
) -> str:
    """
    Derive the stock status label.

    Rules:
    - inactive / discontinued are kept as-is
    - stock <= 0 -> out-of-stock
    - stock below min_level -> low-stock
    - otherwise in-stock
    """
    if status in PASSTHROUGH_STATUSES:
        return status
    if current_stock <= 0:
        return "out-of-stock"
    if min_level is not None and current_stock < min_level:
        return "low-stock"
    return "in-stock"


def classify_material_availability(required: float, available: float) -> tuple[str, float]:
    """
    Compare a material requirement with what is on hand.

    Returns:
        (status, shortage) where status is available / low / unavailable
        and shortage = max(0, required - available)
    """
    shortage = max(0.0, required - available)
    if shortage == 0:
        return "available", 0.0
    if available <= 0:
        return "unavailable", shortage
    return "low", shortage
