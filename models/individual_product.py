"""
Individual product schemas.

One row per physically tracked, QR-coded unit of a product.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from datetime import date

from models.base import BaseSchema, TimestampMixin


class IndividualProductStatus(str, Enum):
    """Lifecycle of a tracked unit."""
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    DAMAGED = "damaged"
    IN_PRODUCTION = "in-production"
    COMPLETED = "completed"


class QualityGrade(str, Enum):
    """Final inspection grade."""
    A_PLUS = "A+"
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class IndividualProductResponse(BaseSchema, TimestampMixin):
    """Tracked unit response."""

    id: str
    product_id: str
    product_name: Optional[str] = None
    custom_id: Optional[str] = None
    qr_code: Optional[str] = None
    batch_number: Optional[str] = None
    production_batch_id: Optional[str] = None
    final_weight: Optional[str] = None
    final_thickness: Optional[str] = None
    final_width: Optional[str] = None
    final_height: Optional[str] = None
    quality_grade: Optional[str] = None
    status: str = IndividualProductStatus.AVAILABLE.value
    inspector: Optional[str] = None
    production_date: Optional[date] = None
    notes: Optional[str] = None


class IndividualProductStatusUpdate(BaseSchema):
    """Change the status of one or more units."""

    ids: list[str] = Field(..., min_length=1)
    status: IndividualProductStatus
