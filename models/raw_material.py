"""
Raw material schemas for validation and serialization.
"""

from pydantic import Field
from typing import Optional
from enum import Enum

from models.base import BaseSchema, TimestampMixin


class RawMaterialStatus(str, Enum):
    """Stock status of a raw material."""
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"
    IN_TRANSIT = "in-transit"


class StockOperation(str, Enum):
    """Direction of a stock adjustment."""
    ADD = "add"
    SUBTRACT = "subtract"


class RawMaterialCreate(BaseSchema):
    """
    Create a raw material.

    Required: name, category, unit
    """

    name: str = Field(..., min_length=1, max_length=200, description="Material name")
    type: Optional[str] = Field(None, description="Material type (yarn, dye, backing, ...)")
    category: str = Field(..., min_length=1, description="Material category")
    color: Optional[str] = None
    supplier_name: Optional[str] = Field(None, description="Default supplier")
    batch_number: Optional[str] = None
    quality_grade: Optional[str] = None
    unit: str = Field(..., min_length=1, description="Stock unit (kg, liters, rolls, ...)")
    current_stock: float = Field(0, ge=0, description="Quantity on hand")
    min_threshold: Optional[float] = Field(None, ge=0, description="Low stock threshold")
    max_capacity: Optional[float] = Field(None, ge=0)
    reorder_point: Optional[float] = Field(None, ge=0)
    cost_per_unit: Optional[float] = Field(None, ge=0)


class RawMaterialUpdate(BaseSchema):
    """Update raw material. Only provided fields are updated."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    supplier_name: Optional[str] = None
    batch_number: Optional[str] = None
    quality_grade: Optional[str] = None
    unit: Optional[str] = None
    min_threshold: Optional[float] = Field(None, ge=0)
    max_capacity: Optional[float] = Field(None, ge=0)
    reorder_point: Optional[float] = Field(None, ge=0)
    cost_per_unit: Optional[float] = Field(None, ge=0)
    status: Optional[RawMaterialStatus] = None


class RawMaterialResponse(BaseSchema, TimestampMixin):
    """Raw material response."""

    id: str
    name: str
    type: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    supplier_name: Optional[str] = None
    batch_number: Optional[str] = None
    quality_grade: Optional[str] = None
    unit: Optional[str] = None
    current_stock: float = 0
    min_threshold: Optional[float] = None
    max_capacity: Optional[float] = None
    reorder_point: Optional[float] = None
    cost_per_unit: Optional[float] = None
    status: Optional[str] = None


class StockAdjustment(BaseSchema):
    """Manual or workflow-driven stock change."""

    quantity: float = Field(..., gt=0, description="Amount to add or subtract")
    operation: StockOperation = Field(..., description="add or subtract")
    reason: Optional[str] = Field(None, description="Why the stock changed")


class MaterialImportResult(BaseSchema):
    """Outcome of a CSV/Excel material import."""

    created: int = Field(0, description="Rows inserted")
    errors: list[str] = Field(default_factory=list, description="Per-row problems")
