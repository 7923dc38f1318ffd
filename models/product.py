"""
Product schemas for validation and serialization.

A product is a finished carpet design. Its length and width (with units)
define the area of one unit, which is what recipes are scaled by.
"""

from pydantic import Field, field_validator
from typing import Optional
from enum import Enum

from models.base import BaseSchema, TimestampMixin


class StockTrackingMode(str, Enum):
    """How stock is counted for a product."""
    BULK = "bulk"
    INDIVIDUAL = "individual"


class ProductStatus(str, Enum):
    """Stock status label stored on the product row."""
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class ProductCreate(BaseSchema):
    """
    Create a new product.

    Required: name, category
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Product name",
        examples=["Royal Persian Red 8x10"]
    )
    category: str = Field(..., min_length=1, description="Product category")
    subcategory: Optional[str] = Field(None, description="Product subcategory")
    color: Optional[str] = Field(None, description="Primary color")
    pattern: Optional[str] = Field(None, description="Design pattern")
    length: Optional[float] = Field(None, ge=0, description="Length of one unit")
    width: Optional[float] = Field(None, ge=0, description="Width of one unit")
    length_unit: Optional[str] = Field("m", description="Unit of length (m, cm, feet, ...)")
    width_unit: Optional[str] = Field("m", description="Unit of width (m, cm, feet, ...)")
    weight: Optional[float] = Field(None, ge=0, description="Weight (GSM) of the carpet")
    unit: str = Field("pieces", description="Counting unit")
    individual_stock_tracking: bool = Field(
        True,
        description="Track every unit with its own QR code"
    )
    current_stock: float = Field(0, ge=0, description="Units on hand")
    min_stock_level: Optional[float] = Field(None, ge=0, description="Low stock threshold")
    max_stock_level: Optional[float] = Field(None, ge=0, description="Maximum stock level")
    reorder_point: Optional[float] = Field(None, ge=0, description="Reorder point")
    image_url: Optional[str] = Field(None, description="Product image URL")
    status: ProductStatus = Field(ProductStatus.IN_STOCK, description="Stock status")

    @field_validator("length_unit", "width_unit")
    @classmethod
    def lowercase_unit(cls, v: Optional[str]) -> Optional[str]:
        """Units are stored lowercase."""
        return v.lower() if v else v


class ProductUpdate(BaseSchema):
    """
    Update existing product.

    All fields optional - only provided fields are updated.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    color: Optional[str] = None
    pattern: Optional[str] = None
    length: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    length_unit: Optional[str] = None
    width_unit: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = None
    individual_stock_tracking: Optional[bool] = None
    min_stock_level: Optional[float] = Field(None, ge=0)
    max_stock_level: Optional[float] = Field(None, ge=0)
    reorder_point: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = None
    status: Optional[ProductStatus] = None


class ProductResponse(BaseSchema, TimestampMixin):
    """Product response with all fields."""

    id: str = Field(..., description="Product UUID")
    name: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    color: Optional[str] = None
    pattern: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    length_unit: Optional[str] = None
    width_unit: Optional[str] = None
    weight: Optional[float] = None
    unit: Optional[str] = None
    individual_stock_tracking: bool = True
    current_stock: float = 0
    min_stock_level: Optional[float] = None
    max_stock_level: Optional[float] = None
    reorder_point: Optional[float] = None
    image_url: Optional[str] = None
    status: Optional[str] = None


class ProductListResponse(BaseSchema):
    """Paginated list of products."""

    data: list[ProductResponse]
    total: int = Field(..., description="Total number of products")
    page: int = Field(1, description="Current page")
    page_size: int = Field(20, description="Items per page")
    total_pages: int = Field(..., description="Total pages")
