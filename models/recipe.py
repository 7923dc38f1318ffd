"""
Recipe schemas.

A recipe is the bill of materials for ONE square meter of its product.
"""

from pydantic import Field
from typing import Optional
from enum import Enum

from models.base import BaseSchema, TimestampMixin


class MaterialType(str, Enum):
    """What a recipe line consumes."""
    RAW_MATERIAL = "raw_material"
    PRODUCT = "product"


class RecipeMaterialInput(BaseSchema):
    """One line of a recipe as submitted."""

    material_id: str = Field(..., min_length=1, description="Raw material or product UUID")
    material_name: str = Field(..., min_length=1)
    material_type: MaterialType = Field(MaterialType.RAW_MATERIAL)
    quantity_per_sqm: float = Field(..., gt=0, description="Quantity per 1 SQM of the parent")
    unit: Optional[str] = None
    cost_per_unit: Optional[float] = Field(None, ge=0)


class RecipeMaterialResponse(RecipeMaterialInput):
    """Stored recipe line."""

    id: Optional[str] = None
    recipe_id: Optional[str] = None
    sort_order: int = 0


class RecipeSave(BaseSchema):
    """Create or replace a product's recipe."""

    materials: list[RecipeMaterialInput] = Field(default_factory=list)
    created_by: Optional[str] = Field(None, description="Who edited the recipe")


class RecipeResponse(BaseSchema, TimestampMixin):
    """Recipe with its ordered material lines."""

    id: str
    product_id: str
    product_name: Optional[str] = None
    total_cost_per_sqm: float = 0
    created_by: Optional[str] = None
    materials: list[RecipeMaterialResponse] = Field(default_factory=list)
