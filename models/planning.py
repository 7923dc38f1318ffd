"""
Production planning schemas.

Planning state is split into two disjoint lists: requirements (still
editable) and consumed (committed to the batch). The whole state is saved
as a draft so planning survives a page refresh.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from datetime import date

from models.base import BaseSchema
from models.production import BatchPriority
from models.recipe import MaterialType


class AvailabilityStatus(str, Enum):
    """Stock sufficiency of one planned material."""
    AVAILABLE = "available"
    LOW = "low"
    UNAVAILABLE = "unavailable"


# Statuses that block the start of the machine stage
BLOCKING_STATUSES = {AvailabilityStatus.LOW, AvailabilityStatus.UNAVAILABLE}


class MaterialRequirement(BaseSchema):
    """A recipe line scaled to the planned quantity."""

    material_id: str
    material_name: str
    material_type: MaterialType = MaterialType.RAW_MATERIAL
    quantity_per_sqm: Optional[float] = Field(
        None,
        ge=0,
        description="Per-SQM quantity; None until entered when no ratio could be derived"
    )
    required_quantity: float = 0
    available_quantity: float = 0
    unit: Optional[str] = None
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    shortage: float = 0
    actual_consumed_quantity: float = 0
    whole_product_count: int = 0
    individual_product_ids: list[str] = Field(default_factory=list)


class PlanningFormData(BaseSchema):
    """Batch parameters entered during planning."""

    planned_quantity: int = Field(0, ge=0)
    priority: BatchPriority = BatchPriority.MEDIUM
    completion_date: Optional[date] = None
    notes: Optional[str] = None


class PlanningState(BaseSchema):
    """Full planning session for one product."""

    product_id: str
    product_name: Optional[str] = None
    production_batch_id: Optional[str] = None
    form_data: PlanningFormData = Field(default_factory=PlanningFormData)
    requirements: list[MaterialRequirement] = Field(default_factory=list)
    consumed: list[MaterialRequirement] = Field(default_factory=list)
    recipe_modified: bool = False


# ===================
# REQUEST SCHEMAS
# ===================

class MaterialSelection(BaseSchema):
    """A material picked in the selector dialog."""

    material_id: str = Field(..., min_length=1)
    material_name: str = Field(..., min_length=1)
    material_type: MaterialType = MaterialType.RAW_MATERIAL
    unit: Optional[str] = None
    quantity_per_sqm: Optional[float] = Field(None, ge=0)


class AddMaterialsRequest(BaseSchema):
    """Add materials to the requirement list."""

    materials: list[MaterialSelection] = Field(..., min_length=1)


class PlanningFormUpdate(BaseSchema):
    """Change batch parameters; requirements are recalculated."""

    form_data: PlanningFormData


class QuantityPerSqmUpdate(BaseSchema):
    """Edit the per-SQM quantity of one requirement."""

    quantity_per_sqm: float = Field(..., ge=0)


class IndividualSelectionRequest(BaseSchema):
    """Reserve specific tracked units for a product-type material."""

    individual_product_ids: list[str] = Field(default_factory=list)


class AddToProductionRequest(BaseSchema):
    """Commit requirements to the batch."""

    actor: Optional[str] = Field(None, description="User adding the materials")


class AddToProductionResult(BaseSchema):
    """Outcome of committing requirements."""

    state: PlanningState
    moved_material_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class StartProductionRequest(BaseSchema):
    """Leave planning and start the machine stage."""

    machine_id: str = Field(..., min_length=1)
    machine_name: Optional[str] = None
    shift: Optional[str] = None
    inspector: str = Field(..., min_length=1)


class StartProductionResponse(BaseSchema):
    """Records created or reused when production starts."""

    batch_id: str
    batch_number: str
    flow_id: str
    step_id: str
    status: str
    consumption_ids: list[str] = Field(default_factory=list)
    next_stage: str
