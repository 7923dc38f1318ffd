"""
Production batch, flow, waste and completion schemas.
"""

from pydantic import Field
from typing import Optional, Any
from enum import Enum
from datetime import date

from models.base import BaseSchema, TimestampMixin
from models.individual_product import IndividualProductStatus, QualityGrade


class BatchStatus(str, Enum):
    """Production batch status."""
    PLANNING = "planning"
    IN_PRODUCTION = "in_production"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Both values mean the batch has left planning
ACTIVE_BATCH_STATUSES = {BatchStatus.IN_PRODUCTION.value, BatchStatus.IN_PROGRESS.value}


class BatchPriority(str, Enum):
    """Production priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class StageStatus(str, Enum):
    """Status of a batch stage sub-record."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class StepType(str, Enum):
    """Production flow step types."""
    MACHINE_OPERATION = "machine_operation"
    WASTAGE_TRACKING = "wastage_tracking"
    TESTING_INDIVIDUAL = "testing_individual"


class StepStatus(str, Enum):
    """Production flow step status."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ConsumptionStatus(str, Enum):
    """Whether inventory has been deducted for a consumption row."""
    PENDING = "pending"
    CONSUMED = "consumed"


class WasteType(str, Enum):
    """Kind of waste produced."""
    SCRAP = "scrap"
    DEFECTIVE = "defective"
    EXCESS = "excess"


class WasteStatus(str, Enum):
    """Waste item lifecycle."""
    AVAILABLE_FOR_REUSE = "available_for_reuse"
    ADDED_TO_INVENTORY = "added_to_inventory"
    DISPOSED = "disposed"


# ===================
# BATCH SCHEMAS
# ===================

class BatchCreate(BaseSchema):
    """Create a production batch."""

    product_id: str = Field(..., min_length=1)
    planned_quantity: int = Field(..., gt=0, description="Units to produce")
    priority: BatchPriority = Field(BatchPriority.MEDIUM)
    completion_date: Optional[date] = None
    notes: Optional[str] = None
    machine_id: Optional[str] = None
    operator: Optional[str] = None


class BatchUpdate(BaseSchema):
    """Update a batch. Only provided fields are updated."""

    planned_quantity: Optional[int] = Field(None, gt=0)
    actual_quantity: Optional[int] = Field(None, ge=0)
    priority: Optional[BatchPriority] = None
    status: Optional[BatchStatus] = None
    completion_date: Optional[date] = None
    notes: Optional[str] = None
    machine_id: Optional[str] = None


class BatchResponse(BaseSchema, TimestampMixin):
    """Production batch response."""

    id: str
    batch_number: str
    product_id: str
    planned_quantity: int
    actual_quantity: Optional[int] = None
    status: str
    priority: Optional[str] = None
    completion_date: Optional[date] = None
    notes: Optional[str] = None
    machine_id: Optional[str] = None
    operator: Optional[str] = None
    planning_stage: Optional[dict[str, Any]] = None
    machine_stage: Optional[dict[str, Any]] = None
    wastage_stage: Optional[dict[str, Any]] = None
    final_stage: Optional[dict[str, Any]] = None


# ===================
# FLOW / MACHINE SCHEMAS
# ===================

class MachineCreate(BaseSchema):
    """Register a production machine."""

    machine_name: str = Field(..., min_length=1)
    machine_type: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class MachineStepCreate(BaseSchema):
    """Add a machine operation step to a batch's flow."""

    machine_id: str = Field(..., min_length=1)
    machine_name: Optional[str] = None
    inspector: str = Field(..., min_length=1)
    shift: Optional[str] = Field(None, description="day / night / general")
    notes: Optional[str] = None


class StepStatusUpdate(BaseSchema):
    """Change a flow step status."""

    status: StepStatus
    notes: Optional[str] = None


class SkipStageRequest(BaseSchema):
    """Skip a stage of the flow."""

    inspector: str = Field("System", min_length=1)


# ===================
# WASTE SCHEMAS
# ===================

class WasteItemInput(BaseSchema):
    """One waste line recorded at the wastage stage."""

    material_id: Optional[str] = None
    material_name: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0)
    unit: str = Field(..., min_length=1)
    waste_type: WasteType = WasteType.SCRAP
    can_be_reused: bool = False
    notes: Optional[str] = None


class WasteCompleteRequest(BaseSchema):
    """Finish the wastage stage."""

    inspector: str = Field(..., min_length=1)
    waste_items: list[WasteItemInput] = Field(default_factory=list)


# ===================
# COMPLETION SCHEMAS
# ===================

class UnitDetails(BaseSchema):
    """
    Final measurements for one produced unit.

    Measurement fields stay optional here so every incomplete row can be
    reported together instead of failing on the first one.
    """

    final_weight: Optional[str] = None
    final_thickness: Optional[str] = None
    final_width: Optional[str] = None
    final_height: Optional[str] = None
    quality_grade: Optional[QualityGrade] = None
    status: IndividualProductStatus = IndividualProductStatus.AVAILABLE
    notes: Optional[str] = None
    inspector: Optional[str] = None
    production_date: Optional[date] = None


class CompletionRequest(BaseSchema):
    """Materialize the batch's units."""

    inspector: str = Field(..., min_length=1)
    units: list[UnitDetails] = Field(..., min_length=1)


class CompletionSummary(BaseSchema):
    """Summary returned once units are created."""

    batch_id: str
    total_products: int
    available: int
    damaged: int
    average_quality: str
    quality_distribution: dict[str, int]
    individual_product_ids: list[str]
    next_stage: str = "/production"


class StageResult(BaseSchema):
    """Generic result of finishing or skipping a stage."""

    batch_id: str
    message: str
    next_stage: str
    waste_items_recorded: int = 0
    materials_deducted: int = 0
