"""
Production API routes.

Batches, their dynamic flow (machine steps), waste stage and completion.
Planning lives in routes/planning.py.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import PaginatedResponse
from models.production import (
    BatchCreate,
    BatchUpdate,
    BatchResponse,
    BatchStatus,
    MachineCreate,
    MachineStepCreate,
    StepStatusUpdate,
    SkipStageRequest,
    WasteCompleteRequest,
    CompletionRequest,
    CompletionSummary,
    StageResult,
)
from services.production_flow_service import get_production_flow_service
from services.waste_service import get_waste_service
from services.completion_service import get_completion_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# BATCHES
# ===================

@router.get("/batches", response_model=PaginatedResponse)
async def list_batches(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[BatchStatus] = Query(None),
    product_id: Optional[str] = Query(None)
):
    """Production batches, newest first."""
    try:
        service = get_production_flow_service()
        batches, total = service.get_all_batches(
            page=page,
            page_size=page_size,
            status=status,
            product_id=product_id
        )
        return PaginatedResponse.create(batches, total, page, page_size)

    except Exception as e:
        return handle_error(e)


@router.get("/stats")
async def get_production_stats():
    """Batch counts by status."""
    try:
        return get_production_flow_service().get_stats()
    except Exception as e:
        return handle_error(e)


@router.post("/batches", response_model=BatchResponse, status_code=201)
async def create_batch(data: BatchCreate):
    """
    Create a batch in planning status.

    Raises:
        404: Product not found
    """
    try:
        return get_production_flow_service().create_batch(data)
    except Exception as e:
        return handle_error(e)


@router.get("/batches/{batch_id}", response_model=BatchResponse)
async def get_batch(batch_id: str):
    try:
        return get_production_flow_service().get_batch(batch_id)
    except Exception as e:
        return handle_error(e)


@router.patch("/batches/{batch_id}", response_model=BatchResponse)
async def update_batch(batch_id: str, data: BatchUpdate):
    try:
        return get_production_flow_service().update_batch(batch_id, data)
    except Exception as e:
        return handle_error(e)


@router.get("/batches/{batch_id}/consumption")
async def get_batch_consumption(batch_id: str):
    """Material consumption recorded when production started."""
    try:
        service = get_production_flow_service()
        service.get_batch(batch_id)
        return service.get_consumption(batch_id)

    except Exception as e:
        return handle_error(e)


# ===================
# MACHINES
# ===================

@router.get("/machines")
async def list_machines():
    try:
        return get_production_flow_service().list_machines()
    except Exception as e:
        return handle_error(e)


@router.post("/machines", status_code=201)
async def create_machine(data: MachineCreate):
    try:
        return get_production_flow_service().create_machine(data)
    except Exception as e:
        return handle_error(e)


# ===================
# FLOW / MACHINE STAGE
# ===================

@router.get("/batches/{batch_id}/flow")
async def get_flow(batch_id: str):
    """
    Flow, ordered steps and machine-stage progress.

    Raises:
        404: Batch has no flow yet
    """
    try:
        return get_production_flow_service().get_flow_detail(batch_id)
    except Exception as e:
        return handle_error(e)


@router.post("/batches/{batch_id}/machine-steps", status_code=201)
async def add_machine_step(batch_id: str, data: MachineStepCreate):
    """
    Add a machine operation.

    Raises:
        409: Machine already used, or a previous machine step is open
    """
    try:
        return get_production_flow_service().add_machine_step(batch_id, data)
    except Exception as e:
        return handle_error(e)


@router.patch("/steps/{step_id}/status")
async def update_step_status(step_id: str, data: StepStatusUpdate):
    try:
        return get_production_flow_service().update_step_status(step_id, data)
    except Exception as e:
        return handle_error(e)


@router.post("/batches/{batch_id}/machine-stage/complete", response_model=StageResult)
async def complete_machine_stage(batch_id: str, data: SkipStageRequest):
    """
    Raises:
        409: A machine step is still open
    """
    try:
        return get_production_flow_service().complete_machine_stage(batch_id, data.inspector)
    except Exception as e:
        return handle_error(e)


@router.post("/batches/{batch_id}/machine-stage/skip", response_model=StageResult)
async def skip_machine_stage(batch_id: str, data: SkipStageRequest):
    try:
        return get_production_flow_service().skip_machine_stage(batch_id, data.inspector)
    except Exception as e:
        return handle_error(e)


# ===================
# WASTE STAGE
# ===================

@router.post("/batches/{batch_id}/waste/complete", response_model=StageResult)
async def complete_waste_tracking(batch_id: str, data: WasteCompleteRequest):
    """
    Record waste and deduct planned materials from inventory.

    Raises:
        404: Batch not found
    """
    try:
        return get_waste_service().complete_waste_tracking(batch_id, data)
    except Exception as e:
        return handle_error(e)


@router.post("/batches/{batch_id}/waste/skip", response_model=StageResult)
async def skip_waste_generation(batch_id: str, data: SkipStageRequest):
    """No waste recorded; planned materials are still deducted."""
    try:
        return get_waste_service().skip_waste_generation(batch_id, data.inspector)
    except Exception as e:
        return handle_error(e)


# ===================
# COMPLETION
# ===================

@router.post("/batches/{batch_id}/complete", response_model=CompletionSummary)
async def complete_production(batch_id: str, data: CompletionRequest):
    """
    Create the batch's individual products.

    Raises:
        409: Batch already completed
        422: Rows missing required fields (every row is listed)
    """
    try:
        return get_completion_service().complete_production(batch_id, data)
    except Exception as e:
        return handle_error(e)


@router.post("/batches/{batch_id}/skip-individual", response_model=StageResult)
async def skip_individual_products(batch_id: str, data: SkipStageRequest):
    try:
        return get_completion_service().skip_individual_products(batch_id, data.inspector)
    except Exception as e:
        return handle_error(e)
