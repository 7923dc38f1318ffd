"""
Production planning API routes.

Every mutating route returns the full planning state, which is also
saved as the product's draft.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.planning import (
    PlanningState,
    PlanningFormUpdate,
    AddMaterialsRequest,
    QuantityPerSqmUpdate,
    IndividualSelectionRequest,
    AddToProductionRequest,
    AddToProductionResult,
    StartProductionRequest,
    StartProductionResponse,
)
from services.planning_service import get_planning_service
from services.production_start_service import get_production_start_service
from exceptions import AppError, DraftNotFoundError

logger = structlog.get_logger(__name__)

router = APIRouter()


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


@router.get("/{product_id}", response_model=PlanningState)
async def get_planning(
    product_id: str,
    planned_quantity: Optional[int] = Query(None, ge=0, description="Rescale to this quantity")
):
    """
    Saved planning state, or a fresh one built from the product's recipe.

    Raises:
        404: Product not found
    """
    try:
        return get_planning_service().load_planning(product_id, planned_quantity)
    except Exception as e:
        return handle_error(e)


@router.put("/{product_id}/form", response_model=PlanningState)
async def update_planning_form(product_id: str, data: PlanningFormUpdate):
    """Change batch parameters; both material lists are rescaled."""
    try:
        return get_planning_service().update_form(product_id, data.form_data)
    except Exception as e:
        return handle_error(e)


@router.post("/{product_id}/materials", response_model=PlanningState)
async def add_planning_materials(product_id: str, data: AddMaterialsRequest):
    """Add materials; ones already planned are ignored."""
    try:
        return get_planning_service().add_materials(product_id, data.materials)
    except Exception as e:
        return handle_error(e)


@router.delete("/{product_id}/materials/{material_id}", response_model=PlanningState)
async def remove_planning_material(product_id: str, material_id: str):
    """
    Raises:
        404: Material is not in the requirement list
    """
    try:
        return get_planning_service().remove_material(product_id, material_id)
    except Exception as e:
        return handle_error(e)


@router.patch("/{product_id}/materials/{material_id}", response_model=PlanningState)
async def update_planning_quantity(product_id: str, material_id: str, data: QuantityPerSqmUpdate):
    try:
        return get_planning_service().update_quantity_per_sqm(product_id, material_id, data.quantity_per_sqm)
    except Exception as e:
        return handle_error(e)


@router.put("/{product_id}/materials/{material_id}/individual-products", response_model=PlanningState)
async def select_planning_units(product_id: str, material_id: str, data: IndividualSelectionRequest):
    """
    Choose tracked units of a product-type material.

    Raises:
        422: Material is a raw material, or a unit is not available
    """
    try:
        return get_planning_service().select_individual_products(
            product_id,
            material_id,
            data.individual_product_ids
        )
    except Exception as e:
        return handle_error(e)


@router.post("/{product_id}/add-to-production", response_model=AddToProductionResult)
async def add_to_production(product_id: str, data: AddToProductionRequest):
    """
    Commit requirements to the batch.

    Shortages do not fail this call; they come back as `warnings`.

    Raises:
        422: Quantity or material entries invalid
    """
    try:
        return get_planning_service().add_to_production(product_id, data.actor)
    except Exception as e:
        return handle_error(e)


@router.post("/{product_id}/start", response_model=StartProductionResponse, status_code=201)
async def start_production(product_id: str, data: StartProductionRequest):
    """
    Leave planning and start the machine stage.

    Raises:
        422: No consumed materials, shortages, or units not selected
        500: A write failed; rows created by this attempt were removed
    """
    try:
        return get_production_start_service().start_production(product_id, data)
    except Exception as e:
        return handle_error(e)


# ===================
# DRAFTS
# ===================

@router.get("/{product_id}/draft", response_model=PlanningState)
async def get_planning_draft(product_id: str):
    """
    Raises:
        404: No draft saved
    """
    try:
        draft = get_planning_service().get_draft(product_id)
        if draft is None:
            raise DraftNotFoundError(product_id)
        return draft

    except Exception as e:
        return handle_error(e)


@router.put("/{product_id}/draft", response_model=PlanningState)
async def save_planning_draft(product_id: str, data: PlanningState):
    """Overwrite the draft with client state."""
    try:
        state = data.model_copy(update={"product_id": product_id})
        return get_planning_service().save_draft(state)
    except Exception as e:
        return handle_error(e)


@router.delete("/{product_id}/draft")
async def delete_planning_draft(product_id: str):
    try:
        deleted = get_planning_service().delete_draft(product_id)
        if not deleted:
            raise DraftNotFoundError(product_id)
        return {"deleted": True, "product_id": product_id}

    except Exception as e:
        return handle_error(e)
