"""
Individual product (tracked unit) API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import PaginatedResponse
from models.individual_product import (
    IndividualProductResponse,
    IndividualProductStatus,
    IndividualProductStatusUpdate,
)
from services.individual_product_service import get_individual_product_service
from exceptions import AppError

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


@router.get("", response_model=PaginatedResponse)
async def list_individual_products(
    product_id: str = Query(..., description="Parent product"),
    status: Optional[IndividualProductStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200)
):
    """Tracked units of a product, newest first."""
    try:
        service = get_individual_product_service()
        units, total = service.list_by_product(product_id, status=status, page=page, page_size=page_size)
        return PaginatedResponse.create(units, total, page, page_size)

    except Exception as e:
        return handle_error(e)


@router.get("/{individual_product_id}", response_model=IndividualProductResponse)
async def get_individual_product(individual_product_id: str):
    try:
        return get_individual_product_service().get_by_id(individual_product_id)
    except Exception as e:
        return handle_error(e)


@router.patch("/status")
async def update_individual_product_status(data: IndividualProductStatusUpdate):
    """Set one status on several units (e.g. mark damaged)."""
    try:
        updated = get_individual_product_service().update_status(data.ids, data.status)
        return {"updated": updated, "status": data.status.value}

    except Exception as e:
        return handle_error(e)
