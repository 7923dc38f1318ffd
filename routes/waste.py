"""
Waste recovery API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.production import WasteStatus
from services.waste_service import get_waste_service
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


@router.get("")
async def list_waste(
    batch_id: Optional[str] = Query(None),
    status: Optional[WasteStatus] = Query(None)
):
    try:
        return get_waste_service().list_waste(batch_id=batch_id, status=status)
    except Exception as e:
        return handle_error(e)


@router.post("/{waste_id}/return-to-inventory")
async def return_waste_to_inventory(waste_id: str):
    """
    Add reusable waste back to raw-material stock.

    Raises:
        404: Waste item not found
        409: Already returned
        422: Not reusable or not linked to a material
    """
    try:
        return get_waste_service().return_waste_to_inventory(waste_id)
    except Exception as e:
        return handle_error(e)
