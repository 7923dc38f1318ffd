"""
Purchase order API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.purchase_order import (
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    PurchaseOrderStatus,
    PurchaseOrderStatusUpdate,
)
from services.purchase_order_service import get_purchase_order_service
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


@router.get("", response_model=list[PurchaseOrderResponse])
async def list_purchase_orders(
    status: Optional[PurchaseOrderStatus] = Query(None),
    supplier_name: Optional[str] = Query(None)
):
    try:
        return get_purchase_order_service().get_all(status=status, supplier_name=supplier_name)
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=PurchaseOrderResponse, status_code=201)
async def create_purchase_order(data: PurchaseOrderCreate):
    """
    Place a purchase order.

    A repeated idempotency_key returns the existing order with 200.

    Raises:
        409: Same order placed within the duplicate window
    """
    try:
        order, created = get_purchase_order_service().create(data)
        if not created:
            return JSONResponse(status_code=200, content=order.model_dump(mode="json"))
        return order

    except Exception as e:
        return handle_error(e)


@router.get("/{order_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(order_id: str):
    try:
        return get_purchase_order_service().get_by_id(order_id)
    except Exception as e:
        return handle_error(e)


@router.patch("/{order_id}/status", response_model=PurchaseOrderResponse)
async def update_purchase_order_status(order_id: str, data: PurchaseOrderStatusUpdate):
    """
    Raises:
        422: Transition not allowed
    """
    try:
        return get_purchase_order_service().update_status(order_id, data.status)
    except Exception as e:
        return handle_error(e)
