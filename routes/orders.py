"""
Customer order API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import PaginatedResponse
from models.order import (
    OrderCreate,
    OrderResponse,
    OrderStatus,
    OrderStatusUpdate,
    OrderItemSelection,
)
from services.order_service import get_order_service, dispatch_blockers
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
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None)
):
    try:
        orders, total = get_order_service().get_all(page=page, page_size=page_size, status=status)
        return PaginatedResponse.create(orders, total, page, page_size)
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(data: OrderCreate):
    """
    Create a pending order.

    Raises:
        422: Paid amount above total, or no items
    """
    try:
        return get_order_service().create(data)
    except Exception as e:
        return handle_error(e)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str):
    try:
        return get_order_service().get_by_id(order_id)
    except Exception as e:
        return handle_error(e)


@router.get("/{order_id}/dispatch-check")
async def check_dispatch(order_id: str):
    """Whether the order can be dispatched and which lines block it."""
    try:
        order = get_order_service().get_by_id(order_id)
        blockers = dispatch_blockers(order)
        return {"can_dispatch": not blockers, "blockers": blockers}
    except Exception as e:
        return handle_error(e)


@router.put("/{order_id}/items/{item_id}/individual-products", response_model=OrderResponse)
async def select_order_units(order_id: str, item_id: str, data: OrderItemSelection):
    """
    Raises:
        404: Order or item not found
        422: Units unavailable, too many, or order not editable
    """
    try:
        return get_order_service().select_individual_products(order_id, item_id, data.individual_product_ids)
    except Exception as e:
        return handle_error(e)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: str, data: OrderStatusUpdate):
    """
    Raises:
        422: Transition not allowed, or units missing at dispatch
    """
    try:
        return get_order_service().update_status(order_id, data.status)
    except Exception as e:
        return handle_error(e)
