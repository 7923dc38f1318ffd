"""
Purchase order (raw material restock) schemas.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from datetime import date

from models.base import BaseSchema, TimestampMixin


class PurchaseOrderStatus(str, Enum):
    """Supplier order status values."""
    ORDERED = "ordered"
    APPROVED = "approved"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


PURCHASE_ORDER_TRANSITIONS = {
    PurchaseOrderStatus.ORDERED: {PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.APPROVED: {PurchaseOrderStatus.SHIPPED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.SHIPPED: {PurchaseOrderStatus.DELIVERED},
    PurchaseOrderStatus.DELIVERED: set(),
    PurchaseOrderStatus.CANCELLED: set(),
}


class PurchaseOrderCreate(BaseSchema):
    """
    Place a restock order with a supplier.

    idempotency_key is generated by the client per submission; repeating
    it returns the order already placed.
    """

    supplier_name: str = Field(..., min_length=1)
    material_id: Optional[str] = Field(None, description="Raw material being restocked")
    material_name: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0)
    unit: str = Field(..., min_length=1)
    cost_per_unit: float = Field(0, ge=0)
    expected_delivery: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    idempotency_key: Optional[str] = Field(None, max_length=100)


class PurchaseOrderStatusUpdate(BaseSchema):
    """Advance a purchase order."""

    status: PurchaseOrderStatus
    notes: Optional[str] = None


class PurchaseOrderResponse(BaseSchema, TimestampMixin):
    """Purchase order response."""

    id: str
    order_number: str
    supplier_name: str
    material_id: Optional[str] = None
    material_name: str
    quantity: float
    unit: Optional[str] = None
    cost_per_unit: float = 0
    total_cost: float = 0
    status: str
    expected_delivery: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    idempotency_key: Optional[str] = None
