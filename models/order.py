"""
Customer order schemas and the order status state machine.
"""

from pydantic import Field, model_validator
from typing import Optional
from enum import Enum
from datetime import date

from models.base import BaseSchema, TimestampMixin
from models.recipe import MaterialType


class OrderStatus(str, Enum):
    """Customer order status values."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Allowed next states. DELIVERED and CANCELLED are terminal.
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.DISPATCHED, OrderStatus.CANCELLED},
    OrderStatus.DISPATCHED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

# Timestamp column stamped when an order enters a status
STATUS_TIMESTAMP_FIELDS = {
    OrderStatus.ACCEPTED: "accepted_at",
    OrderStatus.DISPATCHED: "dispatched_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


class PricingUnit(str, Enum):
    """How an order line's unit_price is applied."""
    UNIT = "unit"
    SQM = "sqm"
    SQFT = "sqft"
    GSM = "gsm"
    KG = "kg"


def is_valid_order_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """
    Check if an order status transition is allowed.

    Rules:
    - pending -> accepted -> dispatched -> delivered
    - cancelled reachable from pending or accepted only
    - delivered and cancelled are terminal
    """
    return new in ORDER_TRANSITIONS[current]


# ===================
# ORDER ITEM SCHEMAS
# ===================

class OrderItemCreate(BaseSchema):
    """One order line."""

    product_id: str = Field(..., min_length=1, description="Product or raw material UUID")
    product_name: str = Field(..., min_length=1)
    product_type: MaterialType = MaterialType.PRODUCT
    quantity: int = Field(..., gt=0)
    unit: Optional[str] = None
    unit_price: float = Field(0, ge=0)
    pricing_unit: PricingUnit = PricingUnit.UNIT


class OrderItemResponse(BaseSchema):
    """Stored order line."""

    id: str
    order_id: str
    product_id: str
    product_name: Optional[str] = None
    product_type: str = MaterialType.PRODUCT.value
    quantity: int
    unit: Optional[str] = None
    unit_price: float = 0
    pricing_unit: str = PricingUnit.UNIT.value
    total_price: float = 0
    selected_individual_products: list[str] = Field(default_factory=list)


# ===================
# ORDER SCHEMAS
# ===================

class OrderCreate(BaseSchema):
    """Create a customer order."""

    customer_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1)
    expected_delivery: Optional[date] = None
    paid_amount: float = Field(0, ge=0)
    notes: Optional[str] = None
    created_by: Optional[str] = None
    items: list[OrderItemCreate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def paid_not_above_total(self):
        """Cannot record more payment than the order total."""
        # Area and weight priced lines are totalled by the service
        if any(item.pricing_unit != PricingUnit.UNIT for item in self.items):
            return self
        total = sum(item.quantity * item.unit_price for item in self.items)
        if self.paid_amount > total:
            raise ValueError("paid_amount cannot exceed order total")
        return self


class OrderStatusUpdate(BaseSchema):
    """Move an order to a new status."""

    status: OrderStatus
    notes: Optional[str] = None


class OrderItemSelection(BaseSchema):
    """Reserve tracked units for a product line."""

    individual_product_ids: list[str] = Field(default_factory=list)


class OrderResponse(BaseSchema, TimestampMixin):
    """Order with its lines."""

    id: str
    order_number: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    status: str
    total_amount: float = 0
    paid_amount: float = 0
    outstanding_amount: float = 0
    expected_delivery: Optional[date] = None
    notes: Optional[str] = None
    accepted_at: Optional[str] = None
    dispatched_at: Optional[str] = None
    delivered_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    items: list[OrderItemResponse] = Field(default_factory=list)
