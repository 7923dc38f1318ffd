"""
Customer order service.

Orders move through pending -> accepted -> dispatched -> delivered, or are
cancelled before dispatch. Product lines must have their individual units
selected before the order can be dispatched.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4
import structlog

from config import get_supabase_client
from models.order import (
    OrderCreate,
    OrderResponse,
    OrderItemCreate,
    OrderItemResponse,
    OrderStatus,
    PricingUnit,
    ORDER_TRANSITIONS,
    STATUS_TIMESTAMP_FIELDS,
    is_valid_order_transition,
)
from models.recipe import MaterialType
from models.individual_product import IndividualProductStatus
from exceptions import (
    OrderNotFoundError,
    OrderItemNotFoundError,
    InvalidStatusTransitionError,
    IndividualProductSelectionError,
    ValidationError,
    DatabaseError,
)
from services.individual_product_service import get_individual_product_service
from services.product_service import get_product_service
from utils.unit_converter import calculate_total_price

logger = structlog.get_logger(__name__)

# Orders whose unit selection can still change
SELECTABLE_STATUSES = {OrderStatus.PENDING.value, OrderStatus.ACCEPTED.value}


def dispatch_blockers(order: OrderResponse) -> list[dict]:
    """Product lines whose selected units don't cover the ordered quantity."""
    return [
        {
            "item_id": item.id,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "selected": len(item.selected_individual_products),
        }
        for item in order.items
        if item.product_type == MaterialType.PRODUCT.value
        and len(item.selected_individual_products) < item.quantity
    ]


def can_dispatch(order: OrderResponse) -> bool:
    """Raw-material lines never need unit selection."""
    return not dispatch_blockers(order)


class OrderService:
    """
    Customer order business logic.

    Tables:
        orders, order_items
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "orders"
        self.items_table = "order_items"
        self.individual_product_service = get_individual_product_service()
        self.product_service = get_product_service()

    @staticmethod
    def generate_order_number() -> str:
        return f"ORD-{datetime.utcnow():%Y%m%d}-{uuid4().hex[:4].upper()}"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[OrderStatus] = None
    ) -> tuple[list[OrderResponse], int]:
        """
        Orders newest first, without their lines.

        Returns:
            Tuple of (orders, total count)
        """
        try:
            query = self.db.table(self.table).select("*", count="exact")
            if status:
                query = query.eq("status", status.value)

            offset = (page - 1) * page_size
            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )
            return [OrderResponse(**row) for row in result.data], result.count or 0

        except Exception as e:
            logger.error("get_orders_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, order_id: str) -> OrderResponse:
        """
        Order with its lines.

        Raises:
            OrderNotFoundError: If order doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", order_id)
                .single()
                .execute()
            )
            if not result.data:
                raise OrderNotFoundError(order_id)

            items = self.db.table(self.items_table).select("*").eq("order_id", order_id).execute()
            return OrderResponse(**result.data, items=items.data)

        except OrderNotFoundError:
            raise
        except Exception as e:
            if "0 rows" in str(e) or "no rows" in str(e).lower():
                raise OrderNotFoundError(order_id)
            logger.error("get_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def line_total(self, item: OrderItemCreate) -> float:
        """Price of one line; area and weight pricing use the product's dimensions."""
        if item.pricing_unit == PricingUnit.UNIT or item.product_type != MaterialType.PRODUCT:
            return round(item.quantity * item.unit_price, 2)

        product = self.product_service.get_by_id(item.product_id)
        total = calculate_total_price(
            item.unit_price,
            item.quantity,
            item.pricing_unit.value,
            {"length": product.length, "width": product.width, "weight": product.weight},
            length_unit=product.length_unit,
            width_unit=product.width_unit,
        )
        return round(total, 2)

    def create(self, data: OrderCreate) -> OrderResponse:
        """
        Create an order in pending status with its lines.

        Raises:
            ProductNotFoundError: Area or weight priced line for an unknown product
            ValidationError: Paid amount above the order total
        """
        line_totals = [self.line_total(item) for item in data.items]
        total = round(sum(line_totals), 2)
        if data.paid_amount > total:
            raise ValidationError(
                "paid_amount cannot exceed order total",
                code="PAID_EXCEEDS_TOTAL",
                details={"paid_amount": data.paid_amount, "total": total}
            )

        order_data = data.model_dump(mode="json", exclude={"items"})
        order_data.update({
            "order_number": self.generate_order_number(),
            "status": OrderStatus.PENDING.value,
            "total_amount": total,
            "outstanding_amount": round(total - data.paid_amount, 2),
        })

        try:
            result = self.db.table(self.table).insert(order_data).execute()
            order_id = result.data[0]["id"]

            item_rows = [
                {
                    **item.model_dump(mode="json"),
                    "order_id": order_id,
                    "total_price": line_total,
                    "selected_individual_products": [],
                }
                for item, line_total in zip(data.items, line_totals)
            ]
            self.db.table(self.items_table).insert(item_rows).execute()

        except Exception as e:
            logger.error("create_order_failed", customer=data.customer_name, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info(
            "order_created",
            order_id=order_id,
            order_number=order_data["order_number"],
            items=len(data.items),
            total=total
        )
        return self.get_by_id(order_id)

    def select_individual_products(self, order_id: str, item_id: str, ids: list[str]) -> OrderResponse:
        """
        Choose the tracked units shipped for a product line.

        Raises:
            ValidationError: Order no longer editable or line is not a product
            IndividualProductSelectionError: A unit cannot be selected
        """
        order = self.get_by_id(order_id)
        if order.status not in SELECTABLE_STATUSES:
            raise ValidationError(
                f"Units cannot be changed on a {order.status} order",
                code="ORDER_NOT_EDITABLE",
                details={"order_id": order_id, "status": order.status}
            )

        item = next((i for i in order.items if i.id == item_id), None)
        if item is None:
            raise OrderItemNotFoundError(item_id)
        if item.product_type != MaterialType.PRODUCT.value:
            raise ValidationError(
                "Raw material lines have no individual units",
                code="ITEM_NOT_TRACKED",
                details={"item_id": item_id}
            )

        ids = list(dict.fromkeys(ids))
        if len(ids) > item.quantity:
            raise IndividualProductSelectionError(
                f"Selected {len(ids)} units but only {item.quantity} were ordered",
                items=[{"item_id": item_id, "quantity": item.quantity, "selected": len(ids)}]
            )

        previous = set(item.selected_individual_products)
        units = {u.id: u for u in self.individual_product_service.get_by_ids(ids)}
        invalid = []
        for unit_id in ids:
            unit = units.get(unit_id)
            if unit is None:
                invalid.append({"id": unit_id, "reason": "not found"})
            elif unit.product_id != item.product_id:
                invalid.append({"id": unit_id, "reason": "belongs to another product"})
            elif unit.status != IndividualProductStatus.AVAILABLE.value and unit_id not in previous:
                invalid.append({"id": unit_id, "reason": f"status is {unit.status}"})

        if invalid:
            raise IndividualProductSelectionError(
                f"{len(invalid)} selected unit(s) cannot be used",
                items=invalid
            )

        added = [i for i in ids if i not in previous]
        released = [i for i in previous if i not in ids]
        reason = f"order {order.order_number}"

        claimed = self.individual_product_service.claim_available(added, IndividualProductStatus.RESERVED)
        lost = [i for i in added if i not in claimed]
        if lost:
            self.individual_product_service.set_status_best_effort(
                claimed, IndividualProductStatus.AVAILABLE, reason=f"{reason} selection rejected"
            )
            raise IndividualProductSelectionError(
                f"{len(lost)} selected unit(s) were taken by another request",
                items=[{"id": unit_id, "reason": "no longer available"} for unit_id in lost]
            )

        try:
            self.db.table(self.items_table).update(
                {"selected_individual_products": ids}
            ).eq("id", item_id).execute()
        except Exception as e:
            logger.error("select_order_units_failed", item_id=item_id, error=str(e))
            self.individual_product_service.set_status_best_effort(
                claimed, IndividualProductStatus.AVAILABLE, reason=f"{reason} selection failed"
            )
            raise DatabaseError("update", str(e))

        self.individual_product_service.set_status_best_effort(
            released, IndividualProductStatus.AVAILABLE, reason=f"released from {reason}"
        )

        logger.info(
            "order_units_selected",
            order_id=order_id,
            item_id=item_id,
            count=len(ids),
            reserved=len(claimed),
            released=len(released)
        )
        return self.get_by_id(order_id)

    def update_status(self, order_id: str, new_status: OrderStatus) -> OrderResponse:
        """
        Move an order along the status machine.

        Cancelling releases selected units back to available; delivering
        marks them sold. Both unit updates are best effort.

        Raises:
            InvalidStatusTransitionError: Transition not allowed
            IndividualProductSelectionError: Dispatch with unselected units
        """
        order = self.get_by_id(order_id)
        current = OrderStatus(order.status)

        if not is_valid_order_transition(current, new_status):
            raise InvalidStatusTransitionError(
                current.value,
                new_status.value,
                sorted(s.value for s in ORDER_TRANSITIONS[current])
            )

        if new_status == OrderStatus.DISPATCHED:
            blockers = dispatch_blockers(order)
            if blockers:
                raise IndividualProductSelectionError(
                    "Select individual products for every product line before dispatch",
                    items=blockers
                )

        fields = {"status": new_status.value}
        if new_status in STATUS_TIMESTAMP_FIELDS:
            fields[STATUS_TIMESTAMP_FIELDS[new_status]] = datetime.utcnow().isoformat()

        try:
            self.db.table(self.table).update(fields).eq("id", order_id).execute()
        except Exception as e:
            logger.error("update_order_status_failed", order_id=order_id, error=str(e))
            raise DatabaseError("update", str(e))

        selected = [unit_id for item in order.items for unit_id in item.selected_individual_products]
        if new_status == OrderStatus.CANCELLED:
            self.individual_product_service.set_status_best_effort(
                selected, IndividualProductStatus.AVAILABLE, reason=f"order {order.order_number} cancelled"
            )
        elif new_status == OrderStatus.DELIVERED:
            self.individual_product_service.set_status_best_effort(
                selected, IndividualProductStatus.SOLD, reason=f"order {order.order_number} delivered"
            )

        logger.info(
            "order_status_updated",
            order_id=order_id,
            previous=current.value,
            status=new_status.value
        )
        return self.get_by_id(order_id)


# Singleton instance for convenience
_order_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    """Get or create OrderService instance."""
    global _order_service
    if _order_service is None:
        _order_service = OrderService()
    return _order_service
