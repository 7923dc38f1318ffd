"""
Purchase order service.

Restock orders for raw materials. A client idempotency key makes a
repeated submission return the order already placed; without one, an
identical order from the same supplier placed within the duplicate
window is rejected.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4
import structlog

from config import get_supabase_client, settings
from models.purchase_order import (
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    PurchaseOrderStatus,
    PURCHASE_ORDER_TRANSITIONS,
)
from models.raw_material import RawMaterialStatus, StockOperation
from exceptions import (
    PurchaseOrderNotFoundError,
    DuplicatePurchaseOrderError,
    InvalidStatusTransitionError,
    DatabaseError,
)
from services.raw_material_service import get_raw_material_service

logger = structlog.get_logger(__name__)

STATUS_TIMESTAMP_FIELDS = {
    PurchaseOrderStatus.APPROVED: "approved_at",
    PurchaseOrderStatus.SHIPPED: "shipped_at",
    PurchaseOrderStatus.DELIVERED: "delivered_at",
    PurchaseOrderStatus.CANCELLED: "cancelled_at",
}


class PurchaseOrderService:
    """Supplier restock orders."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "purchase_orders"
        self.raw_material_service = get_raw_material_service()

    @staticmethod
    def generate_order_number() -> str:
        return f"PO-{datetime.utcnow():%Y%m%d}-{uuid4().hex[:4].upper()}"

    def get_all(
        self,
        status: Optional[PurchaseOrderStatus] = None,
        supplier_name: Optional[str] = None
    ) -> list[PurchaseOrderResponse]:
        """Purchase orders newest first."""
        try:
            query = self.db.table(self.table).select("*")
            if status:
                query = query.eq("status", status.value)
            if supplier_name:
                query = query.eq("supplier_name", supplier_name)

            result = query.order("created_at", desc=True).execute()
            return [PurchaseOrderResponse(**row) for row in result.data]

        except Exception as e:
            logger.error("get_purchase_orders_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, order_id: str) -> PurchaseOrderResponse:
        """
        Raises:
            PurchaseOrderNotFoundError: If order doesn't exist
        """
        try:
            result = self.db.table(self.table).select("*").eq("id", order_id).limit(1).execute()
        except Exception as e:
            logger.error("get_purchase_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise PurchaseOrderNotFoundError(order_id)
        return PurchaseOrderResponse(**result.data[0])

    def find_by_idempotency_key(self, key: str) -> Optional[PurchaseOrderResponse]:
        try:
            result = self.db.table(self.table).select("*").eq("idempotency_key", key).limit(1).execute()
        except Exception as e:
            logger.error("idempotency_lookup_failed", error=str(e))
            raise DatabaseError("select", str(e))
        return PurchaseOrderResponse(**result.data[0]) if result.data else None

    def find_recent_duplicate(self, data: PurchaseOrderCreate) -> Optional[PurchaseOrderResponse]:
        """Same supplier and material, still ordered, inside the duplicate window."""
        since = datetime.utcnow() - timedelta(minutes=settings.duplicate_order_window_minutes)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("supplier_name", data.supplier_name)
                .eq("status", PurchaseOrderStatus.ORDERED.value)
                .gte("created_at", since.isoformat())
                .execute()
            )
        except Exception as e:
            logger.error("duplicate_lookup_failed", supplier=data.supplier_name, error=str(e))
            raise DatabaseError("select", str(e))

        for row in result.data:
            same_material = (
                row.get("material_id") == data.material_id
                if data.material_id
                else row.get("material_name") == data.material_name
            )
            if same_material:
                return PurchaseOrderResponse(**row)
        return None

    def create(self, data: PurchaseOrderCreate) -> tuple[PurchaseOrderResponse, bool]:
        """
        Place a purchase order.

        Returns:
            Tuple of (order, created). created is False when the
            idempotency key matched an existing order.

        Raises:
            DuplicatePurchaseOrderError: Same order placed within the window
        """
        if data.idempotency_key:
            existing = self.find_by_idempotency_key(data.idempotency_key)
            if existing:
                logger.info("purchase_order_replayed", order_id=existing.id, key=data.idempotency_key)
                return existing, False
        else:
            duplicate = self.find_recent_duplicate(data)
            if duplicate:
                logger.warning(
                    "duplicate_purchase_order_rejected",
                    supplier=data.supplier_name,
                    existing_order_id=duplicate.id
                )
                raise DuplicatePurchaseOrderError(data.supplier_name, duplicate.id)

        insert_data = data.model_dump(mode="json")
        insert_data.update({
            "order_number": self.generate_order_number(),
            "status": PurchaseOrderStatus.ORDERED.value,
            "total_cost": round(data.quantity * data.cost_per_unit, 2),
        })

        try:
            result = self.db.table(self.table).insert(insert_data).execute()
            order = PurchaseOrderResponse(**result.data[0])
        except Exception as e:
            logger.error("create_purchase_order_failed", supplier=data.supplier_name, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info(
            "purchase_order_created",
            order_id=order.id,
            order_number=order.order_number,
            supplier=order.supplier_name,
            total_cost=order.total_cost
        )
        return order, True

    def update_status(self, order_id: str, new_status: PurchaseOrderStatus) -> PurchaseOrderResponse:
        """
        Advance a purchase order.

        Shipping marks the material in transit (best effort); delivery
        adds the ordered quantity to its stock.

        Raises:
            InvalidStatusTransitionError: Transition not allowed
        """
        order = self.get_by_id(order_id)
        current = PurchaseOrderStatus(order.status)
        allowed = PURCHASE_ORDER_TRANSITIONS[current]

        if new_status not in allowed:
            raise InvalidStatusTransitionError(
                current.value,
                new_status.value,
                sorted(s.value for s in allowed)
            )

        if new_status == PurchaseOrderStatus.DELIVERED and order.material_id:
            self.raw_material_service.adjust_stock(
                order.material_id,
                order.quantity,
                StockOperation.ADD,
                reason=f"purchase order {order.order_number} delivered"
            )

        fields = {"status": new_status.value}
        if new_status in STATUS_TIMESTAMP_FIELDS:
            fields[STATUS_TIMESTAMP_FIELDS[new_status]] = datetime.utcnow().isoformat()

        try:
            result = self.db.table(self.table).update(fields).eq("id", order_id).execute()
            updated = PurchaseOrderResponse(**result.data[0])
        except Exception as e:
            logger.error("update_purchase_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("update", str(e))

        if new_status == PurchaseOrderStatus.SHIPPED and order.material_id:
            try:
                self.raw_material_service.set_status(order.material_id, RawMaterialStatus.IN_TRANSIT)
            except Exception as e:
                logger.warning("mark_in_transit_failed", material_id=order.material_id, error=str(e))

        logger.info(
            "purchase_order_status_updated",
            order_id=order_id,
            previous=current.value,
            status=new_status.value
        )
        return updated


# Singleton instance for convenience
_purchase_order_service: Optional[PurchaseOrderService] = None


def get_purchase_order_service() -> PurchaseOrderService:
    """Get or create PurchaseOrderService instance."""
    global _purchase_order_service
    if _purchase_order_service is None:
        _purchase_order_service = PurchaseOrderService()
    return _purchase_order_service
