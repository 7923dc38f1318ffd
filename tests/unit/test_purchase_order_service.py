"""
Unit tests for PurchaseOrderService.

Run: pytest tests/unit/test_purchase_order_service.py -v
"""

from datetime import datetime, timedelta

import pytest

from services.purchase_order_service import PurchaseOrderService
from models.purchase_order import PurchaseOrderCreate, PurchaseOrderStatus
from exceptions import (
    DuplicatePurchaseOrderError,
    InvalidStatusTransitionError,
    PurchaseOrderNotFoundError,
)

from tests.factories import RawMaterialFactory


def _order(**overrides) -> PurchaseOrderCreate:
    fields = {
        "supplier_name": "Shree Textiles",
        "material_id": "yarn-1",
        "material_name": "Cotton Yarn",
        "quantity": 50,
        "unit": "kg",
        "cost_per_unit": 120,
        **overrides,
    }
    return PurchaseOrderCreate(**fields)


@pytest.fixture
def yarn(mock_db, mock_supabase):
    material = RawMaterialFactory.create(id="yarn-1", name="Cotton Yarn", current_stock=5, min_threshold=10)
    mock_supabase.set_table_data("raw_materials", [material])
    return material


class TestPurchaseOrderServiceCreate:
    """Tests for PurchaseOrderService.create()"""

    def test_creates_ordered_purchase_order(self, yarn):
        # Act
        order, created = PurchaseOrderService().create(_order())

        # Assert
        assert created is True
        assert order.status == "ordered"
        assert order.order_number.startswith("PO-")
        assert order.total_cost == 6000

    def test_idempotency_key_replays_existing(self, yarn, mock_supabase):
        """Should return the first order instead of placing a second one."""
        service = PurchaseOrderService()
        first, _ = service.create(_order(idempotency_key="submit-123"))

        second, created = service.create(_order(idempotency_key="submit-123"))

        assert created is False
        assert second.id == first.id
        assert len(mock_supabase.rows("purchase_orders")) == 1

    def test_same_order_within_window_rejected(self, yarn):
        service = PurchaseOrderService()
        service.create(_order())

        with pytest.raises(DuplicatePurchaseOrderError) as exc_info:
            service.create(_order())

        assert exc_info.value.status_code == 409

    def test_different_material_allowed(self, yarn, mock_supabase):
        service = PurchaseOrderService()
        service.create(_order())

        _, created = service.create(_order(material_id="dye-1", material_name="Red Dye"))

        assert created is True
        assert len(mock_supabase.rows("purchase_orders")) == 2

    def test_old_order_outside_window_allowed(self, yarn, mock_supabase):
        service = PurchaseOrderService()
        service.create(_order())
        mock_supabase.rows("purchase_orders")[0]["created_at"] = (
            datetime.utcnow() - timedelta(minutes=30)
        ).isoformat()

        _, created = service.create(_order())

        assert created is True

    def test_new_idempotency_key_skips_window_check(self, yarn):
        service = PurchaseOrderService()
        service.create(_order(idempotency_key="submit-1"))

        _, created = service.create(_order(idempotency_key="submit-2"))

        assert created is True


class TestPurchaseOrderServiceUpdateStatus:
    """Tests for PurchaseOrderService.update_status()"""

    def test_full_lifecycle_adds_stock_on_delivery(self, yarn, mock_supabase):
        # Arrange
        service = PurchaseOrderService()
        order, _ = service.create(_order())

        # Act
        service.update_status(order.id, PurchaseOrderStatus.APPROVED)
        service.update_status(order.id, PurchaseOrderStatus.SHIPPED)
        in_transit = mock_supabase.rows("raw_materials")[0]["status"]
        delivered = service.update_status(order.id, PurchaseOrderStatus.DELIVERED)

        # Assert
        assert in_transit == "in-transit"
        assert delivered.status == "delivered"
        material = mock_supabase.rows("raw_materials")[0]
        assert material["current_stock"] == 55
        assert material["status"] == "in-stock"
        assert mock_supabase.rows("purchase_orders")[0]["delivered_at"] is not None

    def test_skipping_approval_rejected(self, yarn):
        service = PurchaseOrderService()
        order, _ = service.create(_order())

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            service.update_status(order.id, PurchaseOrderStatus.DELIVERED)

        assert exc_info.value.details["allowed"] == ["approved", "cancelled"]

    def test_in_transit_failure_does_not_block_shipping(self, yarn, mock_supabase):
        service = PurchaseOrderService()
        order, _ = service.create(_order())
        service.update_status(order.id, PurchaseOrderStatus.APPROVED)
        mock_supabase.rows("raw_materials").clear()

        shipped = service.update_status(order.id, PurchaseOrderStatus.SHIPPED)

        assert shipped.status == "shipped"

    def test_missing_order(self, yarn):
        with pytest.raises(PurchaseOrderNotFoundError):
            PurchaseOrderService().update_status("missing", PurchaseOrderStatus.APPROVED)
