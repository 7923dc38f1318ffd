"""
Unit tests for ProductionStartService.

The start writes to four tables without a transaction, so these tests
inject failures into the in-memory client and check what is left behind.

Run: pytest tests/unit/test_production_start_service.py -v
"""

from unittest.mock import patch

import pytest

from services.planning_service import PlanningService
from services.production_start_service import ProductionStartService
from models.planning import MaterialSelection, PlanningFormData, StartProductionRequest
from models.recipe import MaterialType
from exceptions import (
    PlanningValidationError,
    InsufficientMaterialError,
    IndividualProductSelectionError,
    ProductionStartError,
)

from tests.factories import (
    BatchFactory,
    IndividualProductFactory,
    ProductFactory,
    RawMaterialFactory,
)

RUG_ID = "rug-1"
YARN_ID = "yarn-1"


@pytest.fixture
def request_data():
    return StartProductionRequest(machine_id="loom-1", machine_name="Loom 1", shift="day", inspector="Ravi")


@pytest.fixture
def planned(mock_db, mock_supabase):
    """
    Draft for 4 rugs (12 SQM) consuming 6 kg of yarn.
    """
    mock_supabase.set_table_data("products", [ProductFactory.create(id=RUG_ID, name="Royal Rug")])
    mock_supabase.set_table_data("raw_materials", [RawMaterialFactory.create(id=YARN_ID, name="Cotton Yarn")])

    planning = PlanningService()
    planning.update_form(RUG_ID, PlanningFormData(planned_quantity=4))
    planning.add_materials(RUG_ID, [
        MaterialSelection(material_id=YARN_ID, material_name="Cotton Yarn", unit="kg", quantity_per_sqm=0.5),
    ])
    planning.add_to_production(RUG_ID)
    return mock_supabase


class TestProductionStartServiceStart:
    """Tests for ProductionStartService.start_production()"""

    def test_creates_batch_consumption_flow_and_step(self, planned, request_data):
        # Arrange
        service = ProductionStartService()

        # Act
        result = service.start_production(RUG_ID, request_data)

        # Assert
        assert result.status == "in_production"
        assert result.next_stage == f"/production/{result.batch_id}/dynamic-flow"

        batches = planned.rows("production_batches")
        assert len(batches) == 1
        assert batches[0]["machine_id"] == "loom-1"
        assert batches[0]["planning_stage"]["status"] == "completed"
        assert batches[0]["machine_stage"]["status"] == "in_progress"

        consumption = planned.rows("material_consumption")
        assert len(consumption) == 1
        assert consumption[0]["quantity_used"] == pytest.approx(6)
        assert consumption[0]["consumption_status"] == "pending"
        assert result.consumption_ids == [consumption[0]["id"]]

        assert len(planned.rows("production_flows")) == 1
        steps = planned.rows("production_flow_steps")
        assert len(steps) == 1
        assert steps[0]["step_type"] == "machine_operation"
        assert steps[0]["machine_name"] == "Loom 1"

    def test_deletes_draft_on_success(self, planned, request_data):
        ProductionStartService().start_production(RUG_ID, request_data)

        assert planned.rows("production_planning_drafts") == []

    def test_does_not_deduct_inventory(self, planned, request_data):
        """Stock is deducted only when the wastage stage closes."""
        ProductionStartService().start_production(RUG_ID, request_data)

        assert planned.rows("raw_materials")[0]["current_stock"] == 100

    def test_reuses_planning_batch(self, planned, request_data):
        existing = BatchFactory.create(RUG_ID, id="batch-1", status="planning", planned_quantity=4)
        planned.set_table_data("production_batches", [existing])

        result = ProductionStartService().start_production(RUG_ID, request_data)

        assert result.batch_id == "batch-1"
        assert len(planned.rows("production_batches")) == 1


class TestProductionStartServicePreconditions:
    """Rejections that must happen before any write"""

    def test_no_draft(self, mock_db, mock_supabase, request_data):
        with pytest.raises(PlanningValidationError):
            ProductionStartService().start_production(RUG_ID, request_data)

        assert mock_supabase.writes() == []

    def test_shortage_blocks_start(self, mock_db, mock_supabase, request_data):
        # Arrange
        mock_supabase.set_table_data("products", [ProductFactory.create(id=RUG_ID)])
        mock_supabase.set_table_data("raw_materials", [
            RawMaterialFactory.create(id=YARN_ID, name="Cotton Yarn", current_stock=5),
        ])
        planning = PlanningService()
        planning.update_form(RUG_ID, PlanningFormData(planned_quantity=4))
        planning.add_materials(RUG_ID, [
            MaterialSelection(material_id=YARN_ID, material_name="Cotton Yarn", quantity_per_sqm=0.5),
        ])
        planning.add_to_production(RUG_ID)
        writes_before = len(mock_supabase.writes())

        # Act
        with pytest.raises(InsufficientMaterialError) as exc_info:
            ProductionStartService().start_production(RUG_ID, request_data)

        # Assert
        materials = exc_info.value.details["materials"]
        assert materials[0]["material_name"] == "Cotton Yarn"
        assert materials[0]["shortage"] == pytest.approx(1)
        assert len(mock_supabase.writes()) == writes_before
        assert mock_supabase.rows("production_batches") == []

    def test_product_material_without_units(self, mock_db, mock_supabase, request_data):
        backing = ProductFactory.create(id="backing-1", name="Backing Roll")
        mock_supabase.set_table_data("products", [ProductFactory.create(id=RUG_ID), backing])
        mock_supabase.set_table_data(
            "individual_products",
            IndividualProductFactory.create_batch(5, product_id=backing["id"])
        )
        planning = PlanningService()
        planning.update_form(RUG_ID, PlanningFormData(planned_quantity=1))
        planning.add_materials(RUG_ID, [
            MaterialSelection(
                material_id=backing["id"],
                material_name="Backing Roll",
                material_type=MaterialType.PRODUCT,
                quantity_per_sqm=0.5,
            ),
        ])
        planning.add_to_production(RUG_ID)

        with pytest.raises(IndividualProductSelectionError) as exc_info:
            ProductionStartService().start_production(RUG_ID, request_data)

        assert exc_info.value.details["items"][0]["material_name"] == "Backing Roll"
        assert mock_supabase.rows("production_batches") == []


class TestProductionStartServiceCompensation:
    """A failed start removes what it created and nothing else"""

    def test_failure_leaves_no_partial_rows(self, planned, request_data):
        # Arrange
        planned.fail_on("production_flow_steps", "insert")

        # Act
        with pytest.raises(ProductionStartError) as exc_info:
            ProductionStartService().start_production(RUG_ID, request_data)

        # Assert
        assert exc_info.value.details["step"] == "create_machine_step"
        assert planned.rows("production_batches") == []
        assert planned.rows("material_consumption") == []
        assert planned.rows("production_flows") == []

    def test_failure_keeps_draft(self, planned, request_data):
        planned.fail_on("production_flows", "insert")

        with pytest.raises(ProductionStartError):
            ProductionStartService().start_production(RUG_ID, request_data)

        assert len(planned.rows("production_planning_drafts")) == 1

    def test_failure_keeps_reused_batch(self, planned, request_data):
        planned.set_table_data("production_batches", [
            BatchFactory.create(RUG_ID, id="batch-1", status="planning"),
        ])
        planned.fail_on("production_flow_steps", "insert")

        with pytest.raises(ProductionStartError):
            ProductionStartService().start_production(RUG_ID, request_data)

        assert [b["id"] for b in planned.rows("production_batches")] == ["batch-1"]
        assert planned.rows("material_consumption") == []

    def test_retry_after_failure_does_not_duplicate(self, planned, request_data):
        planned.fail_on("production_flow_steps", "insert")
        with pytest.raises(ProductionStartError):
            ProductionStartService().start_production(RUG_ID, request_data)

        planned.failures.clear()
        ProductionStartService().start_production(RUG_ID, request_data)

        assert len(planned.rows("production_batches")) == 1
        assert len(planned.rows("material_consumption")) == 1
        assert len(planned.rows("production_flows")) == 1

    def test_consumption_failure_reported_with_step(self, planned, request_data):
        planned.fail_on("material_consumption", "insert")

        with pytest.raises(ProductionStartError) as exc_info:
            ProductionStartService().start_production(RUG_ID, request_data)

        assert exc_info.value.details["step"] == "create_consumption"
        assert exc_info.value.status_code == 500
        assert planned.rows("production_batches") == []


class TestProductionStartServiceVerifyConsumption:
    """Tests for the consumption read-back before the flow is created"""

    @pytest.fixture
    def planned_with_backing(self, mock_db, mock_supabase):
        """Draft for 1 rug using yarn and 2 selected backing rolls, on planning batch-1."""
        backing = ProductFactory.create(id="backing-1", name="Backing Roll", length=1.5, width=1)
        units = IndividualProductFactory.create_batch(3, product_id=backing["id"])
        mock_supabase.set_table_data("products", [ProductFactory.create(id=RUG_ID, name="Royal Rug"), backing])
        mock_supabase.set_table_data("raw_materials", [RawMaterialFactory.create(id=YARN_ID, name="Cotton Yarn")])
        mock_supabase.set_table_data("individual_products", units)

        planning = PlanningService()
        planning.update_form(RUG_ID, PlanningFormData(planned_quantity=1))
        planning.add_materials(RUG_ID, [
            MaterialSelection(material_id=YARN_ID, material_name="Cotton Yarn", unit="kg", quantity_per_sqm=0.5),
            MaterialSelection(
                material_id=backing["id"],
                material_name="Backing Roll",
                material_type=MaterialType.PRODUCT,
                quantity_per_sqm=0.5,
            ),
        ])
        planning.select_individual_products(RUG_ID, backing["id"], [units[0]["id"], units[1]["id"]])
        planning.add_to_production(RUG_ID)

        mock_supabase.set_table_data("production_batches", [
            BatchFactory.create(RUG_ID, id="batch-1", status="planning", planned_quantity=1),
        ])
        return mock_supabase, units

    def test_missing_row_rolls_back(self, planned, request_data):
        # Arrange
        service = ProductionStartService()

        # Act
        with patch.object(service, "_create_consumption", return_value=[]):
            with pytest.raises(ProductionStartError) as exc_info:
                service.start_production(RUG_ID, request_data)

        # Assert
        details = exc_info.value.details
        assert details["step"] == "verify_consumption"
        assert details["problems"] == [{"material_name": "Cotton Yarn", "problem": "missing"}]
        assert planned.rows("production_batches") == []
        assert planned.rows("production_flows") == []
        assert len(planned.rows("production_planning_drafts")) == 1

    def test_unit_count_mismatch_rolls_back(self, planned_with_backing, request_data):
        """Should refuse a stored row that holds fewer units than were selected."""
        # Arrange
        mock_supabase, units = planned_with_backing
        mock_supabase.set_table_data("material_consumption", [{
            "id": "c-stale",
            "production_batch_id": "batch-1",
            "material_id": "backing-1",
            "material_name": "Backing Roll",
            "material_type": "product",
            "individual_product_ids": [units[0]["id"]],
            "consumption_status": "pending",
        }])

        # Act
        with pytest.raises(ProductionStartError) as exc_info:
            ProductionStartService().start_production(RUG_ID, request_data)

        # Assert
        details = exc_info.value.details
        assert details["step"] == "verify_consumption"
        assert details["problems"] == [
            {"material_name": "Backing Roll", "problem": "1 of 2 individual products saved"},
        ]
        assert [r["id"] for r in mock_supabase.rows("material_consumption")] == ["c-stale"]
        assert [b["id"] for b in mock_supabase.rows("production_batches")] == ["batch-1"]
        assert mock_supabase.rows("production_batches")[0]["status"] == "planning"
        assert mock_supabase.rows("production_flows") == []
        assert mock_supabase.rows("production_flow_steps") == []
