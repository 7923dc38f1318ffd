"""
Unit tests for ProductionFlowService.

Run: pytest tests/unit/test_production_flow_service.py -v
"""

import pytest

from services.production_flow_service import (
    ProductionFlowService,
    progress_percentage,
    stage_record,
)
from models.production import (
    BatchCreate,
    MachineStepCreate,
    StageStatus,
    StepStatus,
    StepStatusUpdate,
)
from exceptions import (
    BatchNotFoundError,
    DuplicateMachineStepError,
    FlowNotFoundError,
    MachineStepIncompleteError,
    ProductNotFoundError,
)

from tests.factories import BatchFactory, ProductFactory


@pytest.fixture
def batch(mock_db, mock_supabase):
    product = ProductFactory.create(id="rug-1", name="Royal Rug")
    batch = BatchFactory.create(product["id"], id="batch-1", status="in_production")
    mock_supabase.set_table_data("products", [product])
    mock_supabase.set_table_data("production_batches", [batch])
    mock_supabase.set_table_data("production_machines", [
        {"id": "loom-1", "machine_name": "Loom 1"},
        {"id": "loom-2", "machine_name": "Loom 2"},
    ])
    return batch


def _machine(machine_id: str) -> MachineStepCreate:
    return MachineStepCreate(machine_id=machine_id, inspector="Ravi", shift="day")


class TestProgressPercentage:
    """Tests for progress_percentage()"""

    def test_no_steps(self):
        assert progress_percentage([]) == 0

    def test_half_completed(self):
        steps = [{"status": "completed"}, {"status": "in_progress"}]
        assert progress_percentage(steps) == 30

    def test_all_completed(self):
        steps = [{"status": "completed"}] * 3
        assert progress_percentage(steps) == 60


class TestStageRecord:
    """Tests for stage_record()"""

    def test_completed_is_stamped(self):
        record = stage_record(StageStatus.COMPLETED, "Ravi")
        assert record["status"] == "completed"
        assert record["completed_by"] == "Ravi"
        assert "completed_at" in record

    def test_pending_has_no_timestamps(self):
        assert stage_record(StageStatus.PENDING) == {"status": "pending"}


class TestProductionFlowServiceBatches:
    """Tests for batch operations"""

    def test_create_batch_starts_in_planning(self, batch, mock_supabase):
        # Arrange
        service = ProductionFlowService()

        # Act
        created = service.create_batch(BatchCreate(product_id="rug-1", planned_quantity=5))

        # Assert
        assert created.status == "planning"
        assert created.batch_number.startswith("BATCH-")
        assert created.planning_stage["status"] == "in_progress"
        assert created.machine_stage == {"status": "pending"}

    def test_create_batch_unknown_product(self, batch):
        service = ProductionFlowService()

        with pytest.raises(ProductNotFoundError):
            service.create_batch(BatchCreate(product_id="missing", planned_quantity=5))

    def test_get_batch_not_found(self, batch):
        with pytest.raises(BatchNotFoundError):
            ProductionFlowService().get_batch("missing")

    def test_stats(self, batch, mock_supabase):
        mock_supabase.rows("production_batches").append(BatchFactory.create("rug-1", status="planning"))
        mock_supabase.rows("production_batches").append(BatchFactory.create("rug-1", status="in_progress"))

        stats = ProductionFlowService().get_stats()

        assert stats["total"] == 3
        assert stats["planning"] == 1
        assert stats["active"] == 2


class TestProductionFlowServiceAddMachineStep:
    """Tests for ProductionFlowService.add_machine_step()"""

    def test_creates_flow_and_step(self, batch, mock_supabase):
        service = ProductionFlowService()

        step = service.add_machine_step("batch-1", _machine("loom-1"))

        assert step["step_name"] == "Loom 1"
        assert step["status"] == "in_progress"
        assert step["order_index"] == 1
        flows = mock_supabase.rows("production_flows")
        assert len(flows) == 1
        assert flows[0]["flow_name"] == "Production Flow for Royal Rug"

    def test_previous_step_must_be_completed(self, batch):
        """Should refuse a second machine while the first is still open."""
        service = ProductionFlowService()
        service.add_machine_step("batch-1", _machine("loom-1"))

        with pytest.raises(MachineStepIncompleteError) as exc_info:
            service.add_machine_step("batch-1", _machine("loom-2"))

        assert exc_info.value.details["pending_step"] == "Loom 1"

    def test_same_machine_twice_rejected(self, batch):
        service = ProductionFlowService()
        first = service.add_machine_step("batch-1", _machine("loom-1"))
        service.update_step_status(first["id"], StepStatusUpdate(status=StepStatus.COMPLETED))

        with pytest.raises(DuplicateMachineStepError):
            service.add_machine_step("batch-1", _machine("loom-1"))

    def test_next_machine_after_completion(self, batch):
        service = ProductionFlowService()
        first = service.add_machine_step("batch-1", _machine("loom-1"))
        service.update_step_status(first["id"], StepStatusUpdate(status=StepStatus.COMPLETED))

        second = service.add_machine_step("batch-1", _machine("loom-2"))

        assert second["order_index"] == 2
        detail = service.get_flow_detail("batch-1")
        assert [s["machine_id"] for s in detail["steps"]] == ["loom-1", "loom-2"]
        assert detail["progress"] == 30


class TestProductionFlowServiceStepStatus:
    """Tests for ProductionFlowService.update_step_status()"""

    def test_completed_sets_end_time(self, batch):
        service = ProductionFlowService()
        step = service.add_machine_step("batch-1", _machine("loom-1"))

        updated = service.update_step_status(step["id"], StepStatusUpdate(status=StepStatus.COMPLETED, notes="done"))

        assert updated["status"] == "completed"
        assert updated["end_time"] is not None
        assert updated["notes"] == "done"


class TestProductionFlowServiceMachineStage:
    """Tests for completing and skipping the machine stage"""

    def test_complete_requires_closed_steps(self, batch):
        service = ProductionFlowService()
        service.add_machine_step("batch-1", _machine("loom-1"))

        with pytest.raises(MachineStepIncompleteError):
            service.complete_machine_stage("batch-1", "Ravi")

    def test_complete_moves_to_waste_stage(self, batch, mock_supabase):
        service = ProductionFlowService()
        step = service.add_machine_step("batch-1", _machine("loom-1"))
        service.update_step_status(step["id"], StepStatusUpdate(status=StepStatus.COMPLETED))

        result = service.complete_machine_stage("batch-1", "Ravi")

        assert result.next_stage == "/production/batch-1/waste-generation"
        stored = mock_supabase.rows("production_batches")[0]
        assert stored["status"] == "in_progress"
        assert stored["machine_stage"]["status"] == "completed"
        assert stored["wastage_stage"]["status"] == "in_progress"

    def test_skip_records_na_step(self, batch, mock_supabase):
        result = ProductionFlowService().skip_machine_stage("batch-1")

        steps = mock_supabase.rows("production_flow_steps")
        assert len(steps) == 1
        assert steps[0]["machine_name"] == "N/A"
        assert steps[0]["status"] == "completed"
        assert result.next_stage == "/production/batch-1/waste-generation"

    def test_flow_detail_without_flow(self, batch):
        with pytest.raises(FlowNotFoundError):
            ProductionFlowService().get_flow_detail("batch-1")
