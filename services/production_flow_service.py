"""
Production flow service.

Owns production batches, their flow record and ordered flow steps, and
the machine register. Stage services (planning start, waste, completion)
build on the primitives here.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4
import structlog

from config import get_supabase_client
from models.production import (
    BatchCreate,
    BatchUpdate,
    BatchResponse,
    BatchStatus,
    StageStatus,
    StepType,
    StepStatus,
    MachineCreate,
    MachineStepCreate,
    StepStatusUpdate,
    StageResult,
)
from exceptions import (
    BatchNotFoundError,
    FlowNotFoundError,
    StepNotFoundError,
    MachineStepIncompleteError,
    DuplicateMachineStepError,
    NotFoundError,
    DatabaseError,
)
from services.product_service import get_product_service

logger = structlog.get_logger(__name__)

# Machine operations account for this share of overall batch progress
MACHINE_STAGE_PROGRESS_SHARE = 60


def now_iso() -> str:
    return datetime.utcnow().isoformat()


def stage_record(status: StageStatus, actor: Optional[str] = None, started: bool = False) -> dict:
    """Stage sub-record stored on the batch (planning_stage, machine_stage, ...)."""
    record: dict[str, Any] = {"status": status.value}
    if status == StageStatus.COMPLETED:
        record["completed_at"] = now_iso()
        record["completed_by"] = actor
    elif started or status == StageStatus.IN_PROGRESS:
        record["started_at"] = now_iso()
        record["started_by"] = actor
    return record


def progress_percentage(steps: list[dict]) -> float:
    """Share of machine-stage progress: completed steps / all steps x 60."""
    if not steps:
        return 0.0
    completed = sum(1 for s in steps if s.get("status") == StepStatus.COMPLETED.value)
    return round(completed / len(steps) * MACHINE_STAGE_PROGRESS_SHARE, 2)


class ProductionFlowService:
    """
    Production batch and flow business logic.

    Tables:
        production_batches, production_flows, production_flow_steps,
        production_machines, material_consumption (read only)
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.batches_table = "production_batches"
        self.flows_table = "production_flows"
        self.steps_table = "production_flow_steps"
        self.machines_table = "production_machines"
        self.consumption_table = "material_consumption"
        self.product_service = get_product_service()

    # ===================
    # BATCHES
    # ===================

    @staticmethod
    def generate_batch_number() -> str:
        """e.g. BATCH-20250114-7F3A"""
        return f"BATCH-{datetime.utcnow():%Y%m%d}-{uuid4().hex[:4].upper()}"

    def create_batch(self, data: BatchCreate) -> BatchResponse:
        """
        Create a batch in planning status.

        Raises:
            ProductNotFoundError: If the product doesn't exist
        """
        self.product_service.get_by_id(data.product_id)

        logger.info("creating_batch", product_id=data.product_id, planned_quantity=data.planned_quantity)

        insert_data = data.model_dump(mode="json")
        insert_data.update({
            "batch_number": self.generate_batch_number(),
            "status": BatchStatus.PLANNING.value,
            "planning_stage": stage_record(StageStatus.IN_PROGRESS, data.operator),
            "machine_stage": stage_record(StageStatus.PENDING),
            "wastage_stage": stage_record(StageStatus.PENDING),
            "final_stage": stage_record(StageStatus.PENDING),
        })

        try:
            result = self.db.table(self.batches_table).insert(insert_data).execute()
            batch = BatchResponse(**result.data[0])
            logger.info("batch_created", batch_id=batch.id, batch_number=batch.batch_number)
            return batch

        except Exception as e:
            logger.error("create_batch_failed", product_id=data.product_id, error=str(e))
            raise DatabaseError("insert", str(e))

    def get_batch(self, batch_id: str) -> BatchResponse:
        """
        Raises:
            BatchNotFoundError: If batch doesn't exist
        """
        try:
            result = (
                self.db.table(self.batches_table)
                .select("*")
                .eq("id", batch_id)
                .single()
                .execute()
            )
            if not result.data:
                raise BatchNotFoundError(batch_id)
            return BatchResponse(**result.data)

        except BatchNotFoundError:
            raise
        except Exception as e:
            if "0 rows" in str(e) or "no rows" in str(e).lower():
                raise BatchNotFoundError(batch_id)
            logger.error("get_batch_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_all_batches(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[BatchStatus] = None,
        product_id: Optional[str] = None
    ) -> tuple[list[BatchResponse], int]:
        """Batches newest first with optional filters."""
        try:
            query = self.db.table(self.batches_table).select("*", count="exact")
            if status:
                query = query.eq("status", status.value)
            if product_id:
                query = query.eq("product_id", product_id)

            offset = (page - 1) * page_size
            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )
            return [BatchResponse(**row) for row in result.data], result.count or 0

        except Exception as e:
            logger.error("get_batches_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def find_planning_batch(self, product_id: str) -> Optional[BatchResponse]:
        """Most recent batch of a product still in planning, if any."""
        try:
            result = (
                self.db.table(self.batches_table)
                .select("*")
                .eq("product_id", product_id)
                .eq("status", BatchStatus.PLANNING.value)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
            return BatchResponse(**result.data[0]) if result.data else None

        except Exception as e:
            logger.error("find_planning_batch_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

    def update_batch(self, batch_id: str, data: BatchUpdate) -> BatchResponse:
        """Update provided fields of a batch."""
        existing = self.get_batch(batch_id)
        fields = data.model_dump(mode="json", exclude_none=True)
        if not fields:
            return existing
        return self.update_batch_fields(batch_id, fields)

    def update_batch_fields(self, batch_id: str, fields: dict[str, Any]) -> BatchResponse:
        """
        Write raw batch columns and return the stored row.

        Raises:
            BatchNotFoundError: If no row was updated
        """
        try:
            result = (
                self.db.table(self.batches_table)
                .update(fields)
                .eq("id", batch_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_batch_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise BatchNotFoundError(batch_id)

        logger.info("batch_updated", batch_id=batch_id, fields=list(fields.keys()))
        return BatchResponse(**result.data[0])

    def get_stats(self) -> dict[str, int]:
        """Batch counts by status."""
        try:
            result = self.db.table(self.batches_table).select("status").execute()
        except Exception as e:
            logger.error("get_batch_stats_failed", error=str(e))
            raise DatabaseError("select", str(e))

        stats = {status.value: 0 for status in BatchStatus}
        for row in result.data:
            stats[row["status"]] = stats.get(row["status"], 0) + 1
        stats["total"] = len(result.data)
        stats["active"] = stats[BatchStatus.IN_PRODUCTION.value] + stats[BatchStatus.IN_PROGRESS.value]
        return stats

    def get_consumption(self, batch_id: str) -> list[dict]:
        """Material consumption rows recorded for a batch."""
        try:
            result = (
                self.db.table(self.consumption_table)
                .select("*")
                .eq("production_batch_id", batch_id)
                .execute()
            )
            return result.data

        except Exception as e:
            logger.error("get_consumption_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # FLOWS
    # ===================

    def get_flow_by_batch(self, batch_id: str) -> Optional[dict]:
        """Flow record of a batch, or None if not created yet."""
        try:
            result = (
                self.db.table(self.flows_table)
                .select("*")
                .eq("production_batch_id", batch_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None

        except Exception as e:
            logger.error("get_flow_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("select", str(e))

    def create_flow(self, batch_id: str, flow_name: str, description: Optional[str] = None) -> dict:
        try:
            result = self.db.table(self.flows_table).insert({
                "production_batch_id": batch_id,
                "flow_name": flow_name,
                "description": description,
                "status": StepStatus.IN_PROGRESS.value,
            }).execute()
            flow = result.data[0]
            logger.info("flow_created", batch_id=batch_id, flow_id=flow["id"])
            return flow

        except Exception as e:
            logger.error("create_flow_failed", batch_id=batch_id, error=str(e))
            raise DatabaseError("insert", str(e))

    def get_or_create_flow(self, batch: BatchResponse) -> dict:
        """Idempotent flow lookup used by every stage."""
        flow = self.get_flow_by_batch(batch.id)
        if flow:
            return flow
        product = self.product_service.get_by_id(batch.product_id)
        return self.create_flow(
            batch.id,
            f"Production Flow for {product.name}",
            f"Batch {batch.batch_number}"
        )

    def complete_flow(self, flow_id: str) -> dict:
        try:
            result = (
                self.db.table(self.flows_table)
                .update({"status": StepStatus.COMPLETED.value, "completed_at": now_iso()})
                .eq("id", flow_id)
                .execute()
            )
            logger.info("flow_completed", flow_id=flow_id)
            return result.data[0] if result.data else {}

        except Exception as e:
            logger.error("complete_flow_failed", flow_id=flow_id, error=str(e))
            raise DatabaseError("update", str(e))

    def get_flow_detail(self, batch_id: str) -> dict:
        """
        Flow, ordered steps and machine-stage progress for a batch.

        Raises:
            FlowNotFoundError: If the batch has no flow yet
        """
        flow = self.get_flow_by_batch(batch_id)
        if not flow:
            raise FlowNotFoundError(batch_id)
        steps = self.list_steps(flow["id"])
        return {
            "flow": flow,
            "steps": steps,
            "progress": progress_percentage(steps),
        }

    # ===================
    # STEPS
    # ===================

    def list_steps(self, flow_id: str) -> list[dict]:
        try:
            result = (
                self.db.table(self.steps_table)
                .select("*")
                .eq("flow_id", flow_id)
                .order("order_index")
                .execute()
            )
            return result.data

        except Exception as e:
            logger.error("list_steps_failed", flow_id=flow_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_step(self, step_id: str) -> dict:
        try:
            result = self.db.table(self.steps_table).select("*").eq("id", step_id).limit(1).execute()
        except Exception as e:
            logger.error("get_step_failed", step_id=step_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise StepNotFoundError(step_id)
        return result.data[0]

    def create_step(self, flow_id: str, fields: dict[str, Any]) -> dict:
        """Append a step; order_index defaults to the next position."""
        if "order_index" not in fields:
            fields = {**fields, "order_index": len(self.list_steps(flow_id)) + 1}

        try:
            result = self.db.table(self.steps_table).insert({"flow_id": flow_id, **fields}).execute()
            step = result.data[0]
            logger.info(
                "flow_step_created",
                flow_id=flow_id,
                step_id=step["id"],
                step_type=fields.get("step_type"),
                status=fields.get("status")
            )
            return step

        except Exception as e:
            logger.error("create_step_failed", flow_id=flow_id, error=str(e))
            raise DatabaseError("insert", str(e))

    def update_step_fields(self, step_id: str, fields: dict[str, Any]) -> dict:
        try:
            result = self.db.table(self.steps_table).update(fields).eq("id", step_id).execute()
        except Exception as e:
            logger.error("update_step_failed", step_id=step_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise StepNotFoundError(step_id)
        return result.data[0]

    def update_step_status(self, step_id: str, data: StepStatusUpdate) -> dict:
        """
        Change step status, stamping start_time / end_time.
        """
        step = self.get_step(step_id)

        fields: dict[str, Any] = {"status": data.status.value}
        if data.status == StepStatus.IN_PROGRESS and not step.get("start_time"):
            fields["start_time"] = now_iso()
        if data.status == StepStatus.COMPLETED:
            fields["end_time"] = now_iso()
            if not step.get("start_time"):
                fields["start_time"] = fields["end_time"]
        if data.notes is not None:
            fields["notes"] = data.notes

        updated = self.update_step_fields(step_id, fields)
        logger.info("flow_step_status_updated", step_id=step_id, status=data.status.value)
        return updated

    def complete_or_create_step(
        self,
        flow_id: str,
        step_type: StepType,
        step_name: str,
        inspector: str,
        notes: str
    ) -> dict:
        """Complete the flow's step of this type, creating it if missing."""
        existing = [s for s in self.list_steps(flow_id) if s.get("step_type") == step_type.value]
        now = now_iso()
        fields = {
            "status": StepStatus.COMPLETED.value,
            "inspector": inspector,
            "end_time": now,
            "notes": notes,
        }

        if existing:
            step = existing[-1]
            if not step.get("start_time"):
                fields["start_time"] = now
            return self.update_step_fields(step["id"], fields)

        return self.create_step(flow_id, {
            "step_name": step_name,
            "step_type": step_type.value,
            "start_time": now,
            **fields,
        })

    def add_machine_step(self, batch_id: str, data: MachineStepCreate) -> dict:
        """
        Add a machine operation to the batch's flow.

        Raises:
            DuplicateMachineStepError: Machine already used in this flow
            MachineStepIncompleteError: A previous machine step is still open
        """
        batch = self.get_batch(batch_id)
        flow = self.get_or_create_flow(batch)
        steps = self.list_steps(flow["id"])
        machine_steps = [s for s in steps if s.get("step_type") == StepType.MACHINE_OPERATION.value]

        if any(s.get("machine_id") == data.machine_id for s in machine_steps):
            raise DuplicateMachineStepError(data.machine_id)

        pending = next((s for s in machine_steps if s.get("status") != StepStatus.COMPLETED.value), None)
        if pending:
            raise MachineStepIncompleteError(pending.get("step_name") or pending["id"])

        machine_name = data.machine_name or self.get_machine(data.machine_id)["machine_name"]

        return self.create_step(flow["id"], {
            "step_name": machine_name,
            "step_type": StepType.MACHINE_OPERATION.value,
            "order_index": len(steps) + 1,
            "status": StepStatus.IN_PROGRESS.value,
            "machine_id": data.machine_id,
            "machine_name": machine_name,
            "inspector": data.inspector,
            "shift": data.shift,
            "start_time": now_iso(),
            "notes": data.notes,
        })

    def skip_machine_stage(self, batch_id: str, inspector: str = "System") -> StageResult:
        """Record a completed N/A machine step and move on to waste tracking."""
        batch = self.get_batch(batch_id)
        flow = self.get_or_create_flow(batch)
        now = now_iso()

        self.create_step(flow["id"], {
            "step_name": "N/A",
            "step_type": StepType.MACHINE_OPERATION.value,
            "status": StepStatus.COMPLETED.value,
            "machine_name": "N/A",
            "inspector": inspector,
            "start_time": now,
            "end_time": now,
            "notes": "Machine operations were skipped for this batch",
        })
        self._finish_machine_stage(batch_id, inspector)

        logger.info("machine_stage_skipped", batch_id=batch_id)
        return StageResult(
            batch_id=batch_id,
            message="Machine operations skipped",
            next_stage=f"/production/{batch_id}/waste-generation",
        )

    def complete_machine_stage(self, batch_id: str, inspector: str) -> StageResult:
        """
        Close the machine stage once every machine step is completed.

        Raises:
            MachineStepIncompleteError: A machine step is still open
        """
        batch = self.get_batch(batch_id)
        flow = self.get_or_create_flow(batch)
        machine_steps = [
            s for s in self.list_steps(flow["id"])
            if s.get("step_type") == StepType.MACHINE_OPERATION.value
        ]

        pending = next((s for s in machine_steps if s.get("status") != StepStatus.COMPLETED.value), None)
        if pending:
            raise MachineStepIncompleteError(pending.get("step_name") or pending["id"])

        self._finish_machine_stage(batch_id, inspector)
        return StageResult(
            batch_id=batch_id,
            message=f"Machine stage completed with {len(machine_steps)} step(s)",
            next_stage=f"/production/{batch_id}/waste-generation",
        )

    def _finish_machine_stage(self, batch_id: str, inspector: str) -> None:
        self.update_batch_fields(batch_id, {
            "status": BatchStatus.IN_PROGRESS.value,
            "machine_stage": stage_record(StageStatus.COMPLETED, inspector),
            "wastage_stage": stage_record(StageStatus.IN_PROGRESS, inspector),
        })

    # ===================
    # MACHINES
    # ===================

    def list_machines(self) -> list[dict]:
        try:
            result = self.db.table(self.machines_table).select("*").order("machine_name").execute()
            return result.data
        except Exception as e:
            logger.error("list_machines_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_machine(self, machine_id: str) -> dict:
        try:
            result = self.db.table(self.machines_table).select("*").eq("id", machine_id).limit(1).execute()
        except Exception as e:
            logger.error("get_machine_failed", machine_id=machine_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise NotFoundError("Machine", machine_id, code="MACHINE_NOT_FOUND")
        return result.data[0]

    def create_machine(self, data: MachineCreate) -> dict:
        try:
            result = self.db.table(self.machines_table).insert({
                **data.model_dump(mode="json"),
                "status": "active",
            }).execute()
            logger.info("machine_created", machine_name=data.machine_name)
            return result.data[0]

        except Exception as e:
            logger.error("create_machine_failed", machine_name=data.machine_name, error=str(e))
            raise DatabaseError("insert", str(e))


# Singleton instance for convenience
_production_flow_service: Optional[ProductionFlowService] = None


def get_production_flow_service() -> ProductionFlowService:
    """Get or create ProductionFlowService instance."""
    global _production_flow_service
    if _production_flow_service is None:
        _production_flow_service = ProductionFlowService()
    return _production_flow_service
