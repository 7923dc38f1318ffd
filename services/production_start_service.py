"""
Production start service.

Moves a planned product into the machine stage. The start touches four
tables (batch, material consumption, flow, flow step) without a database
transaction, so every row created during an attempt is recorded and
deleted again, newest first, if a later step fails. Reused rows are
never deleted, so retrying a failed start neither duplicates batches nor
leaves orphan consumption rows behind.
"""

import math
from typing import Optional
import structlog

from config import get_supabase_client
from models.planning import (
    BLOCKING_STATUSES,
    MaterialRequirement,
    PlanningState,
    StartProductionRequest,
    StartProductionResponse,
)
from models.production import (
    ACTIVE_BATCH_STATUSES,
    BatchCreate,
    BatchResponse,
    BatchStatus,
    ConsumptionStatus,
    StageStatus,
    StepStatus,
    StepType,
)
from models.recipe import MaterialType
from exceptions import (
    AppError,
    BatchNotFoundError,
    PlanningValidationError,
    InsufficientMaterialError,
    IndividualProductSelectionError,
    ProductionStartError,
)
from services.planning_service import get_planning_service
from services.production_flow_service import get_production_flow_service, stage_record, now_iso

logger = structlog.get_logger(__name__)


class ProductionStartService:
    """Validated, compensating start of the machine stage."""

    def __init__(self):
        self.db = get_supabase_client()
        self.consumption_table = "material_consumption"
        self.planning_service = get_planning_service()
        self.flow_service = get_production_flow_service()

    def start_production(self, product_id: str, request: StartProductionRequest) -> StartProductionResponse:
        """
        Start production from the product's planning draft.

        Preconditions are checked before any write. After that each step
        either reuses an existing row or creates one and logs it for
        compensation.

        Raises:
            PlanningValidationError: No draft or nothing consumed
            InsufficientMaterialError: Consumed materials are low/unavailable
            IndividualProductSelectionError: Product materials lack units
            ProductionStartError: A write failed; created rows were removed
        """
        state = self.planning_service.get_draft(product_id)
        self.check_preconditions(product_id, state)

        logger.info(
            "production_start_requested",
            product_id=product_id,
            materials=len(state.consumed),
            machine_id=request.machine_id
        )

        created: list[tuple[str, str]] = []
        step = "resolve_batch"

        try:
            batch = self._resolve_batch(state, request, created)

            step = "create_consumption"
            consumption_ids = self._create_consumption(batch.id, state.consumed, created)

            step = "verify_consumption"
            self._verify_consumption(batch.id, state.consumed)

            step = "create_flow"
            flow = self.flow_service.get_flow_by_batch(batch.id)
            if not flow:
                flow = self.flow_service.create_flow(
                    batch.id,
                    f"Production Flow for {state.product_name or product_id}",
                    f"Batch {batch.batch_number}"
                )
                created.append((self.flow_service.flows_table, flow["id"]))

            step = "create_machine_step"
            machine_step = self._ensure_machine_step(flow["id"], request, created)

            step = "update_batch"
            updated = self.flow_service.update_batch_fields(batch.id, {
                "status": BatchStatus.IN_PRODUCTION.value,
                "planning_stage": stage_record(StageStatus.COMPLETED, request.inspector),
                "machine_stage": stage_record(StageStatus.IN_PROGRESS, request.inspector),
            })
            if updated.status not in ACTIVE_BATCH_STATUSES:
                raise ProductionStartError(
                    step,
                    f"Batch status is '{updated.status}' after update",
                    details={"batch_id": batch.id}
                )

        except Exception as e:
            self._compensate(created)
            logger.error("production_start_failed", product_id=product_id, step=step, error=str(e))
            if isinstance(e, ProductionStartError):
                raise
            raise ProductionStartError(
                step,
                f"Production start failed at {step}: {e.message if isinstance(e, AppError) else e}",
                details={"rolled_back": len(created)}
            )

        self.planning_service.delete_draft_best_effort(product_id)

        logger.info(
            "production_started",
            product_id=product_id,
            batch_id=updated.id,
            batch_number=updated.batch_number,
            flow_id=flow["id"],
            created_rows=len(created)
        )
        return StartProductionResponse(
            batch_id=updated.id,
            batch_number=updated.batch_number,
            flow_id=flow["id"],
            step_id=machine_step["id"],
            status=updated.status,
            consumption_ids=consumption_ids,
            next_stage=f"/production/{updated.id}/dynamic-flow",
        )

    def check_preconditions(self, product_id: str, state: Optional[PlanningState]) -> None:
        """Reject the start before anything is written."""
        if state is None or not state.consumed:
            raise PlanningValidationError(
                "Add materials to production before starting the machine stage",
                details={"product_id": product_id}
            )

        if state.form_data.planned_quantity <= 0:
            raise PlanningValidationError(
                "Planned quantity must be greater than 0",
                details={"planned_quantity": state.form_data.planned_quantity}
            )

        short = [
            {
                "material_id": m.material_id,
                "material_name": m.material_name,
                "status": m.status.value,
                "shortage": m.shortage,
                "unit": m.unit,
            }
            for m in state.consumed
            if m.status in BLOCKING_STATUSES
        ]
        if short:
            raise InsufficientMaterialError(short)

        unselected = [
            {"material_id": m.material_id, "material_name": m.material_name}
            for m in state.consumed
            if m.material_type == MaterialType.PRODUCT and not m.individual_product_ids
        ]
        if unselected:
            names = ", ".join(item["material_name"] for item in unselected)
            raise IndividualProductSelectionError(
                f"Select individual products for: {names}",
                items=unselected
            )

    # ===================
    # STEPS
    # ===================

    def _resolve_batch(
        self,
        state: PlanningState,
        request: StartProductionRequest,
        created: list[tuple[str, str]]
    ) -> BatchResponse:
        batch = None

        if state.production_batch_id:
            try:
                batch = self.flow_service.get_batch(state.production_batch_id)
            except BatchNotFoundError:
                logger.warning("draft_batch_missing", batch_id=state.production_batch_id)

        if batch is None:
            batch = self.flow_service.find_planning_batch(state.product_id)

        if batch is None:
            form = state.form_data
            batch = self.flow_service.create_batch(BatchCreate(
                product_id=state.product_id,
                planned_quantity=form.planned_quantity,
                priority=form.priority,
                completion_date=form.completion_date,
                notes=form.notes,
                machine_id=request.machine_id,
                operator=request.inspector,
            ))
            created.append((self.flow_service.batches_table, batch.id))
        else:
            logger.info("batch_reused", batch_id=batch.id, batch_number=batch.batch_number)

        return self.flow_service.update_batch_fields(batch.id, {
            "machine_id": request.machine_id,
            "operator": request.inspector,
        })

    def _create_consumption(
        self,
        batch_id: str,
        materials: list[MaterialRequirement],
        created: list[tuple[str, str]]
    ) -> list[str]:
        existing = {row["material_id"]: row for row in self.flow_service.get_consumption(batch_id)}
        ids = []

        for material in materials:
            if material.material_id in existing:
                ids.append(existing[material.material_id]["id"])
                continue

            is_product = material.material_type == MaterialType.PRODUCT
            exact = material.actual_consumed_quantity or material.required_quantity
            result = self.db.table(self.consumption_table).insert({
                "production_batch_id": batch_id,
                "material_id": material.material_id,
                "material_name": material.material_name,
                "material_type": material.material_type.value,
                "quantity_used": math.ceil(round(exact, 6)) if is_product else exact,
                "actual_consumed_quantity": exact,
                "quantity_per_sqm": material.quantity_per_sqm,
                "unit": material.unit,
                "individual_product_ids": material.individual_product_ids if is_product else [],
                "consumption_status": ConsumptionStatus.PENDING.value,
            }).execute()

            row_id = result.data[0]["id"]
            created.append((self.consumption_table, row_id))
            ids.append(row_id)

        logger.info("consumption_recorded", batch_id=batch_id, rows=len(ids))
        return ids

    def _verify_consumption(self, batch_id: str, materials: list[MaterialRequirement]) -> None:
        """Read back consumption rows and compare them to the plan."""
        stored = {row["material_id"]: row for row in self.flow_service.get_consumption(batch_id)}
        problems = []

        for material in materials:
            row = stored.get(material.material_id)
            if row is None:
                problems.append({"material_name": material.material_name, "problem": "missing"})
                continue

            if material.material_type == MaterialType.PRODUCT and material.individual_product_ids:
                saved = len(row.get("individual_product_ids") or [])
                expected = len(material.individual_product_ids)
                if saved != expected:
                    problems.append({
                        "material_name": material.material_name,
                        "problem": f"{saved} of {expected} individual products saved",
                    })

        if problems:
            raise ProductionStartError(
                "verify_consumption",
                "Material consumption could not be verified",
                details={"batch_id": batch_id, "problems": problems}
            )

    def _ensure_machine_step(
        self,
        flow_id: str,
        request: StartProductionRequest,
        created: list[tuple[str, str]]
    ) -> dict:
        existing = next(
            (s for s in self.flow_service.list_steps(flow_id)
             if s.get("step_type") == StepType.MACHINE_OPERATION.value),
            None
        )
        if existing:
            return existing

        machine_name = request.machine_name or self.flow_service.get_machine(request.machine_id)["machine_name"]
        step = self.flow_service.create_step(flow_id, {
            "step_name": machine_name,
            "step_type": StepType.MACHINE_OPERATION.value,
            "status": StepStatus.IN_PROGRESS.value,
            "machine_id": request.machine_id,
            "machine_name": machine_name,
            "inspector": request.inspector,
            "shift": request.shift,
            "start_time": now_iso(),
        })
        created.append((self.flow_service.steps_table, step["id"]))
        return step

    def _compensate(self, created: list[tuple[str, str]]) -> None:
        """Delete rows created by a failed attempt, newest first."""
        for table, row_id in reversed(created):
            try:
                self.db.table(table).delete().eq("id", row_id).execute()
                logger.info("production_start_rolled_back", table=table, id=row_id)
            except Exception as e:
                logger.error("production_start_rollback_failed", table=table, id=row_id, error=str(e))


# Singleton instance for convenience
_production_start_service: Optional[ProductionStartService] = None


def get_production_start_service() -> ProductionStartService:
    """Get or create ProductionStartService instance."""
    global _production_start_service
    if _production_start_service is None:
        _production_start_service = ProductionStartService()
    return _production_start_service
