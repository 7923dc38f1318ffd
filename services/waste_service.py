"""
Waste tracking service.

Finishing the wastage stage (with or without recorded waste) is the point
where a batch's planned material consumption is deducted from inventory.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.production import (
    BatchResponse,
    ConsumptionStatus,
    StageResult,
    StageStatus,
    StepType,
    WasteCompleteRequest,
    WasteStatus,
)
from models.raw_material import StockOperation
from models.recipe import MaterialType
from models.individual_product import IndividualProductStatus
from exceptions import (
    ConflictError,
    ValidationError,
    WasteItemNotFoundError,
    DatabaseError,
)
from services.production_flow_service import get_production_flow_service, stage_record, now_iso
from services.raw_material_service import get_raw_material_service
from services.individual_product_service import get_individual_product_service

logger = structlog.get_logger(__name__)


class WasteService:
    """Wastage stage, consumption finalization and waste reuse."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "waste_management"
        self.consumption_table = "material_consumption"
        self.flow_service = get_production_flow_service()
        self.raw_material_service = get_raw_material_service()
        self.individual_product_service = get_individual_product_service()

    def finalize_consumption(self, batch_id: str, operator: Optional[str] = None) -> int:
        """
        Deduct every pending consumption row of the batch from inventory.

        Each row is claimed (pending -> consumed) before its stock moves,
        so a retry after a partial failure never deducts a row twice. If
        the deduction itself fails the claim is handed back to pending.
        Raw materials are subtracted from stock; reserved units of
        product-type materials become completed.

        Returns:
            Number of rows finalized

        Raises:
            DatabaseError: A row could not be claimed or stock not deducted
        """
        rows = [
            row for row in self.flow_service.get_consumption(batch_id)
            if row.get("consumption_status") != ConsumptionStatus.CONSUMED.value
        ]

        finalized = 0
        for row in rows:
            if not self._claim_row(row["id"], operator):
                logger.info("consumption_already_claimed", consumption_id=row["id"])
                continue

            try:
                self._deduct(batch_id, row)
            except Exception as e:
                logger.error("consumption_deduction_failed", consumption_id=row["id"], error=str(e))
                self._release_row(row["id"])
                raise

            finalized += 1

        logger.info("consumption_finalized", batch_id=batch_id, rows=finalized)
        return finalized

    def _claim_row(self, consumption_id: str, operator: Optional[str]) -> bool:
        try:
            result = (
                self.db.table(self.consumption_table)
                .update({
                    "consumption_status": ConsumptionStatus.CONSUMED.value,
                    "consumed_at": now_iso(),
                    "consumed_by": operator,
                })
                .eq("id", consumption_id)
                .neq("consumption_status", ConsumptionStatus.CONSUMED.value)
                .execute()
            )
        except Exception as e:
            logger.error("mark_consumed_failed", consumption_id=consumption_id, error=str(e))
            raise DatabaseError("update", str(e))

        return bool(result.data)

    def _release_row(self, consumption_id: str) -> None:
        try:
            self.db.table(self.consumption_table).update({
                "consumption_status": ConsumptionStatus.PENDING.value,
                "consumed_at": None,
                "consumed_by": None,
            }).eq("id", consumption_id).execute()
        except Exception as e:
            logger.error("release_consumption_failed", consumption_id=consumption_id, error=str(e))

    def _deduct(self, batch_id: str, row: dict) -> None:
        if row.get("material_type") == MaterialType.PRODUCT.value:
            self.individual_product_service.set_status_best_effort(
                row.get("individual_product_ids") or [],
                IndividualProductStatus.COMPLETED,
                reason=f"consumed by batch {batch_id}"
            )
            return

        quantity = row.get("actual_consumed_quantity") or row.get("quantity_used") or 0
        if quantity > 0:
            self.raw_material_service.adjust_stock(
                row["material_id"],
                quantity,
                StockOperation.SUBTRACT,
                reason=f"production batch {batch_id}"
            )

    def complete_waste_tracking(self, batch_id: str, data: WasteCompleteRequest) -> StageResult:
        """
        Record waste items, deduct consumption and close the wastage stage.

        Raises:
            BatchNotFoundError: If batch doesn't exist
        """
        batch = self.flow_service.get_batch(batch_id)
        deducted = self.finalize_consumption(batch_id, data.inspector)

        consumed_ids = {row["material_id"] for row in self.flow_service.get_consumption(batch_id)}
        rows = []
        for item in data.waste_items:
            origin = (
                "from consumed material"
                if item.material_id and item.material_id in consumed_ids
                else "not linked to a consumed material"
            )
            rows.append({
                **item.model_dump(mode="json"),
                "production_batch_id": batch_id,
                "batch_number": batch.batch_number,
                "product_id": batch.product_id,
                "status": WasteStatus.AVAILABLE_FOR_REUSE.value,
                "recorded_by": data.inspector,
                "notes": "; ".join(filter(None, [item.notes, origin])),
            })

        if rows:
            try:
                self.db.table(self.table).insert(rows).execute()
            except Exception as e:
                logger.error("record_waste_failed", batch_id=batch_id, error=str(e))
                raise DatabaseError("insert", str(e))

        self._close_stage(
            batch,
            data.inspector,
            f"Waste tracking completed with {len(rows)} items. Materials deducted from inventory."
        )

        logger.info("waste_tracking_completed", batch_id=batch_id, waste_items=len(rows), deducted=deducted)
        return StageResult(
            batch_id=batch_id,
            message=f"Recorded {len(rows)} waste item(s)",
            next_stage=f"/production/complete/{batch_id}",
            waste_items_recorded=len(rows),
            materials_deducted=deducted,
        )

    def skip_waste_generation(self, batch_id: str, inspector: str = "System") -> StageResult:
        """Close the wastage stage with no waste; inventory is still deducted."""
        batch = self.flow_service.get_batch(batch_id)
        deducted = self.finalize_consumption(batch_id, inspector)

        self._close_stage(
            batch,
            inspector,
            "Waste generation skipped - no waste was generated during this production process."
        )

        logger.info("waste_generation_skipped", batch_id=batch_id, deducted=deducted)
        return StageResult(
            batch_id=batch_id,
            message="Waste generation skipped",
            next_stage=f"/production/complete/{batch_id}",
            materials_deducted=deducted,
        )

    def list_waste(
        self,
        batch_id: Optional[str] = None,
        status: Optional[WasteStatus] = None
    ) -> list[dict]:
        """Waste items, newest first."""
        try:
            query = self.db.table(self.table).select("*")
            if batch_id:
                query = query.eq("production_batch_id", batch_id)
            if status:
                query = query.eq("status", status.value)
            return query.order("created_at", desc=True).execute().data

        except Exception as e:
            logger.error("list_waste_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_waste(self, waste_id: str) -> dict:
        try:
            result = self.db.table(self.table).select("*").eq("id", waste_id).limit(1).execute()
        except Exception as e:
            logger.error("get_waste_failed", waste_id=waste_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise WasteItemNotFoundError(waste_id)
        return result.data[0]

    def return_waste_to_inventory(self, waste_id: str) -> dict:
        """
        Add a reusable waste item back to raw-material stock.

        Raises:
            WasteItemNotFoundError: If the item doesn't exist
            ConflictError: Already returned
            ValidationError: Item is not reusable or has no material
        """
        item = self.get_waste(waste_id)

        if item.get("status") == WasteStatus.ADDED_TO_INVENTORY.value:
            raise ConflictError(
                code="WASTE_ALREADY_RETURNED",
                message="Waste item was already added to inventory",
                details={"waste_id": waste_id}
            )
        if not item.get("can_be_reused") or not item.get("material_id"):
            raise ValidationError(
                code="WASTE_NOT_REUSABLE",
                message="Only reusable waste linked to a raw material can return to inventory",
                details={"waste_id": waste_id}
            )

        self.raw_material_service.adjust_stock(
            item["material_id"],
            item["quantity"],
            StockOperation.ADD,
            reason=f"waste {waste_id} returned"
        )

        try:
            result = (
                self.db.table(self.table)
                .update({"status": WasteStatus.ADDED_TO_INVENTORY.value, "returned_at": now_iso()})
                .eq("id", waste_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_waste_failed", waste_id=waste_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.info("waste_returned_to_inventory", waste_id=waste_id, material_id=item["material_id"])
        return result.data[0]

    def _close_stage(self, batch: BatchResponse, inspector: str, notes: str) -> None:
        flow = self.flow_service.get_or_create_flow(batch)
        self.flow_service.complete_or_create_step(
            flow["id"],
            StepType.WASTAGE_TRACKING,
            "Waste Tracking",
            inspector,
            notes
        )
        self.flow_service.update_batch_fields(batch.id, {
            "wastage_stage": stage_record(StageStatus.COMPLETED, inspector),
            "final_stage": stage_record(StageStatus.IN_PROGRESS, inspector),
        })


# Singleton instance for convenience
_waste_service: Optional[WasteService] = None


def get_waste_service() -> WasteService:
    """Get or create WasteService instance."""
    global _waste_service
    if _waste_service is None:
        _waste_service = WasteService()
    return _waste_service
