"""
Production completion service.

Turns a batch's final inspection rows into tracked individual products
and closes the flow. Only units inspected as available add to the
parent product's stock. If closing the batch fails after the units were
inserted, the units and the stock they added are removed again.
"""

from collections import Counter
from datetime import date
from typing import Optional
import structlog

from models.production import (
    BatchStatus,
    CompletionRequest,
    CompletionSummary,
    StageResult,
    StageStatus,
    StepType,
    UnitDetails,
)
from models.individual_product import IndividualProductStatus, QualityGrade
from exceptions import ConflictError, CompletionValidationError
from services.production_flow_service import get_production_flow_service, stage_record
from services.product_service import get_product_service
from services.individual_product_service import get_individual_product_service

logger = structlog.get_logger(__name__)

REQUIRED_UNIT_FIELDS = {
    "final_weight": "Final Weight",
    "final_thickness": "Final Thickness",
    "final_width": "Final Width",
    "final_height": "Final Height",
    "quality_grade": "Quality Grade",
}

GRADE_SCORES = {
    QualityGrade.A_PLUS: 5,
    QualityGrade.A: 4,
    QualityGrade.B: 3,
    QualityGrade.C: 2,
    QualityGrade.D: 1,
}


def validate_units(units: list[UnitDetails]) -> list[dict]:
    """
    Missing required fields per unit row (1-based index).

    Every row is checked so all problems can be reported at once.
    """
    errors = []
    for index, unit in enumerate(units, start=1):
        missing = []
        for field, label in REQUIRED_UNIT_FIELDS.items():
            value = getattr(unit, field)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(label)
        if missing:
            errors.append({"index": index, "missing_fields": missing})
    return errors


def calculate_average_quality_grade(grades: list) -> str:
    """
    Mean grade using A+=5 ... D=1.

    Thresholds: >=4.5 A+, >=3.5 A, >=2.5 B, >=1.5 C, otherwise D.
    Unknown grades are ignored; no grades at all gives D.
    """
    scores = []
    for grade in grades:
        try:
            scores.append(GRADE_SCORES[QualityGrade(grade)])
        except ValueError:
            continue

    if not scores:
        return QualityGrade.D.value

    average = sum(scores) / len(scores)
    if average >= 4.5:
        return QualityGrade.A_PLUS.value
    if average >= 3.5:
        return QualityGrade.A.value
    if average >= 2.5:
        return QualityGrade.B.value
    if average >= 1.5:
        return QualityGrade.C.value
    return QualityGrade.D.value


class CompletionService:
    """Final stage of a production batch."""

    def __init__(self):
        self.flow_service = get_production_flow_service()
        self.product_service = get_product_service()
        self.individual_product_service = get_individual_product_service()

    def complete_production(self, batch_id: str, data: CompletionRequest) -> CompletionSummary:
        """
        Create one individual product per unit row and close the batch.

        Raises:
            BatchNotFoundError: If batch doesn't exist
            ConflictError: Batch already completed
            CompletionValidationError: Rows missing required fields
            DatabaseError: A write failed; inserted units were removed
        """
        batch = self.flow_service.get_batch(batch_id)
        self._ensure_open(batch.id, batch.status)

        errors = validate_units(data.units)
        if errors:
            logger.warning("completion_validation_failed", batch_id=batch_id, rows=len(errors))
            raise CompletionValidationError(errors)

        product = self.product_service.get_by_id(batch.product_id)
        today = date.today().isoformat()

        rows = []
        for sequence, unit in enumerate(data.units, start=1):
            rows.append({
                "product_id": product.id,
                "product_name": product.name,
                "qr_code": self.individual_product_service.generate_qr_code(),
                "custom_id": self.individual_product_service.generate_custom_id(product.name, sequence),
                "production_batch_id": batch.id,
                "batch_number": batch.batch_number,
                "final_weight": unit.final_weight,
                "final_thickness": unit.final_thickness,
                "final_width": unit.final_width,
                "final_height": unit.final_height,
                "quality_grade": unit.quality_grade.value,
                "status": unit.status.value,
                "inspector": unit.inspector or data.inspector,
                "production_date": unit.production_date.isoformat() if unit.production_date else today,
                "notes": unit.notes,
            })

        statuses = Counter(unit.status for unit in data.units)
        available = statuses[IndividualProductStatus.AVAILABLE]
        damaged = statuses[IndividualProductStatus.DAMAGED]
        grades = [unit.quality_grade.value for unit in data.units]

        created = self.individual_product_service.create_many(rows)
        stock_added = 0

        try:
            if available:
                self.product_service.increment_stock(product.id, available)
                stock_added = available

            self._close_flow(
                batch,
                StepType.TESTING_INDIVIDUAL,
                data.inspector,
                f"Created {len(created)} individual products ({available} available, {damaged} damaged)"
            )
            self.flow_service.update_batch_fields(batch.id, {
                "status": BatchStatus.COMPLETED.value,
                "actual_quantity": len(created),
                "final_stage": stage_record(StageStatus.COMPLETED, data.inspector),
            })

        except Exception as e:
            logger.error("production_completion_failed", batch_id=batch_id, error=str(e))
            self._undo_completion(product.id, [unit.id for unit in created], stock_added)
            raise

        logger.info(
            "production_completed",
            batch_id=batch_id,
            product_id=product.id,
            total=len(created),
            available=available,
            damaged=damaged
        )
        return CompletionSummary(
            batch_id=batch_id,
            total_products=len(created),
            available=available,
            damaged=damaged,
            average_quality=calculate_average_quality_grade(grades),
            quality_distribution=dict(Counter(grades)),
            individual_product_ids=[unit.id for unit in created],
        )

    def skip_individual_products(self, batch_id: str, inspector: str = "System") -> StageResult:
        """Close the batch without creating units; inventory is unchanged."""
        batch = self.flow_service.get_batch(batch_id)
        self._ensure_open(batch.id, batch.status)

        self._close_flow(
            batch,
            StepType.TESTING_INDIVIDUAL,
            inspector,
            "Individual product details were skipped - no individual products were created",
            step_name="N/A"
        )
        self.flow_service.update_batch_fields(batch.id, {
            "status": BatchStatus.COMPLETED.value,
            "actual_quantity": 0,
            "final_stage": stage_record(StageStatus.COMPLETED, inspector),
        })

        logger.info("individual_products_skipped", batch_id=batch_id)
        return StageResult(
            batch_id=batch_id,
            message="Production completed without individual products",
            next_stage="/production",
        )

    def _ensure_open(self, batch_id: str, status: str) -> None:
        if status == BatchStatus.COMPLETED.value:
            raise ConflictError(
                code="BATCH_ALREADY_COMPLETED",
                message="Batch is already completed",
                details={"batch_id": batch_id}
            )

    def _undo_completion(self, product_id: str, unit_ids: list[str], stock_added: int) -> None:
        """Remove what a failed completion wrote so the batch can be completed again."""
        if stock_added:
            try:
                self.product_service.increment_stock(product_id, -stock_added)
            except Exception as e:
                logger.error("completion_stock_rollback_failed", product_id=product_id, error=str(e))

        try:
            removed = self.individual_product_service.delete_many(unit_ids)
            logger.info("completion_rolled_back", product_id=product_id, units_removed=removed)
        except Exception as e:
            logger.error("completion_units_rollback_failed", product_id=product_id, error=str(e))

    def _close_flow(
        self,
        batch,
        step_type: StepType,
        inspector: str,
        notes: str,
        step_name: str = "Individual Product Testing"
    ) -> None:
        flow = self.flow_service.get_or_create_flow(batch)
        self.flow_service.complete_or_create_step(flow["id"], step_type, step_name, inspector, notes)
        self.flow_service.complete_flow(flow["id"])


# Singleton instance for convenience
_completion_service: Optional[CompletionService] = None


def get_completion_service() -> CompletionService:
    """Get or create CompletionService instance."""
    global _completion_service
    if _completion_service is None:
        _completion_service = CompletionService()
    return _completion_service
