"""
Production planning service.

Scales a product's recipe to a planned quantity, classifies each
material against live stock, and manages the two planning lists:

    requirements  - editable lines, not yet committed
    consumed      - lines committed to the batch by add_to_production()

The whole planning state is saved as a draft after every change so it
survives a page refresh. Shortages never block planning; they only
block the start of the machine stage (see production_start_service).
"""

import math
from typing import Optional
import structlog

from config import get_supabase_client, settings
from models.planning import (
    AvailabilityStatus,
    BLOCKING_STATUSES,
    MaterialRequirement,
    PlanningFormData,
    PlanningState,
    MaterialSelection,
    AddToProductionResult,
)
from models.product import ProductResponse
from models.recipe import MaterialType, RecipeMaterialInput, RecipeSave
from models.individual_product import IndividualProductStatus
from models.notification import NotificationModule, NotificationPriority, NotificationType
from exceptions import (
    NotFoundError,
    PlanningValidationError,
    IndividualProductSelectionError,
    DatabaseError,
)
from services.product_service import get_product_service
from services.raw_material_service import get_raw_material_service
from services.recipe_service import get_recipe_service
from services.individual_product_service import get_individual_product_service
from services.notification_service import get_notification_service
from utils.sqm_calculator import product_sqm
from utils.stock_status import classify_material_availability
from utils.format_helpers import format_quantity

logger = structlog.get_logger(__name__)

PRODUCT_MATERIAL_UNIT = "rolls"


class PlanningService:
    """Recipe scaling, availability checks and planning drafts."""

    def __init__(self):
        self.db = get_supabase_client()
        self.drafts_table = "production_planning_drafts"
        self.product_service = get_product_service()
        self.raw_material_service = get_raw_material_service()
        self.recipe_service = get_recipe_service()
        self.individual_product_service = get_individual_product_service()
        self.notification_service = get_notification_service()

    # ===================
    # REQUIREMENT CALCULATION
    # ===================

    def total_sqm(self, product: ProductResponse, planned_quantity: int) -> float:
        """Planned area: planned units x SQM of one unit."""
        return planned_quantity * product_sqm(product.model_dump(), settings.default_dimension_unit)

    def lookup_available(self, material_id: str, material_type: MaterialType) -> tuple[float, Optional[str]]:
        """
        Live stock of a material.

        Product-type materials count available tracked units (or bulk
        stock when the product is not individually tracked). A failed
        lookup counts as 0 available.

        Returns:
            (available quantity, unit or None)
        """
        try:
            if material_type == MaterialType.PRODUCT:
                product = self.product_service.get_by_id(material_id)
                if product.individual_stock_tracking:
                    return float(self.individual_product_service.count_available(material_id)), PRODUCT_MATERIAL_UNIT
                return float(product.current_stock or 0), PRODUCT_MATERIAL_UNIT

            material = self.raw_material_service.get_by_id(material_id)
            return float(material.current_stock or 0), material.unit

        except Exception as e:
            logger.warning(
                "material_availability_lookup_failed",
                material_id=material_id,
                material_type=material_type.value,
                error=str(e)
            )
            return 0.0, None

    def evaluate(
        self,
        requirement: MaterialRequirement,
        total_sqm: float,
        available: float,
        unit: Optional[str] = None
    ) -> MaterialRequirement:
        """Scale one line to total_sqm and classify it against available stock."""
        required = (requirement.quantity_per_sqm or 0) * total_sqm
        status, shortage = classify_material_availability(required, available)
        is_product = requirement.material_type == MaterialType.PRODUCT

        return MaterialRequirement(**{
            **requirement.model_dump(),
            "required_quantity": required,
            "available_quantity": available,
            "unit": PRODUCT_MATERIAL_UNIT if is_product else (unit or requirement.unit),
            "status": status,
            "shortage": shortage,
            "actual_consumed_quantity": required,
            "whole_product_count": math.ceil(round(required, 6)) if is_product else 0,
        })

    def refresh(self, requirement: MaterialRequirement, total_sqm: float) -> MaterialRequirement:
        available, unit = self.lookup_available(requirement.material_id, requirement.material_type)
        return self.evaluate(requirement, total_sqm, available, unit)

    def calculate_requirements(
        self,
        product: ProductResponse,
        recipe_materials: list,
        planned_quantity: int
    ) -> list[MaterialRequirement]:
        """
        Requirements for every recipe line at planned_quantity.

        required_quantity = quantity_per_sqm x planned_quantity x SQM per unit
        """
        total_sqm = self.total_sqm(product, planned_quantity)
        logger.info(
            "calculating_requirements",
            product_id=product.id,
            planned_quantity=planned_quantity,
            total_sqm=total_sqm,
            materials=len(recipe_materials)
        )

        return [
            self.refresh(
                MaterialRequirement(
                    material_id=line.material_id,
                    material_name=line.material_name,
                    material_type=line.material_type,
                    quantity_per_sqm=line.quantity_per_sqm,
                    unit=line.unit,
                ),
                total_sqm
            )
            for line in recipe_materials
        ]

    # ===================
    # PLANNING STATE
    # ===================

    def load_planning(self, product_id: str, planned_quantity: Optional[int] = None) -> PlanningState:
        """
        Saved draft for the product, or a fresh state built from its recipe.
        """
        draft = self.get_draft(product_id)
        if draft:
            if planned_quantity is not None and planned_quantity != draft.form_data.planned_quantity:
                form_data = draft.form_data.model_copy(update={"planned_quantity": planned_quantity})
                return self.update_form(product_id, form_data)
            return draft

        product = self.product_service.get_by_id(product_id)
        recipe = self.recipe_service.get_by_product_id(product_id)
        quantity = planned_quantity or 0

        return PlanningState(
            product_id=product_id,
            product_name=product.name,
            form_data=PlanningFormData(planned_quantity=quantity),
            requirements=self.calculate_requirements(product, recipe.materials if recipe else [], quantity),
        )

    def update_form(self, product_id: str, form_data: PlanningFormData) -> PlanningState:
        """Change batch parameters and rescale both lists."""
        state = self.load_planning(product_id)
        product = self.product_service.get_by_id(product_id)
        total_sqm = self.total_sqm(product, form_data.planned_quantity)

        state.form_data = form_data
        state.requirements = [self.refresh(r, total_sqm) for r in state.requirements]
        state.consumed = [self.refresh(c, total_sqm) for c in state.consumed]

        logger.info("planning_form_updated", product_id=product_id, planned_quantity=form_data.planned_quantity)
        return self.save_draft(state)

    def add_materials(self, product_id: str, selections: list[MaterialSelection]) -> PlanningState:
        """
        Append selected materials to the requirement list.

        A material already planned (in either list) is ignored. Product-type
        materials without a quantity get one derived from the product
        area ratio when that ratio is usable; otherwise it stays blank.
        """
        state = self.load_planning(product_id)
        product = self.product_service.get_by_id(product_id)
        total_sqm = self.total_sqm(product, state.form_data.planned_quantity)

        planned_ids = {r.material_id for r in state.requirements} | {c.material_id for c in state.consumed}
        added = 0

        for selection in selections:
            if selection.material_id in planned_ids:
                continue

            quantity = selection.quantity_per_sqm or None
            if selection.material_type == MaterialType.PRODUCT and quantity is None:
                quantity = self._suggest_product_quantity(selection.material_id, product)

            requirement = MaterialRequirement(
                material_id=selection.material_id,
                material_name=selection.material_name,
                material_type=selection.material_type,
                quantity_per_sqm=quantity,
                unit=selection.unit,
            )
            state.requirements.append(self.refresh(requirement, total_sqm))
            planned_ids.add(selection.material_id)
            added += 1

        if added:
            state.recipe_modified = True

        logger.info("planning_materials_added", product_id=product_id, added=added)
        return self.save_draft(state)

    def remove_material(self, product_id: str, material_id: str) -> PlanningState:
        """Drop a line from the requirement list."""
        state = self.load_planning(product_id)
        remaining = [r for r in state.requirements if r.material_id != material_id]
        if len(remaining) == len(state.requirements):
            raise NotFoundError("Material requirement", material_id, code="REQUIREMENT_NOT_FOUND")

        state.requirements = remaining
        state.recipe_modified = True
        return self.save_draft(state)

    def update_quantity_per_sqm(self, product_id: str, material_id: str, quantity_per_sqm: float) -> PlanningState:
        """Edit a requirement's per-SQM quantity and rescale it."""
        state = self.load_planning(product_id)
        index = self._find_index(state.requirements, material_id)
        product = self.product_service.get_by_id(product_id)
        total_sqm = self.total_sqm(product, state.form_data.planned_quantity)

        requirement = state.requirements[index]
        requirement.quantity_per_sqm = quantity_per_sqm
        state.requirements[index] = self.refresh(requirement, total_sqm)
        state.recipe_modified = True

        return self.save_draft(state)

    def select_individual_products(
        self,
        product_id: str,
        material_id: str,
        individual_product_ids: list[str]
    ) -> PlanningState:
        """
        Choose which tracked units of a product-type material are used.

        Units must belong to that product and be available, or already
        be reserved by this line. Changing the selection of a consumed
        line reserves the new units and releases dropped ones.

        Raises:
            PlanningValidationError: Material is not a product
            IndividualProductSelectionError: A unit cannot be selected
        """
        state = self.load_planning(product_id)

        in_consumed = any(c.material_id == material_id for c in state.consumed)
        lines = state.consumed if in_consumed else state.requirements
        index = self._find_index(lines, material_id)
        line = lines[index]

        if line.material_type != MaterialType.PRODUCT:
            raise PlanningValidationError(
                f"{line.material_name} is a raw material; only products have individual units",
                details={"material_id": material_id}
            )

        ids = list(dict.fromkeys(individual_product_ids))
        previous = set(line.individual_product_ids)
        units = {u.id: u for u in self.individual_product_service.get_by_ids(ids)}

        invalid = []
        for unit_id in ids:
            unit = units.get(unit_id)
            if unit is None:
                invalid.append({"id": unit_id, "reason": "not found"})
            elif unit.product_id != material_id:
                invalid.append({"id": unit_id, "reason": "belongs to another product"})
            elif unit.status != IndividualProductStatus.AVAILABLE.value and unit_id not in previous:
                invalid.append({"id": unit_id, "reason": f"status is {unit.status}"})

        if invalid:
            raise IndividualProductSelectionError(
                f"{len(invalid)} selected unit(s) of {line.material_name} cannot be used",
                items=invalid
            )

        line.individual_product_ids = ids

        if in_consumed:
            added = [i for i in ids if i not in previous]
            released = [i for i in previous if i not in ids]
            self.individual_product_service.set_status_best_effort(
                added, IndividualProductStatus.IN_PRODUCTION, reason="reserved for production"
            )
            self.individual_product_service.set_status_best_effort(
                released, IndividualProductStatus.AVAILABLE, reason="released from production"
            )

        logger.info(
            "individual_products_selected",
            product_id=product_id,
            material_id=material_id,
            count=len(ids)
        )
        return self.save_draft(state)

    def add_to_production(self, product_id: str, actor: Optional[str] = None) -> AddToProductionResult:
        """
        Commit every requirement line to the batch.

        Validation happens before any write. Low or unavailable materials
        are still committed; each one produces a warning and a best-effort
        notification. A material already consumed is never added twice.

        Raises:
            PlanningValidationError: Invalid quantity or missing materials
        """
        state = self.load_planning(product_id)
        self._validate_for_production(state)

        product = self.product_service.get_by_id(product_id)
        total_sqm = self.total_sqm(product, state.form_data.planned_quantity)
        requirements = [self.refresh(r, total_sqm) for r in state.requirements]

        if state.recipe_modified:
            self._persist_recipe(product, state.consumed + requirements, actor)
            state.recipe_modified = False

        warnings = []
        for requirement in requirements:
            if requirement.status in BLOCKING_STATUSES:
                warnings.append(self._notify_shortage(product, requirement, actor))

        consumed_ids = {c.material_id for c in state.consumed}
        moved = []
        for requirement in requirements:
            if requirement.material_id in consumed_ids:
                continue
            state.consumed.append(requirement)
            consumed_ids.add(requirement.material_id)
            moved.append(requirement)

        reserved_ids = [
            unit_id
            for requirement in moved
            if requirement.material_type == MaterialType.PRODUCT
            for unit_id in requirement.individual_product_ids
        ]
        self.individual_product_service.set_status_best_effort(
            reserved_ids, IndividualProductStatus.IN_PRODUCTION, reason="reserved for production"
        )

        state.requirements = [r for r in requirements if r.material_id not in consumed_ids]
        state = self.save_draft(state)

        logger.info(
            "materials_added_to_production",
            product_id=product_id,
            moved=len(moved),
            warnings=len(warnings),
            consumed_total=len(state.consumed)
        )
        return AddToProductionResult(
            state=state,
            moved_material_ids=[m.material_id for m in moved],
            warnings=warnings,
        )

    # ===================
    # DRAFTS
    # ===================

    def get_draft(self, product_id: str) -> Optional[PlanningState]:
        """Saved planning state, or None."""
        try:
            result = (
                self.db.table(self.drafts_table)
                .select("*")
                .eq("product_id", product_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_planning_draft_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None

        row = result.data[0]
        return PlanningState(
            product_id=row["product_id"],
            product_name=row.get("product_name"),
            production_batch_id=row.get("production_batch_id"),
            form_data=PlanningFormData(**(row.get("form_data") or {})),
            requirements=row.get("materials") or [],
            consumed=row.get("consumed_materials") or [],
            recipe_modified=(row.get("recipe_data") or {}).get("recipe_modified", False),
        )

    def save_draft(self, state: PlanningState) -> PlanningState:
        """Upsert the draft of state.product_id (one draft per product)."""
        data = state.model_dump(mode="json")
        row = {
            "product_id": state.product_id,
            "product_name": state.product_name,
            "production_batch_id": state.production_batch_id,
            "form_data": data["form_data"],
            "materials": data["requirements"],
            "consumed_materials": data["consumed"],
            "recipe_data": {"recipe_modified": state.recipe_modified},
        }

        try:
            existing = (
                self.db.table(self.drafts_table)
                .select("id")
                .eq("product_id", state.product_id)
                .limit(1)
                .execute()
            )
            if existing.data:
                self.db.table(self.drafts_table).update(row).eq("id", existing.data[0]["id"]).execute()
            else:
                self.db.table(self.drafts_table).insert(row).execute()

        except Exception as e:
            logger.error("save_planning_draft_failed", product_id=state.product_id, error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.debug(
            "planning_draft_saved",
            product_id=state.product_id,
            requirements=len(state.requirements),
            consumed=len(state.consumed)
        )
        return state

    def delete_draft(self, product_id: str) -> bool:
        """Delete the draft. Returns False if there was none."""
        try:
            result = self.db.table(self.drafts_table).delete().eq("product_id", product_id).execute()
        except Exception as e:
            logger.error("delete_planning_draft_failed", product_id=product_id, error=str(e))
            raise DatabaseError("delete", str(e))

        deleted = bool(result.data)
        logger.info("planning_draft_deleted", product_id=product_id, deleted=deleted)
        return deleted

    def delete_draft_best_effort(self, product_id: str) -> bool:
        """Non-fatal: a leftover draft is harmless once production started."""
        try:
            return self.delete_draft(product_id)
        except Exception as e:
            logger.warning("planning_draft_cleanup_skipped", product_id=product_id, error=str(e))
            return False

    # ===================
    # HELPERS
    # ===================

    def _find_index(self, lines: list[MaterialRequirement], material_id: str) -> int:
        for index, line in enumerate(lines):
            if line.material_id == material_id:
                return index
        raise NotFoundError("Material requirement", material_id, code="REQUIREMENT_NOT_FOUND")

    def _suggest_product_quantity(self, material_id: str, parent: ProductResponse) -> Optional[float]:
        try:
            child = self.product_service.get_by_id(material_id)
        except Exception as e:
            logger.warning("product_ratio_lookup_failed", material_id=material_id, error=str(e))
            return None
        return self.recipe_service.suggest_quantity_per_sqm(child.model_dump(), parent.model_dump())

    def _validate_for_production(self, state: PlanningState) -> None:
        if state.form_data.planned_quantity <= 0:
            raise PlanningValidationError(
                "Planned quantity must be greater than 0",
                details={"planned_quantity": state.form_data.planned_quantity}
            )
        if not state.requirements:
            raise PlanningValidationError("Add at least one material before adding to production")

        missing = [
            r.material_name for r in state.requirements
            if r.quantity_per_sqm is None or r.quantity_per_sqm <= 0
        ]
        if missing:
            raise PlanningValidationError(
                f"Enter a quantity per SQM for: {', '.join(missing)}",
                details={"materials": missing}
            )

    def _persist_recipe(
        self,
        product: ProductResponse,
        lines: list[MaterialRequirement],
        actor: Optional[str]
    ) -> None:
        materials = [
            RecipeMaterialInput(
                material_id=line.material_id,
                material_name=line.material_name,
                material_type=line.material_type,
                quantity_per_sqm=line.quantity_per_sqm,
                unit=line.unit,
            )
            for line in lines
            if line.quantity_per_sqm
        ]
        self.recipe_service.save_for_product(
            product.id,
            RecipeSave(materials=materials, created_by=actor),
            product_name=product.name
        )
        logger.info("planning_recipe_persisted", product_id=product.id, materials=len(materials))

    def _notify_shortage(
        self,
        product: ProductResponse,
        requirement: MaterialRequirement,
        actor: Optional[str]
    ) -> str:
        """Best-effort shortage notification. Returns the warning text."""
        unit = requirement.unit
        unavailable = requirement.status == AvailabilityStatus.UNAVAILABLE
        message = (
            f"{requirement.material_name}: need {format_quantity(requirement.required_quantity, unit)}, "
            f"available {format_quantity(requirement.available_quantity, unit)}, "
            f"short {format_quantity(requirement.shortage, unit)}"
        )
        is_product = requirement.material_type == MaterialType.PRODUCT

        self.notification_service.notify_best_effort(
            title=f"{'Out of stock' if unavailable else 'Low stock'}: {requirement.material_name}",
            message=f"{message} for production of {product.name}",
            module=NotificationModule.PRODUCTION if is_product else NotificationModule.MATERIALS,
            type=NotificationType.PRODUCTION_REQUEST if is_product else NotificationType.LOW_STOCK,
            priority=NotificationPriority.HIGH if unavailable else NotificationPriority.MEDIUM,
            related_id=requirement.material_id,
            related_data={
                "material_name": requirement.material_name,
                "product_name": product.name,
                "required_quantity": requirement.required_quantity,
                "available_quantity": requirement.available_quantity,
                "shortage": requirement.shortage,
                "unit": unit,
            },
            created_by=actor,
        )
        return message


# Singleton instance for convenience
_planning_service: Optional[PlanningService] = None


def get_planning_service() -> PlanningService:
    """Get or create PlanningService instance."""
    global _planning_service
    if _planning_service is None:
        _planning_service = PlanningService()
    return _planning_service
