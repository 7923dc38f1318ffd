"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and a details dict
that routes serialize with to_dict().
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        code: Error code (e.g., "BATCH_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate resource (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str
    ):
        super().__init__(
            code=f"{resource.upper().replace(' ', '_')}_{field.upper()}_EXISTS",
            message=f"{resource} with this {field} already exists",
            details={field: value}
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CATALOG ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class RawMaterialNotFoundError(NotFoundError):
    """Raw material not found."""

    def __init__(self, material_id: str):
        super().__init__(
            resource="Raw material",
            identifier=material_id,
            code="RAW_MATERIAL_NOT_FOUND"
        )


class RecipeNotFoundError(NotFoundError):
    """No recipe stored for a product."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Recipe",
            identifier=product_id,
            code="RECIPE_NOT_FOUND"
        )


class IndividualProductNotFoundError(NotFoundError):
    """Individual product not found."""

    def __init__(self, individual_product_id: str):
        super().__init__(
            resource="Individual product",
            identifier=individual_product_id,
            code="INDIVIDUAL_PRODUCT_NOT_FOUND"
        )


class MaterialImportError(ValidationError):
    """Material import file failed validation."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(
            code="MATERIAL_IMPORT_FAILED",
            message=message,
            details={"errors": errors or []}
        )


# ===================
# PRODUCTION ERRORS
# ===================

class BatchNotFoundError(NotFoundError):
    """Production batch not found."""

    def __init__(self, batch_id: str):
        super().__init__(
            resource="Production batch",
            identifier=batch_id,
            code="BATCH_NOT_FOUND"
        )


class FlowNotFoundError(NotFoundError):
    """No production flow exists for a batch."""

    def __init__(self, batch_id: str):
        super().__init__(
            resource="Production flow",
            identifier=batch_id,
            code="FLOW_NOT_FOUND"
        )


class StepNotFoundError(NotFoundError):
    """Production flow step not found."""

    def __init__(self, step_id: str):
        super().__init__(
            resource="Production flow step",
            identifier=step_id,
            code="STEP_NOT_FOUND"
        )


class DraftNotFoundError(NotFoundError):
    """No planning draft saved for a product."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Planning draft",
            identifier=product_id,
            code="DRAFT_NOT_FOUND"
        )


class WasteItemNotFoundError(NotFoundError):
    """Waste record not found."""

    def __init__(self, waste_id: str):
        super().__init__(
            resource="Waste item",
            identifier=waste_id,
            code="WASTE_NOT_FOUND"
        )


class PlanningValidationError(ValidationError):
    """Planning form rejected before any write."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="PLANNING_VALIDATION_FAILED",
            message=message,
            details=details
        )


class InsufficientMaterialError(ValidationError):
    """Consumed materials are still low or unavailable."""

    def __init__(self, materials: list[dict]):
        names = ", ".join(
            f"{m['material_name']} (short {m['shortage']:g} {m.get('unit') or ''})".replace(" )", ")")
            for m in materials
        )
        super().__init__(
            code="INSUFFICIENT_MATERIALS",
            message=f"Cannot start production, insufficient stock: {names}",
            details={"materials": materials}
        )


class IndividualProductSelectionError(ValidationError):
    """Product-type materials or order items lack selected individual units."""

    def __init__(self, message: str, items: list[dict]):
        super().__init__(
            code="INDIVIDUAL_PRODUCTS_NOT_SELECTED",
            message=message,
            details={"items": items}
        )


class MachineStepIncompleteError(ConflictError):
    """A previous machine step must be completed first."""

    def __init__(self, step_name: str):
        super().__init__(
            code="MACHINE_STEP_INCOMPLETE",
            message=f"Complete machine step '{step_name}' before adding another machine",
            details={"pending_step": step_name}
        )


class DuplicateMachineStepError(DuplicateError):
    """Machine already used in this flow."""

    def __init__(self, machine_id: str):
        super().__init__(
            resource="Machine step",
            field="machine_id",
            value=machine_id
        )


class CompletionValidationError(ValidationError):
    """One or more units are missing required final measurements."""

    def __init__(self, errors: list[dict]):
        super().__init__(
            code="COMPLETION_VALIDATION_FAILED",
            message=f"{len(errors)} individual product(s) are missing required fields",
            details={"errors": errors}
        )


class ProductionStartError(AppError):
    """Production start failed part way; earlier writes were reverted."""

    def __init__(self, step: str, message: str, details: Optional[dict] = None):
        super().__init__(
            code="PRODUCTION_START_FAILED",
            message=message,
            status_code=500,
            details={"step": step, **(details or {})}
        )


# ===================
# ORDER ERRORS
# ===================

class OrderNotFoundError(NotFoundError):
    """Customer order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Order",
            identifier=order_id,
            code="ORDER_NOT_FOUND"
        )


class OrderItemNotFoundError(NotFoundError):
    """Order item not found."""

    def __init__(self, item_id: str):
        super().__init__(
            resource="Order item",
            identifier=item_id,
            code="ORDER_ITEM_NOT_FOUND"
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, current_status: str, new_status: str, allowed: Optional[list[str]] = None):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
                "allowed": allowed or []
            }
        )


# ===================
# PURCHASE ORDER ERRORS
# ===================

class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Purchase order",
            identifier=order_id,
            code="PURCHASE_ORDER_NOT_FOUND"
        )


class DuplicatePurchaseOrderError(ConflictError):
    """A matching purchase order was placed moments ago."""

    def __init__(self, supplier_name: str, existing_order_id: str):
        super().__init__(
            code="DUPLICATE_PURCHASE_ORDER",
            message=f"An order for {supplier_name} is already pending",
            details={
                "supplier_name": supplier_name,
                "existing_order_id": existing_order_id
            }
        )
