"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,
    DatabaseError,

    # Catalog
    ProductNotFoundError,
    RawMaterialNotFoundError,
    RecipeNotFoundError,
    IndividualProductNotFoundError,
    MaterialImportError,

    # Production
    BatchNotFoundError,
    FlowNotFoundError,
    StepNotFoundError,
    DraftNotFoundError,
    WasteItemNotFoundError,
    PlanningValidationError,
    InsufficientMaterialError,
    IndividualProductSelectionError,
    MachineStepIncompleteError,
    DuplicateMachineStepError,
    CompletionValidationError,
    ProductionStartError,

    # Orders
    OrderNotFoundError,
    OrderItemNotFoundError,
    InvalidStatusTransitionError,

    # Purchase orders
    PurchaseOrderNotFoundError,
    DuplicatePurchaseOrderError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "ExternalServiceError",
    "DatabaseError",

    # Catalog
    "ProductNotFoundError",
    "RawMaterialNotFoundError",
    "RecipeNotFoundError",
    "IndividualProductNotFoundError",
    "MaterialImportError",

    # Production
    "BatchNotFoundError",
    "FlowNotFoundError",
    "StepNotFoundError",
    "DraftNotFoundError",
    "WasteItemNotFoundError",
    "PlanningValidationError",
    "InsufficientMaterialError",
    "IndividualProductSelectionError",
    "MachineStepIncompleteError",
    "DuplicateMachineStepError",
    "CompletionValidationError",
    "ProductionStartError",

    # Orders
    "OrderNotFoundError",
    "OrderItemNotFoundError",
    "InvalidStatusTransitionError",

    # Purchase orders
    "PurchaseOrderNotFoundError",
    "DuplicatePurchaseOrderError",
]
