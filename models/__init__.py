"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
    PaginatedResponse,
)
from models.product import (
    StockTrackingMode,
    ProductStatus,
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse,
)
from models.raw_material import (
    RawMaterialStatus,
    StockOperation,
    RawMaterialCreate,
    RawMaterialUpdate,
    RawMaterialResponse,
    StockAdjustment,
    MaterialImportResult,
)
from models.recipe import (
    MaterialType,
    RecipeMaterialInput,
    RecipeMaterialResponse,
    RecipeSave,
    RecipeResponse,
)
from models.individual_product import (
    IndividualProductStatus,
    QualityGrade,
    IndividualProductResponse,
    IndividualProductStatusUpdate,
)
from models.production import (
    BatchStatus,
    BatchPriority,
    StageStatus,
    StepType,
    StepStatus,
    ConsumptionStatus,
    WasteType,
    WasteStatus,
    BatchCreate,
    BatchUpdate,
    BatchResponse,
    MachineCreate,
    MachineStepCreate,
    StepStatusUpdate,
    SkipStageRequest,
    WasteItemInput,
    WasteCompleteRequest,
    UnitDetails,
    CompletionRequest,
    CompletionSummary,
    StageResult,
)
from models.planning import (
    AvailabilityStatus,
    MaterialRequirement,
    PlanningFormData,
    PlanningState,
    MaterialSelection,
    AddMaterialsRequest,
    PlanningFormUpdate,
    QuantityPerSqmUpdate,
    IndividualSelectionRequest,
    AddToProductionRequest,
    AddToProductionResult,
    StartProductionRequest,
    StartProductionResponse,
)
from models.order import (
    OrderStatus,
    PricingUnit,
    is_valid_order_transition,
    OrderItemCreate,
    OrderItemResponse,
    OrderCreate,
    OrderStatusUpdate,
    OrderItemSelection,
    OrderResponse,
)
from models.purchase_order import (
    PurchaseOrderStatus,
    PurchaseOrderCreate,
    PurchaseOrderStatusUpdate,
    PurchaseOrderResponse,
)
from models.notification import (
    NotificationType,
    NotificationPriority,
    NotificationStatus,
    NotificationModule,
    NotificationCreate,
    NotificationResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    "PaginatedResponse",

    # Product
    "StockTrackingMode",
    "ProductStatus",
    "ProductCreate",
    "ProductUpdate",
    "ProductResponse",
    "ProductListResponse",

    # Raw material
    "RawMaterialStatus",
    "StockOperation",
    "RawMaterialCreate",
    "RawMaterialUpdate",
    "RawMaterialResponse",
    "StockAdjustment",
    "MaterialImportResult",

    # Recipe
    "MaterialType",
    "RecipeMaterialInput",
    "RecipeMaterialResponse",
    "RecipeSave",
    "RecipeResponse",

    # Individual product
    "IndividualProductStatus",
    "QualityGrade",
    "IndividualProductResponse",
    "IndividualProductStatusUpdate",

    # Production
    "BatchStatus",
    "BatchPriority",
    "StageStatus",
    "StepType",
    "StepStatus",
    "ConsumptionStatus",
    "WasteType",
    "WasteStatus",
    "BatchCreate",
    "BatchUpdate",
    "BatchResponse",
    "MachineCreate",
    "MachineStepCreate",
    "StepStatusUpdate",
    "SkipStageRequest",
    "WasteItemInput",
    "WasteCompleteRequest",
    "UnitDetails",
    "CompletionRequest",
    "CompletionSummary",
    "StageResult",

    # Planning
    "AvailabilityStatus",
    "MaterialRequirement",
    "PlanningFormData",
    "PlanningState",
    "MaterialSelection",
    "AddMaterialsRequest",
    "PlanningFormUpdate",
    "QuantityPerSqmUpdate",
    "IndividualSelectionRequest",
    "AddToProductionRequest",
    "AddToProductionResult",
    "StartProductionRequest",
    "StartProductionResponse",

    # Orders
    "OrderStatus",
    "PricingUnit",
    "is_valid_order_transition",
    "OrderItemCreate",
    "OrderItemResponse",
    "OrderCreate",
    "OrderStatusUpdate",
    "OrderItemSelection",
    "OrderResponse",

    # Purchase orders
    "PurchaseOrderStatus",
    "PurchaseOrderCreate",
    "PurchaseOrderStatusUpdate",
    "PurchaseOrderResponse",

    # Notifications
    "NotificationType",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationModule",
    "NotificationCreate",
    "NotificationResponse",
]
