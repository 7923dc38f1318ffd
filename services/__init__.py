"""
Business logic services.

Each service handles one domain area.
"""

from services.product_service import ProductService, get_product_service
from services.raw_material_service import RawMaterialService, get_raw_material_service
from services.recipe_service import RecipeService, get_recipe_service
from services.individual_product_service import IndividualProductService, get_individual_product_service
from services.notification_service import NotificationService, get_notification_service
from services.production_flow_service import ProductionFlowService, get_production_flow_service
from services.planning_service import PlanningService, get_planning_service
from services.production_start_service import ProductionStartService, get_production_start_service
from services.waste_service import WasteService, get_waste_service
from services.completion_service import CompletionService, get_completion_service
from services.order_service import OrderService, get_order_service
from services.purchase_order_service import PurchaseOrderService, get_purchase_order_service
from services.export_service import ExportService, get_export_service

__all__ = [
    "ProductService",
    "get_product_service",
    "RawMaterialService",
    "get_raw_material_service",
    "RecipeService",
    "get_recipe_service",
    "IndividualProductService",
    "get_individual_product_service",
    "NotificationService",
    "get_notification_service",
    "ProductionFlowService",
    "get_production_flow_service",
    "PlanningService",
    "get_planning_service",
    "ProductionStartService",
    "get_production_start_service",
    "WasteService",
    "get_waste_service",
    "CompletionService",
    "get_completion_service",
    "OrderService",
    "get_order_service",
    "PurchaseOrderService",
    "get_purchase_order_service",
    "ExportService",
    "get_export_service",
]
