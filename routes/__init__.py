"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.products import router as products_router
from routes.raw_materials import router as raw_materials_router
from routes.recipes import router as recipes_router
from routes.individual_products import router as individual_products_router
from routes.planning import router as planning_router
from routes.production import router as production_router
from routes.waste import router as waste_router
from routes.orders import router as orders_router
from routes.purchase_orders import router as purchase_orders_router
from routes.notifications import router as notifications_router

__all__ = [
    "products_router",
    "raw_materials_router",
    "recipes_router",
    "individual_products_router",
    "planning_router",
    "production_router",
    "waste_router",
    "orders_router",
    "purchase_orders_router",
    "notifications_router",
]
