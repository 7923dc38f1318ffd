"""
Recipe API routes.

Recipes are addressed by product id: one recipe per product.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from models.recipe import RecipeSave, RecipeResponse
from services.recipe_service import get_recipe_service
from services.product_service import get_product_service
from exceptions import AppError, RecipeNotFoundError

logger = structlog.get_logger(__name__)

router = APIRouter()


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


@router.get("/{product_id}", response_model=RecipeResponse)
async def get_recipe(product_id: str):
    """
    Raises:
        404: Product has no recipe
    """
    try:
        recipe = get_recipe_service().get_by_product_id(product_id)
        if recipe is None:
            raise RecipeNotFoundError(product_id)
        return recipe

    except Exception as e:
        return handle_error(e)


@router.put("/{product_id}", response_model=RecipeResponse)
async def save_recipe(product_id: str, data: RecipeSave):
    """
    Create or replace a product's recipe.

    Raises:
        404: Product not found
    """
    try:
        product = get_product_service().get_by_id(product_id)
        return get_recipe_service().save_for_product(product_id, data, product_name=product.name)

    except Exception as e:
        return handle_error(e)


@router.delete("/{product_id}")
async def delete_recipe(product_id: str):
    try:
        deleted = get_recipe_service().delete(product_id)
        if not deleted:
            raise RecipeNotFoundError(product_id)
        return {"deleted": True, "product_id": product_id}

    except Exception as e:
        return handle_error(e)


@router.get("/{product_id}/suggest-quantity")
async def suggest_quantity(
    product_id: str,
    material_product_id: str = Query(..., description="Product used as a material")
):
    """
    Suggested units of a product-type material per SQM of this product.

    `quantity_per_sqm` is null when the products' dimensions give no
    usable ratio.
    """
    try:
        products = get_product_service()
        parent = products.get_by_id(product_id)
        child = products.get_by_id(material_product_id)

        suggestion = get_recipe_service().suggest_quantity_per_sqm(child.model_dump(), parent.model_dump())
        return {
            "product_id": product_id,
            "material_product_id": material_product_id,
            "quantity_per_sqm": suggestion,
        }

    except Exception as e:
        return handle_error(e)
