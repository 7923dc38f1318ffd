"""
Recipe service.

One recipe per product; its material lines are replaced as a whole on
every save so sort order always matches what the user last saw.
"""

from typing import Any, Optional
import structlog

from config import get_supabase_client
from models.recipe import (
    RecipeSave,
    RecipeResponse,
    RecipeMaterialResponse,
)
from exceptions import DatabaseError
from utils.product_ratio import calculate_product_ratio, is_usable_ratio

logger = structlog.get_logger(__name__)


class RecipeService:
    """Recipe persistence and per-SQM quantity suggestions."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "recipes"
        self.materials_table = "recipe_materials"

    def get_by_product_id(self, product_id: str) -> Optional[RecipeResponse]:
        """
        Get a product's recipe with its ordered materials.

        Returns:
            RecipeResponse or None if the product has no recipe
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("product_id", product_id)
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            recipe = result.data[0]
            lines = (
                self.db.table(self.materials_table)
                .select("*")
                .eq("recipe_id", recipe["id"])
                .order("sort_order")
                .execute()
            )

            return RecipeResponse(
                **recipe,
                materials=[RecipeMaterialResponse(**row) for row in lines.data]
            )

        except Exception as e:
            logger.error("get_recipe_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

    def save_for_product(
        self,
        product_id: str,
        data: RecipeSave,
        product_name: Optional[str] = None
    ) -> RecipeResponse:
        """
        Create the recipe or replace its material lines.

        Raises:
            DatabaseError: If any write fails
        """
        logger.info("saving_recipe", product_id=product_id, materials=len(data.materials))

        total_cost = round(
            sum(m.quantity_per_sqm * (m.cost_per_unit or 0) for m in data.materials),
            2
        )

        try:
            existing = (
                self.db.table(self.table)
                .select("id")
                .eq("product_id", product_id)
                .limit(1)
                .execute()
            )

            header = {
                "product_id": product_id,
                "total_cost_per_sqm": total_cost,
                "created_by": data.created_by,
            }
            if product_name:
                header["product_name"] = product_name

            if existing.data:
                recipe_id = existing.data[0]["id"]
                self.db.table(self.table).update(header).eq("id", recipe_id).execute()
                self.db.table(self.materials_table).delete().eq("recipe_id", recipe_id).execute()
            else:
                created = self.db.table(self.table).insert(header).execute()
                recipe_id = created.data[0]["id"]

            if data.materials:
                lines = [
                    {
                        **material.model_dump(mode="json"),
                        "recipe_id": recipe_id,
                        "sort_order": index,
                    }
                    for index, material in enumerate(data.materials)
                ]
                self.db.table(self.materials_table).insert(lines).execute()

        except Exception as e:
            logger.error("save_recipe_failed", product_id=product_id, error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.info("recipe_saved", product_id=product_id, recipe_id=recipe_id)
        return self.get_by_product_id(product_id)

    def delete(self, product_id: str) -> bool:
        """Delete a product's recipe. Returns False if there was none."""
        recipe = self.get_by_product_id(product_id)
        if recipe is None:
            return False

        try:
            self.db.table(self.materials_table).delete().eq("recipe_id", recipe.id).execute()
            self.db.table(self.table).delete().eq("id", recipe.id).execute()
            logger.info("recipe_deleted", product_id=product_id, recipe_id=recipe.id)
            return True

        except Exception as e:
            logger.error("delete_recipe_failed", product_id=product_id, error=str(e))
            raise DatabaseError("delete", str(e))

    @staticmethod
    def suggest_quantity_per_sqm(
        child_product: dict[str, Any],
        parent_product: dict[str, Any]
    ) -> Optional[float]:
        """
        Units of child_product per SQM of parent_product.

        Returns None when no usable ratio exists; the quantity is then
        left blank for manual entry.
        """
        ratio = calculate_product_ratio(child_product, parent_product)
        if not is_usable_ratio(ratio):
            logger.debug(
                "product_ratio_unusable",
                child_product_id=child_product.get("id"),
                parent_product_id=parent_product.get("id")
            )
            return None
        return round(ratio, 4)


# Singleton instance for convenience
_recipe_service: Optional[RecipeService] = None


def get_recipe_service() -> RecipeService:
    """Get or create RecipeService instance."""
    global _recipe_service
    if _recipe_service is None:
        _recipe_service = RecipeService()
    return _recipe_service
