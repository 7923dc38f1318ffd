"""
Product service for business logic operations.
"""

from typing import Optional
import structlog

from config import get_supabase_client, settings
from models.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductStatus,
)
from exceptions import (
    ProductNotFoundError,
    DatabaseError
)
from utils.stock_status import calculate_stock_status

logger = structlog.get_logger(__name__)


class ProductService:
    """
    Product business logic.

    Handles CRUD operations and stock counters for finished products.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "products"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        page: int = 1,
        page_size: int = 20,
        category: Optional[str] = None,
        status: Optional[ProductStatus] = None,
        search: Optional[str] = None
    ) -> tuple[list[ProductResponse], int]:
        """
        Get all products with optional filters.

        Returns:
            Tuple of (products list, total count)
        """
        logger.info(
            "getting_products",
            page=page,
            page_size=page_size,
            category=category,
            status=status
        )

        try:
            query = self.db.table(self.table).select("*", count="exact")

            if category:
                query = query.eq("category", category)
            if status:
                query = query.eq("status", status.value)
            if search:
                query = query.ilike("name", f"%{search}%")

            offset = (page - 1) * page_size
            query = query.order("name").range(offset, offset + page_size - 1)

            result = query.execute()

            products = [ProductResponse(**row) for row in result.data]
            total = result.count or 0

            logger.info("products_retrieved", count=len(products), total=total)

            return products, total

        except Exception as e:
            logger.error("get_products_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, product_id: str) -> ProductResponse:
        """
        Get a single product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        logger.debug("getting_product", product_id=product_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", product_id)
                .single()
                .execute()
            )

            if not result.data:
                raise ProductNotFoundError(product_id)

            return ProductResponse(**result.data)

        except ProductNotFoundError:
            raise
        except Exception as e:
            logger.error("get_product_failed", product_id=product_id, error=str(e))
            if "0 rows" in str(e) or "no rows" in str(e).lower():
                raise ProductNotFoundError(product_id)
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: ProductCreate) -> ProductResponse:
        """Create a new product with its initial stock status."""
        logger.info("creating_product", name=data.name)

        try:
            insert_data = data.model_dump(mode="json")
            insert_data["status"] = calculate_stock_status(
                data.current_stock,
                self._min_level(data.min_stock_level),
                data.status.value
            )

            result = (
                self.db.table(self.table)
                .insert(insert_data)
                .execute()
            )

            product = ProductResponse(**result.data[0])
            logger.info("product_created", product_id=product.id, name=product.name)
            return product

        except Exception as e:
            logger.error("create_product_failed", name=data.name, error=str(e))
            raise DatabaseError("insert", str(e))

    def update(self, product_id: str, data: ProductUpdate) -> ProductResponse:
        """
        Update an existing product.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        logger.info("updating_product", product_id=product_id)

        existing = self.get_by_id(product_id)

        update_data = data.model_dump(mode="json", exclude_none=True)
        if not update_data:
            return existing

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", product_id)
                .execute()
            )

            product = ProductResponse(**result.data[0])
            logger.info("product_updated", product_id=product_id, fields=list(update_data.keys()))
            return product

        except Exception as e:
            logger.error("update_product_failed", product_id=product_id, error=str(e))
            raise DatabaseError("update", str(e))

    def increment_stock(self, product_id: str, delta: float) -> ProductResponse:
        """
        Add delta units to a product and recompute its status label.

        Stock never drops below 0.
        """
        product = self.get_by_id(product_id)
        new_stock = max(0.0, (product.current_stock or 0) + delta)
        new_status = calculate_stock_status(
            new_stock,
            self._min_level(product.min_stock_level),
            product.status
        )

        try:
            result = (
                self.db.table(self.table)
                .update({"current_stock": new_stock, "status": new_status})
                .eq("id", product_id)
                .execute()
            )

            logger.info(
                "product_stock_updated",
                product_id=product_id,
                delta=delta,
                new_stock=new_stock,
                status=new_status
            )
            return ProductResponse(**result.data[0])

        except Exception as e:
            logger.error("update_product_stock_failed", product_id=product_id, error=str(e))
            raise DatabaseError("update", str(e))

    def _min_level(self, min_stock_level: Optional[float]) -> float:
        if min_stock_level is not None:
            return min_stock_level
        return settings.product_low_stock_threshold


# Singleton instance for convenience
_product_service: Optional[ProductService] = None


def get_product_service() -> ProductService:
    """Get or create ProductService instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
