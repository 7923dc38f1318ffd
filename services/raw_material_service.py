"""
Raw material service.

Stock of raw materials goes down when production consumption is
finalized and up when purchase orders are delivered or reusable waste
is returned.
"""

from typing import Optional
import structlog

from config import get_supabase_client, settings
from models.raw_material import (
    RawMaterialCreate,
    RawMaterialUpdate,
    RawMaterialResponse,
    RawMaterialStatus,
    StockOperation,
    MaterialImportResult,
)
from exceptions import (
    RawMaterialNotFoundError,
    DatabaseError
)
from utils.stock_status import calculate_stock_status

logger = structlog.get_logger(__name__)


class RawMaterialService:
    """
    Raw material business logic.

    Handles CRUD, stock adjustments and bulk import.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "raw_materials"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        page: int = 1,
        page_size: int = 50,
        category: Optional[str] = None,
        status: Optional[RawMaterialStatus] = None,
        search: Optional[str] = None
    ) -> tuple[list[RawMaterialResponse], int]:
        """
        Get raw materials with optional filters.

        Returns:
            Tuple of (materials list, total count)
        """
        logger.info("getting_raw_materials", page=page, category=category, status=status)

        try:
            query = self.db.table(self.table).select("*", count="exact")

            if category:
                query = query.eq("category", category)
            if status:
                query = query.eq("status", status.value)
            if search:
                query = query.ilike("name", f"%{search}%")

            offset = (page - 1) * page_size
            result = query.order("name").range(offset, offset + page_size - 1).execute()

            materials = [RawMaterialResponse(**row) for row in result.data]
            return materials, result.count or 0

        except Exception as e:
            logger.error("get_raw_materials_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, material_id: str) -> RawMaterialResponse:
        """
        Get a raw material by ID.

        Raises:
            RawMaterialNotFoundError: If material doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", material_id)
                .single()
                .execute()
            )

            if not result.data:
                raise RawMaterialNotFoundError(material_id)

            return RawMaterialResponse(**result.data)

        except RawMaterialNotFoundError:
            raise
        except Exception as e:
            logger.error("get_raw_material_failed", material_id=material_id, error=str(e))
            if "0 rows" in str(e) or "no rows" in str(e).lower():
                raise RawMaterialNotFoundError(material_id)
            raise DatabaseError("select", str(e))

    def get_all_for_export(self) -> list[RawMaterialResponse]:
        """Every raw material ordered by category then name."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .order("category")
                .order("name")
                .execute()
            )
            return [RawMaterialResponse(**row) for row in result.data]

        except Exception as e:
            logger.error("export_raw_materials_query_failed", error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: RawMaterialCreate) -> RawMaterialResponse:
        """Create a raw material with its initial stock status."""
        logger.info("creating_raw_material", name=data.name)

        try:
            insert_data = data.model_dump(mode="json")
            insert_data["status"] = calculate_stock_status(
                data.current_stock,
                self._min_level(data.min_threshold)
            )

            result = self.db.table(self.table).insert(insert_data).execute()

            material = RawMaterialResponse(**result.data[0])
            logger.info("raw_material_created", material_id=material.id, name=material.name)
            return material

        except Exception as e:
            logger.error("create_raw_material_failed", name=data.name, error=str(e))
            raise DatabaseError("insert", str(e))

    def update(self, material_id: str, data: RawMaterialUpdate) -> RawMaterialResponse:
        """Update provided fields of a raw material."""
        existing = self.get_by_id(material_id)

        update_data = data.model_dump(mode="json", exclude_none=True)
        if not update_data:
            return existing

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", material_id)
                .execute()
            )

            logger.info("raw_material_updated", material_id=material_id, fields=list(update_data.keys()))
            return RawMaterialResponse(**result.data[0])

        except Exception as e:
            logger.error("update_raw_material_failed", material_id=material_id, error=str(e))
            raise DatabaseError("update", str(e))

    def adjust_stock(
        self,
        material_id: str,
        quantity: float,
        operation: StockOperation,
        reason: Optional[str] = None
    ) -> RawMaterialResponse:
        """
        Add or subtract stock and recompute the status label.

        Stock never drops below 0. Any stock change clears in-transit.

        Raises:
            RawMaterialNotFoundError: If material doesn't exist
            DatabaseError: If the update fails
        """
        material = self.get_by_id(material_id)
        current = material.current_stock or 0

        if operation == StockOperation.ADD:
            new_stock = current + quantity
        else:
            new_stock = max(0.0, current - quantity)

        new_status = calculate_stock_status(new_stock, self._min_level(material.min_threshold))

        try:
            result = (
                self.db.table(self.table)
                .update({"current_stock": new_stock, "status": new_status})
                .eq("id", material_id)
                .execute()
            )

            logger.info(
                "raw_material_stock_adjusted",
                material_id=material_id,
                operation=operation.value,
                quantity=quantity,
                previous_stock=current,
                new_stock=new_stock,
                status=new_status,
                reason=reason
            )
            return RawMaterialResponse(**result.data[0])

        except Exception as e:
            logger.error("adjust_stock_failed", material_id=material_id, error=str(e))
            raise DatabaseError("update", str(e))

    def set_status(self, material_id: str, status: RawMaterialStatus) -> RawMaterialResponse:
        """Overwrite the status label (used for in-transit)."""
        self.get_by_id(material_id)

        try:
            result = (
                self.db.table(self.table)
                .update({"status": status.value})
                .eq("id", material_id)
                .execute()
            )
            logger.info("raw_material_status_set", material_id=material_id, status=status.value)
            return RawMaterialResponse(**result.data[0])

        except Exception as e:
            logger.error("set_raw_material_status_failed", material_id=material_id, error=str(e))
            raise DatabaseError("update", str(e))

    def import_materials(self, rows: list[RawMaterialCreate], errors: list[str]) -> MaterialImportResult:
        """
        Insert parsed import rows.

        Rows that fail to insert are reported with the parser errors
        instead of aborting the whole import.
        """
        logger.info("importing_raw_materials", rows=len(rows), parse_errors=len(errors))

        created = 0
        all_errors = list(errors)

        for index, row in enumerate(rows):
            try:
                self.create(row)
                created += 1
            except DatabaseError as e:
                all_errors.append(f"{row.name}: {e.message}")
                logger.warning("import_row_failed", index=index, name=row.name, error=e.message)

        logger.info("raw_materials_imported", created=created, errors=len(all_errors))
        return MaterialImportResult(created=created, errors=all_errors)

    def _min_level(self, min_threshold: Optional[float]) -> float:
        if min_threshold is not None:
            return min_threshold
        return settings.raw_material_low_stock_threshold


# Singleton instance for convenience
_raw_material_service: Optional[RawMaterialService] = None


def get_raw_material_service() -> RawMaterialService:
    """Get or create RawMaterialService instance."""
    global _raw_material_service
    if _raw_material_service is None:
        _raw_material_service = RawMaterialService()
    return _raw_material_service
