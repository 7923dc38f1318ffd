"""
Individual product service.

Tracked units are reserved for an order (reserved) or for production
(in-production), consumed into a batch (completed), sold through orders,
or marked damaged.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4
import structlog

from config import get_supabase_client
from models.individual_product import (
    IndividualProductResponse,
    IndividualProductStatus,
)
from exceptions import (
    IndividualProductNotFoundError,
    DatabaseError
)

logger = structlog.get_logger(__name__)


class IndividualProductService:
    """QR-tracked unit persistence and status changes."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "individual_products"

    # ===================
    # READ OPERATIONS
    # ===================

    def list_by_product(
        self,
        product_id: str,
        status: Optional[IndividualProductStatus] = None,
        page: int = 1,
        page_size: int = 50
    ) -> tuple[list[IndividualProductResponse], int]:
        """
        Units of one product, newest first.

        Returns:
            Tuple of (units, total count)
        """
        try:
            query = (
                self.db.table(self.table)
                .select("*", count="exact")
                .eq("product_id", product_id)
            )
            if status:
                query = query.eq("status", status.value)

            offset = (page - 1) * page_size
            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )

            return [IndividualProductResponse(**row) for row in result.data], result.count or 0

        except Exception as e:
            logger.error("list_individual_products_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

    def count_available(self, product_id: str) -> int:
        """Number of units of a product that can be reserved."""
        try:
            result = (
                self.db.table(self.table)
                .select("id", count="exact")
                .eq("product_id", product_id)
                .eq("status", IndividualProductStatus.AVAILABLE.value)
                .execute()
            )
            return result.count or 0

        except Exception as e:
            logger.error("count_available_failed", product_id=product_id, error=str(e))
            raise DatabaseError("count", str(e))

    def get_by_id(self, individual_product_id: str) -> IndividualProductResponse:
        """
        Raises:
            IndividualProductNotFoundError: If unit doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", individual_product_id)
                .single()
                .execute()
            )
            if not result.data:
                raise IndividualProductNotFoundError(individual_product_id)
            return IndividualProductResponse(**result.data)

        except IndividualProductNotFoundError:
            raise
        except Exception as e:
            if "0 rows" in str(e) or "no rows" in str(e).lower():
                raise IndividualProductNotFoundError(individual_product_id)
            logger.error("get_individual_product_failed", id=individual_product_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_ids(self, ids: list[str]) -> list[IndividualProductResponse]:
        """Units for the given ids; unknown ids are simply absent."""
        if not ids:
            return []

        try:
            result = self.db.table(self.table).select("*").in_("id", ids).execute()
            return [IndividualProductResponse(**row) for row in result.data]

        except Exception as e:
            logger.error("get_individual_products_failed", count=len(ids), error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create_many(self, rows: list[dict]) -> list[IndividualProductResponse]:
        """Insert units in one request."""
        if not rows:
            return []

        try:
            result = self.db.table(self.table).insert(rows).execute()
            units = [IndividualProductResponse(**row) for row in result.data]
            logger.info("individual_products_created", count=len(units))
            return units

        except Exception as e:
            logger.error("create_individual_products_failed", count=len(rows), error=str(e))
            raise DatabaseError("insert", str(e))

    def update_status(self, ids: list[str], status: IndividualProductStatus) -> int:
        """
        Set status on every id.

        Raises:
            DatabaseError: If the update fails
        """
        if not ids:
            return 0

        try:
            result = (
                self.db.table(self.table)
                .update({"status": status.value})
                .in_("id", ids)
                .execute()
            )
            logger.info("individual_products_status_updated", count=len(result.data), status=status.value)
            return len(result.data)

        except Exception as e:
            logger.error("update_individual_status_failed", count=len(ids), error=str(e))
            raise DatabaseError("update", str(e))

    def claim_available(self, ids: list[str], status: IndividualProductStatus) -> list[str]:
        """
        Move units that are still available to status.

        The update is filtered on the available status, so a unit taken
        by another request in the meantime is left alone. Returns the ids
        that were actually claimed.

        Raises:
            DatabaseError: If the update fails
        """
        if not ids:
            return []

        try:
            result = (
                self.db.table(self.table)
                .update({"status": status.value})
                .in_("id", ids)
                .eq("status", IndividualProductStatus.AVAILABLE.value)
                .execute()
            )
            claimed = [row["id"] for row in result.data]
            logger.info(
                "individual_products_claimed",
                requested=len(ids),
                claimed=len(claimed),
                status=status.value
            )
            return claimed

        except Exception as e:
            logger.error("claim_individual_products_failed", count=len(ids), error=str(e))
            raise DatabaseError("update", str(e))

    def delete_many(self, ids: list[str]) -> int:
        """
        Remove units by id.

        Raises:
            DatabaseError: If the delete fails
        """
        if not ids:
            return 0

        try:
            result = self.db.table(self.table).delete().in_("id", ids).execute()
            logger.info("individual_products_deleted", count=len(result.data))
            return len(result.data)

        except Exception as e:
            logger.error("delete_individual_products_failed", count=len(ids), error=str(e))
            raise DatabaseError("delete", str(e))

    def set_status_best_effort(
        self,
        ids: list[str],
        status: IndividualProductStatus,
        reason: Optional[str] = None
    ) -> int:
        """
        Set status one unit at a time, logging failures.

        Non-fatal: used for side effects that must never block the
        calling operation. Returns how many units were updated.
        """
        updated = 0
        for unit_id in ids:
            try:
                self.db.table(self.table).update({"status": status.value}).eq("id", unit_id).execute()
                updated += 1
            except Exception as e:
                logger.warning(
                    "individual_product_status_update_skipped",
                    id=unit_id,
                    status=status.value,
                    reason=reason,
                    error=str(e)
                )

        if ids:
            logger.info(
                "individual_products_status_set",
                requested=len(ids),
                updated=updated,
                status=status.value,
                reason=reason
            )
        return updated

    # ===================
    # IDENTIFIERS
    # ===================

    @staticmethod
    def generate_qr_code() -> str:
        """Unique QR payload for a new unit."""
        return f"QR-{uuid4().hex[:12].upper()}"

    @staticmethod
    def generate_custom_id(product_name: str, sequence: int) -> str:
        """Human-readable id, e.g. 'ROY-20250114-003'."""
        letters = "".join(c for c in product_name.upper() if c.isalnum())[:3] or "IND"
        return f"{letters}-{datetime.utcnow():%Y%m%d}-{sequence:03d}"


# Singleton instance for convenience
_individual_product_service: Optional[IndividualProductService] = None


def get_individual_product_service() -> IndividualProductService:
    """Get or create IndividualProductService instance."""
    global _individual_product_service
    if _individual_product_service is None:
        _individual_product_service = IndividualProductService()
    return _individual_product_service
