"""
Export service - Generate raw material Excel files.

The workbook uses the same column set the import parser accepts, so an
export can be edited and imported again.
"""

from datetime import date
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Border, Side, PatternFill
import structlog

from models.raw_material import RawMaterialResponse

logger = structlog.get_logger(__name__)

# (header, attribute, column width)
MATERIAL_COLUMNS = [
    ("Name", "name", 30),
    ("Supplier", "supplier_name", 20),
    ("Category", "category", 20),
    ("Unit", "unit", 10),
    ("Current Stock", "current_stock", 15),
    ("Min Threshold", "min_threshold", 15),
    ("Max Capacity", "max_capacity", 15),
    ("Reorder Point", "reorder_point", 15),
    ("Cost Per Unit", "cost_per_unit", 15),
    ("Type", "type", 15),
    ("Color", "color", 15),
]

NUMERIC_ATTRIBUTES = {"current_stock", "min_threshold", "max_capacity", "reorder_point", "cost_per_unit"}


def export_filename(export_date: Optional[date] = None) -> str:
    """materials_export_2025-01-14.xlsx"""
    return f"materials_export_{(export_date or date.today()).isoformat()}.xlsx"


class ExportService:
    """Service for generating raw material export files."""

    def generate_materials_excel(self, materials: list[RawMaterialResponse]) -> BytesIO:
        """
        Generate an Excel workbook with one row per material.

        Args:
            materials: Materials to export

        Returns:
            BytesIO containing the Excel file
        """
        logger.info("generating_materials_export", material_count=len(materials))

        wb = Workbook()
        ws = wb.active
        ws.title = "Materials"

        # Styles
        bold_font = Font(bold=True)
        header_fill = PatternFill(start_color="E0E8FF", end_color="E0E8FF", fill_type="solid")
        thin_border = Border(
            bottom=Side(style="thin", color="000000")
        )

        for col, (header, _, width) in enumerate(MATERIAL_COLUMNS, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = bold_font
            cell.fill = header_fill
            cell.border = thin_border
            ws.column_dimensions[cell.column_letter].width = width

        for row, material in enumerate(materials, start=2):
            for col, (_, attribute, _) in enumerate(MATERIAL_COLUMNS, start=1):
                value = getattr(material, attribute)
                if attribute in NUMERIC_ATTRIBUTES:
                    cell = ws.cell(row=row, column=col, value=value or 0)
                    cell.number_format = "#,##0.00"
                else:
                    ws.cell(row=row, column=col, value=value or "")

        ws.freeze_panes = "A2"

        logger.info("materials_export_generated", rows=len(materials))

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        output.seek(0)

        return output


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
