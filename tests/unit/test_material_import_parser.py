"""
Unit tests for the raw material import parser.

Run: pytest tests/unit/test_material_import_parser.py -v
"""

from io import BytesIO

import pytest

from parsers.material_import_parser import parse_material_file, _normalize_column
from services.export_service import ExportService
from models.raw_material import RawMaterialResponse
from exceptions import MaterialImportError


def _csv(text: str) -> BytesIO:
    return BytesIO(text.strip().encode("utf-8"))


class TestNormalizeColumn:
    """Tests for _normalize_column()"""

    def test_spaces_become_underscores(self):
        assert _normalize_column("Current Stock") == "current_stock"

    def test_quotes_and_case(self):
        assert _normalize_column(' "Cost-Per-Unit" ') == "cost_per_unit"


class TestParseMaterialFileCsv:
    """Tests for parse_material_file() with CSV input"""

    def test_valid_rows(self):
        # Arrange
        content = _csv("""
Name,Supplier,Category,Unit,Current Stock,Min Threshold,Cost Per Unit
Cotton Yarn,Shree Textiles,Yarn,kg,"1,200",50,120
Red Dye,Colour House,Dye,liters,40,,850.5
""")

        # Act
        result = parse_material_file(content, "materials.csv")

        # Assert
        assert result.errors == []
        assert result.has_data
        yarn, dye = result.rows
        assert yarn.name == "Cotton Yarn"
        assert yarn.supplier_name == "Shree Textiles"
        assert yarn.current_stock == 1200
        assert yarn.min_threshold == 50
        assert dye.min_threshold is None
        assert dye.cost_per_unit == 850.5

    def test_alias_headers(self):
        content = _csv("""
material_name,category,unit,stock,min,cost
Jute Backing,Backing,rolls,12,2,300
""")

        result = parse_material_file(content, "materials.csv")

        assert result.rows[0].name == "Jute Backing"
        assert result.rows[0].current_stock == 12
        assert result.rows[0].min_threshold == 2

    def test_row_errors_use_sheet_row_numbers(self):
        """Should report every bad row and keep the good ones."""
        content = _csv("""
Name,Category,Unit,Current Stock
Cotton Yarn,Yarn,kg,100
,Yarn,kg,10
Red Dye,Dye,,5
Latex,Adhesive,kg,-5
""")

        result = parse_material_file(content, "materials.csv")

        assert [r.name for r in result.rows] == ["Cotton Yarn"]
        assert result.errors[0] == "Row 3: Name is required - Unknown"
        assert result.errors[1] == "Row 4: Unit is required - Red Dye"
        assert result.errors[2].startswith("Row 5: current_stock:")
        assert result.errors[2].endswith("- Latex")

    def test_non_numeric_stock_ignored(self):
        content = _csv("""
Name,Category,Unit,Current Stock
Cotton Yarn,Yarn,kg,plenty
""")

        result = parse_material_file(content, "materials.csv")

        assert result.rows[0].current_stock == 0

    def test_header_only_file_rejected(self):
        with pytest.raises(MaterialImportError) as exc_info:
            parse_material_file(_csv("Name,Category,Unit"), "materials.csv")

        assert exc_info.value.code == "MATERIAL_IMPORT_FAILED"

    def test_unreadable_file_rejected(self):
        with pytest.raises(MaterialImportError):
            parse_material_file(BytesIO(b""), "materials.csv")


class TestParseMaterialFileExcel:
    """Tests for parse_material_file() with Excel input"""

    def test_exported_workbook_imports_again(self):
        # Arrange
        materials = [
            RawMaterialResponse(
                id="yarn-1",
                name="Cotton Yarn",
                category="Yarn",
                supplier_name="Shree Textiles",
                unit="kg",
                current_stock=120,
                min_threshold=20,
                cost_per_unit=95,
            ),
        ]
        workbook = ExportService().generate_materials_excel(materials)

        # Act
        result = parse_material_file(workbook, "materials_export_2025-01-14.xlsx")

        # Assert
        assert result.errors == []
        row = result.rows[0]
        assert row.name == "Cotton Yarn"
        assert row.supplier_name == "Shree Textiles"
        assert row.current_stock == 120
        assert row.min_threshold == 20
        assert row.cost_per_unit == 95
