"""
Raw material import parser.

Reads a CSV or Excel upload of raw materials into RawMaterialCreate rows.
Header names are case-insensitive and several spellings are accepted
(e.g. "Current Stock", "currentstock", "stock").
"""

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional, Union
import structlog

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from models.raw_material import RawMaterialCreate
from exceptions import MaterialImportError

logger = structlog.get_logger(__name__)

# Normalized header -> RawMaterialCreate field
COLUMN_ALIASES = {
    "name": "name",
    "material_name": "name",
    "supplier": "supplier_name",
    "supplier_name": "supplier_name",
    "category": "category",
    "unit": "unit",
    "type": "type",
    "color": "color",
    "currentstock": "current_stock",
    "current_stock": "current_stock",
    "stock": "current_stock",
    "minthreshold": "min_threshold",
    "min_threshold": "min_threshold",
    "min": "min_threshold",
    "maxcapacity": "max_capacity",
    "max_capacity": "max_capacity",
    "max": "max_capacity",
    "reorderpoint": "reorder_point",
    "reorder_point": "reorder_point",
    "costperunit": "cost_per_unit",
    "cost_per_unit": "cost_per_unit",
    "cost": "cost_per_unit",
}

NUMERIC_FIELDS = {"current_stock", "min_threshold", "max_capacity", "reorder_point", "cost_per_unit"}

REQUIRED_FIELDS = {
    "name": "Name",
    "category": "Category",
    "unit": "Unit",
}

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")


@dataclass
class MaterialImportParseResult:
    """Rows ready to insert plus per-row problems."""
    rows: list[RawMaterialCreate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return len(self.rows) > 0


def parse_material_file(
    file: Union[str, Path, BytesIO],
    filename: Optional[str] = None
) -> MaterialImportParseResult:
    """
    Parse a raw material upload.

    Args:
        file: File path or file-like object
        filename: Original name; an Excel suffix selects the Excel reader

    Returns:
        MaterialImportParseResult; row errors read "Row N: ..." where N is
        the spreadsheet row (header is row 1)

    Raises:
        MaterialImportError: If the file cannot be read or has no rows
    """
    name = (filename or (str(file) if isinstance(file, (str, Path)) else "")).lower()
    is_excel = name.endswith(EXCEL_SUFFIXES)
    logger.info("parsing_material_import", filename=filename, excel=is_excel)

    try:
        if is_excel:
            df = pd.read_excel(file, engine="openpyxl", dtype=str)
        else:
            df = pd.read_csv(file, dtype=str, skip_blank_lines=True)
    except Exception as e:
        logger.error("material_import_read_failed", error=str(e))
        raise MaterialImportError("Failed to read import file", errors=[str(e)])

    df.columns = [_normalize_column(col) for col in df.columns]
    df = df.dropna(how="all")

    if df.empty:
        raise MaterialImportError("The file appears to be empty or has no data rows")

    result = MaterialImportParseResult()

    for idx, (_, raw) in enumerate(df.iterrows()):
        row_num = idx + 2
        values = _map_row(raw)

        missing = [label for key, label in REQUIRED_FIELDS.items() if not values.get(key)]
        if missing:
            result.errors.append(
                f"Row {row_num}: {', '.join(missing)} is required - {values.get('name') or 'Unknown'}"
            )
            continue

        try:
            result.rows.append(RawMaterialCreate(**values))
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            result.errors.append(f"Row {row_num}: {problems} - {values['name']}")

    logger.info(
        "material_import_parsed",
        rows=len(result.rows),
        errors=len(result.errors)
    )
    return result


def _map_row(raw: pd.Series) -> dict:
    """Apply aliases; the first non-empty alias of a field wins."""
    values: dict = {}
    for column, value in raw.items():
        target = COLUMN_ALIASES.get(column)
        if target is None or target in values:
            continue
        if pd.isna(value) or str(value).strip() == "":
            continue

        text = str(value).strip()
        if target in NUMERIC_FIELDS:
            number = pd.to_numeric(text.replace(",", ""), errors="coerce")
            if pd.isna(number):
                continue
            values[target] = float(number)
        else:
            values[target] = text
    return values


def _normalize_column(col: str) -> str:
    """
    Normalize header for alias lookup.

    "Current Stock" -> "current_stock"
    "Cost Per Unit" -> "cost_per_unit"
    """
    col = str(col).lower().strip().strip('"')
    return col.replace(" ", "_").replace("-", "_")
