"""
CSV and Excel parsers module.
"""

from parsers.material_import_parser import (
    parse_material_file,
    MaterialImportParseResult,
)

__all__ = [
    "parse_material_file",
    "MaterialImportParseResult",
]
