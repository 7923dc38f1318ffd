"""
Raw material API routes.

Includes CSV/Excel import and Excel export.
"""

from io import BytesIO

from fastapi import APIRouter, Query, UploadFile, File
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Optional
import structlog

from models.base import PaginatedResponse
from models.raw_material import (
    RawMaterialCreate,
    RawMaterialUpdate,
    RawMaterialResponse,
    RawMaterialStatus,
    StockAdjustment,
    MaterialImportResult,
)
from services.raw_material_service import get_raw_material_service
from services.export_service import get_export_service, export_filename
from parsers.material_import_parser import parse_material_file
from exceptions import AppError

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


@router.get("", response_model=PaginatedResponse)
async def list_raw_materials(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    category: Optional[str] = Query(None),
    status: Optional[RawMaterialStatus] = Query(None),
    search: Optional[str] = Query(None, description="Name contains")
):
    """List raw materials."""
    try:
        service = get_raw_material_service()
        materials, total = service.get_all(
            page=page,
            page_size=page_size,
            category=category,
            status=status,
            search=search
        )
        return PaginatedResponse.create(materials, total, page, page_size)

    except Exception as e:
        return handle_error(e)


@router.get("/export")
async def export_raw_materials():
    """Download every raw material as an Excel workbook."""
    try:
        materials = get_raw_material_service().get_all_for_export()
        output = get_export_service().generate_materials_excel(materials)

        return StreamingResponse(
            output,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'}
        )

    except Exception as e:
        return handle_error(e)


@router.post("/import", response_model=MaterialImportResult)
async def import_raw_materials(file: UploadFile = File(...)):
    """
    Import raw materials from a CSV or Excel file.

    Invalid rows are reported in `errors`; valid rows are still created.

    Raises:
        422: File unreadable or empty
    """
    try:
        content = await file.read()
        parsed = parse_material_file(BytesIO(content), filename=file.filename)

        service = get_raw_material_service()
        return service.import_materials(parsed.rows, parsed.errors)

    except Exception as e:
        return handle_error(e)


@router.get("/{material_id}", response_model=RawMaterialResponse)
async def get_raw_material(material_id: str):
    """
    Raises:
        404: Material not found
    """
    try:
        return get_raw_material_service().get_by_id(material_id)
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=RawMaterialResponse, status_code=201)
async def create_raw_material(data: RawMaterialCreate):
    try:
        return get_raw_material_service().create(data)
    except Exception as e:
        return handle_error(e)


@router.patch("/{material_id}", response_model=RawMaterialResponse)
async def update_raw_material(material_id: str, data: RawMaterialUpdate):
    try:
        return get_raw_material_service().update(material_id, data)
    except Exception as e:
        return handle_error(e)


@router.post("/{material_id}/stock", response_model=RawMaterialResponse)
async def adjust_raw_material_stock(material_id: str, data: StockAdjustment):
    """
    Add or subtract stock. Stock never goes below 0.

    Raises:
        404: Material not found
    """
    try:
        service = get_raw_material_service()
        return service.adjust_stock(material_id, data.quantity, data.operation, data.reason)

    except Exception as e:
        return handle_error(e)
