"""
Notification API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.notification import (
    NotificationCreate,
    NotificationResponse,
    NotificationStatus,
    NotificationModule,
)
from services.notification_service import get_notification_service
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


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    module: Optional[NotificationModule] = Query(None),
    status: Optional[NotificationStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200)
):
    try:
        return get_notification_service().get_all(module=module, status=status, limit=limit)
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=NotificationResponse, status_code=201)
async def create_notification(data: NotificationCreate):
    try:
        return get_notification_service().create(data)
    except Exception as e:
        return handle_error(e)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: str):
    """
    Raises:
        404: Notification not found
    """
    try:
        return get_notification_service().set_status(notification_id, NotificationStatus.READ)
    except Exception as e:
        return handle_error(e)


@router.patch("/{notification_id}/dismiss", response_model=NotificationResponse)
async def dismiss_notification(notification_id: str):
    try:
        return get_notification_service().set_status(notification_id, NotificationStatus.DISMISSED)
    except Exception as e:
        return handle_error(e)
