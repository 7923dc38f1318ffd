"""
Notification schemas.
"""

from pydantic import Field
from typing import Optional, Any
from enum import Enum

from models.base import BaseSchema, TimestampMixin


class NotificationType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
    PRODUCTION_REQUEST = "production_request"
    RESTOCK_REQUEST = "restock_request"
    LOW_STOCK = "low_stock"
    ORDER_ALERT = "order_alert"
    ACTIVITY_LOG = "activity_log"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
    DISMISSED = "dismissed"


class NotificationModule(str, Enum):
    ORDERS = "orders"
    PRODUCTS = "products"
    MATERIALS = "materials"
    PRODUCTION = "production"
    ACTIVITY = "activity"


class NotificationCreate(BaseSchema):
    """Create a notification."""

    type: NotificationType = NotificationType.INFO
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    module: NotificationModule
    related_id: Optional[str] = None
    related_data: Optional[dict[str, Any]] = None
    created_by: Optional[str] = None


class NotificationResponse(BaseSchema, TimestampMixin):
    """Stored notification."""

    id: str
    type: str
    title: str
    message: str
    priority: str
    status: str = NotificationStatus.UNREAD.value
    module: str
    related_id: Optional[str] = None
    related_data: Optional[dict[str, Any]] = None
    created_by: Optional[str] = None
