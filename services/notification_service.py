"""
Notification service.

Shortage and stock notifications are side effects: notify_best_effort()
never raises, so a notification outage can never block planning,
production or orders.
"""

from typing import Any, Optional
import structlog

from config import get_supabase_client
from models.notification import (
    NotificationCreate,
    NotificationResponse,
    NotificationType,
    NotificationPriority,
    NotificationStatus,
    NotificationModule,
)
from exceptions import NotFoundError, DatabaseError
from integrations.telegram import send_notification, TelegramError

logger = structlog.get_logger(__name__)


class NotificationService:
    """In-app notifications with optional Telegram push."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "notifications"

    def get_all(
        self,
        module: Optional[NotificationModule] = None,
        status: Optional[NotificationStatus] = None,
        limit: int = 50
    ) -> list[NotificationResponse]:
        """Latest notifications, newest first."""
        try:
            query = self.db.table(self.table).select("*")
            if module:
                query = query.eq("module", module.value)
            if status:
                query = query.eq("status", status.value)

            result = query.order("created_at", desc=True).limit(limit).execute()
            return [NotificationResponse(**row) for row in result.data]

        except Exception as e:
            logger.error("get_notifications_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def create(self, data: NotificationCreate) -> NotificationResponse:
        """Persist a notification."""
        try:
            insert_data = data.model_dump(mode="json")
            insert_data["status"] = NotificationStatus.UNREAD.value

            result = self.db.table(self.table).insert(insert_data).execute()
            notification = NotificationResponse(**result.data[0])

            logger.info(
                "notification_created",
                notification_id=notification.id,
                type=notification.type,
                module=notification.module
            )
            return notification

        except Exception as e:
            logger.error("create_notification_failed", title=data.title, error=str(e))
            raise DatabaseError("insert", str(e))

    def set_status(self, notification_id: str, status: NotificationStatus) -> NotificationResponse:
        """Mark a notification read or dismissed."""
        try:
            result = (
                self.db.table(self.table)
                .update({"status": status.value})
                .eq("id", notification_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_notification_failed", notification_id=notification_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise NotFoundError("Notification", notification_id)
        return NotificationResponse(**result.data[0])

    def notify_best_effort(
        self,
        title: str,
        message: str,
        module: NotificationModule,
        type: NotificationType = NotificationType.INFO,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        related_id: Optional[str] = None,
        related_data: Optional[dict[str, Any]] = None,
        created_by: Optional[str] = None
    ) -> Optional[NotificationResponse]:
        """
        Create a notification and push it to Telegram when urgent enough.

        Non-fatal: failures are logged and None is returned.
        """
        try:
            notification = self.create(NotificationCreate(
                type=type,
                title=title,
                message=message,
                priority=priority,
                module=module,
                related_id=related_id,
                related_data=related_data,
                created_by=created_by,
            ))
        except Exception as e:
            logger.warning("notification_skipped", title=title, error=str(e))
            return None

        try:
            send_notification(notification)
        except TelegramError as e:
            logger.warning("notification_push_failed", notification_id=notification.id, error=str(e))

        return notification


# Singleton instance for convenience
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create NotificationService instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
