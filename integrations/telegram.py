"""
Telegram bot integration for stock and production alerts.

Sends formatted notification messages to a Telegram chat.
"""

from typing import Optional
import requests
import structlog

from config import settings
from models.notification import NotificationResponse
from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)


PRIORITY_EMOJIS = {
    "urgent": "🚨",
    "high": "⚠️",
    "medium": "ℹ️",
    "low": "•",
}

TYPE_EMOJIS = {
    "low_stock": "📦",
    "restock_request": "🛒",
    "production_request": "🏭",
    "order_alert": "🧾",
    "error": "❌",
    "success": "✅",
}

# Priorities pushed to Telegram; the rest stay in-app only
PUSH_PRIORITIES = {"high", "urgent"}


class TelegramError(ExternalServiceError):
    """Telegram API error."""

    def __init__(self, message: str):
        super().__init__("telegram", message)


def get_telegram_config() -> tuple[Optional[str], Optional[str]]:
    """
    Get Telegram configuration from settings.

    Returns:
        tuple: (bot_token, chat_id)
    """
    if not settings.telegram_configured:
        logger.debug(
            "telegram_not_configured",
            has_token=bool(settings.telegram_bot_token),
            has_chat_id=bool(settings.telegram_chat_id)
        )
    return settings.telegram_bot_token, settings.telegram_chat_id


def format_notification_message(notification: NotificationResponse) -> str:
    """
    Format a notification as a Markdown Telegram message.

    Args:
        notification: Stored notification

    Returns:
        Formatted message string
    """
    priority_emoji = PRIORITY_EMOJIS.get(notification.priority, "•")
    type_emoji = TYPE_EMOJIS.get(notification.type, "•")

    lines = [
        f"{priority_emoji} {notification.priority.upper()}",
        "",
        f"{type_emoji} *{notification.title}*",
        "",
        notification.message,
    ]

    related = notification.related_data or {}
    if related.get("material_name"):
        lines.append("")
        lines.append(f"🧵 Material: `{related['material_name']}`")
    if related.get("product_name"):
        lines.append("")
        lines.append(f"🏷️ Product: `{related['product_name']}`")

    if notification.created_at:
        lines.append("")
        lines.append(f"🕐 {notification.created_at.strftime('%Y-%m-%d %H:%M UTC')}")

    return "\n".join(lines)


def send_message(message: str, parse_mode: str = "Markdown") -> bool:
    """
    Send message to Telegram.

    Returns:
        True if sent, False if Telegram is not configured

    Raises:
        TelegramError: If send fails
    """
    bot_token, chat_id = get_telegram_config()

    if not bot_token or not chat_id:
        logger.debug("telegram_not_configured_skipping_send")
        return False

    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"

    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": parse_mode,
        "disable_web_page_preview": True,
    }

    try:
        logger.info("sending_telegram_message", chat_id=chat_id)

        response = requests.post(url, json=payload, timeout=10)
        response.raise_for_status()

        result = response.json()

        if not result.get("ok"):
            error_msg = result.get("description", "Unknown error")
            logger.error("telegram_api_error", error=error_msg)
            raise TelegramError(f"Telegram API error: {error_msg}")

        logger.info("telegram_message_sent", message_id=result.get("result", {}).get("message_id"))
        return True

    except requests.exceptions.RequestException as e:
        logger.error("telegram_request_failed", error=str(e))
        raise TelegramError(f"Failed to send Telegram message: {str(e)}")


def send_notification(notification: NotificationResponse) -> bool:
    """Push a high or urgent notification. Lower priorities are skipped."""
    if notification.priority not in PUSH_PRIORITIES:
        return False
    return send_message(format_notification_message(notification))
