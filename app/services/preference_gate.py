"""
Preference Gate

Pure checks deciding whether a user wants a notification delivered
over a side channel right now: category toggles and quiet hours.
"""

import logging
from datetime import datetime, time, timezone
from typing import Optional, assert_never
from zoneinfo import ZoneInfo

from app.models.notification_preference import NotificationPreference
from app.schemas.notification import NotificationType

logger = logging.getLogger(__name__)

SECURITY_CATEGORY = "security"


def category_for_type(notification_type: NotificationType) -> str:
    """Preference category key governing a notification type."""
    match notification_type:
        case NotificationType.ORDER | NotificationType.PAYOUT | NotificationType.SUBSCRIPTION:
            return "orders"
        case NotificationType.REVIEW:
            return "reviews"
        case NotificationType.PRODUCT_UPDATE:
            return "product_updates"
        case NotificationType.PROMOTION:
            return "promotions"
        case NotificationType.COMMUNITY:
            return "community"
        case NotificationType.ACHIEVEMENT:
            return "achievements"
        case NotificationType.SYSTEM | NotificationType.SECURITY:
            return SECURITY_CATEGORY
        case _:
            assert_never(notification_type)


def bypasses_preferences(notification_type: NotificationType) -> bool:
    """Security and system notices ignore both category toggles and quiet hours."""
    return notification_type in (NotificationType.SECURITY, NotificationType.SYSTEM)


def is_category_enabled(
    preference: NotificationPreference,
    notification_type: NotificationType,
) -> bool:
    category = category_for_type(notification_type)
    if category == SECURITY_CATEGORY:
        return True
    # Keys missing from an older row count as enabled
    return bool((preference.categories or {}).get(category, True))


def _parse_clock(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def is_quiet_hours(
    preference: NotificationPreference,
    now: Optional[datetime] = None,
) -> bool:
    """
    True when the user's local wall-clock time is inside their quiet window.

    Windows where start > end wrap past midnight. An unknown zone or a
    malformed boundary never blocks delivery.
    """
    if not preference.quiet_hours_enabled:
        return False
    if not preference.quiet_hours_start or not preference.quiet_hours_end:
        return False

    try:
        start = _parse_clock(preference.quiet_hours_start)
        end = _parse_clock(preference.quiet_hours_end)

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(ZoneInfo(preference.timezone or "UTC"))
        current = time(local.hour, local.minute)
    except Exception as e:
        logger.warning(f"Ignoring quiet hours for user {preference.user_id}: {e}")
        return False

    if start > end:
        return current >= start or current < end
    return start <= current < end
