from app.models.base import Base
from app.models.user import User
from app.models.notification import Notification
from app.models.notification_preference import (
    NotificationPreference,
    DEFAULT_NOTIFICATION_CATEGORIES,
)
from app.models.push_subscription import PushSubscription

__all__ = [
    "Base",
    "User",
    "Notification",
    "NotificationPreference",
    "DEFAULT_NOTIFICATION_CATEGORIES",
    "PushSubscription",
]
