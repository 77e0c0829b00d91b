from app.repositories.base import BaseRepository
from app.repositories.notification_repo import NotificationRepository
from app.repositories.preference_repo import PreferenceRepository
from app.repositories.push_subscription_repo import PushSubscriptionRepository

__all__ = [
    "BaseRepository",
    "NotificationRepository",
    "PreferenceRepository",
    "PushSubscriptionRepository",
]
