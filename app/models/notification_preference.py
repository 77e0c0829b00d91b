from sqlalchemy import Column, String, Boolean, JSON, Uuid
from .base import BaseModel

# Every key a preference record carries; security can never be switched off
DEFAULT_NOTIFICATION_CATEGORIES = {
    "orders": True,
    "reviews": True,
    "product_updates": True,
    "promotions": True,
    "community": True,
    "achievements": True,
    "price_drops": True,
    "back_in_stock": True,
    "newsletter": False,
    "security": True,
}


class NotificationPreference(BaseModel):
    __tablename__ = "notification_preferences"

    user_id = Column(Uuid(as_uuid=True), nullable=False, unique=True, index=True)
    categories = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_NOTIFICATION_CATEGORIES))
    channel = Column(String(10), nullable=False, default="in_app")

    quiet_hours_enabled = Column(Boolean, default=False, nullable=False)
    quiet_hours_start = Column(String(5), nullable=True)  # "HH:MM", 24h
    quiet_hours_end = Column(String(5), nullable=True)
    timezone = Column(String(64), nullable=False, default="UTC")  # IANA zone name

    email_digest = Column(String(10), nullable=False, default="instant", index=True)  # instant, daily, weekly, none
