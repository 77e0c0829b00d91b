from sqlalchemy import Column, String, Boolean, Text, JSON, Uuid, UniqueConstraint
from .base import BaseModel


class PushSubscription(BaseModel):
    """Web Push API registration for one browser/device of a user."""
    __tablename__ = "push_subscriptions"

    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    endpoint = Column(Text, nullable=False)
    keys = Column(JSON, nullable=False)  # {"p256dh": "...", "auth": "..."}
    user_agent = Column(String(500), nullable=True)
    device_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscriptions_user_endpoint"),
    )
