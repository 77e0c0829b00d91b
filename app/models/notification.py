from sqlalchemy import Column, String, Text, DateTime, JSON, Uuid, Index
from .base import BaseModel


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)  # opaque identity key, no FK
    type = Column(String(30), nullable=False)  # order, review, promotion, security, ...
    channel = Column(String(10), nullable=False, default="in_app")  # in_app, email, push, sms
    priority = Column(String(10), nullable=False, default="normal")  # low, normal, high, urgent
    status = Column(String(10), nullable=False, default="unread")  # unread, read, archived, dismissed

    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    action_url = Column(String(500), nullable=True)
    action_label = Column(String(100), nullable=True)
    image_url = Column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes
    extra_data = Column("metadata", JSON, nullable=False, default=dict)

    group_id = Column(String(255), nullable=True, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # filtered at query time, never deleted

    __table_args__ = (
        Index("ix_notifications_user_status", "user_id", "status"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )
