"""
Notification Center Schemas
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, BaseModel, Field, field_validator


# ============================================================
# ENUMS - Typed Constants
# ============================================================
class NotificationType(str, Enum):
    """What kind of event produced the notification."""
    ORDER = "order"
    REVIEW = "review"
    PRODUCT_UPDATE = "product_update"
    PROMOTION = "promotion"
    SYSTEM = "system"
    COMMUNITY = "community"
    ACHIEVEMENT = "achievement"
    PAYOUT = "payout"
    SUBSCRIPTION = "subscription"
    SECURITY = "security"


class NotificationChannel(str, Enum):
    """Delivery path requested for a notification."""
    IN_APP = "in_app"
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class NotificationPriority(str, Enum):
    """Declared in ascending order; see PRIORITY_RANK."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(str, Enum):
    """
    Lifecycle state.

    unread -> read -> archived, or unread -> dismissed.
    """
    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"
    DISMISSED = "dismissed"


class EmailDigestFrequency(str, Enum):
    INSTANT = "instant"
    DAILY = "daily"
    WEEKLY = "weekly"
    NONE = "none"


class NotificationSortField(str, Enum):
    CREATED_AT = "created_at"
    PRIORITY = "priority"
    TYPE = "type"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


# Sort key for priority columns stored as text
PRIORITY_RANK: dict[str, int] = {
    NotificationPriority.LOW.value: 0,
    NotificationPriority.NORMAL.value: 1,
    NotificationPriority.HIGH.value: 2,
    NotificationPriority.URGENT.value: 3,
}


def _validate_clock(value: Optional[str]) -> Optional[str]:
    """Accept "HH:MM" on a 24h clock."""
    if value is None:
        return None
    try:
        hour, minute = value.split(":")
        if len(hour) != 2 or len(minute) != 2:
            raise ValueError
        if not (0 <= int(hour) <= 23 and 0 <= int(minute) <= 59):
            raise ValueError
    except ValueError:
        raise ValueError("Time must use the 24h HH:MM format")
    return value


# ============================================================
# Request Schemas (What client sends)
# ============================================================

class NotificationCreate(BaseModel):
    """A notification to deliver to one user."""

    type: NotificationType
    channel: NotificationChannel = NotificationChannel.IN_APP
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    action_url: Optional[str] = Field(None, max_length=500)
    action_label: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)
    priority: NotificationPriority = NotificationPriority.NORMAL
    metadata: Dict[str, Any] = Field(default_factory=dict)
    expires_at: Optional[datetime] = None
    group_id: Optional[str] = Field(
        None,
        max_length=255,
        description="Notifications sharing a group id are collapsed in the grouped listing",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "type": "order",
                "channel": "email",
                "title": "Your order has shipped",
                "body": "Order #1042 is on its way.",
                "action_url": "/account/orders/1042",
                "action_label": "Track order",
                "priority": "normal",
                "metadata": {"orderId": "1042"},
                "group_id": "order-1042",
            }
        }


class NotificationQuery(BaseModel):
    """Filters, pagination and sorting for listing notifications."""

    type: Optional[NotificationType] = None
    status: Optional[NotificationStatus] = None
    channel: Optional[NotificationChannel] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: NotificationSortField = NotificationSortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC


class CategoryUpdate(BaseModel):
    """Partial category toggles; omitted keys keep their stored value."""

    orders: Optional[bool] = None
    reviews: Optional[bool] = None
    product_updates: Optional[bool] = None
    promotions: Optional[bool] = None
    community: Optional[bool] = None
    achievements: Optional[bool] = None
    price_drops: Optional[bool] = None
    back_in_stock: Optional[bool] = None
    newsletter: Optional[bool] = None
    security: Optional[bool] = None


class PreferenceUpdate(BaseModel):
    """Fields a user may change on their notification preference."""

    categories: Optional[CategoryUpdate] = None
    channel: Optional[NotificationChannel] = None
    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    timezone: Optional[str] = Field(None, max_length=64)
    email_digest: Optional[EmailDigestFrequency] = None

    @field_validator("channel", "quiet_hours_enabled", "timezone", "email_digest")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        """These columns are not nullable; omit the field to keep it."""
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def validate_clock(cls, value: Optional[str]) -> Optional[str]:
        return _validate_clock(value)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        """Only IANA zone names are stored."""
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {value}")
        return value


class PushKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscribeRequest(BaseModel):
    """Body of a browser PushSubscription plus optional device labels."""

    endpoint: str = Field(..., min_length=1)
    keys: PushKeys
    user_agent: Optional[str] = Field(None, max_length=500)
    device_name: Optional[str] = Field(None, max_length=100)


class PushUnsubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)


class SendNotificationRequest(BaseModel):
    """Admin request targeting a single user."""

    user_id: UUID
    notification: NotificationCreate


class BroadcastRequest(BaseModel):
    """Admin request targeting many users."""

    user_ids: List[UUID] = Field(..., min_length=1)
    notification: NotificationCreate


# ============================================================
# Response Schemas (What server sends back)
# ============================================================

class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    type: NotificationType
    channel: NotificationChannel
    priority: NotificationPriority
    status: NotificationStatus
    title: str
    body: str
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    image_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_data", "metadata"),
    )
    group_id: Optional[str] = None
    read_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaginatedNotifications(BaseModel):
    data: List[NotificationResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class GroupedNotificationItem(BaseModel):
    notification: NotificationResponse
    group_count: Optional[int] = None
    group_latest: Optional[List[NotificationResponse]] = None


class GroupedNotifications(BaseModel):
    data: List[GroupedNotificationItem]
    total: int
    page: int
    limit: int
    total_pages: int


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    affected: int


class BulkSendResponse(BaseModel):
    sent: int
    failed: int


class PreferenceResponse(BaseModel):
    id: UUID
    user_id: UUID
    categories: Dict[str, bool]
    channel: NotificationChannel
    quiet_hours_enabled: bool
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    timezone: str
    email_digest: EmailDigestFrequency
    updated_at: datetime

    class Config:
        from_attributes = True


class PushSubscriptionResponse(BaseModel):
    id: UUID
    endpoint: str
    user_agent: Optional[str] = None
    device_name: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
