"""
Notification Center Endpoints

Endpoints:
----------
- GET    /notification-center                 - List notifications (paginated)
- GET    /notification-center/grouped         - List with grouped rows collapsed
- GET    /notification-center/unread-count    - Cached unread counter
- PATCH  /notification-center/{id}/read       - Mark one as read
- POST   /notification-center/mark-all-read   - Mark all as read
- PATCH  /notification-center/{id}/archive    - Archive one
- PATCH  /notification-center/{id}/dismiss    - Dismiss one
- GET    /notification-center/preferences     - Get preferences
- PATCH  /notification-center/preferences     - Update preferences
- POST   /notification-center/push/subscribe  - Register a browser push subscription
- DELETE /notification-center/push/unsubscribe - Deactivate a push subscription
- POST   /notification-center/push/test       - Send a test push to own devices
- POST   /notification-center/send            - (admin) Send to one user
- POST   /notification-center/broadcast       - (admin) Send to many users
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import (
    get_current_user_id,
    get_notification_center_service,
    require_admin,
)
from app.core.security import TokenPrincipal
from app.schemas.notification import (
    BroadcastRequest,
    BulkSendResponse,
    GroupedNotifications,
    MarkAllReadResponse,
    MessageResponse,
    NotificationQuery,
    NotificationResponse,
    PaginatedNotifications,
    PreferenceResponse,
    PreferenceUpdate,
    PushSubscribeRequest,
    PushSubscriptionResponse,
    PushUnsubscribeRequest,
    SendNotificationRequest,
    UnreadCountResponse,
)
from app.services.notification_center_service import NotificationCenterService

logger = logging.getLogger(__name__)

# ============================================================
# Router Setup
# ============================================================
router = APIRouter(prefix="/notification-center", tags=["Notification Center"])

ServiceDep = Annotated[NotificationCenterService, Depends(get_notification_center_service)]
UserIdDep = Annotated[UUID, Depends(get_current_user_id)]


# ============================================================
# Listing
# ============================================================
@router.get(
    "",
    response_model=PaginatedNotifications,
    responses={401: {"description": "Not authenticated"}},
)
async def list_notifications(
    filters: Annotated[NotificationQuery, Query()],
    user_id: UserIdDep,
    service: ServiceDep,
):
    """
    Get the caller's notifications.

    Expired notifications are never returned.
    """
    return await service.get_notifications(user_id, filters)


@router.get("/grouped", response_model=GroupedNotifications)
async def list_grouped_notifications(
    filters: Annotated[NotificationQuery, Query()],
    user_id: UserIdDep,
    service: ServiceDep,
):
    """Same page as the plain listing, with notifications sharing a group_id collapsed."""
    return await service.get_grouped_notifications(user_id, filters)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(user_id: UserIdDep, service: ServiceDep):
    count = await service.get_unread_count(user_id)
    return UnreadCountResponse(count=count)


# ============================================================
# State Transitions
# ============================================================
@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"description": "Notification not found"}},
)
async def mark_as_read(notification_id: UUID, user_id: UserIdDep, service: ServiceDep):
    return await service.mark_as_read(notification_id, user_id)


@router.post("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_as_read(user_id: UserIdDep, service: ServiceDep):
    return await service.mark_all_as_read(user_id)


@router.patch(
    "/{notification_id}/archive",
    response_model=NotificationResponse,
    responses={404: {"description": "Notification not found"}},
)
async def archive_notification(notification_id: UUID, user_id: UserIdDep, service: ServiceDep):
    return await service.archive_notification(notification_id, user_id)


@router.patch(
    "/{notification_id}/dismiss",
    response_model=NotificationResponse,
    responses={404: {"description": "Notification not found"}},
)
async def dismiss_notification(notification_id: UUID, user_id: UserIdDep, service: ServiceDep):
    return await service.dismiss_notification(notification_id, user_id)


# ============================================================
# Preferences
# ============================================================
@router.get("/preferences", response_model=PreferenceResponse)
async def get_preferences(user_id: UserIdDep, service: ServiceDep):
    """Created with defaults on first access."""
    return await service.get_user_preferences(user_id)


@router.patch("/preferences", response_model=PreferenceResponse)
async def update_preferences(
    preference_data: PreferenceUpdate,
    user_id: UserIdDep,
    service: ServiceDep,
):
    """
    Update only the provided fields.

    The security category cannot be turned off.
    """
    return await service.update_preferences(user_id, preference_data)


# ============================================================
# Push Subscriptions
# ============================================================
@router.post(
    "/push/subscribe",
    response_model=PushSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def subscribe_push(
    subscription_data: PushSubscribeRequest,
    user_id: UserIdDep,
    service: ServiceDep,
):
    return await service.subscribe_push(user_id, subscription_data)


@router.delete(
    "/push/unsubscribe",
    response_model=MessageResponse,
    responses={404: {"description": "Push subscription not found"}},
)
async def unsubscribe_push(
    unsubscribe_data: PushUnsubscribeRequest,
    user_id: UserIdDep,
    service: ServiceDep,
):
    await service.unsubscribe_push(user_id, unsubscribe_data.endpoint)
    return MessageResponse(message="Push subscription deactivated")


@router.post("/push/test", response_model=MessageResponse)
async def send_test_push(user_id: UserIdDep, service: ServiceDep):
    """Send a fixed test payload to every active device of the caller."""
    result = await service.send_test_push(user_id)
    logger.info(
        f"Test push for user {user_id}: {result.sent} sent, "
        f"{result.failed} failed, {result.deactivated} deactivated"
    )
    return MessageResponse(message="Test push notification sent")


# ============================================================
# Admin
# ============================================================
@router.post(
    "/send",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"description": "Admin role required"}},
)
async def send_notification(
    request: SendNotificationRequest,
    admin: Annotated[TokenPrincipal, Depends(require_admin)],
    service: ServiceDep,
):
    logger.info(f"Admin {admin.user_id} sending notification to {request.user_id}")
    return await service.send_notification(request.user_id, request.notification)


@router.post(
    "/broadcast",
    response_model=BulkSendResponse,
    responses={403: {"description": "Admin role required"}},
)
async def broadcast_notification(
    request: BroadcastRequest,
    admin: Annotated[TokenPrincipal, Depends(require_admin)],
    service: ServiceDep,
):
    logger.info(f"Admin {admin.user_id} broadcasting to {len(request.user_ids)} users")
    return await service.send_bulk_notification(request.user_ids, request.notification)
