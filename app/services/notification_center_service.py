"""
Notification Center Service

Business logic for creating, delivering and managing notifications,
user preferences and push subscriptions.
"""

import asyncio
import logging
import math
from typing import Dict, List, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import NotificationNotFoundError, PushSubscriptionNotFoundError
from app.models.base import utcnow
from app.models.notification import Notification
from app.models.notification_preference import (
    DEFAULT_NOTIFICATION_CATEGORIES,
    NotificationPreference,
)
from app.models.push_subscription import PushSubscription
from app.repositories.notification_repo import NotificationRepository
from app.repositories.preference_repo import PreferenceRepository
from app.repositories.push_subscription_repo import PushSubscriptionRepository
from app.schemas.notification import (
    BulkSendResponse,
    GroupedNotificationItem,
    GroupedNotifications,
    MarkAllReadResponse,
    NotificationChannel,
    NotificationCreate,
    NotificationPriority,
    NotificationQuery,
    NotificationResponse,
    NotificationStatus,
    PaginatedNotifications,
    PreferenceUpdate,
    PushSubscribeRequest,
)
from app.services.cache_service import CacheService, unread_count_key
from app.services.email_service import EmailService
from app.services.outbox import DeliveryOutbox
from app.services.preference_gate import (
    bypasses_preferences,
    is_category_enabled,
    is_quiet_hours,
)
from app.services.push_service import PushPayload, PushResult, PushService
from app.services.realtime_gateway import NotificationEvents, RealtimeGateway

logger = logging.getLogger(__name__)

GROUP_PREVIEW_SIZE = 3


def _event_payload(notification: Notification) -> dict:
    return NotificationResponse.model_validate(notification).model_dump(mode="json")


class NotificationCenterService:
    """Service class for notification center operations."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        cache: CacheService,
        gateway: RealtimeGateway,
        email: EmailService,
        push: PushService,
        outbox: DeliveryOutbox,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Initialize with a database session and the delivery collaborators."""
        self.db = db
        self.cache = cache
        self.gateway = gateway
        self.email = email
        self.push = push
        self.outbox = outbox
        self.session_factory = session_factory

        self.notification_repo = NotificationRepository(db)
        self.preference_repo = PreferenceRepository(db)
        self.push_repo = PushSubscriptionRepository(db)

    def with_session(self, db: AsyncSession) -> "NotificationCenterService":
        """Same collaborators, different database session."""
        return NotificationCenterService(
            db,
            cache=self.cache,
            gateway=self.gateway,
            email=self.email,
            push=self.push,
            outbox=self.outbox,
            session_factory=self.session_factory,
        )

    # ============================================================
    # Send Notification
    # ============================================================
    async def send_notification(
        self,
        user_id: UUID,
        data: NotificationCreate,
    ) -> Notification:
        """
        Persist a notification and dispatch it over its channel.

        Email and push run in the background; the record is returned
        as soon as the database write completes.

        Args:
            user_id: Recipient
            data: Validated notification content

        Returns:
            The stored notification
        """
        channel = data.channel
        side_channels_allowed = True

        if not bypasses_preferences(data.type):
            preference = await self.preference_repo.get_or_create(user_id)

            if not is_category_enabled(preference, data.type):
                side_channels_allowed = False
                logger.info(
                    f"Notification suppressed for user {user_id}: "
                    f"type={data.type.value}, channel={channel.value}"
                )

            if data.priority != NotificationPriority.URGENT and is_quiet_hours(preference):
                logger.info(f"Quiet hours active for user {user_id}, delivering in-app only")
                notification = await self.notification_repo.create_notification(
                    user_id, data, NotificationChannel.IN_APP
                )
                await self._invalidate_unread_count(user_id)
                await self.gateway.notify_user(
                    str(user_id), NotificationEvents.NEW, _event_payload(notification)
                )
                return notification

        notification = await self.notification_repo.create_notification(user_id, data, channel)
        await self._invalidate_unread_count(user_id)

        if side_channels_allowed:
            self._dispatch_side_channel(notification, channel)

        await self.gateway.notify_user(
            str(user_id), NotificationEvents.NEW, _event_payload(notification)
        )
        return notification

    def _dispatch_side_channel(self, notification: Notification, channel: NotificationChannel) -> None:
        """Queue the email/push delivery for a stored notification."""
        user_id = notification.user_id

        if channel == NotificationChannel.EMAIL:
            self.outbox.submit(
                self.email.send_notification(user_id, notification.title, notification.body),
                name=f"email:{notification.id}",
            )
        elif channel == NotificationChannel.PUSH:
            payload = PushPayload(
                title=notification.title,
                body=notification.body,
                icon=notification.image_url,
                data={"url": notification.action_url, "notificationId": str(notification.id)},
            )
            self.outbox.submit(
                self.push.send_push_notification(user_id, payload),
                name=f"push:{notification.id}",
            )
        elif channel == NotificationChannel.SMS:
            logger.warning("SMS notification channel not yet implemented")

    # ============================================================
    # Bulk Send
    # ============================================================
    async def send_bulk_notification(
        self,
        user_ids: Sequence[UUID],
        data: NotificationCreate,
    ) -> BulkSendResponse:
        """
        Send the same notification to many users.

        Recipients are processed in chunks; within a chunk every send
        runs concurrently on its own session so one failure never
        affects the others.
        """
        chunk_size = settings.BULK_CHUNK_SIZE
        sent = 0
        failed = 0

        for start in range(0, len(user_ids), chunk_size):
            chunk = user_ids[start:start + chunk_size]
            results = await asyncio.gather(
                *(self._send_in_own_session(user_id, data) for user_id in chunk),
                return_exceptions=True,
            )
            for user_id, outcome in zip(chunk, results):
                if isinstance(outcome, BaseException):
                    failed += 1
                    logger.error(f"Bulk notification failed for user {user_id}: {outcome}")
                else:
                    sent += 1

        logger.info(
            f"Bulk notification complete: {sent} sent, {failed} failed out of {len(user_ids)}"
        )
        return BulkSendResponse(sent=sent, failed=failed)

    async def _send_in_own_session(self, user_id: UUID, data: NotificationCreate) -> Notification:
        async with self.session_factory() as db:
            return await self.with_session(db).send_notification(user_id, data)

    # ============================================================
    # Listing
    # ============================================================
    async def get_notifications(
        self,
        user_id: UUID,
        filters: NotificationQuery,
    ) -> PaginatedNotifications:
        rows, total = await self.notification_repo.list_for_user(user_id, filters)
        return PaginatedNotifications(
            data=[NotificationResponse.model_validate(row) for row in rows],
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(total / filters.limit) if total else 0,
        )

    async def get_grouped_notifications(
        self,
        user_id: UUID,
        filters: NotificationQuery,
    ) -> GroupedNotifications:
        """
        Same page as get_notifications, with rows of a group collapsed
        into their newest member.

        group_count counts every stored row of the group, including
        rows outside the current page.
        """
        rows, total = await self.notification_repo.list_for_user(user_id, filters)

        ungrouped: List[Notification] = []
        groups: Dict[str, List[Notification]] = {}
        for row in rows:
            if row.group_id:
                groups.setdefault(row.group_id, []).append(row)
            else:
                ungrouped.append(row)

        group_totals = await self.notification_repo.count_by_group(user_id, groups.keys())

        items = [
            (row.created_at, GroupedNotificationItem(
                notification=NotificationResponse.model_validate(row),
            ))
            for row in ungrouped
        ]
        for group_id, members in groups.items():
            members.sort(key=lambda n: n.created_at, reverse=True)
            latest = [NotificationResponse.model_validate(n) for n in members[:GROUP_PREVIEW_SIZE]]
            items.append((members[0].created_at, GroupedNotificationItem(
                notification=latest[0],
                group_count=group_totals.get(group_id, len(members)),
                group_latest=latest,
            )))

        items.sort(key=lambda pair: pair[0], reverse=True)

        return GroupedNotifications(
            data=[item for _, item in items],
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=math.ceil(total / filters.limit) if total else 0,
        )

    # ============================================================
    # State Transitions
    # ============================================================
    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        """
        Raises:
            NotificationNotFoundError: no notification with that id for the user
        """
        notification = await self.notification_repo.set_status(
            notification_id, user_id, NotificationStatus.READ, read_at=utcnow()
        )
        if notification is None:
            raise NotificationNotFoundError(notification_id)

        await self._invalidate_unread_count(user_id)
        await self.gateway.notify_user(
            str(user_id), NotificationEvents.READ, {"id": str(notification_id)}
        )
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> MarkAllReadResponse:
        affected = await self.notification_repo.mark_all_read(user_id, utcnow())
        await self._invalidate_unread_count(user_id)
        await self.gateway.notify_user(
            str(user_id), NotificationEvents.ALL_READ, {"affected": affected}
        )
        return MarkAllReadResponse(affected=affected)

    async def archive_notification(self, notification_id: UUID, user_id: UUID) -> Notification:
        return await self._transition(
            notification_id, user_id, NotificationStatus.ARCHIVED, NotificationEvents.ARCHIVED
        )

    async def dismiss_notification(self, notification_id: UUID, user_id: UUID) -> Notification:
        return await self._transition(
            notification_id, user_id, NotificationStatus.DISMISSED, NotificationEvents.DISMISSED
        )

    async def _transition(
        self,
        notification_id: UUID,
        user_id: UUID,
        status: NotificationStatus,
        event: str,
    ) -> Notification:
        notification = await self.notification_repo.set_status(notification_id, user_id, status)
        if notification is None:
            raise NotificationNotFoundError(notification_id)

        await self._invalidate_unread_count(user_id)
        await self.gateway.notify_user(str(user_id), event, {"id": str(notification_id)})
        return notification

    # ============================================================
    # Unread Count
    # ============================================================
    async def get_unread_count(self, user_id: UUID) -> int:
        """Unread counter, cached for a few seconds."""
        return await self.cache.get_or_set(
            unread_count_key(user_id),
            lambda: self.notification_repo.count_unread(user_id),
            ttl=settings.UNREAD_COUNT_TTL_SECONDS,
        )

    async def _invalidate_unread_count(self, user_id: UUID) -> None:
        await self.cache.invalidate(unread_count_key(user_id))

    # ============================================================
    # Preferences
    # ============================================================
    async def get_user_preferences(self, user_id: UUID) -> NotificationPreference:
        return await self.preference_repo.get_or_create(user_id)

    async def update_preferences(
        self,
        user_id: UUID,
        data: PreferenceUpdate,
    ) -> NotificationPreference:
        """
        Apply only the provided fields.

        An explicit null clears a quiet-hours boundary. Categories are
        merged key by key; security always stays enabled.
        """
        preference = await self.preference_repo.get_or_create(user_id)
        changes = data.model_dump(mode="json", exclude_unset=True, exclude={"categories"})

        if data.categories is not None:
            merged = {**DEFAULT_NOTIFICATION_CATEGORIES, **(preference.categories or {})}
            merged.update(data.categories.model_dump(exclude_unset=True, exclude_none=True))
            merged["security"] = True
            # JSON columns only track reassignment
            preference.categories = merged

        for field, value in changes.items():
            setattr(preference, field, value)

        preference = await self.preference_repo.save(preference)
        logger.info(f"Notification preferences updated for user {user_id}")
        return preference

    # ============================================================
    # Push Subscriptions
    # ============================================================
    async def subscribe_push(
        self,
        user_id: UUID,
        data: PushSubscribeRequest,
    ) -> PushSubscription:
        subscription = await self.push_repo.upsert(user_id, data)
        logger.info(f"Push subscription saved for user {user_id}")
        return subscription

    async def unsubscribe_push(self, user_id: UUID, endpoint: str) -> None:
        """
        Raises:
            PushSubscriptionNotFoundError: the user has no subscription for endpoint
        """
        subscription = await self.push_repo.get_by_endpoint(user_id, endpoint)
        if subscription is None:
            raise PushSubscriptionNotFoundError(endpoint)

        await self.push_repo.deactivate(subscription)
        logger.info(f"Push subscription deactivated for user {user_id}")

    async def send_push_notification(
        self,
        user_id: UUID,
        payload: PushPayload,
    ) -> PushResult:
        return await self.push.send_push_notification(user_id, payload)

    async def send_test_push(self, user_id: UUID) -> PushResult:
        return await self.send_push_notification(user_id, PushPayload(
            title="Test Notification",
            body="This is a test push notification. If you see this, push notifications are working!",
            data={"test": True},
        ))