"""Read / archive / dismiss transitions and their real-time events."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.core.exceptions import NotificationNotFoundError
from app.services.cache_service import unread_count_key
from app.services.realtime_gateway import NotificationEvents


async def test_mark_as_read(service, gateway, make_notification, user_id):
    notification = await make_notification(user_id)
    assert notification.read_at is None

    updated = await service.mark_as_read(notification.id, user_id)

    assert updated.status == "read"
    assert updated.read_at is not None
    assert updated.version == 2
    gateway.notify_user.assert_awaited_once_with(
        str(user_id), NotificationEvents.READ, {"id": str(notification.id)}
    )


async def test_mark_as_read_is_scoped_to_owner(service, gateway, make_notification, user_id):
    notification = await make_notification(uuid4())

    with pytest.raises(NotificationNotFoundError):
        await service.mark_as_read(notification.id, user_id)

    gateway.notify_user.assert_not_called()


async def test_unknown_notification_raises(service, user_id):
    with pytest.raises(NotificationNotFoundError):
        await service.archive_notification(uuid4(), user_id)


async def test_mark_all_as_read_reports_affected(service, gateway, make_notification, user_id):
    for _ in range(3):
        await make_notification(user_id)
    await make_notification(user_id, status="archived")
    await make_notification(uuid4())

    result = await service.mark_all_as_read(user_id)

    assert result.affected == 3
    assert await service.notification_repo.count_unread(user_id) == 0
    gateway.notify_user.assert_awaited_once_with(
        str(user_id), NotificationEvents.ALL_READ, {"affected": 3}
    )


async def test_mark_all_as_read_with_nothing_unread(service, user_id):
    result = await service.mark_all_as_read(user_id)
    assert result.affected == 0


async def test_archive(service, gateway, make_notification, user_id):
    notification = await make_notification(user_id, status="read")

    updated = await service.archive_notification(notification.id, user_id)

    assert updated.status == "archived"
    gateway.notify_user.assert_awaited_once_with(
        str(user_id), NotificationEvents.ARCHIVED, {"id": str(notification.id)}
    )


async def test_dismiss(service, gateway, make_notification, user_id):
    notification = await make_notification(user_id)

    updated = await service.dismiss_notification(notification.id, user_id)

    assert updated.status == "dismissed"
    assert updated.read_at is None
    gateway.notify_user.assert_awaited_once_with(
        str(user_id), NotificationEvents.DISMISSED, {"id": str(notification.id)}
    )


async def test_transitions_invalidate_unread_count(service, fake_redis, make_notification, user_id):
    notification = await make_notification(user_id)
    fake_redis.store[unread_count_key(user_id)] = "1"

    await service.dismiss_notification(notification.id, user_id)

    assert unread_count_key(user_id) not in fake_redis.store


async def test_archiving_a_read_notification_clears_read_at(service, make_notification, user_id):
    notification = await make_notification(
        user_id, status="read", read_at=datetime.now(timezone.utc) - timedelta(hours=2)
    )

    updated = await service.archive_notification(notification.id, user_id)

    assert updated.status == "archived"
    assert updated.read_at is None
