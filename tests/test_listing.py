"""Paginated listing, expiry filtering, sorting and grouping."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from app.models import Notification
from app.schemas.notification import NotificationQuery

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def test_expired_notifications_are_hidden(service, db_session, make_notification, user_id):
    await make_notification(user_id, title="no expiry")
    await make_notification(user_id, title="future", expires_at=datetime.now(timezone.utc) + timedelta(days=1))
    expired = await make_notification(user_id, title="expired", expires_at=datetime.now(timezone.utc) - timedelta(hours=1))

    page = await service.get_notifications(user_id, NotificationQuery())

    assert page.total == 2
    assert {n.title for n in page.data} == {"no expiry", "future"}
    assert await db_session.get(Notification, expired.id) is not None


async def test_only_own_notifications_are_listed(service, make_notification, user_id):
    await make_notification(user_id)
    await make_notification(uuid4())

    page = await service.get_notifications(user_id, NotificationQuery())

    assert page.total == 1
    assert page.data[0].user_id == user_id


async def test_filters_and_pagination(service, make_notification, user_id):
    for index in range(5):
        await make_notification(user_id, title=f"order {index}", created_at=BASE_TIME + timedelta(minutes=index))
    await make_notification(user_id, type="review", title="review", created_at=BASE_TIME)
    await make_notification(user_id, status="read", title="read order", created_at=BASE_TIME)

    page = await service.get_notifications(
        user_id, NotificationQuery(type="order", status="unread", page=2, limit=2)
    )

    assert page.total == 5
    assert page.total_pages == 3
    assert page.page == 2
    assert [n.title for n in page.data] == ["order 2", "order 1"]


async def test_sort_by_priority_uses_rank(service, make_notification, user_id):
    for priority in ["high", "low", "urgent", "normal"]:
        await make_notification(user_id, priority=priority, title=priority)

    ascending = await service.get_notifications(
        user_id, NotificationQuery(sort_by="priority", sort_order="ASC")
    )
    descending = await service.get_notifications(
        user_id, NotificationQuery(sort_by="priority", sort_order="DESC")
    )

    assert [n.priority for n in ascending.data] == ["low", "normal", "high", "urgent"]
    assert [n.priority for n in descending.data] == ["urgent", "high", "normal", "low"]


async def test_empty_listing(service, user_id):
    page = await service.get_notifications(user_id, NotificationQuery())

    assert page.total == 0
    assert page.total_pages == 0
    assert page.data == []


async def test_grouped_collapses_rows_sharing_group(service, make_notification, user_id):
    for index in range(4):
        await make_notification(
            user_id,
            group_id="order-1042",
            title=f"update {index}",
            created_at=BASE_TIME + timedelta(minutes=index),
        )
    await make_notification(user_id, title="standalone", created_at=BASE_TIME + timedelta(minutes=10))

    grouped = await service.get_grouped_notifications(user_id, NotificationQuery())

    assert grouped.total == 5
    assert len(grouped.data) == 2

    standalone, group = grouped.data
    assert standalone.notification.title == "standalone"
    assert standalone.group_count is None
    assert standalone.group_latest is None

    assert group.notification.title == "update 3"
    assert group.group_count == 4
    assert [n.title for n in group.group_latest] == ["update 3", "update 2", "update 1"]


async def test_group_count_includes_rows_outside_page(service, make_notification, user_id):
    for index in range(5):
        await make_notification(
            user_id,
            group_id="reviews-batch",
            type="review",
            created_at=BASE_TIME + timedelta(minutes=index),
        )

    grouped = await service.get_grouped_notifications(user_id, NotificationQuery(limit=2))

    assert len(grouped.data) == 1
    assert grouped.data[0].group_count == 5
    assert len(grouped.data[0].group_latest) == 2


async def test_grouped_output_is_newest_first(service, make_notification, user_id):
    await make_notification(user_id, group_id="g", title="old group", created_at=BASE_TIME)
    await make_notification(user_id, title="middle", created_at=BASE_TIME + timedelta(minutes=5))
    await make_notification(user_id, group_id="h", title="new group", created_at=BASE_TIME + timedelta(minutes=9))

    grouped = await service.get_grouped_notifications(
        user_id, NotificationQuery(sort_order="ASC")
    )

    assert [item.notification.title for item in grouped.data] == ["new group", "middle", "old group"]
