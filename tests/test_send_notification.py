"""Send flow: persistence, preference gating, quiet hours and channel dispatch."""

from unittest.mock import ANY

import pytest
from freezegun import freeze_time

from app.models import DEFAULT_NOTIFICATION_CATEGORIES
from app.schemas.notification import NotificationCreate
from app.services.cache_service import unread_count_key
from app.services.push_service import PushPayload
from app.services.realtime_gateway import NotificationEvents

# 03:00 UTC sits inside a 22:00-07:00 UTC quiet window
INSIDE_QUIET_HOURS = "2026-01-15 03:00:00"


def order_update(**overrides) -> NotificationCreate:
    values = {
        "type": "order",
        "title": "Your order has shipped",
        "body": "Order #1042 is on its way.",
        "action_url": "/account/orders/1042",
    }
    values.update(overrides)
    return NotificationCreate(**values)


async def test_in_app_is_persisted_and_emitted(service, gateway, email, push, user_id):
    notification = await service.send_notification(user_id, order_update())

    assert notification.id is not None
    assert notification.channel == "in_app"
    assert notification.status == "unread"
    assert notification.priority == "normal"
    assert notification.version == 1

    gateway.notify_user.assert_awaited_once_with(str(user_id), NotificationEvents.NEW, ANY)
    payload = gateway.notify_user.await_args.args[2]
    assert payload["id"] == str(notification.id)
    assert payload["title"] == "Your order has shipped"
    email.send_notification.assert_not_called()
    push.send_push_notification.assert_not_called()


async def test_first_send_creates_default_preference(service, user_id):
    await service.send_notification(user_id, order_update())

    preference = await service.preference_repo.get_by_user_id(user_id)
    assert preference is not None
    assert preference.categories == DEFAULT_NOTIFICATION_CATEGORIES


async def test_email_channel_sends_in_background(service, gateway, email, outbox, user_id):
    notification = await service.send_notification(user_id, order_update(channel="email"))
    await outbox.drain()

    assert notification.channel == "email"
    email.send_notification.assert_awaited_once_with(
        user_id, "Your order has shipped", "Order #1042 is on its way."
    )
    gateway.notify_user.assert_awaited_once()
    assert outbox.completed == 1


async def test_push_channel_builds_payload(service, push, outbox, user_id):
    notification = await service.send_notification(
        user_id, order_update(channel="push", image_url="https://cdn.example.com/box.png")
    )
    await outbox.drain()

    push.send_push_notification.assert_awaited_once()
    sent_to, payload = push.send_push_notification.await_args.args
    assert sent_to == user_id
    assert payload == PushPayload(
        title="Your order has shipped",
        body="Order #1042 is on its way.",
        icon="https://cdn.example.com/box.png",
        data={"url": "/account/orders/1042", "notificationId": str(notification.id)},
    )


async def test_sms_channel_only_emits(service, gateway, email, push, outbox, user_id):
    notification = await service.send_notification(user_id, order_update(channel="sms"))

    assert notification.channel == "sms"
    assert outbox.pending == 0
    email.send_notification.assert_not_called()
    push.send_push_notification.assert_not_called()
    gateway.notify_user.assert_awaited_once()


async def test_failed_email_does_not_reach_caller(service, email, outbox, user_id):
    email.send_notification.side_effect = RuntimeError("smtp down")

    notification = await service.send_notification(user_id, order_update(channel="email"))
    await outbox.drain()

    assert notification.id is not None
    assert outbox.failed == 1


async def test_disabled_category_skips_side_channel(
    service, gateway, email, outbox, make_preference, user_id
):
    await make_preference(
        user_id, categories={**DEFAULT_NOTIFICATION_CATEGORIES, "promotions": False}
    )

    notification = await service.send_notification(
        user_id, order_update(type="promotion", channel="email", title="Spring sale")
    )
    await outbox.drain()

    assert notification.id is not None
    assert notification.channel == "email"
    email.send_notification.assert_not_called()
    gateway.notify_user.assert_awaited_once_with(str(user_id), NotificationEvents.NEW, ANY)


async def test_security_ignores_disabled_categories(service, email, outbox, make_preference, user_id):
    await make_preference(
        user_id, categories={key: False for key in DEFAULT_NOTIFICATION_CATEGORIES}
    )

    await service.send_notification(
        user_id, order_update(type="security", channel="email", title="New sign-in")
    )
    await outbox.drain()

    email.send_notification.assert_awaited_once()


@freeze_time(INSIDE_QUIET_HOURS, real_asyncio=True)
async def test_quiet_hours_downgrade_to_in_app(
    service, gateway, email, outbox, make_preference, user_id
):
    await make_preference(
        user_id, quiet_hours_enabled=True, quiet_hours_start="22:00", quiet_hours_end="07:00"
    )

    notification = await service.send_notification(user_id, order_update(channel="email"))
    await outbox.drain()

    assert notification.channel == "in_app"
    email.send_notification.assert_not_called()
    gateway.notify_user.assert_awaited_once_with(str(user_id), NotificationEvents.NEW, ANY)


@freeze_time(INSIDE_QUIET_HOURS, real_asyncio=True)
async def test_urgent_bypasses_quiet_hours(service, email, outbox, make_preference, user_id):
    await make_preference(
        user_id, quiet_hours_enabled=True, quiet_hours_start="22:00", quiet_hours_end="07:00"
    )

    notification = await service.send_notification(
        user_id, order_update(channel="email", priority="urgent")
    )
    await outbox.drain()

    assert notification.channel == "email"
    email.send_notification.assert_awaited_once()


@pytest.mark.parametrize("notification_type", ["security", "system"])
@freeze_time(INSIDE_QUIET_HOURS, real_asyncio=True)
async def test_security_and_system_bypass_quiet_hours(
    service, push, outbox, make_preference, user_id, notification_type
):
    await make_preference(
        user_id, quiet_hours_enabled=True, quiet_hours_start="22:00", quiet_hours_end="07:00"
    )

    notification = await service.send_notification(
        user_id, order_update(type=notification_type, channel="push")
    )
    await outbox.drain()

    assert notification.channel == "push"
    push.send_push_notification.assert_awaited_once()


async def test_send_invalidates_unread_count(service, fake_redis, user_id):
    fake_redis.store[unread_count_key(user_id)] = "7"

    await service.send_notification(user_id, order_update())

    assert unread_count_key(user_id) not in fake_redis.store


async def test_metadata_group_and_expiry_are_stored(service, user_id):
    notification = await service.send_notification(
        user_id,
        order_update(metadata={"orderId": "1042"}, group_id="order-1042"),
    )

    assert notification.extra_data == {"orderId": "1042"}
    assert notification.group_id == "order-1042"
    assert notification.expires_at is None
