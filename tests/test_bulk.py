"""Bulk send: chunked concurrency and per-recipient failure isolation."""

import asyncio
from uuid import uuid4

from app.core.config import settings
from app.schemas.notification import NotificationCreate, NotificationQuery

ANNOUNCEMENT = NotificationCreate(
    type="product_update",
    title="New dashboard",
    body="The seller dashboard has been redesigned.",
)


async def test_bulk_send_isolates_failures(service, monkeypatch):
    recipients = [uuid4() for _ in range(150)]
    broken = recipients[42]
    in_flight = 0
    peak = 0
    seen = []

    async def fake_send(user_id, data):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        seen.append(user_id)
        if user_id == broken:
            raise RuntimeError("recipient store unavailable")

    monkeypatch.setattr(service, "_send_in_own_session", fake_send)

    result = await service.send_bulk_notification(recipients, ANNOUNCEMENT)

    assert result.sent == 149
    assert result.failed == 1
    assert sorted(seen) == sorted(recipients)
    assert peak == settings.BULK_CHUNK_SIZE == 100


async def test_bulk_send_persists_for_each_recipient(service, db_session, user_id):
    result = await service.send_bulk_notification([user_id], ANNOUNCEMENT)

    assert result.sent == 1
    assert result.failed == 0
    page = await service.get_notifications(user_id, NotificationQuery())
    assert [n.title for n in page.data] == ["New dashboard"]
