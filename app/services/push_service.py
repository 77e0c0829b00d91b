"""
Push Service

Sends Web Push messages (VAPID) to every active browser
subscription of a user and retires subscriptions the push
service reports as gone.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from pywebpush import WebPushException, webpush
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.models.push_subscription import PushSubscription
from app.repositories.push_subscription_repo import PushSubscriptionRepository

logger = logging.getLogger(__name__)

# Push services answer these when a subscription no longer exists
GONE_STATUS_CODES = (404, 410)


@dataclass(frozen=True)
class VapidConfig:
    """Application server keys used to sign push requests."""
    public_key: Optional[str]
    private_key: Optional[str]
    subject: str

    @property
    def enabled(self) -> bool:
        return bool(self.public_key and self.private_key)

    @classmethod
    def from_settings(cls) -> "VapidConfig":
        return cls(
            public_key=settings.VAPID_PUBLIC_KEY,
            private_key=settings.VAPID_PRIVATE_KEY,
            subject=settings.VAPID_SUBJECT,
        )


@dataclass
class PushPayload:
    title: str
    body: str
    icon: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        message: Dict[str, Any] = {"title": self.title, "body": self.body}
        if self.icon:
            message["icon"] = self.icon
        message["data"] = self.data
        return json.dumps(message, default=str)


@dataclass
class PushResult:
    sent: int = 0
    failed: int = 0
    deactivated: int = 0


class PushService:
    """Push Dispatcher."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        vapid: VapidConfig,
        sender: Callable[..., Any] = webpush,
        timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.vapid = vapid
        self.timeout = timeout if timeout is not None else settings.PUSH_TIMEOUT_SECONDS
        self._sender = sender

    @property
    def enabled(self) -> bool:
        return self.vapid.enabled

    def _send_one(self, subscription: PushSubscription, body: str) -> None:
        """Blocking HTTP call to the browser's push service."""
        self._sender(
            subscription_info={
                "endpoint": subscription.endpoint,
                "keys": {
                    "p256dh": subscription.keys["p256dh"],
                    "auth": subscription.keys["auth"],
                },
            },
            data=body,
            vapid_private_key=self.vapid.private_key,
            vapid_claims={"sub": self.vapid.subject},
            timeout=self.timeout,
        )

    async def send_push_notification(self, user_id: UUID, payload: PushPayload) -> PushResult:
        """
        Send a payload to every active subscription of the user concurrently.

        A 404/410 answer deactivates that subscription; any other error
        is logged and counted without affecting the other devices.
        No database connection is held while the push requests run.
        """
        result = PushResult()
        if not self.enabled:
            logger.debug(f"Push disabled, skipping push for user {user_id}")
            return result

        async with self.session_factory() as db:
            subscriptions = await PushSubscriptionRepository(db).list_active(user_id)

        if not subscriptions:
            logger.debug(f"No active push subscriptions for user {user_id}")
            return result

        body = payload.to_json()
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self._send_one, sub, body) for sub in subscriptions),
            return_exceptions=True,
        )

        gone: List[UUID] = []
        for subscription, outcome in zip(subscriptions, outcomes):
            if not isinstance(outcome, BaseException):
                result.sent += 1
                continue

            status_code = None
            if isinstance(outcome, WebPushException) and outcome.response is not None:
                status_code = outcome.response.status_code

            if status_code in GONE_STATUS_CODES:
                logger.info(
                    f"Push subscription {subscription.id} expired for user {user_id}, deactivating"
                )
                gone.append(subscription.id)
            else:
                result.failed += 1
                logger.error(
                    f"Push to subscription {subscription.id} failed for user {user_id}: {outcome}"
                )

        if gone:
            async with self.session_factory() as db:
                result.deactivated = await PushSubscriptionRepository(db).deactivate_many(gone)

        if result.failed:
            logger.warning(
                f"{result.failed}/{len(subscriptions)} push notifications failed for user {user_id}"
            )
        return result
