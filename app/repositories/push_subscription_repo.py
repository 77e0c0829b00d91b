"""
Push Subscription Repository

Data access layer for PushSubscription model.
"""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.push_subscription import PushSubscription
from app.repositories.base import BaseRepository
from app.schemas.notification import PushSubscribeRequest


class PushSubscriptionRepository(BaseRepository[PushSubscription]):
    """Repository for PushSubscription model."""

    def __init__(self, db: AsyncSession):
        super().__init__(PushSubscription, db)

    async def get_by_endpoint(self, user_id: UUID, endpoint: str) -> Optional[PushSubscription]:
        result = await self.db.execute(
            select(PushSubscription).where(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
                PushSubscription.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, user_id: UUID, data: PushSubscribeRequest) -> PushSubscription:
        """Insert or refresh the (user, endpoint) subscription and reactivate it."""
        keys = data.keys.model_dump()
        subscription = await self.get_by_endpoint(user_id, data.endpoint)

        if subscription is None:
            return await self.create(
                user_id=user_id,
                endpoint=data.endpoint,
                keys=keys,
                user_agent=data.user_agent,
                device_name=data.device_name,
                is_active=True,
            )

        subscription.keys = keys
        subscription.user_agent = data.user_agent
        subscription.device_name = data.device_name
        subscription.is_active = True
        return await self.save(subscription)

    async def list_active(self, user_id: UUID) -> List[PushSubscription]:
        result = await self.db.execute(
            select(PushSubscription)
            .where(
                PushSubscription.user_id == user_id,
                PushSubscription.is_active.is_(True),
                PushSubscription.deleted_at.is_(None),
            )
            .order_by(PushSubscription.created_at.asc())
        )
        return list(result.scalars().all())

    async def deactivate(self, subscription: PushSubscription) -> PushSubscription:
        subscription.is_active = False
        return await self.save(subscription)

    async def deactivate_many(self, subscription_ids: Iterable[UUID]) -> int:
        """Flip the given subscriptions inactive; returns how many rows changed."""
        subscription_ids = list(subscription_ids)
        if not subscription_ids:
            return 0
        result = await self.db.execute(
            update(PushSubscription)
            .where(
                PushSubscription.id.in_(subscription_ids),
                PushSubscription.is_active.is_(True),
            )
            .values(is_active=False)
            .returning(PushSubscription.id)
            .execution_options(synchronize_session=False)
        )
        changed = len(result.scalars().all())
        await self.db.commit()
        return changed
