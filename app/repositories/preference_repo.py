"""
Notification Preference Repository

Data access layer for NotificationPreference model.
"""

import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification_preference import (
    DEFAULT_NOTIFICATION_CATEGORIES,
    NotificationPreference,
)
from app.repositories.base import BaseRepository
from app.schemas.notification import EmailDigestFrequency

logger = logging.getLogger(__name__)


class PreferenceRepository(BaseRepository[NotificationPreference]):
    """Repository for NotificationPreference model."""

    def __init__(self, db: AsyncSession):
        super().__init__(NotificationPreference, db)

    async def get_by_user_id(self, user_id: UUID) -> Optional[NotificationPreference]:
        result = await self.db.execute(
            select(NotificationPreference).where(
                NotificationPreference.user_id == user_id,
                NotificationPreference.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: UUID) -> NotificationPreference:
        """
        Get the user's preference, creating it with defaults on first access.

        A concurrent first access may win the unique constraint; the
        loser re-reads the row that was inserted.
        """
        preference = await self.get_by_user_id(user_id)
        if preference is not None:
            return preference

        try:
            return await self.create(
                user_id=user_id,
                categories=dict(DEFAULT_NOTIFICATION_CATEGORIES),
            )
        except IntegrityError:
            await self.db.rollback()
            logger.info("Preference for user %s created concurrently, reloading", user_id)
            preference = await self.get_by_user_id(user_id)
            if preference is None:
                raise
            return preference

    async def list_by_digest(self, frequency: EmailDigestFrequency) -> List[NotificationPreference]:
        result = await self.db.execute(
            select(NotificationPreference).where(
                NotificationPreference.email_digest == frequency.value,
                NotificationPreference.deleted_at.is_(None),
            )
        )
        return list(result.scalars().all())

    async def digest_by_user(self, user_ids: Iterable[UUID]) -> Dict[UUID, str]:
        """Map user id -> email_digest for users that have a preference row."""
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        result = await self.db.execute(
            select(NotificationPreference.user_id, NotificationPreference.email_digest).where(
                NotificationPreference.user_id.in_(user_ids),
                NotificationPreference.deleted_at.is_(None),
            )
        )
        return {user_id: digest for user_id, digest in result.all()}
