"""
Notification Repository

Data access layer for the Notification model: paginated listing,
conditional status transitions and the queries behind the digests.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.notification import Notification
from app.repositories.base import BaseRepository
from app.schemas.notification import (
    PRIORITY_RANK,
    NotificationChannel,
    NotificationCreate,
    NotificationPriority,
    NotificationQuery,
    NotificationSortField,
    NotificationStatus,
    SortOrder,
)

# low=0 ... urgent=3, used for both sorting and digests
priority_rank = case(PRIORITY_RANK, value=Notification.priority, else_=1)


def not_expired(now: datetime):
    """Expired rows stay stored but are hidden from every listing."""
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Notification, db)

    # =================
    # Create
    # =================
    async def create_notification(
        self,
        user_id: UUID,
        data: NotificationCreate,
        channel: NotificationChannel,
    ) -> Notification:
        """Persist a notification with the channel actually used."""
        return await self.create(
            user_id=user_id,
            type=data.type.value,
            channel=channel.value,
            priority=data.priority.value,
            status=NotificationStatus.UNREAD.value,
            title=data.title,
            body=data.body,
            action_url=data.action_url,
            action_label=data.action_label,
            image_url=data.image_url,
            extra_data=dict(data.metadata),
            group_id=data.group_id,
            expires_at=data.expires_at,
        )

    # =================
    # Listing
    # =================
    async def list_for_user(
        self,
        user_id: UUID,
        filters: NotificationQuery,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Notification], int]:
        """
        Get one page of a user's notifications.

        Returns:
            (rows on the page, total matching rows)
        """
        now = now or utcnow()
        conditions = [
            Notification.user_id == user_id,
            Notification.deleted_at.is_(None),
            not_expired(now),
        ]
        if filters.type is not None:
            conditions.append(Notification.type == filters.type.value)
        if filters.status is not None:
            conditions.append(Notification.status == filters.status.value)
        if filters.channel is not None:
            conditions.append(Notification.channel == filters.channel.value)

        total_result = await self.db.execute(
            select(func.count(Notification.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        if filters.sort_by == NotificationSortField.PRIORITY:
            sort_column = priority_rank
        elif filters.sort_by == NotificationSortField.TYPE:
            sort_column = Notification.type
        else:
            sort_column = Notification.created_at

        if filters.sort_order == SortOrder.ASC:
            ordering = [sort_column.asc(), Notification.created_at.asc()]
        else:
            ordering = [sort_column.desc(), Notification.created_at.desc()]

        stmt = (
            select(Notification)
            .where(*conditions)
            .order_by(*ordering)
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def count_by_group(
        self,
        user_id: UUID,
        group_ids: Iterable[str],
    ) -> Dict[str, int]:
        """Count every stored row of each group for the user."""
        group_ids = list(group_ids)
        if not group_ids:
            return {}
        stmt = (
            select(Notification.group_id, func.count(Notification.id))
            .where(
                Notification.user_id == user_id,
                Notification.group_id.in_(group_ids),
                Notification.deleted_at.is_(None),
            )
            .group_by(Notification.group_id)
        )
        result = await self.db.execute(stmt)
        return {group_id: count for group_id, count in result.all()}

    async def count_unread(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.status == NotificationStatus.UNREAD.value,
                Notification.deleted_at.is_(None),
            )
        )
        return result.scalar() or 0

    # =================
    # State transitions
    # =================
    async def set_status(
        self,
        notification_id: UUID,
        user_id: UUID,
        status: NotificationStatus,
        read_at: Optional[datetime] = None,
    ) -> Optional[Notification]:
        """
        Conditionally update one notification owned by the user.

        read_at is kept only for the read status and cleared otherwise.

        Returns:
            The updated row, or None when no row matched (id, user_id)
        """
        values = {
            "status": status.value,
            "read_at": read_at if status is NotificationStatus.READ else None,
        }

        stmt = (
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.deleted_at.is_(None),
            )
            .values(**values)
            .returning(Notification.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        updated_id = result.scalar_one_or_none()
        await self.db.commit()

        if updated_id is None:
            return None
        return await self.db.get(Notification, updated_id, populate_existing=True)

    async def mark_all_read(self, user_id: UUID, read_at: datetime) -> int:
        """Mark every unread row of the user as read; returns the affected count."""
        stmt = (
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status == NotificationStatus.UNREAD.value,
                Notification.deleted_at.is_(None),
            )
            .values(status=NotificationStatus.READ.value, read_at=read_at)
            .returning(Notification.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        affected = len(result.scalars().all())
        await self.db.commit()
        return affected

    # =================
    # Digest queries
    # =================
    async def users_with_recent_unread(
        self,
        since: datetime,
        min_count: int = 3,
    ) -> List[Tuple[UUID, int]]:
        """(user_id, count) for users with at least min_count unread normal in-app rows created since."""
        stmt = (
            select(Notification.user_id, func.count(Notification.id))
            .where(
                Notification.status == NotificationStatus.UNREAD.value,
                Notification.priority == NotificationPriority.NORMAL.value,
                Notification.channel == NotificationChannel.IN_APP.value,
                Notification.created_at >= since,
                Notification.deleted_at.is_(None),
            )
            .group_by(Notification.user_id)
            .having(func.count(Notification.id) >= min_count)
        )
        result = await self.db.execute(stmt)
        return [(user_id, count) for user_id, count in result.all()]

    async def recent_unread_normal(self, user_id: UUID, limit: int = 10) -> List[Notification]:
        stmt = (
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status == NotificationStatus.UNREAD.value,
                Notification.priority == NotificationPriority.NORMAL.value,
                Notification.deleted_at.is_(None),
            )
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def unread_by_priority(self, user_id: UUID, limit: int = 25) -> List[Notification]:
        """Unread rows, lowest priority rank first, newest first within a rank."""
        stmt = (
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status == NotificationStatus.UNREAD.value,
                Notification.deleted_at.is_(None),
            )
            .order_by(priority_rank.asc(), Notification.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def created_since(
        self,
        user_id: UUID,
        since: datetime,
        limit: int = 50,
    ) -> List[Notification]:
        """Rows of any status created since the given instant, by priority rank then newest."""
        stmt = (
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.created_at >= since,
                Notification.deleted_at.is_(None),
            )
            .order_by(priority_rank.asc(), Notification.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
