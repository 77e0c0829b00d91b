"""
Digest Tasks

Scheduled jobs that batch unread notifications into summary emails.

Cadences (see app.worker.WorkerSettings.cron_jobs):
- hourly:  every hour at minute 0, users on "instant" with a burst of
           normal-priority in-app notifications
- daily:   08:00, users whose email_digest is "daily"
- weekly:  Monday 09:00, users whose email_digest is "weekly"

Every run re-reads the current unread state; nothing records which
notifications were already summarized.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.notification import Notification
from app.repositories.notification_repo import NotificationRepository
from app.repositories.preference_repo import PreferenceRepository
from app.schemas.notification import EmailDigestFrequency
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)

HOURLY_MIN_UNREAD = 3
HOURLY_ITEMS = 10
DAILY_ITEMS = 25
WEEKLY_ITEMS = 50
WEEKLY_ITEMS_PER_TYPE = 5

# Users on these settings are covered by a later digest or opted out
HOURLY_SKIPPED_DIGESTS = {
    EmailDigestFrequency.DAILY.value,
    EmailDigestFrequency.WEEKLY.value,
    EmailDigestFrequency.NONE.value,
}


# ============================================================
# Body Formatting
# ============================================================

def _group_by_type(notifications: Sequence[Notification]) -> Dict[str, List[Notification]]:
    grouped: Dict[str, List[Notification]] = {}
    for notification in notifications:
        grouped.setdefault(notification.type, []).append(notification)
    return grouped


def format_hourly_digest(notifications: Sequence[Notification]) -> str:
    return "\n".join(f"• {n.title}: {n.body}" for n in notifications)


def format_daily_digest(notifications: Sequence[Notification]) -> str:
    body = f"You have {len(notifications)} unread notification(s):\n\n"
    for notification_type, items in _group_by_type(notifications).items():
        body += f"── {notification_type.upper()} ──\n"
        for item in items:
            body += f"• {item.title}\n"
        body += "\n"
    return body


def format_weekly_digest(notifications: Sequence[Notification]) -> str:
    unread = sum(1 for n in notifications if n.status == "unread")

    body = f"Weekly Summary: {len(notifications)} notification(s) this week"
    if unread:
        body += f" ({unread} unread)"
    body += "\n\n"

    for notification_type, items in _group_by_type(notifications).items():
        body += f"── {notification_type.upper()} ({len(items)}) ──\n"
        for item in items[:WEEKLY_ITEMS_PER_TYPE]:
            body += f"• {item.title}\n"
        if len(items) > WEEKLY_ITEMS_PER_TYPE:
            body += f"  ... and {len(items) - WEEKLY_ITEMS_PER_TYPE} more\n"
        body += "\n"
    return body


# ============================================================
# Scheduler
# ============================================================

class DigestScheduler:
    """
    Runs the three digest jobs.

    A job that is still running when its next trigger fires is not
    started a second time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email: EmailService,
    ):
        self.session_factory = session_factory
        self.email = email
        self._running = {
            "hourly": asyncio.Lock(),
            "daily": asyncio.Lock(),
            "weekly": asyncio.Lock(),
        }

    async def _send(self, user_id, subject: str, body: str, job: str) -> bool:
        try:
            return await self.email.send_notification(user_id, subject, body)
        except Exception as e:
            logger.error(f"Failed to send {job} digest to {user_id}: {e}")
            return False

    async def _guarded(self, job: str, run) -> int:
        lock = self._running[job]
        if lock.locked():
            logger.warning(f"{job.capitalize()} digest still running, skipping this trigger")
            return 0
        async with lock:
            return await run()

    # ============================================================
    # Hourly
    # ============================================================
    async def run_hourly(self, now: Optional[datetime] = None) -> int:
        """Returns the number of digest emails sent."""
        return await self._guarded("hourly", lambda: self._hourly(now))

    async def _hourly(self, now: Optional[datetime]) -> int:
        logger.info("Processing hourly notification digest...")
        now = now or datetime.now(timezone.utc)
        sent = 0

        async with self.session_factory() as db:
            notifications = NotificationRepository(db)
            try:
                candidates = await notifications.users_with_recent_unread(
                    now - timedelta(hours=1), min_count=HOURLY_MIN_UNREAD
                )
                digests = await PreferenceRepository(db).digest_by_user(
                    user_id for user_id, _ in candidates
                )
            except SQLAlchemyError as e:
                logger.error(f"Failed to process hourly digest: {e}")
                return 0

            for user_id, count in candidates:
                # No preference row yet means the default, instant
                if digests.get(user_id, EmailDigestFrequency.INSTANT.value) in HOURLY_SKIPPED_DIGESTS:
                    continue

                try:
                    recent = await notifications.recent_unread_normal(user_id, limit=HOURLY_ITEMS)
                except SQLAlchemyError as e:
                    logger.error(f"Failed to load hourly digest for {user_id}: {e}")
                    await db.rollback()
                    continue
                if not recent:
                    continue

                if await self._send(
                    user_id,
                    f"You have {count} new notifications",
                    format_hourly_digest(recent),
                    "hourly",
                ):
                    sent += 1

        logger.info(f"Hourly digest processed for {len(candidates)} user(s)")
        return sent

    # ============================================================
    # Daily
    # ============================================================
    async def run_daily(self) -> int:
        return await self._guarded("daily", self._daily)

    async def _daily(self) -> int:
        logger.info("Processing daily notification digest...")
        sent = 0

        async with self.session_factory() as db:
            notifications = NotificationRepository(db)
            try:
                preferences = await PreferenceRepository(db).list_by_digest(EmailDigestFrequency.DAILY)
            except SQLAlchemyError as e:
                logger.error(f"Failed to process daily digest: {e}")
                return 0
            # Rollback expires loaded rows, so keep plain ids
            user_ids = [preference.user_id for preference in preferences]

            for user_id in user_ids:
                try:
                    unread = await notifications.unread_by_priority(user_id, limit=DAILY_ITEMS)
                except SQLAlchemyError as e:
                    logger.error(f"Failed to load daily digest for {user_id}: {e}")
                    await db.rollback()
                    continue
                if not unread:
                    continue

                if await self._send(
                    user_id,
                    f"Your daily notification digest ({len(unread)} updates)",
                    format_daily_digest(unread),
                    "daily",
                ):
                    sent += 1

        logger.info(f"Daily digest processed for {len(preferences)} user(s)")
        return sent

    # ============================================================
    # Weekly
    # ============================================================
    async def run_weekly(self, now: Optional[datetime] = None) -> int:
        return await self._guarded("weekly", lambda: self._weekly(now))

    async def _weekly(self, now: Optional[datetime]) -> int:
        logger.info("Processing weekly notification digest...")
        now = now or datetime.now(timezone.utc)
        sent = 0

        async with self.session_factory() as db:
            notifications = NotificationRepository(db)
            try:
                preferences = await PreferenceRepository(db).list_by_digest(EmailDigestFrequency.WEEKLY)
            except SQLAlchemyError as e:
                logger.error(f"Failed to process weekly digest: {e}")
                return 0
            # Rollback expires loaded rows, so keep plain ids
            user_ids = [preference.user_id for preference in preferences]

            for user_id in user_ids:
                try:
                    week = await notifications.created_since(
                        user_id, now - timedelta(days=7), limit=WEEKLY_ITEMS
                    )
                except SQLAlchemyError as e:
                    logger.error(f"Failed to load weekly digest for {user_id}: {e}")
                    await db.rollback()
                    continue
                if not week:
                    continue

                if await self._send(
                    user_id,
                    f"Your weekly notification digest ({len(week)} updates)",
                    format_weekly_digest(week),
                    "weekly",
                ):
                    sent += 1

        logger.info(f"Weekly digest processed for {len(preferences)} user(s)")
        return sent


# ============================================================
# ARQ Cron Entry Points
# ============================================================

async def hourly_digest(ctx: Dict[str, Any]) -> int:
    return await ctx["digest_scheduler"].run_hourly()


async def daily_digest(ctx: Dict[str, Any]) -> int:
    return await ctx["digest_scheduler"].run_daily()


async def weekly_digest(ctx: Dict[str, Any]) -> int:
    return await ctx["digest_scheduler"].run_weekly()
