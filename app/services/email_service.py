"""
Email Service

Resolves a user's address and sends notification mail through
the SMTP helper in a worker thread.
"""

import asyncio
import logging
from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.user import User
from app.repositories.base import BaseRepository
from app.utils.email import EmailDeliveryError, send_email

logger = logging.getLogger(__name__)


class EmailService:
    """Email Dispatcher used by instant sends and digests."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sender: Callable[..., bool] = send_email,
    ):
        self.session_factory = session_factory
        self._sender = sender

    async def resolve_address(self, user_id: UUID) -> str:
        async with self.session_factory() as db:
            user = await BaseRepository(User, db).get_by_id(user_id)

        if user is None or not user.is_active:
            raise EmailDeliveryError(f"No active user {user_id} to email")
        return user.email

    async def send_notification(self, user_id: UUID, subject: str, body: str) -> bool:
        """
        Email a user.

        Returns:
            False when SMTP is not configured (nothing was sent)

        Raises:
            EmailDeliveryError: unknown user or SMTP failure
        """
        address = await self.resolve_address(user_id)
        sent = await asyncio.to_thread(self._sender, [address], subject, body)
        if sent:
            logger.info(f"Notification email '{subject}' sent to user {user_id}")
        return sent
