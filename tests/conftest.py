"""
Shared test fixtures for the Notification Center tests.

Provides an in-memory SQLite database, test doubles for the delivery
transports and a wired NotificationCenterService.
"""

import os

# Must be set before any app module builds the engine or settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DEBUG"] = "false"

from collections.abc import AsyncGenerator
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.db.database import Base
from app.main import app
from app.api.deps import get_notification_center_service
from app.models import Notification, NotificationPreference, User
from app.services.cache_service import CacheService
from app.services.email_service import EmailService
from app.services.notification_center_service import NotificationCenterService
from app.services.outbox import DeliveryOutbox
from app.services.push_service import PushService
from app.services.realtime_gateway import RealtimeGateway


class FakeRedis:
    """Dict-backed stand-in for the few redis.asyncio calls the cache makes."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Fresh in-memory database per test function.

    StaticPool keeps the single connection so every session of the
    test sees the same tables.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


# --- Collaborator Fixtures ---


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> CacheService:
    return CacheService(fake_redis)


@pytest.fixture
def gateway() -> AsyncMock:
    return AsyncMock(spec=RealtimeGateway)


@pytest.fixture
def email() -> AsyncMock:
    mock = AsyncMock(spec=EmailService)
    mock.send_notification.return_value = True
    return mock


@pytest.fixture
def push() -> AsyncMock:
    return AsyncMock(spec=PushService)


@pytest.fixture
def outbox() -> DeliveryOutbox:
    return DeliveryOutbox()


@pytest.fixture
def service(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    cache: CacheService,
    gateway: AsyncMock,
    email: AsyncMock,
    push: AsyncMock,
    outbox: DeliveryOutbox,
) -> NotificationCenterService:
    return NotificationCenterService(
        db_session,
        cache=cache,
        gateway=gateway,
        email=email,
        push=push,
        outbox=outbox,
        session_factory=session_factory,
    )


# --- Data Helpers ---


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_notification(db_session: AsyncSession):
    """Factory inserting a notification row with explicit fields."""

    async def _make(user_id: UUID, **overrides: Any) -> Notification:
        values: Dict[str, Any] = {
            "user_id": user_id,
            "type": "order",
            "channel": "in_app",
            "priority": "normal",
            "status": "unread",
            "title": "Order shipped",
            "body": "Your order is on its way.",
            "extra_data": {},
        }
        values.update(overrides)
        notification = Notification(**values)
        db_session.add(notification)
        await db_session.commit()
        await db_session.refresh(notification)
        return notification

    return _make


@pytest.fixture
def make_preference(db_session: AsyncSession):
    async def _make(user_id: UUID, **overrides: Any) -> NotificationPreference:
        preference = NotificationPreference(user_id=user_id, **overrides)
        db_session.add(preference)
        await db_session.commit()
        await db_session.refresh(preference)
        return preference

    return _make


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make(email_address: str = "shopper@example.com", **overrides: Any) -> User:
        user = User(email=email_address, **overrides)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


# --- HTTP Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def async_client(service: NotificationCenterService) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client configured for testing.
    Overrides the service dependency with the test-wired service.
    """

    async def override_service():
        return service

    app.dependency_overrides[get_notification_center_service] = override_service

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Factory fixture for creating bearer headers."""

    def _auth_headers(subject: UUID, roles: tuple = ()) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(subject, roles=roles)}"}

    return _auth_headers
