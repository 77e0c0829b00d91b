from fastapi import HTTPException, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from redis.asyncio import Redis
from typing import Optional
import uuid
import logging

from app.db.database import get_db, AsyncSessionLocal
from app.db.redis import get_redis
from app.core.security import TokenPrincipal, decode_access_token
from app.services.cache_service import CacheService
from app.services.email_service import EmailService
from app.services.notification_center_service import NotificationCenterService
from app.services.outbox import DeliveryOutbox, get_outbox
from app.services.push_service import PushService, VapidConfig
from app.services.realtime_gateway import RealtimeGateway, get_realtime_gateway

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


# =====================================================
# Get Current Caller
# =====================================================
async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenPrincipal:
    """
    Dependency that validates the JWT bearer token.

    Raises:
        HTTPException 401: If token is invalid or missing
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    principal = decode_access_token(credentials.credentials)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return principal


async def get_current_user_id(
    principal: TokenPrincipal = Depends(get_current_principal),
) -> uuid.UUID:
    return principal.user_id


async def require_admin(
    principal: TokenPrincipal = Depends(get_current_principal),
) -> TokenPrincipal:
    """
    Dependency that only lets admin roles through.

    Raises:
        HTTPException 403: caller is authenticated but not an admin
    """
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return principal


# =====================================================
# Notification Center Wiring
# =====================================================
async def get_cache_service(redis: Redis = Depends(get_redis)) -> CacheService:
    return CacheService(redis)


def get_gateway() -> RealtimeGateway:
    return get_realtime_gateway()


def get_delivery_outbox() -> DeliveryOutbox:
    return get_outbox()


async def get_notification_center_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    gateway: RealtimeGateway = Depends(get_gateway),
    outbox: DeliveryOutbox = Depends(get_delivery_outbox),
) -> NotificationCenterService:
    """Service bound to the request's session and the process-wide collaborators."""
    return NotificationCenterService(
        db,
        cache=cache,
        gateway=gateway,
        email=EmailService(AsyncSessionLocal),
        push=PushService(AsyncSessionLocal, VapidConfig.from_settings()),
        outbox=outbox,
        session_factory=AsyncSessionLocal,
    )


# =====================================================
# WebSocket Authentication
# =====================================================
def get_principal_ws(token: Optional[str]) -> Optional[TokenPrincipal]:
    """
    Authenticate a WebSocket connection from its ?token= query value.

    Unlike HTTP dependencies, WebSocket auth is done manually so the
    socket can be closed with a policy-violation code.
    """
    if not token:
        return None
    principal = decode_access_token(token)
    if principal is None:
        logger.warning("WebSocket auth failed: invalid token")
    return principal
