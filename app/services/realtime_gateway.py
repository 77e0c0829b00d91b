"""
Real-Time Gateway

Manages WebSocket connections for live notification events.
Uses Redis Pub/Sub for cross-instance fan-out.

This enables:
- Delivery to every open tab/device of a user
- Room broadcasts (e.g. all admins) and global broadcasts
- Multi-instance support (multiple backend servers)

Delivery is at-most-once: a client that is offline misses the event
and catches up through the REST listing.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Set

from fastapi import WebSocket
from redis.asyncio import Redis

from app.db.redis import get_redis

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "notifications"


# ============================================================
# Event Types
# ============================================================

class NotificationEvents:
    """WebSocket event name constants."""
    NEW = "notification:new"
    READ = "notification:read"
    ALL_READ = "notification:all-read"
    ARCHIVED = "notification:archived"
    DISMISSED = "notification:dismissed"
    CONNECTED = "connected"


@dataclass
class RealtimeEvent:
    """Envelope published on Redis and written to sockets."""
    event: str
    data: Dict[str, Any]
    timestamp: str = field(default="")

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, data: str) -> "RealtimeEvent":
        return cls(**json.loads(data))


def user_channel(user_id: str) -> str:
    return f"{CHANNEL_PREFIX}:user:{user_id}"


def room_channel(room: str) -> str:
    return f"{CHANNEL_PREFIX}:room:{room}"


BROADCAST_CHANNEL = f"{CHANNEL_PREFIX}:broadcast"


# ============================================================
# Gateway
# ============================================================

class RealtimeGateway:
    """
    Tracks local sockets per user and per room and relays
    events published by any instance.
    """

    def __init__(self, redis_factory: Callable[[], Awaitable[Redis]] = get_redis):
        self._redis_factory = redis_factory

        # Map: user_id -> sockets of that user
        self._user_connections: Dict[str, Set[WebSocket]] = {}

        # Map: room -> sockets that joined it
        self._room_connections: Dict[str, Set[WebSocket]] = {}

        # Map: socket -> (user_id, rooms) for cleanup
        self._connection_info: Dict[WebSocket, tuple] = {}

        self._subscriber_task: Optional[asyncio.Task] = None

    # ============================================================
    # Connection Management
    # ============================================================

    async def connect(
        self,
        websocket: WebSocket,
        user_id: str,
        rooms: Iterable[str] = (),
    ) -> None:
        """
        Accept and register a new WebSocket connection.

        Args:
            websocket: The WebSocket connection
            user_id: User's UUID string
            rooms: Extra rooms the socket joins (e.g. "admins")
        """
        await websocket.accept()

        rooms = set(rooms)
        self._user_connections.setdefault(user_id, set()).add(websocket)
        for room in rooms:
            self._room_connections.setdefault(room, set()).add(websocket)
        self._connection_info[websocket] = (user_id, rooms)

        logger.info(
            f"WebSocket connected: user={user_id}, rooms={sorted(rooms)}. "
            f"Open sockets for user: {len(self._user_connections[user_id])}"
        )

        await self._send_to_socket(websocket, RealtimeEvent(
            event=NotificationEvents.CONNECTED,
            data={"user_id": user_id, "status": "connected"},
        ))

        await self._ensure_subscriber()

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection from all tracking."""
        if websocket not in self._connection_info:
            return

        user_id, rooms = self._connection_info.pop(websocket)

        sockets = self._user_connections.get(user_id)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self._user_connections[user_id]

        for room in rooms:
            members = self._room_connections.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._room_connections[room]

        logger.info(f"WebSocket disconnected: user={user_id}")

    def connection_count(self, user_id: Optional[str] = None) -> int:
        if user_id is None:
            return len(self._connection_info)
        return len(self._user_connections.get(user_id, ()))

    # ============================================================
    # Publishing
    # ============================================================

    async def notify_user(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        """Send an event to every socket of one user."""
        await self._publish(user_channel(str(user_id)), RealtimeEvent(event=event, data=payload))

    async def notify_room(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        """Send an event to every socket that joined a room."""
        await self._publish(room_channel(room), RealtimeEvent(event=event, data=payload))

    async def broadcast(self, event: str, payload: Dict[str, Any]) -> None:
        """Send an event to every connected socket."""
        await self._publish(BROADCAST_CHANNEL, RealtimeEvent(event=event, data=payload))

    async def _publish(self, channel: str, message: RealtimeEvent) -> None:
        """
        Publish through Redis so every instance delivers to its own sockets.
        Falls back to local delivery when Redis is unavailable.
        """
        try:
            redis = await self._redis_factory()
            await redis.publish(channel, message.to_json())
            logger.debug(f"Published {message.event} to {channel}")
        except Exception as e:
            logger.error(f"Failed to publish to Redis: {e}")
            await self._deliver_local(channel, message)

    # ============================================================
    # Local Delivery
    # ============================================================

    def _sockets_for(self, channel: str) -> Set[WebSocket]:
        """Resolve a pub/sub channel name to the local sockets it targets."""
        if channel == BROADCAST_CHANNEL:
            return set(self._connection_info)

        _, kind, target = channel.split(":", 2)
        if kind == "user":
            return set(self._user_connections.get(target, ()))
        if kind == "room":
            return set(self._room_connections.get(target, ()))
        return set()

    async def _deliver_local(self, channel: str, message: RealtimeEvent) -> None:
        sockets = self._sockets_for(channel)
        if not sockets:
            logger.debug(f"No local sockets for {channel}")
            return

        disconnected = []
        for websocket in sockets:
            try:
                await self._send_to_socket(websocket, message)
            except Exception as e:
                logger.warning(f"Failed to send to websocket: {e}")
                disconnected.append(websocket)

        for ws in disconnected:
            self.disconnect(ws)

    async def _send_to_socket(self, websocket: WebSocket, message: RealtimeEvent) -> None:
        await websocket.send_text(message.to_json())

    # ============================================================
    # Redis Pub/Sub Subscriber
    # ============================================================

    async def _ensure_subscriber(self) -> None:
        if self._subscriber_task is None or self._subscriber_task.done():
            self._subscriber_task = asyncio.create_task(self._subscriber_loop())
            logger.info("Started Redis Pub/Sub subscriber task")

    async def _subscriber_loop(self) -> None:
        """Relay every notifications:* message to matching local sockets."""
        try:
            redis = await self._redis_factory()
            pubsub = redis.pubsub()
            await pubsub.psubscribe(f"{CHANNEL_PREFIX}:*")
            logger.info(f"Subscribed to Redis pattern: {CHANNEL_PREFIX}:*")

            async for message in pubsub.listen():
                if message["type"] != "pmessage":
                    continue
                try:
                    channel = message["channel"]
                    if isinstance(channel, bytes):
                        channel = channel.decode("utf-8")
                    data = message["data"]
                    if isinstance(data, bytes):
                        data = data.decode("utf-8")

                    await self._deliver_local(channel, RealtimeEvent.from_json(data))
                except Exception as e:
                    logger.error(f"Error processing Redis message: {e}")

        except asyncio.CancelledError:
            logger.info("Redis subscriber task cancelled")
            raise
        except Exception as e:
            logger.error(f"Redis subscriber error: {e}")
            await asyncio.sleep(5)
            await self._ensure_subscriber()

    async def shutdown(self) -> None:
        """Stop the subscriber and close every socket."""
        if self._subscriber_task:
            self._subscriber_task.cancel()
            try:
                await self._subscriber_task
            except asyncio.CancelledError:
                pass

        for websocket in list(self._connection_info):
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Socket already closed during shutdown: {e}")

        self._user_connections.clear()
        self._room_connections.clear()
        self._connection_info.clear()

        logger.info("RealtimeGateway shutdown complete")


# ============================================================
# Singleton Instance
# ============================================================

_gateway: Optional[RealtimeGateway] = None


def get_realtime_gateway() -> RealtimeGateway:
    """Get the process-wide RealtimeGateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = RealtimeGateway()
    return _gateway


async def shutdown_realtime_gateway() -> None:
    global _gateway
    if _gateway is not None:
        await _gateway.shutdown()
        _gateway = None
