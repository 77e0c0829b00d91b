"""
Real-Time Endpoint

WebSocket:
----------
- /ws/notifications?token=<access token>

Server -> client frames are JSON: {"event", "data", "timestamp"}.
Admins also join the "admins" room.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.api.deps import get_principal_ws
from app.services.realtime_gateway import get_realtime_gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Real-Time"])

ADMIN_ROOM = "admins"


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    principal = get_principal_ws(token)
    if principal is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    gateway = get_realtime_gateway()
    rooms = [ADMIN_ROOM] if principal.is_admin else []
    await gateway.connect(websocket, str(principal.user_id), rooms)

    try:
        # Client frames are only keep-alives
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(websocket)
