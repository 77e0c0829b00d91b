from fastapi import APIRouter
from app.api.v1.endpoints import notification_center, realtime

# ============================================================
# Main API v1 Router
# ============================================================

api_router = APIRouter()

# Notification center routes at /notification-center
api_router.include_router(notification_center.router)

# WebSocket at /ws/notifications
api_router.include_router(realtime.router)
