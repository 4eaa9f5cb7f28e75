"""Notification history API endpoints and change stream."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect

from ..schemas.notification import NotificationRecord
from ..services.container import NotificationServices
from .deps import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/history", tags=["history"])

ws_router = APIRouter(tags=["history"])


def _ensure(ok: bool):
    if not ok:
        raise HTTPException(status_code=503, detail="Notification history is unavailable")


@router.get("", response_model=List[NotificationRecord])
async def list_history(services: NotificationServices = Depends(get_services)):
    """All kept notifications, newest first."""
    return services.history.list_all()


@router.get("/unread-count")
async def get_unread_count(services: NotificationServices = Depends(get_services)):
    return {"unread_count": services.history.unread_count()}


@router.post("/read-all")
async def mark_all_read(services: NotificationServices = Depends(get_services)):
    _ensure(await services.history.mark_all_read())
    return {"success": True, "unread_count": services.history.unread_count()}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, services: NotificationServices = Depends(get_services)):
    _ensure(await services.history.mark_read(notification_id))
    return {"success": True, "unread_count": services.history.unread_count()}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, services: NotificationServices = Depends(get_services)):
    _ensure(await services.history.delete(notification_id))
    return {"success": True, "unread_count": services.history.unread_count()}


@router.delete("")
async def clear_history(services: NotificationServices = Depends(get_services)):
    """Clear the history and forget recently seen notifications."""
    _ensure(await services.clear_history())
    return {"success": True, "unread_count": 0}


@ws_router.websocket("/ws/history")
async def history_stream(websocket: WebSocket):
    """Push a message to the client on every history change."""
    notifier = websocket.app.state.services.notifier
    await notifier.connect(websocket)
    try:
        while True:
            # Incoming messages are ignored; receiving detects disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await notifier.disconnect(websocket)
