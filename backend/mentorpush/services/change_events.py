"""History change channel for any number of independent observers."""
import asyncio
import inspect
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

HISTORY_CHANGED = "notification_history_updated"

Listener = Callable[[Dict[str, Any]], Any]


class ChangeNotifier:
    """Fans history change events out to in-process listeners and WebSocket clients."""

    def __init__(self):
        self._listeners: list[Listener] = []
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback (sync or async); returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def connect(self, websocket: WebSocket):
        """Accept a new WebSocket observer."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"History observer connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove a disconnected WebSocket."""
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"History observer disconnected. Total connections: {len(self.active_connections)}")

    async def emit(self, action: str, unread_count: int, notification: Optional[Dict[str, Any]] = None):
        """Publish a single change event describing one history mutation."""
        message = {
            "type": HISTORY_CHANGED,
            "action": action,
            "unread_count": unread_count,
            "notification": notification,
            "emitted_at": datetime.utcnow().isoformat(),
        }

        for listener in list(self._listeners):
            try:
                result = listener(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"History listener failed: {e}")

        await self._broadcast(message)

    async def _broadcast(self, message: Dict[str, Any]):
        if not self.active_connections:
            return

        message_json = json.dumps(message, default=str)

        async with self._lock:
            connections = list(self.active_connections)

        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(message_json)
            except Exception as e:
                logger.debug(f"Failed to send to WebSocket: {e}")
                disconnected.append(websocket)

        if disconnected:
            async with self._lock:
                for ws in disconnected:
                    self.active_connections.discard(ws)

    @property
    def listener_count(self) -> int:
        return len(self._listeners) + len(self.active_connections)
