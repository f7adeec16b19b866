"""
WebSocket Connection Manager

Broadcasts motion notifications to connected dashboard clients and keeps a
bounded log of recent notifications that is replayed to every client when
it connects.

Usage:
    # In a FastAPI app
    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket_manager.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            await websocket_manager.disconnect(websocket)

    # Broadcasting
    await websocket_manager.broadcast("notification", notification)
    websocket_manager.store_notification(notification)
"""
import asyncio
import json
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Set

from fastapi import WebSocket

from motion_relay.core.config import settings
from motion_relay.core.metrics import record_channel_dispatch

logger = logging.getLogger(__name__)

NOTIFICATIONS_EVENT = "notifications"


class WebSocketManager:
    """
    Manages WebSocket connections and message broadcasting.

    Handles connection errors without crashing; a client that fails a send
    is dropped.

    Attributes:
        active_connections: Set of connected WebSocket instances
    """

    def __init__(self, log_size: Optional[int] = None):
        """
        Args:
            log_size: Number of notifications kept for replay (default from settings)
        """
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._notifications: Deque[Dict[str, Any]] = deque(
            maxlen=log_size or settings.NOTIFICATION_LOG_SIZE
        )

    async def connect(self, websocket: WebSocket) -> None:
        """
        Accept and register a new WebSocket connection and send it the
        recent notification log.
        """
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)

        logger.info(
            f"WebSocket connected. Active connections: {len(self.active_connections)}",
            extra={"connection_count": len(self.active_connections)}
        )

        try:
            await websocket.send_text(self._encode(NOTIFICATIONS_EVENT, self.get_notifications()))
        except Exception as e:
            logger.warning(f"Failed to send notification log: {e}")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self.active_connections.discard(websocket)

        logger.info(
            f"WebSocket disconnected. Active connections: {len(self.active_connections)}",
            extra={"connection_count": len(self.active_connections)}
        )

    @staticmethod
    def _encode(event: str, payload: Any) -> str:
        return json.dumps({
            "type": event,
            "data": payload,
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    async def broadcast(self, event: str, payload: Any) -> int:
        """
        Broadcast an event to all connected WebSocket clients.

        Args:
            event: Event name, sent as "type"
            payload: JSON serializable data, sent as "data"

        Returns:
            Number of clients that successfully received the message
        """
        if not self.active_connections:
            logger.debug("No WebSocket connections to broadcast to")
            return 0

        json_message = self._encode(event, payload)
        success_count = 0
        failed_connections = []

        async with self._lock:
            connections = list(self.active_connections)

        for websocket in connections:
            try:
                await websocket.send_text(json_message)
                success_count += 1
            except Exception as e:
                logger.warning(
                    f"Failed to send WebSocket message: {e}",
                    extra={"error": str(e)}
                )
                failed_connections.append(websocket)

        if failed_connections:
            async with self._lock:
                for ws in failed_connections:
                    self.active_connections.discard(ws)

            logger.info(
                f"Cleaned up {len(failed_connections)} failed WebSocket connections",
                extra={"cleaned_count": len(failed_connections)}
            )

        record_channel_dispatch("realtime", "success" if success_count else "failure")

        logger.debug(
            f"Broadcast complete: {success_count}/{len(connections)} clients",
            extra={
                "success_count": success_count,
                "total_connections": len(connections),
                "message_type": event
            }
        )

        return success_count

    def store_notification(self, notification: Dict[str, Any]) -> None:
        """Append a notification to the replay log, newest first."""
        self._notifications.appendleft(notification)

    def get_notifications(self) -> List[Dict[str, Any]]:
        return list(self._notifications)

    def get_connection_count(self) -> int:
        """Get current number of active connections."""
        return len(self.active_connections)


# Global singleton instance
websocket_manager = WebSocketManager()


def get_websocket_manager() -> WebSocketManager:
    """Get the global WebSocket manager instance."""
    return websocket_manager
