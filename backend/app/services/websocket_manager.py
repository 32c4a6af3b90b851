"""
StudySense WebSocket Manager
Fans out live session updates (snapshots, chart points, health, alerts).
"""

import logging
from typing import Dict, Set
from fastapi import WebSocket

logger = logging.getLogger("studysense.websocket")


def session_channel(session_id: str) -> str:
    return f"session:{session_id}"


class ConnectionManager:
    """Manages WebSocket connections for real-time streaming"""

    def __init__(self):
        # Channel-based connections
        self.active_connections: Dict[str, Set[WebSocket]] = {
            "alerts": set(),
        }

    async def connect(self, websocket: WebSocket, channel: str):
        await websocket.accept()
        self.active_connections.setdefault(channel, set()).add(websocket)
        logger.info(f"Client connected to channel: {channel} (total: {len(self.active_connections[channel])})")

    def disconnect(self, websocket: WebSocket, channel: str):
        if channel in self.active_connections:
            self.active_connections[channel].discard(websocket)
            if not self.active_connections[channel] and channel != "alerts":
                del self.active_connections[channel]
        logger.info(f"Client disconnected from channel: {channel}")

    async def broadcast_to_channel(self, channel: str, message: dict):
        """Send message to all clients on a channel"""
        if channel not in self.active_connections:
            return

        dead = set()
        for ws in self.active_connections[channel]:
            try:
                await ws.send_json(message)
            except Exception as exc:
                logger.debug("Dropping dead socket on %s: %s", channel, exc)
                dead.add(ws)

        for ws in dead:
            self.active_connections[channel].discard(ws)

    async def send_alert(self, session_id: str, alert: dict):
        """Broadcast alert to the session's channel and the global alert channel"""
        message = {"type": "alert", "session_id": session_id, "data": alert}
        await self.broadcast_to_channel(session_channel(session_id), message)
        await self.broadcast_to_channel("alerts", message)

    async def send_session_update(self, session_id: str, kind: str, data: dict):
        """Send a snapshot/chart/health update to a session's viewers"""
        await self.broadcast_to_channel(session_channel(session_id), {
            "type": kind,
            "session_id": session_id,
            "data": data,
        })

    @property
    def total_connections(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())


# Global instance
ws_manager = ConnectionManager()
