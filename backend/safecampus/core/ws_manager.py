"""WebSocket connection manager for pushing session events."""

import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks active WebSocket connections keyed by client session id."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, session_id: str) -> None:
        await websocket.accept()
        self._connections.setdefault(session_id, set()).add(websocket)
        logger.info("WS connected: session=%s (total=%s)", session_id, self.total_connections)

    def disconnect(self, websocket: WebSocket, session_id: str) -> None:
        conns = self._connections.get(session_id)
        if conns:
            conns.discard(websocket)
            if not conns:
                del self._connections[session_id]
        logger.info("WS disconnected: session=%s (total=%s)", session_id, self.total_connections)

    def has_connections(self, session_id: str) -> bool:
        return bool(self._connections.get(session_id))

    async def send_to_session(self, session_id: str, event: str, data: Any) -> None:
        """Send event to every socket of a session; drop sockets that fail."""
        conns = self._connections.get(session_id, set())
        payload = json.dumps({"event": event, "data": data}, default=str)
        dead: list[WebSocket] = []
        for ws in list(conns):
            try:
                await ws.send_text(payload)
            except Exception as e:
                logger.debug("WS send failed for session=%s: %s", session_id, e)
                dead.append(ws)
        for ws in dead:
            conns.discard(ws)

    def close_session(self, session_id: str) -> None:
        self._connections.pop(session_id, None)

    @property
    def total_connections(self) -> int:
        return sum(len(c) for c in self._connections.values())


# Singleton instance used across the app
ws_manager = ConnectionManager()
