"""WebSocket endpoint for session pushes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from safecampus.core.ws_manager import ws_manager
from safecampus.services.session_runtime import runtime_registry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint. Client connects with ?session_id=<id> from POST /sessions.
    Server pushes events: incidents.snapshot, sos.state, notification, zones.updated
    """
    session_id = websocket.query_params.get("session_id")
    if not session_id:
        await websocket.close(code=4001, reason="Missing session_id")
        return

    runtime = runtime_registry.get(session_id)
    if runtime is None:
        await websocket.close(code=4004, reason="Unknown session")
        return

    runtime.touch()
    connected_at = runtime.last_seen
    await ws_manager.connect(websocket, session_id)
    await websocket.send_json(
        {
            "event": "incidents.snapshot",
            "data": [i.model_dump(mode="json") for i in runtime.reconciler.active_incidents],
        }
    )
    try:
        while True:
            data = await websocket.receive_text()
            # Echo pong for heartbeat
            if data == "ping":
                await websocket.send_text('{"event":"pong"}')
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket, session_id)
        # Last socket gone and no HTTP use since it connected: the client left
        await runtime_registry.release_if_idle(session_id, since=connected_at)
