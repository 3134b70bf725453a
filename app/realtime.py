"""WebSocket endpoint feeding live simulation updates to subscribers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/realtime")
async def realtime(websocket: WebSocket) -> None:
    broadcaster = websocket.app.state.runtime.broadcaster
    await websocket.accept()
    broadcaster.register(websocket)
    try:
        while True:
            # Clients only send heartbeats; updates flow server to client.
            text = await websocket.receive_text()
            logger.debug("Ignoring client frame %r.", text[:64])
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unregister(websocket)
