"""WebSocket endpoint for real-time overlay events."""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..events import EventBus

logger = logging.getLogger("server.routers.events")
router = APIRouter(tags=["events"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket endpoint for real-time events."""
    bus: EventBus = websocket.app.state.event_bus
    await websocket.accept()
    await bus.subscribe(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
            except json.JSONDecodeError:
                pass
    except WebSocketDisconnect:
        pass
    finally:
        await bus.unsubscribe(websocket)
