"""WebSocket pub/sub event bus for real-time updates."""

import asyncio
import json
import logging
from datetime import datetime, timezone

from fastapi import WebSocket

logger = logging.getLogger("server.events")


class EventBus:
    """Broadcasts typed events to all connected WebSocket clients."""

    def __init__(self):
        self._subscribers: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    async def subscribe(self, ws: WebSocket):
        async with self._lock:
            self._subscribers.add(ws)
        logger.info(f"WebSocket subscribed, total={len(self._subscribers)}")

    async def unsubscribe(self, ws: WebSocket):
        async with self._lock:
            self._subscribers.discard(ws)
        logger.info(f"WebSocket unsubscribed, total={len(self._subscribers)}")

    async def publish(self, event_type: str, payload: dict):
        """Publish an event to all subscribers."""
        message = json.dumps(
            {
                "type": event_type,
                "payload": payload,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
        async with self._lock:
            dead: set[WebSocket] = set()
            for ws in self._subscribers:
                try:
                    await ws.send_text(message)
                except Exception:
                    dead.add(ws)
            self._subscribers -= dead

    def publish_nowait(self, event_type: str, payload: dict):
        """Schedule a publish from synchronous code running on the event loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Could not publish event {event_type}: no running event loop")
            return
        task = loop.create_task(self.publish(event_type, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
