"""
WebSocket Manager - Pushes node store changes to connected editors.

A client receives a `hello` message carrying the store version when it
connects, then one `nodes_updated` message per accepted change with the
ids that were added, removed or updated. A client that sees a version gap
should re-fetch the render order via GET /api/nodes.
"""
import asyncio
import json
import logging

from fastapi import WebSocket

from .store import StateChange

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Tracks editor connections and fans out change events.

    Failed sends drop the connection instead of failing the broadcast.
    """

    def __init__(self):
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, version: int, node_count: int):
        """Accept a connection and tell it where the store currently stands."""
        await websocket.accept()
        hello = {"type": "hello", "version": version, "node_count": node_count}
        if not await self._send(websocket, json.dumps(hello)):
            return
        async with self._lock:
            self._connections.add(websocket)
        logger.info("Editor connected at version %d (%d connected)", version, len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("Editor disconnected (%d connected)", len(self._connections))

    async def _send(self, websocket: WebSocket, text: str) -> bool:
        try:
            await websocket.send_text(text)
        except Exception:
            logger.debug("Dropping WebSocket after failed send", exc_info=True)
            return False
        return True

    async def publish(self, change: StateChange):
        """Send one change event to every connected editor."""
        if not self._connections:
            return

        message = json.dumps({"type": "nodes_updated", **change.to_dict()})
        async with self._lock:
            failed = {ws for ws in self._connections if not await self._send(ws, message)}
            self._connections -= failed
        if failed:
            logger.info("Dropped %d editor(s) during version %d broadcast", len(failed), change.version)
