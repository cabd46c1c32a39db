import json
import logging
from typing import Any, Dict, List
from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open UI connections and pushes tree change notices to them"""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        """Accept and store a new WebSocket connection"""
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection"""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message_type: str, data: Dict[str, Any]):
        """Broadcast a message to all connected clients"""
        message = {"type": message_type, "data": data}
        message_json = json.dumps(message, default=str)

        disconnected = []
        for connection in self.active_connections:
            try:
                await connection.send_text(message_json)
            except Exception as e:
                logger.debug(f"Dropping connection after failed send: {e}")
                disconnected.append(connection)

        for connection in disconnected:
            self.active_connections.remove(connection)

    async def notify_tree_changed(self, action: str, path: str):
        """Tell open UIs to rescan after a structural mutation"""
        await self.broadcast("tree_changed", {"action": action, "path": path})


# Global connection manager instance
manager = ConnectionManager()
