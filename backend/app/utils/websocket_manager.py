import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import WebSocket


logger = logging.getLogger(__name__)


class LocalChannel:
    """Delivery channel for a user connected to this process."""

    def __init__(self, manager: "ConnectionManager", user_id: str) -> None:
        self._manager = manager
        self.user_id = user_id

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        await self._manager.send_personal_message(self.user_id, json.dumps({"type": event, **payload}, default=str))


class ConnectionManager:

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        if user_id not in self.active_connections:
            self.active_connections[user_id] = []
        self.active_connections[user_id].append(websocket)
        logger.debug("User %s connected (%d sockets)", user_id, len(self.active_connections[user_id]))

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        if user_id in self.active_connections:
            try:
                self.active_connections[user_id].remove(websocket)
            except ValueError:
                pass
            if not self.active_connections[user_id]:
                del self.active_connections[user_id]
        logger.debug("User %s disconnected", user_id)

    async def send_personal_message(self, receiver_id: str, message: str) -> None:
        if receiver_id in self.active_connections:
            for conn in list(self.active_connections[receiver_id]):
                try:
                    await conn.send_text(message)
                except Exception:
                    logger.warning("Send to a socket of %s failed", receiver_id, exc_info=True)

    async def lookup(self, user_id: str) -> Optional[LocalChannel]:
        if self.active_connections.get(user_id):
            return LocalChannel(self, user_id)
        return None

    def online_users(self) -> List[str]:
        return list(self.active_connections.keys())


manager = ConnectionManager()
