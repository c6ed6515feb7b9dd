from typing import Any, Dict, Optional, Protocol

from app.utils.realtime_bus import get_bus
from app.utils.websocket_manager import manager


class PresenceChannel(Protocol):

    async def emit(self, event: str, payload: Dict[str, Any]) -> None: ...


class PresenceRouter(Protocol):

    async def lookup(self, user_id: str) -> Optional[PresenceChannel]: ...


async def get_presence_router() -> PresenceRouter:
    """Redis presence when the bus is enabled, otherwise this process's sockets."""
    bus = await get_bus()
    if getattr(bus, "enabled", False):
        return bus
    return manager
