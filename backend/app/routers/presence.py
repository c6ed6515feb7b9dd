from fastapi import APIRouter

from app.utils.presence import get_presence_router
from app.utils.responses import format_response
from app.utils.websocket_manager import manager


router = APIRouter(prefix="/presence", tags=["chat"])


@router.get("")
async def online_users():
    """Users with a socket open on this instance."""
    return format_response(online_users=manager.online_users())


@router.get("/{user_id}")
async def presence(user_id: str):
    """Point-in-time online status, from Redis presence keys when the bus is enabled."""
    presence_router = await get_presence_router()
    channel = await presence_router.lookup(user_id)
    return format_response(user_id=user_id, online=channel is not None)
