import asyncio
import json
import logging
import uuid

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from jose import JWTError
from redis.exceptions import RedisError

from app.core.config import settings
from app.database.connection import mongo_db_dependency
from app.repositories.message_repository import MessageRepository
from app.repositories.user_repository import UserRepository
from app.schemas.message import MessagePublic, SendMessageRequest
from app.schemas.user import UserPublic
from app.services.chat_service import ChatService
from app.services.summary_service import SummaryService
from app.utils.dependencies import get_current_user
from app.utils.media_store import get_media_store
from app.utils.presence import get_presence_router
from app.utils.realtime_bus import get_bus, stop_background_tasks
from app.utils.responses import format_response
from app.utils.security import decode_access_token
from app.utils.summarizer import get_summarizer
from app.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["chat"])


async def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    return ChatService(
        MessageRepository(db),
        UserRepository(db),
        presence=await get_presence_router(),
        media_store=get_media_store(),
    )


def get_summary_service(db = Depends(mongo_db_dependency)) -> SummaryService:
    return SummaryService(
        MessageRepository(db),
        get_summarizer(),
        prompt_template=settings.SUMMARY_PROMPT,
        window=settings.SUMMARY_WINDOW,
    )


def _user_public(user: dict) -> dict:
    return UserPublic(
        id=user["_id"],
        email=user.get("email"),
        full_name=user.get("full_name"),
        profile_pic=user.get("profile_pic"),
    ).model_dump()


@router.get("/users")
async def list_partners(current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    result = await service.list_partners(current_user["_id"])
    return format_response(
        users=[_user_public(u) for u in result["users"]],
        unseen_messages=result["unseen_messages"],
    )


@router.get("/summary/{user_id}")
async def summarize_conversation(user_id: str, current_user: dict = Depends(get_current_user), service: SummaryService = Depends(get_summary_service)):
    summary = await service.summarize(current_user["_id"], user_id)
    return format_response(summary=summary)


@router.put("/mark/{message_id}")
async def mark_message_seen(message_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await service.mark_message_seen(message_id)
    return format_response()


@router.post("/send/{user_id}")
async def send_message(user_id: str, body: SendMessageRequest, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    saved = await service.send_message(current_user["_id"], user_id, text=body.text, raw_image=body.image)
    return format_response(new_message=MessagePublic.from_document(saved).model_dump(mode="json"))


@router.get("/{user_id}")
async def open_conversation(user_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    messages = await service.open_conversation(current_user["_id"], user_id)
    return format_response(messages=[MessagePublic.from_document(m).model_dump(mode="json") for m in messages])


@router.websocket("/ws/{user_id}")
async def chat_socket(websocket: WebSocket, user_id: str):
    # token comes in as ?token=...
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return
    try:
        payload = decode_access_token(token)
    except JWTError:
        await websocket.close(code=4401)
        return
    if payload.get("sub") != user_id:
        await websocket.close(code=4403)
        return

    await manager.connect(user_id, websocket)
    connection_id = uuid.uuid4().hex
    bus = await get_bus()
    subscription = None
    tasks = []
    if getattr(bus, "enabled", False):
        subscription = await bus.subscribe(f"user:{user_id}", websocket.send_text)
        tasks.append(asyncio.create_task(subscription.run()))

        async def _presence_heartbeat():
            while True:
                try:
                    await bus.set_presence(user_id, connection_id, ttl_seconds=settings.PRESENCE_TTL_SECONDS)
                except RedisError:
                    logger.warning("Presence heartbeat for %s failed", user_id, exc_info=True)
                await asyncio.sleep(settings.PRESENCE_TTL_SECONDS / 2)

        tasks.append(asyncio.create_task(_presence_heartbeat()))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"type": "error", "message": "Invalid payload"}))
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
        await stop_background_tasks(tasks)
        if subscription is not None:
            await subscription.cancel()
        if getattr(bus, "enabled", False):
            try:
                await bus.clear_presence(user_id, connection_id)
            except RedisError:
                logger.warning("Clearing presence for %s failed", user_id, exc_info=True)
