import asyncio
import logging
from typing import Any, Dict, List, Optional

from app.repositories.message_repository import MessageRepository
from app.repositories.user_repository import UserRepository
from app.schemas.message import MessagePublic
from app.utils.media_store import S3MediaStore
from app.utils.presence import PresenceRouter


logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "newMessage"


class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        user_repo: UserRepository,
        presence: PresenceRouter,
        media_store: S3MediaStore,
    ) -> None:
        self._message_repo = message_repo
        self._user_repo = user_repo
        self._presence = presence
        self._media_store = media_store

    async def list_partners(self, user_id: str) -> Dict[str, Any]:
        users = await self._user_repo.list_except(user_id)
        unseen = await self.get_unseen_counts(user_id, [u["_id"] for u in users])
        return {"users": users, "unseen_messages": unseen}

    async def get_unseen_counts(self, user_id: str, candidate_ids: List[str]) -> Dict[str, int]:
        """Unseen counts per counterpart; zero counts are left out of the map.

        Counts run concurrently and the first failure propagates, so callers
        never see a partial map.
        """
        counts = await asyncio.gather(
            *(self._message_repo.count_unseen_from(candidate_id, user_id) for candidate_id in candidate_ids)
        )
        return {candidate_id: count for candidate_id, count in zip(candidate_ids, counts) if count > 0}

    async def open_conversation(self, user_id: str, other_id: str) -> List[Dict[str, Any]]:
        messages = await self._message_repo.list_conversation(user_id, other_id)
        await self._message_repo.mark_conversation_seen(other_id, user_id)
        return messages

    async def mark_message_seen(self, message_id: str) -> bool:
        return await self._message_repo.mark_one_seen(message_id)

    async def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        text: Optional[str] = None,
        raw_image: Optional[str] = None,
    ) -> Dict[str, Any]:
        image_url = None
        if raw_image:
            image_url = await self._media_store.upload(raw_image)
        if not text or not text.strip():
            text = None
        saved = await self._message_repo.create(sender_id, receiver_id, text=text, image=image_url)
        await self._notify_receiver(saved)
        return saved

    async def _notify_receiver(self, message: Dict[str, Any]) -> None:
        # best effort: the message is already stored, the receiver picks it up on next open
        receiver_id = message["receiver_id"]
        try:
            channel = await self._presence.lookup(receiver_id)
            if channel is None:
                logger.debug("Receiver %s offline, skipping push", receiver_id)
                return
            payload = MessagePublic.from_document(message).model_dump(mode="json")
            await channel.emit(NEW_MESSAGE_EVENT, {"message": payload})
        except Exception:
            logger.warning("Push of message %s to %s failed", message.get("_id"), receiver_id, exc_info=True)
