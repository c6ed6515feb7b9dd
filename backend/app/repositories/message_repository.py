import functools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from app.models.message import MessageDocument
from app.utils.errors import NotFoundError, PersistenceError, ValidationError


def _storage_errors(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as exc:
            raise PersistenceError(f"Message store unavailable: {exc}") from exc
    return wrapper


def _pair_query(user_a: str, user_b: str) -> Dict[str, Any]:
    return {
        "$or": [
            {"sender_id": user_a, "receiver_id": user_b},
            {"sender_id": user_b, "receiver_id": user_a},
        ]
    }


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    @_storage_errors
    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("sender_id", ASCENDING), ("receiver_id", ASCENDING), ("seen", ASCENDING)])
        await self.collection.create_index([("sender_id", ASCENDING), ("receiver_id", ASCENDING), ("created_at", DESCENDING)])

    @_storage_errors
    async def create(
        self,
        sender_id: str,
        receiver_id: str,
        text: Optional[str] = None,
        image: Optional[str] = None,
    ) -> MessageDocument:
        if not sender_id or not receiver_id:
            raise ValidationError("sender_id and receiver_id are required")
        now = datetime.now(timezone.utc)
        # BSON dates keep milliseconds only
        now = now.replace(microsecond=now.microsecond // 1000 * 1000)
        doc: MessageDocument = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "text": text,
            "image": image,
            "seen": False,
            "created_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    @_storage_errors
    async def list_conversation(self, user_a: str, user_b: str) -> List[MessageDocument]:
        cursor = self.collection.find(_pair_query(user_a, user_b)).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        items = await cursor.to_list(length=None)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    @_storage_errors
    async def list_recent(self, user_a: str, user_b: str, limit: int) -> List[MessageDocument]:
        """Most recent ``limit`` messages of the pair, newest first."""
        cursor = self.collection.find(_pair_query(user_a, user_b)).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    @_storage_errors
    async def mark_conversation_seen(self, from_user_id: str, to_user_id: str) -> int:
        result = await self.collection.update_many(
            {"sender_id": from_user_id, "receiver_id": to_user_id},
            {"$set": {"seen": True}},
        )
        return result.modified_count or 0

    @_storage_errors
    async def mark_one_seen(self, message_id: str) -> bool:
        try:
            oid = ObjectId(message_id)
        except (InvalidId, TypeError):
            raise NotFoundError(f"Message {message_id} not found")
        result = await self.collection.update_one({"_id": oid}, {"$set": {"seen": True}})
        if not result.matched_count:
            raise NotFoundError(f"Message {message_id} not found")
        return bool(result.modified_count)

    @_storage_errors
    async def count_unseen_from(self, from_user_id: str, to_user_id: str) -> int:
        return await self.collection.count_documents(
            {"sender_id": from_user_id, "receiver_id": to_user_id, "seen": False}
        )
