"""Shared fixtures: in-memory stand-ins for the Mongo-backed repositories and
the external collaborators (presence, media storage, summarizer)."""
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId

from app.utils.errors import NotFoundError, ValidationError


class InMemoryMessageRepository:

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []
        self._clock = itertools.count()
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    async def create(self, sender_id, receiver_id, text=None, image=None):
        if not sender_id or not receiver_id:
            raise ValidationError("sender_id and receiver_id are required")
        doc = {
            "_id": str(ObjectId()),
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "text": text,
            "image": image,
            "seen": False,
            "created_at": self._epoch + timedelta(seconds=next(self._clock)),
        }
        self.messages.append(doc)
        return dict(doc)

    def _pair(self, a, b):
        return [m for m in self.messages if (m["sender_id"], m["receiver_id"]) in ((a, b), (b, a))]

    async def list_conversation(self, user_a, user_b):
        return [dict(m) for m in sorted(self._pair(user_a, user_b), key=lambda m: m["created_at"])]

    async def list_recent(self, user_a, user_b, limit):
        ordered = sorted(self._pair(user_a, user_b), key=lambda m: m["created_at"], reverse=True)
        return [dict(m) for m in ordered[:limit]]

    async def mark_conversation_seen(self, from_user_id, to_user_id):
        modified = 0
        for m in self.messages:
            if m["sender_id"] == from_user_id and m["receiver_id"] == to_user_id and not m["seen"]:
                m["seen"] = True
                modified += 1
        return modified

    async def mark_one_seen(self, message_id):
        for m in self.messages:
            if m["_id"] == message_id:
                changed = not m["seen"]
                m["seen"] = True
                return changed
        raise NotFoundError(f"Message {message_id} not found")

    async def count_unseen_from(self, from_user_id, to_user_id):
        return sum(
            1 for m in self.messages
            if m["sender_id"] == from_user_id and m["receiver_id"] == to_user_id and not m["seen"]
        )


class InMemoryUserRepository:

    def __init__(self, user_ids: List[str]) -> None:
        self.users = [{"_id": uid, "email": f"{uid}@example.com", "full_name": uid.title()} for uid in user_ids]

    async def list_except(self, user_id):
        return [dict(u) for u in self.users if u["_id"] != user_id]


class RecordingChannel:

    def __init__(self) -> None:
        self.events: List[tuple] = []

    async def emit(self, event, payload):
        self.events.append((event, payload))


class FakePresence:

    def __init__(self) -> None:
        self.channels: Dict[str, RecordingChannel] = {}

    def go_online(self, user_id: str) -> RecordingChannel:
        channel = RecordingChannel()
        self.channels[user_id] = channel
        return channel

    async def lookup(self, user_id: str) -> Optional[RecordingChannel]:
        return self.channels.get(user_id)


@pytest.fixture
def message_repo():
    return InMemoryMessageRepository()


@pytest.fixture
def user_repo():
    return InMemoryUserRepository(["alice", "bob", "carol"])


@pytest.fixture
def presence():
    return FakePresence()


@pytest.fixture
def media_store():
    store = AsyncMock()
    store.upload = AsyncMock(return_value="https://media.example.com/chat-media/abc.png")
    return store
