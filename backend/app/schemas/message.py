from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class SendMessageRequest(BaseModel):

    text: Optional[str] = None
    # base64 image or data URI
    image: Optional[str] = None


class MessagePublic(BaseModel):

    id: str
    sender_id: str
    receiver_id: str
    text: Optional[str] = None
    image: Optional[str] = None
    seen: bool = False
    created_at: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "MessagePublic":
        return cls(
            id=str(doc["_id"]),
            sender_id=doc["sender_id"],
            receiver_id=doc["receiver_id"],
            text=doc.get("text"),
            image=doc.get("image"),
            seen=bool(doc.get("seen", False)),
            created_at=doc["created_at"],
        )
