from datetime import datetime
from typing import Optional, TypedDict


class MessageDocument(TypedDict, total=False):
    _id: str
    sender_id: str
    receiver_id: str
    text: Optional[str]
    # durable media URL, only set when an image was attached
    image: Optional[str]
    # false -> true only
    seen: bool
    created_at: datetime
