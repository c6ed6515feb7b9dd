from typing import Optional

from pydantic import BaseModel


class UserPublic(BaseModel):

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None
