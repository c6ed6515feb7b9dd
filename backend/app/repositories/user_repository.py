from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.models.user import UserDocument
from app.utils.errors import PersistenceError


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def list_except(self, user_id: str) -> List[UserDocument]:
        """Every user other than ``user_id``, without the password hash."""
        try:
            cursor = self._collection.find({}, {"hashed_password": 0})
            users = await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise PersistenceError(f"User store unavailable: {exc}") from exc
        result = []
        for user in users:
            user["_id"] = str(user["_id"])  # normalize to string for API layer
            if user["_id"] != user_id:
                result.append(user)
        return result
