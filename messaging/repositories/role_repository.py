from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from messaging.models.role import UserRoleDocument


class RoleRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("user_roles")

    async def get_roles(self, user_id: str) -> List[str]:
        cur = self._collection.find({"user_id": user_id}, {"role": 1})
        items: List[UserRoleDocument] = await cur.to_list(length=20)
        return [it["role"] for it in items if it.get("role")]
