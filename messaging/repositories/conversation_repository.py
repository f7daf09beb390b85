from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from messaging.models.conversation import ConversationDocument


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("session_id", ASCENDING), ("created_at", DESCENDING)])
        await self.collection.create_index([("participant_id", ASCENDING)])

    async def list_for_session(
        self,
        session_id: str,
        conversation_type: Optional[str] = None,
        participant_id: Optional[str] = None,
        include_groups: bool = False,
    ) -> List[ConversationDocument]:
        query: Dict[str, Any] = {"session_id": session_id}
        if conversation_type:
            own: Dict[str, Any] = {"type": conversation_type}
            if participant_id:
                own["participant_id"] = participant_id
            if include_groups:
                query["$or"] = [own, {"type": "groupe"}]
            else:
                query.update(own)
        cur = self.collection.find(query).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        items = await cur.to_list(length=None)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def get(self, conversation_id: str) -> Optional[ConversationDocument]:
        oid = self._to_object_id(conversation_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def delete(self, conversation_id: str) -> bool:
        oid = self._to_object_id(conversation_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return bool(result.deleted_count)

    def _to_object_id(self, oid_hex: str) -> Optional[ObjectId]:
        if not ObjectId.is_valid(oid_hex):
            return None
        return ObjectId(oid_hex)
