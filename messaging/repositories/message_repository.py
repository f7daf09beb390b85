from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from messaging.models.message import MessageDocument, SenderType


def _normalize(doc: Optional[Dict[str, Any]]) -> Optional[MessageDocument]:
    if doc is not None:
        doc["_id"] = str(doc.get("_id"))
    return doc


def sender_query(sender_type: str, exclude: bool = False) -> Dict[str, Any]:
    """Filter on sender_type, either equal to or different from the given type."""
    if exclude:
        return {"sender_type": {"$ne": sender_type}}
    return {"sender_type": sender_type}


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING)])
        await self.collection.create_index([("conversation_id", ASCENDING), ("read_at", ASCENDING)])

    async def list_by_conversation(self, conversation_id: str) -> List[MessageDocument]:
        cur = self.collection.find({"conversation_id": conversation_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        items = await cur.to_list(length=None)
        return [_normalize(it) for it in items]

    async def get(self, message_id: str) -> Optional[MessageDocument]:
        if not ObjectId.is_valid(message_id):
            return None
        return _normalize(await self.collection.find_one({"_id": ObjectId(message_id)}))

    async def insert(
        self,
        conversation_id: str,
        sender_type: SenderType,
        content: str,
        sender_id: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> MessageDocument:
        doc: MessageDocument = {
            "conversation_id": conversation_id,
            "sender_type": sender_type,
            "sender_id": sender_id,
            "sender_name": sender_name,
            "content": content,
            "created_at": datetime.now(timezone.utc),
            "edited_at": None,
            "deleted_at": None,
            "deleted_by": None,
            "read_at": None,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def update_content(self, message_id: str, content: str) -> Optional[MessageDocument]:
        if not ObjectId.is_valid(message_id):
            return None
        # a soft-deleted row keeps its content
        doc = await self.collection.find_one_and_update(
            {"_id": ObjectId(message_id), "deleted_at": None},
            {"$set": {"content": content, "edited_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        return _normalize(doc)

    async def soft_delete(self, message_id: str, deleter_id: Optional[str]) -> Optional[MessageDocument]:
        if not ObjectId.is_valid(message_id):
            return None
        doc = await self.collection.find_one_and_update(
            {"_id": ObjectId(message_id)},
            {"$set": {"deleted_at": datetime.now(timezone.utc), "deleted_by": deleter_id}},
            return_document=ReturnDocument.AFTER,
        )
        return _normalize(doc)

    async def mark_read(self, conversation_id: str, sender_type: str, exclude: bool = False) -> List[MessageDocument]:
        query: Dict[str, Any] = {"conversation_id": conversation_id, "read_at": None}
        query.update(sender_query(sender_type, exclude))
        ids = [doc["_id"] async for doc in self.collection.find(query, {"_id": 1})]
        if not ids:
            return []
        # read_at only moves from null to a timestamp
        await self.collection.update_many(
            {"_id": {"$in": ids}, "read_at": None},
            {"$set": {"read_at": datetime.now(timezone.utc)}},
        )
        cur = self.collection.find({"_id": {"$in": ids}}).sort("created_at", ASCENDING)
        items = await cur.to_list(length=None)
        return [_normalize(it) for it in items]

    async def count_unread(self, conversation_id: str, sender_type: str, exclude: bool = False) -> int:
        query: Dict[str, Any] = {"conversation_id": conversation_id, "read_at": None, "deleted_at": None}
        query.update(sender_query(sender_type, exclude))
        return await self.collection.count_documents(query)

    async def last_message(self, conversation_id: str) -> Optional[MessageDocument]:
        doc = await self.collection.find_one(
            {"conversation_id": conversation_id, "deleted_at": None},
            sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
        )
        return _normalize(doc)

    async def delete_by_conversation(self, conversation_id: str) -> int:
        result = await self.collection.delete_many({"conversation_id": conversation_id})
        return result.deleted_count or 0
