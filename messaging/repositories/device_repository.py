from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from messaging.models.device import DeviceDocument, PushPlatform


class DeviceRepository:
    """Push tokens registered by trainers' devices."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["devices"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("token", ASCENDING), ("platform", ASCENDING)], unique=True)
        await self.collection.create_index([("user_id", ASCENDING)])

    async def register(self, user_id: str, platform: PushPlatform, token: str) -> DeviceDocument:
        # a token moves to whoever registered it last
        now = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"token": token, "platform": platform},
            {"$set": {"user_id": user_id, "last_seen_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        doc["_id"] = str(doc["_id"])
        return doc

    async def get_tokens(self, user_id: str, platform: Optional[PushPlatform] = None) -> List[str]:
        query: Dict[str, Any] = {"user_id": user_id}
        if platform:
            query["platform"] = platform
        items: List[DeviceDocument] = await self.collection.find(query, {"token": 1}).to_list(length=100)
        return [it["token"] for it in items]
