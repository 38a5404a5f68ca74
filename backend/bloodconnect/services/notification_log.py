from __future__ import annotations

from typing import Any, Dict, List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument

from .lifecycle import UserRole, utcnow


class NotificationLog:
    """Per-account inbox stored in the ``notifications`` collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def log(
        self,
        recipient_id: str,
        recipient_role: UserRole,
        type: str,
        message: str,
        **extra: Any,
    ) -> Dict[str, Any]:
        document = {
            "recipient_id": recipient_id,
            "recipient_role": recipient_role,
            "type": type,
            "message": message,
            **extra,
            "read": False,
            "created_at": utcnow(),
            "read_at": None,
        }
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    async def history(self, recipient_id: str, unread_only: bool = False, limit: int = 50) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"recipient_id": recipient_id}
        if unread_only:
            query["read"] = False
        cursor = self.collection.find(query).sort("created_at", -1).limit(limit)
        return [doc async for doc in cursor]

    async def mark_read(self, recipient_id: str, notification_id: ObjectId) -> Dict[str, Any] | None:
        return await self.collection.find_one_and_update(
            {"_id": notification_id, "recipient_id": recipient_id},
            {"$set": {"read": True, "read_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
