from __future__ import annotations

from typing import Annotated, Any, Dict

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from ..database import get_database
from ..models.user import UserPublic
from ..schemas.request import event_payload, notification_document
from ..services.notification_log import NotificationLog
from .auth import get_account_collection, require_roles  # noqa: F401

DonorUser = Annotated[UserPublic, Depends(require_roles("donor"))]
HospitalUser = Annotated[UserPublic, Depends(require_roles("hospital"))]


async def get_donor_collection(database: AsyncIOMotorDatabase = Depends(get_database)) -> AsyncIOMotorCollection:
    return database.get_collection("donor_profiles")


async def get_hospital_collection(database: AsyncIOMotorDatabase = Depends(get_database)) -> AsyncIOMotorCollection:
    return database.get_collection("hospital_profiles")


async def get_request_collection(database: AsyncIOMotorDatabase = Depends(get_database)) -> AsyncIOMotorCollection:
    return database.get_collection("requests")


async def get_notification_log(database: AsyncIOMotorDatabase = Depends(get_database)) -> NotificationLog:
    return NotificationLog(database.get_collection("notifications"))


def resolve_object_id(value: str, label: str = "Record") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found") from exc


async def push_request_event(manager, event: str, request: Dict[str, Any]) -> None:
    """Tell both parties of a request that it changed."""
    if manager is None:
        return
    recipients = [request.get("hospital_id"), request.get("donor_id")]
    await manager.notify_users([r for r in recipients if r], event, event_payload(request))


async def push_notification(manager, notification: Dict[str, Any]) -> None:
    if manager is None:
        return
    payload = notification_document(notification)
    for field in ("created_at", "read_at"):
        if payload[field] is not None:
            payload[field] = payload[field].isoformat()
    await manager.notify_users([notification["recipient_id"]], "notification", payload)
