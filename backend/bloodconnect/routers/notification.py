from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..models.notification import Notification
from ..models.user import UserPublic
from ..schemas.request import notification_document
from ..services.notification_log import NotificationLog
from .auth import get_current_user
from .deps import get_notification_log, resolve_object_id

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=List[Notification])
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    notifications: NotificationLog = Depends(get_notification_log),
    current_user: UserPublic = Depends(get_current_user),
) -> List[Notification]:
    entries = await notifications.history(current_user.id, unread_only=unread_only, limit=limit)
    return [Notification(**notification_document(entry)) for entry in entries]


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: str,
    notifications: NotificationLog = Depends(get_notification_log),
    current_user: UserPublic = Depends(get_current_user),
) -> Notification:
    entry = await notifications.mark_read(current_user.id, resolve_object_id(notification_id, "Notification"))
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return Notification(**notification_document(entry))
