from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from ..database import MongoBaseModel
from ..services.lifecycle import UserRole

NotificationType = Literal["blood_request", "donor_accepted", "donation_completed"]


class Notification(MongoBaseModel):
    id: str = Field(alias="_id")
    recipient_id: str
    recipient_role: UserRole
    sender_id: str | None = None
    type: NotificationType
    message: str
    request_id: str | None = None
    blood_group: str | None = None
    units_required: int | None = None
    read: bool = False
    created_at: datetime
    read_at: datetime | None = None
