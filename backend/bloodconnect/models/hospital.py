from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..database import MongoBaseModel
from .donor import Pincode


class HospitalProfileUpdate(BaseModel):
    hospital_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str
    state: str
    country: str
    pincode: Pincode
    description: str = ""


class HospitalProfile(MongoBaseModel):
    id: str = Field(alias="_id")
    hospital_name: str = "Hospital"
    phone: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    pincode: int | None = None
    description: str = ""
    profile_completed: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
