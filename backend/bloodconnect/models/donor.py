from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, List, Literal

from pydantic import AfterValidator, BaseModel, Field

from ..database import MongoBaseModel
from ..services.matching import MatchType

BloodGroup = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]
HealthCondition = Literal[
    "Generally Healthy",
    "Minor Illness",
    "Chronic Condition on Medication",
    "Recent Surgery",
]


def validate_pincode(value: int) -> int:
    if not 100000 <= value <= 999999:
        raise ValueError("Pincode must be a valid 6-digit number")
    return value


Pincode = Annotated[int, AfterValidator(validate_pincode)]


class DonorProfileUpdate(BaseModel):
    name: str = Field(min_length=1)
    age: int = Field(gt=0, le=120)
    weight: float = Field(gt=0)
    phone: str = Field(min_length=1)
    city: str
    state: str
    country: str
    pincode: Pincode
    blood_group: BloodGroup
    health_condition: HealthCondition
    hemoglobin: float | None = Field(default=None, ge=0)
    last_donation_date: date | None = None


class DonorProfile(MongoBaseModel):
    id: str = Field(alias="_id")
    name: str
    age: int
    weight: float
    phone: str
    city: str
    state: str
    country: str
    pincode: int
    blood_group: BloodGroup
    health_condition: HealthCondition
    hemoglobin: float | None = None
    last_donation_date: date | None = None
    eligible: bool
    available: bool
    eligibility_reasons: List[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DonorMatch(DonorProfile):
    match_rank: int
    match_type: MatchType


class DonorSearchResult(BaseModel):
    blood_group: BloodGroup
    match: Literal["exact", "compatible"]
    count: int
    donors: List[DonorMatch]


class AvailabilityUpdate(BaseModel):
    available: bool
