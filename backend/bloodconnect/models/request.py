from __future__ import annotations

from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field

from ..database import MongoBaseModel
from ..services.lifecycle import RequestStatus
from ..services.matching import MatchMode, MatchType
from .donor import BloodGroup, DonorProfile


class BloodRequestCreate(BaseModel):
    blood_group: BloodGroup
    units_required: int = Field(ge=1)
    match: MatchMode = "compatible"
    donor_ids: List[str] | None = None


class ProgressStep(BaseModel):
    step: str
    state: Literal["completed", "current", "pending", "rejected"]


class BloodRequest(MongoBaseModel):
    id: str = Field(alias="_id")
    hospital_id: str
    donor_id: str
    blood_group: BloodGroup
    donor_blood_group: BloodGroup | None = None
    match_type: MatchType = "exact"
    units_required: int
    hospital_name: str = "Hospital"
    hospital_phone: str = ""
    hospital_email: str = ""
    hospital_city: str = ""
    hospital_state: str = ""
    hospital_country: str = ""
    hospital_pincode: int = 0
    status: RequestStatus
    created_at: datetime
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    donated_at: datetime | None = None
    progress: List[ProgressStep] = []
    donor: DonorProfile | None = None


class BloodRequestBatch(BaseModel):
    sent: int
    requests: List[BloodRequest]


class HospitalStats(BaseModel):
    total_requests: int
    pending_requests: int
    accepted_requests: int
    rejected_requests: int
    completed_donations: int
    success_rate: int
