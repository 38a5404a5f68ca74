from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..models.hospital import HospitalProfile, HospitalProfileUpdate
from ..models.request import BloodRequest, BloodRequestBatch, BloodRequestCreate, HospitalStats
from ..models.user import UserPublic
from ..schemas.donor import hospital_document
from ..schemas.request import request_document
from ..services.eligibility import evaluate_profile
from ..services.lifecycle import ACCEPTED, DONATED, PENDING, REJECTED, InvalidTransitionError, new_request_fields, utcnow
from ..services.notification_log import NotificationLog
from ..services.request_flow import RequestNotFoundError, advance_request
from ..utils.logging import log_db_error
from ..utils.notifications import notification_service
from .deps import (
    HospitalUser,
    get_account_collection,
    get_donor_collection,
    get_hospital_collection,
    get_notification_log,
    get_request_collection,
    push_notification,
    push_request_event,
    resolve_object_id,
)
from .donor import eligibility_fields, find_matching_donors

router = APIRouter(prefix="/hospitals", tags=["hospitals"])
router.manager = None

StatusFilter = Literal["all", "pending", "accepted", "rejected", "donated"]


def hospital_contact(profile: Dict[str, Any] | None, user: UserPublic) -> Dict[str, Any]:
    """Hospital fields copied onto each request so donors see them without a lookup."""
    profile = profile or {}
    return {
        "hospital_name": profile.get("hospital_name") or "Hospital",
        "hospital_phone": profile.get("phone") or "",
        "hospital_email": user.email,
        "hospital_city": profile.get("city") or "",
        "hospital_state": profile.get("state") or "",
        "hospital_country": profile.get("country") or "",
        "hospital_pincode": profile.get("pincode") or 0,
    }


async def _attach_donors(
    requests: List[Dict[str, Any]], donors: AsyncIOMotorCollection
) -> List[Dict[str, Any]]:
    donor_ids = {doc["donor_id"] for doc in requests}
    object_ids = []
    for donor_id in donor_ids:
        try:
            object_ids.append(ObjectId(donor_id))
        except (InvalidId, TypeError):
            continue
    profiles = {str(doc["_id"]): doc async for doc in donors.find({"_id": {"$in": object_ids}})}
    return [request_document(doc, profiles.get(doc["donor_id"])) for doc in requests]


@router.put("/me/profile", response_model=HospitalProfile)
async def save_my_profile(
    user: HospitalUser,
    payload: HospitalProfileUpdate,
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    accounts: AsyncIOMotorCollection = Depends(get_account_collection),
) -> HospitalProfile:
    account_id = resolve_object_id(user.id, "Hospital")
    now = utcnow()
    try:
        await hospitals.update_one(
            {"_id": account_id},
            {
                "$set": {**payload.model_dump(), "email": user.email, "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )
        await accounts.update_one({"_id": account_id}, {"$set": {"profile_completed": True}})
        stored = await hospitals.find_one({"_id": account_id})
    except PyMongoError as exc:  # pragma: no cover - external service
        log_db_error("save_hospital_profile", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not save profile. Try again shortly.",
        ) from exc
    return HospitalProfile(**hospital_document(stored))


@router.get("/me/profile", response_model=HospitalProfile)
async def get_my_profile(
    user: HospitalUser,
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
) -> HospitalProfile:
    profile = await hospitals.find_one({"_id": resolve_object_id(user.id, "Hospital")})
    if not profile:
        # dashboards still render before setup is finished
        profile = {"_id": user.id, "email": user.email, "profile_completed": False}
    return HospitalProfile(**hospital_document(profile))


@router.post("/me/requests", response_model=BloodRequestBatch, status_code=status.HTTP_201_CREATED)
async def request_blood(
    user: HospitalUser,
    payload: BloodRequestCreate,
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
    notifications: NotificationLog = Depends(get_notification_log),
) -> BloodRequestBatch:
    """Send one request per matching eligible donor (or per listed donor)."""
    extra_filter = None
    if payload.donor_ids is not None:
        try:
            extra_filter = {"_id": {"$in": [ObjectId(donor_id) for donor_id in payload.donor_ids]}}
        except (InvalidId, TypeError) as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid donor id") from exc

    matched = await find_matching_donors(donors, payload.blood_group, payload.match, extra_filter)
    if not matched:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No eligible donors found for blood group {payload.blood_group}",
        )

    profile = await hospitals.find_one({"_id": resolve_object_id(user.id, "Hospital")})
    contact = hospital_contact(profile, user)
    created: List[Dict[str, Any]] = []
    try:
        for donor in matched:
            document = {
                "hospital_id": user.id,
                "donor_id": str(donor["_id"]),
                "blood_group": payload.blood_group,
                "donor_blood_group": donor.get("blood_group"),
                "match_type": donor["match_type"],
                "units_required": payload.units_required,
                **contact,
                **new_request_fields(),
            }
            result = await requests.insert_one(document)
            document["_id"] = result.inserted_id
            created.append(document)

            notification = await notifications.log(
                recipient_id=document["donor_id"],
                recipient_role="donor",
                type="blood_request",
                message=f"Blood request from {contact['hospital_name']}",
                sender_id=user.id,
                request_id=str(result.inserted_id),
                blood_group=payload.blood_group,
                units_required=payload.units_required,
            )
            await push_request_event(router.manager, "request_created", document)
            await push_notification(router.manager, notification)
            await notification_service.alert_donor(
                donor, contact["hospital_name"], payload.blood_group, payload.units_required
            )
    except PyMongoError as exc:  # pragma: no cover - external service
        log_db_error("request_blood", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to send blood request. Please try again.",
        ) from exc

    logger.info("Hospital {} sent {} request(s) for {}", user.id, len(created), payload.blood_group)
    return BloodRequestBatch(sent=len(created), requests=[request_document(doc) for doc in created])


@router.get("/me/requests", response_model=List[BloodRequest])
async def list_my_requests(
    user: HospitalUser,
    status_filter: StatusFilter = Query(default="all", alias="status"),
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
) -> List[BloodRequest]:
    query: Dict[str, Any] = {"hospital_id": user.id}
    if status_filter != "all":
        query["status"] = status_filter
    docs = [doc async for doc in requests.find(query).sort("created_at", -1)]
    return [BloodRequest(**doc) for doc in await _attach_donors(docs, donors)]


@router.get("/me/accepted", response_model=List[BloodRequest])
async def list_accepted_donors(
    user: HospitalUser,
    search: str = "",
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
) -> List[BloodRequest]:
    docs = [doc async for doc in requests.find({"hospital_id": user.id, "status": ACCEPTED}).sort("accepted_at", -1)]
    results = await _attach_donors(docs, donors)
    term = search.strip().lower()
    if term:
        results = [doc for doc in results if doc["donor"] and term in (doc["donor"].get("name") or "").lower()]
    return [BloodRequest(**doc) for doc in results]


@router.post("/me/requests/{request_id}/donated", response_model=BloodRequest)
async def mark_donated(
    user: HospitalUser,
    request_id: str,
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
    notifications: NotificationLog = Depends(get_notification_log),
) -> BloodRequest:
    object_id = resolve_object_id(request_id, "Request")
    try:
        updated, transition = await advance_request(requests, object_id, DONATED, "hospital_id", user.id)
    except RequestNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found") from exc
    except InvalidTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Only accepted requests can be marked as donated (request is {exc.current})",
        ) from exc

    donor = await _record_donation(donors, updated["donor_id"], updated["donated_at"].date())
    await push_request_event(router.manager, "request_updated", updated)
    notification = await notifications.log(
        recipient_id=updated["donor_id"],
        recipient_role="donor",
        type=transition.notification_type,
        message=transition.notification_message,
        sender_id=user.id,
        request_id=str(updated["_id"]),
    )
    await push_notification(router.manager, notification)
    return BloodRequest(**request_document(updated, donor))


async def _record_donation(
    donors: AsyncIOMotorCollection, donor_id: str, donated_on: date
) -> Dict[str, Any] | None:
    """Stamp the donation date on the donor and re-run the eligibility rule."""
    try:
        object_id = ObjectId(donor_id)
    except (InvalidId, TypeError):
        return None
    donor = await donors.find_one({"_id": object_id})
    if not donor:
        return None
    donor["last_donation_date"] = donated_on.isoformat()
    updates = {
        "last_donation_date": donor["last_donation_date"],
        **eligibility_fields(evaluate_profile(donor, today=donated_on)),
        "updated_at": utcnow(),
    }
    await donors.update_one({"_id": object_id}, {"$set": updates})
    donor.update(updates)
    return donor


@router.get("/me/history", response_model=List[BloodRequest])
async def donation_history(
    user: HospitalUser,
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
) -> List[BloodRequest]:
    docs = [doc async for doc in requests.find({"hospital_id": user.id, "status": DONATED}).sort("donated_at", -1)]
    return [BloodRequest(**doc) for doc in await _attach_donors(docs, donors)]


@router.get("/me/stats", response_model=HospitalStats)
async def hospital_stats(
    user: HospitalUser,
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
) -> HospitalStats:
    counts = {state: 0 for state in (PENDING, ACCEPTED, REJECTED, DONATED)}
    async for doc in requests.find({"hospital_id": user.id}, {"status": 1}):
        if doc.get("status") in counts:
            counts[doc["status"]] += 1
    total = sum(counts.values())
    # round half up
    success_rate = int(counts[DONATED] * 100 / total + 0.5) if total else 0
    return HospitalStats(
        total_requests=total,
        pending_requests=counts[PENDING],
        accepted_requests=counts[ACCEPTED],
        rejected_requests=counts[REJECTED],
        completed_donations=counts[DONATED],
        success_rate=success_rate,
    )


def init_router(manager) -> None:
    router.manager = manager
