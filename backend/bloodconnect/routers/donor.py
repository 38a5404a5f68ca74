from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..models.donor import (
    AvailabilityUpdate,
    BloodGroup,
    DonorProfile,
    DonorProfileUpdate,
    DonorSearchResult,
)
from ..models.request import BloodRequest
from ..schemas.donor import donor_document
from ..schemas.request import request_document
from ..services.eligibility import EligibilityResult, evaluate_eligibility, evaluate_profile
from ..services.lifecycle import ACCEPTED, DONATED, PENDING, REJECTED, InvalidTransitionError, utcnow
from ..services.matching import MatchMode, compatible_groups, rank_donors
from ..services.notification_log import NotificationLog
from ..services.request_flow import RequestNotFoundError, advance_request
from ..utils.logging import log_db_error
from .deps import (
    DonorUser,
    HospitalUser,
    get_account_collection,
    get_donor_collection,
    get_notification_log,
    get_request_collection,
    push_notification,
    push_request_event,
    resolve_object_id,
)

router = APIRouter(prefix="/donors", tags=["donors"])
router.manager = None


def eligibility_fields(result: EligibilityResult) -> Dict[str, Any]:
    # available always follows eligibility when it is (re)computed
    return {
        "eligible": result.eligible,
        "available": result.eligible,
        "eligibility_reasons": result.reasons,
    }


@router.put("/me/profile", response_model=DonorProfile)
async def save_my_profile(
    user: DonorUser,
    payload: DonorProfileUpdate,
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
    accounts: AsyncIOMotorCollection = Depends(get_account_collection),
) -> DonorProfile:
    """Create or replace the donor's profile.

    The profile is stored even when the donor is ineligible; the reasons are
    kept on the record so the donor can see them.
    """
    result = evaluate_eligibility(
        payload.age,
        payload.weight,
        payload.health_condition,
        payload.last_donation_date,
    )
    now = utcnow()
    document = {
        **payload.model_dump(),
        "last_donation_date": payload.last_donation_date.isoformat() if payload.last_donation_date else None,
        **eligibility_fields(result),
        "updated_at": now,
    }
    account_id = resolve_object_id(user.id, "Donor")
    try:
        await donors.update_one(
            {"_id": account_id},
            {"$set": document, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )
        await accounts.update_one({"_id": account_id}, {"$set": {"profile_completed": True}})
        stored = await donors.find_one({"_id": account_id})
    except PyMongoError as exc:  # pragma: no cover - external service
        log_db_error("save_donor_profile", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not save profile. Try again shortly.",
        ) from exc
    if not result.eligible:
        logger.info("Donor {} saved an ineligible profile: {}", user.id, result.reasons)
    return DonorProfile(**donor_document(stored))


@router.get("/me/profile", response_model=DonorProfile)
async def get_my_profile(
    user: DonorUser,
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
) -> DonorProfile:
    account_id = resolve_object_id(user.id, "Donor")
    profile = await donors.find_one({"_id": account_id})
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donor profile not found")

    result = evaluate_profile(profile)
    if result.eligible != profile.get("eligible") or result.reasons != profile.get("eligibility_reasons"):
        updates = {**eligibility_fields(result), "updated_at": utcnow()}
        await donors.update_one({"_id": account_id}, {"$set": updates})
        profile.update(updates)
        logger.info("Donor {} eligibility refreshed to {}", user.id, result.eligible)
    return DonorProfile(**donor_document(profile))


@router.patch("/me/availability", response_model=DonorProfile)
async def set_my_availability(
    user: DonorUser,
    payload: AvailabilityUpdate,
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
) -> DonorProfile:
    account_id = resolve_object_id(user.id, "Donor")
    profile = await donors.find_one({"_id": account_id})
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donor profile not found")
    if payload.available and not profile.get("eligible"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only eligible donors can be marked available",
        )
    await donors.update_one(
        {"_id": account_id},
        {"$set": {"available": payload.available, "updated_at": utcnow()}},
    )
    profile = await donors.find_one({"_id": account_id})
    return DonorProfile(**donor_document(profile))


@router.get("/me/requests", response_model=List[BloodRequest])
async def list_my_requests(
    user: DonorUser,
    confirmed: bool = False,
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
) -> List[BloodRequest]:
    query = {"donor_id": user.id, "status": ACCEPTED if confirmed else PENDING}
    cursor = requests.find(query).sort("created_at", -1)
    return [BloodRequest(**request_document(doc)) async for doc in cursor]


async def _respond(
    user_id: str,
    request_id: str,
    target: str,
    requests: AsyncIOMotorCollection,
    notifications: NotificationLog,
) -> BloodRequest:
    object_id = resolve_object_id(request_id, "Request")
    try:
        updated, transition = await advance_request(requests, object_id, target, "donor_id", user_id)
    except RequestNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found") from exc
    except InvalidTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Request is already {exc.current}",
        ) from exc

    await push_request_event(router.manager, "request_updated", updated)
    if transition.notification_type:
        notification = await notifications.log(
            recipient_id=updated["hospital_id"],
            recipient_role="hospital",
            type=transition.notification_type,
            message=transition.notification_message,
            sender_id=user_id,
            request_id=str(updated["_id"]),
        )
        await push_notification(router.manager, notification)
    return BloodRequest(**request_document(updated))


@router.post("/me/requests/{request_id}/accept", response_model=BloodRequest)
async def accept_request(
    user: DonorUser,
    request_id: str,
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
    notifications: NotificationLog = Depends(get_notification_log),
) -> BloodRequest:
    return await _respond(user.id, request_id, ACCEPTED, requests, notifications)


@router.post("/me/requests/{request_id}/reject", response_model=BloodRequest)
async def reject_request(
    user: DonorUser,
    request_id: str,
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
    notifications: NotificationLog = Depends(get_notification_log),
) -> BloodRequest:
    return await _respond(user.id, request_id, REJECTED, requests, notifications)


@router.get("/me/history", response_model=List[BloodRequest])
async def my_donation_history(
    user: DonorUser,
    requests: AsyncIOMotorCollection = Depends(get_request_collection),
) -> List[BloodRequest]:
    cursor = requests.find({"donor_id": user.id, "status": DONATED}).sort("donated_at", -1)
    return [BloodRequest(**request_document(doc)) async for doc in cursor]


async def find_matching_donors(
    donors: AsyncIOMotorCollection,
    blood_group: str,
    match: MatchMode,
    extra_filter: Dict[str, Any] | None = None,
) -> List[Dict[str, Any]]:
    """Eligible, available donors able to give to ``blood_group``, best match first."""
    groups = [group for group, _, _ in compatible_groups(blood_group, match)]
    query: Dict[str, Any] = {"blood_group": {"$in": groups}, "eligible": True, "available": True}
    if extra_filter:
        query.update(extra_filter)
    candidates = [doc async for doc in donors.find(query).sort("created_at", 1)]
    return rank_donors(blood_group, candidates, match)


@router.get("/search", response_model=DonorSearchResult)
async def search_donors(
    _: HospitalUser,
    blood_group: BloodGroup,
    match: MatchMode = Query(default="compatible"),
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
) -> DonorSearchResult:
    ranked = await find_matching_donors(donors, blood_group, match)
    results = [
        {**donor_document(donor), "match_rank": donor["match_rank"], "match_type": donor["match_type"]}
        for donor in ranked
    ]
    return DonorSearchResult(blood_group=blood_group, match=match, count=len(results), donors=results)


@router.get("/{donor_id}", response_model=DonorProfile)
async def get_donor(
    _: HospitalUser,
    donor_id: str,
    donors: AsyncIOMotorCollection = Depends(get_donor_collection),
) -> DonorProfile:
    donor = await donors.find_one({"_id": resolve_object_id(donor_id, "Donor")})
    if not donor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donor not found")
    return DonorProfile(**donor_document(donor))


def init_router(manager) -> None:
    router.manager = manager
