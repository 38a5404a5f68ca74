from __future__ import annotations

from typing import Any, Dict, Tuple

from bson import ObjectId
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument

from .lifecycle import InvalidTransitionError, RequestStatus, Transition, transition_for, transition_update


class RequestNotFoundError(LookupError):
    pass


async def advance_request(
    requests: AsyncIOMotorCollection,
    request_id: ObjectId,
    target: RequestStatus,
    owner_field: str,
    owner_id: str,
) -> Tuple[Dict[str, Any], Transition]:
    """
    Move a request owned by ``owner_id`` to ``target``.

    The write only matches while the request still sits in the transition's
    source state, so two actors racing on the same request cannot move it
    backwards or apply the same step twice.
    """
    scope = {"_id": request_id, owner_field: owner_id}
    existing = await requests.find_one(scope)
    if not existing:
        raise RequestNotFoundError(str(request_id))

    transition = transition_for(existing.get("status"), target)
    updated = await requests.find_one_and_update(
        {**scope, "status": transition.source},
        {"$set": transition_update(transition)},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        current = await requests.find_one(scope)
        raise InvalidTransitionError(current.get("status") if current else "missing", target)

    logger.info(
        "Request {} moved {} -> {} by {} {}",
        request_id,
        transition.source,
        transition.target,
        transition.actor,
        owner_id,
    )
    return updated, transition
