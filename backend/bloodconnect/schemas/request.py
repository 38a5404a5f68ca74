from __future__ import annotations

from typing import Any, Dict

from ..services.lifecycle import progress_steps
from .donor import donor_document


def request_document(request: Dict[str, Any], donor: Dict[str, Any] | None = None) -> Dict[str, Any]:
    status = request.get("status")
    return {
        "_id": str(request.get("_id")),
        "hospital_id": request.get("hospital_id"),
        "donor_id": request.get("donor_id"),
        "blood_group": request.get("blood_group"),
        "donor_blood_group": request.get("donor_blood_group"),
        "match_type": request.get("match_type", "exact"),
        "units_required": request.get("units_required"),
        "hospital_name": request.get("hospital_name") or "Hospital",
        "hospital_phone": request.get("hospital_phone", ""),
        "hospital_email": request.get("hospital_email", ""),
        "hospital_city": request.get("hospital_city", ""),
        "hospital_state": request.get("hospital_state", ""),
        "hospital_country": request.get("hospital_country", ""),
        "hospital_pincode": request.get("hospital_pincode", 0),
        "status": status,
        "created_at": request.get("created_at"),
        "accepted_at": request.get("accepted_at"),
        "rejected_at": request.get("rejected_at"),
        "donated_at": request.get("donated_at"),
        "progress": progress_steps(status),
        "donor": donor_document(donor) if donor else None,
    }


def notification_document(notification: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(notification.get("_id")),
        "recipient_id": notification.get("recipient_id"),
        "recipient_role": notification.get("recipient_role"),
        "sender_id": notification.get("sender_id"),
        "type": notification.get("type"),
        "message": notification.get("message"),
        "request_id": notification.get("request_id"),
        "blood_group": notification.get("blood_group"),
        "units_required": notification.get("units_required"),
        "read": notification.get("read", False),
        "created_at": notification.get("created_at"),
        "read_at": notification.get("read_at"),
    }


def event_payload(request: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe summary of a request for live update events."""
    payload = {
        "request_id": str(request.get("_id")),
        "hospital_id": request.get("hospital_id"),
        "donor_id": request.get("donor_id"),
        "blood_group": request.get("blood_group"),
        "units_required": request.get("units_required"),
        "status": request.get("status"),
    }
    for field in ("created_at", "accepted_at", "rejected_at", "donated_at"):
        value = request.get(field)
        payload[field] = value.isoformat() if value is not None else None
    return payload
