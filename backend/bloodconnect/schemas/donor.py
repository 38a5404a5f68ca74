from __future__ import annotations

from typing import Any, Dict


def donor_document(donor: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(donor.get("_id")),
        "name": donor.get("name"),
        "age": donor.get("age"),
        "weight": donor.get("weight"),
        "phone": donor.get("phone"),
        "city": donor.get("city"),
        "state": donor.get("state"),
        "country": donor.get("country"),
        "pincode": donor.get("pincode"),
        "blood_group": donor.get("blood_group"),
        "health_condition": donor.get("health_condition"),
        "hemoglobin": donor.get("hemoglobin"),
        "last_donation_date": donor.get("last_donation_date"),
        "eligible": donor.get("eligible", False),
        "available": donor.get("available", False),
        "eligibility_reasons": donor.get("eligibility_reasons", []),
        "created_at": donor.get("created_at"),
        "updated_at": donor.get("updated_at"),
    }


def hospital_document(hospital: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(hospital.get("_id")),
        "hospital_name": hospital.get("hospital_name") or "Hospital",
        "phone": hospital.get("phone", ""),
        "email": hospital.get("email", ""),
        "address": hospital.get("address", ""),
        "city": hospital.get("city", ""),
        "state": hospital.get("state", ""),
        "country": hospital.get("country", ""),
        "pincode": hospital.get("pincode"),
        "description": hospital.get("description", ""),
        "profile_completed": hospital.get("profile_completed", True),
        "created_at": hospital.get("created_at"),
        "updated_at": hospital.get("updated_at"),
    }
