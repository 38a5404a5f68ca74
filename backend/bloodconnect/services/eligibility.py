from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Mapping, Optional

MIN_AGE = 18
MAX_AGE = 65
MIN_WEIGHT_KG = 50.0
DONATION_INTERVAL_DAYS = 90
HEALTH_CONDITIONS = [
    "Generally Healthy",
    "Minor Illness",
    "Chronic Condition on Medication",
    "Recent Surgery",
]
DONATABLE_CONDITIONS = {"Generally Healthy", "Minor Illness"}


@dataclass
class EligibilityResult:
    eligible: bool
    reasons: List[str] = field(default_factory=list)


def days_since(last_donation_date: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return (today - last_donation_date).days


def evaluate_eligibility(
    age: int,
    weight: float,
    health_condition: str,
    last_donation_date: Optional[date] = None,
    today: Optional[date] = None,
) -> EligibilityResult:
    """
    Decide whether a donor may give blood.

    Every rule is checked so the donor sees all of the reasons at once:
        - age between 18 and 65 inclusive
        - weight of at least 50kg
        - health condition is "Generally Healthy" or "Minor Illness"
        - at least 90 days since the last donation, when one is recorded

    A last donation date in the future counts as too recent.
    """
    reasons: List[str] = []

    if age < MIN_AGE or age > MAX_AGE:
        reasons.append(f"Age must be between {MIN_AGE}-{MAX_AGE} years")

    if weight < MIN_WEIGHT_KG:
        reasons.append(f"Weight must be at least {MIN_WEIGHT_KG:g}kg")

    if health_condition not in DONATABLE_CONDITIONS:
        reasons.append("Health condition not suitable for donation")

    if last_donation_date is not None:
        if days_since(last_donation_date, today) < DONATION_INTERVAL_DAYS:
            reasons.append(f"Last donation must be at least {DONATION_INTERVAL_DAYS} days ago")

    return EligibilityResult(eligible=not reasons, reasons=reasons)


def parse_donation_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def evaluate_profile(profile: Mapping[str, Any], today: Optional[date] = None) -> EligibilityResult:
    """Run :func:`evaluate_eligibility` over a stored donor profile document."""
    return evaluate_eligibility(
        age=profile.get("age", 0),
        weight=profile.get("weight", 0.0),
        health_condition=profile.get("health_condition", ""),
        last_donation_date=parse_donation_date(profile.get("last_donation_date")),
        today=today,
    )
