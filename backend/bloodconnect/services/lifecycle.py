from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

RequestStatus = Literal["pending", "accepted", "rejected", "donated"]
UserRole = Literal["donor", "hospital"]

PENDING: RequestStatus = "pending"
ACCEPTED: RequestStatus = "accepted"
REJECTED: RequestStatus = "rejected"
DONATED: RequestStatus = "donated"

STATUSES = (PENDING, ACCEPTED, REJECTED, DONATED)
TERMINAL_STATUSES = frozenset({REJECTED, DONATED})


class InvalidTransitionError(ValueError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move request from {current} to {target}")
        self.current = current
        self.target = target


@dataclass(frozen=True)
class Transition:
    source: RequestStatus
    target: RequestStatus
    actor: UserRole
    timestamp_field: str
    notification_type: Optional[str] = None
    notification_message: Optional[str] = None


TRANSITIONS: Dict[RequestStatus, Transition] = {
    ACCEPTED: Transition(
        source=PENDING,
        target=ACCEPTED,
        actor="donor",
        timestamp_field="accepted_at",
        notification_type="donor_accepted",
        notification_message="A donor has accepted your blood request",
    ),
    REJECTED: Transition(
        source=PENDING,
        target=REJECTED,
        actor="donor",
        timestamp_field="rejected_at",
    ),
    DONATED: Transition(
        source=ACCEPTED,
        target=DONATED,
        actor="hospital",
        timestamp_field="donated_at",
        notification_type="donation_completed",
        notification_message="Thank you! Your donation has been completed",
    ),
}

PROGRESS_STEPS = ["Request Sent", "Donor Accepted", "Donation Completed"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def transition_for(current: str, target: str) -> Transition:
    """Return the transition from ``current`` to ``target`` or raise.

    Statuses only move forward: pending to accepted or rejected, accepted to
    donated. Rejected and donated are terminal.
    """
    transition = TRANSITIONS.get(target)  # type: ignore[arg-type]
    if transition is None or transition.source != current:
        raise InvalidTransitionError(current, target)
    return transition


def can_transition(current: str, target: str) -> bool:
    try:
        transition_for(current, target)
    except InvalidTransitionError:
        return False
    return True


def transition_update(transition: Transition, at: datetime | None = None) -> Dict[str, Any]:
    return {"status": transition.target, transition.timestamp_field: at or utcnow()}


def new_request_fields(at: datetime | None = None) -> Dict[str, Any]:
    return {
        "status": PENDING,
        "created_at": at or utcnow(),
        "accepted_at": None,
        "rejected_at": None,
        "donated_at": None,
    }


def progress_steps(status: str) -> List[Dict[str, str]]:
    """Step-by-step view of a request for dashboards."""
    accepted_state = "pending"
    if status == REJECTED:
        accepted_state = "rejected"
    elif status in (ACCEPTED, DONATED):
        accepted_state = "completed"

    donated_state = "pending"
    if status == DONATED:
        donated_state = "completed"
    elif status == ACCEPTED:
        donated_state = "current"

    states = ["completed", accepted_state, donated_state]
    return [{"step": step, "state": state} for step, state in zip(PROGRESS_STEPS, states)]
