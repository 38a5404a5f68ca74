import pytest

from bloodconnect.services.lifecycle import (
    InvalidTransitionError,
    can_transition,
    new_request_fields,
    progress_steps,
    transition_for,
    transition_update,
)


def test_new_requests_start_pending():
    fields = new_request_fields()
    assert fields["status"] == "pending"
    assert fields["accepted_at"] is None


@pytest.mark.parametrize(
    "current,target",
    [("pending", "accepted"), ("pending", "rejected"), ("accepted", "donated")],
)
def test_forward_transitions_are_allowed(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("pending", "donated"),
        ("accepted", "pending"),
        ("accepted", "rejected"),
        ("rejected", "accepted"),
        ("donated", "accepted"),
        ("donated", "pending"),
    ],
)
def test_other_transitions_are_refused(current, target):
    with pytest.raises(InvalidTransitionError) as excinfo:
        transition_for(current, target)
    assert excinfo.value.current == current


def test_accept_writes_timestamp_and_notifies_hospital():
    transition = transition_for("pending", "accepted")
    update = transition_update(transition)
    assert update["status"] == "accepted"
    assert "accepted_at" in update
    assert transition.actor == "donor"
    assert transition.notification_type == "donor_accepted"


def test_reject_sends_no_notification():
    assert transition_for("pending", "rejected").notification_type is None


def test_progress_steps():
    assert [s["state"] for s in progress_steps("pending")] == ["completed", "pending", "pending"]
    assert [s["state"] for s in progress_steps("accepted")] == ["completed", "completed", "current"]
    assert [s["state"] for s in progress_steps("donated")] == ["completed", "completed", "completed"]
    assert [s["state"] for s in progress_steps("rejected")] == ["completed", "rejected", "pending"]
