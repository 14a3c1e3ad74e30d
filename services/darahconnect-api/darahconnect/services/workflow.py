"""
Status transition tables for every stateful entity.

Services call :func:`ensure_transition` before changing a status; the
tables are the single source of which moves are legal. Terminal states
have no outgoing transitions.
"""

from typing import Dict, FrozenSet

from ..core.exceptions import BadRequestError

Transitions = Dict[str, FrozenSet[str]]

BLOOD_REQUEST_TRANSITIONS: Transitions = {
    "pending": frozenset({"verified", "cancelled", "expired"}),
    "verified": frozenset({"registered", "completed", "cancelled", "expired"}),
    "registered": frozenset({"verified", "completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "expired": frozenset(),
}

DONOR_SCHEDULE_TRANSITIONS: Transitions = {
    "upcoming": frozenset({"ongoing", "completed", "cancelled"}),
    "ongoing": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

DONOR_REGISTRATION_TRANSITIONS: Transitions = {
    "registered": frozenset({"completed", "cancelled", "no-show"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "no-show": frozenset(),
}

BLOOD_DONATION_TRANSITIONS: Transitions = {
    "pending": frozenset({"completed", "rejected", "deferred", "cancelled"}),
    "completed": frozenset(),
    "rejected": frozenset(),
    "deferred": frozenset(),
    "cancelled": frozenset(),
}

HEALTH_PASSPORT_TRANSITIONS: Transitions = {
    "active": frozenset({"suspended", "expired"}),
    "suspended": frozenset({"active"}),
    "expired": frozenset({"active"}),
}

# Blood request / campaign states in which donors may sign up.
OPEN_REQUEST_STATUSES = frozenset({"verified"})
OPEN_SCHEDULE_STATUSES = frozenset({"upcoming", "ongoing"})


def can_transition(table: Transitions, current: str, target: str) -> bool:
    return target in table.get(current, frozenset())


def ensure_transition(table: Transitions, current: str, target: str) -> None:
    """Raise BadRequestError unless ``current -> target`` is in ``table``."""
    if not can_transition(table, current, target):
        raise BadRequestError(f"Status tidak dapat diubah dari {current} ke {target}")


def reconcile_slot_status(blood_request) -> None:
    """Keep an open request's status in step with its remaining slots.

    A verified request with no slots left becomes registered; a registered
    one that has slots again goes back to verified. Other states are left alone.
    """
    if blood_request.status == "verified" and blood_request.slots_available <= 0:
        target = "registered"
    elif blood_request.status == "registered" and blood_request.slots_available > 0:
        target = "verified"
    else:
        return
    ensure_transition(BLOOD_REQUEST_TRANSITIONS, blood_request.status, target)
    blood_request.status = target
