# app/services/fsm.py
"""
Order lifecycle state machine.

Pure tables and checks, no I/O. Two questions are answered separately:
  - is the edge in the graph?            is_valid_transition()
  - may this role request it from here?  is_permitted()
ensure_transition() combines both and raises InvalidTransition.
"""
from datetime import datetime
from typing import Any

from app.core.errors import InvalidTransition

CREATED = "created"
CONFIRMED = "confirmed"
PREPARING = "preparing"
READY = "ready"
SEARCHING_DRIVER = "searching_driver"
ASSIGNED_TO_DRIVER = "assigned_to_driver"
PICKED_UP = "picked_up"
ON_THE_WAY = "on_the_way"
DELIVERED = "delivered"
CANCELLED = "cancelled"

VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    CREATED: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({PREPARING, CANCELLED}),
    PREPARING: frozenset({READY, CANCELLED}),
    READY: frozenset({SEARCHING_DRIVER}),
    SEARCHING_DRIVER: frozenset({ASSIGNED_TO_DRIVER, CANCELLED}),
    ASSIGNED_TO_DRIVER: frozenset({PICKED_UP, CANCELLED}),
    PICKED_UP: frozenset({ON_THE_WAY}),
    ON_THE_WAY: frozenset({DELIVERED}),
    DELIVERED: frozenset(),
    CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset({DELIVERED, CANCELLED})

# States in which the order must carry a driver id
DRIVER_STATES = frozenset({ASSIGNED_TO_DRIVER, PICKED_UP, ON_THE_WAY, DELIVERED})

# Who can request each target state
TRANSITION_PERMISSIONS: dict[str, frozenset[str]] = {
    CONFIRMED: frozenset({"merchant", "admin"}),
    PREPARING: frozenset({"merchant", "admin"}),
    READY: frozenset({"merchant", "admin"}),
    SEARCHING_DRIVER: frozenset({"system", "admin"}),
    ASSIGNED_TO_DRIVER: frozenset({"driver", "admin"}),
    PICKED_UP: frozenset({"driver", "admin"}),
    ON_THE_WAY: frozenset({"driver", "admin"}),
    DELIVERED: frozenset({"driver", "admin"}),
    CANCELLED: frozenset({"client", "merchant", "admin", "system"}),
}

# Source states from which each role may cancel. Admin: any legal source.
CANCELLABLE_FROM: dict[str, frozenset[str]] = {
    "client": frozenset({CREATED, CONFIRMED, PREPARING, SEARCHING_DRIVER}),
    "merchant": frozenset(
        {CREATED, CONFIRMED, PREPARING, SEARCHING_DRIVER, ASSIGNED_TO_DRIVER}
    ),
    "system": frozenset({CREATED}),
}

# Cancelling from these states costs the client trust score
LATE_CANCEL_STATES = frozenset({PREPARING, SEARCHING_DRIVER})

MILESTONE_FIELDS: dict[str, str] = {
    CREATED: "createdAt",
    CONFIRMED: "confirmedAt",
    PREPARING: "preparingAt",
    READY: "readyAt",
    SEARCHING_DRIVER: "searchingDriverAt",
    ASSIGNED_TO_DRIVER: "assignedToDriverAt",
    PICKED_UP: "pickedUpAt",
    ON_THE_WAY: "onTheWayAt",
    DELIVERED: "deliveredAt",
    CANCELLED: "cancelledAt",
}


def is_valid_transition(current: str, requested: str) -> bool:
    """Return True if current -> requested is an edge of the graph."""
    allowed = VALID_TRANSITIONS.get(current)
    if allowed is None:
        return False
    return requested in allowed


def is_permitted(role: str, current: str, requested: str) -> bool:
    """Return True if `role` may request `requested` while in `current`."""
    if role not in TRANSITION_PERMISSIONS.get(requested, frozenset()):
        return False
    if requested == CANCELLED and role != "admin":
        return current in CANCELLABLE_FROM.get(role, frozenset())
    return True


def ensure_transition(current: str, requested: str, role: str) -> None:
    """
    Raise InvalidTransition unless the edge exists and `role` may take it.
    """
    if not is_valid_transition(current, requested):
        raise InvalidTransition(current, requested)
    if not is_permitted(role, current, requested):
        raise InvalidTransition(current, requested, reason=f"not allowed for role '{role}'")


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def milestone_for(status: str) -> str:
    return MILESTONE_FIELDS[status]


def empty_timestamps() -> dict[str, str | None]:
    return {field: None for field in MILESTONE_FIELDS.values()}


def build_transition_values(
    status_history: list[dict],
    timestamps: dict,
    requested: str,
    actor_id: str,
    now: datetime,
    reason: str | None = None,
) -> dict[str, Any]:
    """
    Column values for one transition: new status, history with one entry
    appended, milestone timestamp set. Written together in one UPDATE so a
    reader never sees a status that differs from the last history entry.
    """
    at = now.isoformat()
    entry: dict[str, Any] = {"status": requested, "at": at, "actor": actor_id}
    if reason:
        entry["reason"] = reason
    return {
        "status": requested,
        "status_history": [*status_history, entry],
        "timestamps": {**timestamps, milestone_for(requested): at},
        "updated_at": now,
    }
