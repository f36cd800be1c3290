"""Canonical payment status state machine enforced by the orchestrator."""

from enum import Enum


class CanonicalStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    APPROVED = "approved"
    DECLINED = "declined"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    ERROR = "error"


INITIAL_STATES: frozenset[CanonicalStatus] = frozenset({CanonicalStatus.PENDING, CanonicalStatus.PROCESSING})
TERMINAL_STATES: frozenset[CanonicalStatus] = frozenset(
    {CanonicalStatus.APPROVED, CanonicalStatus.DECLINED, CanonicalStatus.EXPIRED}
)

ALLOWED_TRANSITIONS: dict[CanonicalStatus, set[CanonicalStatus]] = {
    CanonicalStatus.PENDING: {CanonicalStatus.PROCESSING, CanonicalStatus.EXPIRED},
    CanonicalStatus.PROCESSING: {CanonicalStatus.APPROVED, CanonicalStatus.DECLINED},
    CanonicalStatus.APPROVED: set(),
    CanonicalStatus.DECLINED: set(),
    CanonicalStatus.EXPIRED: set(),
    CanonicalStatus.NOT_FOUND: set(),
    # An observation failure says nothing about the payment, so the next poll may land anywhere.
    CanonicalStatus.ERROR: set(CanonicalStatus) - {CanonicalStatus.ERROR},
}


class InvalidTransition(ValueError):
    pass


def is_terminal(status: CanonicalStatus) -> bool:
    return status in TERMINAL_STATES


def _reachable(current: CanonicalStatus) -> set[CanonicalStatus]:
    """All states reachable from `current` through one or more allowed transitions.

    Polling can miss intermediate states (a PIX charge is usually observed going
    straight from pending to approved), so transitions are checked against
    reachability rather than single steps.
    """

    seen: set[CanonicalStatus] = set()
    frontier = [current]
    while frontier:
        state = frontier.pop()
        for nxt in ALLOWED_TRANSITIONS.get(state, set()):
            if nxt not in seen:
                seen.add(nxt)
                frontier.append(nxt)
    return seen


def validate_transition(current: CanonicalStatus, new: CanonicalStatus) -> None:
    """Raise when moving from `current` to `new` is not allowed.

    Re-observing the same status is always allowed. Any non-terminal state may
    fall to `error` when normalization fails.
    """

    if new == current:
        return
    if new == CanonicalStatus.ERROR and not is_terminal(current):
        return
    if new not in _reachable(current):
        raise InvalidTransition(f"Invalid transition: {current.value} -> {new.value}")
