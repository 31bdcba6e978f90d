"""Status lifecycles for bookings, orders and rental requests."""
from typing import Dict, Set

from errors import InvalidTransition

BOOKING_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled", "no-show"},
    "completed": set(),
    "cancelled": set(),
    "no-show": set(),
}

ORDER_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}

RENTAL_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"document_verification", "approved", "rejected", "cancelled"},
    "document_verification": {"approved", "rejected", "cancelled"},
    "approved": {"delivered", "cancelled"},
    "delivered": {"returned"},
    "returned": set(),
    "rejected": set(),
    "cancelled": set(),
}


def check_transition(table: Dict[str, Set[str]], kind: str, current: str, target: str) -> bool:
    """
    Raise InvalidTransition unless current -> target is allowed.

    Returns False when target equals current (nothing to write), True otherwise.
    """
    if target not in table:
        raise InvalidTransition(kind, current, target)
    if current == target:
        return False
    if target not in table.get(current, set()):
        raise InvalidTransition(kind, current, target)
    return True
