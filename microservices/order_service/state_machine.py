"""
Order Status State Machine

Fixed transition table for order.status. Terminal statuses accept no
further transitions.
"""

from typing import Dict, FrozenSet, List

from .models import OrderStatus
from .protocols import InvalidOrderStateError, OrderConflictError

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY_FOR_PICKUP}),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.COMPLETED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Self-service cancellation stops once the kitchen starts preparing
CANCELLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.PLACED, OrderStatus.CONFIRMED})

# Declaration order of OrderStatus, used to list next states deterministically
_ORDER = list(OrderStatus)


def allowed_next(current: OrderStatus) -> List[str]:
    """Legal next statuses for display"""
    return [s.value for s in sorted(ALLOWED_TRANSITIONS[current], key=_ORDER.index)]


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def ensure_transition_allowed(current: OrderStatus, new_status: OrderStatus) -> None:
    """
    Validate a status change.

    Raises:
        OrderConflictError: current status is terminal
        InvalidOrderStateError: new_status is not reachable from current
    """
    if is_terminal(current):
        raise OrderConflictError(
            f"Order is already {current.value}. No further updates are allowed."
        )
    if new_status not in ALLOWED_TRANSITIONS[current]:
        next_states = allowed_next(current)
        raise InvalidOrderStateError(
            f'Invalid transition: "{current.value}" -> "{new_status.value}". '
            f"Allowed next statuses: [{', '.join(next_states)}].",
            allowed_next=next_states,
        )
