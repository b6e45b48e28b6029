"""
Order Status Transition Table Unit Tests

Usage:
    pytest tests/unit/order_service/test_state_machine.py -v
"""
import itertools

import pytest

from microservices.order_service.models import OrderStatus
from microservices.order_service.protocols import (
    ErrorKind,
    InvalidOrderStateError,
    OrderConflictError,
)
from microservices.order_service.state_machine import (
    ALLOWED_TRANSITIONS,
    CANCELLABLE_STATUSES,
    TERMINAL_STATUSES,
    allowed_next,
    ensure_transition_allowed,
    is_terminal,
)

pytestmark = [pytest.mark.unit]

S = OrderStatus

EXPECTED_TABLE = {
    S.PLACED: {S.CONFIRMED, S.CANCELLED},
    S.CONFIRMED: {S.PREPARING, S.CANCELLED},
    S.PREPARING: {S.READY_FOR_PICKUP},
    S.READY_FOR_PICKUP: {S.OUT_FOR_DELIVERY, S.COMPLETED},
    S.OUT_FOR_DELIVERY: {S.COMPLETED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

ALL_PAIRS = list(itertools.product(list(S), list(S)))
LEGAL_PAIRS = [(a, b) for a, b in ALL_PAIRS if b in EXPECTED_TABLE[a]]
ILLEGAL_FROM_LIVE = [
    (a, b) for a, b in ALL_PAIRS if a not in TERMINAL_STATUSES and b not in EXPECTED_TABLE[a]
]
FROM_TERMINAL = [(a, b) for a, b in ALL_PAIRS if a in TERMINAL_STATUSES]


class TestTransitionTable:

    def test_table_matches_lifecycle(self):
        assert {k: set(v) for k, v in ALLOWED_TRANSITIONS.items()} == EXPECTED_TABLE

    def test_terminal_and_cancellable_sets(self):
        assert TERMINAL_STATUSES == {S.COMPLETED, S.CANCELLED}
        assert CANCELLABLE_STATUSES == {S.PLACED, S.CONFIRMED}
        assert is_terminal(S.COMPLETED)
        assert not is_terminal(S.PREPARING)

    def test_allowed_next_follows_declaration_order(self):
        assert allowed_next(S.PLACED) == ["confirmed", "cancelled"]
        assert allowed_next(S.READY_FOR_PICKUP) == ["out_for_delivery", "completed"]
        assert allowed_next(S.COMPLETED) == []


class TestEnsureTransitionAllowed:

    @pytest.mark.parametrize("current,new", LEGAL_PAIRS)
    def test_legal_pairs_pass(self, current, new):
        ensure_transition_allowed(current, new)

    @pytest.mark.parametrize("current,new", ILLEGAL_FROM_LIVE)
    def test_illegal_pairs_are_unprocessable(self, current, new):
        with pytest.raises(InvalidOrderStateError) as exc_info:
            ensure_transition_allowed(current, new)
        assert exc_info.value.kind == ErrorKind.UNPROCESSABLE_TRANSITION
        assert exc_info.value.allowed_next == allowed_next(current)
        assert exc_info.value.details == {"allowed_next": allowed_next(current)}

    @pytest.mark.parametrize("current,new", FROM_TERMINAL)
    def test_terminal_states_conflict(self, current, new):
        with pytest.raises(OrderConflictError) as exc_info:
            ensure_transition_allowed(current, new)
        assert exc_info.value.kind == ErrorKind.CONFLICT
        assert exc_info.value.status_code == 409
