import pytest

from agentbuy.errors import InvalidTransition
from agentbuy.orders.models import Order, OrderStatus, Role
from agentbuy.settlement.transitions import (
    GUARDS,
    TRANSITIONS,
    Action,
    check_status,
    legal_transitions,
)

P = OrderStatus.PUBLISHED
R = OrderStatus.RESEARCHING
A = OrderStatus.AWAITING_PAYMENT
C = OrderStatus.COMPLETED
X = OrderStatus.CANCELLED


def _order(status: OrderStatus) -> Order:
    return Order(
        order_id="o-1",
        requester_id="u1",
        product_name="Shoes",
        description="size 42",
        status=status,
    )


def test_legal_transitions_match_lifecycle_table() -> None:
    assert legal_transitions() == {
        (Action.CLAIM, P, R),
        (Action.SUBMIT_REPORT, R, A),
        (Action.CANCEL_BY_AGENT, R, X),
        (Action.VERIFY_PAYMENT, A, C),
        (Action.CANCEL_PAYMENT, A, X),
        (Action.ADMIN_FORCE_CANCEL, P, X),
        (Action.ADMIN_FORCE_CANCEL, R, X),
        (Action.ADMIN_FORCE_CANCEL, A, X),
        (Action.REQUESTER_CANCEL, P, X),
        (Action.REQUESTER_CANCEL, A, X),
        (Action.ASSIGN_TRACK_CODE, C, C),
        (Action.CREDIT_AGENT_PAYMENT, C, C),
    }


@pytest.mark.parametrize("status", list(OrderStatus))
@pytest.mark.parametrize("action", list(Action))
def test_check_status_accepts_only_listed_sources(action: Action, status: OrderStatus) -> None:
    rule = TRANSITIONS.get(action) or GUARDS[action]
    order = _order(status)
    if status in rule.sources:
        assert check_status(action, order, Role.ADMIN) == (rule.target or status)
    else:
        with pytest.raises(InvalidTransition) as excinfo:
            check_status(action, order, Role.ADMIN)
        assert excinfo.value.current == status
        assert excinfo.value.action == action.value


def test_terminal_statuses_never_move() -> None:
    for status in (C, X):
        for (action, source, target) in legal_transitions():
            if source == status:
                assert target == status


def test_guards_cover_every_non_transition_action() -> None:
    assert set(TRANSITIONS) | set(GUARDS) == set(Action)
    assert not set(TRANSITIONS) & set(GUARDS)
    assert GUARDS[Action.ARCHIVE].sources == frozenset({C, X})


def test_invalid_transition_carries_context() -> None:
    with pytest.raises(InvalidTransition, match="verify_payment not permitted: published") as excinfo:
        check_status(Action.VERIFY_PAYMENT, _order(P), Role.ADMIN)
    assert excinfo.value.attempted == C
    assert excinfo.value.actor_role == Role.ADMIN
    assert excinfo.value.order_id == "o-1"
