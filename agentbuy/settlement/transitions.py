"""Order lifecycle transition table.

Order lifecycle:
    PUBLISHED → RESEARCHING → AWAITING_PAYMENT → COMPLETED
    PUBLISHED / RESEARCHING / AWAITING_PAYMENT → CANCELLED (by the role the action allows)

Fail-closed: an action is accepted only from the statuses listed for it.
There are no implicit transitions. Bundles use the same table at bundle level.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from agentbuy.errors import InvalidTransition
from agentbuy.orders.models import AnyOrder, OrderStatus, Role, TERMINAL_STATUSES


class Action(str, Enum):
    CLAIM = "claim"
    SUBMIT_REPORT = "submit_report"
    CANCEL_BY_AGENT = "cancel_by_agent"
    VERIFY_PAYMENT = "verify_payment"
    CANCEL_PAYMENT = "cancel_payment"
    ADMIN_FORCE_CANCEL = "admin_force_cancel"
    REQUESTER_CANCEL = "requester_cancel"
    ASSIGN_TRACK_CODE = "assign_track_code"
    CREDIT_AGENT_PAYMENT = "credit_agent_payment"
    UPDATE_REPORT = "update_report"
    CONFIRM_PAYMENT_SENT = "confirm_payment_sent"
    REMOVE_ITEM = "remove_item"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class Rule:
    sources: frozenset[OrderStatus]
    # None: the action does not change status.
    target: OrderStatus | None


_P = OrderStatus.PUBLISHED
_R = OrderStatus.RESEARCHING
_A = OrderStatus.AWAITING_PAYMENT
_C = OrderStatus.COMPLETED
_X = OrderStatus.CANCELLED

# The nine lifecycle transitions.
TRANSITIONS: dict[Action, Rule] = {
    Action.CLAIM: Rule(frozenset({_P}), _R),
    Action.SUBMIT_REPORT: Rule(frozenset({_R}), _A),
    Action.CANCEL_BY_AGENT: Rule(frozenset({_R}), _X),
    Action.VERIFY_PAYMENT: Rule(frozenset({_A}), _C),
    Action.CANCEL_PAYMENT: Rule(frozenset({_A}), _X),
    Action.ADMIN_FORCE_CANCEL: Rule(frozenset({_P, _R, _A}), _X),
    Action.REQUESTER_CANCEL: Rule(frozenset({_P, _A}), _X),
    Action.ASSIGN_TRACK_CODE: Rule(frozenset({_C}), _C),
    Action.CREDIT_AGENT_PAYMENT: Rule(frozenset({_C}), _C),
}

# Status guards for actions that edit an order without moving it.
GUARDS: dict[Action, Rule] = {
    Action.UPDATE_REPORT: Rule(frozenset({_A}), None),
    Action.CONFIRM_PAYMENT_SENT: Rule(frozenset({_A}), None),
    Action.REMOVE_ITEM: Rule(frozenset({_A}), None),
    Action.ARCHIVE: Rule(frozenset(TERMINAL_STATUSES), None),
}


def rule_for(action: Action) -> Rule:
    rule = TRANSITIONS.get(action) or GUARDS.get(action)
    if rule is None:
        raise KeyError(f"No rule for action {action}")
    return rule


def legal_transitions() -> set[tuple[Action, OrderStatus, OrderStatus]]:
    """Every (action, from, to) triple the table allows."""
    return {
        (action, source, rule.target)
        for action, rule in TRANSITIONS.items()
        if rule.target is not None
        for source in rule.sources
    }


def check_status(action: Action, order: AnyOrder, actor_role: Role | None = None) -> OrderStatus:
    """Return the status the action leads to, or raise InvalidTransition."""
    rule = rule_for(action)
    target = rule.target or order.status
    if order.status not in rule.sources:
        raise InvalidTransition(order.status, target, actor_role, action.value, order.order_id)
    return target
