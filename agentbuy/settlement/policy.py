"""Who may perform which action on an order.

One pure rule per action, evaluated after the status guard. Ids are
normalized first because callers hand them over as plain strings, as
``{"id": ...}``/``{"_id": ...}`` mappings, or as objects carrying an ``id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from agentbuy.errors import AuthorizationError
from agentbuy.orders.models import Actor, AnyOrder, Role
from agentbuy.settlement.transitions import Action


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


ALLOW = Decision(True)


def normalize_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        for key in ("id", "_id"):
            if key in value:
                return normalize_id(value[key])
        return None
    for attr in ("id", "_id", "actor_id"):
        inner = getattr(value, attr, None)
        if inner is not None and inner is not value:
            return normalize_id(inner)
    return str(value)


def _deny(reason: str) -> Decision:
    return Decision(False, reason)


def _same(left: Any, right: Any) -> bool:
    a, b = normalize_id(left), normalize_id(right)
    return a is not None and a == b


def _is_agent(actor: Actor, order: AnyOrder) -> Decision:
    if actor.role != Role.AGENT:
        return _deny("agents only")
    return ALLOW


def _is_assigned_agent(actor: Actor, order: AnyOrder) -> Decision:
    if actor.role != Role.AGENT:
        return _deny("agents only")
    if not _same(actor.actor_id, order.agent_id):
        return _deny("not the assigned agent")
    return ALLOW


def _is_admin(actor: Actor, order: AnyOrder) -> Decision:
    if actor.role != Role.ADMIN:
        return _deny("admin only")
    return ALLOW


def _is_owner(actor: Actor, order: AnyOrder) -> Decision:
    if actor.role != Role.REQUESTER:
        return _deny("requester only")
    if not _same(actor.actor_id, order.requester_id):
        return _deny("not the requester who placed the order")
    return ALLOW


def _is_assigned_agent_or_admin(actor: Actor, order: AnyOrder) -> Decision:
    if actor.role == Role.ADMIN:
        return ALLOW
    return _is_assigned_agent(actor, order)


def _is_party(actor: Actor, order: AnyOrder) -> Decision:
    if actor.role == Role.ADMIN:
        return ALLOW
    if actor.role == Role.REQUESTER:
        return _is_owner(actor, order)
    return _is_assigned_agent(actor, order)


_RULES: dict[Action, Callable[[Actor, AnyOrder], Decision]] = {
    Action.CLAIM: _is_agent,
    Action.SUBMIT_REPORT: _is_assigned_agent,
    Action.CANCEL_BY_AGENT: _is_assigned_agent,
    Action.VERIFY_PAYMENT: _is_admin,
    Action.CANCEL_PAYMENT: _is_admin,
    Action.ADMIN_FORCE_CANCEL: _is_admin,
    Action.REQUESTER_CANCEL: _is_owner,
    Action.ASSIGN_TRACK_CODE: _is_assigned_agent_or_admin,
    Action.CREDIT_AGENT_PAYMENT: _is_admin,
    Action.UPDATE_REPORT: _is_assigned_agent,
    Action.CONFIRM_PAYMENT_SENT: _is_owner,
    Action.REMOVE_ITEM: _is_owner,
    Action.ARCHIVE: _is_party,
}


def authorize(action: Action, actor: Actor, order: AnyOrder) -> Decision:
    return _RULES[action](actor, order)


def require(action: Action, actor: Actor, order: AnyOrder) -> None:
    decision = authorize(action, actor, order)
    if not decision.allowed:
        raise AuthorizationError(action.value, actor, decision.reason)
