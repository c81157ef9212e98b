"""Order lifecycle: transition table, authorization rules and the engine."""

from agentbuy.settlement.engine import SettlementEngine
from agentbuy.settlement.policy import Decision, authorize, normalize_id
from agentbuy.settlement.transitions import (
    GUARDS,
    TRANSITIONS,
    Action,
    Rule,
    check_status,
    legal_transitions,
)

__all__ = [
    "Action",
    "Decision",
    "GUARDS",
    "Rule",
    "SettlementEngine",
    "TRANSITIONS",
    "authorize",
    "check_status",
    "legal_transitions",
    "normalize_id",
]
