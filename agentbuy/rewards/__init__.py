"""Agent reward points."""

from agentbuy.rewards.credit import (
    CreditFormula,
    commission_credit,
    constant_credit,
    credit_formula_from_config,
)
from agentbuy.rewards.ledger import RewardLedger, RewardRequest, RewardStatus

__all__ = [
    "CreditFormula",
    "RewardLedger",
    "RewardRequest",
    "RewardStatus",
    "commission_credit",
    "constant_credit",
    "credit_formula_from_config",
]
