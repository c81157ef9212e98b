"""Point-credit formulas for paid-out orders.

The engine calls the configured formula with the order, the reports that
priced it and the exchange rate in force, and credits whatever it returns.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Sequence

from agentbuy.config.settings import RewardConfig
from agentbuy.orders.models import AgentReport, AnyOrder
from agentbuy.pricing.calculator import agent_commission

CreditFormula = Callable[[AnyOrder, Sequence[AgentReport], Decimal], Decimal]


def constant_credit(points: Decimal = Decimal("1")) -> CreditFormula:
    """A fixed number of points per completed order."""

    def _credit(order: AnyOrder, reports: Sequence[AgentReport], exchange_rate: Decimal) -> Decimal:
        return points

    return _credit


def commission_credit(
    order: AnyOrder,
    reports: Sequence[AgentReport],
    exchange_rate: Decimal,
) -> Decimal:
    """5% of the converted quote: the part of the markup earned by the agent."""
    return sum((agent_commission(r, exchange_rate) for r in reports), Decimal("0"))


def credit_formula_from_config(config: RewardConfig) -> CreditFormula:
    if config.credit_formula == "commission":
        return commission_credit
    return constant_credit(config.constant_points)
