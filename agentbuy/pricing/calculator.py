"""Requester-facing price computation.

Every view that shows a requester total goes through ``requester_amount`` so
the same order always shows the same figure.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, Inexact, InvalidOperation, localcontext
from typing import Iterable, Union

from agentbuy.errors import ValidationError
from agentbuy.orders.models import AgentReport

Number = Union[Decimal, int, float, str]

PLATFORM_MARKUP = Decimal("1.05")
AGENT_COMMISSION_RATE = Decimal("0.05")


def to_decimal(value: Number, name: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{name} must be a number, got {value!r}") from exc
    if not result.is_finite():
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return result


def positive_decimal(value: Number, name: str = "amount") -> Decimal:
    result = to_decimal(value, name)
    if result <= 0:
        raise ValidationError(f"{name} must be positive, got {value!r}")
    return result


def _round(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def _exact_context(*values: Decimal) -> Context:
    """A context wide enough that sums and products of ``values`` never round."""
    context = Context(traps=[Inexact, InvalidOperation])
    span = max(v.adjusted() for v in values) - min(v.as_tuple().exponent for v in values)
    context.prec = max(28, sum(len(v.as_tuple().digits) for v in values) + span + len(values) + 1)
    return context


def _exact_product(*factors: Decimal) -> Decimal:
    with localcontext(_exact_context(*factors)):
        result = Decimal(1)
        for factor in factors:
            result *= factor
        return result


def requester_amount_for(user_amount: Number, exchange_rate: Number) -> int:
    """round(user_amount * exchange_rate * 1.05), rounded once at the end."""
    amount = positive_decimal(user_amount, "user_amount")
    rate = positive_decimal(exchange_rate, "exchange_rate")
    return _round(_exact_product(amount, rate, PLATFORM_MARKUP))


def requester_amount(report: AgentReport, exchange_rate: Number) -> int:
    return requester_amount_for(report.user_amount, exchange_rate)


def bundle_requester_amount(reports: Iterable[AgentReport], exchange_rate: Number) -> int:
    """Total for several reports: source amounts are summed before rounding."""
    amounts = [r.user_amount for r in reports]
    if not amounts:
        raise ValidationError("bundle has no reported amount")
    with localcontext(_exact_context(*amounts)):
        total = sum(amounts, Decimal("0"))
    if total <= 0:
        raise ValidationError("bundle has no reported amount")
    return requester_amount_for(total, exchange_rate)


def agent_commission(report: AgentReport, exchange_rate: Number) -> Decimal:
    """The agent's share of the markup, unrounded."""
    rate = positive_decimal(exchange_rate, "exchange_rate")
    return _exact_product(report.user_amount, rate, AGENT_COMMISSION_RATE)
