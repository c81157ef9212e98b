"""Order quota checks applied when a requester creates an order."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from agentbuy.config.settings import OrderLimitConfig
from agentbuy.orders.models import ACTIVE_STATUSES, utc_now
from agentbuy.orders.store import OrderStore


@dataclass(frozen=True)
class LimitCheckResult:
    approved: bool
    reasons: list[str] = field(default_factory=list)
    orders_today: int = 0
    active_orders: int = 0


class OrderLimitEngine:
    """Evaluate a requester's order volume against the configured quota.

    Orders and bundles count together. "Today" starts at midnight UTC; the
    settings store owns the policy and may swap in a different window.
    """

    def __init__(self, store: OrderStore, config: OrderLimitConfig | None = None) -> None:
        self.store = store
        self.config = config or OrderLimitConfig()

    def evaluate(self, requester_id: str, now: datetime | None = None) -> LimitCheckResult:
        if not self.config.enabled:
            return LimitCheckResult(approved=True)
        now = now or utc_now()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

        orders = self.store.get_many(self.store.ids_for_requester(requester_id))
        orders_today = sum(1 for order in orders if order.created_at >= day_start)
        active_orders = sum(1 for order in orders if order.status in ACTIVE_STATUSES)

        reasons: list[str] = []
        if orders_today >= self.config.max_per_day:
            reasons.append("MAX_ORDERS_PER_DAY")
        if active_orders >= self.config.max_active:
            reasons.append("MAX_ACTIVE_ORDERS")
        return LimitCheckResult(
            approved=not reasons,
            reasons=reasons,
            orders_today=orders_today,
            active_orders=active_orders,
        )
