"""Order quota enforcement."""

from agentbuy.limits.engine import LimitCheckResult, OrderLimitEngine

__all__ = ["LimitCheckResult", "OrderLimitEngine"]
