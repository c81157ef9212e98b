"""Order entities, storage and per-role visibility."""

from agentbuy.orders.models import (
    Actor,
    AgentReport,
    BundleItem,
    BundleOrder,
    EditHistoryEntry,
    NewItem,
    Order,
    OrderStatus,
    ReportDraft,
    ReportMode,
    Role,
)
from agentbuy.orders.store import OrderStore
from agentbuy.orders.visibility import OrderView, VisibilityPartitioner

__all__ = [
    "Actor",
    "AgentReport",
    "BundleItem",
    "BundleOrder",
    "EditHistoryEntry",
    "NewItem",
    "Order",
    "OrderStatus",
    "OrderStore",
    "OrderView",
    "ReportDraft",
    "ReportMode",
    "Role",
    "VisibilityPartitioner",
]
