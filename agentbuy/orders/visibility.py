"""Per-role views over the order store."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from agentbuy.orders.models import AnyOrder, OrderStatus, Role
from agentbuy.orders.store import OrderStore


@dataclass(frozen=True)
class OrderView:
    role: Role
    viewer_id: str
    archived: bool = False


class VisibilityPartitioner:
    """Filter orders by viewer role and that role's own archived flag.

    Requesters see their own orders, agents see assigned orders plus the
    unclaimed published pool, admins see everything. Each role archives
    independently, so one side archiving never hides the order from the other.
    """

    def __init__(self, store: OrderStore) -> None:
        self._store = store

    def list_orders(self, view: OrderView) -> list[AnyOrder]:
        orders = [
            order
            for order in self._store.get_many(self._candidate_ids(view))
            if self._visible(order, view)
        ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    def counts(self, view: OrderView) -> dict[OrderStatus, int]:
        tally = Counter(order.status for order in self.list_orders(view))
        return {status: tally.get(status, 0) for status in OrderStatus}

    def can_view(self, order: AnyOrder, role: Role, viewer_id: str) -> bool:
        if role == Role.ADMIN:
            return True
        if role == Role.REQUESTER:
            return order.requester_id == viewer_id
        return order.agent_id == viewer_id or _in_open_pool(order)

    def _candidate_ids(self, view: OrderView) -> set[str]:
        if view.role == Role.REQUESTER:
            return self._store.ids_for_requester(view.viewer_id)
        if view.role == Role.AGENT:
            ids = self._store.ids_for_agent(view.viewer_id)
            if not view.archived:
                ids |= self._store.ids_with_status(OrderStatus.PUBLISHED)
            return ids
        return self._store.all_ids()

    def _visible(self, order: AnyOrder, view: OrderView) -> bool:
        if not self.can_view(order, view.role, view.viewer_id):
            return False
        return is_archived_for(order, view.role, view.viewer_id) == view.archived


def is_archived_for(order: AnyOrder, role: Role, viewer_id: str | None = None) -> bool:
    if role == Role.REQUESTER:
        return order.archived_by_requester
    if role == Role.AGENT:
        if viewer_id is not None and order.agent_id != viewer_id:
            return False
        return order.archived_by_agent
    return order.archived_by_requester and order.archived_by_agent


def _in_open_pool(order: AnyOrder) -> bool:
    return order.status == OrderStatus.PUBLISHED and order.agent_id is None
