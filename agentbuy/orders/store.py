"""In-memory order store with per-order locks and lookup indices."""

from __future__ import annotations

import copy
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, Mapping

from agentbuy.errors import InvariantViolation, NotFoundError
from agentbuy.orders.models import (
    AnyOrder,
    BundleOrder,
    OrderStatus,
    TERMINAL_STATUSES,
    utc_now,
)

Mutator = Callable[[AnyOrder], None]

_MONOTONIC_FLAGS = (
    "user_payment_verified",
    "agent_payment_paid",
    "payment_confirmed_by_requester",
    "archived_by_requester",
    "archived_by_agent",
)


class OrderStore:
    """Holds orders and bundles, enforces structural invariants on every write.

    Reads return deep copies; the only way to change a stored record is
    ``compare_and_set``, which runs under that order's lock.
    """

    def __init__(self) -> None:
        self._orders: dict[str, AnyOrder] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._index_lock = threading.RLock()
        self._by_requester: dict[str, set[str]] = defaultdict(set)
        self._by_agent: dict[str, set[str]] = defaultdict(set)
        self._by_status: dict[OrderStatus, set[str]] = defaultdict(set)

    def add(self, order: AnyOrder) -> AnyOrder:
        _check_record(order)
        with self._index_lock:
            if order.order_id in self._orders:
                raise InvariantViolation(f"Order ID already exists: {order.order_id}")
            stored = copy.deepcopy(order)
            self._orders[order.order_id] = stored
            self._locks[order.order_id] = threading.RLock()
            self._index(stored)
        return copy.deepcopy(stored)

    def get(self, order_id: str) -> AnyOrder:
        with self._lock_for(order_id):
            return copy.deepcopy(self._orders[order_id])

    def exists(self, order_id: str) -> bool:
        return order_id in self._orders

    @contextmanager
    def locked(self, order_id: str) -> Iterator[AnyOrder]:
        """Hold the order's lock and yield a snapshot of it.

        The lock is re-entrant, so ``compare_and_set`` may be called inside
        the block to write based on what was read.
        """
        with self._lock_for(order_id):
            yield copy.deepcopy(self._orders[order_id])

    def compare_and_set(
        self,
        order_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any] | None = None,
        mutate: Mutator | None = None,
    ) -> tuple[bool, AnyOrder]:
        """Apply ``changes``/``mutate`` only if every expected field matches.

        Returns ``(applied, record)`` where record is the stored state after
        the call (unchanged when the comparison failed).
        """
        with self._lock_for(order_id):
            current = self._orders[order_id]
            for name, value in expected.items():
                if getattr(current, name) != value:
                    return False, copy.deepcopy(current)
            updated = copy.deepcopy(current)
            for name, value in (changes or {}).items():
                if not hasattr(updated, name):
                    raise InvariantViolation(f"Unknown order field: {name}")
                setattr(updated, name, value)
            if mutate is not None:
                mutate(updated)
            _check_transition(current, updated)
            _check_record(updated)
            updated.version = current.version + 1
            updated.updated_at = utc_now()
            with self._index_lock:
                self._unindex(current)
                self._orders[order_id] = updated
                self._index(updated)
            return True, copy.deepcopy(updated)

    def ids_for_requester(self, requester_id: str) -> set[str]:
        with self._index_lock:
            return set(self._by_requester.get(requester_id, ()))

    def ids_for_agent(self, agent_id: str) -> set[str]:
        with self._index_lock:
            return set(self._by_agent.get(agent_id, ()))

    def ids_with_status(self, status: OrderStatus) -> set[str]:
        with self._index_lock:
            return set(self._by_status.get(status, ()))

    def all_ids(self) -> set[str]:
        with self._index_lock:
            return set(self._orders)

    def get_many(self, order_ids: Iterable[str]) -> list[AnyOrder]:
        return [self.get(order_id) for order_id in order_ids]

    def __len__(self) -> int:
        return len(self._orders)

    def _lock_for(self, order_id: str) -> threading.RLock:
        lock = self._locks.get(order_id)
        if lock is None:
            raise NotFoundError("order", order_id)
        return lock

    def _index(self, order: AnyOrder) -> None:
        self._by_requester[order.requester_id].add(order.order_id)
        if order.agent_id:
            self._by_agent[order.agent_id].add(order.order_id)
        self._by_status[order.status].add(order.order_id)

    def _unindex(self, order: AnyOrder) -> None:
        self._by_requester[order.requester_id].discard(order.order_id)
        if order.agent_id:
            self._by_agent[order.agent_id].discard(order.order_id)
        self._by_status[order.status].discard(order.order_id)


def _check_record(order: AnyOrder) -> None:
    if not isinstance(order.status, OrderStatus):
        raise InvariantViolation(f"{order.order_id}: invalid status {order.status!r}")
    if isinstance(order, BundleOrder):
        check_bundle_consistency(order)


def _check_transition(before: AnyOrder, after: AnyOrder) -> None:
    oid = before.order_id
    if after.order_id != oid or after.requester_id != before.requester_id:
        raise InvariantViolation(f"{oid}: identity fields are immutable")
    if before.agent_id is not None and after.agent_id != before.agent_id:
        raise InvariantViolation(f"{oid}: agent_id is set once and never changes")
    for flag in _MONOTONIC_FLAGS:
        if getattr(before, flag) and not getattr(after, flag):
            raise InvariantViolation(f"{oid}: {flag} cannot be reset")
    if before.status in TERMINAL_STATUSES and after.status != before.status:
        raise InvariantViolation(f"{oid}: {before.status.value} is terminal")
    if isinstance(before, BundleOrder):
        if not isinstance(after, BundleOrder):
            raise InvariantViolation(f"{oid}: a bundle cannot become a plain order")
        if before.report_mode is not None and after.report_mode != before.report_mode:
            raise InvariantViolation(f"{oid}: report_mode is fixed after the first report")
        before_items = [item.item_id for item in before.items]
        if [item.item_id for item in after.items] != before_items:
            raise InvariantViolation(f"{oid}: bundle items are never added or erased")
        for old, new in zip(before.items, after.items):
            if old.removed and not new.removed:
                raise InvariantViolation(f"{oid}: item {old.item_id} cannot be restored")


def check_bundle_consistency(bundle: BundleOrder) -> None:
    """Explicit checks tying a bundle's own status to its items' statuses."""
    oid = bundle.order_id
    active = bundle.active_items()
    if not active:
        raise InvariantViolation(f"{oid}: bundle must keep at least one active item")
    statuses = {item.status for item in active}
    if bundle.status in (OrderStatus.PUBLISHED, OrderStatus.AWAITING_PAYMENT) or (
        bundle.status in TERMINAL_STATUSES
    ):
        if statuses != {bundle.status}:
            raise InvariantViolation(
                f"{oid}: active items {sorted(s.value for s in statuses)} "
                f"disagree with bundle status {bundle.status.value}"
            )
    elif bundle.status == OrderStatus.RESEARCHING:
        allowed = {OrderStatus.RESEARCHING, OrderStatus.AWAITING_PAYMENT}
        if not statuses <= allowed:
            raise InvariantViolation(f"{oid}: researching bundle has items outside {allowed}")
    for item in bundle.items:
        if item.removed and item.status != OrderStatus.CANCELLED:
            raise InvariantViolation(f"{oid}: removed item {item.item_id} must be cancelled")
