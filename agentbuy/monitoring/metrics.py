"""Prometheus metrics definitions."""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, start_http_server

from agentbuy.ledger.events import Event, EventType
from agentbuy.orders.models import OrderStatus
from agentbuy.orders.store import OrderStore
from agentbuy.rewards.ledger import RewardLedger


class Metrics:
    """Expose core marketplace metrics for monitoring."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or REGISTRY
        reg = self.registry

        self.order_transitions_total = Counter(
            "order_transitions_total",
            "Order status transitions",
            ["from_status", "to_status"],
            registry=reg,
        )
        self.transition_rejections_total = Counter(
            "transition_rejections_total",
            "Rejected engine calls by action and error kind",
            ["action", "error"],
            registry=reg,
        )
        self.claim_conflicts_total = Counter(
            "claim_conflicts_total",
            "Claims lost to a concurrent agent",
            registry=reg,
        )
        self.report_edits_total = Counter(
            "report_edits_total", "Report edits after submission", registry=reg
        )
        self.reward_points_credited_total = Counter(
            "reward_points_credited_total",
            "Reward points credited to agents",
            registry=reg,
        )
        self.reward_requests_pending = Gauge(
            "reward_requests_pending", "Reward requests awaiting an admin", registry=reg
        )
        self.orders_by_status = Gauge(
            "orders_by_status", "Stored orders and bundles by status", ["status"], registry=reg
        )
        self.event_handler_failures_total = Counter(
            "event_handler_failures_total", "Event subscribers that raised", registry=reg
        )
        self.event_publish_failures_total = Counter(
            "event_publish_failures_total",
            "Events lost after their state change was stored",
            ["event_type"],
            registry=reg,
        )
        self.last_event_sequence = Gauge(
            "last_event_sequence", "Last published event sequence number", registry=reg
        )

    def start(self, port: int) -> None:
        start_http_server(port, registry=self.registry)

    def record_transition(self, from_status: str, to_status: str) -> None:
        self.order_transitions_total.labels(from_status=from_status, to_status=to_status).inc()

    def record_rejection(self, action: str, error: str) -> None:
        self.transition_rejections_total.labels(action=action, error=error).inc()

    def handle_event(self, event: Event) -> None:
        self.last_event_sequence.set(event.sequence_num)
        if event.event_type == EventType.REPORT_EDITED:
            self.report_edits_total.inc()
        elif event.event_type == EventType.HANDLER_FAILED:
            self.event_handler_failures_total.inc()

    def update_state(self, store: OrderStore, rewards: RewardLedger) -> None:
        for status in OrderStatus:
            self.orders_by_status.labels(status=status.value).set(
                len(store.ids_with_status(status))
            )
        self.reward_requests_pending.set(rewards.pending_count())
