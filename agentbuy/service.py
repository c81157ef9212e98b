"""Wire the marketplace components together behind one facade."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import structlog

from agentbuy.config.settings import Settings, load_settings
from agentbuy.ledger import Event, EventBus, EventLedger, EventType, publish_after_commit
from agentbuy.monitoring import EventConsoleLogger, Metrics, OrderLogger, configure_logging
from agentbuy.orders.models import Actor, AgentReport, AnyOrder, OrderStatus
from agentbuy.orders.store import OrderStore
from agentbuy.orders.visibility import OrderView, VisibilityPartitioner
from agentbuy.reports.ledger import ReportLedger
from agentbuy.rewards.ledger import RewardLedger, RewardRequest, RewardStatus
from agentbuy.settlement.engine import SettlementEngine

log = structlog.get_logger(__name__)


class MarketplaceService:
    """One handle on the store, ledgers, engine and views.

    Order lifecycle calls are delegated to ``engine``; reward requests go
    through here so their events reach the same bus.
    """

    def __init__(
        self,
        settings: Settings,
        event_bus: EventBus,
        metrics: Metrics | None = None,
    ) -> None:
        self.settings = settings
        self.event_bus = event_bus
        self.store = OrderStore()
        self.reports = ReportLedger(self.store)
        self.rewards = RewardLedger()
        self.engine = SettlementEngine(
            settings, self.store, self.reports, self.rewards, event_bus
        )
        self.visibility = VisibilityPartitioner(self.store)
        self.metrics = metrics
        if metrics is not None:
            self.engine.set_metrics(metrics)
            event_bus.register_all(metrics.handle_event)
            event_bus.register_all(self._refresh_on_event)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        config_path: str | Path | None = None,
        metrics: Metrics | None = None,
    ) -> MarketplaceService:
        """Build a fully wired service: logging, ledger, subscribers, metrics."""
        settings = settings or load_settings(config_path)
        configure_logging(
            settings.monitoring.log_level, settings.storage.logs_path, settings.monitoring
        )
        ledger = EventLedger(settings.storage.ledger_path)
        event_bus = EventBus(ledger)

        if settings.monitoring.console_events:
            event_console = EventConsoleLogger()
            for event_type in event_console.include:
                event_bus.register(event_type, event_console.handle_event)
        if settings.monitoring.order_log_path:
            order_logger = OrderLogger(settings.monitoring.order_log_path)
            event_bus.register_all(order_logger.handle_event)
        if metrics is None and settings.monitoring.metrics_enabled:
            metrics = Metrics()
            if settings.monitoring.metrics_port:
                try:
                    metrics.start(settings.monitoring.metrics_port)
                except OSError as exc:
                    log.warning("metrics_start_failed", error=str(exc))

        service = cls(settings, event_bus, metrics)
        log.info(
            "marketplace_started",
            environment=settings.environment,
            exchange_rate=str(settings.exchange.exchange_rate),
            currency_pair=f"{settings.exchange.source_currency}/{settings.exchange.target_currency}",
            ledger_path=settings.storage.ledger_path,
            limits_enabled=settings.limits.enabled,
        )
        return service

    # ── Reads ─────────────────────────────────────────────────

    def list_orders(self, actor: Actor, archived: bool = False) -> list[AnyOrder]:
        return self.visibility.list_orders(OrderView(actor.role, actor.actor_id, archived))

    def order_counts(self, actor: Actor) -> dict[OrderStatus, int]:
        return self.visibility.counts(OrderView(actor.role, actor.actor_id))

    def get_order(self, order_id: str, actor: Actor) -> AnyOrder:
        return self.engine.get_order(order_id, actor)

    def get_report(
        self, order_id: str, actor: Actor, item_id: str | None = None
    ) -> AgentReport | None:
        return self.engine.get_report(order_id, actor, item_id)

    def requester_amount(self, order_id: str, actor: Actor) -> int | None:
        return self.engine.requester_amount_of(self.engine.get_order(order_id, actor))

    def reward_balance(self, agent_id: str) -> Decimal:
        return self.rewards.balance(agent_id)

    # ── Rewards ───────────────────────────────────────────────

    def request_reward(self, actor: Actor) -> RewardRequest:
        request = self.rewards.create_request(actor)
        self._reward_event(EventType.REWARD_REQUESTED, request, actor)
        return request

    def approve_reward(self, request_id: str, actor: Actor) -> RewardRequest:
        request = self.rewards.approve(request_id, actor)
        self._reward_event(EventType.REWARD_APPROVED, request, actor)
        return request

    def reject_reward(self, request_id: str, actor: Actor) -> RewardRequest:
        request = self.rewards.reject(request_id, actor)
        self._reward_event(
            EventType.REWARD_REJECTED,
            request,
            actor,
            balance=self.rewards.balance(request.agent_id),
        )
        return request

    def reward_requests(
        self, agent_id: str | None = None, status: RewardStatus | None = None
    ) -> list[RewardRequest]:
        return self.rewards.list_requests(agent_id, status)

    def refresh_metrics(self) -> None:
        if self.metrics is not None:
            self.metrics.update_state(self.store, self.rewards)

    def _refresh_on_event(self, event: Event) -> None:
        self.refresh_metrics()

    def _reward_event(
        self, event_type: EventType, request: RewardRequest, actor: Actor, **extra: Any
    ) -> None:
        publish_after_commit(
            self.event_bus,
            event_type,
            {
                "request_id": request.request_id,
                "agent_id": request.agent_id,
                "amount": request.amount,
                "status": request.status,
                **extra,
            },
            {"actor_role": actor.role, "actor_id": actor.actor_id},
            metrics=self.metrics,
        )
