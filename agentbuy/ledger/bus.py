"""Event bus that appends to the ledger before dispatching."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable

import structlog

from agentbuy.ledger.events import Event, EventType
from agentbuy.ledger.store import EventLedger

if TYPE_CHECKING:
    from agentbuy.monitoring.metrics import Metrics

EventHandler = Callable[[Event], None]

_log = structlog.get_logger(__name__)


class EventBus:
    """Publish events to the ledger and notify subscribers.

    Subscribers run after the state change they describe has been stored. A
    failing subscriber is logged and recorded as ``HandlerFailed``; it never
    reaches the publisher, so notification trouble cannot undo a transition.
    """

    def __init__(self, ledger: EventLedger) -> None:
        self._ledger = ledger
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)
        self._log = structlog.get_logger(__name__)

    @property
    def ledger(self) -> EventLedger:
        return self._ledger

    def register(self, event_type: EventType, handler: EventHandler) -> None:
        """Register a handler for a specific event type."""
        self._handlers[event_type].append(handler)

    def register_all(self, handler: EventHandler) -> None:
        for event_type in EventType:
            self.register(event_type, handler)

    def publish(
        self,
        event_type: EventType,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> Event:
        """Append the event and dispatch to handlers."""
        event = self._ledger.append(event_type, payload, metadata)
        self._dispatch(event)
        return event

    def _dispatch(self, event: Event) -> None:
        handlers = self._handlers.get(event.event_type, [])
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                handler_name = getattr(handler, "__name__", repr(handler))
                self._log.exception(
                    "event_handler_failed",
                    event_id=event.event_id,
                    event_type=event.event_type.value,
                    handler=handler_name,
                )
                if event.event_type != EventType.HANDLER_FAILED:
                    try:
                        self.publish(
                            EventType.HANDLER_FAILED,
                            {
                                "event_id": event.event_id,
                                "event_type": event.event_type.value,
                                "handler": handler_name,
                            },
                            {"source": "event_bus"},
                        )
                    except Exception:
                        self._log.exception(
                            "handler_failure_publish_failed",
                            event_id=event.event_id,
                            event_type=event.event_type.value,
                        )


def publish_after_commit(
    event_bus: EventBus,
    event_type: EventType,
    payload: dict[str, Any],
    metadata: dict[str, Any] | None = None,
    metrics: Metrics | None = None,
) -> Event | None:
    """Publish for a state change that is already stored.

    A ledger write failure is logged and counted instead of raised: the caller's
    operation has happened and must be reported as such.
    """
    try:
        return event_bus.publish(event_type, payload, metadata)
    except Exception:
        _log.exception(
            "event_publish_failed",
            event_type=event_type.value,
            order_id=payload.get("order_id"),
            request_id=payload.get("request_id"),
        )
        if metrics is not None:
            metrics.event_publish_failures_total.labels(event_type=event_type.value).inc()
        return None
