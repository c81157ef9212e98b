"""Console logger for key ledger events."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from agentbuy.ledger.events import Event, EventType


class EventConsoleLogger:
    """Emit selected ledger events to stdout via structlog.

    This is the notification seam: an admin watching the console sees new
    orders, submitted quotes, requester payment confirmations and reward
    requests as they happen.
    """

    def __init__(self, include: Iterable[EventType] | None = None) -> None:
        self.include = set(
            include
            or {
                EventType.ORDER_CREATED,
                EventType.ORDER_CLAIMED,
                EventType.REPORT_SUBMITTED,
                EventType.REPORT_EDITED,
                EventType.PAYMENT_CONFIRMED,
                EventType.ORDER_COMPLETED,
                EventType.ORDER_CANCELLED,
                EventType.BUNDLE_ITEM_REMOVED,
                EventType.REWARD_REQUESTED,
                EventType.HANDLER_FAILED,
            }
        )
        self.log = structlog.get_logger("ledger_events")

    def handle_event(self, event: Event) -> None:
        if event.event_type not in self.include:
            return
        self.log.info(
            "ledger_event",
            event_type=event.event_type.value,
            sequence_num=event.sequence_num,
            order_id=event.payload.get("order_id"),
            payload=event.payload,
            metadata=event.metadata,
        )
