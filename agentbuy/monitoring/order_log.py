"""Order CSV logger."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any

from agentbuy.ledger.events import Event, EventType


class OrderLogger:
    """Append order lifecycle events to a CSV file, one row per event."""

    _SUPPORTED = {
        EventType.ORDER_CREATED,
        EventType.ORDER_CLAIMED,
        EventType.REPORT_SUBMITTED,
        EventType.REPORT_EDITED,
        EventType.PAYMENT_CONFIRMED,
        EventType.PAYMENT_VERIFIED,
        EventType.ORDER_COMPLETED,
        EventType.ORDER_CANCELLED,
        EventType.TRACK_CODE_ASSIGNED,
        EventType.AGENT_PAYMENT_CREDITED,
        EventType.BUNDLE_ITEM_REMOVED,
    }

    def __init__(self, log_path: str) -> None:
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_header()

    def handle_event(self, event: Event) -> None:
        if event.event_type not in self._SUPPORTED:
            return
        payload = event.payload
        metadata = event.metadata or {}
        self._append_row(
            {
                "timestamp": event.timestamp.isoformat(),
                "event_type": event.event_type.value,
                "order_id": payload.get("order_id", ""),
                "bundle": payload.get("bundle", ""),
                "status": payload.get("status", ""),
                "actor_role": metadata.get("actor_role", ""),
                "actor_id": metadata.get("actor_id", ""),
                "item_id": payload.get("item_id") or "",
                "user_amount": payload.get("user_amount", payload.get("new_amount", "")),
                "requester_amount": payload.get("requester_amount", ""),
                "points": payload.get("points", ""),
                "track_code": payload.get("track_code", ""),
                "reason": payload.get("reason") or "",
            }
        )

    def _ensure_header(self) -> None:
        if self.log_path.exists():
            return
        with open(self.log_path, "w", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fieldnames())
            writer.writeheader()

    def _append_row(self, row: dict[str, Any]) -> None:
        with open(self.log_path, "a", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fieldnames())
            writer.writerow(row)

    @staticmethod
    def _fieldnames() -> list[str]:
        return [
            "timestamp",
            "event_type",
            "order_id",
            "bundle",
            "status",
            "actor_role",
            "actor_id",
            "item_id",
            "user_amount",
            "requester_amount",
            "points",
            "track_code",
            "reason",
        ]
