"""Domain event definitions and serialization helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4


class EventType(str, Enum):
    """All supported domain event types."""

    ORDER_CREATED = "OrderCreated"
    ORDER_CLAIMED = "OrderClaimed"
    REPORT_SUBMITTED = "ReportSubmitted"
    REPORT_EDITED = "ReportEdited"
    PAYMENT_CONFIRMED = "PaymentConfirmed"
    PAYMENT_VERIFIED = "PaymentVerified"
    ORDER_COMPLETED = "OrderCompleted"
    ORDER_CANCELLED = "OrderCancelled"
    TRACK_CODE_ASSIGNED = "TrackCodeAssigned"
    AGENT_PAYMENT_CREDITED = "AgentPaymentCredited"
    BUNDLE_ITEM_REMOVED = "BundleItemRemoved"
    ORDER_ARCHIVED = "OrderArchived"
    REWARD_REQUESTED = "RewardRequested"
    REWARD_APPROVED = "RewardApproved"
    REWARD_REJECTED = "RewardRejected"
    HANDLER_FAILED = "HandlerFailed"


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """Format timestamp as ISO-8601 with Z suffix."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_payload(value: Any) -> Any:
    """Convert Decimals, enums and datetimes so a payload serializes as JSON."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, dict):
        return {str(k): to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_payload(v) for v in value]
    return value


@dataclass(frozen=True)
class Event:
    """Immutable domain event."""

    event_id: str
    event_type: EventType
    timestamp: datetime
    sequence_num: int
    payload: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to a JSON-compatible dict."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": format_timestamp(self.timestamp),
            "sequence_num": self.sequence_num,
            "payload": self.payload,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        """Deserialize event from a dict."""
        ts = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
        return cls(
            event_id=data["event_id"],
            event_type=EventType(data["event_type"]),
            timestamp=ts,
            sequence_num=int(data["sequence_num"]),
            payload=data.get("payload", {}),
            metadata=data.get("metadata", {}),
        )


def new_event(
    event_type: EventType,
    payload: dict[str, Any],
    sequence_num: int,
    metadata: dict[str, Any] | None = None,
) -> Event:
    """Create a new event with a fresh UUID."""
    return Event(
        event_id=str(uuid4()),
        event_type=event_type,
        timestamp=utc_now(),
        sequence_num=sequence_num,
        payload=to_payload(payload),
        metadata=to_payload(metadata or {}),
    )
