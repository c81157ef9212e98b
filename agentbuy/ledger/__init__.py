"""Domain event ledger and bus."""

from agentbuy.ledger.bus import EventBus, publish_after_commit
from agentbuy.ledger.events import Event, EventType
from agentbuy.ledger.store import EventLedger

__all__ = ["Event", "EventType", "EventLedger", "EventBus", "publish_after_commit"]
