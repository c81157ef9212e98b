"""CLI to summarize the event ledger, or one order's trail through it."""

from __future__ import annotations

import argparse
from collections import Counter

from agentbuy.config.settings import load_settings
from agentbuy.ledger import Event, EventLedger, EventType


def summarize(events: list[Event]) -> dict[str, int]:
    counts = Counter(event.event_type.value for event in events)
    return dict(sorted(counts.items()))


def report_trail(events: list[Event]) -> list[str]:
    """Readable lines for every quote the requester was shown, oldest first."""
    lines = []
    for event in events:
        payload = event.payload
        if event.event_type == EventType.REPORT_SUBMITTED:
            lines.append(
                f"#{event.sequence_num} submitted amount={payload.get('user_amount', '-')} "
                f"requester_amount={payload.get('requester_amount', '-')}"
            )
        elif event.event_type == EventType.REPORT_EDITED:
            lines.append(
                f"#{event.sequence_num} edited {payload.get('previous_amount')} -> "
                f"{payload.get('new_amount')} reason={payload.get('reason') or '-'}"
            )
        elif event.event_type == EventType.BUNDLE_ITEM_REMOVED:
            lines.append(
                f"#{event.sequence_num} item removed {payload.get('item_id')} "
                f"requester_amount={payload.get('requester_amount', '-')}"
            )
    return lines


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Count ledger events by type, or show one order's history."
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--order", default=None, help="Order or bundle id to trace")
    args = parser.parse_args()

    settings = load_settings(args.config)
    if settings.storage.ledger_path is None:
        parser.error("storage.ledger_path is not set; nothing was persisted")
    ledger = EventLedger(settings.storage.ledger_path)

    if args.order is None:
        events = ledger.load_all()
        print(f"{len(events)} events, last sequence {ledger.last_sequence()}")
        for event_type, count in summarize(events).items():
            print(f"  {event_type:<24} {count}")
        return

    events = ledger.events_for_order(args.order)
    if not events:
        print(f"No events for {args.order}")
        return
    for event in events:
        actor = f"{event.metadata.get('actor_role', '?')}:{event.metadata.get('actor_id', '?')}"
        print(f"#{event.sequence_num} {event.event_type.value} {actor} status={event.payload.get('status')}")
    trail = report_trail(events)
    if trail:
        print("Quote history:")
        for line in trail:
            print(f"  {line}")


if __name__ == "__main__":
    main()
