"""Append-only domain event ledger."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Iterable

import orjson

from agentbuy.ledger.events import Event, EventType, new_event


class EventLedger:
    """Append-only event store with sequence tracking.

    With a ``ledger_path`` events go to ``events.jsonl`` under that directory;
    without one they are kept in memory only.
    """

    def __init__(self, ledger_path: str | Path | None = None) -> None:
        self._lock = threading.Lock()
        self._memory: list[Event] = []
        self.ledger_path = Path(ledger_path) if ledger_path is not None else None
        if self.ledger_path is not None:
            self.ledger_path.mkdir(parents=True, exist_ok=True)
            self.events_file: Path | None = self.ledger_path / "events.jsonl"
            self.sequence_file: Path | None = self.ledger_path / "sequence.txt"
        else:
            self.events_file = None
            self.sequence_file = None
        self._sequence = self._load_sequence()

    @property
    def persistent(self) -> bool:
        return self.events_file is not None

    def _load_sequence(self) -> int:
        if self.sequence_file is None or self.events_file is None:
            return 0
        if self.sequence_file.exists():
            try:
                seq = int(self.sequence_file.read_text().strip())
            except ValueError:
                seq = 0
            # sequence.txt can lag the log if a write was interrupted; trust the higher value.
            if self.events_file.exists():
                seq = max(seq, self._read_last_sequence())
            return seq
        if not self.events_file.exists():
            return 0
        return self._read_last_sequence()

    def _read_last_sequence(self) -> int:
        if self.events_file is None:
            return 0
        try:
            with open(self.events_file, "rb") as handle:
                handle.seek(0, os.SEEK_END)
                size = handle.tell()
                if size == 0:
                    return 0
                offset = min(size, 4096)
                handle.seek(-offset, os.SEEK_END)
                chunk = handle.read(offset)
            lines = chunk.splitlines()
            if not lines:
                return 0
            last = orjson.loads(lines[-1])
            return int(last.get("sequence_num", 0))
        except OSError:
            return 0

    def _next_sequence(self) -> int:
        self._sequence += 1
        if self.sequence_file is not None:
            self.sequence_file.write_text(str(self._sequence))
        return self._sequence

    def last_sequence(self) -> int:
        """Return the last known sequence number."""
        return self._sequence

    def append(
        self,
        event_type: EventType,
        payload: dict,
        metadata: dict | None = None,
    ) -> Event:
        """Create and append a new event, then return it."""
        with self._lock:
            event = new_event(event_type, payload, self._next_sequence(), metadata)
            self._write(event)
        return event

    def append_event(self, event: Event) -> None:
        """Append an existing event to the ledger."""
        with self._lock:
            self._sequence = max(self._sequence, event.sequence_num)
            self._write(event)

    def _write(self, event: Event) -> None:
        if self.events_file is None:
            self._memory.append(event)
            return
        with open(self.events_file, "ab") as handle:
            handle.write(orjson.dumps(event.to_dict()) + b"\n")

    def iter_events(self) -> Iterable[Event]:
        """Iterate all events from the ledger."""
        if self.events_file is None:
            return iter(list(self._memory))
        if not self.events_file.exists():
            return iter(())
        events_file = self.events_file

        def _iter() -> Iterable[Event]:
            with open(events_file, "rb") as handle:
                for line in handle:
                    if not line.strip():
                        continue
                    yield Event.from_dict(orjson.loads(line))

        return _iter()

    def events_for_order(self, order_id: str) -> list[Event]:
        """Every event whose payload names the given order, in sequence order."""
        return [e for e in self.iter_events() if e.payload.get("order_id") == order_id]

    def load_all(self) -> list[Event]:
        """Load all events into memory."""
        return list(self.iter_events())
