"""Typed lifecycle events and the in-process bus that fans them out."""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

LOGGER = logging.getLogger("smartdump.triage.events")

SCAN_SUMMARY = "scan-summary"
SCAN_UNREADABLE = "scan-unreadable"
FILE_PROCESSING = "file-processing"
FILE_SKIPPED = "file-skipped"
FILE_PROPOSED = "file-proposed"
FILE_FAILED = "file-failed"

EVENT_KINDS = (
    SCAN_SUMMARY,
    SCAN_UNREADABLE,
    FILE_PROCESSING,
    FILE_SKIPPED,
    FILE_PROPOSED,
    FILE_FAILED,
)


def _now_utc() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(slots=True)
class TriageEvent:
    """Single lifecycle notification."""

    seq: int
    ts_utc: str
    kind: str
    payload: Any

    def to_json(self) -> Dict[str, Any]:
        payload = self.payload
        if hasattr(payload, "to_json"):
            payload = payload.to_json()
        return {"seq": self.seq, "ts_utc": self.ts_utc, "kind": self.kind, "payload": payload}


class NotificationSink(Protocol):
    def publish(self, kind: str, payload: Any) -> None:
        ...


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    def __init__(self, bus: "EventBus", subscriber_id: int, maxsize: int) -> None:
        self._bus = bus
        self.id = subscriber_id
        self.queue: "queue.Queue[TriageEvent]" = queue.Queue(maxsize=maxsize)

    def get(self, timeout: Optional[float] = None) -> Optional[TriageEvent]:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    @property
    def active(self) -> bool:
        """False once closed or dropped by the bus after a queue overflow."""

        return self._bus.has_subscriber(self.id)

    def close(self) -> None:
        self._bus.unsubscribe(self.id)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


class EventBus:
    """Multi-producer bus; each subscriber sees events in publish order."""

    def __init__(self, *, queue_size: int = 1024) -> None:
        self._queue_size = max(1, int(queue_size))
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Subscription] = {}
        self._next_id = 1
        self._seq = 0

    def publish(self, kind: str, payload: Any) -> TriageEvent:
        if kind not in EVENT_KINDS:
            raise ValueError(f"unknown event kind: {kind}")
        with self._lock:
            self._seq += 1
            event = TriageEvent(seq=self._seq, ts_utc=_now_utc(), kind=kind, payload=payload)
            dead: List[int] = []
            for subscriber_id, subscription in self._subscribers.items():
                try:
                    subscription.queue.put_nowait(event)
                except queue.Full:
                    LOGGER.warning("triage events: subscriber %s queue overflow; dropping subscriber", subscriber_id)
                    dead.append(subscriber_id)
            for subscriber_id in dead:
                self._subscribers.pop(subscriber_id, None)
        LOGGER.debug("triage events: %s #%s", kind, event.seq)
        return event

    def subscribe(self) -> Subscription:
        with self._lock:
            subscription = Subscription(self, self._next_id, self._queue_size)
            self._subscribers[subscription.id] = subscription
            self._next_id += 1
        LOGGER.debug("triage events: subscriber %s registered", subscription.id)
        return subscription

    def unsubscribe(self, subscriber_id: int) -> None:
        with self._lock:
            self._subscribers.pop(subscriber_id, None)

    def has_subscriber(self, subscriber_id: int) -> bool:
        with self._lock:
            return subscriber_id in self._subscribers

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


@dataclass(slots=True)
class RecordingSink:
    """Sink that keeps every event in memory; used by tests and one-shot runs."""

    events: List[TriageEvent] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def publish(self, kind: str, payload: Any) -> None:
        with self._lock:
            self.events.append(TriageEvent(len(self.events) + 1, _now_utc(), kind, payload))

    def kinds(self) -> List[str]:
        with self._lock:
            return [event.kind for event in self.events]

    def of_kind(self, kind: str) -> List[Any]:
        with self._lock:
            return [event.payload for event in self.events if event.kind == kind]

    def for_file(self, name: str) -> List[str]:
        """Lifecycle kinds observed for one file name, in order."""

        sequence: List[str] = []
        with self._lock:
            for event in self.events:
                payload = event.payload
                if isinstance(payload, str):
                    subject = payload
                else:
                    subject = getattr(payload, "id", None) or getattr(payload, "name", None)
                if subject == name:
                    sequence.append(event.kind)
        return sequence


__all__ = [
    "EVENT_KINDS",
    "EventBus",
    "FILE_FAILED",
    "FILE_PROCESSING",
    "FILE_PROPOSED",
    "FILE_SKIPPED",
    "NotificationSink",
    "RecordingSink",
    "SCAN_SUMMARY",
    "SCAN_UNREADABLE",
    "Subscription",
    "TriageEvent",
]
