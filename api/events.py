"""Asynchronous helpers for streaming triage lifecycle events to clients."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import AsyncIterator, Dict, Optional

from triage.events import EventBus, TriageEvent

LOGGER = logging.getLogger("smartdump.api.events")


class TriageEventBroker:
    """Bridge the thread-side :class:`EventBus` to async subscribers.

    Each subscriber owns one bus subscription; events are pulled from its
    queue on a worker thread so the event loop never blocks. ``None`` is
    yielded whenever ``poll_interval`` elapses without an event, which lets
    transports notice disconnected clients.
    """

    def __init__(self, bus: EventBus, *, poll_interval: float = 1.0) -> None:
        self._bus = bus
        self._poll_interval = max(0.05, float(poll_interval))
        self._lock = threading.Lock()
        self._clients: Dict[str, int] = {"sse": 0, "ws": 0}

    @property
    def bus(self) -> EventBus:
        return self._bus

    def client_count(self, transport: str) -> int:
        with self._lock:
            return self._clients.get(transport, 0)

    async def subscribe(self, transport: str = "sse") -> AsyncIterator[Optional[TriageEvent]]:
        """Yield events for a subscriber until cancellation or overflow."""

        subscription = self._bus.subscribe()
        self._adjust(transport, 1)
        LOGGER.debug("triage events: %s subscriber %s registered", transport, subscription.id)
        try:
            while True:
                event = await asyncio.to_thread(subscription.get, self._poll_interval)
                if event is None and not subscription.active:
                    LOGGER.warning("triage events: subscriber %s was dropped after overflow", subscription.id)
                    return
                yield event
        finally:
            subscription.close()
            self._adjust(transport, -1)
            LOGGER.debug("triage events: %s subscriber %s disconnected", transport, subscription.id)

    def _adjust(self, transport: str, delta: int) -> None:
        with self._lock:
            self._clients[transport] = max(0, self._clients.get(transport, 0) + delta)


__all__ = ["TriageEventBroker"]
