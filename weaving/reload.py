"""Reload broadcasting for the Weaving dev server.

A finished rebuild publishes one ``ReloadEvent``. Every connected browser
holds a ``Subscription`` that yields the events published after it joined,
in order. Publishing never blocks: events go into a bounded log and
subscribers are woken through an ``asyncio.Event`` that is swapped for a
fresh one on every publish.

All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 16


@dataclass(frozen=True)
class ReloadEvent:
    sequence: int


class Subscription:
    """Async iterator over reload events published after subscribing.

    Attributes:
        cursor: Sequence number of the last event delivered.
    """

    def __init__(self, broadcaster: ReloadBroadcaster):
        self._broadcaster = broadcaster
        self.cursor = broadcaster.sequence

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ReloadEvent:
        while True:
            event = self._broadcaster._next_after(self.cursor)
            if event is not None:
                self.cursor = event.sequence
                return event
            await self._broadcaster._changed.wait()


class ReloadBroadcaster:
    """Multi-subscriber broadcast channel of reload events.

    Attributes:
        sequence: Sequence number of the most recent event (0 before any).
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._log: deque[ReloadEvent] = deque(maxlen=capacity)
        self._changed = asyncio.Event()
        self._subscribers: set[Subscription] = set()
        self.sequence = 0

    def publish(self) -> ReloadEvent:
        """Record a new event and wake every subscriber."""
        self.sequence += 1
        event = ReloadEvent(self.sequence)
        self._log.append(event)
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        logger.debug("Published reload %d to %d clients", event.sequence, len(self))
        return event

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[Subscription]:
        """Register a subscriber for the duration of the ``async with`` block."""
        subscription = Subscription(self)
        self._subscribers.add(subscription)
        try:
            yield subscription
        finally:
            self._subscribers.discard(subscription)

    def _next_after(self, cursor: int) -> ReloadEvent | None:
        # Lagging subscribers skip to the oldest retained event.
        for event in self._log:
            if event.sequence > cursor:
                return event
        return None

    def __len__(self) -> int:
        return len(self._subscribers)
