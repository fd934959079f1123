"""
In-Memory Change Feed

Single-process fan-out used in development and tests. Each listener
owns an asyncio.Queue; publish() puts the event on every queue
registered for the event's table.
"""

import asyncio
import logging
from collections import defaultdict

from tableside.services.realtime.base import (
    BaseChangeFeed,
    ChangeEvent,
    ChangeListener,
)

logger = logging.getLogger(__name__)


class InMemoryListener(ChangeListener):

    def __init__(self, feed: "InMemoryChangeFeed", table: str):
        self._feed = feed
        self.table = table
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self.closed = False

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._detach(self)


class InMemoryChangeFeed(BaseChangeFeed):
    """Change feed for a single process."""

    def __init__(self):
        self._listeners: dict[str, set[InMemoryListener]] = defaultdict(set)
        logger.info("InMemoryChangeFeed initialized")

    @property
    def provider_name(self) -> str:
        return "memory"

    def listener_count(self, table: str) -> int:
        return len(self._listeners.get(table, ()))

    async def publish(self, event: ChangeEvent) -> None:
        listeners = list(self._listeners.get(event.table, ()))
        for listener in listeners:
            listener.queue.put_nowait(event)
        logger.debug(
            f"Published {event.event_type.value} {event.table}#{event.record_id} "
            f"to {len(listeners)} listener(s)"
        )

    async def listen(self, table: str) -> ChangeListener:
        listener = InMemoryListener(self, table)
        self._listeners[table].add(listener)
        return listener

    def _detach(self, listener: InMemoryListener) -> None:
        self._listeners[listener.table].discard(listener)

    async def health_check(self) -> bool:
        """In-process feed is always healthy."""
        return True
