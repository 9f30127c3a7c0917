"""Change hub — in-process, topic-per-table broadcaster for realtime change events."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from jewellery_crm.application.interfaces import ChangeFeed
from jewellery_crm.domain.entities import ChangeEvent

logger = logging.getLogger(__name__)

# Subscribers on this topic receive events for every table.
ALL_TABLES = "*"

_MAX_QUEUE_SIZE = 256


class ChangeHub(ChangeFeed):
    """Fan-out of change events to per-subscriber queues.

    Each subscriber gets its own asyncio.Queue registered under a table name
    (or ``*`` for every table). Publishing pushes the event into every
    matching queue. A subscriber whose queue is full is disconnected rather
    than allowed to block the publisher.
    """

    def __init__(self, max_queue_size: int = _MAX_QUEUE_SIZE) -> None:
        self._topics: dict[str, list[asyncio.Queue[ChangeEvent | None]]] = {}
        self._max_queue_size = max_queue_size

    async def subscribe(self, table: str) -> AsyncGenerator[ChangeEvent, None]:
        """Yield change events for ``table``; unsubscribes when the generator closes."""
        queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(self._max_queue_size)
        self._topics.setdefault(table, []).append(queue)
        logger.debug("Subscribed to '%s' (%d subscribers)", table, self.subscriber_count(table))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            self._remove(table, queue)

    async def stream_sse(self, table: str = ALL_TABLES) -> AsyncGenerator[str, None]:
        """Same events as ``subscribe``, formatted as Server-Sent Events."""
        subscription = self.subscribe(table)
        try:
            async for event in subscription:
                payload = json.dumps({"event": event.event.value, "table": event.table})
                yield f"event: change\ndata: {payload}\n\n"
        finally:
            await subscription.aclose()

    async def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to the table's subscribers and wildcard subscribers.

        Returns the number of queues the event was delivered to.
        """
        targets = list(self._topics.get(event.table, []))
        if event.table != ALL_TABLES:
            targets += self._topics.get(ALL_TABLES, [])

        delivered = 0
        for queue in targets:
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Change subscriber queue full on '%s' — disconnecting", event.table)
                self._disconnect(queue)
        return delivered

    async def shutdown(self) -> None:
        """Disconnect every subscriber."""
        for queues in self._topics.values():
            for queue in queues:
                self._close_queue(queue)
        self._topics.clear()

    def subscriber_count(self, table: str | None = None) -> int:
        if table is None:
            return sum(len(queues) for queues in self._topics.values())
        return len(self._topics.get(table, []))

    def _disconnect(self, queue: asyncio.Queue[ChangeEvent | None]) -> None:
        for table, queues in list(self._topics.items()):
            if queue in queues:
                self._remove(table, queue)
        self._close_queue(queue)

    @staticmethod
    def _close_queue(queue: asyncio.Queue[ChangeEvent | None]) -> None:
        # A full queue cannot take the sentinel; drop one pending event to make room.
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(None)

    def _remove(self, table: str, queue: asyncio.Queue[ChangeEvent | None]) -> None:
        queues = self._topics.get(table)
        if queues and queue in queues:
            queues.remove(queue)
            if not queues:
                del self._topics[table]
