"""Change relay — asyncio daemon that pipes the remote change stream into the hub."""

import asyncio
import logging

from jewellery_crm.application.interfaces import ChangeFeed
from jewellery_crm.application.services.change_hub import ALL_TABLES, ChangeHub

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 5.0


class ChangeRelay:
    """Keeps one subscription to a remote change feed open and republishes into a ChangeHub.

    Runs as an asyncio.Task inside FastAPI's lifespan. When the remote stream
    ends or errors, the relay waits ``reconnect_delay`` seconds and
    reconnects until stopped.
    """

    def __init__(
        self,
        source: ChangeFeed,
        hub: ChangeHub,
        *,
        table: str = ALL_TABLES,
        reconnect_delay: float = RECONNECT_DELAY,
    ) -> None:
        self._source = source
        self._hub = hub
        self._table = table
        self._reconnect_delay = reconnect_delay
        self._running = False
        self._task: asyncio.Task | None = None
        self.relayed = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the relay loop."""
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("ChangeRelay started for '%s'", self._table)

    async def stop(self) -> None:
        """Stop the relay loop and close the remote stream."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("ChangeRelay stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self._pump()
                logger.info("Change stream closed by server — reconnecting")
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.warning(
                    "Change stream failed: %s — retrying in %.1fs", exc, self._reconnect_delay
                )

            await asyncio.sleep(self._reconnect_delay)

    async def _pump(self) -> None:
        subscription = self._source.subscribe(self._table)
        try:
            async for event in subscription:
                delivered = await self._hub.publish(event)
                self.relayed += 1
                logger.debug(
                    "Relayed %s on '%s' to %d subscriber(s)",
                    event.event.value, event.table, delivered,
                )
        finally:
            await subscription.aclose()
