"""Screen registry — one live list controller per (collection, user) pair."""

import asyncio
import logging
import time
from collections.abc import Callable

from jewellery_crm.application.interfaces import ChangeFeed, RecordStore
from jewellery_crm.application.services.collection_catalog import CollectionCatalog
from jewellery_crm.application.services.live_list_controller import LiveListController
from jewellery_crm.application.services.mutation_dispatcher import MutationDispatcher
from jewellery_crm.domain.entities import UserContext

logger = logging.getLogger(__name__)

ScreenKey = tuple[str, UserContext | None]


def screen_key(collection: str, user: UserContext | None) -> ScreenKey:
    # The whole identity is part of the key: same id with another store is another screen.
    return (collection, user)


class ScreenRegistry:
    """Keeps the controllers of open screens alive between requests.

    The first request for a (collection, user) pair builds and starts a
    controller, which subscribes to the change feed and stays current from
    then on. Later requests read the controller's records without another
    fetch.

    A screen is released by ``close`` (the client unmounted it) or, when
    ``idle_timeout`` is positive, once no request has touched it for that
    many seconds. Idle screens are swept on every ``get_or_start``.
    """

    def __init__(
        self,
        catalog: CollectionCatalog,
        store: RecordStore,
        change_feed: ChangeFeed | None = None,
        *,
        narrow_remote_fetch: bool = False,
        idle_timeout: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._catalog = catalog
        self._store = store
        self._change_feed = change_feed
        self._narrow_remote_fetch = narrow_remote_fetch
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._screens: dict[ScreenKey, LiveListController] = {}
        self._last_used: dict[ScreenKey, float] = {}
        self._lock = asyncio.Lock()

    async def get_or_start(self, collection: str, user: UserContext | None) -> LiveListController:
        """Return the running controller for this screen, starting it on first use.

        Raises EntityNotFoundError for a collection the catalog does not know.
        """
        spec = self._catalog.get(collection)
        key = screen_key(spec.name, user)
        async with self._lock:
            self._last_used[key] = self._clock()
            expired = self._pop_idle()
            controller = self._screens.get(key)
            started = controller is None
            if started:
                controller = LiveListController(
                    spec,
                    self._store,
                    user,
                    change_feed=self._change_feed,
                    narrow_remote_fetch=self._narrow_remote_fetch,
                )
                self._screens[key] = controller

        for idle in expired:
            await idle.close()
        if expired:
            logger.info("Closed %d idle live list screen(s)", len(expired))

        if started:
            logger.info("Opened %s screen for user %s", spec.name, user.id if user else "<anonymous>")
            await controller.start()
        return controller

    async def dispatcher(self, collection: str, user: UserContext | None) -> MutationDispatcher:
        controller = await self.get_or_start(collection, user)
        return MutationDispatcher(self._store, controller)

    async def close(self, collection: str, user: UserContext | None) -> bool:
        """Release one screen. Returns False when it was not open.

        Raises EntityNotFoundError for a collection the catalog does not know.
        """
        key = screen_key(self._catalog.get(collection).name, user)
        controller = self._screens.pop(key, None)
        self._last_used.pop(key, None)
        if controller is None:
            return False
        await controller.close()
        return True

    async def evict_idle(self) -> int:
        async with self._lock:
            expired = self._pop_idle()
        for controller in expired:
            await controller.close()
        return len(expired)

    async def close_all(self) -> None:
        screens = list(self._screens.values())
        self._screens.clear()
        self._last_used.clear()
        for controller in screens:
            await controller.close()
        if screens:
            logger.info("Closed %d live list screen(s)", len(screens))

    def _pop_idle(self) -> list[LiveListController]:
        if self._idle_timeout <= 0:
            return []
        cutoff = self._clock() - self._idle_timeout
        stale = [key for key, used in self._last_used.items() if used < cutoff]
        expired = []
        for key in stale:
            del self._last_used[key]
            controller = self._screens.pop(key, None)
            if controller is not None:
                expired.append(controller)
        return expired

    def __len__(self) -> int:
        return len(self._screens)
