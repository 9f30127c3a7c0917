"""Live list controller — owns one screen's records and keeps them in sync with the remote store."""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from jewellery_crm.application.interfaces import ChangeFeed, RecordStore
from jewellery_crm.application.services.list_aggregates import (
    TimeWindow,
    count_by_status,
    count_in_window,
    count_upcoming,
    group_by,
    search,
    sum_field,
)
from jewellery_crm.application.services.record_fetcher import RecordFetcher
from jewellery_crm.application.services.scope_resolver import (
    describe_scope,
    resolve_scope,
    scope_query_params,
)
from jewellery_crm.domain.entities import (
    CollectionSpec,
    ListState,
    LiveListSnapshot,
    Record,
    UserContext,
)
from jewellery_crm.infrastructure.logging.colored_logger import RefreshLogger, RefreshStage

logger = logging.getLogger(__name__)

plog = RefreshLogger("LiveListController")

_RESUBSCRIBE_DELAY = 1.0


class LiveListController:
    """Holds the canonical records of one collection for one user's screen.

    The record list is a disposable cache: every trigger (start, filter
    change, realtime change event, successful mutation, manual retry)
    replaces it wholesale with a fresh fetch. Nothing is patched in place.

    Fetches may overlap. Each one is stamped with a generation number and
    only the response of the most recently issued fetch is applied, so a
    slow stale response can never overwrite a fresher one.

    State is ``LOADING`` while any fetch is in flight, otherwise ``READY``
    or ``FAILED`` according to the last applied fetch. ``FAILED`` carries
    an empty record list plus the failure reason.

    Change events only mark the list dirty; a single refresh loop consumes
    the mark, so a burst arriving during a slow fetch costs one extra fetch.
    If the change feed ends the subscription (e.g. the hub dropped a slow
    subscriber) the listener subscribes again and schedules a refresh for
    whatever it missed.
    """

    def __init__(
        self,
        spec: CollectionSpec,
        store: RecordStore,
        user: UserContext | None,
        *,
        change_feed: ChangeFeed | None = None,
        fetcher: RecordFetcher | None = None,
        filters: Mapping[str, Any] | None = None,
        narrow_remote_fetch: bool = False,
        resubscribe_delay: float = _RESUBSCRIBE_DELAY,
    ):
        self._spec = spec
        self._user = user
        self._change_feed = change_feed
        self._fetcher = fetcher or RecordFetcher(store, spec)
        self._filters: dict[str, Any] = {k: v for k, v in (filters or {}).items() if v is not None}
        self._narrow_remote_fetch = narrow_remote_fetch
        self._resubscribe_delay = resubscribe_delay

        self._records: list[Record] = []
        self._settled_state = ListState.IDLE
        self._error: str | None = None
        self._issued_generation = 0
        self._applied_generation = 0
        self._in_flight = 0
        self._listener: asyncio.Task | None = None
        self._refresher: asyncio.Task | None = None
        self._dirty = asyncio.Event()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> LiveListSnapshot:
        """Open the realtime subscription (if any) and run the initial fetch."""
        if self._change_feed is not None and self._listener is None:
            self._listener = asyncio.create_task(self._listen())
            self._refresher = asyncio.create_task(self._refresh_when_dirty())
            # One loop step registers the subscription before the initial fetch.
            await asyncio.sleep(0)
        return await self.refresh()

    async def close(self) -> None:
        """Tear down the realtime subscription and the change-driven refresh loop."""
        for task in (self._listener, self._refresher):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._listener = None
        self._refresher = None
        self._dirty.clear()

    @property
    def subscribed(self) -> bool:
        return self._listener is not None and not self._listener.done()

    # ── Triggers ─────────────────────────────────────────────────────

    async def refresh(self) -> LiveListSnapshot:
        """Re-fetch the whole collection and replace the canonical records."""
        self._issued_generation += 1
        generation = self._issued_generation
        self._in_flight += 1
        try:
            outcome = await self._fetcher.fetch(self._request_filters())
        finally:
            self._in_flight -= 1

        if generation < self._issued_generation:
            plog.detail(
                f"Discarded stale {self._spec.name} response",
                generation=generation,
                latest=self._issued_generation,
            )
            return self.snapshot()

        self._applied_generation = generation
        self._records = outcome.records
        self._error = outcome.error
        self._settled_state = ListState.FAILED if outcome.failed else ListState.READY
        plog.detail(
            f"Scoped {self._spec.name}",
            visible=len(self.records),
            total=len(self._records),
        )
        return self.snapshot()

    async def set_filters(self, **filters: Any) -> LiveListSnapshot:
        """Merge filter changes (``None`` clears a filter); re-fetch only when something changed."""
        updated = dict(self._filters)
        for key, value in filters.items():
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = value
        if updated == self._filters and self._settled_state != ListState.IDLE:
            return self.snapshot()
        self._filters = updated
        return await self.refresh()

    async def _listen(self) -> None:
        """Mark the list dirty on every change event for the collection's table, whatever the row."""
        assert self._change_feed is not None
        while True:
            subscription = self._change_feed.subscribe(self._spec.table)
            try:
                async for event in subscription:
                    plog.step_start(
                        RefreshStage.REALTIME,
                        f"Change on '{event.table}' — refreshing {self._spec.name}",
                        event=event.event.value,
                    )
                    self._dirty.set()
            except Exception:
                logger.exception("Realtime subscription for %s failed", self._spec.name)
            finally:
                await subscription.aclose()

            logger.warning(
                "Realtime subscription for %s ended — resubscribing in %.1fs",
                self._spec.name,
                self._resubscribe_delay,
            )
            # Events may have been dropped while unsubscribed.
            self._dirty.set()
            await asyncio.sleep(self._resubscribe_delay)

    async def _refresh_when_dirty(self) -> None:
        while True:
            await self._dirty.wait()
            self._dirty.clear()
            await self.refresh()

    def _request_filters(self) -> dict[str, Any]:
        if not self._narrow_remote_fetch:
            return dict(self._filters)
        return {**scope_query_params(describe_scope(self._user)), **self._filters}

    # ── Read side ────────────────────────────────────────────────────

    @property
    def spec(self) -> CollectionSpec:
        return self._spec

    @property
    def user(self) -> UserContext | None:
        return self._user

    @property
    def filters(self) -> dict[str, Any]:
        return dict(self._filters)

    @property
    def state(self) -> ListState:
        return ListState.LOADING if self._in_flight else self._settled_state

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def records(self) -> list[Record]:
        """The records this user may see, in remote order."""
        return resolve_scope(self._records, self._user)

    def find(self, record_id: str) -> Record | None:
        """Look up a record in the canonical (unscoped) list."""
        for record in self._records:
            if record.id == str(record_id):
                return record
        return None

    def snapshot(self) -> LiveListSnapshot:
        return LiveListSnapshot(
            collection=self._spec.name,
            state=self.state,
            records=self.records,
            loading=self.loading,
            error=self._error,
            generation=self._applied_generation,
        )

    # ── Aggregates (over the scoped view) ────────────────────────────

    def status_counts(self) -> dict[str, int]:
        return count_by_status(self.records, self._spec.statuses)

    def count_in_window(
        self, date_field: str, window: TimeWindow, now: datetime | None = None
    ) -> int:
        return count_in_window(self.records, date_field, window, now)

    def count_upcoming(
        self, date_field: str, status: str | None = None, now: datetime | None = None
    ) -> int:
        return count_upcoming(self.records, date_field, status, now)

    def total(self, field: str) -> float:
        return sum_field(self.records, field)

    def grouped_by_status(self) -> dict[str, list[Record]]:
        return group_by(self.records, lambda r: r.status, self._spec.statuses)

    def search(self, term: str, fields: tuple[str, ...] = ()) -> list[Record]:
        return search(self.records, term, fields or self._spec.search_fields)
