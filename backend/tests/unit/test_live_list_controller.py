"""Unit tests for the LiveListController."""

import asyncio
from typing import Any

import pytest

from conftest import FakeRecordStore, wait_for
from jewellery_crm.application.services import ChangeHub, LiveListController
from jewellery_crm.application.services.list_aggregates import TimeWindow
from jewellery_crm.domain.entities import ChangeEvent, ChangeKind, ListState, UserContext
from jewellery_crm.domain.exceptions import RemoteStoreError

ADMIN = UserContext(id="admin", role="business_admin")

ORDERS = [
    {"id": 1, "status": "pending", "created_by": "u1", "total_amount": 1500},
    {"id": 2, "status": "confirmed", "created_by": "u2", "total_amount": "2500.50"},
    {"id": 3, "created_by": "u1"},
]


class GatedRecordStore(FakeRecordStore):
    """Fake store whose fetches return queued payloads, optionally held behind a gate."""

    def __init__(self):
        super().__init__()
        self.responses: list[tuple[asyncio.Event | None, Any]] = []

    async def fetch(self, endpoint, filters=None):
        self.fetch_calls.append((endpoint, dict(filters or {})))
        gate, payload = self.responses.pop(0)
        if gate is not None:
            await gate.wait()
        return payload


class SlowRecordStore(FakeRecordStore):
    """Fake store whose fetches wait while ``gate`` is cleared."""

    def __init__(self, payloads=None):
        super().__init__(payloads)
        self.gate = asyncio.Event()
        self.gate.set()

    async def fetch(self, endpoint, filters=None):
        self.fetch_calls.append((endpoint, dict(filters or {})))
        await self.gate.wait()
        return self.payloads.get(endpoint, [])


@pytest.fixture
def orders(catalog):
    return catalog.get("orders")


# ── Fetch lifecycle ──


@pytest.mark.asyncio
async def test_starts_idle_then_ready(orders):
    store = FakeRecordStore({"orders": ORDERS})
    controller = LiveListController(orders, store, ADMIN)
    assert controller.state == ListState.IDLE

    snapshot = await controller.start()

    assert snapshot.state == ListState.READY
    assert [r.id for r in snapshot.records] == ["1", "2", "3"]
    assert snapshot.records[2].status == "pending"
    assert store.fetch_count("orders") == 1
    assert controller.loading is False


@pytest.mark.asyncio
async def test_failed_fetch_is_distinguishable_from_empty(orders):
    failing = LiveListController(
        orders, FakeRecordStore({"orders": RemoteStoreError(503, "down")}), ADMIN
    )
    empty = LiveListController(orders, FakeRecordStore({"orders": []}), ADMIN)

    failed_snapshot = await failing.start()
    empty_snapshot = await empty.start()

    assert failed_snapshot.records == []
    assert failed_snapshot.state == ListState.FAILED
    assert "503" in failed_snapshot.error
    assert empty_snapshot.records == []
    assert empty_snapshot.state == ListState.READY
    assert empty_snapshot.error is None


@pytest.mark.asyncio
async def test_retry_after_failure_recovers(orders):
    store = FakeRecordStore({"orders": RuntimeError("timeout")})
    controller = LiveListController(orders, store, ADMIN)
    await controller.start()
    assert controller.state == ListState.FAILED

    store.payloads["orders"] = {"results": ORDERS}
    snapshot = await controller.refresh()

    assert snapshot.state == ListState.READY
    assert len(snapshot.records) == 3
    assert snapshot.error is None


@pytest.mark.asyncio
async def test_stale_response_is_discarded(orders):
    """A slow earlier fetch finishing last must not overwrite the newer result."""
    store = GatedRecordStore()
    gate = asyncio.Event()
    store.responses = [
        (gate, [{"id": "old", "status": "pending"}]),
        (None, [{"id": "new", "status": "confirmed"}]),
    ]
    controller = LiveListController(orders, store, ADMIN)

    slow = asyncio.create_task(controller.refresh())
    await wait_for(lambda: len(store.fetch_calls) == 1)
    assert controller.state == ListState.LOADING

    await controller.refresh()
    assert [r.id for r in controller.records] == ["new"]
    assert controller.loading is True

    gate.set()
    await slow

    assert [r.id for r in controller.records] == ["new"]
    assert controller.loading is False
    assert controller.state == ListState.READY


@pytest.mark.asyncio
async def test_records_are_scoped_but_find_sees_canonical_list(orders):
    store = FakeRecordStore({"orders": ORDERS})
    controller = LiveListController(orders, store, UserContext(id="u1", role="inhouse_sales"))
    await controller.start()

    assert [r.id for r in controller.records] == ["1", "3"]
    assert controller.find("2") is not None


@pytest.mark.asyncio
async def test_unauthenticated_screen_is_empty(orders):
    controller = LiveListController(orders, FakeRecordStore({"orders": ORDERS}), None)
    snapshot = await controller.start()
    assert snapshot.records == []
    assert snapshot.state == ListState.READY


# ── Filters ──


@pytest.mark.asyncio
async def test_filters_pass_through_and_refetch_only_on_change(orders):
    store = FakeRecordStore({"orders": ORDERS})
    controller = LiveListController(orders, store, ADMIN)
    await controller.start()

    await controller.set_filters(status="confirmed", page=2)
    await controller.set_filters(status="confirmed", page=2)
    await controller.set_filters(status="all", page=None)

    assert [filters for _, filters in store.fetch_calls] == [
        {},
        {"status": "confirmed", "page": 2},
        {},
    ]


@pytest.mark.asyncio
async def test_narrow_remote_fetch_adds_scope_params(orders):
    store = FakeRecordStore({"orders": ORDERS})
    controller = LiveListController(
        orders,
        store,
        UserContext(id="u1", role="inhouse_sales"),
        filters={"status": "pending"},
        narrow_remote_fetch=True,
    )
    await controller.start()

    assert store.fetch_calls == [("orders", {"user_id": "u1", "status": "pending"})]


# ── Realtime ──


@pytest.mark.asyncio
async def test_change_event_triggers_full_refetch(orders):
    hub = ChangeHub()
    store = FakeRecordStore({"orders": ORDERS[:1]})
    controller = LiveListController(orders, store, ADMIN, change_feed=hub)
    await controller.start()
    await wait_for(lambda: hub.subscriber_count("orders") == 1)
    assert controller.subscribed

    store.payloads["orders"] = ORDERS
    await hub.publish(ChangeEvent("orders", ChangeKind.INSERT))
    await wait_for(lambda: store.fetch_count("orders") == 2)

    assert [r.id for r in controller.records] == ["1", "2", "3"]
    await controller.close()


@pytest.mark.asyncio
async def test_other_tables_do_not_trigger_refetch(orders):
    hub = ChangeHub()
    store = FakeRecordStore({"orders": ORDERS})
    controller = LiveListController(orders, store, ADMIN, change_feed=hub)
    await controller.start()
    await wait_for(lambda: hub.subscriber_count("orders") == 1)

    delivered = await hub.publish(ChangeEvent("customers", ChangeKind.UPDATE))
    await asyncio.sleep(0.01)

    assert delivered == 0
    assert store.fetch_count("orders") == 1
    await controller.close()


@pytest.mark.asyncio
async def test_subscription_is_registered_before_start_returns(orders):
    hub = ChangeHub()
    store = FakeRecordStore({"orders": ORDERS})
    controller = LiveListController(orders, store, ADMIN, change_feed=hub)

    await controller.start()

    assert hub.subscriber_count("orders") == 1
    assert await hub.publish(ChangeEvent("orders", ChangeKind.INSERT)) == 1
    await wait_for(lambda: store.fetch_count("orders") == 2)
    await controller.close()


@pytest.mark.asyncio
async def test_burst_during_slow_fetch_costs_one_extra_fetch(orders):
    hub = ChangeHub()
    store = SlowRecordStore({"orders": ORDERS})
    controller = LiveListController(orders, store, ADMIN, change_feed=hub)
    await controller.start()

    store.gate.clear()
    await hub.publish(ChangeEvent("orders", ChangeKind.INSERT))
    await wait_for(lambda: store.fetch_count("orders") == 2)
    for _ in range(5):
        await hub.publish(ChangeEvent("orders", ChangeKind.UPDATE))
        await asyncio.sleep(0)

    store.gate.set()
    await wait_for(lambda: store.fetch_count("orders") == 3)
    await asyncio.sleep(0.01)

    assert store.fetch_count("orders") == 3
    assert controller.state == ListState.READY
    await controller.close()


@pytest.mark.asyncio
async def test_resubscribes_after_hub_drops_a_full_queue(orders):
    hub = ChangeHub(max_queue_size=2)
    store = SlowRecordStore({"orders": ORDERS})
    controller = LiveListController(
        orders, store, ADMIN, change_feed=hub, resubscribe_delay=0
    )
    await controller.start()

    store.gate.clear()
    await hub.publish(ChangeEvent("orders", ChangeKind.INSERT))
    await wait_for(lambda: store.fetch_count("orders") == 2)
    for _ in range(5):
        await hub.publish(ChangeEvent("orders", ChangeKind.UPDATE))

    store.gate.set()
    await wait_for(lambda: hub.subscriber_count("orders") == 1)
    await wait_for(lambda: not controller.loading)
    fetches = store.fetch_count("orders")

    assert controller.subscribed
    assert await hub.publish(ChangeEvent("orders", ChangeKind.DELETE)) == 1
    await wait_for(lambda: store.fetch_count("orders") == fetches + 1)
    await controller.close()


@pytest.mark.asyncio
async def test_close_releases_subscription(orders):
    hub = ChangeHub()
    controller = LiveListController(orders, FakeRecordStore(), ADMIN, change_feed=hub)
    await controller.start()
    await wait_for(lambda: hub.subscriber_count("orders") == 1)

    await controller.close()

    assert hub.subscriber_count("orders") == 0
    assert not controller.subscribed


# ── Aggregates ──


@pytest.mark.asyncio
async def test_aggregates_over_scoped_view(orders):
    controller = LiveListController(orders, FakeRecordStore({"orders": ORDERS}), ADMIN)
    await controller.start()

    counts = controller.status_counts()
    assert counts["pending"] == 2
    assert counts["confirmed"] == 1
    assert counts["delivered"] == 0
    assert controller.total("total_amount") == 4000.5
    assert [r.id for r in controller.grouped_by_status()["pending"]] == ["1", "3"]
    assert controller.count_in_window("created_at", TimeWindow.TODAY) == 0
    assert [r.id for r in controller.search("2")] == ["2"]
