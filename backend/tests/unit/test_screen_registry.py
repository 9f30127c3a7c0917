"""Unit tests for the ScreenRegistry."""

import pytest

from conftest import FakeRecordStore
from jewellery_crm.application.services import ChangeHub, ScreenRegistry
from jewellery_crm.domain.entities import ChangeEvent, ChangeKind, UserContext
from jewellery_crm.domain.exceptions import EntityNotFoundError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _user(n: int) -> UserContext:
    return UserContext(id=f"u{n}", role="inhouse_sales")


@pytest.mark.asyncio
async def test_same_screen_is_reused(catalog):
    store = FakeRecordStore()
    registry = ScreenRegistry(catalog, store)

    first = await registry.get_or_start("orders", _user(1))
    second = await registry.get_or_start("orders", _user(1))

    assert first is second
    assert len(registry) == 1
    assert store.fetch_count("orders") == 1


@pytest.mark.asyncio
async def test_close_releases_subscription(catalog):
    hub = ChangeHub()
    registry = ScreenRegistry(catalog, FakeRecordStore(), hub)
    controller = await registry.get_or_start("orders", _user(1))
    assert hub.subscriber_count("orders") == 1

    assert await registry.close("orders", _user(1)) is True
    assert await registry.close("orders", _user(1)) is False

    assert len(registry) == 0
    assert hub.subscriber_count("orders") == 0
    assert not controller.subscribed


@pytest.mark.asyncio
async def test_close_unknown_collection_raises(catalog):
    registry = ScreenRegistry(catalog, FakeRecordStore())

    with pytest.raises(EntityNotFoundError):
        await registry.close("invoices", _user(1))


@pytest.mark.asyncio
async def test_idle_screens_are_closed_on_next_use(catalog):
    hub = ChangeHub()
    store = FakeRecordStore()
    clock = FakeClock()
    registry = ScreenRegistry(catalog, store, hub, idle_timeout=60, clock=clock)
    for n in range(50):
        await registry.get_or_start("orders", _user(n))
    assert hub.subscriber_count("orders") == 50

    clock.now += 61
    await registry.get_or_start("orders", _user(0))

    assert len(registry) == 1
    assert hub.subscriber_count("orders") == 1
    assert await hub.publish(ChangeEvent("orders", ChangeKind.INSERT)) == 1


@pytest.mark.asyncio
async def test_evict_idle_keeps_recently_used_screens(catalog):
    clock = FakeClock()
    registry = ScreenRegistry(catalog, FakeRecordStore(), ChangeHub(), idle_timeout=60, clock=clock)
    await registry.get_or_start("orders", _user(1))
    clock.now += 30
    await registry.get_or_start("customers", _user(1))
    clock.now += 40

    assert await registry.evict_idle() == 1
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_zero_timeout_never_evicts(catalog):
    clock = FakeClock()
    registry = ScreenRegistry(catalog, FakeRecordStore(), idle_timeout=0, clock=clock)
    await registry.get_or_start("orders", _user(1))
    clock.now += 10_000

    assert await registry.evict_idle() == 0
    assert len(registry) == 1
