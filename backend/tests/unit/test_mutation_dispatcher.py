"""Unit tests for the MutationDispatcher."""

import httpx
import pytest

from conftest import FakeRecordStore
from jewellery_crm.application.services import LiveListController, MutationDispatcher
from jewellery_crm.application.services.mutation_dispatcher import clean_payload
from jewellery_crm.domain.entities import ListState, MutationResult, UserContext
from jewellery_crm.domain.exceptions import RemoteStoreError

ADMIN = UserContext(id="admin", role="business_admin")

APPOINTMENTS = [
    {"id": 1, "status": "scheduled", "customer_name": "Asha Rao"},
    {"id": 2, "status": "completed", "customer_name": "Vikram Shah"},
]


async def _dispatcher(catalog, name: str, store: FakeRecordStore) -> MutationDispatcher:
    controller = LiveListController(catalog.get(name), store, ADMIN)
    await controller.start()
    return MutationDispatcher(store, controller)


# ── Success path ──


@pytest.mark.asyncio
async def test_successful_create_refetches_exactly_once(catalog):
    store = FakeRecordStore({"orders": []})
    dispatcher = await _dispatcher(catalog, "orders", store)
    before = store.fetch_count("orders")

    result = await dispatcher.create({"customer_name": "Asha Rao", "total_amount": 4200})

    assert result.success is True
    assert store.fetch_count("orders") == before + 1
    assert store.mutations == [
        ("create", "orders", {"customer_name": "Asha Rao", "total_amount": 4200, "status": "pending"}),
    ]


@pytest.mark.asyncio
async def test_create_with_failing_refetch_empties_list_without_raising(catalog):
    """Order create succeeds, the follow-up fetch fails: list becomes [] and nothing raises."""
    store = FakeRecordStore({"orders": [{"id": 1, "status": "pending"}]})
    dispatcher = await _dispatcher(catalog, "orders", store)
    store.payloads["orders"] = RemoteStoreError(500, "database unavailable")

    result = await dispatcher.create({"customer_name": "Meera Iyer"})

    controller = dispatcher._controller
    assert result.success is True
    assert store.fetch_count("orders") == 2
    assert controller.records == []
    assert controller.state == ListState.FAILED


@pytest.mark.asyncio
async def test_legal_transition_is_sent_and_refetched(catalog):
    store = FakeRecordStore({"appointments": APPOINTMENTS})
    dispatcher = await _dispatcher(catalog, "appointments", store)

    result = await dispatcher.transition("1", "confirmed")

    assert result.success is True
    assert store.mutations == [("transition", "appointments", "1", "confirmed")]
    assert store.fetch_count("appointments") == 2


@pytest.mark.asyncio
async def test_update_cleans_payload(catalog):
    store = FakeRecordStore({"support-tickets": [{"id": 7, "status": "open"}]})
    dispatcher = await _dispatcher(catalog, "support_tickets", store)

    await dispatcher.update("7", {"assigned_to": "", "notes": None, "priority": "high"})

    assert store.mutations == [
        ("update", "support-tickets", "7", {"assigned_to": None, "priority": "high"}),
    ]


def test_clean_payload():
    assert clean_payload({"assigned_to": "", "x": None}, drop_none=True) == {"assigned_to": None}
    assert clean_payload({"assigned_to": "u1", "x": None}, drop_none=False) == {
        "assigned_to": "u1",
        "x": None,
    }


@pytest.mark.asyncio
async def test_bulk_transition_marks_all_read(catalog):
    store = FakeRecordStore(
        {
            "notifications": [
                {"id": 1, "status": "unread", "user_id": "u1"},
                {"id": 2, "status": "read", "user_id": "u1"},
                {"id": 3, "user_id": "u1"},
            ]
        }
    )
    dispatcher = await _dispatcher(catalog, "notifications", store)

    result = await dispatcher.transition_all("unread", "read")

    assert result.success is True
    assert result.data == {"updated": ["1", "3"]}
    assert store.mutations == [
        ("transition", "notifications", "1", "read"),
        ("transition", "notifications", "3", "read"),
    ]
    assert store.fetch_count("notifications") == 2


# ── Failure path ──


@pytest.mark.asyncio
async def test_remote_rejection_returns_failure_without_refetch(catalog):
    store = FakeRecordStore({"orders": []})
    store.mutation_result = MutationResult(success=False, message="Insufficient stock")
    dispatcher = await _dispatcher(catalog, "orders", store)

    result = await dispatcher.create({"customer_name": "Asha Rao"})

    assert result.success is False
    assert result.message == "Insufficient stock"
    assert store.fetch_count("orders") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        RemoteStoreError(400, "Invalid phone number"),
        httpx.ConnectError("connection refused"),
    ],
)
async def test_transport_errors_become_failed_results(catalog, error):
    store = FakeRecordStore({"appointments": APPOINTMENTS})
    store.mutation_error = error
    dispatcher = await _dispatcher(catalog, "appointments", store)

    result = await dispatcher.update("1", {"notes": "Prefers gold"})

    assert result.success is False
    assert result.message
    assert store.fetch_count("appointments") == 1
    assert len(store.mutations) == 1


@pytest.mark.asyncio
async def test_unexpected_store_errors_become_failed_results(catalog):
    store = FakeRecordStore({"orders": []})
    store.mutation_error = TypeError("Object of type set is not JSON serializable")
    dispatcher = await _dispatcher(catalog, "orders", store)

    result = await dispatcher.create({"customer_name": "Asha Rao", "tags": {"bridal"}})

    assert result.success is False
    assert result.message == "TypeError: Object of type set is not JSON serializable"
    assert store.fetch_count("orders") == 1


@pytest.mark.asyncio
async def test_illegal_transition_is_rejected_locally(catalog):
    store = FakeRecordStore({"appointments": APPOINTMENTS})
    dispatcher = await _dispatcher(catalog, "appointments", store)

    result = await dispatcher.transition("2", "scheduled")

    assert result.success is False
    assert "completed" in result.message
    assert store.mutations == []
    assert store.fetch_count("appointments") == 1


@pytest.mark.asyncio
async def test_update_with_illegal_status_is_rejected(catalog):
    store = FakeRecordStore({"appointments": APPOINTMENTS})
    dispatcher = await _dispatcher(catalog, "appointments", store)

    result = await dispatcher.update("2", {"status": "in_progress"})

    assert result.success is False
    assert store.mutations == []


@pytest.mark.asyncio
async def test_unknown_status_is_rejected(catalog):
    store = FakeRecordStore({"appointments": APPOINTMENTS})
    dispatcher = await _dispatcher(catalog, "appointments", store)

    result = await dispatcher.transition("1", "teleported")

    assert result.success is False
    assert store.mutations == []


@pytest.mark.asyncio
async def test_delete_on_non_deletable_collection_is_rejected(catalog):
    store = FakeRecordStore({"orders": [{"id": 1}]})
    dispatcher = await _dispatcher(catalog, "orders", store)

    result = await dispatcher.delete("1")

    assert result.success is False
    assert store.mutations == []


@pytest.mark.asyncio
async def test_delete_on_deletable_collection(catalog):
    store = FakeRecordStore({"appointments": APPOINTMENTS})
    dispatcher = await _dispatcher(catalog, "appointments", store)

    result = await dispatcher.delete("2")

    assert result.success is True
    assert store.mutations == [("delete", "appointments", "2")]
    assert store.fetch_count("appointments") == 2


@pytest.mark.asyncio
async def test_bulk_transition_rejects_illegal_pair(catalog):
    store = FakeRecordStore({"notifications": [{"id": 1, "status": "archived"}]})
    dispatcher = await _dispatcher(catalog, "notifications", store)

    result = await dispatcher.transition_all("archived", "unread")

    assert result.success is False
    assert store.mutations == []
