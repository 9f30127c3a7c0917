"""Shared fakes and fixtures for the live-list tests."""

import asyncio
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from jewellery_crm.application.interfaces import RecordStore
from jewellery_crm.application.services import CollectionCatalog
from jewellery_crm.domain.entities import MutationResult

CATALOG_FILE = Path(__file__).resolve().parents[1] / "data" / "collections.yaml"


class FakeRecordStore(RecordStore):
    """In-memory fake of the remote CRM API.

    ``payloads`` maps an endpoint to the raw body ``fetch`` returns, or to an
    exception it raises. Every call is recorded for assertions.
    """

    def __init__(self, payloads: Mapping[str, Any] | None = None):
        self.payloads: dict[str, Any] = dict(payloads or {})
        self.fetch_calls: list[tuple[str, dict[str, Any]]] = []
        self.mutations: list[tuple[Any, ...]] = []
        self.mutation_result = MutationResult(success=True)
        self.mutation_error: Exception | None = None

    def fetch_count(self, endpoint: str) -> int:
        return sum(1 for called, _ in self.fetch_calls if called == endpoint)

    async def fetch(self, endpoint: str, filters: Mapping[str, Any] | None = None) -> Any:
        self.fetch_calls.append((endpoint, dict(filters or {})))
        payload = self.payloads.get(endpoint, [])
        if isinstance(payload, Exception):
            raise payload
        return payload

    async def _mutate(self, *call: Any) -> MutationResult:
        self.mutations.append(call)
        if self.mutation_error is not None:
            raise self.mutation_error
        return self.mutation_result

    async def create(self, endpoint: str, draft: Mapping[str, Any]) -> MutationResult:
        return await self._mutate("create", endpoint, dict(draft))

    async def update(
        self, endpoint: str, record_id: str, changes: Mapping[str, Any]
    ) -> MutationResult:
        return await self._mutate("update", endpoint, record_id, dict(changes))

    async def delete(self, endpoint: str, record_id: str) -> MutationResult:
        return await self._mutate("delete", endpoint, record_id)

    async def transition(self, endpoint: str, record_id: str, status: str) -> MutationResult:
        return await self._mutate("transition", endpoint, record_id, status)


async def wait_for(predicate: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition not reached")


@pytest.fixture
def catalog() -> CollectionCatalog:
    return CollectionCatalog.from_file(CATALOG_FILE)


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()
