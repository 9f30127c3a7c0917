"""Domain entity — declarative description of one live-list collection."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CollectionSpec:
    """Everything the live-list machinery needs to know about a screen's collection.

    Loaded from ``data/collections.yaml`` by the collection catalog.

    Attributes:
        name: Collection key used in URLs and the screen registry (``orders``).
        record_type: Kind stamped on each record unless ``type_field`` is set.
        endpoint: Path segment on the remote record store.
        table: Realtime topic whose change events trigger a re-fetch.
        statuses: Closed, ordered status set.
        fallback_status: Status given to records whose status is missing or unknown.
        transitions: Legal next statuses for each status.
        owner_fields: Raw fields holding the owner / assignee id, first hit wins.
        creator_fields: Raw fields holding the creator id, first hit wins.
        defaults: Placeholder values for missing or null raw fields.
        hard_delete: Whether records may be deleted through the dispatcher.
        search_fields: Fields matched by client-side text search.
        schedule_field: Date field used for today / this week / upcoming counts.
        amount_field: Numeric field summed as revenue, if any.
    """

    name: str
    record_type: str
    endpoint: str
    table: str
    statuses: tuple[str, ...]
    fallback_status: str
    transitions: dict[str, frozenset[str]] = field(default_factory=dict)
    owner_fields: tuple[str, ...] = ("assigned_to",)
    creator_fields: tuple[str, ...] = ("created_by",)
    tenant_field: str = "tenant"
    store_field: str = "store"
    floor_field: str = "floor"
    type_field: str | None = None
    date_fields: tuple[str, ...] = ("created_at", "updated_at")
    defaults: dict[str, Any] = field(default_factory=dict)
    hard_delete: bool = False
    search_fields: tuple[str, ...] = ()
    schedule_field: str = "created_at"
    amount_field: str | None = None

    def can_transition(self, current: str, target: str) -> bool:
        """True when ``target`` is a legal next status from ``current``."""
        return target in self.transitions.get(current, frozenset())

    def coerce_status(self, raw: Any) -> str:
        """Map a raw status onto the closed set, falling back when unknown."""
        if isinstance(raw, str):
            candidate = raw.strip().lower()
            if candidate in self.statuses:
                return candidate
        return self.fallback_status
