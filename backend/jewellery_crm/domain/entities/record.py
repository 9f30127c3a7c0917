"""Domain entity — a normalized record from one CRM collection."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Record:
    """Canonical in-memory shape of an appointment, order, customer, ticket, lead...

    Records are produced only by the normalizer from remote payloads. The
    client never assigns ids or timestamps, and a record is never patched in
    place: the whole collection is replaced on every fetch.

    Scope attributes (tenant, store, floor, owner, creator) are consulted by
    the scope resolver and nothing else.
    """

    id: str
    record_type: str
    status: str
    owner_id: str | None = None
    creator_id: str | None = None
    tenant_id: str | None = None
    store_id: str | None = None
    floor: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    dates: dict[str, datetime | None] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        """Return a raw (coerced) field value."""
        value = self.fields.get(name)
        return default if value is None else value

    def date(self, name: str) -> datetime | None:
        """Return a parsed date-like field, or None when absent or unparseable."""
        return self.dates.get(name)

    @property
    def is_assigned(self) -> bool:
        return self.owner_id is not None
