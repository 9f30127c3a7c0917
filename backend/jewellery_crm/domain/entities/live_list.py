"""Domain entities for the live-list lifecycle: fetch outcomes, snapshots, mutations."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .record import Record


class ListState(str, Enum):
    """Lifecycle states of a live list.

    ``FAILED`` still carries an empty record list, so consumers that only
    look at ``records`` see the same empty state as before; consumers that
    care can tell a failed fetch from a genuinely empty collection.
    """

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class FetchOutcome:
    """Result of one fetch-and-normalize cycle. ``records`` is never None."""

    records: list[Record] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class LiveListSnapshot:
    """What the presentation layer sees of a live list at one instant."""

    collection: str
    state: ListState
    records: list[Record]
    loading: bool
    error: str | None = None
    generation: int = 0


@dataclass
class MutationResult:
    """Success/failure signal of a single create/update/delete/transition."""

    success: bool
    data: Any = None
    message: str | None = None


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    ANY = "*"


@dataclass(frozen=True)
class ChangeEvent:
    """Notification that *something* changed in a table. The row is never inspected."""

    table: str
    event: ChangeKind = ChangeKind.ANY

    @classmethod
    def parse(cls, table: str, raw_event: Any) -> "ChangeEvent":
        """Build an event, treating unrecognised event names as a wildcard."""
        try:
            kind = ChangeKind(str(raw_event).lower())
        except ValueError:
            kind = ChangeKind.ANY
        return cls(table=table, event=kind)
