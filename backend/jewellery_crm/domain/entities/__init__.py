from .record import Record
from .collection import CollectionSpec
from .user_context import Role, ScopeType, UserContext, UserScope
from .live_list import (
    ChangeEvent,
    ChangeKind,
    FetchOutcome,
    ListState,
    LiveListSnapshot,
    MutationResult,
)

__all__ = [
    "Record",
    "CollectionSpec",
    "Role",
    "ScopeType",
    "UserContext",
    "UserScope",
    "ChangeEvent",
    "ChangeKind",
    "FetchOutcome",
    "ListState",
    "LiveListSnapshot",
    "MutationResult",
]
