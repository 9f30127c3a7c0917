from .live_list import (
    BulkStatusRequest,
    ChangeEventRequest,
    ChangeEventResponse,
    LiveListResponse,
    MutationRequest,
    MutationResponse,
    RecordResponse,
    ScopeResponse,
    StatsResponse,
    StatusChangeRequest,
)

__all__ = [
    "BulkStatusRequest",
    "ChangeEventRequest",
    "ChangeEventResponse",
    "LiveListResponse",
    "MutationRequest",
    "MutationResponse",
    "RecordResponse",
    "ScopeResponse",
    "StatsResponse",
    "StatusChangeRequest",
]
