"""Pydantic DTOs (Data Transfer Objects) for the live-list endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from jewellery_crm.application.services.record_normalizer import display_date
from jewellery_crm.domain.entities import (
    ListState,
    LiveListSnapshot,
    MutationResult,
    Record,
    UserScope,
)


class RecordResponse(BaseModel):
    """One normalized record as returned to the screen."""

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
    fields: dict[str, Any] = Field(default_factory=dict)
    display_dates: dict[str, str] = Field(
        default_factory=dict, examples=[{"appointment_date": "Jan 1, 2024"}],
    )

    @classmethod
    def from_record(cls, record: Record) -> "RecordResponse":
        return cls(
            id=record.id,
            record_type=record.record_type,
            status=record.status,
            owner_id=record.owner_id,
            creator_id=record.creator_id,
            tenant_id=record.tenant_id,
            store_id=record.store_id,
            floor=record.floor,
            created_at=record.created_at,
            updated_at=record.updated_at,
            fields=record.fields,
            # Raw field value keeps "Invalid Date" distinguishable from "N/A".
            display_dates={name: display_date(record.fields.get(name)) for name in record.dates},
        )


class ScopeResponse(BaseModel):
    type: str
    description: str
    display_text: str

    @classmethod
    def from_scope(cls, scope: UserScope) -> "ScopeResponse":
        return cls(
            type=scope.type.value,
            description=scope.description,
            display_text=scope.display_text,
        )


class LiveListResponse(BaseModel):
    """Snapshot of one screen's live list."""

    collection: str
    state: ListState
    loading: bool
    error: str | None = None
    scope: ScopeResponse
    total_count: int
    records: list[RecordResponse]
    status_counts: dict[str, int]

    @classmethod
    def build(
        cls,
        snapshot: LiveListSnapshot,
        scope: UserScope,
        status_counts: dict[str, int],
        records: list[Record] | None = None,
    ) -> "LiveListResponse":
        shown = snapshot.records if records is None else records
        return cls(
            collection=snapshot.collection,
            state=snapshot.state,
            loading=snapshot.loading,
            error=snapshot.error,
            scope=ScopeResponse.from_scope(scope),
            total_count=len(shown),
            records=[RecordResponse.from_record(r) for r in shown],
            status_counts=status_counts,
        )


class StatsResponse(BaseModel):
    """Aggregates over the user's scoped view of a collection."""

    collection: str
    total: int
    status_counts: dict[str, int]
    status_percentages: dict[str, int]
    today: int = 0
    this_week: int = 0
    this_month: int = 0
    upcoming: int = 0
    revenue: float | None = None


class MutationRequest(BaseModel):
    """Free-form draft or partial update; keys are the collection's remote fields."""

    data: dict[str, Any] = Field(
        ..., examples=[{"customer_name": "Asha Rao", "assigned_to": ""}],
    )


class StatusChangeRequest(BaseModel):
    status: str = Field(..., min_length=1, examples=["confirmed"])


class BulkStatusRequest(BaseModel):
    """Move every visible record from one status to another (e.g. mark all read)."""

    from_status: str = Field(..., min_length=1, examples=["unread"])
    to_status: str = Field(..., min_length=1, examples=["read"])


class MutationResponse(BaseModel):
    success: bool
    data: Any = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: MutationResult) -> "MutationResponse":
        return cls(success=result.success, data=result.data, message=result.message)


class ChangeEventRequest(BaseModel):
    """Change webhook body; the changed row itself is ignored."""

    event: str = Field("*", examples=["insert"])
    record: dict[str, Any] | None = None


class ChangeEventResponse(BaseModel):
    table: str
    event: str
    delivered: int
