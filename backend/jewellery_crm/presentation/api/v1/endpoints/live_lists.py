"""Live-list endpoints — scoped collection snapshots, stats and mutations."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jewellery_crm.application.schemas.live_list import (
    BulkStatusRequest,
    LiveListResponse,
    MutationRequest,
    MutationResponse,
    StatsResponse,
    StatusChangeRequest,
)
from jewellery_crm.application.services import LiveListController, MutationDispatcher, ScreenRegistry
from jewellery_crm.application.services.list_aggregates import TimeWindow, percentage
from jewellery_crm.application.services.scope_resolver import describe_scope
from jewellery_crm.domain.entities import UserContext
from jewellery_crm.domain.exceptions import EntityNotFoundError
from jewellery_crm.infrastructure.dependencies import get_current_user, get_screen_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live-lists", tags=["Live Lists"])


# ── Helpers ──────────────────────────────────────────────────────────


async def _open_screen(
    collection: str, registry: ScreenRegistry, user: UserContext | None
) -> LiveListController:
    try:
        return await registry.get_or_start(collection, user)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


async def _dispatcher(
    collection: str, registry: ScreenRegistry, user: UserContext | None
) -> MutationDispatcher:
    try:
        return await registry.dispatcher(collection, user)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _to_response(controller: LiveListController, q: str | None = None) -> LiveListResponse:
    snapshot = controller.snapshot()
    records = controller.search(q) if q else None
    return LiveListResponse.build(
        snapshot,
        describe_scope(controller.user),
        controller.status_counts(),
        records=records,
    )


# ── Reads ────────────────────────────────────────────────────────────


@router.get("/{collection}", response_model=LiveListResponse)
async def get_live_list(
    collection: str,
    status_filter: str | None = Query(None, alias="status", description="Status or 'all'"),
    search: str | None = Query(None, description="Remote search term, passed through"),
    q: str | None = Query(None, description="Client-side search over the scoped records"),
    page: int | None = Query(None, ge=1),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> LiveListResponse:
    """Current snapshot of the user's screen. Re-fetches only when the filters changed."""
    controller = await _open_screen(collection, registry, user)
    await controller.set_filters(
        status=status_filter,
        search=search,
        page=page,
        date_from=date_from,
        date_to=date_to,
    )
    return _to_response(controller, q)


@router.delete("/{collection}", status_code=status.HTTP_204_NO_CONTENT)
async def close_live_list(
    collection: str,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> None:
    """Unmount the user's screen: stop its realtime subscription and drop its records."""
    try:
        await registry.close(collection, user)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{collection}/refresh", response_model=LiveListResponse)
async def refresh_live_list(
    collection: str,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> LiveListResponse:
    """Explicit retry — re-fetch the whole collection now."""
    controller = await _open_screen(collection, registry, user)
    await controller.refresh()
    return _to_response(controller)


@router.get("/{collection}/stats", response_model=StatsResponse)
async def get_live_list_stats(
    collection: str,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> StatsResponse:
    """Dashboard aggregates over the user's scoped view."""
    controller = await _open_screen(collection, registry, user)
    spec = controller.spec
    counts = controller.status_counts()
    total = len(controller.records)
    return StatsResponse(
        collection=spec.name,
        total=total,
        status_counts=counts,
        status_percentages={s: percentage(n, total) for s, n in counts.items()},
        today=controller.count_in_window(spec.schedule_field, TimeWindow.TODAY),
        this_week=controller.count_in_window(spec.schedule_field, TimeWindow.THIS_WEEK),
        this_month=controller.count_in_window(spec.schedule_field, TimeWindow.THIS_MONTH),
        upcoming=controller.count_upcoming(spec.schedule_field),
        revenue=controller.total(spec.amount_field) if spec.amount_field else None,
    )


# ── Mutations ────────────────────────────────────────────────────────
# A rejected mutation is a 200 with success=false, never an HTTP error.


@router.post("/{collection}", response_model=MutationResponse)
async def create_record(
    collection: str,
    body: MutationRequest,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> MutationResponse:
    dispatcher = await _dispatcher(collection, registry, user)
    return MutationResponse.from_result(await dispatcher.create(body.data))


@router.post("/{collection}/bulk-status", response_model=MutationResponse)
async def bulk_change_status(
    collection: str,
    body: BulkStatusRequest,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> MutationResponse:
    """Move every visible record in one status to another (e.g. mark all notifications read)."""
    dispatcher = await _dispatcher(collection, registry, user)
    result = await dispatcher.transition_all(body.from_status, body.to_status)
    return MutationResponse.from_result(result)


@router.patch("/{collection}/{record_id}", response_model=MutationResponse)
async def update_record(
    collection: str,
    record_id: str,
    body: MutationRequest,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> MutationResponse:
    dispatcher = await _dispatcher(collection, registry, user)
    return MutationResponse.from_result(await dispatcher.update(record_id, body.data))


@router.delete("/{collection}/{record_id}", response_model=MutationResponse)
async def delete_record(
    collection: str,
    record_id: str,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> MutationResponse:
    dispatcher = await _dispatcher(collection, registry, user)
    return MutationResponse.from_result(await dispatcher.delete(record_id))


@router.post("/{collection}/{record_id}/status", response_model=MutationResponse)
async def change_status(
    collection: str,
    record_id: str,
    body: StatusChangeRequest,
    registry: ScreenRegistry = Depends(get_screen_registry),
    user: UserContext | None = Depends(get_current_user),
) -> MutationResponse:
    dispatcher = await _dispatcher(collection, registry, user)
    return MutationResponse.from_result(await dispatcher.transition(record_id, body.status))
