"""Change endpoints — inbound change webhooks and an SSE re-broadcast of the hub."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from jewellery_crm.application.schemas.live_list import ChangeEventRequest, ChangeEventResponse
from jewellery_crm.application.services import ChangeHub, CollectionCatalog
from jewellery_crm.application.services.change_hub import ALL_TABLES
from jewellery_crm.domain.entities import ChangeEvent
from jewellery_crm.infrastructure.dependencies import get_change_hub, get_collection_catalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/changes", tags=["Changes"])


@router.get("/stream")
async def stream_changes(
    table: str = Query(ALL_TABLES, description="Table to follow, or '*' for all"),
    hub: ChangeHub = Depends(get_change_hub),
) -> StreamingResponse:
    """SSE endpoint re-broadcasting change events.

    Clients connect via EventSource and receive 'change' events carrying
    only the table and event kind.
    """
    return StreamingResponse(
        hub.stream_sse(table),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/{table}", response_model=ChangeEventResponse, status_code=status.HTTP_202_ACCEPTED)
async def publish_change(
    table: str,
    body: ChangeEventRequest,
    hub: ChangeHub = Depends(get_change_hub),
    catalog: CollectionCatalog = Depends(get_collection_catalog),
) -> ChangeEventResponse:
    """Accept a change webhook for a table and wake every screen listening to it."""
    if table not in catalog.tables:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown table '{table}'",
        )
    event = ChangeEvent.parse(table, body.event)
    delivered = await hub.publish(event)
    logger.info("Change webhook on '%s' (%s) delivered to %d subscriber(s)",
                table, event.event.value, delivered)
    return ChangeEventResponse(table=table, event=event.event.value, delivered=delivered)
