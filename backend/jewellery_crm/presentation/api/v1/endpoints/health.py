"""Health check endpoint — reports settings and live runtime counters."""

from fastapi import APIRouter, Depends

from jewellery_crm.config import get_settings
from jewellery_crm.application.services import ChangeHub, ScreenRegistry
from jewellery_crm.infrastructure.dependencies import get_change_hub, get_screen_registry

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    registry: ScreenRegistry = Depends(get_screen_registry),
    hub: ChangeHub = Depends(get_change_hub),
) -> dict:
    """Returns the current application health status."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "open_screens": len(registry),
        "change_subscribers": hub.subscriber_count(),
        "realtime_relay": bool(settings.realtime_url),
    }
