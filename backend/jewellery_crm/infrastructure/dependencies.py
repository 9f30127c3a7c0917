"""FastAPI dependency injection — wires infrastructure to application layer."""

from functools import lru_cache

from fastapi import Header

from jewellery_crm.config import get_settings
from jewellery_crm.application.interfaces import RecordStore
from jewellery_crm.application.services import ChangeHub, CollectionCatalog, ScreenRegistry
from jewellery_crm.domain.entities import UserContext
from jewellery_crm.infrastructure.crm_api import CrmApiClient


@lru_cache
def get_collection_catalog() -> CollectionCatalog:
    """Collection catalog loaded once from the configured YAML file."""
    return CollectionCatalog.from_file(get_settings().collections_file)


@lru_cache
def get_change_hub() -> ChangeHub:
    """Process-wide change hub shared by the relay, webhooks and live lists."""
    return ChangeHub()


@lru_cache
def get_record_store() -> RecordStore:
    settings = get_settings()
    return CrmApiClient(
        base_url=settings.crm_api_base_url,
        api_key=settings.crm_api_key,
        timeout=settings.crm_api_timeout,
    )


@lru_cache
def get_screen_registry() -> ScreenRegistry:
    """Process-wide registry of open live-list screens."""
    settings = get_settings()
    return ScreenRegistry(
        catalog=get_collection_catalog(),
        store=get_record_store(),
        change_feed=get_change_hub(),
        narrow_remote_fetch=settings.narrow_remote_fetch,
        idle_timeout=settings.screen_idle_timeout,
    )


async def get_current_user(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
    x_tenant_id: str | None = Header(None),
    x_store_id: str | None = Header(None),
    x_floor: int | None = Header(None),
) -> UserContext | None:
    """Build the request's user from identity headers; None when unauthenticated."""
    if not x_user_id:
        return None
    return UserContext(
        id=x_user_id,
        role=(x_user_role or "").strip().lower(),
        tenant_id=x_tenant_id or None,
        store_id=x_store_id or None,
        floor=x_floor,
    )
