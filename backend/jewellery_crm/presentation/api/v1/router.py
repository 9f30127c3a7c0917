"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from jewellery_crm.presentation.api.v1.endpoints.health import router as health_router
from jewellery_crm.presentation.api.v1.endpoints.live_lists import router as live_lists_router
from jewellery_crm.presentation.api.v1.endpoints.changes import router as changes_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(live_lists_router)
router.include_router(changes_router)
