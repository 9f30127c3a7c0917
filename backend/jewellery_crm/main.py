"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jewellery_crm.config import get_settings
from jewellery_crm.infrastructure.dependencies import (
    get_change_hub,
    get_collection_catalog,
    get_screen_registry,
)
from jewellery_crm.infrastructure.logging.log_config import setup_logging
from jewellery_crm.infrastructure.realtime import ChangeRelay, SSEChangeFeed
from jewellery_crm.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — load the catalog, start the change relay, close screens."""
    settings = get_settings()
    setup_logging()

    # 1. Load the collection catalog; a broken catalog aborts startup
    catalog = get_collection_catalog()
    logger.info("Collection catalog loaded: %s", ", ".join(catalog.names))

    # 2. Relay the remote change stream into the hub (optional)
    relay: ChangeRelay | None = None
    if settings.realtime_url.strip():
        relay = ChangeRelay(
            source=SSEChangeFeed(
                base_url=settings.realtime_url.strip(),
                api_key=settings.crm_api_key,
            ),
            hub=get_change_hub(),
            reconnect_delay=settings.realtime_reconnect_delay,
        )
        await relay.start()
    else:
        logger.warning(
            "REALTIME_URL is not configured; lists refresh only on webhooks and mutations."
        )

    yield

    # Shutdown
    await get_screen_registry().close_all()
    if relay is not None:
        await relay.stop()
    await get_change_hub().shutdown()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jewellery_crm.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
