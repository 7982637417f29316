"""SchoolHub FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from .api.router import api_router
from .app.lifecycles import create_application_lifespan
from .common.logging import setup_logging
from .common.middleware import register_middleware
from .core.http.errors import register_exception_handlers
from .realtime.router import router as realtime_router
from .settings import Settings, get_settings

API_PREFIX = "/api"
logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the SchoolHub FastAPI application."""
    # Settings + logging first so everything else uses the configured root logger.
    settings = settings or get_settings()
    setup_logging(settings)

    lifespan = create_application_lifespan(settings=settings)

    docs_enabled = settings.api_docs_enabled
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.docs_url if docs_enabled else None,
        redoc_url=None,
        openapi_url=settings.openapi_url if docs_enabled else None,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)
    register_middleware(app, settings=settings)
    app.include_router(api_router, prefix=API_PREFIX)
    app.include_router(realtime_router)
    if docs_enabled:
        logger.info(
            "api.docs.enabled",
            extra={"swagger_url": settings.docs_url, "openapi_url": settings.openapi_url},
        )

    return app


__all__ = [
    "API_PREFIX",
    "create_app",
]
