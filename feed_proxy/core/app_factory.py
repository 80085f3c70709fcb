"""Application factory for the FastAPI app.

Centralizes app construction (lifespan, middleware, handlers, routers) so
tests can build an app around a fake upstream client.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from feed_proxy import __version__
from feed_proxy.adapters.upstream.base import AbstractUpstreamClient
from feed_proxy.api.routes import health_router, proxy_router
from feed_proxy.core.config import Settings, settings
from feed_proxy.core.exception_handlers import setup_exception_handlers
from feed_proxy.core.logging import configure_logging
from feed_proxy.core.middleware import request_id_middleware
from feed_proxy.services.proxy_service import build_proxy_service

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    upstream_client: AbstractUpstreamClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    One ProxyService is built per app in the lifespan, started before the
    first request and closed on shutdown; routes reach it through
    ``app.state.proxy``.

    Args:
        app_settings: Settings to use instead of the global instance.
        upstream_client: Client to use instead of the configured httpx client.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        proxy = build_proxy_service(cfg, upstream_client=upstream_client)
        await proxy.start()
        app.state.proxy = proxy
        logger.info("app.started", extra={"env": cfg.app_env})
        try:
            yield
        finally:
            app.state.proxy = None
            await proxy.aclose()
            logger.info("app.stopped")

    app = FastAPI(
        title="Feed Proxy",
        description=(
            "Caching, quota-aware reverse proxy for a social-feed mirror. "
            "Serializes upstream calls through a bounded worker pool, caches "
            "found and not-found lookups, and rejects work locally once the "
            "estimated upstream quota is spent."
        ),
        version=__version__,
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(proxy_router, prefix="/api")
    app.include_router(health_router)

    return app
