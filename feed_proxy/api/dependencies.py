"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Request

from feed_proxy.core.errors import DispatcherNotRunningError
from feed_proxy.services.proxy_service import ProxyService


def get_proxy_service(request: Request) -> ProxyService:
    """Return the proxy service created by the application lifespan.

    Raises:
        DispatcherNotRunningError: If the app was not started through its lifespan.
    """

    service: ProxyService | None = getattr(request.app.state, "proxy", None)
    if service is None:
        raise DispatcherNotRunningError(
            code="proxy_not_started",
            message="Proxy service is not available",
        )
    return service
