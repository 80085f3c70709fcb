from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from feed_proxy.api.dependencies import get_proxy_service
from feed_proxy.services.proxy_service import ProxyService

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(proxy: Annotated[ProxyService, Depends(get_proxy_service)]) -> dict:
    """Health check endpoint.

    Reports liveness plus cache, quota and dispatcher counters so operators
    can see when the proxy is rejecting work locally.

    Returns:
        dict: ``status`` ("ok", or "degraded" while the quota guard rejects
            requests) and the proxy's stats.
    """

    stats = proxy.stats()
    status = "degraded" if stats["quota"]["exhausted"] else "ok"
    return {"status": status, **stats}
