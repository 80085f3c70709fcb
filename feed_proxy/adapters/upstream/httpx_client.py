"""httpx-based upstream client."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from feed_proxy.adapters.upstream.base import AbstractUpstreamClient, UpstreamResponse
from feed_proxy.core.logging import TRACE

logger = logging.getLogger(__name__)


def _clean_params(params: Mapping[str, str | None] | None) -> dict[str, str] | None:
    if not params:
        return None
    cleaned = {k: v for k, v in params.items() if v is not None}
    return cleaned or None


def decode_body(response: httpx.Response) -> Any:
    """Decode a response body: JSON when possible, otherwise text, None if empty."""

    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxUpstreamClient(AbstractUpstreamClient):
    """Client for the upstream mirror backed by a pooled ``httpx.AsyncClient``.

    HTTP error statuses are returned as-is; only transport failures
    (connection refused, DNS, timeouts, protocol errors) raise.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            base_url: Upstream base URL.
            timeout_seconds: Per-request timeout.
            transport: Optional custom transport (e.g. ``httpx.MockTransport`` in tests).
        """
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )
        self.base_url = base_url

    async def fetch(
        self,
        path: str,
        *,
        params: Mapping[str, str | None] | None = None,
        request_id: str | None = None,
    ) -> UpstreamResponse:
        query = _clean_params(params)
        logger.log(
            TRACE,
            "upstream.request",
            extra={"path": path, "params": query, "request_id": request_id},
        )

        response = await self.client.get(path, params=query)
        data = decode_body(response)

        logger.log(
            TRACE,
            "upstream.response",
            extra={
                "path": path,
                "status": response.status_code,
                "data": data,
                "request_id": request_id,
            },
        )
        return UpstreamResponse(
            status=response.status_code,
            data=data,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
