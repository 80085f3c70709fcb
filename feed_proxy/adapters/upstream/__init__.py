"""Upstream adapter layer - HTTP transport to the feed mirror."""

from feed_proxy.adapters.upstream.base import AbstractUpstreamClient, UpstreamResponse
from feed_proxy.adapters.upstream.factory import create_upstream_client
from feed_proxy.adapters.upstream.httpx_client import HttpxUpstreamClient
from feed_proxy.adapters.upstream.retry import RetryingUpstreamClient

__all__ = [
    "AbstractUpstreamClient",
    "HttpxUpstreamClient",
    "RetryingUpstreamClient",
    "UpstreamResponse",
    "create_upstream_client",
]
