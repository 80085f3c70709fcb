"""Factory for the upstream client stack."""

from feed_proxy.adapters.upstream.base import AbstractUpstreamClient
from feed_proxy.adapters.upstream.httpx_client import HttpxUpstreamClient
from feed_proxy.adapters.upstream.retry import RetryingUpstreamClient
from feed_proxy.core.config import UpstreamSettings, settings
from feed_proxy.core.errors import ConfigurationAppError


def create_upstream_client(
    upstream_settings: UpstreamSettings | None = None,
) -> AbstractUpstreamClient:
    """Build the upstream client from configuration.

    The retry decorator is only applied when a non-zero retry delay is configured.

    Returns:
        AbstractUpstreamClient: Ready-to-use client.

    Raises:
        ConfigurationAppError: If the upstream base URL is not set.
    """
    cfg = upstream_settings or settings.upstream

    if not cfg.base_url.strip():
        raise ConfigurationAppError(
            code="upstream_missing_base_url",
            message="UPSTREAM_BASE_URL environment variable is required",
            details={"setting": "UPSTREAM_BASE_URL"},
        )

    client: AbstractUpstreamClient = HttpxUpstreamClient(
        base_url=cfg.base_url,
        timeout_seconds=cfg.timeout_seconds,
    )

    if cfg.retry_after_seconds:
        client = RetryingUpstreamClient(
            client,
            retry_after_seconds=cfg.retry_after_seconds,
            max_retries=cfg.max_retries,
        )

    return client
