"""Proxy service: cached, quota-aware lookups against the upstream mirror.

Each lookup follows the same steps:
- Build the cache key for the logical resource
- Return a live cached result without dispatching anything
- Otherwise submit a job to the dispatcher and wait for it
- Cache 200 under the operation's positive TTL and 404 under its negative
  TTL; every other status (429, 500, 503, ...) is returned uncached so it
  is retried on the next access
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from feed_proxy.adapters.quota.in_memory import InMemoryQuotaGuard, build_quota_limit
from feed_proxy.adapters.upstream.base import AbstractUpstreamClient
from feed_proxy.adapters.upstream.factory import create_upstream_client
from feed_proxy.core.config import CacheSettings, Settings
from feed_proxy.schemas.proxy import Job, JobResult
from feed_proxy.services.dispatcher import Dispatcher
from feed_proxy.utils.response_cache import ResponseCache, post_key, timeline_key, user_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheTTLs:
    """Positive (200) and negative (404) TTLs in seconds, per operation."""

    user_positive: float = 30 * 24 * 3600
    user_negative: float = 3600
    timeline_positive: float = 60
    timeline_negative: float = 60
    post_positive: float = 60
    post_negative: float = 60

    @classmethod
    def from_settings(cls, cache_settings: CacheSettings) -> "CacheTTLs":
        return cls(
            user_positive=cache_settings.user_positive_ttl,
            user_negative=cache_settings.user_negative_ttl,
            timeline_positive=cache_settings.timeline_positive_ttl,
            timeline_negative=cache_settings.timeline_negative_ttl,
            post_positive=cache_settings.post_positive_ttl,
            post_negative=cache_settings.post_negative_ttl,
        )


def _segment(value: str) -> str:
    return quote(value, safe="")


class ProxyService:
    """Public entry point of the proxy core, shared by all requests."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        cache: ResponseCache,
        ttls: CacheTTLs | None = None,
        *,
        upstream: AbstractUpstreamClient | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            dispatcher: Worker pool that talks to the upstream.
            cache: Response cache shared by the three lookups.
            ttls: Per-operation TTLs; defaults when omitted.
            upstream: Client to close on shutdown, if the service owns it.
        """
        self.dispatcher = dispatcher
        self.cache = cache
        self.ttls = ttls or CacheTTLs()
        self._upstream = upstream

    async def start(self) -> None:
        await self.dispatcher.start()

    async def aclose(self) -> None:
        await self.dispatcher.stop()
        if self._upstream is not None:
            await self._upstream.aclose()

    async def lookup_user(self, username: str, *, request_id: str | None = None) -> JobResult:
        """Resolve a user profile by username."""

        return await self._lookup(
            key=user_key(username),
            job=Job(id=request_id, path=f"/api/user/{_segment(username)}"),
            positive_ttl=self.ttls.user_positive,
            negative_ttl=self.ttls.user_negative,
        )

    async def lookup_user_timeline(
        self,
        user_id: str,
        cursor: str | None = None,
        *,
        request_id: str | None = None,
    ) -> JobResult:
        """Fetch one page of a user's posts; ``cursor`` selects an older page."""

        return await self._lookup(
            key=timeline_key(user_id, cursor),
            job=Job(
                id=request_id,
                path=f"/api/user/{_segment(user_id)}/tweets",
                params={"cursor": cursor} if cursor is not None else None,
            ),
            positive_ttl=self.ttls.timeline_positive,
            negative_ttl=self.ttls.timeline_negative,
        )

    async def lookup_post(self, post_id: str, *, request_id: str | None = None) -> JobResult:
        """Fetch a single post by id."""

        return await self._lookup(
            key=post_key(post_id),
            job=Job(id=request_id, path=f"/api/tweet/{_segment(post_id)}"),
            positive_ttl=self.ttls.post_positive,
            negative_ttl=self.ttls.post_negative,
        )

    def stats(self) -> dict[str, Any]:
        """Cache, quota and dispatcher state for the health endpoint."""

        guard = self.dispatcher.quota
        quota = guard.snapshot()
        return {
            "cache": self.cache.stats(),
            "quota": {
                "count": quota.count,
                "limit": quota.limit,
                "remaining": quota.remaining,
                "tripped": quota.tripped,
                "exhausted": not guard.check(),
                "resets_in_seconds": round(quota.resets_in_seconds, 1),
            },
            "dispatcher": {
                "running": self.dispatcher.is_running,
                "concurrency": self.dispatcher.concurrency,
                "pending": self.dispatcher.pending,
                "in_flight": self.dispatcher.in_flight,
            },
        }

    async def _lookup(
        self,
        *,
        key: str,
        job: Job,
        positive_ttl: float,
        negative_ttl: float,
    ) -> JobResult:
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("proxy.cache_hit", extra={"cache_key": key, "status": cached.status})
            return cached

        result = await self.dispatcher.submit(job)

        if result.ok:
            self.cache.set(key, result, positive_ttl)
        elif result.not_found:
            self.cache.set(key, result, negative_ttl)
        else:
            logger.info(
                "proxy.uncached_result",
                extra={"cache_key": key, "status": result.status, "request_id": job.id},
            )

        return result


def build_proxy_service(
    app_settings: Settings,
    *,
    upstream_client: AbstractUpstreamClient | None = None,
) -> ProxyService:
    """Wire cache, quota guard, dispatcher and upstream client from settings.

    Args:
        app_settings: Resolved application settings.
        upstream_client: Optional client to use instead of the configured one.

    Returns:
        ProxyService: Service ready to be started.
    """

    upstream = upstream_client or create_upstream_client(app_settings.upstream)
    concurrency = app_settings.upstream.concurrency

    quota = InMemoryQuotaGuard(
        limit=build_quota_limit(
            concurrency,
            app_settings.quota.window_seconds,
            app_settings.quota.requests_per_second_per_worker,
        ),
        window_seconds=app_settings.quota.window_seconds,
    )
    dispatcher = Dispatcher(upstream, quota, concurrency=concurrency)
    cache = ResponseCache(max_entries=app_settings.cache.max_entries)

    logger.info(
        "proxy.configured",
        extra={
            "concurrency": concurrency,
            "quota_limit": quota.limit,
            "cache_max_entries": app_settings.cache.max_entries,
            "retry_enabled": bool(app_settings.upstream.retry_after_ms),
        },
    )
    return ProxyService(
        dispatcher,
        cache,
        CacheTTLs.from_settings(app_settings.cache),
        upstream=upstream,
    )
