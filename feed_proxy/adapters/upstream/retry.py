"""Fixed-delay retry on upstream rate limiting (HTTP 429).

Wraps any upstream client. When the upstream answers 429 the request is
resent after ``retry_after_seconds``. The delay is fixed on purpose: the
upstream's Retry-After / X-Retry-After headers are not consulted.

With ``max_retries=None`` every 429 leads to another wait-and-resend, with
no cap. When a cap is set and reached, the policy gives up by raising
``httpx.HTTPStatusError`` so the caller treats it like any other
transport-level failure. Exceptions raised by the wrapped client are never
retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Mapping

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    stop_never,
    wait_fixed,
)

from feed_proxy.adapters.upstream.base import AbstractUpstreamClient, UpstreamResponse

logger = logging.getLogger(__name__)

RATE_LIMITED = 429


def _is_rate_limited(response: UpstreamResponse) -> bool:
    return response.status == RATE_LIMITED


class RetryingUpstreamClient(AbstractUpstreamClient):
    """Decorator that resends rate-limited requests after a fixed pause."""

    def __init__(
        self,
        inner: AbstractUpstreamClient,
        *,
        retry_after_seconds: float,
        max_retries: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the retry decorator.

        Args:
            inner: Client that performs the actual request.
            retry_after_seconds: Pause before each resend.
            max_retries: Maximum resends per request; None for no cap.
            sleep: Awaitable sleep function (injected in tests).

        Raises:
            ValueError: If retry_after_seconds or max_retries are invalid.
        """
        if retry_after_seconds < 0:
            raise ValueError("retry_after_seconds must be >= 0")
        if max_retries is not None and max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self.inner = inner
        self.retry_after_seconds = retry_after_seconds
        self.max_retries = max_retries
        self._sleep = sleep

    def _retrying(self, path: str, request_id: str | None) -> AsyncRetrying:
        """Build the retry controller for one request."""

        def log_wait(retry_state: RetryCallState) -> None:
            response = retry_state.outcome.result()
            logger.debug(
                "retry.waiting",
                extra={
                    "path": path,
                    "attempt": retry_state.attempt_number,
                    "delay_s": self.retry_after_seconds,
                    "upstream_headers": dict(response.headers),
                    "request_id": request_id,
                },
            )

        def give_up(retry_state: RetryCallState) -> UpstreamResponse:
            logger.warning(
                "retry.exhausted",
                extra={"path": path, "attempts": retry_state.attempt_number, "request_id": request_id},
            )
            request = httpx.Request("GET", path)
            raise httpx.HTTPStatusError(
                f"Upstream still rate limited after {self.max_retries} retries",
                request=request,
                response=httpx.Response(RATE_LIMITED, request=request),
            )

        stop = stop_never if self.max_retries is None else stop_after_attempt(self.max_retries + 1)
        return AsyncRetrying(
            retry=retry_if_result(_is_rate_limited),
            wait=wait_fixed(self.retry_after_seconds),
            stop=stop,
            before_sleep=log_wait,
            retry_error_callback=give_up,
            sleep=self._sleep,
        )

    async def fetch(
        self,
        path: str,
        *,
        params: Mapping[str, str | None] | None = None,
        request_id: str | None = None,
    ) -> UpstreamResponse:
        retrying = self._retrying(path, request_id)
        return await retrying(self.inner.fetch, path, params=params, request_id=request_id)

    async def aclose(self) -> None:
        await self.inner.aclose()
