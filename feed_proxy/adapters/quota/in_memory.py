"""In-memory quota guard with a periodic hard reset.

Notes:
- Per-process only: every proxy instance keeps its own estimate.
- Approximates a sliding window with a fixed reset timer, so a burst right
  after a reset is under-counted against the upstream's true window.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import Callable

from feed_proxy.adapters.quota.base import AbstractQuotaGuard, QuotaSnapshot

logger = logging.getLogger(__name__)

SATURATED = sys.maxsize


def build_quota_limit(
    concurrency: int,
    window_seconds: float,
    requests_per_second_per_worker: float = 1.0,
) -> int:
    """Estimate the per-window request budget for ``concurrency`` workers.

    With the defaults (1 req/s per worker over 15 minutes) this is
    ``concurrency * 900``.
    """

    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    return max(1, int(concurrency * requests_per_second_per_worker * window_seconds))


class InMemoryQuotaGuard(AbstractQuotaGuard):
    """Counter of upstream requests, zeroed every ``window_seconds``.

    ``check()`` fails once the counter exceeds ``limit``. A transport failure
    trips the guard: the counter is set to ``sys.maxsize`` so nothing more is
    sent until the next reset.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the guard.

        Args:
            limit: Requests allowed per window before checks fail.
            window_seconds: Interval between counter resets.
            clock: Monotonic time source, used for snapshots only.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._count = 0
        self._window_start = clock()
        self._reset_task: asyncio.Task[None] | None = None

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def count(self) -> int:
        return self._count

    @property
    def tripped(self) -> bool:
        return self._count == SATURATED

    def check(self) -> bool:
        return self._count <= self._limit

    def record(self) -> None:
        if self._count < SATURATED:
            self._count += 1

    def trip(self) -> None:
        if not self.tripped:
            logger.warning(
                "quota.tripped",
                extra={"count": self._count, "limit": self._limit},
            )
        self._count = SATURATED

    def reset(self) -> None:
        logger.info(
            "quota.reset",
            extra={
                "count": self._count,
                "limit": self._limit,
                "was_tripped": self.tripped,
            },
        )
        self._count = 0
        self._window_start = self._clock()

    def snapshot(self) -> QuotaSnapshot:
        elapsed = self._clock() - self._window_start
        return QuotaSnapshot(
            count=self._count,
            limit=self._limit,
            remaining=max(0, self._limit - self._count),
            tripped=self.tripped,
            window_seconds=self._window_seconds,
            resets_in_seconds=max(0.0, self._window_seconds - elapsed),
        )

    async def start(self) -> None:
        """Schedule the periodic reset on the running event loop."""

        if self._reset_task is not None and not self._reset_task.done():
            return
        self._window_start = self._clock()
        self._reset_task = asyncio.create_task(self._reset_periodically(), name="quota-reset")

    async def stop(self) -> None:
        task, self._reset_task = self._reset_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _reset_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._window_seconds)
            self.reset()
