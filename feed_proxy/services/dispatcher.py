"""Bounded worker pool that serializes calls into the upstream.

A single FIFO queue feeds ``concurrency`` long-lived worker tasks. Each job
is checked against the quota guard, sent through the upstream client
(retry-wrapped when configured) and classified into a ``JobResult``:

- quota exhausted: 429, nothing is sent and nothing is recorded
- upstream answered (any status): status and body passed through
- transport/library failure (``httpx.HTTPError``): quota tripped, 429
- anything else: 500

Cache and counter state is only touched between awaits, so workers never
need a lock while they share the event loop.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from feed_proxy.adapters.quota.base import AbstractQuotaGuard
from feed_proxy.adapters.upstream.base import AbstractUpstreamClient
from feed_proxy.core.errors import DispatcherNotRunningError
from feed_proxy.schemas.proxy import Job, JobResult

logger = logging.getLogger(__name__)

QUOTA_EXHAUSTED = JobResult(status=429)
UNCLASSIFIED_FAILURE = JobResult(status=500)
SHUTTING_DOWN = JobResult(status=503)

_QueueItem = tuple[Job, "asyncio.Future[JobResult]"]


class Dispatcher:
    """Runs upstream jobs with at most ``concurrency`` in flight.

    Jobs start in submission order; they may finish out of order. Every
    submitted job resolves exactly once, including on shutdown (503).
    """

    def __init__(
        self,
        upstream: AbstractUpstreamClient,
        quota: AbstractQuotaGuard,
        *,
        concurrency: int = 1,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        self._upstream = upstream
        self._quota = quota
        self._concurrency = concurrency
        self._queue: asyncio.Queue[_QueueItem] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._in_flight: set[asyncio.Future[JobResult]] = set()

    @property
    def quota(self) -> AbstractQuotaGuard:
        return self._quota

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Jobs queued but not yet picked up by a worker."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self) -> None:
        """Start the quota reset timer and the worker tasks."""

        if self.is_running:
            return

        queue: asyncio.Queue[_QueueItem] = asyncio.Queue()
        self._queue = queue
        await self._quota.start()
        self._workers = [
            asyncio.create_task(self._worker(queue), name=f"dispatcher-worker-{index}")
            for index in range(self._concurrency)
        ]
        logger.info("dispatcher.started", extra={"concurrency": self._concurrency})

    async def stop(self) -> None:
        """Cancel workers and the quota timer; resolve leftover jobs with 503."""

        if not self.is_running:
            return

        workers, self._workers = self._workers, []
        in_flight = len(self._in_flight)
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        await self._quota.stop()

        queued = 0
        if self._queue is not None:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                if not future.done():
                    future.set_result(SHUTTING_DOWN)
                    queued += 1

        logger.info(
            "dispatcher.stopped",
            extra={"cancelled_in_flight": in_flight, "abandoned_queued": queued},
        )

    async def submit(self, job: Job) -> JobResult:
        """Queue ``job`` and wait for its result.

        Raises:
            DispatcherNotRunningError: If the dispatcher has not been started.
        """

        if not self.is_running or self._queue is None:
            raise DispatcherNotRunningError(
                code="dispatcher_not_running",
                message="Dispatcher must be started before jobs are submitted",
            )

        future: asyncio.Future[JobResult] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((job, future))
        logger.debug(
            "dispatch.queued",
            extra={"path": job.path, "pending": self._queue.qsize(), "request_id": job.id},
        )
        return await future

    async def _worker(self, queue: asyncio.Queue[_QueueItem]) -> None:
        while True:
            job, future = await queue.get()
            try:
                if future.done():
                    # Caller went away before the job started
                    logger.debug("dispatch.skipped", extra={"path": job.path, "request_id": job.id})
                    continue

                self._in_flight.add(future)
                try:
                    result = await self.run(job)
                except asyncio.CancelledError:
                    if not future.done():
                        future.set_result(SHUTTING_DOWN)
                    raise
                if not future.done():
                    future.set_result(result)
            finally:
                self._in_flight.discard(future)
                queue.task_done()

    async def run(self, job: Job) -> JobResult:
        """Execute a single job against the upstream and classify the outcome."""

        if not self._quota.check():
            snapshot = self._quota.snapshot()
            logger.warning(
                "dispatch.quota_rejected",
                extra={
                    "path": job.path,
                    "limit": snapshot.limit,
                    "tripped": snapshot.tripped,
                    "resets_in_s": round(snapshot.resets_in_seconds, 1),
                    "request_id": job.id,
                },
            )
            return QUOTA_EXHAUSTED

        self._quota.record()

        try:
            response = await self._upstream.fetch(job.path, params=job.query, request_id=job.id)
        except httpx.HTTPError as exc:
            self._quota.trip()
            logger.warning(
                "upstream.transport_error",
                extra={
                    "path": job.path,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "request_id": job.id,
                },
            )
            return QUOTA_EXHAUSTED
        except Exception as exc:
            logger.error(
                "upstream.unexpected_error",
                extra={
                    "path": job.path,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "request_id": job.id,
                },
                exc_info=True,
            )
            return UNCLASSIFIED_FAILURE

        logger.debug(
            "upstream.responded",
            extra={"path": job.path, "status": response.status, "request_id": job.id},
        )
        return JobResult(status=response.status, data=response.data)
