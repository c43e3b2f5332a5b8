from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from childwatch.core.logger import get_logger
from childwatch.services.push_dispatcher import get_push_dispatcher

log = get_logger(__name__)


JobCallable = Callable[[], Awaitable[Any]]
DeliveryCallback = Callable[[int], Any]

_STOP = object()


@dataclass
class DeliveryJob:
    job_id: str
    func: JobCallable


@dataclass
class RunnerStats:
    completed: int = 0
    failed: int = 0


class BackgroundTaskRunner:
    """Single-worker queue for push delivery jobs.

    Jobs run one at a time in submission order. A failing job is logged and
    counted; it never stops the worker. `stop()` lets already queued jobs
    finish (up to `drain_timeout` seconds) before cancelling the worker.
    """

    def __init__(self, drain_timeout: float = 5.0) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.drain_timeout = drain_timeout
        self.stats = RunnerStats()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _consume(self) -> None:
        log.info("Delivery worker started")
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    break
                await item.func()
                self.stats.completed += 1
            except Exception:
                self.stats.failed += 1
                log.exception("Delivery job %s failed", item.job_id)
            finally:
                self._queue.task_done()
        log.info("Delivery worker stopped (%d done, %d failed)", self.stats.completed, self.stats.failed)

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._consume())

    async def stop(self) -> None:
        if self._worker is None:
            return
        worker, self._worker = self._worker, None
        await self._queue.put(_STOP)
        try:
            await asyncio.wait_for(worker, timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            log.warning("Delivery worker did not drain in %.1fs; %d job(s) dropped", self.drain_timeout, self.pending)

    async def join(self) -> None:
        """Wait until every queued job has run."""
        await self._queue.join()

    async def submit(self, job_id: str, func: JobCallable) -> None:
        await self._queue.put(DeliveryJob(job_id=job_id, func=func))


_runner: Optional[BackgroundTaskRunner] = None


def get_task_runner() -> BackgroundTaskRunner:
    global _runner
    if _runner is None:
        _runner = BackgroundTaskRunner()
    return _runner


async def enqueue_push(
    notification_id: str,
    tokens: List[str],
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
    on_delivered: Optional[DeliveryCallback] = None,
) -> str:
    """Queue push delivery of one notification to every parent device.

    `on_delivered` receives the number of devices the gateway accepted once
    dispatch has run. Runs inline when the runner is not started (scripts and
    tests without the app lifespan). Returns the job_id.
    """
    job_id = f"push-{notification_id}"

    async def _job() -> None:
        delivered = await get_push_dispatcher().send_many(tokens, title, body, data)
        log.info("Notification %s pushed to %d/%d devices", notification_id, delivered, len(tokens))
        if on_delivered is not None:
            on_delivered(delivered)

    runner = get_task_runner()
    if not runner.running:
        try:
            await _job()
        except Exception:
            log.exception("Push job %s failed", job_id)
        return job_id
    await runner.submit(job_id, _job)
    return job_id
