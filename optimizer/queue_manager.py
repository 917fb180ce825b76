"""
Queue management module for Catalog Optimizer
Bounded job queue with backpressure and a fixed-size worker pool
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Set

from sqlalchemy.orm import sessionmaker

from .config import QUEUE_MAX_DEPTH, WORKER_POOL_SIZE, WORKER_SHUTDOWN_TIMEOUT_SEC
from .enums import ACTIVE_STATUSES
from .models.job import Job
from .services.orchestrator import JobOrchestrator, JobPayload
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class QueueFullError(Exception):
    pass


class WorkQueue(ABC):
    """Delivers job payloads to workers at least once."""

    @abstractmethod
    def put(self, payload: JobPayload) -> None:
        """Enqueue a payload; raise QueueFullError under backpressure."""

    @abstractmethod
    async def get(self) -> JobPayload:
        """Wait for the next payload."""

    @abstractmethod
    def task_done(self) -> None:
        """Acknowledge the payload last returned by get()."""

    @abstractmethod
    def qsize(self) -> int:
        pass


class InMemoryWorkQueue(WorkQueue):
    """
    asyncio-backed queue. Payloads do not survive a restart on their own;
    `requeue_active_jobs` rebuilds the queue from the jobs table at startup.
    """

    def __init__(self, max_depth: int = QUEUE_MAX_DEPTH):
        self.max_depth = max_depth
        self._queue: Optional[asyncio.Queue] = None

    @property
    def queue(self) -> asyncio.Queue:
        # created lazily so it binds to the running loop
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.max_depth)
        return self._queue

    def put(self, payload: JobPayload) -> None:
        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            prometheus_metrics.increment_queue_drops()
            logger.warning("Queue backpressure - queue full", extra={
                "component": "queue_manager",
                "event": "backpressure",
                "max_depth": self.max_depth
            })
            raise QueueFullError("Job queue is full")
        prometheus_metrics.set_queue_depth(self.qsize())

    async def get(self) -> JobPayload:
        payload = await self.queue.get()
        prometheus_metrics.set_queue_depth(self.qsize())
        return payload

    def task_done(self) -> None:
        self.queue.task_done()

    def qsize(self) -> int:
        return self.queue.qsize()


def requeue_active_jobs(session_factory: sessionmaker, queue: WorkQueue) -> int:
    """Put every PENDING/PROCESSING job back on the queue; returns the count."""
    with session_factory() as db:
        jobs = db.query(Job).filter(Job.status.in_(ACTIVE_STATUSES)).order_by(Job.created_at).all()
    for job in jobs:
        queue.put(JobPayload.from_job(job))
    if jobs:
        logger.info("Re-queued %d active jobs", len(jobs), extra={"component": "queue_manager"})
    return len(jobs)


class WorkerPool:
    """Runs up to `size` jobs concurrently; each worker finishes a job before taking the next."""

    def __init__(self, queue: WorkQueue, orchestrator: JobOrchestrator, size: int = WORKER_POOL_SIZE,
                 shutdown_timeout: float = WORKER_SHUTDOWN_TIMEOUT_SEC):
        self.queue = queue
        self.orchestrator = orchestrator
        self.size = size
        self.shutdown_timeout = shutdown_timeout
        self.workers: List[asyncio.Task] = []
        self._busy: Set[asyncio.Task] = set()

    async def start(self):
        self.orchestrator.stopping = False
        for i in range(self.size):
            self.workers.append(asyncio.create_task(self._worker_loop(i)))
        logger.info("Worker pool started", extra={
            "component": "queue_manager",
            "worker_count": self.size
        })

    async def stop(self):
        """
        Stop all workers. Idle workers are cancelled at once; a worker in a job
        finishes its current item and leaves the job PROCESSING for the next
        start. Workers still busy after `shutdown_timeout` are cancelled.
        """
        self.orchestrator.request_stop()
        for worker in self.workers:
            if worker not in self._busy:
                worker.cancel()
        if self.workers:
            _, pending = await asyncio.wait(self.workers, timeout=self.shutdown_timeout)
            for worker in pending:
                logger.warning("Worker did not stop in %.0fs, cancelling", self.shutdown_timeout,
                               extra={"component": "queue_manager"})
                worker.cancel()
            await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers.clear()
        self._busy.clear()
        logger.info("Worker pool stopped", extra={"component": "queue_manager"})

    async def _worker_loop(self, worker_id: int):
        logger.info("Worker started", extra={
            "component": "queue_manager",
            "worker_id": worker_id
        })
        task = asyncio.current_task()
        while not self.orchestrator.stopping:
            try:
                payload = await self.queue.get()
            except asyncio.CancelledError:
                logger.info("Worker cancelled", extra={
                    "component": "queue_manager",
                    "worker_id": worker_id
                })
                break
            self._busy.add(task)
            try:
                await self.orchestrator.run(payload)
            except asyncio.CancelledError:
                self.queue.task_done()
                raise
            except Exception as e:
                # the orchestrator records job failures itself; this is a bug or a lost database
                logger.error("Worker loop error", extra={
                    "component": "queue_manager",
                    "worker_id": worker_id,
                    "tenant_id": payload.tenant_id,
                    "error": str(e)
                })
                await asyncio.sleep(1)
            finally:
                self._busy.discard(task)
            self.queue.task_done()
