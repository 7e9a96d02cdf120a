"""
Embedding Queue
===============

Deduplicating, bounded-concurrency queue for embedding (re)computation.

One queue is built per process (in the application lifespan) and handed to
whoever needs to enqueue. Per entity the job moves through:

    absent -> pending -> running -> done
                                 -> pending   (transient failure, retried)
                                 -> failed    (terminal, key released)

While a key is pending or running, ``enqueue`` for it is a no-op. The
worker reads the entity text when the job runs, not when it was enqueued.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ticket_routing.config import JobState
from ticket_routing.core import ConfigurationException, EmbeddingException, ValidationException
from ticket_routing.infrastructure.embeddings import IEmbeddingProvider
from ticket_routing.routing.application.services import IVectorStoreAdapter
from ticket_routing.routing.domain import EmbeddingJob, EntityKey, utcnow
from ticket_routing.shared.infrastructure.grafana import GrafanaOTLPExporter
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class QueueStatus:
    """Snapshot of the queue for the admin endpoint."""
    queue_length: int
    in_flight: int
    running: int
    retrying: int
    workers: int
    processing: bool
    succeeded: int
    failed: int
    coalesced: int


class EmbeddingQueue:
    """
    Worker pool that keeps stored vectors in line with entity text.

    ``enqueue`` never blocks. A failing job is retried with exponential
    backoff without holding a worker slot, and one entity's failure never
    stalls the others.
    """

    def __init__(
        self,
        store: IVectorStoreAdapter,
        provider: IEmbeddingProvider,
        workers: int = 3,
        max_retries: int = 3,
        retry_backoff_seconds: float = 1.0,
        clock: Callable[[], datetime] = utcnow,
        metrics_exporter: Optional[GrafanaOTLPExporter] = None
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")

        self._store = store
        self._provider = provider
        self._worker_count = workers
        self._max_retries = max_retries
        self._retry_backoff_seconds = retry_backoff_seconds
        self._clock = clock
        self._metrics = metrics_exporter

        self._queue: asyncio.Queue[Optional[EmbeddingJob]] = asyncio.Queue()
        self._states: Dict[EntityKey, str] = {}
        self._retries: Dict[EntityKey, asyncio.TimerHandle] = {}
        self._lock = threading.Lock()
        self._idle = asyncio.Event()
        self._idle.set()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._workers: List[asyncio.Task] = []
        self._stopping = False

        self._succeeded = 0
        self._failed = 0
        self._coalesced = 0

    # ========== Producer side ==========

    def enqueue(self, kind: str, entity_id: str) -> bool:
        """
        Schedule an embedding job for an entity.

        Returns:
            True if a new job was scheduled, False if one for the same entity
            was already pending or running
        """
        key = EntityKey(kind, str(entity_id))

        with self._lock:
            if key in self._states:
                self._coalesced += 1
                logger.debug("Embedding job coalesced", extra={"kind": kind, "entity_id": key.entity_id})
                return False
            self._states[key] = JobState.PENDING

        job = EmbeddingJob(key=key, enqueued_at=self._clock())
        self._submit(job)
        logger.info("Embedding job scheduled", extra={"kind": kind, "entity_id": key.entity_id})
        return True

    def _submit(self, job: EmbeddingJob) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed() and not self._on_loop(loop):
            loop.call_soon_threadsafe(self._put, job)
        else:
            self._put(job)

    @staticmethod
    def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    def _put(self, job: EmbeddingJob) -> None:
        self._idle.clear()
        self._queue.put_nowait(job)

    def state_of(self, kind: str, entity_id: str) -> Optional[str]:
        """Current job state for an entity, or None when nothing is outstanding."""
        with self._lock:
            return self._states.get(EntityKey(kind, str(entity_id)))

    # ========== Lifecycle ==========

    async def start(self) -> None:
        """Start the worker tasks on the running loop."""
        if self._workers:
            logger.warning("Embedding queue already running")
            return

        self._loop = asyncio.get_running_loop()
        self._stopping = False
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"embedding-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("Embedding queue started", extra={"workers": self._worker_count})

    async def stop(self, drain: bool = False) -> None:
        """
        Stop the workers.

        Running jobs always finish. With ``drain`` the pending jobs run first;
        otherwise they are dropped. Scheduled retries are dropped either way.
        """
        if not self._workers:
            return

        self._stopping = True
        self._cancel_retries()
        if not drain:
            self.clear()

        for _ in self._workers:
            self._queue.put_nowait(None)
        await asyncio.gather(*self._workers)

        self._workers = []
        logger.info("Embedding queue stopped")

    async def join(self) -> None:
        """Wait until no job is pending, running or waiting for a retry."""
        await self._idle.wait()

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    # ========== Admin ==========

    def clear(self) -> int:
        """
        Drop every pending job that is not running.

        Returns:
            Number of jobs dropped
        """
        dropped = 0
        while True:
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if job is None:
                continue
            self._release(job.key)
            dropped += 1

        dropped += self._cancel_retries()
        logger.info("Embedding queue cleared", extra={"dropped": dropped})
        return dropped

    def get_status(self) -> QueueStatus:
        with self._lock:
            states = list(self._states.values())
            retrying = len(self._retries)
        running = sum(1 for state in states if state == JobState.RUNNING)
        return QueueStatus(
            queue_length=self._queue.qsize(),
            in_flight=len(states),
            running=running,
            retrying=retrying,
            workers=len(self._workers),
            processing=running > 0,
            succeeded=self._succeeded,
            failed=self._failed,
            coalesced=self._coalesced,
        )

    # ========== Worker side ==========

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    return
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: EmbeddingJob) -> None:
        with self._lock:
            self._states[job.key] = JobState.RUNNING
        job.attempts += 1
        start_time = time.perf_counter()
        context = {"kind": job.kind, "entity_id": job.entity_id, "attempt": job.attempts}

        try:
            text = await self._store.get_text(job.kind, job.entity_id)
            if text is None:
                logger.info("Entity no longer exists, embedding skipped", extra=context)
                self._release(job.key)
                return

            vector = await self._provider.embed(text)
            await self._store.set_vector(job.kind, job.entity_id, vector, self._clock())

        except Exception as e:
            latency_ms = int((time.perf_counter() - start_time) * 1000)
            if self._is_retryable(e) and job.attempts <= self._max_retries and not self._stopping:
                delay = self._retry_backoff_seconds * (2 ** (job.attempts - 1))
                logger.warning(
                    "Embedding job failed, retrying",
                    extra={**context, "error": str(e), "retry_in_seconds": delay}
                )
                self._schedule_retry(job, delay)
                return

            self._failed += 1
            logger.error(
                "Embedding job failed",
                extra={**context, "error": str(e), "error_type": type(e).__name__}
            )
            self._release(job.key)
            await self._export(job, JobState.FAILED, latency_ms)
            return

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        self._succeeded += 1
        logger.info("Embedding stored", extra={**context, "latency_ms": latency_ms})
        self._release(job.key)
        await self._export(job, JobState.DONE, latency_ms)

    @staticmethod
    def _is_retryable(error: Exception) -> bool:
        if isinstance(error, (ConfigurationException, ValidationException)):
            return False
        if isinstance(error, EmbeddingException):
            return error.retryable
        return True

    def _schedule_retry(self, job: EmbeddingJob, delay: float) -> None:
        with self._lock:
            self._states[job.key] = JobState.PENDING
            handle = asyncio.get_running_loop().call_later(delay, self._retry, job)
            self._retries[job.key] = handle

    def _retry(self, job: EmbeddingJob) -> None:
        with self._lock:
            self._retries.pop(job.key, None)
        if self._stopping:
            self._release(job.key)
            return
        self._put(job)

    def _cancel_retries(self) -> int:
        with self._lock:
            handles = list(self._retries.items())
            self._retries.clear()
        for key, handle in handles:
            handle.cancel()
            self._release(key)
        return len(handles)

    def _release(self, key: EntityKey) -> None:
        with self._lock:
            self._states.pop(key, None)
            idle = not self._states
        if idle:
            self._idle.set()

    async def _export(self, job: EmbeddingJob, status: str, latency_ms: int) -> None:
        if self._metrics is None or not self._metrics.is_enabled():
            return
        # Metrics never affect the job or the worker that ran it
        try:
            await self._metrics.export_embedding_metrics(
                kind=job.kind,
                status=status,
                latency_ms=latency_ms,
                attempts=job.attempts,
            )
        except Exception as e:
            logger.exception(
                "Embedding metrics export failed",
                extra={"kind": job.kind, "entity_id": job.entity_id, "error": str(e)}
            )
