"""
Job Queue - prioritized scraping jobs processed by a fixed worker pool.

Jobs move through waiting -> active -> completed | failed. Failed
attempts go back to waiting after an exponential backoff until the
attempt cap is reached.
"""

import asyncio
import itertools
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

from ..config import config
from ..exceptions import NON_RETRYABLE_ERRORS, InvalidJobError

logger = logging.getLogger(__name__)

# Higher runs first
PRIORITY_INTERACTIVE = 20
PRIORITY_RECENT = 10
PRIORITY_PAGE_RANGE = 5
PRIORITY_DEFAULT = 0

# Finished jobs kept for get_job() / failed_jobs()
HISTORY_LIMIT = 1000


class JobKind(str, Enum):
    RECENT = "recent"
    FULL_PAGE_RANGE = "full-page-range"
    SINGLE_SERIES = "single-series"
    SINGLE_EPISODE = "single-episode"


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_PRIORITIES = {
    JobKind.RECENT: PRIORITY_RECENT,
    JobKind.FULL_PAGE_RANGE: PRIORITY_PAGE_RANGE,
    JobKind.SINGLE_SERIES: PRIORITY_INTERACTIVE,
    JobKind.SINGLE_EPISODE: PRIORITY_INTERACTIVE,
}


@dataclass
class ScrapingJob:
    """
    One unit of scraping work.

    recent and full-page-range jobs need a page (recent defaults to 1);
    single-series and single-episode jobs need a url.
    """
    source_id: str
    kind: JobKind
    page: int | None = None
    url: str | None = None
    priority: int | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: JobState = JobState.WAITING
    attempts: int = 0
    max_attempts: int | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def __post_init__(self):
        try:
            self.kind = JobKind(self.kind)
        except ValueError:
            raise InvalidJobError(f"Unknown job kind: {self.kind!r}") from None

        if not self.source_id:
            raise InvalidJobError("Job has no source id")

        if self.kind == JobKind.RECENT and self.page is None:
            self.page = 1
        if self.kind in (JobKind.RECENT, JobKind.FULL_PAGE_RANGE):
            if not isinstance(self.page, int) or self.page < 1:
                raise InvalidJobError(f"{self.kind.value} job needs a page >= 1, got {self.page!r}")
        elif not self.url:
            raise InvalidJobError(f"{self.kind.value} job needs a url")

        if self.priority is None:
            self.priority = DEFAULT_PRIORITIES.get(self.kind, PRIORITY_DEFAULT)

    def describe(self) -> str:
        target = f"page {self.page}" if self.page is not None else self.url
        return f"{self.kind.value} {self.source_id} {target}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "kind": self.kind.value,
            "page": self.page,
            "url": self.url,
            "priority": self.priority,
            "state": self.state.value,
            "attempts": self.attempts,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


JobHandler = Callable[[ScrapingJob], Awaitable[Any]]


class JobQueue:
    """
    Priority queue of ScrapingJobs drained by N asyncio workers.

    enqueue() never blocks, so schedulers and management calls can admit
    work from anywhere on the event loop.
    """

    def __init__(
        self,
        handler: JobHandler,
        concurrency: int | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
    ):
        self.handler = handler
        self.concurrency = concurrency or config.WORKER_CONCURRENCY
        self.max_attempts = max_attempts or config.JOB_MAX_ATTEMPTS
        self.backoff_seconds = config.JOB_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds

        self._queue: asyncio.PriorityQueue = asyncio.PriorityQueue()
        self._sequence = itertools.count()
        self._workers: list[asyncio.Task] = []
        self._retries: dict[str, asyncio.TimerHandle] = {}

        self._jobs: dict[str, ScrapingJob] = {}  # waiting or active
        self._finished: deque[ScrapingJob] = deque(maxlen=HISTORY_LIMIT)
        self._completed_count = 0
        self._failed_count = 0
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def is_running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    def start(self) -> None:
        """Spawn the worker pool."""
        if self.is_running:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"scrape-worker-{index}")
            for index in range(self.concurrency)
        ]
        logger.info(f"Job queue started with {self.concurrency} workers")

    async def stop(self) -> None:
        """Cancel workers and pending retries. Only used at shutdown."""
        for handle in self._retries.values():
            handle.cancel()
        self._retries.clear()

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Job queue stopped")

    # ─────────────────────────────────────────────────────────────
    # Admission
    # ─────────────────────────────────────────────────────────────

    def enqueue(self, job: ScrapingJob) -> ScrapingJob:
        """Admit a job. Higher priority first, FIFO among equals."""
        if job.max_attempts is None:
            job.max_attempts = self.max_attempts
        job.state = JobState.WAITING
        self._jobs[job.id] = job
        self._drained.clear()
        self._put(job)
        logger.info(f"Job enqueued: {job.describe()} (priority {job.priority}, id {job.id})")
        return job

    def enqueue_page_range(
        self,
        source_id: str,
        start: int,
        end: int,
        priority: int = PRIORITY_PAGE_RANGE,
    ) -> list[ScrapingJob]:
        """Admit one full-page-range job per page in [start, end]."""
        if start < 1 or end < start:
            raise InvalidJobError(f"Invalid page range {start}-{end}")
        return [
            self.enqueue(ScrapingJob(source_id=source_id, kind=JobKind.FULL_PAGE_RANGE, page=page, priority=priority))
            for page in range(start, end + 1)
        ]

    def _put(self, job: ScrapingJob) -> None:
        self._queue.put_nowait((-job.priority, next(self._sequence), job))

    # ─────────────────────────────────────────────────────────────
    # Inspection
    # ─────────────────────────────────────────────────────────────

    def snapshot(self) -> dict[str, int]:
        """Point-in-time job counts per state."""
        waiting = sum(1 for job in self._jobs.values() if job.state == JobState.WAITING)
        return {
            "waiting": waiting,
            "active": len(self._jobs) - waiting,
            "completed": self._completed_count,
            "failed": self._failed_count,
        }

    def get_job(self, job_id: str) -> ScrapingJob | None:
        if job_id in self._jobs:
            return self._jobs[job_id]
        return next((job for job in self._finished if job.id == job_id), None)

    def failed_jobs(self) -> list[ScrapingJob]:
        return [job for job in self._finished if job.state == JobState.FAILED]

    async def join(self) -> None:
        """Wait until every admitted job has completed or failed."""
        await self._drained.wait()

    # ─────────────────────────────────────────────────────────────
    # Workers
    # ─────────────────────────────────────────────────────────────

    async def _worker(self, index: int) -> None:
        while True:
            _, _, job = await self._queue.get()
            try:
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: ScrapingJob) -> None:
        job.state = JobState.ACTIVE
        job.attempts += 1
        job.started_at = datetime.now()
        logger.info(f"Processing job {job.id}: {job.describe()} (attempt {job.attempts}/{job.max_attempts})")

        try:
            await self.handler(job)
        except NON_RETRYABLE_ERRORS as e:
            logger.error(f"Job {job.id} failed permanently: {e}")
            self._finish(job, JobState.FAILED, str(e))
        except Exception as e:
            if job.attempts >= job.max_attempts:
                logger.error(f"Job {job.id} failed after {job.attempts} attempts: {e}")
                self._finish(job, JobState.FAILED, str(e))
            else:
                delay = self.backoff_seconds * 2 ** (job.attempts - 1)
                logger.warning(f"Job {job.id} attempt {job.attempts} failed: {e}; retrying in {delay:.1f}s")
                job.error = str(e)
                job.state = JobState.WAITING
                self._schedule_retry(job, delay)
        else:
            logger.info(f"Job {job.id} completed: {job.describe()}")
            self._finish(job, JobState.COMPLETED)

    def _schedule_retry(self, job: ScrapingJob, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._retries[job.id] = loop.call_later(delay, self._requeue, job)

    def _requeue(self, job: ScrapingJob) -> None:
        self._retries.pop(job.id, None)
        self._put(job)

    def _finish(self, job: ScrapingJob, state: JobState, error: str | None = None) -> None:
        job.state = state
        job.error = error
        job.finished_at = datetime.now()
        self._jobs.pop(job.id, None)
        self._finished.append(job)
        if state == JobState.COMPLETED:
            self._completed_count += 1
        else:
            self._failed_count += 1
        if not self._jobs:
            self._drained.set()
