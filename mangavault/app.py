"""
Scraper runtime.

Wires the database, browser, image storage, proxy rotation, job queue
and scheduler together and exposes the management operations:
- Jobs: enqueue, page ranges, queue snapshot
- Scheduler: start/stop all, per-source start/pause/interval/remove,
  source activation
- Proxies: statistics, manual rotation, failure reset
"""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .browser import BrowserManager
from .config import config
from .database import Database
from .exceptions import ConfigurationError
from .services import (
    ImageStorage,
    JobKind,
    JobQueue,
    ProxyService,
    ScrapingJob,
    ScrapingService,
    SourceScheduler,
)

logger = logging.getLogger(__name__)


class Runtime:
    """All long-lived components of one scraper process."""

    def __init__(
        self,
        db: Database | None = None,
        browser: BrowserManager | None = None,
        images: ImageStorage | None = None,
        proxies: ProxyService | None = None,
        concurrency: int | None = None,
    ):
        self.db = db or Database(config.DB_PATH)
        self.browser = browser or BrowserManager()
        self.images = images or ImageStorage()
        self.proxies = proxies or ProxyService.from_env(config.PROXY_DEFAULT, config.PROXY_LIST)

        self.scraper = ScrapingService(self.db, self.browser, self.images, self.proxies)
        self.queue = JobQueue(self.scraper.process_job, concurrency=concurrency)
        self.scheduler = SourceScheduler(self.db, self.queue.enqueue)

    async def start(self, auto_schedule: bool | None = None) -> None:
        """Start the workers and, if enabled, the scheduler."""
        self.queue.start()

        auto_schedule = config.AUTO_START_SCHEDULER if auto_schedule is None else auto_schedule
        if auto_schedule:
            self.scheduler.start_all()
        else:
            logger.info("Scheduler auto-start is disabled")

    async def stop(self) -> None:
        """Stop everything and release the browser and HTTP session."""
        self.scheduler.stop_all()
        await self.queue.stop()

        try:
            await self.browser.stop()
        except Exception as e:
            logger.warning(f"Error stopping browser: {e}")
        await self.images.close()

    @asynccontextmanager
    async def running(self, auto_schedule: bool | None = None) -> AsyncIterator["Runtime"]:
        await self.start(auto_schedule)
        try:
            yield self
        finally:
            await self.stop()

    # ─────────────────────────────────────────────────────────────
    # Jobs
    # ─────────────────────────────────────────────────────────────

    def enqueue_job(
        self,
        source_id: str,
        kind: JobKind | str,
        page: int | None = None,
        url: str | None = None,
        priority: int | None = None,
    ) -> ScrapingJob:
        """Admit a job. Raises InvalidJobError for a malformed description."""
        job = ScrapingJob(source_id=source_id, kind=kind, page=page, url=url, priority=priority)
        return self.queue.enqueue(job)

    def enqueue_page_range(self, source_id: str, start: int, end: int) -> list[ScrapingJob]:
        return self.queue.enqueue_page_range(source_id, start, end)

    def get_queue_snapshot(self) -> dict[str, int]:
        return self.queue.snapshot()

    # ─────────────────────────────────────────────────────────────
    # Scheduler
    # ─────────────────────────────────────────────────────────────

    def start_scheduler_all(self) -> int:
        return self.scheduler.start_all()

    def stop_scheduler_all(self) -> None:
        self.scheduler.stop_all()

    def start_source(self, source_id: str) -> bool:
        return self.scheduler.start_source(source_id)

    def pause_source(self, source_id: str) -> bool:
        return self.scheduler.pause_source(source_id)

    def update_interval(self, source_id: str, minutes: int) -> None:
        """Persist a new scan interval and reschedule the source if it is active."""
        if minutes < 1:
            raise ValueError(f"Scan interval must be at least 1 minute, got {minutes}")
        source = self.db.get_source(source_id)
        if source is None:
            raise ConfigurationError(f"Source {source_id} not found")
        self.db.update_source_interval(source_id, minutes)
        if source.is_active:
            self.scheduler.update_interval(source_id, minutes)
        else:
            self.scheduler.remove_source(source_id)

    def set_source_active(self, source_id: str, active: bool) -> None:
        """
        Persist a source's active flag and carry it over to the scheduler.

        Activating schedules the source when the scheduler is running;
        deactivating discards its timer.
        """
        if self.db.get_source(source_id) is None:
            raise ConfigurationError(f"Source {source_id} not found")
        self.db.set_source_active(source_id, active)
        if not active:
            self.scheduler.remove_source(source_id)
        elif self.scheduler.is_running:
            self.scheduler.start_source(source_id)
        logger.info(f"Source {source_id} {'activated' if active else 'deactivated'}")

    def remove_source(self, source_id: str) -> bool:
        return self.scheduler.remove_source(source_id)

    def get_scheduler_status(self) -> dict:
        return self.scheduler.status()

    # ─────────────────────────────────────────────────────────────
    # Proxies
    # ─────────────────────────────────────────────────────────────

    def get_proxy_stats(self) -> list[dict]:
        return self.proxies.get_stats()

    def rotate_proxy_manually(self) -> dict:
        proxy = self.proxies.rotate("manual")
        return {"label": proxy.label, "host": proxy.host, "port": proxy.port}

    def reset_failed_proxies(self) -> None:
        self.proxies.reset_failed()


async def serve(runtime: Runtime | None = None) -> None:
    """Run the scraper until SIGINT/SIGTERM."""
    runtime = runtime or Runtime()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    async with runtime.running():
        sources = runtime.db.get_active_sources()
        logger.info(f"Scraper running with {len(sources)} active sources")
        await stop_event.wait()
        logger.info("Shutting down")
