"""
Source Scheduler.

Background timers that periodically admit a "recent" job for every
active source.
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable

from .job_queue import PRIORITY_RECENT, JobKind, ScrapingJob

if TYPE_CHECKING:
    from ..database import Database


logger = logging.getLogger(__name__)


class ScheduleState(str, Enum):
    UNSCHEDULED = "unscheduled"
    STOPPED = "stopped"
    RUNNING = "running"


class SourceTimer:
    """
    Repeating timer for one source.

    The timer owns a single task; whether it is running is read from that
    task, so there is no separate bookkeeping to drift out of sync.
    """

    def __init__(self, source_id: str, interval_minutes: int, tick: Callable[[str], None]):
        self.source_id = source_id
        self.interval_minutes = interval_minutes
        self._tick = tick
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> ScheduleState:
        if self._task is None or self._task.done():
            return ScheduleState.STOPPED
        return ScheduleState.RUNNING

    @property
    def is_running(self) -> bool:
        return self.state == ScheduleState.RUNNING

    def start(self) -> bool:
        """Start the timer. Returns False if it was already running."""
        if self.is_running:
            return False
        self._task = asyncio.create_task(self._loop(), name=f"schedule-{self.source_id}")
        return True

    def stop(self) -> bool:
        """Cancel the timer. Returns False if it was not running."""
        if not self.is_running:
            return False
        self._task.cancel()
        self._task = None
        return True

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval_minutes * 60)
            try:
                self._tick(self.source_id)
            except Exception as e:
                logger.exception(f"Scheduled tick failed for {self.source_id}: {e}")


class SourceScheduler:
    """
    Keeps at most one timer per source.

    Ticks only admit a job; the work happens in the job queue, so timers
    never hold a worker slot.
    """

    def __init__(self, db: "Database", enqueue: Callable[[ScrapingJob], object]):
        self.db = db
        self.enqueue = enqueue
        self._timers: dict[str, SourceTimer] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start_all(self) -> int:
        """Schedule every active source. Returns the number of timers started."""
        if self._running:
            logger.info("Scheduler already running")
            return 0

        self._running = True
        started = 0
        for source in self.db.get_active_sources():
            self.schedule_source(source.id, source.scan_interval)
            started += 1

        logger.info(f"Scheduler started with {started} sources")
        return started

    def stop_all(self) -> None:
        """Cancel and discard every timer. Jobs already admitted keep running."""
        for timer in self._timers.values():
            timer.stop()
        self._timers.clear()
        self._running = False
        logger.info("Scheduler stopped")

    def schedule_source(self, source_id: str, interval_minutes: int) -> SourceTimer:
        """Replace the source's timer with one at the given cadence."""
        self._cancel(source_id)

        timer = SourceTimer(source_id, interval_minutes, self._tick)
        self._timers[source_id] = timer
        if self._running:
            timer.start()
        logger.info(f"Scheduled {source_id} every {interval_minutes} minutes")
        return timer

    def start_source(self, source_id: str) -> bool:
        """
        Resume a paused source, or register an active source that has no timer.

        Returns whether anything changed.
        """
        timer = self._timers.get(source_id)
        if timer is not None:
            changed = timer.start()
            if changed:
                logger.info(f"Resumed schedule for {source_id}")
            return changed

        source = self.db.get_source(source_id)
        if source is None or not source.is_active:
            logger.warning(f"Cannot schedule {source_id}: source not found or inactive")
            return False

        timer = SourceTimer(source_id, source.scan_interval, self._tick)
        self._timers[source_id] = timer
        timer.start()
        logger.info(f"Started schedule for {source_id} every {source.scan_interval} minutes")
        return True

    def pause_source(self, source_id: str) -> bool:
        """Stop a source's timer but keep it registered."""
        timer = self._timers.get(source_id)
        if timer is None:
            return False
        changed = timer.stop()
        if changed:
            logger.info(f"Paused schedule for {source_id}")
        return changed

    def update_interval(self, source_id: str, interval_minutes: int) -> SourceTimer:
        return self.schedule_source(source_id, interval_minutes)

    def remove_source(self, source_id: str) -> bool:
        """Cancel and discard a source's timer."""
        removed = self._cancel(source_id)
        if removed:
            logger.info(f"Removed schedule for {source_id}")
        return removed

    def state(self, source_id: str) -> ScheduleState:
        timer = self._timers.get(source_id)
        return timer.state if timer else ScheduleState.UNSCHEDULED

    def status(self) -> dict:
        return {
            "running": self._running,
            "sources": {
                source_id: {
                    "state": timer.state.value,
                    "interval_minutes": timer.interval_minutes,
                }
                for source_id, timer in self._timers.items()
            },
        }

    def _cancel(self, source_id: str) -> bool:
        timer = self._timers.pop(source_id, None)
        if timer is None:
            return False
        timer.stop()
        return True

    def _tick(self, source_id: str) -> None:
        logger.info(f"Scheduled scrape for {source_id}")
        self.enqueue(ScrapingJob(source_id=source_id, kind=JobKind.RECENT, page=1, priority=PRIORITY_RECENT))
