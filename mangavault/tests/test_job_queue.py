"""
Tests for the job queue: admission, priorities, retries and snapshots.
"""

import asyncio
from unittest.mock import patch

import pytest

from mangavault.exceptions import ConfigurationError, FetchError, InvalidJobError
from mangavault.services.job_queue import (
    PRIORITY_INTERACTIVE,
    PRIORITY_PAGE_RANGE,
    PRIORITY_RECENT,
    JobKind,
    JobQueue,
    JobState,
    ScrapingJob,
)


async def drain(queue: JobQueue, timeout: float = 5.0):
    await asyncio.wait_for(queue.join(), timeout)


class TestScrapingJob:
    """Tests for job validation and defaults."""

    def test_recent_defaults_to_first_page(self):
        job = ScrapingJob(source_id="src", kind=JobKind.RECENT)
        assert job.page == 1
        assert job.priority == PRIORITY_RECENT
        assert job.state == JobState.WAITING

    def test_kind_accepts_string(self):
        job = ScrapingJob(source_id="src", kind="single-series", url="https://site.test/manga/x/")
        assert job.kind == JobKind.SINGLE_SERIES
        assert job.priority == PRIORITY_INTERACTIVE

    def test_explicit_priority_kept(self):
        job = ScrapingJob(source_id="src", kind=JobKind.RECENT, priority=3)
        assert job.priority == 3

    @pytest.mark.parametrize("kwargs", [
        {"kind": "full-page-range"},
        {"kind": "full-page-range", "page": 0},
        {"kind": "single-series"},
        {"kind": "single-episode", "page": 2},
        {"kind": "everything", "page": 1},
    ])
    def test_invalid_jobs_rejected(self, kwargs):
        with pytest.raises(InvalidJobError):
            ScrapingJob(source_id="src", **kwargs)

    def test_invalid_job_is_value_error(self):
        with pytest.raises(ValueError):
            ScrapingJob(source_id="", kind=JobKind.RECENT)


class TestAdmission:
    """Tests for enqueue() and enqueue_page_range()."""

    @pytest.mark.asyncio
    async def test_higher_priority_first_fifo_among_equals(self):
        order = []

        async def handler(job):
            order.append(job.url)

        queue = JobQueue(handler, concurrency=1, max_attempts=1, backoff_seconds=0)
        for name, priority in [("low", 0), ("first-20", 20), ("mid", 10), ("second-20", 20)]:
            queue.enqueue(ScrapingJob(source_id="src", kind=JobKind.SINGLE_SERIES, url=name, priority=priority))

        queue.start()
        try:
            await drain(queue)
        finally:
            await queue.stop()

        assert order == ["first-20", "second-20", "mid", "low"]

    def test_page_range_admits_one_job_per_page(self):
        """A range 3-5 admits three independent jobs."""
        queue = JobQueue(lambda job: None, concurrency=1)
        jobs = queue.enqueue_page_range("src", 3, 5)

        assert [job.page for job in jobs] == [3, 4, 5]
        assert {job.kind for job in jobs} == {JobKind.FULL_PAGE_RANGE}
        assert {job.priority for job in jobs} == {PRIORITY_PAGE_RANGE}
        assert len({job.id for job in jobs}) == 3
        assert queue.snapshot()["waiting"] == 3

    @pytest.mark.parametrize("start,end", [(0, 2), (5, 3)])
    def test_invalid_page_range(self, start, end):
        queue = JobQueue(lambda job: None, concurrency=1)
        with pytest.raises(InvalidJobError):
            queue.enqueue_page_range("src", start, end)

    @pytest.mark.asyncio
    async def test_page_range_jobs_retry_independently(self):
        failed_once = set()

        async def handler(job):
            if job.page == 4 and job.page not in failed_once:
                failed_once.add(job.page)
                raise FetchError(f"page-{job.page}", "timeout")

        queue = JobQueue(handler, concurrency=2, max_attempts=3, backoff_seconds=0.01)
        jobs = queue.enqueue_page_range("src", 3, 5)
        queue.start()
        try:
            await drain(queue)
        finally:
            await queue.stop()

        assert [job.state for job in jobs] == [JobState.COMPLETED] * 3
        assert [job.attempts for job in jobs] == [1, 2, 1]


class TestRetries:
    """Tests for retry and failure handling."""

    @pytest.mark.asyncio
    async def test_transient_failure_retried_until_success(self):
        calls = []

        async def handler(job):
            calls.append(job.attempts)
            if len(calls) < 3:
                raise FetchError("https://site.test", "timeout")

        queue = JobQueue(handler, concurrency=1, max_attempts=3, backoff_seconds=0.01)
        job = queue.enqueue(ScrapingJob(source_id="src", kind=JobKind.RECENT))
        queue.start()
        try:
            await drain(queue)
        finally:
            await queue.stop()

        assert calls == [1, 2, 3]
        assert job.state == JobState.COMPLETED
        assert queue.snapshot() == {"waiting": 0, "active": 0, "completed": 1, "failed": 0}

    @pytest.mark.asyncio
    async def test_exhausted_job_marked_failed(self):
        async def handler(job):
            raise FetchError("https://site.test", "connection refused")

        queue = JobQueue(handler, concurrency=1, max_attempts=3, backoff_seconds=0.01)
        job = queue.enqueue(ScrapingJob(source_id="src", kind=JobKind.RECENT))
        queue.start()
        try:
            await drain(queue)
        finally:
            await queue.stop()

        assert job.state == JobState.FAILED
        assert job.attempts == 3
        assert "connection refused" in job.error
        assert queue.failed_jobs() == [job]
        assert queue.snapshot()["failed"] == 1

    @pytest.mark.asyncio
    async def test_backoff_doubles_per_attempt(self):
        async def handler(job):
            raise FetchError("https://site.test", "timeout")

        queue = JobQueue(handler, concurrency=1, max_attempts=3, backoff_seconds=0.01)
        queue.enqueue(ScrapingJob(source_id="src", kind=JobKind.RECENT))

        with patch.object(queue, "_schedule_retry", wraps=queue._schedule_retry) as schedule:
            queue.start()
            try:
                await drain(queue)
            finally:
                await queue.stop()

        assert [c.args[1] for c in schedule.call_args_list] == [pytest.approx(0.01), pytest.approx(0.02)]

    @pytest.mark.asyncio
    async def test_configuration_error_not_retried(self):
        calls = []

        async def handler(job):
            calls.append(job.id)
            raise ConfigurationError("Source src not found or inactive")

        queue = JobQueue(handler, concurrency=1, max_attempts=3, backoff_seconds=0.01)
        job = queue.enqueue(ScrapingJob(source_id="src", kind=JobKind.RECENT))
        queue.start()
        try:
            await drain(queue)
        finally:
            await queue.stop()

        assert len(calls) == 1
        assert job.state == JobState.FAILED
        assert job.attempts == 1


class TestInspection:
    """Tests for snapshot(), get_job() and lifecycle."""

    @pytest.mark.asyncio
    async def test_snapshot_counts_active_and_waiting(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def handler(job):
            started.set()
            await release.wait()

        queue = JobQueue(handler, concurrency=1, max_attempts=1)
        first = queue.enqueue(ScrapingJob(source_id="src", kind=JobKind.RECENT))
        queue.enqueue(ScrapingJob(source_id="src", kind=JobKind.RECENT, page=2))
        queue.start()
        try:
            await asyncio.wait_for(started.wait(), 5)
            assert queue.snapshot() == {"waiting": 1, "active": 1, "completed": 0, "failed": 0}
            assert queue.get_job(first.id).state == JobState.ACTIVE

            release.set()
            await drain(queue)
            assert queue.snapshot() == {"waiting": 0, "active": 0, "completed": 2, "failed": 0}
            assert queue.get_job(first.id).state == JobState.COMPLETED
        finally:
            await queue.stop()

    def test_unknown_job(self):
        queue = JobQueue(lambda job: None, concurrency=1)
        assert queue.get_job("missing") is None

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        async def handler(job):
            pass

        queue = JobQueue(handler, concurrency=3)
        queue.start()
        assert queue.is_running
        assert len(queue._workers) == 3

        await queue.stop()
        assert not queue.is_running
