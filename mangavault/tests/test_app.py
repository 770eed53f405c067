"""
Tests for the runtime management operations, seeding and the CLI.
"""

import argparse
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeBrowser, make_source
from mangavault.__main__ import build_parser, main, parse_page_range
from mangavault.app import Runtime
from mangavault.config import config
from mangavault.database.models import ProxyEndpoint
from mangavault.exceptions import ConfigurationError, InvalidJobError
from mangavault.seed import SEED_SOURCES, seed_sources, source_id_from_domain
from mangavault.services import JobKind, ProxyService, ScheduleState


@pytest.fixture
def runtime(test_db, storage):
    test_db.add_source(make_source("themesia", id="alpha", scan_interval=30))
    test_db.add_source(make_source("madara", id="beta", is_active=False))
    proxies = ProxyService([
        ProxyEndpoint(host="10.0.0.1", port=8001, label="Proxy 1"),
        ProxyEndpoint(host="10.0.0.2", port=8002, label="Proxy 2"),
    ])
    return Runtime(db=test_db, browser=FakeBrowser(), images=storage, proxies=proxies, concurrency=1)


class TestRuntimeJobs:
    """Tests for job management."""

    def test_enqueue_job(self, runtime):
        job = runtime.enqueue_job("alpha", "single-series", url="https://site.test/manga/x/")

        assert job.kind == JobKind.SINGLE_SERIES
        assert job.priority == 20
        assert runtime.get_queue_snapshot() == {"waiting": 1, "active": 0, "completed": 0, "failed": 0}

    def test_enqueue_invalid_job(self, runtime):
        with pytest.raises(InvalidJobError):
            runtime.enqueue_job("alpha", JobKind.SINGLE_EPISODE)

    def test_enqueue_page_range(self, runtime):
        jobs = runtime.enqueue_page_range("alpha", 3, 5)
        assert [job.page for job in jobs] == [3, 4, 5]
        assert runtime.get_queue_snapshot()["waiting"] == 3

    @pytest.mark.asyncio
    async def test_job_for_inactive_source_fails_without_retry(self, runtime):
        async with runtime.running(auto_schedule=False):
            job = runtime.enqueue_job("beta", JobKind.RECENT)
            await runtime.queue.join()

        assert job.attempts == 1
        assert runtime.get_queue_snapshot()["failed"] == 1


class TestRuntimeScheduler:
    """Tests for scheduler management."""

    @pytest.mark.asyncio
    async def test_auto_start_schedules_active_sources(self, runtime):
        async with runtime.running(auto_schedule=True):
            status = runtime.get_scheduler_status()
            assert status["running"] is True
            assert status["sources"] == {"alpha": {"state": "running", "interval_minutes": 30}}

        assert runtime.get_scheduler_status()["running"] is False

    @pytest.mark.asyncio
    async def test_scheduler_without_auto_start(self, runtime):
        async with runtime.running(auto_schedule=False):
            assert runtime.get_scheduler_status()["running"] is False

            assert runtime.start_scheduler_all() == 1
            assert runtime.pause_source("alpha") is True
            assert runtime.scheduler.state("alpha") == ScheduleState.STOPPED
            assert runtime.start_source("alpha") is True

            runtime.stop_scheduler_all()
            assert runtime.scheduler.state("alpha") == ScheduleState.UNSCHEDULED

    @pytest.mark.asyncio
    async def test_update_interval_persists_and_reschedules(self, runtime, test_db):
        async with runtime.running(auto_schedule=True):
            runtime.update_interval("alpha", 5)

            assert test_db.get_source("alpha").scan_interval == 5
            assert runtime.get_scheduler_status()["sources"]["alpha"] == {"state": "running", "interval_minutes": 5}

    @pytest.mark.asyncio
    async def test_update_interval_on_inactive_source_starts_no_timer(self, runtime, test_db):
        async with runtime.running(auto_schedule=True):
            runtime.update_interval("beta", 5)

            assert test_db.get_source("beta").scan_interval == 5
            assert runtime.scheduler.state("beta") == ScheduleState.UNSCHEDULED

    @pytest.mark.asyncio
    async def test_activating_source_schedules_it(self, runtime, test_db):
        async with runtime.running(auto_schedule=True):
            runtime.set_source_active("beta", True)

            assert test_db.get_source("beta").is_active
            assert runtime.scheduler.state("beta") == ScheduleState.RUNNING

    @pytest.mark.asyncio
    async def test_deactivating_source_discards_timer(self, runtime, test_db):
        async with runtime.running(auto_schedule=True):
            runtime.set_source_active("alpha", False)

            assert not test_db.get_source("alpha").is_active
            assert runtime.scheduler.state("alpha") == ScheduleState.UNSCHEDULED

    def test_activating_with_scheduler_stopped_only_persists(self, runtime, test_db):
        runtime.set_source_active("beta", True)

        assert test_db.get_source("beta").is_active
        assert runtime.scheduler.state("beta") == ScheduleState.UNSCHEDULED

    def test_set_active_unknown_source(self, runtime):
        with pytest.raises(ConfigurationError):
            runtime.set_source_active("missing", True)

    def test_update_interval_validation(self, runtime):
        with pytest.raises(ValueError):
            runtime.update_interval("alpha", 0)
        with pytest.raises(ConfigurationError):
            runtime.update_interval("missing", 10)

    @pytest.mark.asyncio
    async def test_remove_source(self, runtime):
        async with runtime.running(auto_schedule=True):
            assert runtime.remove_source("alpha") is True
            assert runtime.scheduler.state("alpha") == ScheduleState.UNSCHEDULED


class TestRuntimeProxies:
    """Tests for proxy management."""

    def test_rotate_manually(self, runtime):
        rotated = runtime.rotate_proxy_manually()
        assert rotated == {"label": "Proxy 2", "host": "10.0.0.2", "port": 8002}
        assert [s["is_current"] for s in runtime.get_proxy_stats()] == [False, True]

    def test_reset_failed(self, runtime):
        runtime.proxies.mark_failed(runtime.proxies.current, "timeout")
        runtime.reset_failed_proxies()
        assert not any(s["is_failed"] for s in runtime.get_proxy_stats())


class TestSeed:
    """Tests for the built-in source catalogue."""

    def test_source_id_from_domain(self):
        assert source_id_from_domain("https://www.sunsetmanga.com.tr") == "www-sunsetmanga-com-tr"
        assert source_id_from_domain("http://adumanga.com") == "adumanga-com"

    def test_seed_inserts_inactive_sources_once(self, test_db):
        expected = sum(len(entries) for entries in SEED_SOURCES.values())

        assert seed_sources(test_db) == expected
        assert seed_sources(test_db) == 0

        sources = test_db.get_sources()
        assert len(sources) == expected
        assert not any(s.is_active for s in sources)
        assert {s.theme for s in sources} == {"themesia", "madara", "uzay"}

    def test_seed_keeps_existing_sources(self, test_db):
        test_db.add_source(make_source("themesia", id="adumanga-com", name="Custom", is_active=True))
        seed_sources(test_db)
        assert test_db.get_source("adumanga-com").name == "Custom"
        assert test_db.get_source("adumanga-com").is_active


class TestCli:
    """Tests for argument parsing and commands."""

    def test_parse_page_range(self):
        assert parse_page_range("3-5") == (3, 5)
        assert parse_page_range("4") == (4, 4)

    @pytest.mark.parametrize("value", ["0-2", "5-3", "a-b"])
    def test_parse_page_range_rejects(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_page_range(value)

    def test_scrape_arguments(self):
        args = build_parser().parse_args(["scrape", "adumanga-com", "--pages", "3-5"])
        assert args.command == "scrape"
        assert args.source_id == "adumanga-com"
        assert args.pages == (3, 5)

    def test_scrape_targets_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["scrape", "x", "--pages", "1-2", "--series", "https://site.test/"])

    def test_seed_command(self, temp_db_path, capsys):
        with patch.object(config, "DB_PATH", temp_db_path), \
             patch("mangavault.__main__.configure_logging"):
            assert main(["seed"]) == 0

        assert "Added" in capsys.readouterr().out

    def test_scrape_unknown_source(self, temp_db_path):
        with patch.object(config, "DB_PATH", temp_db_path), \
             patch("mangavault.__main__.configure_logging"):
            assert main(["scrape", "missing"]) == 1

    def test_scrape_runs_job_and_waits(self, temp_db_path, test_db, capsys):
        test_db.add_source(make_source("themesia", id="alpha"))

        with patch.object(config, "DB_PATH", temp_db_path), \
             patch("mangavault.__main__.configure_logging"), \
             patch("mangavault.__main__.Runtime") as runtime_class:
            runtime = runtime_class.return_value
            runtime.running.return_value.__aenter__ = AsyncMock(return_value=runtime)
            runtime.running.return_value.__aexit__ = AsyncMock(return_value=False)
            runtime.queue.join = AsyncMock()
            runtime.queue.failed_jobs.return_value = []
            runtime.get_queue_snapshot.return_value = {"waiting": 0, "active": 0, "completed": 1, "failed": 0}

            assert main(["scrape", "alpha", "--series", "https://site.test/manga/x/"]) == 0

        runtime.enqueue_job.assert_called_once_with("alpha", JobKind.SINGLE_SERIES, url="https://site.test/manga/x/")
        assert '"completed": 1' in capsys.readouterr().out
