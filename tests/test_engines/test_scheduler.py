"""Test recurring tasks and the per-workspace sync scheduler."""

import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest
from conftest import WORKSPACE

from semantic_publisher.config.settings import (
    AutoSyncSettings,
    SiteConfig,
    SyncInterval,
)
from semantic_publisher.engines.scheduler import RecurringTask, SyncScheduler
from semantic_publisher.engines.sync_engine import SyncEngine
from semantic_publisher.errors import SyncInProgressError
from semantic_publisher.models import SyncStatus, utc_now
from semantic_publisher.services.config_store import JsonSettingsStore


def with_auto_sync(site_config, enabled=True, interval=SyncInterval.HOURLY):
    auto_sync = AutoSyncSettings(enabled=enabled, interval=interval)
    return site_config.model_copy(update={"auto_sync": auto_sync})


@pytest.fixture
def scheduler(repository, store):
    scheduler = SyncScheduler(SyncEngine(repository, store), store)
    yield scheduler
    scheduler.shutdown()


class TestRecurringTask:
    """Test timer-driven recurring tasks."""

    def test_recurring_task_when_started_fires_repeatedly(self):
        """Test a task re-arms itself after each run."""
        calls = []
        fired_twice = threading.Event()

        def tick():
            calls.append(utc_now())
            if len(calls) >= 2:
                fired_twice.set()

        task = RecurringTask("tick", 0.01, tick)
        task.start()
        try:
            assert fired_twice.wait(timeout=5)
        finally:
            task.cancel()

        assert len(calls) >= 2

    def test_recurring_task_when_cancelled_is_inactive_without_next_run(self):
        """Test cancelling clears the next run and stops the task."""
        task = RecurringTask("idle", 3600, Mock())
        task.start()

        assert task.active is True
        assert task.next_run_at is not None

        task.cancel()

        assert task.active is False
        assert task.next_run_at is None
        task.function.assert_not_called()


class TestSyncScheduler:
    """Test installing and removing workspace sync jobs."""

    def test_job_name_when_given_workspace_prefixes_identifier(self):
        """Test job names are derived from the workspace id."""
        assert SyncScheduler.job_name("abc") == "site-sync-abc"

    def test_start_when_hourly_schedules_job_one_interval_ahead(self, scheduler):
        """Test an hourly job is due roughly one hour from now."""
        assert scheduler.start(WORKSPACE, SyncInterval.HOURLY) is True

        next_run = scheduler.next_run_time(WORKSPACE)
        assert scheduler.is_scheduled(WORKSPACE)
        assert timedelta(minutes=59) < next_run - utc_now() <= timedelta(hours=1)

    def test_start_when_manual_removes_existing_job(self, scheduler):
        """Test the manual interval leaves no job behind."""
        scheduler.start(WORKSPACE, SyncInterval.DAILY)

        assert scheduler.start(WORKSPACE, SyncInterval.MANUAL) is False
        assert not scheduler.is_scheduled(WORKSPACE)
        assert scheduler.next_run_time(WORKSPACE) is None

    def test_start_when_called_twice_keeps_single_job(self, scheduler):
        """Test rescheduling replaces rather than duplicates a job."""
        scheduler.start(WORKSPACE, SyncInterval.HOURLY)
        scheduler.start(WORKSPACE, SyncInterval.DAILY)

        assert scheduler.scheduled_workspaces() == [WORKSPACE]
        remaining = scheduler.next_run_time(WORKSPACE) - utc_now()
        assert remaining > timedelta(hours=23)

    def test_stop_when_no_job_returns_false(self, scheduler):
        """Test stopping an unscheduled workspace is a no-op."""
        assert scheduler.stop("unknown") is False

    @pytest.mark.parametrize(
        "enabled,auto_enabled,interval",
        [
            (False, True, SyncInterval.HOURLY),
            (True, False, SyncInterval.HOURLY),
            (True, True, SyncInterval.MANUAL),
        ],
    )
    def test_update_schedule_when_not_fully_enabled_removes_job(
        self, scheduler, site_config, enabled, auto_enabled, interval
    ):
        """Test jobs require publishing, auto-sync and a timed interval."""
        scheduler.start(WORKSPACE, SyncInterval.HOURLY)
        config = with_auto_sync(site_config, auto_enabled, interval)
        config = config.model_copy(update={"enabled": enabled})

        assert scheduler.update_schedule(WORKSPACE, config) is False
        assert not scheduler.is_scheduled(WORKSPACE)

    def test_update_schedule_when_config_missing_removes_job(self, scheduler):
        """Test a deleted configuration removes the job."""
        scheduler.start(WORKSPACE, SyncInterval.HOURLY)

        assert scheduler.update_schedule(WORKSPACE, None) is False
        assert scheduler.scheduled_workspaces() == []

    def test_update_schedule_when_fully_enabled_installs_job(
        self, scheduler, site_config
    ):
        """Test an enabled hourly configuration is scheduled."""
        config = with_auto_sync(site_config)

        assert scheduler.update_schedule(WORKSPACE, config) is True
        assert scheduler.is_scheduled(WORKSPACE)

    def test_initialize_when_store_has_mixed_workspaces_schedules_enabled_ones(
        self, repository, site_config
    ):
        """Test startup scheduling from persisted configurations."""
        store = JsonSettingsStore()
        store.save_config("hourly", with_auto_sync(site_config))
        manual = with_auto_sync(site_config, True, SyncInterval.MANUAL)
        store.save_config("manual", manual)
        store.save_config("off", SiteConfig())
        scheduler = SyncScheduler(SyncEngine(repository, store), store)

        try:
            assert scheduler.initialize() == 1
            assert scheduler.scheduled_workspaces() == ["hourly"]
        finally:
            scheduler.shutdown()

    def test_shutdown_when_jobs_installed_cancels_all(self, scheduler):
        """Test shutdown removes every job."""
        scheduler.start("a", SyncInterval.HOURLY)
        scheduler.start("b", SyncInterval.DAILY)

        scheduler.shutdown()

        assert scheduler.scheduled_workspaces() == []
        assert not scheduler.is_scheduled("a")


class TestScheduledRuns:
    """Test what happens when a job fires."""

    def _scheduler(self, perform_sync):
        engine = Mock()
        engine.interval_seconds.return_value = 3600
        engine.perform_sync.side_effect = perform_sync
        return SyncScheduler(engine, JsonSettingsStore()), engine

    def test_run_scheduled_sync_when_fired_runs_incremental_sync(self):
        """Test scheduled runs are incremental."""
        result = Mock(sync_id="sync_1_abc", status=SyncStatus.SUCCESS)
        scheduler, engine = self._scheduler(lambda *args, **kwargs: result)

        scheduler._run_scheduled_sync(WORKSPACE)

        engine.perform_sync.assert_called_once_with(WORKSPACE, incremental=True)

    def test_run_scheduled_sync_when_sync_in_flight_skips_silently(self):
        """Test an overlapping trigger is skipped without raising."""
        scheduler, engine = self._scheduler(SyncInProgressError(WORKSPACE))

        scheduler._run_scheduled_sync(WORKSPACE)

        engine.perform_sync.assert_called_once()

    def test_run_scheduled_sync_when_sync_crashes_keeps_timer_thread_alive(self):
        """Test unexpected errors are logged rather than propagated."""
        scheduler, engine = self._scheduler(RuntimeError("disk on fire"))

        scheduler._run_scheduled_sync(WORKSPACE)

        engine.perform_sync.assert_called_once()

    def test_scheduled_job_when_timer_fires_triggers_sync(self, repository, store):
        """Test a short-interval job actually runs a sync."""
        fired = threading.Event()
        engine = SyncEngine(repository, store)
        engine.interval_seconds = Mock(return_value=0.01)
        original = engine.perform_sync

        def perform_sync(workspace_id, incremental=False):
            try:
                return original(workspace_id, incremental=incremental)
            finally:
                fired.set()

        engine.perform_sync = perform_sync
        scheduler = SyncScheduler(engine, store)
        try:
            scheduler.start(WORKSPACE, SyncInterval.HOURLY)
            assert fired.wait(timeout=5)
        finally:
            scheduler.shutdown()

        assert engine.get_sync_history(WORKSPACE)
