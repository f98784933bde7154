"""Per-workspace recurring sync jobs driven by daemon timers.

Each workspace with auto-sync enabled owns one named RecurringTask. Every
timer fires on its own thread, so a long sync in one workspace never delays
the timers of another.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from semantic_publisher.config.settings import SiteConfig, SyncInterval
from semantic_publisher.engines.sync_engine import SyncEngine
from semantic_publisher.errors import SyncInProgressError
from semantic_publisher.models import utc_now
from semantic_publisher.services.config_store import ConfigurationStore


class RecurringTask:
    """Calls a function every ``interval`` seconds until cancelled."""

    def __init__(self, name: str, interval: float, function: Callable[[], None]):
        self.name = name
        self.interval = interval
        self.function = function
        self.next_run_at: datetime | None = None
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._cancelled = False

    def _arm(self) -> None:
        self._timer = threading.Timer(self.interval, self._fire)
        self._timer.name = self.name
        self._timer.daemon = True
        self.next_run_at = utc_now() + timedelta(seconds=self.interval)
        self._timer.start()

    def start(self) -> None:
        with self._lock:
            if not self._cancelled and self._timer is None:
                self._arm()

    def _fire(self) -> None:
        # Re-arm before running so the cadence does not drift with run time
        with self._lock:
            if self._cancelled:
                return
            self._arm()
        self.function()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            self.next_run_at = None
            if self._timer is not None:
                self._timer.cancel()

    @property
    def active(self) -> bool:
        return not self._cancelled and self._timer is not None


class SyncScheduler:
    """Registry of scheduled incremental syncs, one job per workspace."""

    def __init__(self, sync_engine: SyncEngine, store: ConfigurationStore):
        """Initialize scheduler.

        Args:
            sync_engine: Engine that performs the scheduled syncs
            store: Store used to read workspace configurations on startup
        """
        self.sync_engine = sync_engine
        self.store = store
        self._tasks: dict[str, RecurringTask] = {}
        self._lock = threading.RLock()

        self.logger = logging.getLogger("sync_scheduler")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def job_name(workspace_id: str) -> str:
        return f"site-sync-{workspace_id}"

    def start(self, workspace_id: str, interval: SyncInterval) -> bool:
        """Install (or replace) the recurring job of a workspace.

        Args:
            workspace_id: Workspace to schedule
            interval: Cadence; MANUAL removes the job instead

        Returns:
            True if a job is now scheduled
        """
        seconds = self.sync_engine.interval_seconds(SyncInterval(interval))
        with self._lock:
            self.stop(workspace_id)
            if seconds is None:
                return False

            task = RecurringTask(
                self.job_name(workspace_id),
                seconds,
                lambda: self._run_scheduled_sync(workspace_id),
            )
            self._tasks[workspace_id] = task
            task.start()

        self.logger.info(
            f"Scheduled {SyncInterval(interval).value} sync for workspace {workspace_id}"
        )
        return True

    def stop(self, workspace_id: str) -> bool:
        """Remove the job of a workspace, if any.

        Returns:
            True if a job was removed
        """
        with self._lock:
            task = self._tasks.pop(workspace_id, None)
        if task is None:
            return False
        task.cancel()
        self.logger.info(f"Removed scheduled sync for workspace {workspace_id}")
        return True

    def update_schedule(self, workspace_id: str, site_config: SiteConfig | None) -> bool:
        """Reconcile a workspace's job with its configuration.

        The existing job is always removed first; a new one is installed only
        when publishing and auto-sync are enabled with a timed interval.

        Returns:
            True if a job is scheduled afterwards
        """
        with self._lock:
            self.stop(workspace_id)
            if site_config is None or not site_config.enabled:
                return False
            auto_sync = site_config.auto_sync
            if not auto_sync.enabled or auto_sync.interval == SyncInterval.MANUAL:
                return False
            return self.start(workspace_id, auto_sync.interval)

    def initialize(self) -> int:
        """Install jobs for every persisted workspace with auto-sync enabled.

        Returns:
            Number of scheduled workspaces
        """
        scheduled = 0
        for workspace_id in self.store.list_workspace_ids():
            try:
                site_config = self.store.get_config(workspace_id)
            except ValueError as e:
                self.logger.error(f"Invalid configuration for workspace {workspace_id}: {e}")
                continue
            if self.update_schedule(workspace_id, site_config):
                scheduled += 1

        self.logger.info(f"Initialized auto-sync for {scheduled} workspaces")
        return scheduled

    def _run_scheduled_sync(self, workspace_id: str) -> None:
        try:
            result = self.sync_engine.perform_sync(workspace_id, incremental=True)
        except SyncInProgressError as e:
            self.logger.warning(f"Skipping scheduled sync: {e}")
            return
        except Exception:
            self.logger.exception(f"Scheduled sync failed for workspace {workspace_id}")
            return

        self.logger.info(
            f"Scheduled sync {result.sync_id} for workspace {workspace_id} "
            f"finished with status {result.status.value}"
        )

    def is_scheduled(self, workspace_id: str) -> bool:
        with self._lock:
            task = self._tasks.get(workspace_id)
        return task is not None and task.active

    def scheduled_workspaces(self) -> list[str]:
        with self._lock:
            return list(self._tasks)

    def next_run_time(self, workspace_id: str) -> datetime | None:
        with self._lock:
            task = self._tasks.get(workspace_id)
        return task.next_run_at if task else None

    def shutdown(self) -> None:
        """Cancel every job."""
        for workspace_id in self.scheduled_workspaces():
            self.stop(workspace_id)
