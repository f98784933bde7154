"""Full and incremental synchronization of mapped spaces to the site tree.

A run walks every space mapping in order, exports what changed (or
everything), aggregates per-space outcomes into SyncStats and appends the
finalized SyncResult to the workspace's capped sync history. Runs for the
same workspace are serialized by a non-blocking per-workspace lock.
"""

import logging
import threading
import time
import uuid
from datetime import timedelta
from typing import Any

from semantic_publisher.config.settings import (
    PublisherConfig,
    SiteConfig,
    SpaceMapping,
    SyncInterval,
    validate_site_setup,
)
from semantic_publisher.engines.exporter import HierarchicalExporter
from semantic_publisher.errors import ConfigurationError, NotFoundError, SyncInProgressError
from semantic_publisher.models import (
    ConfigSnapshot,
    Space,
    SyncResult,
    SyncStats,
    SyncStatus,
    utc_now,
)
from semantic_publisher.services.config_store import ConfigurationStore, SyncHistoryLog
from semantic_publisher.services.repository import ContentRepository

VALIDATION_SUCCESS_RATE = 90


def format_duration(milliseconds: int) -> str:
    """Render a duration as '1h 2m 3s', '2m 3s' or '3s'."""
    seconds = int(milliseconds // 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def new_sync_id() -> str:
    return f"sync_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class SyncEngine:
    """Runs and records synchronizations of workspaces to their sites."""

    def __init__(
        self,
        repository: ContentRepository,
        store: ConfigurationStore,
        exporter: HierarchicalExporter | None = None,
        config: PublisherConfig | None = None,
    ):
        """Initialize sync engine.

        Args:
            repository: Source of spaces and pages
            store: Workspace configuration and settings store
            exporter: Optional exporter, built from config when omitted
            config: Optional PublisherConfig instance
        """
        self.repository = repository
        self.store = store
        self.config = config or PublisherConfig()
        self.exporter = exporter or HierarchicalExporter(config=self.config)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        self.logger = logging.getLogger("sync_engine")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def history(self, workspace_id: str) -> SyncHistoryLog:
        return SyncHistoryLog(self.store, workspace_id, self.config.history_limit)

    def _workspace_lock(self, workspace_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(workspace_id, threading.Lock())

    def is_running(self, workspace_id: str) -> bool:
        return self._workspace_lock(workspace_id).locked()

    def load_valid_config(self, workspace_id: str) -> SiteConfig:
        """Load a workspace's site configuration, refusing unusable ones.

        Raises:
            ConfigurationError: If missing, disabled, invalid or without mappings
        """
        site_config = self.store.get_config(workspace_id)
        if site_config is None:
            raise ConfigurationError("Site publishing is not configured")
        if not site_config.enabled:
            raise ConfigurationError("Site publishing integration is disabled")

        validation = validate_site_setup(site_config)
        if not validation["valid"]:
            raise ConfigurationError(
                f"Invalid site setup: {'; '.join(validation['errors'])}"
            )

        if not site_config.space_mappings:
            raise ConfigurationError("No space mappings configured")
        return site_config

    def perform_sync(self, workspace_id: str, incremental: bool = False) -> SyncResult:
        """Synchronize a workspace.

        Args:
            workspace_id: Workspace to synchronize
            incremental: Only export pages changed since the last successful sync

        Returns:
            Finalized SyncResult, already appended to the workspace history

        Raises:
            SyncInProgressError: If a run is already executing for the workspace
        """
        lock = self._workspace_lock(workspace_id)
        if not lock.acquire(blocking=False):
            self.logger.warning(f"Rejected overlapping sync for workspace {workspace_id}")
            raise SyncInProgressError(workspace_id)
        try:
            with self.store.run_lock(workspace_id):
                return self._run(workspace_id, incremental)
        except SyncInProgressError:
            self.logger.warning(
                f"Rejected sync for workspace {workspace_id}: another process is running one"
            )
            raise
        finally:
            lock.release()

    def trigger_manual_sync(self, workspace_id: str) -> SyncResult:
        """Run a full sync on operator request."""
        self.logger.info(f"Manual sync triggered for workspace {workspace_id}")
        return self.perform_sync(workspace_id, incremental=False)

    def _run(self, workspace_id: str, incremental: bool) -> SyncResult:
        result = SyncResult(
            sync_id=new_sync_id(), workspace_id=workspace_id, start_time=utc_now()
        )
        history = self.history(workspace_id)
        mode = "incremental" if incremental else "full"
        self.logger.info(f"Starting {mode} sync {result.sync_id} for workspace {workspace_id}")

        try:
            site_config = self.load_valid_config(workspace_id)
        except ConfigurationError as e:
            result.error = str(e)
            result.stats.errors.append(str(e))
            self.logger.error(f"Sync {result.sync_id} aborted: {e}")
        else:
            result.config_snapshot = ConfigSnapshot(
                space_mappings=len(site_config.space_mappings),
                auto_sync_enabled=site_config.auto_sync.enabled,
                auto_sync_interval=site_config.auto_sync.interval,
            )

            # Changes since the last success, file edits since the last run that wrote files
            last_success = history.last_successful()
            last_export = history.last_export()
            last_sync_time = last_success.end_time if incremental and last_success else None
            reference_time = last_export.end_time if last_export else None

            spaces = {space.id: space for space in self.repository.get_spaces(workspace_id)}
            for mapping in site_config.space_mappings:
                result.stats.total_spaces += 1
                self._sync_space(
                    site_config,
                    mapping,
                    spaces.get(mapping.space_id),
                    last_sync_time,
                    reference_time,
                    incremental,
                    result.stats,
                )

        result.status = self._final_status(result)
        result.end_time = utc_now()
        result.duration = int((result.end_time - result.start_time).total_seconds() * 1000)
        history.append(result)

        stats = result.stats
        self.logger.info(
            f"Sync {result.sync_id} finished with status {result.status.value}: "
            f"{stats.successful_spaces}/{stats.total_spaces} spaces, "
            f"{stats.successful_pages}/{stats.total_pages} pages, "
            f"{stats.conflicts} conflicts"
        )
        return result

    @staticmethod
    def _final_status(result: SyncResult) -> SyncStatus:
        stats = result.stats
        if result.error or stats.successful_spaces == 0:
            return SyncStatus.FAILED
        if stats.failed_spaces == 0:
            return SyncStatus.SUCCESS
        return SyncStatus.PARTIAL

    def _sync_space(
        self,
        site_config: SiteConfig,
        mapping: SpaceMapping,
        space: Space | None,
        last_sync_time,
        reference_time,
        incremental: bool,
        stats: SyncStats,
    ) -> None:
        try:
            if space is None:
                raise NotFoundError(f"Space {mapping.space_id} not found")

            pages = self.repository.get_pages(space_id=space.id)
            only_page_ids = None
            if incremental and last_sync_time is not None:
                only_page_ids = {p.id for p in pages if p.updated_at > last_sync_time}
                if not only_page_ids:
                    self.logger.info(f"No changes in space {space.name} since {last_sync_time}")
                    stats.successful_spaces += 1
                    stats.total_pages += len(pages)
                    stats.successful_pages += len(pages)
                    return

            export = self.exporter.export_space(
                site_config,
                mapping,
                space,
                pages,
                only_page_ids,
                reference_time,
                include_missing=True,
            )
            stats.total_pages += export.planned_pages
            stats.successful_pages += export.exported
            stats.failed_pages += export.failed
            stats.conflicts += len(export.conflicts)
            stats.conflict_details.extend(export.conflicts)
            stats.errors.extend(export.errors)

            if export.success:
                stats.successful_spaces += 1
            else:
                stats.failed_spaces += 1
                if not export.space_error:
                    stats.errors.append(f"Space {space.name}: all {export.failed} pages failed")

        except Exception as e:
            stats.failed_spaces += 1
            stats.errors.append(f"Space {mapping.space_id}: {e}")
            self.logger.error(f"Failed to sync space {mapping.space_id}: {e}")

    def get_sync_history(self, workspace_id: str, limit: int = 10) -> list[SyncResult]:
        return self.history(workspace_id).recent(limit)

    def get_last_sync_status(self, workspace_id: str) -> SyncResult | None:
        return self.history(workspace_id).last()

    def count_pending_changes(self, workspace_id: str) -> int:
        """Pages in mapped spaces changed since the last successful sync."""
        site_config = self.store.get_config(workspace_id)
        if site_config is None:
            return 0

        last_success = self.history(workspace_id).last_successful()
        since = last_success.end_time if last_success else None
        pending = 0
        for mapping in site_config.space_mappings:
            for page in self.repository.get_pages(space_id=mapping.space_id):
                if since is None or page.updated_at > since:
                    pending += 1
        return pending

    def interval_seconds(self, interval: SyncInterval) -> float | None:
        if interval == SyncInterval.HOURLY:
            return self.config.hourly_interval_seconds
        if interval == SyncInterval.DAILY:
            return self.config.daily_interval_seconds
        return None

    def get_detailed_sync_status(self, workspace_id: str) -> dict[str, Any]:
        """Last result, next expected run and pending change count.

        Returns:
            Dictionary with last_sync, next_scheduled_sync, is_auto_sync_enabled,
            sync_interval, pending_changes and is_running
        """
        site_config = self.store.get_config(workspace_id)
        last_sync = self.get_last_sync_status(workspace_id)
        auto_sync = site_config.auto_sync if site_config else None

        next_sync = None
        if auto_sync and auto_sync.enabled and last_sync and last_sync.end_time:
            seconds = self.interval_seconds(auto_sync.interval)
            if seconds is not None:
                next_sync = last_sync.end_time + timedelta(seconds=seconds)

        return {
            "last_sync": last_sync.model_dump(mode="json") if last_sync else None,
            "next_scheduled_sync": next_sync.isoformat() if next_sync else None,
            "is_auto_sync_enabled": bool(auto_sync and auto_sync.enabled),
            "sync_interval": auto_sync.interval.value if auto_sync else SyncInterval.MANUAL.value,
            "pending_changes": self.count_pending_changes(workspace_id),
            "is_running": self.is_running(workspace_id),
        }

    def generate_sync_report(self, result: SyncResult) -> dict[str, Any]:
        """Summarize a sync result with recommendations.

        Args:
            result: Sync result to report on

        Returns:
            Dictionary with ``summary`` text and ``details``
        """
        stats = result.stats
        duration = format_duration(result.duration)
        success_rate = round(result.success_rate)

        if result.status == SyncStatus.SUCCESS:
            summary = (
                f"Sync completed successfully! Exported {stats.successful_pages} pages "
                f"from {stats.successful_spaces} spaces in {duration}."
            )
        elif result.status == SyncStatus.PARTIAL:
            summary = (
                f"Sync partially completed. {stats.successful_spaces}/{stats.total_spaces} "
                f"spaces synced successfully ({success_rate}% success rate)."
            )
        elif result.status == SyncStatus.IN_PROGRESS:
            summary = "Sync is still in progress."
        else:
            summary = (
                f"Sync failed. Only {stats.successful_pages} out of "
                f"{stats.total_pages} pages were exported."
            )
            if result.error:
                summary += f" {result.error}"

        recommendations = []
        if stats.errors:
            recommendations.append("Review and resolve the errors listed above")
        if stats.conflicts:
            recommendations.append(
                "Review conflict resolution settings for files edited outside of sync"
            )
        if stats.failed_pages:
            recommendations.append(
                "Check page content for invalid characters or formatting issues"
            )
        if stats.total_pages > 0 and success_rate < VALIDATION_SUCCESS_RATE:
            recommendations.append("Consider running a validation check before the next sync")

        return {
            "summary": summary,
            "details": {
                "sync_id": result.sync_id,
                "status": result.status.value,
                "spaces_processed": stats.total_spaces,
                "pages_exported": stats.successful_pages,
                "pages_failed": stats.failed_pages,
                "conflicts_resolved": stats.conflicts,
                "errors_encountered": len(stats.errors),
                "success_rate": success_rate,
                "duration": duration,
                "recommendations": recommendations,
            },
        }

    def get_sync_report(self, workspace_id: str, sync_id: str) -> dict[str, Any]:
        """Report for a sync kept in the workspace history."""
        result = self.history(workspace_id).find(sync_id)
        if result is None:
            return {"summary": "Sync report not found", "details": None, "sync_result": None}

        report = self.generate_sync_report(result)
        report["sync_result"] = result.model_dump(mode="json")
        return report
