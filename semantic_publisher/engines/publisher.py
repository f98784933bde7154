"""Facade tying configuration, analysis, export and scheduling together.

Operations here mirror what an operator does with a workspace: configure
the site integration, map spaces to categories, analyze content, export a
single page or space on demand and trigger syncs.
"""

import logging
from pathlib import Path
from typing import Any

from semantic_publisher.config.settings import (
    PublisherConfig,
    SiteConfig,
    SpaceMapping,
    validate_site_setup,
)
from semantic_publisher.engines.content_analyzer import AnalysisResult, ContentAnalyzer
from semantic_publisher.engines.exporter import HierarchicalExporter
from semantic_publisher.engines.scheduler import SyncScheduler
from semantic_publisher.engines.sync_engine import SyncEngine
from semantic_publisher.errors import ConfigurationError, NotFoundError
from semantic_publisher.models import SyncResult
from semantic_publisher.services.config_store import ConfigurationStore
from semantic_publisher.services.repository import ContentRepository

DEFAULT_CATEGORY_NAME = "New Category"


class SitePublisher:
    """Workspace-level entry point for site publishing."""

    def __init__(
        self,
        repository: ContentRepository,
        store: ConfigurationStore,
        config: PublisherConfig | None = None,
        sync_engine: SyncEngine | None = None,
        scheduler: SyncScheduler | None = None,
    ):
        """Initialize site publisher.

        Args:
            repository: Source of spaces and pages
            store: Workspace configuration and settings store
            config: Optional PublisherConfig instance
            sync_engine: Optional sync engine, built from the other arguments
            scheduler: Optional scheduler, built around the sync engine
        """
        self.repository = repository
        self.store = store
        self.config = config or PublisherConfig()
        self.sync_engine = sync_engine or SyncEngine(repository, store, config=self.config)
        self.scheduler = scheduler or SyncScheduler(self.sync_engine, store)
        self.analyzer = ContentAnalyzer(repository, self.config)

        self.logger = logging.getLogger("site_publisher")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @property
    def exporter(self) -> HierarchicalExporter:
        return self.sync_engine.exporter

    def get_config(self, workspace_id: str) -> SiteConfig | None:
        return self.store.get_config(workspace_id)

    def update_config(self, workspace_id: str, site_config: SiteConfig) -> SiteConfig:
        """Persist a workspace's site configuration and reschedule auto-sync.

        Raises:
            ConfigurationError: If the integration is enabled with a missing site path
        """
        if site_config.enabled:
            if not site_config.site_path:
                raise ConfigurationError("Site path is required")
            if not Path(site_config.site_path).exists():
                raise ConfigurationError(
                    f"Site path does not exist: {site_config.site_path}"
                )

        self.store.save_config(workspace_id, site_config)
        self.scheduler.update_schedule(workspace_id, site_config)
        self.logger.info(f"Updated site configuration for workspace {workspace_id}")
        return site_config

    def validate_setup(self, workspace_id: str) -> dict[str, Any]:
        return validate_site_setup(self.store.get_config(workspace_id))

    def update_space_mapping(
        self, workspace_id: str, space_id: str, **fields: Any
    ) -> SpaceMapping:
        """Create or update the category mapping of a space.

        Args:
            workspace_id: Workspace owning the configuration
            space_id: Space to map
            **fields: SpaceMapping fields to set (category_name, position, ...)

        Returns:
            The stored mapping

        Raises:
            NotFoundError: If the workspace has no site configuration
        """
        site_config = self.store.get_config(workspace_id)
        if site_config is None:
            raise NotFoundError(f"No site configuration for workspace {workspace_id}")

        mappings = list(site_config.space_mappings)
        existing = site_config.get_mapping(space_id)
        if existing is not None:
            mapping = existing.model_copy(update=fields)
            mapping = SpaceMapping.model_validate(mapping.model_dump())
            mappings = [mapping if m.space_id == space_id else m for m in mappings]
        else:
            values = {
                "category_name": DEFAULT_CATEGORY_NAME,
                "position": len(mappings) + 1,
                "collapsed": False,
                **fields,
                "space_id": space_id,
            }
            mapping = SpaceMapping.model_validate(values)
            mappings.append(mapping)

        self.update_config(
            workspace_id, site_config.model_copy(update={"space_mappings": mappings})
        )
        return mapping

    def remove_space_mapping(self, workspace_id: str, space_id: str) -> bool:
        """Drop the mapping of a space.

        Returns:
            True if a mapping was removed
        """
        site_config = self.store.get_config(workspace_id)
        if site_config is None or site_config.get_mapping(space_id) is None:
            return False

        mappings = [m for m in site_config.space_mappings if m.space_id != space_id]
        self.update_config(
            workspace_id, site_config.model_copy(update={"space_mappings": mappings})
        )
        return True

    def export_content(
        self,
        workspace_id: str,
        content_id: str,
        content_type: str = "page",
        include_children: bool = False,
    ) -> dict[str, Any]:
        """Export one page (optionally with its subtree) or a whole space.

        Args:
            workspace_id: Workspace owning the content
            content_id: Page or space id
            content_type: 'page' or 'space'
            include_children: For pages, also export every descendant

        Returns:
            Dictionary with success flag, message and file_path
        """
        try:
            site_config = self.sync_engine.load_valid_config(workspace_id)
            if content_type == "space":
                space_id = content_id
            elif content_type == "page":
                page = self.repository.get_page(content_id)
                if page is None:
                    raise NotFoundError(f"Page {content_id} not found")
                space_id = page.space_id
            else:
                raise ValueError(f"Unknown content type: {content_type}")

            space = next(
                (s for s in self.repository.get_spaces(workspace_id) if s.id == space_id),
                None,
            )
            if space is None:
                raise NotFoundError(f"Space {space_id} not found")
            mapping = site_config.get_mapping(space_id)
            if mapping is None:
                raise NotFoundError(f"Space {space.name} is not mapped to a category")

            pages = self.repository.get_pages(space_id=space_id)
            last_export = self.sync_engine.history(workspace_id).last_export()
            last_sync_time = last_export.end_time if last_export else None

        except (ConfigurationError, NotFoundError, ValueError) as e:
            self.logger.error(f"Export of {content_type} {content_id} refused: {e}")
            return {"success": False, "message": str(e), "file_path": None}
        except Exception as e:
            self.logger.error(f"Export of {content_type} {content_id} failed: {e}")
            return {
                "success": False,
                "message": f"Failed to load {content_type} {content_id}: {e}",
                "file_path": None,
            }

        if content_type == "space":
            result = self.exporter.export_space(
                site_config, mapping, space, pages, last_sync_time=last_sync_time
            )
            file_path = result.category_path
            label = f"space {space.name}"
        else:
            result = self.exporter.export_page(
                site_config,
                mapping,
                space,
                pages,
                content_id,
                include_children=include_children,
                last_sync_time=last_sync_time,
            )
            canonical = self.exporter.plan_space_export(pages).canonical_paths.get(
                content_id
            )
            category_dir = self.exporter.category_dir(site_config, mapping, space)
            file_path = str(category_dir / canonical) if canonical else None
            label = f"page {page.title or content_id}"

        if not result.success or result.exported == 0:
            reason = "; ".join(result.errors) or "nothing was written"
            return {
                "success": False,
                "message": f"Failed to export {label}: {reason}",
                "file_path": file_path,
            }

        return {
            "success": True,
            "message": f"Exported {result.exported} pages of {label}",
            "file_path": file_path,
        }

    def analyze(self, workspace_id: str, mode: str | None = None) -> AnalysisResult:
        return self.analyzer.analyze_content_hierarchy(workspace_id, mode)

    def trigger_manual_sync(self, workspace_id: str) -> SyncResult:
        return self.sync_engine.trigger_manual_sync(workspace_id)
