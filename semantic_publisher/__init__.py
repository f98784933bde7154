"""Semantic Content Publishing System.

Content analysis, category suggestion and hierarchical export of
workspace pages into a static documentation site, kept up to date by
scheduled incremental synchronization.
"""

__version__ = "1.0.0"

from semantic_publisher.config.settings import PublisherConfig, SiteConfig, load_config
from semantic_publisher.engines.content_analyzer import ContentAnalyzer
from semantic_publisher.engines.exporter import HierarchicalExporter
from semantic_publisher.engines.publisher import SitePublisher
from semantic_publisher.engines.scheduler import SyncScheduler
from semantic_publisher.engines.sync_engine import SyncEngine

__all__ = [
    "ContentAnalyzer",
    "HierarchicalExporter",
    "SyncEngine",
    "SyncScheduler",
    "SitePublisher",
    "PublisherConfig",
    "SiteConfig",
    "load_config",
]
