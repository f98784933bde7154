"""Analysis, export and synchronization engines."""

from semantic_publisher.engines.content_analyzer import ContentAnalyzer
from semantic_publisher.engines.exporter import HierarchicalExporter
from semantic_publisher.engines.sync_engine import SyncEngine

__all__ = ["ContentAnalyzer", "HierarchicalExporter", "SyncEngine"]
