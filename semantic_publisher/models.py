"""Record types shared by the analysis, export and sync engines.

Source records (Space, Page) come from the content repository; derived records
(Document, ContentCluster, PageRelationship, CategorySuggestion) live for a
single analysis run; SyncResult is the only record persisted across runs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from semantic_publisher.config.settings import SyncInterval


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Space(BaseModel):
    """A top-level container of pages inside a workspace."""

    id: str
    name: str
    workspace_id: str | None = None
    description: str | None = None


class Page(BaseModel):
    """A raw page record as returned by the content repository."""

    id: str
    space_id: str
    title: str | None = None
    content: Any = Field(
        default=None, description="Structured document (dict) or its JSON text"
    )
    parent_id: str | None = None
    additional_parent_ids: list[str] = Field(
        default_factory=list,
        description="Secondary parents; the page is also listed under these",
    )
    created_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", "updated_at")
    @classmethod
    def timestamps_are_utc(cls, v):
        """Treat naive timestamps as UTC."""
        return _as_utc(v)


class Document(BaseModel):
    """Plain-text view of a page used by every analysis stage."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    body_text: str
    space_id: str
    parent_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def text(self) -> str:
        return f"{self.title} {self.body_text}"


class ContentCluster(BaseModel):
    """A group of at least two similar documents."""

    id: str
    pages: list[str] = Field(min_length=2)
    common_tags: list[str] = Field(default_factory=list)
    cohesion: float = Field(default=0.0, ge=0.0, le=1.0)


class RelationshipKind(str, Enum):
    HIERARCHICAL = "hierarchical"
    REFERENCE = "reference"
    CROSS_LINK = "cross-link"


class PageRelationship(BaseModel):
    """Directed edge between two pages."""

    model_config = ConfigDict(frozen=True)

    parent_id: str
    child_id: str
    kind: RelationshipKind


class SuggestionKind(str, Enum):
    CONTENT_CLUSTER = "content-cluster"
    SPACE_BASED = "space-based"
    KEYWORD_BASED = "keyword-based"


class CategorySuggestion(BaseModel):
    """A confidence-scored proposal for a documentation category."""

    model_config = ConfigDict(frozen=True)

    kind: SuggestionKind
    name: str
    suggested_spaces: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    pages: list[str] = Field(default_factory=list)


class ConflictKind(str, Enum):
    FILE_EXISTS = "file_exists"
    NEWER_VERSION = "newer_version"
    PERMISSION_DENIED = "permission_denied"


class ConflictResolution(str, Enum):
    OVERWRITE = "overwrite"
    SKIP = "skip"
    MERGE = "merge"


class ConflictInfo(BaseModel):
    """A target file that already existed when the exporter tried to write it."""

    file_path: str
    kind: ConflictKind
    resolution: ConflictResolution
    message: str


class SyncStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"


class SyncStats(BaseModel):
    """Aggregated per-run counters."""

    total_spaces: int = 0
    successful_spaces: int = 0
    failed_spaces: int = 0
    total_pages: int = 0
    successful_pages: int = 0
    failed_pages: int = 0
    conflicts: int = 0
    errors: list[str] = Field(default_factory=list)
    conflict_details: list[ConflictInfo] = Field(default_factory=list)


class ConfigSnapshot(BaseModel):
    """Configuration facts captured at sync start."""

    space_mappings: int = 0
    auto_sync_enabled: bool = False
    auto_sync_interval: SyncInterval = SyncInterval.MANUAL


class SyncResult(BaseModel):
    """Outcome of one sync run."""

    sync_id: str
    workspace_id: str
    status: SyncStatus = SyncStatus.IN_PROGRESS
    start_time: datetime
    end_time: datetime | None = None
    duration: int = Field(default=0, description="Run duration in milliseconds")
    stats: SyncStats = Field(default_factory=SyncStats)
    config_snapshot: ConfigSnapshot = Field(default_factory=ConfigSnapshot)
    error: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def timestamps_are_utc(cls, v):
        """Treat naive timestamps as UTC."""
        return _as_utc(v)

    @property
    def success_rate(self) -> float:
        """Percentage of pages exported successfully."""
        if self.stats.total_pages == 0:
            return 0.0
        return self.stats.successful_pages / self.stats.total_pages * 100
