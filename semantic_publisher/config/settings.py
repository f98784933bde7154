"""Configuration management for the semantic publishing system.

Two layers live here: application-wide analysis/sync settings loaded from a
JSON file with environment variable overrides, and the per-workspace site
configuration (target site, auto-sync schedule, space-to-category mappings)
that the configuration store persists.
"""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

RESOLUTION_CHOICES = ["overwrite", "skip", "merge"]
REQUIRED_SITE_FILES = ["package.json", "docs"]
SITE_CONFIG_FILES = ["docusaurus.config.ts", "docusaurus.config.js"]


class PublisherConfig(BaseModel):
    """Configuration settings for analysis, export and sync operations."""

    # Storage locations
    settings_path: str = Field(
        default="./publisher_settings.json",
        description="Path to the JSON workspace settings store",
    )
    content_path: str = Field(
        default="./content_export.json",
        description="Path to the JSON content export read by the CLIs",
    )

    # Lexical index bounds
    vocabulary_size: int = Field(
        default=1000, ge=10, le=10000, description="Maximum vocabulary terms"
    )
    min_term_length: int = Field(
        default=3, ge=1, le=10, description="Shortest term kept in the vocabulary"
    )
    max_term_length: int = Field(
        default=19, ge=2, le=100, description="Longest term kept in the vocabulary"
    )
    keyword_limit: int = Field(
        default=50, ge=1, le=500, description="Maximum corpus keywords returned"
    )
    keywords_per_document: int = Field(
        default=5, ge=1, le=20, description="Keyword set size for Jaccard clustering"
    )

    # Clustering
    clustering_mode: str = Field(
        default="semantic",
        description="Clustering strategy (semantic = TF-IDF cosine, basic = Jaccard)",
    )
    jaccard_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Keyword-set similarity a document must exceed to join a cluster",
    )
    cosine_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Vector similarity a document must exceed to join a cluster",
    )
    max_cluster_tags: int = Field(
        default=8, ge=1, le=50, description="Maximum common tags kept per cluster"
    )

    # Suggestions
    min_pages_for_suggestion: int = Field(
        default=3,
        ge=2,
        le=50,
        description="Minimum pages behind a cluster, keyword or topic suggestion",
    )
    max_suggestions: int = Field(
        default=10, ge=0, le=100, description="Suggestions returned (0 = all)"
    )

    # Sync
    history_limit: int = Field(
        default=50, ge=1, le=500, description="Sync results kept per workspace"
    )
    file_exists_resolution: str = Field(
        default="overwrite",
        description="Resolution when a target file exists with different content",
    )
    newer_version_resolution: str = Field(
        default="skip",
        description="Resolution when a target file was edited after the last sync",
    )

    # Scheduler cadence
    hourly_interval_seconds: float = Field(
        default=3600.0, gt=0.0, description="Timer period for hourly auto-sync"
    )
    daily_interval_seconds: float = Field(
        default=86400.0, gt=0.0, description="Timer period for daily auto-sync"
    )

    # Visualization settings
    cluster_visualization: bool = Field(
        default=True, description="Enable cluster visualization generation"
    )

    model_config = ConfigDict(
        env_prefix="PUBLISHER_", case_sensitive=False, extra="ignore"
    )

    @field_validator("clustering_mode")
    @classmethod
    def validate_clustering_mode(cls, v):
        """Ensure clustering mode is supported."""
        if v not in ["semantic", "basic"]:
            raise ValueError("Clustering mode must be 'semantic' or 'basic'")
        return v

    @field_validator("max_term_length")
    @classmethod
    def max_term_length_must_exceed_min(cls, v, info):
        """Ensure the term length window is not empty."""
        if info.data and "min_term_length" in info.data:
            if v < info.data["min_term_length"]:
                raise ValueError(
                    "Maximum term length must be >= minimum term length"
                )
        return v

    @field_validator("file_exists_resolution", "newer_version_resolution")
    @classmethod
    def validate_resolution(cls, v):
        """Ensure conflict resolution is supported."""
        if v not in RESOLUTION_CHOICES:
            raise ValueError(
                f"Conflict resolution must be one of: {', '.join(RESOLUTION_CHOICES)}"
            )
        return v


class SyncInterval(str, Enum):
    MANUAL = "manual"
    HOURLY = "hourly"
    DAILY = "daily"


class AutoSyncSettings(BaseModel):
    """Automatic synchronization schedule for one workspace."""

    enabled: bool = False
    interval: SyncInterval = SyncInterval.MANUAL


class SpaceMapping(BaseModel):
    """Binding from a content space to a category directory on the site."""

    space_id: str
    category_name: str
    position: int = Field(default=1, ge=0)
    description: str | None = None
    collapsed: bool = False


class SiteConfig(BaseModel):
    """Per-workspace static site publishing configuration."""

    enabled: bool = False
    site_path: str = ""
    base_url: str = "/"
    site_title: str | None = None
    auto_sync: AutoSyncSettings = Field(default_factory=AutoSyncSettings)
    space_mappings: list[SpaceMapping] = Field(default_factory=list)

    @field_validator("space_mappings")
    @classmethod
    def one_mapping_per_space(cls, v):
        """Ensure no space is mapped twice."""
        seen = set()
        for mapping in v:
            if mapping.space_id in seen:
                raise ValueError(f"Space {mapping.space_id} is mapped more than once")
            seen.add(mapping.space_id)
        return v

    def get_mapping(self, space_id: str) -> SpaceMapping | None:
        """Return the mapping for a space, if any."""
        for mapping in self.space_mappings:
            if mapping.space_id == space_id:
                return mapping
        return None

    @property
    def docs_path(self) -> Path:
        return Path(self.site_path) / "docs"


def load_config(config_file: str | None = None) -> PublisherConfig:
    """Load configuration from file and environment variables.

    Args:
        config_file: Optional path to JSON configuration file

    Returns:
        Validated configuration instance

    Raises:
        ValueError: If configuration is invalid
        FileNotFoundError: If config file specified but not found
    """
    config_data = {}

    if config_file:
        config_path = Path(config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        try:
            with open(config_path) as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file: {e}") from e

    # Environment variables override JSON settings
    env_data = {}
    for field_name, field_info in PublisherConfig.model_fields.items():
        env_value = os.environ.get(f"PUBLISHER_{field_name.upper()}")
        if env_value is None:
            continue
        if field_info.annotation is bool:
            env_data[field_name] = env_value.lower() in ("true", "1", "yes", "on")
        elif field_info.annotation is int:
            env_data[field_name] = int(env_value)
        elif field_info.annotation is float:
            env_data[field_name] = float(env_value)
        else:
            env_data[field_name] = env_value

    config_data.update(env_data)
    config_data.pop("_comment", None)

    try:
        return PublisherConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


def get_default_config_path() -> Path:
    """Get default configuration file path."""
    return Path("config/publisher_config.json")


def create_default_config_file(path: str | None = None) -> Path:
    """Create a default configuration file.

    Args:
        path: Optional path for config file, defaults to publisher_config.json

    Returns:
        Path to created configuration file
    """
    config_path = get_default_config_path() if path is None else Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_data = {"_comment": "Semantic publisher analysis and sync configuration"}
    config_data.update(PublisherConfig().model_dump())

    with open(config_path, "w") as f:
        json.dump(config_data, f, indent=2)

    return config_path


def validate_environment(config_file: str | None = None) -> dict[str, Any]:
    """Validate environment for analysis and sync operation.

    Args:
        config_file: Optional path to JSON configuration file

    Returns:
        Dictionary with validation results
    """
    validation_results = {
        "valid": True,
        "errors": [],
        "warnings": [],
        "environment_vars": {},
    }

    for field_name in PublisherConfig.model_fields:
        env_var = f"PUBLISHER_{field_name.upper()}"
        value = os.environ.get(env_var)
        if value:
            validation_results["environment_vars"][env_var] = value

    try:
        config = load_config(config_file)
        if not Path(config.content_path).exists():
            validation_results["warnings"].append(
                f"Content export does not exist: {config.content_path}"
            )
        settings_dir = Path(config.settings_path).parent
        if not settings_dir.exists():
            validation_results["warnings"].append(
                f"Settings directory does not exist: {settings_dir}"
            )
    except (ValueError, FileNotFoundError) as e:
        validation_results["valid"] = False
        validation_results["errors"].append(f"Configuration validation failed: {e}")

    return validation_results


def validate_site_setup(site_config: SiteConfig | None) -> dict[str, Any]:
    """Check that a workspace's site configuration points at a usable site.

    Args:
        site_config: Workspace site configuration, or None if never configured

    Returns:
        Dictionary with ``valid`` flag and list of ``errors``
    """
    errors = []

    if site_config is None:
        return {"valid": False, "errors": ["Site configuration not found"]}

    if not site_config.enabled:
        errors.append("Site publishing integration is disabled")

    if not site_config.site_path:
        errors.append("Site path is required")
    else:
        site_path = Path(site_config.site_path)
        if not site_path.exists():
            errors.append(f"Site path does not exist: {site_path}")
        else:
            for required in REQUIRED_SITE_FILES:
                if not (site_path / required).exists():
                    errors.append(f"Required file/directory missing: {required}")
            if not any((site_path / name).exists() for name in SITE_CONFIG_FILES):
                errors.append(
                    f"Required file/directory missing: {SITE_CONFIG_FILES[0]}"
                )

    if not site_config.base_url:
        errors.append("Base URL is required")

    return {"valid": not errors, "errors": errors}
