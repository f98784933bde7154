"""Configuration management for semantic publishing."""

from semantic_publisher.config.settings import (
    AutoSyncSettings,
    PublisherConfig,
    SiteConfig,
    SpaceMapping,
    SyncInterval,
    load_config,
    validate_environment,
    validate_site_setup,
)

__all__ = [
    "PublisherConfig",
    "SiteConfig",
    "SpaceMapping",
    "AutoSyncSettings",
    "SyncInterval",
    "load_config",
    "validate_environment",
    "validate_site_setup",
]
