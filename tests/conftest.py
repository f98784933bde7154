"""Shared fixtures for semantic publisher tests."""

from datetime import datetime, timezone

import pytest

from semantic_publisher.config.settings import SiteConfig, SpaceMapping
from semantic_publisher.models import Page, Space
from semantic_publisher.services.config_store import JsonSettingsStore
from semantic_publisher.services.repository import InMemoryContentRepository

WORKSPACE = "ws-1"
EARLY = datetime(2024, 1, 1, tzinfo=timezone.utc)


def paragraph_doc(*paragraphs: str) -> dict:
    """Rich-text document with one paragraph per argument."""
    return {
        "type": "doc",
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": text}]}
            for text in paragraphs
        ],
    }


@pytest.fixture
def make_page():
    """Factory for pages with paragraph content and an old update time."""

    def factory(page_id, title, text="", parent_id=None, space_id="space-1", **extra):
        extra.setdefault("updated_at", EARLY)
        extra.setdefault("content", paragraph_doc(text) if text else paragraph_doc())
        return Page(
            id=page_id, space_id=space_id, title=title, parent_id=parent_id, **extra
        )

    return factory


@pytest.fixture
def site_dir(tmp_path):
    """Minimal static site checkout passing setup validation."""
    site = tmp_path / "site"
    (site / "docs").mkdir(parents=True)
    (site / "package.json").write_text("{}", encoding="utf-8")
    (site / "docusaurus.config.ts").write_text("export default {};\n", encoding="utf-8")
    return site


@pytest.fixture
def guides_space():
    return Space(id="space-1", name="Guides", workspace_id=WORKSPACE)


@pytest.fixture
def guides_mapping():
    return SpaceMapping(space_id="space-1", category_name="Guides", position=1)


@pytest.fixture
def site_config(site_dir, guides_mapping):
    return SiteConfig(
        enabled=True,
        site_path=str(site_dir),
        base_url="/",
        space_mappings=[guides_mapping],
    )


@pytest.fixture
def tree_pages(make_page):
    """Root R with children C1 and C2, and grandchild G under C1."""
    return [
        make_page("r", "Root Page", "Welcome to the guides"),
        make_page("c1", "Child One", "First child text", parent_id="r"),
        make_page("c2", "Child Two", "Second child text", parent_id="r"),
        make_page("g", "Grandchild", "Deep content", parent_id="c1"),
    ]


@pytest.fixture
def repository(guides_space, tree_pages):
    return InMemoryContentRepository([guides_space], tree_pages)


@pytest.fixture
def store(site_config):
    """In-memory settings store holding the workspace's site configuration."""
    settings = JsonSettingsStore()
    settings.save_config(WORKSPACE, site_config)
    return settings
