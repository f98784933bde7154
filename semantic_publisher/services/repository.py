"""Read access to spaces and pages of a workspace."""

import json
from pathlib import Path
from typing import Protocol

from semantic_publisher.models import Page, Space


class ContentRepository(Protocol):
    """Source of spaces and pages consumed by analysis and export."""

    def get_spaces(self, workspace_id: str) -> list[Space]: ...

    def get_pages(
        self, workspace_id: str | None = None, space_id: str | None = None
    ) -> list[Page]: ...

    def get_page(self, page_id: str) -> Page | None: ...


class InMemoryContentRepository:
    """Content repository backed by in-memory lists, in insertion order.

    Spaces without a workspace id are visible from every workspace, which
    suits single-workspace content exports.
    """

    def __init__(self, spaces: list[Space] | None = None, pages: list[Page] | None = None):
        self._spaces: dict[str, Space] = {s.id: s for s in spaces or []}
        self._pages: dict[str, Page] = {p.id: p for p in pages or []}

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryContentRepository":
        """Load a ``{"spaces": [...], "pages": [...]}`` export.

        Raises:
            FileNotFoundError: If the export does not exist
            ValueError: If the export is not valid JSON or records are invalid
        """
        export_path = Path(path)
        if not export_path.exists():
            raise FileNotFoundError(f"Content export not found: {path}")

        try:
            with open(export_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in content export: {e}") from e

        try:
            spaces = [Space.model_validate(s) for s in data.get("spaces", [])]
            pages = [Page.model_validate(p) for p in data.get("pages", [])]
        except Exception as e:
            raise ValueError(f"Content export validation failed: {e}") from e

        return cls(spaces, pages)

    def save_space(self, space: Space) -> None:
        self._spaces[space.id] = space

    def save_page(self, page: Page) -> None:
        self._pages[page.id] = page

    def get_spaces(self, workspace_id: str) -> list[Space]:
        return [
            space
            for space in self._spaces.values()
            if space.workspace_id in (None, workspace_id)
        ]

    def get_pages(
        self, workspace_id: str | None = None, space_id: str | None = None
    ) -> list[Page]:
        if space_id is not None:
            return [p for p in self._pages.values() if p.space_id == space_id]
        if workspace_id is not None:
            space_ids = {s.id for s in self.get_spaces(workspace_id)}
            return [p for p in self._pages.values() if p.space_id in space_ids]
        return list(self._pages.values())

    def get_page(self, page_id: str) -> Page | None:
        return self._pages.get(page_id)
