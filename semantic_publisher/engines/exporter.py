"""Hierarchical export of a space's page tree into a static-site category.

Export happens in two passes. Planning walks the parent/child adjacency
index from the roots and decides, without touching the filesystem, where
every page lands: pages with children become ``<slug>/index.md``, leaves
become ``<slug>.md``, pages reached a second time get a ``<slug>-ref.md``
cross-reference stub and pages already on the current processing path are
skipped as cycles. Execution then renders and writes the planned files in
order, so a page is always handled before its children.
"""

import json
import logging
import os
import posixpath
import re
import shutil
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from semantic_publisher.config.settings import PublisherConfig, SiteConfig, SpaceMapping
from semantic_publisher.engines.relationship_extractor import RelationshipExtractor
from semantic_publisher.engines.slugs import sanitize_filename, title_slug
from semantic_publisher.errors import CycleDetected, RenderError
from semantic_publisher.models import (
    ConflictInfo,
    ConflictKind,
    ConflictResolution,
    Page,
    PageRelationship,
    RelationshipKind,
    Space,
)
from semantic_publisher.services.renderer import MarkdownRenderer, Renderer

CATEGORY_FILE = "_category_.json"
PAGE_STEP = "page"
CROSS_REFERENCE_STEP = "cross_reference"

# Existing links, inline code and fenced code blocks are never rewritten
_PROTECTED = re.compile(r"```.*?```|`[^`\n]*`|!?\[[^\]]*\]\([^)]*\)", re.DOTALL)


@dataclass
class ExportStep:
    """One planned file write."""

    page: Page
    relative_path: str
    kind: str = PAGE_STEP
    parent_id: str | None = None
    canonical_path: str | None = None


@dataclass
class ExportPlan:
    """Placement of every reachable page of a space, in write order."""

    steps: list[ExportStep] = field(default_factory=list)
    canonical_paths: dict[str, str] = field(default_factory=dict)
    cycles: list[str] = field(default_factory=list)


@dataclass
class ExportResult:
    """Outcome of exporting (part of) a space."""

    category_path: str
    planned_pages: int = 0
    exported: int = 0
    failed: int = 0
    cross_references: int = 0
    outcomes: dict[str, str] = field(default_factory=dict)
    skipped_cycles: list[str] = field(default_factory=list)
    conflicts: list[ConflictInfo] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    relationships: list[PageRelationship] = field(default_factory=list)
    space_error: str | None = None

    @property
    def success(self) -> bool:
        if self.space_error:
            return False
        return self.failed == 0 or self.exported > 0


def link_titles(text: str, targets: dict[str, str]) -> str:
    """Turn plain mentions of page titles into Markdown links.

    Front matter, existing links and code are left untouched.

    Args:
        text: Rendered Markdown
        targets: Mapping of page title to link target

    Returns:
        Text with every standalone title occurrence linked
    """
    targets = {title: link for title, link in targets.items() if title.strip()}
    if not targets:
        return text

    front_matter = ""
    body = text
    if text.startswith("---\n"):
        end = text.find("\n---\n", 4)
        if end != -1:
            front_matter, body = text[: end + 5], text[end + 5 :]

    alternatives = "|".join(
        re.escape(title) for title in sorted(targets, key=len, reverse=True)
    )
    pattern = re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)")

    def link(match: re.Match) -> str:
        return f"[{match.group(0)}]({targets[match.group(0)]})"

    pieces = []
    last = 0
    for protected in _PROTECTED.finditer(body):
        pieces.append(pattern.sub(link, body[last : protected.start()]))
        pieces.append(protected.group(0))
        last = protected.end()
    pieces.append(pattern.sub(link, body[last:]))
    return front_matter + "".join(pieces)


def relative_link(from_file: str, to_file: str) -> str:
    """Path of ``to_file`` relative to the directory holding ``from_file``."""
    start = posixpath.dirname(from_file) or "."
    return posixpath.relpath(to_file, start=start)


class HierarchicalExporter:
    """Writes page trees into category directories of a static site."""

    def __init__(
        self,
        renderer: Renderer | None = None,
        config: PublisherConfig | None = None,
        relationship_extractor: RelationshipExtractor | None = None,
    ):
        """Initialize exporter.

        Args:
            renderer: Page renderer, defaults to MarkdownRenderer
            config: Optional PublisherConfig supplying conflict resolutions
            relationship_extractor: Optional extractor used for link rewriting
        """
        self.renderer = renderer or MarkdownRenderer()
        self.config = config or PublisherConfig()
        self.relationship_extractor = relationship_extractor or RelationshipExtractor()
        self.resolutions = {
            ConflictKind.FILE_EXISTS: ConflictResolution(self.config.file_exists_resolution),
            ConflictKind.NEWER_VERSION: ConflictResolution(
                self.config.newer_version_resolution
            ),
            ConflictKind.PERMISSION_DENIED: ConflictResolution.SKIP,
        }

        self.logger = logging.getLogger("exporter")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def category_slug(mapping: SpaceMapping, space: Space) -> str:
        return sanitize_filename(mapping.category_name) or title_slug(space.name)

    def category_dir(self, site_config: SiteConfig, mapping: SpaceMapping, space: Space) -> Path:
        return site_config.docs_path / self.category_slug(mapping, space)

    def write_category_metadata(
        self, category_dir: Path, mapping: SpaceMapping, space_name: str
    ) -> Path:
        """Create the category directory and its ``_category_.json``.

        Args:
            category_dir: Directory of the category
            mapping: Space mapping supplying label, position and collapse state
            space_name: Name of the mapped space, used for defaults

        Returns:
            Path of the written metadata file
        """
        category_dir.mkdir(parents=True, exist_ok=True)
        metadata = {
            "label": mapping.category_name or space_name,
            "position": mapping.position or 1,
            "link": {
                "type": "generated-index",
                "description": mapping.description or f"Documentation for {space_name}",
            },
            "collapsed": mapping.collapsed,
        }
        metadata_path = category_dir / CATEGORY_FILE
        with open(metadata_path, "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2)
            f.write("\n")
        return metadata_path

    def plan_space_export(self, pages: list[Page]) -> ExportPlan:
        """Decide where every page of a space is written.

        Args:
            pages: All pages of the space, in their display order

        Returns:
            ExportPlan with ordered steps, canonical paths and cycle skips
        """
        by_id = {page.id: page for page in pages}
        children_of: dict[str, list[Page]] = defaultdict(list)
        for page in pages:
            for parent_id in dict.fromkeys([page.parent_id, *page.additional_parent_ids]):
                if parent_id and parent_id in by_id:
                    children_of[parent_id].append(page)

        roots = [page for page in pages if page.parent_id not in by_id]
        plan = ExportPlan()
        taken: set[tuple[str, str]] = set()

        def claim(directory: str, slug: str) -> str:
            candidate, counter = slug, 2
            while (directory, candidate) in taken:
                candidate = f"{slug}-{counter}"
                counter += 1
            taken.add((directory, candidate))
            return candidate

        def visit(siblings: list[Page], parent_id: str | None, directory: str, path: list[str]):
            for page in siblings:
                if page.id in path:
                    self.logger.warning(f"{CycleDetected(page.id, path)}, skipping")
                    plan.cycles.append(page.id)
                    continue

                if page.id in plan.canonical_paths:
                    stub = claim(directory, f"{title_slug(page.title)}-ref")
                    plan.steps.append(
                        ExportStep(
                            page=page,
                            relative_path=posixpath.join(directory, f"{stub}.md"),
                            kind=CROSS_REFERENCE_STEP,
                            parent_id=parent_id,
                            canonical_path=plan.canonical_paths[page.id],
                        )
                    )
                    continue

                slug = claim(directory, title_slug(page.title))
                children = children_of.get(page.id, [])
                if children:
                    child_dir = posixpath.join(directory, slug)
                    relative_path = posixpath.join(child_dir, "index.md")
                else:
                    relative_path = posixpath.join(directory, f"{slug}.md")

                plan.canonical_paths[page.id] = relative_path
                plan.steps.append(
                    ExportStep(page=page, relative_path=relative_path, parent_id=parent_id)
                )
                if children:
                    visit(children, page.id, child_dir, [*path, page.id])

        visit(roots, None, "", [])

        for page in pages:
            if page.id not in plan.canonical_paths and page.id not in plan.cycles:
                self.logger.warning(
                    f"Page {page.id} is only reachable through a circular parent chain, skipping"
                )
                plan.cycles.append(page.id)

        return plan

    def export_space(
        self,
        site_config: SiteConfig,
        mapping: SpaceMapping,
        space: Space,
        pages: list[Page],
        only_page_ids: set[str] | None = None,
        last_sync_time: datetime | None = None,
        include_missing: bool = False,
    ) -> ExportResult:
        """Export a space (or a subset of its pages) into its category.

        Placement is always computed from the whole space so a partial export
        writes pages exactly where a full export would.

        Args:
            site_config: Workspace site configuration
            mapping: Mapping of the space to its category
            space: The space being exported
            pages: All pages of the space
            only_page_ids: Restrict writes to these pages (None = all)
            last_sync_time: End of the last run that wrote files, for conflict checks
            include_missing: Also write pages whose planned file does not exist,
                e.g. a leaf that gained its first child and moves to ``index.md``

        Returns:
            ExportResult; failures are recorded, never raised
        """
        category_dir = self.category_dir(site_config, mapping, space)
        result = ExportResult(category_path=str(category_dir))

        try:
            self.write_category_metadata(category_dir, mapping, space.name)
        except OSError as e:
            result.space_error = f"Space {space.name}: cannot prepare category directory: {e}"
            result.errors.append(result.space_error)
            self.logger.error(result.space_error)
            return result

        plan = self.plan_space_export(pages)
        result.skipped_cycles = list(plan.cycles)
        titled = [p for p in pages if p.title and p.id in plan.canonical_paths]

        selected = None
        if only_page_ids is not None:
            selected = set(only_page_ids)
            if include_missing:
                selected.update(
                    step.page.id
                    for step in plan.steps
                    if not (category_dir / step.relative_path).exists()
                )

        for step in plan.steps:
            if selected is not None and step.page.id not in selected:
                continue
            if step.kind == CROSS_REFERENCE_STEP:
                self._export_cross_reference(category_dir, step, last_sync_time, result)
            else:
                self._export_page_step(category_dir, step, plan, titled, last_sync_time, result)

        self.logger.info(
            f"Exported {result.exported} pages of space {space.name} to {category_dir} "
            f"({result.failed} failed, {result.cross_references} cross-references, "
            f"{len(result.conflicts)} conflicts)"
        )
        return result

    def export_page(
        self,
        site_config: SiteConfig,
        mapping: SpaceMapping,
        space: Space,
        pages: list[Page],
        page_id: str,
        include_children: bool = False,
        last_sync_time: datetime | None = None,
    ) -> ExportResult:
        """Export one page, optionally with its whole subtree.

        Args:
            site_config: Workspace site configuration
            mapping: Mapping of the page's space
            space: The page's space
            pages: All pages of the space
            page_id: Page to export
            include_children: Also export every descendant
            last_sync_time: End of the last run that wrote files, for conflict checks

        Returns:
            ExportResult of the partial export
        """
        selected = {page_id}
        if include_children:
            frontier = [page_id]
            while frontier:
                current = frontier.pop()
                for page in pages:
                    parents = {page.parent_id, *page.additional_parent_ids}
                    if current in parents and page.id not in selected:
                        selected.add(page.id)
                        frontier.append(page.id)

        return self.export_space(
            site_config, mapping, space, pages, selected, last_sync_time
        )

    def render_page(self, page: Page) -> str:
        """Render a page, reporting any renderer failure as a RenderError."""
        try:
            return self.renderer.render(page)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(page.id, f"{type(e).__name__}: {e}") from e

    def _export_page_step(
        self,
        category_dir: Path,
        step: ExportStep,
        plan: ExportPlan,
        titled: list[Page],
        last_sync_time: datetime | None,
        result: ExportResult,
    ) -> None:
        result.planned_pages += 1
        try:
            content = self.render_page(step.page)
            references = self.relationship_extractor.find_content_references(step.page, titled)
            targets = {
                ref.title: relative_link(step.relative_path, plan.canonical_paths[ref.id])
                for ref in references
            }
            content = link_titles(content, targets)
            outcome = self.write_file(
                category_dir, step.relative_path, content, last_sync_time, result
            )
        except RenderError as e:
            result.failed += 1
            result.errors.append(str(e))
            self.logger.error(str(e))
        except OSError as e:
            result.failed += 1
            message = f"Failed to write {step.relative_path}: {e}"
            result.errors.append(message)
            self.logger.error(message)
        else:
            result.exported += 1
            result.outcomes[step.relative_path] = outcome

    def _export_cross_reference(
        self,
        category_dir: Path,
        step: ExportStep,
        last_sync_time: datetime | None,
        result: ExportResult,
    ) -> None:
        content = self.cross_reference_content(step)
        try:
            outcome = self.write_file(
                category_dir, step.relative_path, content, last_sync_time, result
            )
        except OSError as e:
            message = f"Failed to write cross-reference {step.relative_path}: {e}"
            result.errors.append(message)
            self.logger.error(message)
            return

        result.cross_references += 1
        result.outcomes[step.relative_path] = outcome
        if step.parent_id:
            result.relationships.append(
                PageRelationship(
                    parent_id=step.parent_id,
                    child_id=step.page.id,
                    kind=RelationshipKind.CROSS_LINK,
                )
            )
        self.logger.info(f"Created cross-reference for {step.page.id} at {step.relative_path}")

    @staticmethod
    def cross_reference_content(step: ExportStep) -> str:
        """Redirect-style stub pointing at a page's canonical file."""
        title = step.page.title or "Untitled"
        link = relative_link(step.relative_path, step.canonical_path)
        return (
            "---\n"
            f"title: {json.dumps(title)}\n"
            f"description: {json.dumps(f'Cross-reference to {title}')}\n"
            "---\n\n"
            f"# {title}\n\n"
            ":::info\n"
            f"This page has been moved. See [{title}]({link}).\n"
            ":::\n\n"
            "*This cross-reference was generated automatically during export.*\n"
        )

    def write_file(
        self,
        category_dir: Path,
        relative_path: str,
        content: str,
        last_sync_time: datetime | None,
        result: ExportResult,
    ) -> str:
        """Write a file, applying conflict resolution when it already exists.

        Returns:
            'written', 'unchanged', 'skipped' or 'merged'

        Raises:
            OSError: On filesystem failures other than detected conflicts
        """
        target = category_dir / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)

        if target.exists():
            conflict = self.detect_conflict(target, content, last_sync_time)
            if conflict is None:
                return "unchanged"
            result.conflicts.append(conflict)
            self.logger.warning(
                f"Conflict on {conflict.file_path}: {conflict.message} "
                f"(resolution: {conflict.resolution.value})"
            )
            return self.resolve_conflict(target, content, conflict)

        target.write_text(content, encoding="utf-8")
        return "written"

    def detect_conflict(
        self, target: Path, content: str, last_sync_time: datetime | None
    ) -> ConflictInfo | None:
        """Classify an existing target file.

        Returns:
            None when the file already holds ``content``, otherwise the conflict
        """
        if not os.access(target, os.W_OK):
            return self._conflict(target, ConflictKind.PERMISSION_DENIED, "File is not writable")

        try:
            existing = target.read_text(encoding="utf-8")
            modified = datetime.fromtimestamp(target.stat().st_mtime, timezone.utc)
        except PermissionError as e:
            return self._conflict(
                target, ConflictKind.PERMISSION_DENIED, f"Permission denied: {e}"
            )
        except UnicodeDecodeError:
            existing = None
            modified = datetime.fromtimestamp(target.stat().st_mtime, timezone.utc)

        if existing == content:
            return None

        if last_sync_time is not None and modified > last_sync_time:
            return self._conflict(
                target,
                ConflictKind.NEWER_VERSION,
                f"File was modified at {modified.isoformat()}, after the last sync",
            )

        return self._conflict(
            target, ConflictKind.FILE_EXISTS, "File exists with different content"
        )

    def _conflict(self, target: Path, kind: ConflictKind, message: str) -> ConflictInfo:
        return ConflictInfo(
            file_path=str(target),
            kind=kind,
            resolution=self.resolutions[kind],
            message=message,
        )

    def resolve_conflict(self, target: Path, content: str, conflict: ConflictInfo) -> str:
        """Apply a conflict's resolution to the target file.

        Returns:
            'skipped', 'merged' or 'written'
        """
        if conflict.resolution == ConflictResolution.SKIP:
            self.logger.info(f"Skipped {target}")
            return "skipped"

        if conflict.resolution == ConflictResolution.MERGE:
            backup = target.with_name(f"{target.name}.backup.{int(time.time() * 1000)}")
            shutil.copy2(target, backup)
            target.write_text(content, encoding="utf-8")
            self.logger.info(f"Backed up {target} to {backup.name} before overwriting")
            return "merged"

        target.write_text(content, encoding="utf-8")
        return "written"
