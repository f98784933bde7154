"""Rendering of structured page content into Markdown files."""

import json
from typing import Any, Protocol

from semantic_publisher.errors import RenderError
from semantic_publisher.models import Page

INLINE_MARKS = {
    "bold": ("**", "**"),
    "italic": ("*", "*"),
    "strike": ("~~", "~~"),
    "code": ("`", "`"),
}


def _int_attr(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class Renderer(Protocol):
    """Converts a page into publishable file content."""

    def render(self, page: Page) -> str: ...


class MarkdownRenderer:
    """Renders rich-text document trees as Markdown with a front matter block."""

    def render(self, page: Page) -> str:
        """Render a page.

        Args:
            page: Page whose content is a document tree or its JSON text

        Returns:
            Markdown text with a ``title`` front matter entry

        Raises:
            RenderError: If the content is not a document tree
        """
        content = page.content
        if isinstance(content, str) and content.strip():
            try:
                content = json.loads(content)
            except json.JSONDecodeError as e:
                raise RenderError(page.id, f"invalid document JSON ({e})") from e
        elif isinstance(content, str):
            content = None

        if content is not None and not isinstance(content, dict | list):
            raise RenderError(page.id, f"unsupported content type {type(content).__name__}")

        title = page.title or "Untitled"
        front_matter = f"---\ntitle: {json.dumps(title)}\n---\n\n"
        body = self._render_blocks(content) if content is not None else ""
        return front_matter + (body.rstrip() + "\n" if body.strip() else "")

    def _render_blocks(self, node: Any) -> str:
        if isinstance(node, list):
            children = node
        elif node.get("type") in (None, "doc"):
            children = node.get("content") or []
        else:
            children = [node]

        blocks = [self._render_block(child) for child in children if isinstance(child, dict)]
        return "\n\n".join(block for block in blocks if block)

    def _render_block(self, node: dict[str, Any]) -> str:
        node_type = node.get("type")
        attrs = node.get("attrs") or {}
        children = node.get("content") or []

        if node_type == "paragraph":
            return self._render_inline(children)
        if node_type == "heading":
            level = min(max(_int_attr(attrs.get("level"), 1), 1), 6)
            return f"{'#' * level} {self._render_inline(children)}"
        if node_type in ("bulletList", "orderedList", "taskList"):
            return self._render_list(node)
        if node_type == "codeBlock":
            language = attrs.get("language") or ""
            code = "".join(str(c.get("text") or "") for c in children if isinstance(c, dict))
            return f"```{language}\n{code}\n```"
        if node_type == "blockquote":
            inner = self._render_blocks(children)
            return "\n".join(f"> {line}" if line else ">" for line in inner.splitlines())
        if node_type == "horizontalRule":
            return "---"
        if node_type == "image":
            return f"![{attrs.get('alt') or ''}]({attrs.get('src') or ''})"
        if node_type == "text" or node_type == "mention":
            return self._render_inline([node])
        return self._render_blocks(children)

    def _render_list(self, node: dict[str, Any]) -> str:
        ordered = node.get("type") == "orderedList"
        number = _int_attr((node.get("attrs") or {}).get("start"), 1)
        lines = []
        for item in node.get("content") or []:
            if not isinstance(item, dict):
                continue
            marker = f"{number}." if ordered else "-"
            if item.get("type") == "taskItem":
                checked = (item.get("attrs") or {}).get("checked")
                marker = f"- [{'x' if checked else ' '}]"
            text = self._render_blocks(item.get("content") or [])
            item_lines = text.splitlines() or [""]
            indent = " " * (len(marker) + 1)
            lines.append(f"{marker} {item_lines[0]}")
            lines.extend(f"{indent}{line}" if line else "" for line in item_lines[1:])
            number += 1
        return "\n".join(lines)

    def _render_inline(self, nodes: list[Any]) -> str:
        parts = []
        for node in nodes:
            if not isinstance(node, dict):
                continue
            node_type = node.get("type")
            attrs = node.get("attrs") or {}
            if node_type == "hardBreak":
                parts.append("  \n")
            elif node_type == "mention":
                parts.append(str(attrs.get("label") or attrs.get("id") or ""))
            elif node_type == "text":
                text = str(node.get("text") or "")
                parts.append(self._apply_marks(text, node.get("marks") or []))
            else:
                parts.append(self._render_inline(node.get("content") or []))
        return "".join(parts)

    @staticmethod
    def _apply_marks(text: str, marks: list[dict[str, Any]]) -> str:
        href = None
        for mark in marks:
            if not isinstance(mark, dict):
                continue
            mark_type = mark.get("type")
            if mark_type == "link":
                href = (mark.get("attrs") or {}).get("href")
            elif mark_type in INLINE_MARKS:
                opening, closing = INLINE_MARKS[mark_type]
                text = f"{opening}{text}{closing}"
        if href:
            text = f"[{text}]({href})"
        return text
