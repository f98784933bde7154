"""Test Markdown rendering of structured page content."""

import json

import pytest

from semantic_publisher.errors import RenderError
from semantic_publisher.models import Page
from semantic_publisher.services.renderer import MarkdownRenderer


def render(content, title="Page"):
    page = Page(id="p1", space_id="s1", title=title, content=content)
    return MarkdownRenderer().render(page)


def text(value, *marks):
    node = {"type": "text", "text": value}
    if marks:
        node["marks"] = list(marks)
    return node


class TestMarkdownRenderer:
    """Test block and inline rendering."""

    def test_render_when_empty_content_emits_front_matter_only(self):
        """Test pages without content still get a title."""
        assert render(None, title="Empty") == '---\ntitle: "Empty"\n---\n\n'

    def test_render_when_untitled_uses_placeholder_title(self):
        """Test missing titles fall back to Untitled."""
        assert render(None, title=None).startswith('---\ntitle: "Untitled"\n---')

    def test_render_when_headings_and_paragraphs_separates_blocks(self):
        """Test block nodes are joined with blank lines."""
        doc = {
            "type": "doc",
            "content": [
                {"type": "heading", "attrs": {"level": 2}, "content": [text("Setup")]},
                {"type": "paragraph", "content": [text("Install it.")]},
            ],
        }

        body = render(doc).split("---\n\n", 1)[1]

        assert body == "## Setup\n\nInstall it.\n"

    def test_render_when_marks_applied_wraps_text(self):
        """Test inline marks and links."""
        doc = {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [
                        text("bold", {"type": "bold"}),
                        text(" and "),
                        text("docs", {"type": "link", "attrs": {"href": "https://x.io"}}),
                        text(" "),
                        text("code", {"type": "code"}),
                    ],
                }
            ],
        }

        assert "**bold** and [docs](https://x.io) `code`" in render(doc)

    def test_render_when_lists_numbers_ordered_items(self):
        """Test bullet, ordered and task lists."""

        def item(value, **attrs):
            return {
                "type": "taskItem" if attrs else "listItem",
                "attrs": attrs,
                "content": [{"type": "paragraph", "content": [text(value)]}],
            }

        doc = {
            "type": "doc",
            "content": [
                {"type": "bulletList", "content": [item("one"), item("two")]},
                {"type": "orderedList", "attrs": {"start": 3}, "content": [item("three")]},
                {"type": "taskList", "content": [item("done", checked=True)]},
            ],
        }

        body = render(doc)

        assert "- one\n- two" in body
        assert "3. three" in body
        assert "- [x] done" in body

    def test_render_when_code_block_keeps_language(self):
        """Test fenced code blocks."""
        doc = {
            "type": "doc",
            "content": [
                {
                    "type": "codeBlock",
                    "attrs": {"language": "python"},
                    "content": [text("print('hi')")],
                }
            ],
        }

        assert "```python\nprint('hi')\n```" in render(doc)

    def test_render_when_content_is_json_text_parses_it(self):
        """Test serialized documents are accepted."""
        doc = {"type": "doc", "content": [{"type": "paragraph", "content": [text("Hi")]}]}

        assert render(json.dumps(doc)).endswith("Hi\n")

    def test_render_when_json_text_invalid_raises_render_error(self):
        """Test malformed serialized documents fail the page."""
        with pytest.raises(RenderError, match="Failed to render page p1"):
            render("{ broken")

    def test_render_when_content_type_unsupported_raises_render_error(self):
        """Test scalar content is rejected."""
        with pytest.raises(RenderError) as exc_info:
            render(42)

        assert exc_info.value.page_id == "p1"

    def test_render_when_attributes_malformed_falls_back_to_defaults(self):
        """Test null or non-numeric attributes and null text still render."""
        doc = {
            "type": "doc",
            "content": [
                {"type": "heading", "attrs": {"level": None}, "content": [text("Title")]},
                {
                    "type": "orderedList",
                    "attrs": {"start": "first"},
                    "content": [
                        {
                            "type": "listItem",
                            "content": [{"type": "paragraph", "content": [text("one")]}],
                        }
                    ],
                },
                {"type": "codeBlock", "content": [{"type": "text", "text": None}]},
                {"type": "paragraph", "content": [{"type": "text", "text": None}]},
            ],
        }

        body = render(doc)

        assert "# Title" in body
        assert "1. one" in body
        assert "```\n\n```" in body
