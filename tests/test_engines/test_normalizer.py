"""Test conversion of structured page content into plain-text documents."""

import json

from semantic_publisher.engines.normalizer import DocumentNormalizer
from semantic_publisher.models import Page


class TestDocumentNormalizer:
    """Test text extraction and page normalization."""

    def test_extract_text_when_nested_tree_joins_leaves_depth_first(self):
        """Test text leaves are concatenated in document order."""
        content = {
            "type": "doc",
            "content": [
                {"type": "heading", "content": [{"type": "text", "text": "Intro"}]},
                {
                    "type": "bulletList",
                    "content": [
                        {
                            "type": "listItem",
                            "content": [
                                {
                                    "type": "paragraph",
                                    "content": [
                                        {"type": "text", "text": "first"},
                                        {"type": "text", "text": " second "},
                                    ],
                                }
                            ],
                        }
                    ],
                },
                {"type": "paragraph", "content": [{"type": "text", "text": "last"}]},
            ],
        }

        text = DocumentNormalizer().extract_text(content)

        assert text == "Intro first second last"

    def test_extract_text_when_json_string_parses_content(self):
        """Test structured content stored as JSON text is parsed."""
        content = json.dumps(
            {"type": "doc", "content": [{"type": "text", "text": "hello"}]}
        )

        assert DocumentNormalizer().extract_text(content) == "hello"

    def test_extract_text_when_json_malformed_returns_empty_string(self):
        """Test unparsable content yields an empty body instead of failing."""
        assert DocumentNormalizer().extract_text("{not json") == ""

    def test_extract_text_when_content_missing_returns_empty_string(self):
        """Test empty content yields an empty body."""
        normalizer = DocumentNormalizer()

        assert normalizer.extract_text(None) == ""
        assert normalizer.extract_text("") == ""

    def test_normalize_when_title_missing_uses_empty_title(self):
        """Test page fields are carried onto the document."""
        page = Page(
            id="p1",
            space_id="s1",
            parent_id="p0",
            content={"type": "doc", "content": [{"type": "text", "text": "Body"}]},
        )

        document = DocumentNormalizer().normalize(page)

        assert document.id == "p1"
        assert document.title == ""
        assert document.body_text == "Body"
        assert document.space_id == "s1"
        assert document.parent_id == "p0"
        assert document.updated_at == page.updated_at

    def test_normalize_pages_when_several_pages_preserves_order(self, make_page):
        """Test normalization keeps input order."""
        pages = [make_page("b", "B"), make_page("a", "A"), make_page("c", "C")]

        documents = DocumentNormalizer().normalize_pages(pages)

        assert [d.id for d in documents] == ["b", "a", "c"]
