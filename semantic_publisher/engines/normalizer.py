"""Conversion of raw page records into plain-text documents."""

import json
import logging
from typing import Any

from semantic_publisher.models import Document, Page


class DocumentNormalizer:
    """Extracts title and body text from structured page content."""

    def __init__(self):
        self.logger = logging.getLogger("document_normalizer")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def extract_text(self, content: Any) -> str:
        """Concatenate the text leaves of a structured document.

        The tree is walked depth-first; every node carrying a non-empty
        ``text`` string contributes it, and ``content`` lists are descended
        in order. Unparsable JSON yields an empty string.

        Args:
            content: Structured document as a dict/list or its JSON text

        Returns:
            Space-separated text of all leaves
        """
        if content is None or content == "":
            return ""

        if isinstance(content, str):
            try:
                content = json.loads(content)
            except json.JSONDecodeError as e:
                self.logger.debug(f"Unparsable structured content: {e}")
                return ""

        texts = []
        stack = [content]
        while stack:
            node = stack.pop()
            if isinstance(node, list):
                stack.extend(reversed(node))
                continue
            if not isinstance(node, dict):
                continue

            text = node.get("text")
            if isinstance(text, str) and text.strip():
                texts.append(text.strip())

            children = node.get("content")
            if isinstance(children, list):
                stack.extend(reversed(children))

        return " ".join(texts)

    def normalize(self, page: Page) -> Document:
        """Build the plain-text document view of a page."""
        return Document(
            id=page.id,
            title=page.title or "",
            body_text=self.extract_text(page.content),
            space_id=page.space_id,
            parent_id=page.parent_id,
            created_at=page.created_at,
            updated_at=page.updated_at,
        )

    def normalize_pages(self, pages: list[Page]) -> list[Document]:
        """Normalize pages, preserving input order."""
        documents = [self.normalize(page) for page in pages]
        self.logger.debug(f"Normalized {len(documents)} pages")
        return documents
