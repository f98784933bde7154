"""Derivation of hierarchical and content-reference relationships between pages."""

import json
import logging
import re
from typing import Any

from semantic_publisher.engines.slugs import title_slug
from semantic_publisher.models import Document, Page, PageRelationship, RelationshipKind

_ENTITY = re.compile(r"^[A-Z][a-z]+")
_EDGE_PUNCTUATION = re.compile(r"^\W+|\W+$")

MIN_SHARED_ENTITIES = 2


def extract_entities(text: str) -> set[str]:
    """Capitalized words longer than three characters, case-folded."""
    entities = set()
    for word in text.split():
        word = _EDGE_PUNCTUATION.sub("", word)
        if len(word) > 3 and _ENTITY.match(word):
            entities.add(word.lower())
    return entities


def _walk_nodes(content: Any):
    """Yield every dict node of a structured document, depth-first."""
    if isinstance(content, str):
        try:
            content = json.loads(content)
        except json.JSONDecodeError:
            return
    stack = [content]
    while stack:
        node = stack.pop()
        if isinstance(node, list):
            stack.extend(reversed(node))
        elif isinstance(node, dict):
            yield node
            children = node.get("content")
            if isinstance(children, list):
                stack.extend(reversed(children))


class RelationshipExtractor:
    """Finds parent/child and shared-entity relationships in a corpus."""

    def __init__(self):
        self.logger = logging.getLogger("relationship_extractor")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def hierarchical_relationships(self, documents: list[Document]) -> list[PageRelationship]:
        """One relationship per document that has a parent."""
        return [
            PageRelationship(
                parent_id=doc.parent_id,
                child_id=doc.id,
                kind=RelationshipKind.HIERARCHICAL,
            )
            for doc in documents
            if doc.parent_id
        ]

    def reference_relationships(self, documents: list[Document]) -> list[PageRelationship]:
        """Directed relationships between documents sharing named entities.

        Every ordered pair is checked, so a symmetric overlap produces one
        relationship in each direction.
        """
        entities = [extract_entities(doc.body_text) for doc in documents]
        relationships = []
        for i, source in enumerate(documents):
            for j, target in enumerate(documents):
                if i == j:
                    continue
                if len(entities[i] & entities[j]) >= MIN_SHARED_ENTITIES:
                    relationships.append(
                        PageRelationship(
                            parent_id=source.id,
                            child_id=target.id,
                            kind=RelationshipKind.REFERENCE,
                        )
                    )
        return relationships

    def extract(self, documents: list[Document]) -> list[PageRelationship]:
        """All hierarchical and reference relationships of a corpus."""
        relationships = self.hierarchical_relationships(documents)
        relationships.extend(self.reference_relationships(documents))
        self.logger.debug(
            f"Extracted {len(relationships)} relationships from {len(documents)} documents"
        )
        return relationships

    def find_content_references(self, page: Page, candidates: list[Page]) -> list[Page]:
        """Pages referred to from a page's structured content.

        A candidate is referenced when a link points at its id or title slug,
        when a mention node carries its id, or when its title appears in the
        page's text. The page itself is never returned.

        Args:
            page: Page whose content is inspected
            candidates: Pages that may be referenced

        Returns:
            Referenced candidates in candidate order
        """
        others = [c for c in candidates if c.id != page.id]
        if not others:
            return []

        hrefs = []
        mention_ids = set()
        texts = []
        for node in _walk_nodes(page.content):
            node_type = node.get("type")
            attrs = node.get("attrs") or {}
            if node_type == "link" and attrs.get("href"):
                hrefs.append(str(attrs["href"]))
            elif node_type == "mention" and attrs.get("id"):
                mention_ids.add(str(attrs["id"]))
            for mark in node.get("marks") or []:
                mark_attrs = mark.get("attrs") or {}
                if mark.get("type") == "link" and mark_attrs.get("href"):
                    hrefs.append(str(mark_attrs["href"]))
            if isinstance(node.get("text"), str):
                texts.append(node["text"])

        full_text = " ".join(texts)
        segments = {
            segment.removesuffix(".md")
            for href in hrefs
            for segment in re.split(r"[/#?]", href.lower())
            if segment
        }
        referenced = []
        for candidate in others:
            linked = any(candidate.id in href for href in hrefs) or (
                bool(candidate.title) and title_slug(candidate.title) in segments
            )
            mentioned = candidate.id in mention_ids
            named = bool(candidate.title) and candidate.title in full_text
            if linked or mentioned or named:
                referenced.append(candidate)
        return referenced
