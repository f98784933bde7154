"""Test hierarchical, reference and content-link relationship discovery."""

from semantic_publisher.engines.relationship_extractor import (
    RelationshipExtractor,
    extract_entities,
)
from semantic_publisher.models import Document, Page, RelationshipKind


def doc(doc_id: str, body: str, parent_id: str | None = None) -> Document:
    return Document(
        id=doc_id, title=doc_id, body_text=body, space_id="s1", parent_id=parent_id
    )


def linked_page(page_id: str, *nodes: dict) -> Page:
    return Page(
        id=page_id,
        space_id="s1",
        title=page_id.title(),
        content={"type": "doc", "content": [{"type": "paragraph", "content": list(nodes)}]},
    )


class TestExtractEntities:
    """Test named entity heuristic."""

    def test_extract_entities_when_capitalized_words_present_returns_case_folded(self):
        """Test capitalized words longer than three characters are entities."""
        entities = extract_entities("Deploy Kubernetes with Helm, then call Grafana. Ok API")

        assert entities == {"deploy", "kubernetes", "helm", "grafana"}


class TestRelationshipExtractor:
    """Test relationship extraction over documents."""

    def test_hierarchical_relationships_when_parent_set_emits_one_per_child(self):
        """Test every document with a parent yields a hierarchical relationship."""
        documents = [doc("root", ""), doc("a", "", "root"), doc("b", "", "root")]

        relationships = RelationshipExtractor().hierarchical_relationships(documents)

        assert [(r.parent_id, r.child_id) for r in relationships] == [
            ("root", "a"),
            ("root", "b"),
        ]
        assert all(r.kind == RelationshipKind.HIERARCHICAL for r in relationships)

    def test_reference_relationships_when_two_entities_shared_emits_both_directions(
        self,
    ):
        """Test shared entities produce one relationship per ordered pair."""
        documents = [
            doc("a", "Using Kubernetes with Prometheus"),
            doc("b", "Prometheus scrapes Kubernetes pods"),
            doc("c", "Only Kubernetes here"),
        ]

        relationships = RelationshipExtractor().reference_relationships(documents)

        assert [(r.parent_id, r.child_id) for r in relationships] == [
            ("a", "b"),
            ("b", "a"),
        ]
        assert all(r.kind == RelationshipKind.REFERENCE for r in relationships)

    def test_extract_when_corpus_has_both_kinds_returns_all(self):
        """Test extract combines hierarchical and reference relationships."""
        documents = [
            doc("a", "Grafana dashboards for Prometheus"),
            doc("b", "Prometheus feeds Grafana", "a"),
        ]

        kinds = [r.kind for r in RelationshipExtractor().extract(documents)]

        assert kinds.count(RelationshipKind.HIERARCHICAL) == 1
        assert kinds.count(RelationshipKind.REFERENCE) == 2


class TestFindContentReferences:
    """Test reference discovery inside structured page content."""

    def test_find_content_references_when_link_mark_targets_slug_returns_page(self):
        """Test a link whose path ends with another page's slug is a reference."""
        target = Page(id="p2", space_id="s1", title="Install Guide")
        page = linked_page(
            "p1",
            {
                "type": "text",
                "text": "see here",
                "marks": [{"type": "link", "attrs": {"href": "../setup/install-guide.md"}}],
            },
        )

        references = RelationshipExtractor().find_content_references(page, [page, target])

        assert references == [target]

    def test_find_content_references_when_mention_carries_id_returns_page(self):
        """Test mention nodes reference pages by id."""
        target = Page(id="p2", space_id="s1", title="Other")
        page = linked_page("p1", {"type": "mention", "attrs": {"id": "p2"}})

        assert RelationshipExtractor().find_content_references(page, [target]) == [target]

    def test_find_content_references_when_title_in_text_returns_page(self):
        """Test plain title mentions are references."""
        target = Page(id="p2", space_id="s1", title="Release Process")
        page = linked_page("p1", {"type": "text", "text": "Follow the Release Process."})

        assert RelationshipExtractor().find_content_references(page, [target]) == [target]

    def test_find_content_references_when_only_self_referenced_returns_empty(self):
        """Test a page never references itself."""
        page = linked_page("p1", {"type": "text", "text": "P1 talks about P1"})

        assert RelationshipExtractor().find_content_references(page, [page]) == []

    def test_find_content_references_when_unrelated_returns_empty(self):
        """Test unrelated candidates are not returned."""
        target = Page(id="p2", space_id="s1", title="Billing")
        page = linked_page("p1", {"type": "text", "text": "Deployment notes"})

        assert RelationshipExtractor().find_content_references(page, [target]) == []
