"""Confidence-scored category suggestions from clusters, keywords and hierarchy.

Four strategies run independently over the same analysis inputs and their
results are merged into one list ordered by confidence.
"""

import logging
from collections import Counter

from semantic_publisher.config.settings import PublisherConfig
from semantic_publisher.engines.lexical_index import tokenize
from semantic_publisher.models import (
    CategorySuggestion,
    ContentCluster,
    Document,
    PageRelationship,
    RelationshipKind,
    Space,
    SuggestionKind,
)

CATEGORY_SUFFIXES = [
    ("API", ("api", "endpoint", "rest", "graphql")),
    ("Guides", ("guide", "howto", "setup")),
    ("Tutorials", ("tutorial", "walkthrough")),
    ("Concepts", ("concept", "overview", "introduction", "basics")),
]

SPACE_SUGGESTION_CONFIDENCE = 0.8
HIERARCHY_SUGGESTION_CONFIDENCE = 0.75
SPACE_KEYWORD_LIMIT = 5
KEYWORD_CANDIDATES = 10


def capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def _in_family(tag: str, family: tuple[str, ...]) -> bool:
    tag = tag.lower()
    return any(tag.startswith(keyword) for keyword in family)


def generate_category_name(tags: list[str]) -> str:
    """Build a human-readable category name from up to three tags.

    Args:
        tags: Tags in relevance order

    Returns:
        "General" for no tags, the capitalized tag for one, otherwise the
        primary tag with a family suffix (API, Guides, Tutorials, Concepts)
        or all tags joined with "&"
    """
    relevant = [tag for tag in tags if tag][:3]
    if not relevant:
        return "General"
    if len(relevant) == 1:
        return capitalize(relevant[0])

    primary = capitalize(relevant[0])
    for suffix, family in CATEGORY_SUFFIXES:
        if any(_in_family(tag, family) for tag in relevant):
            return f"{primary} {suffix}"
    return " & ".join(capitalize(tag) for tag in relevant)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class CategorySuggestionGenerator:
    """Turns analysis signals into ranked taxonomy suggestions."""

    def __init__(self, config: PublisherConfig | None = None):
        """Initialize suggestion generator.

        Args:
            config: Optional PublisherConfig instance
        """
        self.config = config or PublisherConfig()

        self.logger = logging.getLogger("suggestion_engine")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def _spaces_of(page_ids: list[str], documents_by_id: dict[str, Document]) -> list[str]:
        spaces = dict.fromkeys(
            documents_by_id[page_id].space_id
            for page_id in page_ids
            if page_id in documents_by_id
        )
        return list(spaces)

    def cluster_suggestions(
        self,
        clusters: list[ContentCluster],
        documents: list[Document],
        mode: str,
    ) -> list[CategorySuggestion]:
        """One suggestion per sufficiently large, tagged cluster."""
        documents_by_id = {doc.id: doc for doc in documents}
        suggestions = []
        for cluster in clusters:
            if len(cluster.pages) < self.config.min_pages_for_suggestion:
                continue
            if not cluster.common_tags:
                continue

            tag_count = len(cluster.common_tags)
            if mode == "basic":
                confidence = min(0.9, tag_count * 0.2)
            else:
                confidence = min(0.95, cluster.cohesion * 0.7 + tag_count * 0.1)

            suggestions.append(
                CategorySuggestion(
                    kind=SuggestionKind.CONTENT_CLUSTER,
                    name=generate_category_name(cluster.common_tags),
                    suggested_spaces=self._spaces_of(cluster.pages, documents_by_id),
                    confidence=_clamp(confidence),
                    reasoning=(
                        f"Based on {len(cluster.pages)} pages with common topics: "
                        f"{', '.join(cluster.common_tags[:3])}"
                    ),
                    pages=list(cluster.pages),
                )
            )
        return suggestions

    def keyword_suggestions(
        self, keywords: list[tuple[str, float]], documents: list[Document]
    ) -> list[CategorySuggestion]:
        """Suggestions for top corpus keywords discussed by several pages."""
        if not keywords or keywords[0][1] <= 0:
            return []

        top_score = keywords[0][1]
        token_sets = [set(tokenize(doc.text)) for doc in documents]
        documents_by_id = {doc.id: doc for doc in documents}

        suggestions = []
        for keyword, score in keywords[:KEYWORD_CANDIDATES]:
            if score <= 0:
                continue
            related = [
                doc.id
                for doc, tokens in zip(documents, token_sets, strict=True)
                if keyword in tokens
            ]
            if len(related) < self.config.min_pages_for_suggestion:
                continue
            suggestions.append(
                CategorySuggestion(
                    kind=SuggestionKind.KEYWORD_BASED,
                    name=capitalize(keyword),
                    suggested_spaces=self._spaces_of(related, documents_by_id),
                    confidence=_clamp(min(0.8, score / top_score * 0.8)),
                    reasoning=f'Pages frequently discuss "{keyword}" ({len(related)} pages)',
                    pages=related,
                )
            )
        return suggestions

    def space_suggestions(
        self,
        spaces: list[Space],
        documents: list[Document],
        keywords: list[tuple[str, float]],
    ) -> list[CategorySuggestion]:
        """Suggestions naming each populated space after its prominent keywords."""
        suggestions = []
        for space in spaces:
            space_docs = [doc for doc in documents if doc.space_id == space.id]
            if not space_docs:
                continue

            tokens = set().union(*(tokenize(doc.text) for doc in space_docs))
            related = [keyword for keyword, _ in keywords if keyword in tokens][
                :SPACE_KEYWORD_LIMIT
            ]
            if not related:
                continue

            suggestions.append(
                CategorySuggestion(
                    kind=SuggestionKind.SPACE_BASED,
                    name=generate_category_name([space.name, *related]),
                    suggested_spaces=[space.id],
                    confidence=SPACE_SUGGESTION_CONFIDENCE,
                    reasoning=f'Based on space "{space.name}" with {len(space_docs)} pages',
                    pages=[doc.id for doc in space_docs],
                )
            )
        return suggestions

    def hierarchy_suggestions(
        self, relationships: list[PageRelationship], documents: list[Document]
    ) -> list[CategorySuggestion]:
        """Suggestions for pages with many direct children."""
        child_counts = Counter(
            rel.parent_id
            for rel in relationships
            if rel.kind == RelationshipKind.HIERARCHICAL
        )
        documents_by_id = {doc.id: doc for doc in documents}

        suggestions = []
        for parent_id, child_count in child_counts.items():
            if child_count < self.config.min_pages_for_suggestion:
                continue
            parent = documents_by_id.get(parent_id)
            if parent is None:
                continue
            children = [doc.id for doc in documents if doc.parent_id == parent_id]
            suggestions.append(
                CategorySuggestion(
                    kind=SuggestionKind.SPACE_BASED,
                    name=parent.title or "Hierarchical Section",
                    suggested_spaces=[parent.space_id],
                    confidence=HIERARCHY_SUGGESTION_CONFIDENCE,
                    reasoning=(
                        f'"{parent.title}" has {child_count} sub-pages, '
                        "indicating a major topic"
                    ),
                    pages=[parent_id, *children],
                )
            )
        return suggestions

    def generate(
        self,
        spaces: list[Space],
        documents: list[Document],
        clusters: list[ContentCluster],
        keywords: list[tuple[str, float]],
        relationships: list[PageRelationship],
        mode: str | None = None,
    ) -> list[CategorySuggestion]:
        """Run every strategy and merge the results.

        Args:
            spaces: Spaces of the workspace
            documents: Normalized documents
            clusters: Clusters from the cluster engine
            keywords: Corpus keywords from the lexical index
            relationships: Relationships from the relationship extractor
            mode: Clustering mode the clusters were built with

        Returns:
            Suggestions by descending confidence, truncated to max_suggestions
        """
        mode = mode or self.config.clustering_mode
        suggestions = [
            *self.cluster_suggestions(clusters, documents, mode),
            *self.keyword_suggestions(keywords, documents),
            *self.space_suggestions(spaces, documents, keywords),
            *self.hierarchy_suggestions(relationships, documents),
        ]
        suggestions.sort(key=lambda s: s.confidence, reverse=True)

        if self.config.max_suggestions:
            suggestions = suggestions[: self.config.max_suggestions]

        self.logger.info(f"Generated {len(suggestions)} category suggestions")
        return suggestions
