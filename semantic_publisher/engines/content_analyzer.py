"""Workspace-level content analysis producing category suggestions.

Runs the full pipeline for one workspace: normalization, lexical indexing,
clustering, relationship extraction and suggestion generation, together
with a structural view of the page hierarchy and summary statistics.
"""

import logging
from datetime import datetime
from typing import Any, NamedTuple

from semantic_publisher.config.settings import PublisherConfig
from semantic_publisher.engines.cluster_engine import DocumentClusterEngine
from semantic_publisher.engines.lexical_index import LexicalIndex
from semantic_publisher.engines.normalizer import DocumentNormalizer
from semantic_publisher.engines.relationship_extractor import RelationshipExtractor
from semantic_publisher.engines.suggestion_engine import CategorySuggestionGenerator
from semantic_publisher.models import (
    CategorySuggestion,
    ContentCluster,
    Document,
    PageRelationship,
    Space,
)
from semantic_publisher.services.repository import ContentRepository

TOP_KEYWORDS_IN_STATS = 10


class AnalysisResult(NamedTuple):
    """Container for one workspace analysis run."""

    suggestions: list[CategorySuggestion]
    hierarchy: dict[str, Any]
    stats: dict[str, Any]
    clusters: list[ContentCluster]
    relationships: list[PageRelationship]

    def to_dict(self) -> dict[str, Any]:
        return {
            "suggestions": [s.model_dump(mode="json") for s in self.suggestions],
            "hierarchy": self.hierarchy,
            "stats": self.stats,
            "clusters": [c.model_dump(mode="json") for c in self.clusters],
        }


class ContentAnalyzer:
    """Analyzes a workspace's pages and proposes a documentation taxonomy."""

    def __init__(
        self,
        repository: ContentRepository,
        config: PublisherConfig | None = None,
    ):
        """Initialize content analyzer.

        Args:
            repository: Source of spaces and pages
            config: Optional PublisherConfig instance
        """
        self.repository = repository
        self.config = config or PublisherConfig()
        self.normalizer = DocumentNormalizer()
        self.lexical_index = LexicalIndex(self.config)
        self.cluster_engine = DocumentClusterEngine(self.config, self.lexical_index)
        self.relationship_extractor = RelationshipExtractor()
        self.suggestion_generator = CategorySuggestionGenerator(self.config)

        self.logger = logging.getLogger("content_analyzer")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def load_documents(self, workspace_id: str) -> tuple[list[Space], list[Document]]:
        """Fetch and normalize all pages of a workspace."""
        spaces = self.repository.get_spaces(workspace_id)
        pages = self.repository.get_pages(workspace_id=workspace_id)
        return spaces, self.normalizer.normalize_pages(pages)

    def analyze_content_hierarchy(
        self, workspace_id: str, mode: str | None = None
    ) -> AnalysisResult:
        """Analyze a workspace and generate category suggestions.

        Args:
            workspace_id: Workspace to analyze
            mode: 'semantic' (TF-IDF cosine) or 'basic' (keyword Jaccard)

        Returns:
            AnalysisResult with suggestions, hierarchy and statistics
        """
        mode = mode or self.config.clustering_mode
        spaces, documents = self.load_documents(workspace_id)
        self.logger.info(
            f"Analyzing {len(documents)} pages in {len(spaces)} spaces ({mode} mode)"
        )
        return self.analyze_documents(spaces, documents, mode)

    def analyze_documents(
        self, spaces: list[Space], documents: list[Document], mode: str | None = None
    ) -> AnalysisResult:
        """Run the analysis pipeline over already normalized documents."""
        mode = mode or self.config.clustering_mode

        keywords = self.lexical_index.top_keywords(documents)
        clusters = self.cluster_engine.cluster(documents, mode)
        relationships = self.relationship_extractor.extract(documents)
        suggestions = self.suggestion_generator.generate(
            spaces, documents, clusters, keywords, relationships, mode
        )

        hierarchy = self.build_hierarchy(spaces, documents)
        stats = self.build_stats(spaces, documents, keywords, clusters)
        stats["generated_at"] = datetime.now().isoformat()
        stats["clustering_method"] = mode

        return AnalysisResult(suggestions, hierarchy, stats, clusters, relationships)

    def build_hierarchy(
        self, spaces: list[Space], documents: list[Document]
    ) -> dict[str, Any]:
        """Page trees per space with subtree depths.

        A page's depth is the height of its subtree (a leaf has depth 1).
        Roots are pages whose parent is not among the space's pages.
        """
        hierarchy = {"spaces": [], "total_pages": len(documents), "max_depth": 0}

        for space in spaces:
            space_docs = [doc for doc in documents if doc.space_id == space.id]
            ids = {doc.id for doc in space_docs}
            children_of: dict[str, list[Document]] = {}
            for doc in space_docs:
                if doc.parent_id in ids:
                    children_of.setdefault(doc.parent_id, []).append(doc)

            roots = [doc for doc in space_docs if doc.parent_id not in ids]
            root_trees = [self._page_tree(doc, children_of, set()) for doc in roots]
            depth = max((tree["depth"] for tree in root_trees), default=0)

            hierarchy["spaces"].append(
                {
                    "space_id": space.id,
                    "space_name": space.name,
                    "total_pages": len(space_docs),
                    "root_pages": root_trees,
                    "depth": depth,
                }
            )
            hierarchy["max_depth"] = max(hierarchy["max_depth"], depth)

        return hierarchy

    def _page_tree(
        self,
        doc: Document,
        children_of: dict[str, list[Document]],
        visited: set[str],
    ) -> dict[str, Any]:
        visited = visited | {doc.id}
        children = [
            self._page_tree(child, children_of, visited)
            for child in children_of.get(doc.id, [])
            if child.id not in visited
        ]
        return {
            "page_id": doc.id,
            "title": doc.title,
            "children": children,
            "depth": max((c["depth"] for c in children), default=0) + 1,
        }

    def build_stats(
        self,
        spaces: list[Space],
        documents: list[Document],
        keywords: list[tuple[str, float]],
        clusters: list[ContentCluster],
    ) -> dict[str, Any]:
        """Summary statistics of a workspace analysis."""
        parent_ids = {doc.parent_id for doc in documents if doc.parent_id}
        clustered = sum(len(cluster.pages) for cluster in clusters)

        return {
            "total_spaces": len(spaces),
            "total_pages": len(documents),
            "average_pages_per_space": (
                round(len(documents) / len(spaces), 2) if spaces else 0
            ),
            "top_keywords": [
                {"term": term, "score": round(score, 4)}
                for term, score in keywords[:TOP_KEYWORDS_IN_STATS]
            ],
            "total_clusters": len(clusters),
            "average_cluster_size": (
                round(clustered / len(clusters), 2) if clusters else 0
            ),
            "hierarchical_pages": sum(1 for doc in documents if doc.parent_id),
            "orphan_pages": sum(
                1 for doc in documents if not doc.parent_id and doc.id not in parent_ids
            ),
        }
