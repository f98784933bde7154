"""Similarity clustering of documents for category discovery.

Two strategies share one seed-based, single-pass algorithm: documents are
visited in order, each unassigned document seeds a cluster, and every other
unassigned document whose similarity to the seed exceeds the threshold joins
it. The result is deterministic for a fixed document order but not globally
optimal.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import numpy as np
from sklearn.decomposition import PCA
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine

from semantic_publisher.config.settings import PublisherConfig
from semantic_publisher.engines.lexical_index import LexicalIndex
from semantic_publisher.models import ContentCluster, Document


def cosine_similarity(vec_a: np.ndarray, vec_b: np.ndarray) -> float:
    """Cosine of the angle between two vectors, 0 if either is all zeros."""
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(vec_a, vec_b) / (norm_a * norm_b), -1.0, 1.0))


def jaccard_similarity(set_a: set[str], set_b: set[str]) -> float:
    """Size of the intersection over size of the union, 0 for two empty sets."""
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def seed_clusters(
    count: int, similarity: Callable[[int, int], float], threshold: float
) -> list[list[int]]:
    """Group item indices around seeds in a single ordered pass.

    Args:
        count: Number of items, addressed as 0..count-1
        similarity: Pairwise similarity between two item indices
        threshold: Similarity an item must exceed to join a seed's group

    Returns:
        Index groups in seed order, including singletons
    """
    processed: set[int] = set()
    groups = []
    for seed in range(count):
        if seed in processed:
            continue
        processed.add(seed)
        members = [seed]
        for other in range(count):
            if other in processed:
                continue
            if similarity(seed, other) > threshold:
                members.append(other)
                processed.add(other)
        groups.append(members)
    return groups


class DocumentClusterEngine:
    """Groups documents into clusters by keyword overlap or TF-IDF cosine."""

    def __init__(
        self,
        config: PublisherConfig | None = None,
        lexical_index: LexicalIndex | None = None,
    ):
        """Initialize cluster engine.

        Args:
            config: Optional PublisherConfig instance
            lexical_index: Optional LexicalIndex instance to reuse
        """
        self.config = config or PublisherConfig()
        self.lexical_index = lexical_index or LexicalIndex(self.config)

        self.logger = logging.getLogger("cluster_engine")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _merge_tags(self, keyword_sets: list[list[str]]) -> list[str]:
        merged = dict.fromkeys(tag for keywords in keyword_sets for tag in keywords)
        return list(merged)[: self.config.max_cluster_tags]

    def cluster_by_keywords(self, documents: list[Document]) -> list[ContentCluster]:
        """Cluster documents by Jaccard overlap of their top keywords.

        Args:
            documents: Corpus in analysis order

        Returns:
            Clusters of two or more documents, in seed order
        """
        keywords = [self.lexical_index.document_keywords(doc) for doc in documents]
        keyword_sets = [set(k) for k in keywords]

        groups = seed_clusters(
            len(documents),
            lambda i, j: jaccard_similarity(keyword_sets[i], keyword_sets[j]),
            self.config.jaccard_threshold,
        )

        clusters = []
        for members in groups:
            if len(members) < 2:
                continue
            clusters.append(
                ContentCluster(
                    id=f"cluster_{len(clusters)}",
                    pages=[documents[i].id for i in members],
                    common_tags=self._merge_tags([keywords[i] for i in members]),
                    cohesion=1.0,
                )
            )

        self.logger.info(
            f"Keyword clustering produced {len(clusters)} clusters "
            f"from {len(documents)} documents"
        )
        return clusters

    def cluster_by_vectors(
        self, documents: list[Document], vectors: np.ndarray | None = None
    ) -> list[ContentCluster]:
        """Cluster documents by cosine similarity of TF-IDF vectors.

        Args:
            documents: Corpus in analysis order
            vectors: Optional precomputed matrix, one row per document

        Returns:
            Clusters of two or more documents, highest cohesion first
        """
        if len(documents) < 2:
            return []

        if vectors is None:
            _, vectors = self.lexical_index.vectorize_all(documents)

        if vectors.shape[1] == 0:
            self.logger.info("Empty vocabulary, no semantic clusters")
            return []

        similarities = pairwise_cosine(vectors)
        groups = seed_clusters(
            len(documents),
            lambda i, j: similarities[i, j],
            self.config.cosine_threshold,
        )

        clusters = []
        for members in groups:
            if len(members) < 2:
                continue
            keywords = [self.lexical_index.document_keywords(documents[i]) for i in members]
            clusters.append(
                ContentCluster(
                    id=f"semantic_cluster_{len(clusters)}",
                    pages=[documents[i].id for i in members],
                    common_tags=self._merge_tags(keywords),
                    cohesion=self._cohesion(similarities, members),
                )
            )

        clusters.sort(key=lambda c: c.cohesion, reverse=True)
        self.logger.info(
            f"Semantic clustering produced {len(clusters)} clusters "
            f"from {len(documents)} documents"
        )
        return clusters

    @staticmethod
    def _cohesion(similarities: np.ndarray, members: list[int]) -> float:
        pairs = [
            similarities[a, b]
            for pos, a in enumerate(members)
            for b in members[pos + 1 :]
        ]
        if not pairs:
            return 0.0
        return float(np.clip(np.mean(pairs), 0.0, 1.0))

    def cluster(self, documents: list[Document], mode: str | None = None) -> list[ContentCluster]:
        """Cluster with the configured (or given) strategy.

        Args:
            documents: Corpus in analysis order
            mode: 'semantic' or 'basic', defaults to config.clustering_mode

        Returns:
            List of clusters
        """
        mode = mode or self.config.clustering_mode
        if mode == "basic":
            return self.cluster_by_keywords(documents)
        return self.cluster_by_vectors(documents)

    def create_clusters(
        self, documents: list[Document], mode: str | None = None
    ) -> dict[str, Any]:
        """Cluster documents and package the result for reporting.

        Args:
            documents: Corpus in analysis order
            mode: Clustering strategy

        Returns:
            Dictionary with metadata and serialized clusters
        """
        mode = mode or self.config.clustering_mode
        if len(documents) < 2:
            self.logger.warning("Not enough documents for clustering")
            return {"error": "Need at least 2 documents for clustering"}

        clusters = self.cluster(documents, mode)
        titles = {doc.id: doc.title for doc in documents}
        clustered = sum(len(c.pages) for c in clusters)

        return {
            "metadata": {
                "generated_at": datetime.now().isoformat(),
                "total_documents": len(documents),
                "total_clusters": len(clusters),
                "unclustered_documents": len(documents) - clustered,
                "clustering_method": mode,
            },
            "clusters": [
                {
                    **cluster.model_dump(),
                    "titles": [titles[page_id] for page_id in cluster.pages],
                }
                for cluster in clusters
            ],
        }

    def visualize_clusters(
        self,
        documents: list[Document],
        clusters: list[ContentCluster],
        output_file: str = "document_clusters_visualization.png",
        vectors: np.ndarray | None = None,
    ) -> str | None:
        """Create a 2D visualization of document clusters.

        Args:
            documents: Corpus the clusters were built from
            clusters: Clusters to colour
            output_file: Output file path
            vectors: Optional precomputed TF-IDF matrix

        Returns:
            Output file path if successful, None otherwise
        """
        # Always use a non-interactive backend to avoid DISPLAY/X issues
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        if vectors is None:
            _, vectors = self.lexical_index.vectorize_all(documents)

        if vectors.shape[0] < 2 or vectors.shape[1] < 2:
            self.logger.warning("Not enough data to project clusters. Skipping visualization.")
            return None

        try:
            points = PCA(n_components=2, random_state=42).fit_transform(vectors)
            index_of = {doc.id: i for i, doc in enumerate(documents)}

            cmap = plt.get_cmap("tab20" if len(clusters) <= 20 else "hsv")
            colors = cmap(np.linspace(0, 1, max(len(clusters), 1)))

            fig = plt.figure(figsize=(12, 8))
            assigned = set()
            for color, cluster in zip(colors, clusters, strict=False):
                rows = [index_of[p] for p in cluster.pages if p in index_of]
                assigned.update(rows)
                label = ", ".join(cluster.common_tags[:3]) or cluster.id
                plt.scatter(
                    points[rows, 0],
                    points[rows, 1],
                    c=[color],
                    label=label,
                    alpha=0.85,
                    s=100,
                    linewidths=0,
                )

            loose = [i for i in range(len(documents)) if i not in assigned]
            if loose:
                plt.scatter(
                    points[loose, 0],
                    points[loose, 1],
                    c="lightgrey",
                    label="unclustered",
                    alpha=0.6,
                    s=60,
                )

            plt.title("Content Clusters", fontsize=12, pad=10)
            plt.legend(loc="best", fontsize=8, frameon=False)
            plt.grid(True, alpha=0.2, linewidth=0.3)
            plt.tight_layout(pad=1.1)
            plt.savefig(output_file, dpi=150, bbox_inches="tight")
            plt.close(fig)
            self.logger.info(f"Visualization saved to: {output_file}")
            return output_file

        except (ValueError, OSError) as e:
            self.logger.error(f"Error creating visualization: {e}")
            return None
