"""Test similarity clustering of documents."""

import numpy as np
import pytest

from semantic_publisher.config.settings import PublisherConfig
from semantic_publisher.engines.cluster_engine import (
    DocumentClusterEngine,
    cosine_similarity,
    jaccard_similarity,
    seed_clusters,
)
from semantic_publisher.models import Document


def doc(doc_id: str, title: str, body: str = "") -> Document:
    return Document(id=doc_id, title=title, body_text=body, space_id="s1")


@pytest.fixture
def corpus():
    """Two deployment pages, two billing pages and one unrelated page."""
    return [
        doc("d1", "Kubernetes deployment", "deploy helm charts to kubernetes clusters"),
        doc("b1", "Billing invoices", "invoices payments billing accounts"),
        doc("d2", "Helm deployment", "helm charts deploy kubernetes clusters"),
        doc("b2", "Billing payments", "payments invoices billing accounts refunds"),
        doc("x1", "Office plants", "watering ferns weekly"),
    ]


class TestSimilarity:
    """Test similarity measures."""

    def test_cosine_similarity_when_vectors_swapped_is_symmetric(self):
        """Test cosine similarity is symmetric and bounded."""
        rng = np.random.default_rng(7)
        for _ in range(20):
            a, b = rng.random(6), rng.random(6)
            assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
            assert -1.0 <= cosine_similarity(a, b) <= 1.0

    def test_cosine_similarity_when_vector_all_zero_returns_zero(self):
        """Test zero vectors have zero similarity."""
        assert cosine_similarity(np.zeros(3), np.array([1.0, 2.0, 3.0])) == 0.0

    def test_cosine_similarity_when_vectors_identical_returns_one(self):
        """Test identical vectors have similarity 1."""
        vector = np.array([0.2, 0.0, 0.7])
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_jaccard_similarity_when_sets_overlap_returns_ratio(self):
        """Test intersection over union."""
        assert jaccard_similarity({"a", "b", "c"}, {"b", "c", "d"}) == pytest.approx(0.5)
        assert jaccard_similarity(set(), set()) == 0.0


class TestSeedClusters:
    """Test the single-pass seed grouping."""

    def test_seed_clusters_when_items_similar_to_seed_groups_them(self):
        """Test items above threshold join the first seed that reaches them."""
        groups = {0: "a", 1: "b", 2: "a", 3: "b", 4: "c"}

        result = seed_clusters(5, lambda i, j: 1.0 if groups[i] == groups[j] else 0.0, 0.5)

        assert result == [[0, 2], [1, 3], [4]]

    def test_seed_clusters_when_similarity_equals_threshold_does_not_join(self):
        """Test the threshold must be exceeded, not met."""
        result = seed_clusters(2, lambda i, j: 0.5, 0.5)

        assert result == [[0], [1]]


class TestDocumentClusterEngine:
    """Test keyword and vector clustering strategies."""

    def test_cluster_by_vectors_when_topics_distinct_groups_by_topic(self, corpus):
        """Test semantic clustering separates topics and drops singletons."""
        clusters = DocumentClusterEngine().cluster_by_vectors(corpus)

        memberships = sorted(sorted(c.pages) for c in clusters)
        assert memberships == [["b1", "b2"], ["d1", "d2"]]
        assert all(len(c.pages) >= 2 for c in clusters)
        assert all(c.id.startswith("semantic_cluster_") for c in clusters)

    def test_cluster_by_vectors_when_clusters_found_sorts_by_cohesion(self, corpus):
        """Test clusters are ranked by cohesion within [0, 1]."""
        clusters = DocumentClusterEngine().cluster_by_vectors(corpus)

        cohesions = [c.cohesion for c in clusters]
        assert cohesions == sorted(cohesions, reverse=True)
        assert all(0.0 <= value <= 1.0 for value in cohesions)

    def test_cluster_by_vectors_when_documents_identical_cohesion_is_one(self):
        """Test identical documents have cosine similarity 1."""
        documents = [
            doc("a", "release notes", "release notes for version"),
            doc("b", "release notes", "release notes for version"),
            doc("c", "garden", "tomatoes"),
        ]

        clusters = DocumentClusterEngine().cluster_by_vectors(documents)

        assert len(clusters) == 1
        assert clusters[0].pages == ["a", "b"]
        assert clusters[0].cohesion == pytest.approx(1.0)

    def test_cluster_by_vectors_when_fewer_than_two_documents_returns_empty(self):
        """Test a single document cannot form a cluster."""
        assert DocumentClusterEngine().cluster_by_vectors([doc("a", "alone")]) == []

    def test_cluster_by_keywords_when_keyword_sets_overlap_groups_them(self, corpus):
        """Test Jaccard clustering groups pages sharing top keywords."""
        clusters = DocumentClusterEngine().cluster_by_keywords(corpus)

        memberships = sorted(sorted(c.pages) for c in clusters)
        assert memberships == [["b1", "b2"], ["d1", "d2"]]
        assert [c.id for c in clusters] == ["cluster_0", "cluster_1"]
        assert all(c.cohesion == 1.0 for c in clusters)

    def test_cluster_by_keywords_when_tags_merged_caps_tag_count(self, corpus):
        """Test common tags are capped at the configured maximum."""
        config = PublisherConfig(max_cluster_tags=2)

        clusters = DocumentClusterEngine(config).cluster_by_keywords(corpus)

        assert all(len(c.common_tags) <= 2 for c in clusters)

    def test_cluster_when_mode_basic_uses_keyword_strategy(self, corpus):
        """Test mode dispatch."""
        engine = DocumentClusterEngine()

        assert engine.cluster(corpus, "basic")[0].id.startswith("cluster_")
        assert engine.cluster(corpus, "semantic")[0].id.startswith("semantic_cluster_")

    def test_create_clusters_when_too_few_documents_returns_error(self):
        """Test clustering report needs at least two documents."""
        result = DocumentClusterEngine().create_clusters([doc("a", "alone")])

        assert "error" in result

    def test_create_clusters_when_corpus_valid_reports_metadata(self, corpus):
        """Test clustering report metadata."""
        result = DocumentClusterEngine().create_clusters(corpus, "semantic")

        metadata = result["metadata"]
        assert metadata["total_documents"] == 5
        assert metadata["total_clusters"] == 2
        assert metadata["unclustered_documents"] == 1
        assert metadata["clustering_method"] == "semantic"

    def test_visualize_clusters_when_corpus_valid_writes_png(self, corpus, tmp_path):
        """Test cluster plot is written."""
        engine = DocumentClusterEngine()
        clusters = engine.cluster_by_vectors(corpus)
        output = tmp_path / "clusters.png"

        result = engine.visualize_clusters(corpus, clusters, str(output))

        assert result == str(output)
        assert output.exists()
