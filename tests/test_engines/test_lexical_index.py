"""Test vocabulary building, TF-IDF vectors and keyword ranking."""

import math

import numpy as np
import pytest

from semantic_publisher.config.settings import PublisherConfig
from semantic_publisher.engines.lexical_index import LexicalIndex, is_stop_word, tokenize
from semantic_publisher.models import Document


def doc(doc_id: str, title: str, body: str = "") -> Document:
    return Document(id=doc_id, title=title, body_text=body, space_id="s1")


class TestTokenize:
    """Test tokenization and stop words."""

    def test_tokenize_when_punctuation_present_splits_and_lowercases(self):
        """Test punctuation separates tokens and case is folded."""
        assert tokenize("Hello, World! Deploy-guide") == ["hello", "world", "deploy", "guide"]

    def test_is_stop_word_when_common_word_returns_true(self):
        """Test stop word lookup is case-insensitive."""
        assert is_stop_word("The")
        assert not is_stop_word("kubernetes")


class TestBuildVocabulary:
    """Test vocabulary selection."""

    def test_build_vocabulary_when_terms_unique_to_one_document_excludes_them(self):
        """Test only terms appearing in more than one document are kept."""
        documents = [
            doc("1", "deploy server", "alpha"),
            doc("2", "deploy server", "bravo"),
            doc("3", "deploy", "charlie"),
        ]

        vocabulary = LexicalIndex().build_vocabulary(documents)

        assert vocabulary == ["deploy", "server"]

    def test_build_vocabulary_when_terms_out_of_length_bounds_excludes_them(self):
        """Test short and overlong terms are dropped."""
        long_term = "x" * 20
        text = f"go api {long_term} cluster"
        documents = [doc("1", text), doc("2", text)]

        vocabulary = LexicalIndex().build_vocabulary(documents)

        assert vocabulary == ["api", "cluster"]

    def test_build_vocabulary_when_over_size_limit_truncates(self):
        """Test vocabulary is capped at the configured size."""
        words = [f"term{i:03d}" for i in range(30)]
        documents = [doc("1", " ".join(words)), doc("2", " ".join(words))]

        vocabulary = LexicalIndex(PublisherConfig(vocabulary_size=10)).build_vocabulary(
            documents
        )

        assert len(vocabulary) == 10


class TestVectorize:
    """Test TF-IDF vectors."""

    def test_vectorize_when_term_in_subset_of_documents_computes_tf_times_idf(self):
        """Test component value is tf * ln(N / df)."""
        documents = [
            doc("1", "deploy deploy server"),
            doc("2", "deploy server"),
            doc("3", "server guide"),
        ]
        vocabulary = ["deploy", "server"]

        vector = LexicalIndex().vectorize(documents[0], documents, vocabulary)

        assert vector[0] == pytest.approx((2 / 3) * math.log(3 / 2))
        assert vector[1] == pytest.approx((1 / 3) * math.log(3 / 3))

    def test_vectorize_all_when_called_matches_single_vectorize(self):
        """Test batch vectorization agrees with per-document vectors."""
        documents = [
            doc("1", "deploy server cluster"),
            doc("2", "deploy server"),
            doc("3", "cluster guide guide"),
        ]
        index = LexicalIndex()

        vocabulary, matrix = index.vectorize_all(documents)

        assert matrix.shape == (3, len(vocabulary))
        for row, document in enumerate(documents):
            np.testing.assert_allclose(
                matrix[row], index.vectorize(document, documents, vocabulary)
            )

    def test_vectorize_when_document_empty_returns_zero_vector(self):
        """Test a document without tokens has an all-zero vector."""
        documents = [doc("1", ""), doc("2", "deploy"), doc("3", "deploy")]

        vector = LexicalIndex().vectorize(documents[0], documents, ["deploy"])

        assert not vector.any()


class TestKeywords:
    """Test corpus and per-document keywords."""

    def test_top_keywords_when_corpus_empty_returns_empty_list(self):
        """Test empty corpus produces no keywords."""
        assert LexicalIndex().top_keywords([]) == []

    def test_top_keywords_when_stop_words_present_excludes_them(self):
        """Test stop words never rank."""
        documents = [doc("1", "the kubernetes the"), doc("2", "that helm"), doc("3", "the")]

        terms = [term for term, _ in LexicalIndex().top_keywords(documents)]

        assert "the" not in terms
        assert "that" not in terms
        assert terms[:2] == ["kubernetes", "helm"]

    def test_top_keywords_when_limit_configured_caps_results(self):
        """Test keyword list is capped."""
        documents = [doc(str(i), f"word{i:02d}a") for i in range(10)]

        keywords = LexicalIndex(PublisherConfig(keyword_limit=3)).top_keywords(documents)

        assert len(keywords) == 3

    def test_document_keywords_when_frequencies_differ_orders_by_frequency(self):
        """Test per-document keywords favour frequent, non-stop, longer terms."""
        document = doc("1", "Helm", "helm charts helm the to charts kubernetes")

        keywords = LexicalIndex().document_keywords(document)

        assert keywords[:2] == ["helm", "charts"]
        assert "the" not in keywords
        assert "to" not in keywords
