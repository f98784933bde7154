"""Vocabulary construction and TF-IDF vectorization over a document corpus.

All statistics are computed locally from term counts; no trained models are
involved. Results are deterministic for a given document order.
"""

import logging
import math
import re
from collections import Counter

import numpy as np

from semantic_publisher.config.settings import PublisherConfig
from semantic_publisher.models import Document

# fmt: off
STOP_WORDS = frozenset(
    [
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "can", "this", "that", "these", "those", "i", "you",
        "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
        "my", "your", "his", "its", "our", "their", "page", "content",
        "documentation", "doc", "docs", "document", "section", "chapter",
        "part", "item", "list", "example",
    ]
)
# fmt: on

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case text and split it into word tokens."""
    return _NON_WORD.sub(" ", text.lower()).split()


def is_stop_word(term: str) -> bool:
    return term.lower() in STOP_WORDS


class LexicalIndex:
    """Builds a bounded vocabulary and TF-IDF vectors for a corpus."""

    def __init__(self, config: PublisherConfig | None = None):
        """Initialize lexical index.

        Args:
            config: Optional PublisherConfig supplying vocabulary bounds
        """
        self.config = config or PublisherConfig()

        self.logger = logging.getLogger("lexical_index")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _in_length_bounds(self, term: str) -> bool:
        return self.config.min_term_length <= len(term) <= self.config.max_term_length

    @staticmethod
    def _document_frequencies(token_lists: list[list[str]]) -> Counter:
        # dict.fromkeys keeps first-seen order so frequency ties stay stable
        frequencies = Counter()
        for tokens in token_lists:
            frequencies.update(dict.fromkeys(tokens))
        return frequencies

    def build_vocabulary(self, documents: list[Document]) -> list[str]:
        """Select the vocabulary terms for a corpus.

        Terms appearing in more than one document and within the configured
        length bounds are kept, ordered by document frequency (descending)
        and truncated to ``vocabulary_size``.

        Args:
            documents: Corpus in analysis order

        Returns:
            Ordered list of vocabulary terms
        """
        frequencies = self._document_frequencies([tokenize(d.text) for d in documents])
        candidates = [
            (term, count)
            for term, count in frequencies.items()
            if count > 1 and self._in_length_bounds(term)
        ]
        candidates.sort(key=lambda item: item[1], reverse=True)
        vocabulary = [term for term, _ in candidates[: self.config.vocabulary_size]]

        self.logger.debug(
            f"Built vocabulary of {len(vocabulary)} terms from {len(documents)} documents"
        )
        return vocabulary

    def _tfidf(
        self,
        tokens: list[str],
        vocabulary: list[str],
        frequencies: Counter,
        total_docs: int,
    ) -> np.ndarray:
        vector = np.zeros(len(vocabulary), dtype=float)
        if not tokens or total_docs == 0:
            return vector

        counts = Counter(tokens)
        token_count = len(tokens)
        for i, term in enumerate(vocabulary):
            occurrences = counts.get(term, 0)
            if occurrences:
                idf = math.log(total_docs / max(frequencies.get(term, 0), 1))
                vector[i] = (occurrences / token_count) * idf
        return vector

    def vectorize(
        self,
        document: Document,
        all_documents: list[Document],
        vocabulary: list[str],
    ) -> np.ndarray:
        """Compute the TF-IDF vector of one document against a corpus.

        Args:
            document: Document to vectorize
            all_documents: Corpus used for document frequencies
            vocabulary: Vocabulary from build_vocabulary()

        Returns:
            Dense vector aligned with the vocabulary order
        """
        frequencies = self._document_frequencies(
            [tokenize(d.text) for d in all_documents]
        )
        return self._tfidf(
            tokenize(document.text), vocabulary, frequencies, len(all_documents)
        )

    def vectorize_all(
        self, documents: list[Document], vocabulary: list[str] | None = None
    ) -> tuple[list[str], np.ndarray]:
        """Vectorize a whole corpus, tokenizing each document once.

        Args:
            documents: Corpus in analysis order
            vocabulary: Optional prebuilt vocabulary

        Returns:
            Tuple of (vocabulary, matrix with one row per document)
        """
        if vocabulary is None:
            vocabulary = self.build_vocabulary(documents)

        token_lists = [tokenize(d.text) for d in documents]
        frequencies = self._document_frequencies(token_lists)
        matrix = np.zeros((len(documents), len(vocabulary)), dtype=float)
        for row, tokens in enumerate(token_lists):
            matrix[row] = self._tfidf(tokens, vocabulary, frequencies, len(documents))

        return vocabulary, matrix

    def top_keywords(self, documents: list[Document]) -> list[tuple[str, float]]:
        """Rank terms across the whole corpus by aggregate TF-IDF.

        The score of a term is its total occurrence count in the corpus times
        ``ln(N / df)``. Stop words and out-of-bounds terms are excluded.

        Args:
            documents: Corpus in analysis order

        Returns:
            Up to ``keyword_limit`` (term, score) pairs, best first
        """
        if not documents:
            return []

        token_lists = [tokenize(d.text) for d in documents]
        term_counts = Counter()
        for tokens in token_lists:
            term_counts.update(tokens)
        frequencies = self._document_frequencies(token_lists)

        scores = []
        for term, count in term_counts.items():
            if not self._in_length_bounds(term) or is_stop_word(term):
                continue
            idf = math.log(len(documents) / max(frequencies.get(term, 0), 1))
            scores.append((term, count * idf))

        scores.sort(key=lambda item: item[1], reverse=True)
        return scores[: self.config.keyword_limit]

    def document_keywords(self, document: Document, limit: int | None = None) -> list[str]:
        """Most frequent non-stop-word terms of a single document.

        Args:
            document: Document to inspect
            limit: Number of terms, defaults to ``keywords_per_document``

        Returns:
            Terms ordered by in-document frequency
        """
        if limit is None:
            limit = self.config.keywords_per_document

        counts = Counter(
            token
            for token in tokenize(document.text)
            if len(token) > 2 and not is_stop_word(token)
        )
        return [term for term, _ in counts.most_common(limit)]
