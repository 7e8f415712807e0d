"""
Text similarity for candidate ranking and diversity control.

Embeddings are bag-of-words count vectors over a small fixed vocabulary,
L2-normalized. A text with no vocabulary hits stays the zero vector and is
similar to nothing. Vectors are rebuilt on every ranking call.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

import numpy as np

logger = logging.getLogger("what_if")

_NON_WORD = re.compile(r"[^\w\s]")
MIN_TOKEN_LENGTH = 3


@dataclass
class EmbeddingVector:
    """Normalized vocabulary vector for one text."""
    text: str
    vector: np.ndarray
    magnitude: float  # before normalization


def tokenize(text: str) -> List[str]:
    """Lowercase, strip punctuation, keep words of 3+ characters."""
    cleaned = _NON_WORD.sub(" ", (text or "").lower())
    return [w for w in cleaned.split() if len(w) >= MIN_TOKEN_LENGTH]


class BagOfWordsEmbedder:
    """
    Fixed-vocabulary count-vector embedder.

    Args:
        vocabulary: words defining the vector dimensions; duplicates are ignored
    """

    def __init__(self, vocabulary: Iterable[str]):
        self._index: Dict[str, int] = {}
        for word in vocabulary:
            word = word.lower()
            if word not in self._index:
                self._index[word] = len(self._index)

    @property
    def dimension(self) -> int:
        return len(self._index)

    def embed(self, text: str) -> EmbeddingVector:
        vector = np.zeros(self.dimension, dtype=np.float64)
        for token in tokenize(text):
            position = self._index.get(token)
            if position is not None:
                vector[position] += 1.0

        magnitude = float(np.linalg.norm(vector))
        if magnitude > 0:
            vector = vector / magnitude
        return EmbeddingVector(text=text, vector=vector, magnitude=magnitude)

    def embed_many(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        return [self.embed(t) for t in texts]


def cosine_similarity(a: EmbeddingVector, b: EmbeddingVector) -> float:
    """Cosine similarity of two normalized embeddings; 0.0 if either is zero."""
    if a.magnitude == 0 or b.magnitude == 0:
        return 0.0
    return float(np.dot(a.vector, b.vector))


def similarity_matrix(embeddings: Sequence[EmbeddingVector]) -> np.ndarray:
    """Pairwise cosine similarities; zero vectors give zero rows."""
    if not embeddings:
        return np.zeros((0, 0))
    X = np.array([e.vector for e in embeddings], dtype=np.float64)
    return X @ X.T


def novelty_scores(matrix: np.ndarray) -> np.ndarray:
    """
    1 - mean similarity to every other candidate, clipped to [0, 1].

    All ones when there are fewer than two candidates.
    """
    n = matrix.shape[0]
    if n < 2:
        return np.ones(n)
    off_diagonal = matrix.sum(axis=1) - np.diag(matrix)
    return np.clip(1.0 - off_diagonal / (n - 1), 0.0, 1.0)


def greedy_diversity_filter(
    order: Sequence[int],
    matrix: np.ndarray,
    threshold: float,
) -> List[int]:
    """
    Walk candidates in `order` (best first) and keep each one whose maximum
    similarity to every already-kept candidate is below 1 - threshold.
    The first candidate is always kept.
    """
    limit = 1.0 - threshold
    kept: List[int] = []
    for index in order:
        if not kept:
            kept.append(index)
            continue
        max_similarity = max(float(matrix[index, k]) for k in kept)
        if max_similarity < limit:
            kept.append(index)
        else:
            logger.debug(f"[Similarity] Dropped candidate {index}: similarity {max_similarity:.3f} >= {limit:.3f}")
    return kept
