"""
Similarity module - vocabulary embeddings, novelty and diversity filtering.
"""

from .similarity import (
    BagOfWordsEmbedder,
    EmbeddingVector,
    cosine_similarity,
    greedy_diversity_filter,
    novelty_scores,
    similarity_matrix,
    tokenize,
)

__all__ = [
    "BagOfWordsEmbedder",
    "EmbeddingVector",
    "cosine_similarity",
    "greedy_diversity_filter",
    "novelty_scores",
    "similarity_matrix",
    "tokenize",
]
