"""In-memory similarity index over embedded documents.

Full linear scan with cosine similarity. Sized for a few hundred items, so no
approximate nearest-neighbour structure is used.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from .models import Document, SearchResult

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors.

    Returns 0.0 when either vector is empty, the lengths differ, or either
    magnitude is zero.
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.size == 0 or vec_b.size == 0 or vec_a.shape != vec_b.shape:
        return 0.0

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


class SearchIndex:
    """Read-only collection of (document, vector) pairs.

    Documents are held by reference; the owning collection lives in the
    search service. Safe to query concurrently once built.
    """

    def __init__(self, entries: List[Tuple[Document, np.ndarray]]):
        self._entries = tuple(entries)

    @classmethod
    def build(cls, documents: List[Document]) -> 'SearchIndex':
        """Build an index from documents that already carry embeddings."""
        entries = []
        for document in documents:
            if document.embedding is None:
                raise ValueError(f"Document {document.id} has no embedding")
            vector = np.asarray(document.embedding, dtype=np.float64)
            vector.setflags(write=False)
            entries.append((document, vector))

        logger.info(f"Built search index with {len(entries)} documents")
        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def documents(self) -> List[Document]:
        return [document for document, _ in self._entries]

    def search(self, query_vector: Sequence[float], top_k: int) -> List[SearchResult]:
        """Rank every indexed document against the query vector.

        Args:
            query_vector: Embedding of the query text
            top_k: Maximum number of results

        Returns:
            At most ``top_k`` results by descending similarity. Equal scores
            keep insertion order.
        """
        if top_k <= 0:
            return []

        scored = [
            SearchResult(document=document, similarity=cosine_similarity(query_vector, vector))
            for document, vector in self._entries
        ]
        # sorted() is stable, so ties stay in insertion order
        scored = sorted(scored, key=lambda result: result.similarity, reverse=True)
        return scored[:top_k]


def search(index: SearchIndex, query_vector: Sequence[float], top_k: int) -> List[SearchResult]:
    """Convenience function to query a built index."""
    return index.search(query_vector, top_k)
