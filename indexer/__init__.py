"""Indexer package for DocScout.

Document models and the in-memory similarity index. Embedding lives in
``indexer.embeddings`` and is imported explicitly since it loads torch.
"""

from .models import Document, SearchResult, EmbeddingVector
from .similarity import SearchIndex, cosine_similarity, search

__all__ = [
    'Document',
    'SearchResult',
    'EmbeddingVector',
    'SearchIndex',
    'cosine_similarity',
    'search'
]
