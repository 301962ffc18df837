"""Shared data models for crawled documents and search results."""

import uuid
from dataclasses import dataclass, field
from typing import List, Optional

EmbeddingVector = List[float]


@dataclass
class Document:
    """A crawled text snippet and the page it points at.

    The crawler creates documents without an embedding; the search service
    assigns the embedding once after the batch embedding step.
    """
    text: str
    source: str
    embedding: Optional[EmbeddingVector] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


@dataclass(frozen=True)
class SearchResult:
    """A document ranked against a query."""
    document: Document
    similarity: float

    @property
    def similarity_percent(self) -> float:
        return round(self.similarity * 100, 1)

    def to_dict(self) -> dict:
        return {
            'id': self.document.id,
            'text': self.document.text,
            'source': self.document.source,
            'similarity': self.similarity,
            'similarity_percent': self.similarity_percent,
        }
