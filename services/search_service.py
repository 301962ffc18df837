"""Search service wiring the crawler, the embedding service and the index."""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from indexer.embeddings import EmbeddingError, EmbeddingService
from indexer.models import Document, SearchResult
from indexer.similarity import SearchIndex
from observability.metrics import record_search, set_indexed_documents
from pipelines.crawler import DocumentationCrawler

logger = logging.getLogger(__name__)

# Similarity reported for every document when the query is blank
UNRANKED_SIMILARITY = 1.0


class DocumentSearchService:
    """Owns the crawled documents and answers queries against them."""

    def __init__(self, crawler: DocumentationCrawler, embedding_service: EmbeddingService,
                 max_depth: int = 2, top_k: int = 20):
        self.crawler = crawler
        self.embedding_service = embedding_service
        self.max_depth = max_depth
        self.top_k = top_k

        self.documents: List[Document] = []
        self.index: Optional[SearchIndex] = None
        self.results: List[SearchResult] = []
        self.is_indexing = True
        self._query_sequence = 0

    async def initialize(self, seed_urls: List[str]) -> Optional[SearchIndex]:
        """Crawl, embed and index. Runs once at startup.

        Returns:
            The built index, or None when no document could be embedded
        """
        self.is_indexing = True
        try:
            documents = await self.crawler.crawl(seed_urls, self.max_depth)

            vectors = await self.embedding_service.embed_many([document.text for document in documents])
            for document, vector in zip(documents, vectors):
                if vector is not None:
                    document.embedding = vector

            embedded = [document for document in documents if document.has_embedding]
            self.documents = documents
            self.index = SearchIndex.build(embedded) if embedded else None
            set_indexed_documents(len(embedded))

            if self.index is None:
                logger.warning(f"No embeddings created for {len(documents)} documents; search is unavailable")
            else:
                logger.info(f"Indexed {len(embedded)} of {len(documents)} documents")

            self.results = self._unranked()
        finally:
            self.is_indexing = False

        return self.index

    def _unranked(self) -> List[SearchResult]:
        return [SearchResult(document=document, similarity=UNRANKED_SIMILARITY) for document in self.documents]

    async def search(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """Rank documents against a query.

        A blank query returns every document unranked. Without an index, or
        when the query cannot be embedded, the result is empty.
        """
        start_time = time.time()

        if not query or not query.strip():
            record_search('unranked', time.time() - start_time)
            return self._unranked()

        if self.index is None:
            record_search('no_index', time.time() - start_time)
            return []

        try:
            query_vector = await self.embedding_service.embed(query)
        except EmbeddingError as e:
            logger.warning(f"Could not embed query {query!r}: {e}")
            record_search('failed', time.time() - start_time)
            return []

        results = self.index.search(query_vector, self.top_k if top_k is None else top_k)
        record_search('ranked', time.time() - start_time)
        logger.debug(f"Query {query!r} returned {len(results)} results")
        return results

    async def submit_query(self, query: str, top_k: Optional[int] = None) -> Tuple[bool, List[SearchResult]]:
        """Run a query and publish it to ``results`` unless a newer query was submitted meanwhile.

        Returns:
            Tuple of (accepted, results of this query)
        """
        self._query_sequence += 1
        sequence = self._query_sequence

        results = await self.search(query, top_k)

        if sequence != self._query_sequence:
            logger.debug(f"Discarding stale results for query {query!r}")
            return False, results

        self.results = results
        return True, results

    @staticmethod
    def present(results: List[SearchResult]) -> List[Dict[str, Any]]:
        """Shape results for the presentation layer."""
        return [result.to_dict() for result in results]

    def status(self) -> Dict[str, Any]:
        return {
            'indexing': self.is_indexing,
            'documents': len(self.documents),
            'indexed': len(self.index) if self.index is not None else 0,
        }
