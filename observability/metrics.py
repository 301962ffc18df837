"""Prometheus metrics for DocScout crawling, embedding and search."""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry
import logging

logger = logging.getLogger(__name__)

# Create custom registry for DocScout metrics
docscout_registry = CollectorRegistry()

# Crawl metrics
pages_crawled = Counter(
    'docscout_pages_crawled_total',
    'Total number of pages visited by the crawler',
    ['status'],
    registry=docscout_registry
)

documents_extracted = Counter(
    'docscout_documents_extracted_total',
    'Total number of documents extracted from crawled pages',
    registry=docscout_registry
)

# Embedding metrics
embeddings_generated = Counter(
    'docscout_embeddings_total',
    'Total number of embedding attempts',
    ['status'],
    registry=docscout_registry
)

embedding_duration = Histogram(
    'docscout_embedding_duration_seconds',
    'Embedding generation duration in seconds',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
    registry=docscout_registry
)

# Search metrics
search_requests = Counter(
    'docscout_search_requests_total',
    'Total number of search requests',
    ['mode'],
    registry=docscout_registry
)

search_duration = Histogram(
    'docscout_search_duration_seconds',
    'Search request duration in seconds',
    ['mode'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    registry=docscout_registry
)

indexed_documents = Gauge(
    'docscout_indexed_documents',
    'Number of documents in the search index',
    registry=docscout_registry
)


def record_page_crawled(status: str):
    """Record a crawler page visit ('rendered', 'render_failed', 'parse_failed')."""
    pages_crawled.labels(status=status).inc()


def record_documents_extracted(count: int):
    """Record documents extracted from a page."""
    if count > 0:
        documents_extracted.inc(count)


def record_embedding(status: str, duration: float = None):
    """Record an embedding attempt and, when known, its duration."""
    embeddings_generated.labels(status=status).inc()
    if duration is not None:
        embedding_duration.observe(duration)


def record_search(mode: str, duration: float):
    """Record a search request ('ranked', 'unranked', 'no_index', 'failed')."""
    search_requests.labels(mode=mode).inc()
    search_duration.labels(mode=mode).observe(duration)


def set_indexed_documents(count: int):
    """Update the indexed documents gauge."""
    indexed_documents.set(count)


def get_metrics_text() -> bytes:
    """Render the DocScout registry in Prometheus text format."""
    return generate_latest(docscout_registry)


__all__ = [
    'docscout_registry',
    'record_page_crawled',
    'record_documents_extracted',
    'record_embedding',
    'record_search',
    'set_indexed_documents',
    'get_metrics_text',
    'CONTENT_TYPE_LATEST',
]
