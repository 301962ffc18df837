"""Observability package for DocScout."""

from .logging import setup_logging, setup_logging_from_settings
from .metrics import (
    docscout_registry,
    record_page_crawled,
    record_documents_extracted,
    record_embedding,
    record_search,
    set_indexed_documents,
    get_metrics_text
)

__all__ = [
    'setup_logging',
    'setup_logging_from_settings',
    'docscout_registry',
    'record_page_crawled',
    'record_documents_extracted',
    'record_embedding',
    'record_search',
    'set_indexed_documents',
    'get_metrics_text'
]
