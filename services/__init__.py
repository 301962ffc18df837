"""Services package for DocScout."""

from .search_service import DocumentSearchService, UNRANKED_SIMILARITY

__all__ = [
    'DocumentSearchService',
    'UNRANKED_SIMILARITY'
]
