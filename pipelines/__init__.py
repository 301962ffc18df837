"""Pipelines package for DocScout.

Provides page rendering and documentation crawling.
"""

from .crawler import DocumentationCrawler, CrawlState, CrawlStats, normalize_text
from .render import Renderer, HttpRenderer

__all__ = [
    # Crawler
    'DocumentationCrawler',
    'CrawlState',
    'CrawlStats',
    'normalize_text',

    # Rendering
    'Renderer',
    'HttpRenderer'
]
