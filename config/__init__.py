"""Configuration module for DocScout.

Provides runtime settings for rendering, embeddings, search and logging.
"""

from .settings import (
    DEFAULT_CONFIG,
    SearchSettings,
    settings
)

__all__ = [
    'DEFAULT_CONFIG',
    'SearchSettings',
    'settings'
]
