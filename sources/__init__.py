"""Sources package for DocScout.

Provides crawl source configuration loading.
"""

from .loader import (
    SourceConfig,
    SourceLoader,
    load_source_config
)

__all__ = [
    'SourceConfig',
    'SourceLoader',
    'load_source_config'
]
