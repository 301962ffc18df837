"""Source configuration loader for DocScout.

Loads and validates crawl source definitions from YAML files.
"""

import yaml
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)

DEFAULT_FOLLOW_PATTERNS = ['/documentation/', 'topics', '/wwdc2025/']
DEFAULT_MEDIA_PATTERNS = ['/videos', '/video/', '.mp4', '.mov', 'media/']
DEFAULT_EXTRACT_PATTERNS = ['/documentation/']


@dataclass
class SourceConfig:
    """Configuration for a documentation site to crawl."""
    name: str
    seed_urls: List[str]
    site_origin: str
    depth: int = 2
    follow_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_FOLLOW_PATTERNS))
    media_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_MEDIA_PATTERNS))
    extract_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXTRACT_PATTERNS))
    max_documents: int = 200
    request_delay: float = 0.5
    enabled: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.name:
            raise ValueError("Source name cannot be empty")

        if not self.seed_urls:
            raise ValueError("Source must have at least one seed URL")

        parsed = urlparse(self.site_origin)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid site origin: {self.site_origin}")
        self.site_origin = f"{parsed.scheme}://{parsed.netloc}"

        if self.depth < 0 or self.depth > 10:
            raise ValueError("Depth must be between 0 and 10")

        if self.max_documents <= 0:
            raise ValueError("Max documents must be positive")

        if self.request_delay < 0:
            raise ValueError("Request delay cannot be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SourceConfig':
        """Create SourceConfig from dictionary."""
        return cls(
            name=data['name'],
            seed_urls=data['seed_urls'],
            site_origin=data['site_origin'],
            depth=data.get('depth', 2),
            follow_patterns=data.get('follow_patterns') or list(DEFAULT_FOLLOW_PATTERNS),
            media_patterns=data.get('media_patterns') or list(DEFAULT_MEDIA_PATTERNS),
            extract_patterns=data.get('extract_patterns') or list(DEFAULT_EXTRACT_PATTERNS),
            max_documents=data.get('max_documents', 200),
            request_delay=data.get('request_delay', 0.5),
            enabled=data.get('enabled', True)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'seed_urls': self.seed_urls,
            'site_origin': self.site_origin,
            'depth': self.depth,
            'follow_patterns': self.follow_patterns,
            'media_patterns': self.media_patterns,
            'extract_patterns': self.extract_patterns,
            'max_documents': self.max_documents,
            'request_delay': self.request_delay,
            'enabled': self.enabled
        }


class SourceLoader:
    """Loads source configurations from YAML files."""

    def __init__(self, sources_dir: Optional[Path] = None):
        """Initialize source loader.

        Args:
            sources_dir: Directory containing source YAML files.
                        Defaults to 'sources' directory relative to this file.
        """
        if sources_dir is None:
            sources_dir = Path(__file__).parent

        self.sources_dir = Path(sources_dir)
        self._cache: Dict[str, SourceConfig] = {}
        self._last_modified: Dict[str, float] = {}

    def load_source_config(self, source_name: str) -> Optional[SourceConfig]:
        """Load configuration for a specific source.

        Args:
            source_name: Name of the source (without .yaml extension)

        Returns:
            SourceConfig if found and valid, None otherwise
        """
        yaml_file = self.sources_dir / f"{source_name}.yaml"

        if not yaml_file.exists():
            logger.warning(f"Source configuration not found: {yaml_file}")
            return None

        current_mtime = yaml_file.stat().st_mtime
        if (source_name in self._cache and
                self._last_modified.get(source_name, 0) >= current_mtime):
            return self._cache[source_name]

        try:
            with open(yaml_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)

            if not data:
                logger.error(f"Empty or invalid YAML file: {yaml_file}")
                return None

            # Ensure name matches filename
            if data.get('name', source_name) != source_name:
                logger.warning(f"Source name mismatch in {yaml_file}: {data['name']} != {source_name}")
            data['name'] = source_name

            config = SourceConfig.from_dict(data)

            self._cache[source_name] = config
            self._last_modified[source_name] = current_mtime

            logger.info(f"Loaded source configuration: {source_name}")
            return config

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML file {yaml_file}: {e}")
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Invalid source configuration in {yaml_file}: {e}")
            return None


# Global source loader instance
_source_loader = SourceLoader()


def load_source_config(source_name: str) -> Optional[SourceConfig]:
    """Convenience function to load a source configuration."""
    return _source_loader.load_source_config(source_name)

