"""Runtime settings for DocScout."""

import copy
import logging
import os
from typing import Dict, Any, Optional
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CONFIG = {
    'source': 'wwdc2025',
    'render': {
        'timeout': 15.0,
        'user_agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36'
    },
    'embedding': {
        'model_name': 'BAAI/bge-small-en-v1.5',
        'token_window': 16,
        'batch_size': 3,
        'batch_delay': 0.2,
        'device': None
    },
    'search': {
        # 'max_depth' may be set here to override the source's crawl depth
        'top_k': 20
    },
    'logging': {
        'level': 'INFO',
        'json': False,
        'log_file': None
    },
    'server': {
        'host': '127.0.0.1',
        'port': 8000
    }
}


class SearchSettings:
    """Settings manager backed by an optional YAML file."""

    def __init__(self, config_path: str = None):
        self.config_path = config_path or self._get_default_config_path()
        self._config = self._load_config()

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        possible_paths = [
            os.environ.get('DOCSCOUT_CONFIG'),
            os.path.join(os.getcwd(), 'config', 'docscout.yaml'),
            os.path.join(Path(__file__).parent, 'docscout.yaml'),
            os.path.join(os.path.expanduser('~'), '.docscout', 'docscout.yaml')
        ]

        for path in possible_paths:
            if path and os.path.exists(path):
                return path

        # Return the expected path even if it doesn't exist
        return os.path.join(Path(__file__).parent, 'docscout.yaml')

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or use defaults."""
        config = copy.deepcopy(DEFAULT_CONFIG)

        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    file_config = yaml.safe_load(f) or {}

                if not isinstance(file_config, dict):
                    raise ValueError(f"top level is a {type(file_config).__name__}, not a mapping")

                for section, value in list(file_config.items()):
                    if isinstance(DEFAULT_CONFIG.get(section), dict) and not isinstance(value, dict):
                        logger.warning(f"Ignoring section '{section}' in {self.config_path}: not a mapping")
                        del file_config[section]

                config = self._deep_merge(config, file_config)

            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning(f"Failed to load settings from {self.config_path}: {e}; using defaults")
        else:
            logger.debug(f"Settings file not found at {self.config_path}, using defaults")

        env_level = os.environ.get('DOCSCOUT_LOG_LEVEL')
        if env_level:
            config['logging']['level'] = env_level.upper()

        return config

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_source_name(self) -> str:
        return self.get('source', 'wwdc2025')

    def get_render_settings(self) -> Dict[str, Any]:
        """Get render timeout and user agent."""
        return {
            'timeout': float(self.get('render.timeout', 15.0)),
            'user_agent': self.get('render.user_agent')
        }

    def get_embedding_settings(self) -> Dict[str, Any]:
        """Get embedding model and pacing settings."""
        return {
            'model_name': self.get('embedding.model_name', 'BAAI/bge-small-en-v1.5'),
            'token_window': int(self.get('embedding.token_window', 16)),
            'batch_size': int(self.get('embedding.batch_size', 3)),
            'batch_delay': float(self.get('embedding.batch_delay', 0.2)),
            'device': self.get('embedding.device')
        }

    def get_top_k(self) -> int:
        return int(self.get('search.top_k', 20))

    def get_max_depth(self, default: Optional[int] = None) -> int:
        return int(self.get('search.max_depth', default if default is not None else 2))

    def get_logging_settings(self) -> Dict[str, Any]:
        return {
            'level': self.get('logging.level', 'INFO'),
            'use_json': bool(self.get('logging.json', False)),
            'log_file': self.get('logging.log_file')
        }

    def get_server_settings(self) -> Dict[str, Any]:
        return {
            'host': self.get('server.host', '127.0.0.1'),
            'port': int(self.get('server.port', 8000))
        }

    def reload(self):
        """Reload configuration from file."""
        self._config = self._load_config()


# Global settings instance
settings = SearchSettings()
