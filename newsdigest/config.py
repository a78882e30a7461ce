"""
Configuration management for NewsDigest.
"""
import copy
import os
import json
import logging
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

ENV_PREFIX = 'NEWSDIGEST_'

# Default configuration
DEFAULT_CONFIG = {
    "newsapi": {
        "base_url": "https://newsapi.org/v2/",
        "api_key": "",
        "user_agent": "NewsDigest/0.1 (Python aiohttp)",
        "country": "us",
        "headline_category": "general",
        "lookback_days": 3
    },
    "http": {
        "timeout_seconds": 10,
        "max_tries": 3,
        "requests_per_second": 5,
        "max_concurrent": 4
    },
    "cache": {
        "max_urls": 200,
        "expiry_hours": 2
    },
    "digest": {
        "page_size": 20,
        "fetch_timeout_seconds": 30,
        "min_title_length": 10,
        "min_description_length": 20
    },
    "sentiment": {
        "backend": "textblob",
        "positive_threshold": 0.6,
        "negative_threshold": 0.4
    },
    "adaptation": {
        "history_limit": 50,
        "max_suggestions": 5,
        "max_interests": 4,
        "window_days": 30,
        "min_recent_entries": 5,
        "dominance_percent": 40,
        "min_total_entries": 10,
        "default_interests": ["technology", "business"]
    },
    "storage": {
        "backend": "sqlite",
        "database": "newsdigest.db"
    },
    # Table order is the tie-break order used by the category classifier
    "categories": {
        "technology": [
            "tech", "ai", "software", "app", "digital", "computer", "internet",
            "startup", "coding", "programming", "data", "cloud", "cyber"
        ],
        "business": [
            "business", "market", "stock", "company", "ceo", "startup",
            "finance", "economy", "trade", "investor", "revenue"
        ],
        "sports": [
            "sport", "game", "player", "team", "match", "football", "basketball",
            "soccer", "championship", "tournament", "athlete"
        ],
        "health": [
            "health", "medical", "doctor", "hospital", "disease", "vaccine",
            "medicine", "treatment", "patient", "wellness"
        ],
        "science": [
            "science", "research", "study", "discovery", "scientist",
            "experiment", "laboratory", "physics", "chemistry", "biology"
        ],
        "entertainment": [
            "movie", "music", "celebrity", "entertainment", "film",
            "actor", "singer", "album", "concert", "show"
        ]
    }
}

class Config:
    """
    Configuration manager for NewsDigest.
    """
    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the Config.

        Args:
            config_path: Path to a YAML or JSON configuration file
        """
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        """
        Load configuration from file or use defaults.

        Returns:
            Configuration dictionary
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            try:
                path = Path(self.config_path)
                if path.exists():
                    if path.suffix.lower() in ['.yaml', '.yml']:
                        with open(path, 'r') as f:
                            user_config = yaml.safe_load(f) or {}
                    elif path.suffix.lower() == '.json':
                        with open(path, 'r') as f:
                            user_config = json.load(f)
                    else:
                        raise ValueError(f"Unsupported config file format: {path.suffix}")

                    self._update_dict(config, user_config)
                else:
                    logger.warning(f"Config file {self.config_path} not found, using defaults")
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.error(f"Error loading config from {self.config_path}: {e}")
                logger.error("Using default configuration")

        # Override with environment variables
        self._override_from_env(config)

        return config

    def _update_dict(self, target: Dict, source: Dict) -> None:
        """
        Recursively update a dictionary.

        Args:
            target: Target dictionary to update
            source: Source dictionary with new values
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._update_dict(target[key], value)
            else:
                target[key] = value

    def _override_from_env(self, config: Dict, prefix: str = ENV_PREFIX) -> None:
        """
        Override configuration with environment variables.

        Nesting uses a double underscore, so ``NEWSDIGEST_HTTP__TIMEOUT_SECONDS=5``
        sets ``http.timeout_seconds``.

        Args:
            config: Configuration dictionary to update
            prefix: Prefix for environment variables
        """
        for key, value in os.environ.items():
            if not key.startswith(prefix) or key == prefix + 'CONFIG_PATH':
                continue

            parts = key[len(prefix):].lower().split('__')

            current = config
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            try:
                current[parts[-1]] = json.loads(value)
            except json.JSONDecodeError:
                current[parts[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key path (e.g., 'cache.max_urls')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        current = self.config

        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]

        return current


# Global configuration instance
config = Config(os.getenv(ENV_PREFIX + 'CONFIG_PATH'))

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value.

    Args:
        key: Dot-separated key path (e.g., 'cache.max_urls')
        default: Default value if key not found

    Returns:
        Configuration value
    """
    return config.get(key, default)
