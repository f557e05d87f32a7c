"""
Configuration Management for CatalogForge.

    from catalogforge.core.config import Config, load_config

    config = load_config()
    ttl = config.cache.products_ttl_sec

Architecture
------------
    config/
    ├── scraping.py      # ScrapingConfig, CacheConfig
    ├── storage.py       # StorageConfig
    └── config.py        # Main Config class, LoggingConfig, APIConfig
"""

from catalogforge.core.config.config import APIConfig, Config, LoggingConfig
from catalogforge.core.config.scraping import CacheConfig, ScrapingConfig
from catalogforge.core.config.storage import StorageConfig
from catalogforge.core.config_loaders import expand_env_vars, load_config

__all__ = [
    "APIConfig",
    "CacheConfig",
    "Config",
    "LoggingConfig",
    "ScrapingConfig",
    "StorageConfig",
    "expand_env_vars",
    "load_config",
]
