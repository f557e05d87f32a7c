"""
Main configuration class for CatalogForge.

The Config dataclass aggregates all sub-configs and handles validation
and dictionary (YAML) parsing.

Architecture Context
--------------------
Configuration sits at the Core layer. The Config object is created once at
startup and passed to the components that need it:

    catalogforge.yaml
           ↓
    load_config() → Config object
           ↓
    Passed to: CrawlOrchestrator, ResultCache, repository factory, API, CLI

Configuration Hierarchy
-----------------------
    Config
    ├── ScrapingConfig   # Origin URL, timeouts, navigation caps
    ├── CacheConfig      # Per-content-type TTLs
    ├── StorageConfig    # Repository backend and database URL
    ├── LoggingConfig    # Level and optional log file
    └── APIConfig        # Host/port for `catalogforge serve`

Environment Variables
---------------------
Secrets and deployment-specific values use ${VAR_NAME} syntax:

    storage:
      database_url: ${DATABASE_URL:sqlite:///catalogforge.db}
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, get_origin, get_type_hints
from urllib.parse import urlparse

from catalogforge.core.config.scraping import CacheConfig, ScrapingConfig
from catalogforge.core.config.storage import StorageConfig
from catalogforge.core.exceptions import ConfigValidationError

STORAGE_BACKENDS = ("sql", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
BOOL_STRINGS = {
    **dict.fromkeys(("1", "true", "yes", "on"), True),
    **dict.fromkeys(("0", "false", "no", "off"), False),
}


def _coerce(value: Any, annotation: Any, name: str) -> Any:
    """Convert a string setting to the field's declared type.

    Raises:
        ConfigValidationError: If the string does not parse as that type
    """
    if not isinstance(value, str):
        return value
    try:
        if annotation is bool:
            return BOOL_STRINGS[value.strip().lower()]
        if annotation is int:
            return int(value.strip())
        if annotation is float:
            return float(value.strip())
        if get_origin(annotation) is list:
            return [item.strip() for item in value.split(",") if item.strip()]
    except (KeyError, ValueError):
        annotation_name = getattr(annotation, "__name__", str(annotation))
        raise ConfigValidationError(
            f"{name} must be a {annotation_name}: {value!r}", field=name
        ) from None
    return value


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class Config:
    """Main CatalogForge configuration."""

    scraping: ScrapingConfig = field(default_factory=ScrapingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    api: APIConfig = field(default_factory=APIConfig)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check cross-field constraints.

        Raises:
            ConfigValidationError: If any value is out of range
        """
        parsed = urlparse(self.scraping.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigValidationError(
                f"base_url must be an absolute http(s) URL: {self.scraping.base_url}",
                field="scraping.base_url",
            )

        positive = {
            "scraping.browser_timeout_sec": self.scraping.browser_timeout_sec,
            "scraping.static_timeout_sec": self.scraping.static_timeout_sec,
            "scraping.orchestration_timeout_sec": self.scraping.orchestration_timeout_sec,
            "scraping.max_navigations": self.scraping.max_navigations,
            "scraping.max_candidates": self.scraping.max_candidates,
            "scraping.max_list_items": self.scraping.max_list_items,
            "scraping.product_limit": self.scraping.product_limit,
            "cache.categories_ttl_sec": self.cache.categories_ttl_sec,
            "cache.products_ttl_sec": self.cache.products_ttl_sec,
            "cache.detail_ttl_sec": self.cache.detail_ttl_sec,
            "cache.max_entries": self.cache.max_entries,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigValidationError(
                    f"{name} must be positive, got {value}", field=name
                )

        if self.scraping.settle_delay_ms < 0:
            raise ConfigValidationError(
                "scraping.settle_delay_ms must not be negative",
                field="scraping.settle_delay_ms",
            )
        if self.scraping.http_retries < 0:
            raise ConfigValidationError(
                "scraping.http_retries must not be negative",
                field="scraping.http_retries",
            )
        if len(self.scraping.currency) != 3:
            raise ConfigValidationError(
                f"scraping.currency must be a 3-letter code: {self.scraping.currency}",
                field="scraping.currency",
            )
        if self.storage.backend not in STORAGE_BACKENDS:
            raise ConfigValidationError(
                f"storage.backend must be one of {STORAGE_BACKENDS}",
                field="storage.backend",
            )
        if self.logging.level.upper() not in LOG_LEVELS:
            raise ConfigValidationError(
                f"logging.level must be one of {LOG_LEVELS}", field="logging.level"
            )

    @property
    def origin_domain(self) -> str:
        """Network location of the configured origin site."""
        return urlparse(self.scraping.base_url).netloc.lower()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from a (YAML-parsed) dictionary.

        Values are coerced to each field's declared type, so expanded
        ${VAR} strings such as "45" or "false" land as numbers and booleans.
        """
        from catalogforge.core.config_loaders import expand_env_vars

        data = expand_env_vars(data or {})

        def section(name: str, config_cls: type) -> Any:
            return config_cls(**cls._filter_fields(config_cls, data.get(name), name))

        return cls(
            scraping=section("scraping", ScrapingConfig),
            cache=section("cache", CacheConfig),
            storage=section("storage", StorageConfig),
            logging=section("logging", LoggingConfig),
            api=section("api", APIConfig),
        )

    @staticmethod
    def _filter_fields(
        config_cls: type, data: Optional[Dict[str, Any]], section: str = ""
    ) -> Dict[str, Any]:
        """Drop keys the dataclass does not declare and coerce the rest."""
        if not data:
            return {}
        hints = get_type_hints(config_cls)
        known = {f.name for f in fields(config_cls)}
        return {
            k: _coerce(v, hints[k], f"{section}.{k}" if section else k)
            for k, v in data.items()
            if k in known
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dictionary."""
        from dataclasses import asdict

        return asdict(self)
