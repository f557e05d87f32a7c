"""
Configuration Loading Functions.

Handles loading the YAML configuration file and applying environment
variable overrides.

Configuration precedence: 1. Env vars, 2. YAML file, 3. Defaults

Environment overrides
---------------------
    CATALOGFORGE_BASE_URL            scraping.base_url
    CATALOGFORGE_BROWSER_ENABLED     scraping.browser_enabled (true/false)
    CATALOGFORGE_FILL_MISSING        scraping.fill_missing (true/false)
    CATALOGFORGE_SETTLE_DELAY_MS     scraping.settle_delay_ms
    CATALOGFORGE_STORAGE_BACKEND     storage.backend
    CATALOGFORGE_CACHE_ENABLED       cache.enabled (true/false)
    CATALOGFORGE_LOG_LEVEL           logging.level
    DATABASE_URL                     storage.database_url
"""

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml

if TYPE_CHECKING:
    from catalogforge.core.config import Config

CONFIG_FILENAMES = ("catalogforge.yaml", "config.yaml")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class _Logger:
    """Lazy logger holder (avoids importing rich at config import time)."""

    _instance = None

    @classmethod
    def get(cls) -> Any:
        """Get logger (lazy-loaded)."""
        if cls._instance is None:
            from catalogforge.core.logging import get_logger

            cls._instance = get_logger(__name__)
        return cls._instance


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:default} in config values.

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def get_env_bool(name: str) -> Optional[bool]:
    """Read a boolean environment variable; None when unset or unrecognized."""
    value = os.environ.get(name)
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    _Logger.get().warning(f"Ignoring non-boolean value for {name}", value=value)
    return None


def get_env_int(name: str, min_value: int = 0) -> Optional[int]:
    """Read an integer environment variable, clamped to min_value."""
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return max(int(value), min_value)
    except ValueError:
        _Logger.get().warning(f"Ignoring non-integer value for {name}", value=value)
        return None


def _apply_env_overrides(config: "Config") -> "Config":
    """Apply environment variable overrides, then re-validate."""
    base_url = os.environ.get("CATALOGFORGE_BASE_URL")
    if base_url:
        config.scraping.base_url = base_url.rstrip("/")

    browser_enabled = get_env_bool("CATALOGFORGE_BROWSER_ENABLED")
    if browser_enabled is not None:
        config.scraping.browser_enabled = browser_enabled

    fill_missing = get_env_bool("CATALOGFORGE_FILL_MISSING")
    if fill_missing is not None:
        config.scraping.fill_missing = fill_missing

    settle_delay = get_env_int("CATALOGFORGE_SETTLE_DELAY_MS")
    if settle_delay is not None:
        config.scraping.settle_delay_ms = settle_delay

    cache_enabled = get_env_bool("CATALOGFORGE_CACHE_ENABLED")
    if cache_enabled is not None:
        config.cache.enabled = cache_enabled

    backend = os.environ.get("CATALOGFORGE_STORAGE_BACKEND")
    if backend:
        config.storage.backend = backend.strip().lower()

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        config.storage.database_url = database_url

    log_level = os.environ.get("CATALOGFORGE_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.strip().upper()

    config.validate()
    return config


def _find_config_file(base_path: Path) -> Optional[Path]:
    for filename in CONFIG_FILENAMES:
        candidate = base_path / filename
        if candidate.exists():
            return candidate
    return None


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> "Config":
    """
    Load configuration from YAML file with environment variable overrides.

    An unreadable or malformed YAML file falls back to defaults with a
    warning; values that parse but fail validation raise.

    Args:
        config_path: Path to config file. Defaults to catalogforge.yaml in base_path.
        base_path: Directory searched for a config file. Defaults to cwd.

    Returns:
        Config object with all settings.

    Raises:
        ConfigValidationError: If a configured value is out of range
    """
    from catalogforge.core.config import Config

    base_path = base_path or Path.cwd()
    if config_path is None:
        config_path = _find_config_file(base_path)

    if config_path is None or not config_path.exists():
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        _Logger.get().warning(
            f"Could not load config from {config_path}, using defaults", error=str(e)
        )
        return _apply_env_overrides(Config())

    return _apply_env_overrides(Config.from_dict(data))
