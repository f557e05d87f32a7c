"""Tests for configuration parsing, validation and loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from catalogforge.core.config import (
    CacheConfig,
    Config,
    ScrapingConfig,
    StorageConfig,
    expand_env_vars,
    load_config,
)
from catalogforge.core.exceptions import ConfigValidationError

ENV_VARS = (
    "CATALOGFORGE_BASE_URL",
    "CATALOGFORGE_BROWSER_ENABLED",
    "CATALOGFORGE_FILL_MISSING",
    "CATALOGFORGE_SETTLE_DELAY_MS",
    "CATALOGFORGE_STORAGE_BACKEND",
    "CATALOGFORGE_CACHE_ENABLED",
    "CATALOGFORGE_LOG_LEVEL",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# Defaults


class TestDefaults:
    """Tests for default configuration values."""

    def test_scraping_defaults(self) -> None:
        """Test extraction defaults."""
        config = Config()

        assert config.scraping.base_url == "https://www.worldofbooks.com"
        assert config.scraping.max_navigations == 3
        assert config.scraping.settle_delay_ms == 2000
        assert config.scraping.fill_missing is False
        assert config.scraping.currency == "GBP"

    def test_cache_ttls(self) -> None:
        """Test one TTL per content type."""
        cache = CacheConfig()

        assert cache.categories_ttl_sec == 3600
        assert cache.products_ttl_sec == 300
        assert cache.detail_ttl_sec == 900

    def test_origin_domain(self) -> None:
        """Test origin_domain is the lowercased netloc."""
        config = Config(scraping=ScrapingConfig(base_url="https://Books.Example.com"))

        assert config.origin_domain == "books.example.com"


# Validation


class TestValidation:
    """Tests for Config.validate()."""

    def test_relative_base_url_rejected(self) -> None:
        """Test base_url must be absolute http(s)."""
        with pytest.raises(ConfigValidationError) as exc_info:
            Config(scraping=ScrapingConfig(base_url="/books"))

        assert exc_info.value.field == "scraping.base_url"

    @pytest.mark.parametrize(
        "field_name", ["browser_timeout_sec", "max_navigations", "product_limit"]
    )
    def test_non_positive_limits_rejected(self, field_name: str) -> None:
        """Test caps and timeouts must be positive."""
        with pytest.raises(ConfigValidationError) as exc_info:
            Config(scraping=ScrapingConfig(**{field_name: 0}))

        assert exc_info.value.field == f"scraping.{field_name}"

    def test_negative_settle_delay_rejected(self) -> None:
        """Test settle delay may be zero but not negative."""
        Config(scraping=ScrapingConfig(settle_delay_ms=0))
        with pytest.raises(ConfigValidationError):
            Config(scraping=ScrapingConfig(settle_delay_ms=-1))

    def test_unknown_backend_rejected(self) -> None:
        """Test storage backend must be sql or memory."""
        with pytest.raises(ConfigValidationError):
            Config(storage=StorageConfig(backend="mongo"))

    def test_zero_ttl_rejected(self) -> None:
        """Test cache TTLs must be positive."""
        with pytest.raises(ConfigValidationError):
            Config(cache=CacheConfig(products_ttl_sec=0))


# Parsing


class TestFromDict:
    """Tests for Config.from_dict()."""

    def test_sections_parsed(self) -> None:
        """Test nested sections map onto sub-configs."""
        config = Config.from_dict(
            {
                "scraping": {"max_navigations": 5, "fill_missing": True},
                "cache": {"enabled": False},
                "storage": {"backend": "memory"},
                "api": {"port": 9000},
            }
        )

        assert config.scraping.max_navigations == 5
        assert config.scraping.fill_missing is True
        assert config.cache.enabled is False
        assert config.storage.backend == "memory"
        assert config.api.port == 9000

    def test_unknown_keys_ignored(self) -> None:
        """Test keys a section does not declare are dropped."""
        config = Config.from_dict({"scraping": {"not_a_setting": 1}})

        assert not hasattr(config.scraping, "not_a_setting")

    def test_env_vars_expanded(self, monkeypatch) -> None:
        """Test ${VAR:default} expansion inside values."""
        monkeypatch.setenv("CF_TEST_DB", "sqlite:///env.db")
        config = Config.from_dict(
            {"storage": {"database_url": "${CF_TEST_DB:sqlite:///default.db}"}}
        )

        assert config.storage.database_url == "sqlite:///env.db"

    def test_env_default_used(self) -> None:
        """Test the default after the colon applies when unset."""
        assert expand_env_vars("${CF_UNSET_VAR:fallback}") == "fallback"
        assert expand_env_vars(["${CF_UNSET_VAR}"]) == [""]


class TestFieldCoercion:
    """Tests for typing string values from YAML and ${VAR} expansion."""

    def test_float_from_env_default(self) -> None:
        """Test an expanded default lands as a number."""
        config = Config.from_dict({"scraping": {"browser_timeout_sec": "${CF_UNSET_T:45}"}})

        assert config.scraping.browser_timeout_sec == 45.0

    def test_int_from_env(self, monkeypatch) -> None:
        """Test integer fields parse expanded strings."""
        monkeypatch.setenv("CF_TEST_PORT", "9001")
        config = Config.from_dict(
            {"api": {"port": "${CF_TEST_PORT}"}, "cache": {"max_entries": " 25 "}}
        )

        assert config.api.port == 9001
        assert config.cache.max_entries == 25

    @pytest.mark.parametrize("raw, expected", [("false", False), ("NO", False), ("1", True)])
    def test_bool_from_env(self, monkeypatch, raw: str, expected: bool) -> None:
        """Test boolean fields accept the usual true/false spellings."""
        monkeypatch.setenv("CF_TEST_HEADLESS", raw)
        config = Config.from_dict({"scraping": {"headless": "${CF_TEST_HEADLESS}"}})

        assert config.scraping.headless is expected

    def test_list_from_comma_string(self) -> None:
        """Test list fields split a comma-separated string."""
        config = Config.from_dict(
            {"scraping": {"mirror_domains": "m1.example.com, m2.example.com,"}}
        )

        assert config.scraping.mirror_domains == ["m1.example.com", "m2.example.com"]

    def test_strings_left_alone(self) -> None:
        """Test string fields are passed through unchanged."""
        config = Config.from_dict({"storage": {"database_url": "${CF_UNSET_DB:sqlite:///x.db}"}})

        assert config.storage.database_url == "sqlite:///x.db"

    @pytest.mark.parametrize(
        "section, key, raw",
        [
            ("scraping", "browser_timeout_sec", "abc"),
            ("scraping", "max_navigations", "3.5"),
            ("cache", "enabled", "maybe"),
        ],
    )
    def test_unparseable_value_rejected(self, section: str, key: str, raw: str) -> None:
        """Test a value that does not parse raises ConfigValidationError."""
        with pytest.raises(ConfigValidationError) as exc_info:
            Config.from_dict({section: {key: raw}})

        assert exc_info.value.field == f"{section}.{key}"


# Loading


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        """Test missing config file falls back to defaults."""
        config = load_config(base_path=tmp_path)

        assert config.storage.backend == "sql"

    def test_yaml_file_discovered(self, tmp_path: Path) -> None:
        """Test catalogforge.yaml in base_path is read."""
        (tmp_path / "catalogforge.yaml").write_text(
            "scraping:\n  max_candidates: 25\nlogging:\n  level: DEBUG\n",
            encoding="utf-8",
        )

        config = load_config(base_path=tmp_path)

        assert config.scraping.max_candidates == 25
        assert config.logging.level == "DEBUG"

    def test_malformed_yaml_uses_defaults(self, tmp_path: Path) -> None:
        """Test unparsable YAML is logged and ignored."""
        path = tmp_path / "broken.yaml"
        path.write_text("scraping: [unclosed\n", encoding="utf-8")

        config = load_config(config_path=path)

        assert config.scraping.max_candidates == 50

    def test_env_overrides_win(self, tmp_path: Path, monkeypatch) -> None:
        """Test environment variables override file values."""
        (tmp_path / "catalogforge.yaml").write_text(
            "storage:\n  backend: sql\n", encoding="utf-8"
        )
        monkeypatch.setenv("CATALOGFORGE_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("CATALOGFORGE_BROWSER_ENABLED", "false")
        monkeypatch.setenv("CATALOGFORGE_SETTLE_DELAY_MS", "250")

        config = load_config(base_path=tmp_path)

        assert config.storage.backend == "memory"
        assert config.scraping.browser_enabled is False
        assert config.scraping.settle_delay_ms == 250

    def test_invalid_override_raises(self, tmp_path: Path, monkeypatch) -> None:
        """Test overrides are validated like file values."""
        monkeypatch.setenv("CATALOGFORGE_STORAGE_BACKEND", "redis")

        with pytest.raises(ConfigValidationError):
            load_config(base_path=tmp_path)

    def test_non_boolean_override_ignored(self, tmp_path: Path, monkeypatch) -> None:
        """Test unrecognized boolean strings leave the value alone."""
        monkeypatch.setenv("CATALOGFORGE_CACHE_ENABLED", "maybe")

        config = load_config(base_path=tmp_path)

        assert config.cache.enabled is True
