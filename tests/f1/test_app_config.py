"""Tests for app configuration (F1).

Tests the configuration loading, defaults and environment override.
"""

import pytest

from ecertify.config.app_config import (
    CONFIG_FILE,
    DB_PATH_ENV,
    AppConfig,
    clear_config_cache,
    load_app_config,
)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Run from an empty project root."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(DB_PATH_ENV, raising=False)
    clear_config_cache()
    yield tmp_path
    clear_config_cache()


def _write_config(root, text: str) -> None:
    path = root / CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestLoadAppConfig:
    """Tests for load_app_config function."""

    def test_defaults_without_file(self, config_dir):
        """Missing config file falls back to built-in defaults."""
        config = load_app_config()
        assert isinstance(config, AppConfig)
        assert config.database.path == "db/ecertify.db"
        assert config.content_store.backend == "memory"
        assert config.access.default_duration_hours == 24
        assert config.access.enforce_expiry is True
        assert config.directory.strict_addresses is False

    def test_load_from_yaml(self, config_dir):
        """Values from the YAML file override defaults."""
        _write_config(
            config_dir,
            """
database:
  path: custom/app.db
  max_attempts: 5
content_store:
  backend: filesystem
  gateway_url: https://gateway.example/ipfs/
access:
  enforce_expiry: false
""",
        )
        config = load_app_config()
        assert config.database.path == "custom/app.db"
        assert config.database.max_attempts == 5
        assert config.content_store.backend == "filesystem"
        assert config.content_store.gateway_url == "https://gateway.example/ipfs"
        assert config.access.enforce_expiry is False

    def test_partial_sections_keep_defaults(self, config_dir):
        """Keys absent from a section keep their default value."""
        _write_config(config_dir, "database:\n  max_attempts: 7\n")
        config = load_app_config()
        assert config.database.max_attempts == 7
        assert config.database.base_delay == 0.05
        assert config.access.max_duration_hours == 24 * 365

    def test_env_overrides_db_path(self, config_dir, monkeypatch):
        """ECERTIFY_DB_PATH wins over the configured path."""
        _write_config(config_dir, "database:\n  path: from/file.db\n")
        monkeypatch.setenv(DB_PATH_ENV, "/tmp/override.db")
        config = load_app_config()
        assert config.database.path == "/tmp/override.db"


class TestConfigCache:
    """Tests for config caching."""

    def test_cached_between_calls(self, config_dir):
        assert load_app_config() is load_app_config()

    def test_force_reload_reads_file_again(self, config_dir):
        """force_reload picks up a changed file."""
        load_app_config()
        _write_config(config_dir, "access:\n  default_duration_hours: 48\n")
        assert load_app_config().access.default_duration_hours == 24
        assert load_app_config(force_reload=True).access.default_duration_hours == 48
