"""Application configuration loader.

Loads centralized configuration from data/config/ecertify_v1.yaml,
falling back to built-in defaults when the file is absent.

Usage:
    from ecertify.config.app_config import load_app_config

    config = load_app_config()
    db_path = config.database.path
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/ecertify_v1.yaml")

# Overrides database.path when set
DB_PATH_ENV = "ECERTIFY_DB_PATH"


@dataclass
class DatabaseConfig:
    """SQLite location and retry policy for transient store failures."""

    path: str = "db/ecertify.db"
    max_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0


@dataclass
class ContentStoreConfig:
    """Content-addressed file hosting."""

    backend: str = "memory"  # memory | filesystem
    root: str = "data/content"
    gateway_url: str = "https://ipfs.io/ipfs"


@dataclass
class AccessConfig:
    """Access grant defaults."""

    default_duration_hours: int = 24
    max_duration_hours: int = 24 * 365
    enforce_expiry: bool = True


@dataclass
class DirectoryConfig:
    """Wallet address handling."""

    strict_addresses: bool = False


@dataclass
class AppConfig:
    """Application-wide configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    content_store: ContentStoreConfig = field(default_factory=ContentStoreConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "database": {
            "path": "db/ecertify.db",
            "max_attempts": 3,
            "base_delay": 0.05,
            "max_delay": 1.0,
        },
        "content_store": {
            "backend": "memory",
            "root": "data/content",
            "gateway_url": "https://ipfs.io/ipfs",
        },
        "access": {
            "default_duration_hours": 24,
            "max_duration_hours": 24 * 365,
            "enforce_expiry": True,
        },
        "directory": {
            "strict_addresses": False,
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    db_data = {**defaults["database"], **(data.get("database") or {})}
    database = DatabaseConfig(
        path=str(db_data["path"]),
        max_attempts=int(db_data["max_attempts"]),
        base_delay=float(db_data["base_delay"]),
        max_delay=float(db_data["max_delay"]),
    )

    env_path = os.environ.get(DB_PATH_ENV)
    if env_path:
        database.path = env_path

    cs_data = {**defaults["content_store"], **(data.get("content_store") or {})}
    content_store = ContentStoreConfig(
        backend=cs_data["backend"],
        root=str(cs_data["root"]),
        gateway_url=cs_data["gateway_url"].rstrip("/"),
    )

    access_data = {**defaults["access"], **(data.get("access") or {})}
    access = AccessConfig(
        default_duration_hours=int(access_data["default_duration_hours"]),
        max_duration_hours=int(access_data["max_duration_hours"]),
        enforce_expiry=bool(access_data["enforce_expiry"]),
    )

    dir_data = {**defaults["directory"], **(data.get("directory") or {})}
    directory = DirectoryConfig(strict_addresses=bool(dir_data["strict_addresses"]))

    return AppConfig(
        database=database,
        content_store=content_store,
        access=access,
        directory=directory,
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
