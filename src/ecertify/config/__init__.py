"""Configuration package for E-Certify."""

from ecertify.config.app_config import (
    AccessConfig,
    AppConfig,
    ContentStoreConfig,
    DatabaseConfig,
    DirectoryConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AccessConfig",
    "AppConfig",
    "ContentStoreConfig",
    "DatabaseConfig",
    "DirectoryConfig",
    "clear_config_cache",
    "load_app_config",
]
