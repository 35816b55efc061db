"""Wiring of stores and services.

The web API and the CLI share one ``Services`` instance per process,
built from the application config.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from ecertify.config.app_config import AppConfig, load_app_config
from ecertify.core.access import AccessService
from ecertify.core.certificates import CertificateService
from ecertify.core.content_store import (
    ContentStore,
    FileSystemContentStore,
    InMemoryContentStore,
)
from ecertify.core.directory import DirectoryService
from ecertify.core.notifications import ChangeFeed
from ecertify.core.retry import RetryPolicy
from ecertify.core.transfers import TransferWorkflow
from ecertify.db.access_repository import AccessRepository
from ecertify.db.certificates_repository import CertificateRepository
from ecertify.db.database import Database
from ecertify.db.directory_repository import DirectoryRepository
from ecertify.db.transfers_repository import TransferRepository

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Everything a caller needs to drive the workflows."""

    config: AppConfig
    db: Database
    feed: ChangeFeed
    content_store: ContentStore
    directory: DirectoryService
    certificates: CertificateService
    access: AccessService
    transfers: TransferWorkflow


def build_content_store(config: AppConfig) -> ContentStore:
    """Create the configured content store backend."""
    cs = config.content_store
    if cs.backend == "filesystem":
        return FileSystemContentStore(Path(cs.root), gateway_url=cs.gateway_url)
    if cs.backend == "memory":
        return InMemoryContentStore(gateway_url=cs.gateway_url)
    raise ValueError(f"Unknown content store backend: {cs.backend}")


def build_services(
    config: AppConfig | None = None,
    db_path: Path | None = None,
    content_store: ContentStore | None = None,
) -> Services:
    """Build and wire all services.

    Args:
        config: Application config (loaded from file if not provided)
        db_path: Override config.database.path
        content_store: Override the configured content store

    Returns:
        Services with an initialized database schema
    """
    if config is None:
        config = load_app_config()

    policy = RetryPolicy(
        max_attempts=config.database.max_attempts,
        base_delay=config.database.base_delay,
        max_delay=config.database.max_delay,
    )
    db = Database(db_path or Path(config.database.path), policy)
    db.init_schema()

    feed = ChangeFeed()
    content_store = content_store or build_content_store(config)
    directory_repo = DirectoryRepository(db)

    directory = DirectoryService(
        directory_repo, strict_addresses=config.directory.strict_addresses
    )
    certificates = CertificateService(
        CertificateRepository(db), directory, content_store, feed
    )
    access = AccessService(
        AccessRepository(db),
        certificates,
        directory,
        content_store,
        feed,
        enforce_expiry=config.access.enforce_expiry,
        max_duration_hours=config.access.max_duration_hours,
    )
    transfers = TransferWorkflow(db, TransferRepository(db), directory_repo, feed)

    logger.info(
        "services_built",
        db_path=str(db.path),
        content_store=type(content_store).__name__,
    )

    return Services(
        config=config,
        db=db,
        feed=feed,
        content_store=content_store,
        directory=directory,
        certificates=certificates,
        access=access,
        transfers=transfers,
    )


# Global services instance
_services: Services | None = None


def get_services() -> Services:
    """Get the global services instance."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Services) -> None:
    """Install a services instance (tests, embedding)."""
    global _services
    _services = services


def reset_services() -> None:
    """Reset the services instance (for testing)."""
    global _services
    _services = None
