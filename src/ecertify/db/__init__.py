"""Database module for SQLite persistence.

Provides:
- Database connection management and schema initialization
- Repositories for institutes/students, certificates,
  access grants/logs and transfer requests
"""

from ecertify.db.access_repository import AccessRepository
from ecertify.db.certificates_repository import CertificateRepository
from ecertify.db.database import Database, get_db, init_db
from ecertify.db.directory_repository import DirectoryRepository
from ecertify.db.transfers_repository import TransferRepository

__all__ = [
    "AccessRepository",
    "CertificateRepository",
    "Database",
    "DirectoryRepository",
    "TransferRepository",
    "get_db",
    "init_db",
]
