"""SQLite connection and schema management.

Provides connection management and schema initialization for E-Certify.
A ``Database`` is the single transactional boundary: everything executed
inside one ``connect()`` block commits or rolls back together.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterator

import structlog

from ecertify.core.retry import RetryPolicy
from ecertify.errors import TransientStoreError

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/ecertify.db")


class Database:
    """SQLite database handle with a retry policy for transient failures."""

    def __init__(self, path: Path | str | None = None, retry_policy: RetryPolicy | None = None):
        self.path = Path(path) if path is not None else DEFAULT_DB_PATH
        self.retry_policy = retry_policy or RetryPolicy()

    @contextmanager
    def connect(
        self, operation: str = "query", *, immediate: bool = False
    ) -> Generator[sqlite3.Connection, None, None]:
        """Get database connection as context manager.

        Args:
            operation: Name used in TransientStoreError context
            immediate: Take the write lock before the first read, so checks
                made inside the block hold until commit

        Yields:
            SQLite connection with row factory set to sqlite3.Row

        Raises:
            TransientStoreError: If the store is locked or unreachable

        Example:
            with db.connect() as conn:
                rows = conn.execute("SELECT * FROM institutes").fetchall()
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(self.path, timeout=5.0)
        except sqlite3.OperationalError as e:
            raise TransientStoreError(operation, e) from e

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")

        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            conn.rollback()
            raise TransientStoreError(operation, e) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def scope(
        self, conn: sqlite3.Connection | None, operation: str = "query"
    ) -> Iterator[sqlite3.Connection]:
        """Reuse a caller-owned connection, or open a new one."""
        if conn is not None:
            yield conn
            return
        with self.connect(operation) as owned:
            yield owned

    def init_schema(self) -> None:
        """Create all tables if they don't exist."""
        with self.connect("init_schema") as conn:
            _create_schema(conn)

        logger.info("database.initialized", path=str(self.path))


# Default instance (module-level for simplicity in CLI context)
_default_db: Database | None = None


def init_db(db_path: Path | None = None, retry_policy: RetryPolicy | None = None) -> Database:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/ecertify.db
        retry_policy: Retry policy for transient failures

    Returns:
        The initialized Database, also installed as the default instance
    """
    global _default_db
    _default_db = Database(db_path or DEFAULT_DB_PATH, retry_policy)
    _default_db.init_schema()
    return _default_db


def get_db() -> Database:
    """Get the default Database instance."""
    global _default_db
    if _default_db is None:
        _default_db = Database(DEFAULT_DB_PATH)
    return _default_db


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- institutes: keyed by normalized wallet address
        CREATE TABLE IF NOT EXISTS institutes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            address TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        -- students: pending_institute_id is set only while a transfer is open
        CREATE TABLE IF NOT EXISTS students (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            address TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            current_institute_id INTEGER REFERENCES institutes(id),
            pending_institute_id INTEGER REFERENCES institutes(id),
            created_at TEXT NOT NULL
        );

        -- certificates: approved only ever moves 0 -> 1
        CREATE TABLE IF NOT EXISTS certificates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id INTEGER NOT NULL REFERENCES students(id),
            institute_id INTEGER NOT NULL REFERENCES institutes(id),
            content_id TEXT NOT NULL,
            approved INTEGER NOT NULL DEFAULT 0 CHECK(approved IN (0, 1)),
            issued_at TEXT NOT NULL
        );

        -- access_grants: append-only
        CREATE TABLE IF NOT EXISTS access_grants (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            certificate_id INTEGER NOT NULL REFERENCES certificates(id),
            viewer_address TEXT NOT NULL,
            granted_by_student_id INTEGER NOT NULL REFERENCES students(id),
            expires_at TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS access_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            certificate_id INTEGER NOT NULL REFERENCES certificates(id),
            viewer_address TEXT NOT NULL,
            accessed_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS transfer_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id INTEGER NOT NULL REFERENCES students(id),
            from_institute_id INTEGER REFERENCES institutes(id),
            to_institute_id INTEGER NOT NULL REFERENCES institutes(id),
            status TEXT NOT NULL DEFAULT 'pending' CHECK(status IN ('pending', 'approved', 'declined')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_certificates_institute ON certificates(institute_id, approved);
        CREATE INDEX IF NOT EXISTS idx_certificates_student ON certificates(student_id);
        CREATE INDEX IF NOT EXISTS idx_grants_certificate ON access_grants(certificate_id, viewer_address);
        CREATE INDEX IF NOT EXISTS idx_logs_certificate ON access_logs(certificate_id);
        CREATE INDEX IF NOT EXISTS idx_transfers_to ON transfer_requests(to_institute_id, status);
        CREATE INDEX IF NOT EXISTS idx_transfers_student ON transfer_requests(student_id);
        """
    )
