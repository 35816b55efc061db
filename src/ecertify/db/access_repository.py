"""Repository for access_grants and access_logs tables.

Both tables are append-only.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime

import structlog

from ecertify.core.models import AccessGrant, AccessLog, to_timestamp, utc_now
from ecertify.core.retry import with_store_retry
from ecertify.db.database import Database

logger = structlog.get_logger(__name__)


class AccessRepository:
    """Insert and query access grants and access logs."""

    def __init__(self, db: Database):
        self._db = db

    @with_store_retry
    def insert_grant(
        self,
        certificate_id: int,
        viewer_address: str,
        granted_by_student_id: int,
        expires_at: datetime,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> AccessGrant:
        """Record a new access grant."""
        created_at = to_timestamp(utc_now())
        expires = to_timestamp(expires_at)
        with self._db.scope(conn, "insert_access_grant") as c:
            cursor = c.execute(
                """
                INSERT INTO access_grants (
                    certificate_id, viewer_address, granted_by_student_id,
                    expires_at, created_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (certificate_id, viewer_address, granted_by_student_id, expires, created_at),
            )

        logger.debug("access_grants.inserted", grant_id=cursor.lastrowid)
        return AccessGrant(
            id=cursor.lastrowid,
            certificate_id=certificate_id,
            viewer_address=viewer_address,
            granted_by_student_id=granted_by_student_id,
            expires_at=expires,
            created_at=created_at,
        )

    @with_store_retry
    def list_grants(
        self,
        certificate_id: int,
        viewer_address: str | None = None,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> list[AccessGrant]:
        """Get grants for a certificate, optionally for one viewer."""
        query = "SELECT * FROM access_grants WHERE certificate_id = ?"
        params: list = [certificate_id]
        if viewer_address is not None:
            query += " AND viewer_address = ?"
            params.append(viewer_address)
        query += " ORDER BY id"

        with self._db.scope(conn, "list_access_grants") as c:
            rows = c.execute(query, params).fetchall()

        return [_row_to_grant(row) for row in rows]

    @with_store_retry
    def list_grants_by_student(
        self, student_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[AccessGrant]:
        """Get grants a student has handed out."""
        with self._db.scope(conn, "list_access_grants_by_student") as c:
            rows = c.execute(
                "SELECT * FROM access_grants WHERE granted_by_student_id = ? ORDER BY id",
                (student_id,),
            ).fetchall()

        return [_row_to_grant(row) for row in rows]

    @with_store_retry
    def insert_log(
        self,
        certificate_id: int,
        viewer_address: str,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> AccessLog:
        """Append an access log entry."""
        accessed_at = to_timestamp(utc_now())
        with self._db.scope(conn, "insert_access_log") as c:
            cursor = c.execute(
                """
                INSERT INTO access_logs (certificate_id, viewer_address, accessed_at)
                VALUES (?, ?, ?)
                """,
                (certificate_id, viewer_address, accessed_at),
            )

        logger.debug("access_logs.inserted", log_id=cursor.lastrowid)
        return AccessLog(
            id=cursor.lastrowid,
            certificate_id=certificate_id,
            viewer_address=viewer_address,
            accessed_at=accessed_at,
        )

    @with_store_retry
    def list_logs(
        self, certificate_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[AccessLog]:
        """Get access logs for a certificate, newest first."""
        with self._db.scope(conn, "list_access_logs") as c:
            rows = c.execute(
                """
                SELECT * FROM access_logs
                WHERE certificate_id = ?
                ORDER BY accessed_at DESC, id DESC
                """,
                (certificate_id,),
            ).fetchall()

        return [
            AccessLog(
                id=row["id"],
                certificate_id=row["certificate_id"],
                viewer_address=row["viewer_address"],
                accessed_at=row["accessed_at"],
            )
            for row in rows
        ]


def _row_to_grant(row) -> AccessGrant:
    """Convert database row to AccessGrant."""
    return AccessGrant(
        id=row["id"],
        certificate_id=row["certificate_id"],
        viewer_address=row["viewer_address"],
        granted_by_student_id=row["granted_by_student_id"],
        expires_at=row["expires_at"],
        created_at=row["created_at"],
    )
