"""Repository for the certificates table."""

from __future__ import annotations

import sqlite3

import structlog

from ecertify.core.models import Certificate, to_timestamp, utc_now
from ecertify.core.retry import with_store_retry
from ecertify.db.database import Database

logger = structlog.get_logger(__name__)


class CertificateRepository:
    """CRUD operations for certificates."""

    def __init__(self, db: Database):
        self._db = db

    @with_store_retry
    def insert(
        self,
        student_id: int,
        institute_id: int,
        content_id: str,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> Certificate:
        """Insert a new, unapproved certificate.

        Args:
            student_id: Owning student
            institute_id: Issuing institute
            content_id: Opaque content-addressed reference

        Returns:
            The stored Certificate
        """
        issued_at = to_timestamp(utc_now())
        with self._db.scope(conn, "insert_certificate") as c:
            cursor = c.execute(
                """
                INSERT INTO certificates (
                    student_id, institute_id, content_id, approved, issued_at
                ) VALUES (?, ?, ?, 0, ?)
                """,
                (student_id, institute_id, content_id, issued_at),
            )

        logger.debug("certificates.inserted", certificate_id=cursor.lastrowid)
        return Certificate(
            id=cursor.lastrowid,
            student_id=student_id,
            institute_id=institute_id,
            content_id=content_id,
            approved=False,
            issued_at=issued_at,
        )

    @with_store_retry
    def get(
        self, certificate_id: int, *, conn: sqlite3.Connection | None = None
    ) -> Certificate | None:
        """Get certificate by id, None if absent."""
        with self._db.scope(conn, "get_certificate") as c:
            row = c.execute(
                "SELECT * FROM certificates WHERE id = ?", (certificate_id,)
            ).fetchone()

        return _row_to_certificate(row) if row is not None else None

    @with_store_retry
    def mark_approved(
        self, certificate_id: int, *, conn: sqlite3.Connection | None = None
    ) -> bool:
        """Flip approved to true.

        Returns:
            True if the row changed, False if it was already approved or absent
        """
        with self._db.scope(conn, "approve_certificate") as c:
            cursor = c.execute(
                "UPDATE certificates SET approved = 1 WHERE id = ? AND approved = 0",
                (certificate_id,),
            )

        changed = cursor.rowcount > 0
        if changed:
            logger.debug("certificates.approved", certificate_id=certificate_id)
        return changed

    @with_store_retry
    def list_for_student(
        self, student_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[Certificate]:
        """Get a student's certificates, newest first."""
        with self._db.scope(conn, "list_certificates_for_student") as c:
            rows = c.execute(
                """
                SELECT * FROM certificates
                WHERE student_id = ?
                ORDER BY issued_at DESC, id DESC
                """,
                (student_id,),
            ).fetchall()

        return [_row_to_certificate(row) for row in rows]

    @with_store_retry
    def list_pending_for_institute(
        self, institute_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[Certificate]:
        """Get unapproved certificates issued by an institute, oldest first."""
        with self._db.scope(conn, "list_pending_certificates") as c:
            rows = c.execute(
                """
                SELECT * FROM certificates
                WHERE institute_id = ? AND approved = 0
                ORDER BY issued_at, id
                """,
                (institute_id,),
            ).fetchall()

        return [_row_to_certificate(row) for row in rows]


def _row_to_certificate(row) -> Certificate:
    """Convert database row to Certificate."""
    return Certificate(
        id=row["id"],
        student_id=row["student_id"],
        institute_id=row["institute_id"],
        content_id=row["content_id"],
        approved=bool(row["approved"]),
        issued_at=row["issued_at"],
    )
