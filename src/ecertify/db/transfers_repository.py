"""Repository for the transfer_requests table."""

from __future__ import annotations

import sqlite3

import structlog

from ecertify.core.models import TransferRequest, TransferStatus, to_timestamp, utc_now
from ecertify.core.retry import with_store_retry
from ecertify.db.database import Database

logger = structlog.get_logger(__name__)


class TransferRepository:
    """CRUD operations for institute transfer requests."""

    def __init__(self, db: Database):
        self._db = db

    @with_store_retry
    def insert(
        self,
        student_id: int,
        from_institute_id: int | None,
        to_institute_id: int,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> TransferRequest:
        """Insert a pending transfer request."""
        now = to_timestamp(utc_now())
        with self._db.scope(conn, "insert_transfer_request") as c:
            cursor = c.execute(
                """
                INSERT INTO transfer_requests (
                    student_id, from_institute_id, to_institute_id,
                    status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    student_id,
                    from_institute_id,
                    to_institute_id,
                    TransferStatus.PENDING.value,
                    now,
                    now,
                ),
            )

        logger.debug("transfer_requests.inserted", request_id=cursor.lastrowid)
        return TransferRequest(
            id=cursor.lastrowid,
            student_id=student_id,
            from_institute_id=from_institute_id,
            to_institute_id=to_institute_id,
            status=TransferStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    @with_store_retry
    def get(
        self, request_id: int, *, conn: sqlite3.Connection | None = None
    ) -> TransferRequest | None:
        """Get transfer request by id, None if absent."""
        with self._db.scope(conn, "get_transfer_request") as c:
            row = c.execute(
                "SELECT * FROM transfer_requests WHERE id = ?", (request_id,)
            ).fetchone()

        return _row_to_request(row) if row is not None else None

    @with_store_retry
    def update_status(
        self,
        request_id: int,
        status: TransferStatus,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        """Move a pending request to ``status``.

        Returns:
            True if a pending row was updated
        """
        with self._db.scope(conn, "update_transfer_status") as c:
            cursor = c.execute(
                """
                UPDATE transfer_requests
                SET status = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    status.value,
                    to_timestamp(utc_now()),
                    request_id,
                    TransferStatus.PENDING.value,
                ),
            )

        updated = cursor.rowcount > 0
        if updated:
            logger.debug(
                "transfer_requests.status_updated",
                request_id=request_id,
                status=status.value,
            )
        return updated

    @with_store_retry
    def list_pending_for_institute(
        self, institute_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[TransferRequest]:
        """Get pending requests whose destination is ``institute_id``."""
        with self._db.scope(conn, "list_pending_transfers") as c:
            rows = c.execute(
                """
                SELECT * FROM transfer_requests
                WHERE to_institute_id = ? AND status = ?
                ORDER BY created_at, id
                """,
                (institute_id, TransferStatus.PENDING.value),
            ).fetchall()

        return [_row_to_request(row) for row in rows]

    @with_store_retry
    def list_for_student(
        self, student_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[TransferRequest]:
        """Get all requests made by a student, newest first."""
        with self._db.scope(conn, "list_student_transfers") as c:
            rows = c.execute(
                """
                SELECT * FROM transfer_requests
                WHERE student_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (student_id,),
            ).fetchall()

        return [_row_to_request(row) for row in rows]


def _row_to_request(row) -> TransferRequest:
    """Convert database row to TransferRequest."""
    return TransferRequest(
        id=row["id"],
        student_id=row["student_id"],
        from_institute_id=row["from_institute_id"],
        to_institute_id=row["to_institute_id"],
        status=TransferStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
