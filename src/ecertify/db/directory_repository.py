"""Repository for institutes and students tables.

Addresses handed to this module are expected to be normalized already.
"""

from __future__ import annotations

import sqlite3

import structlog

from ecertify.core.models import Institute, Student, to_timestamp, utc_now
from ecertify.core.retry import with_store_retry
from ecertify.db.database import Database

logger = structlog.get_logger(__name__)


class DirectoryRepository:
    """CRUD operations for institutes and students."""

    def __init__(self, db: Database):
        self._db = db

    # -------------------------------------------------------------------------
    # Institutes
    # -------------------------------------------------------------------------

    @with_store_retry
    def upsert_institute(
        self, address: str, name: str, email: str, *, conn: sqlite3.Connection | None = None
    ) -> tuple[int, bool]:
        """Insert an institute, or update its display fields.

        Args:
            address: Normalized wallet address
            name: Display name
            email: Contact email

        Returns:
            Tuple of (institute_id, created)
        """
        with self._db.scope(conn, "upsert_institute") as c:
            row = c.execute(
                "SELECT id FROM institutes WHERE address = ?", (address,)
            ).fetchone()

            if row is not None:
                c.execute(
                    "UPDATE institutes SET name = ?, email = ? WHERE id = ?",
                    (name, email, row["id"]),
                )
                logger.debug("institutes.updated", institute_id=row["id"])
                return row["id"], False

            cursor = c.execute(
                """
                INSERT INTO institutes (address, name, email, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (address, name, email, to_timestamp(utc_now())),
            )

        logger.debug("institutes.inserted", institute_id=cursor.lastrowid)
        return cursor.lastrowid, True

    @with_store_retry
    def get_institute(
        self, institute_id: int, *, conn: sqlite3.Connection | None = None
    ) -> Institute | None:
        """Get institute by id, None if absent."""
        with self._db.scope(conn, "get_institute") as c:
            row = c.execute(
                "SELECT * FROM institutes WHERE id = ?", (institute_id,)
            ).fetchone()

        return _row_to_institute(row) if row is not None else None

    @with_store_retry
    def get_institute_by_address(
        self, address: str, *, conn: sqlite3.Connection | None = None
    ) -> Institute | None:
        """Get institute by normalized address, None if absent."""
        with self._db.scope(conn, "get_institute_by_address") as c:
            row = c.execute(
                "SELECT * FROM institutes WHERE address = ?", (address,)
            ).fetchone()

        return _row_to_institute(row) if row is not None else None

    @with_store_retry
    def list_institutes(self, *, conn: sqlite3.Connection | None = None) -> list[Institute]:
        """Get all institutes ordered by id."""
        with self._db.scope(conn, "list_institutes") as c:
            rows = c.execute("SELECT * FROM institutes ORDER BY id").fetchall()

        return [_row_to_institute(row) for row in rows]

    # -------------------------------------------------------------------------
    # Students
    # -------------------------------------------------------------------------

    @with_store_retry
    def upsert_student(
        self,
        address: str,
        name: str,
        email: str,
        institute_id: int | None,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> tuple[int, bool]:
        """Insert a student, or update its display fields.

        An existing student only takes ``institute_id`` when it has no
        current institute and no open transfer request; later moves go
        through transfer requests.

        Returns:
            Tuple of (student_id, created)
        """
        with self._db.scope(conn, "upsert_student") as c:
            row = c.execute(
                "SELECT id FROM students WHERE address = ?",
                (address,),
            ).fetchone()

            if row is not None:
                c.execute(
                    "UPDATE students SET name = ?, email = ? WHERE id = ?",
                    (name, email, row["id"]),
                )
                if institute_id is not None:
                    c.execute(
                        """
                        UPDATE students SET current_institute_id = ?
                        WHERE id = ?
                          AND current_institute_id IS NULL
                          AND pending_institute_id IS NULL
                        """,
                        (institute_id, row["id"]),
                    )
                logger.debug("students.updated", student_id=row["id"])
                return row["id"], False

            cursor = c.execute(
                """
                INSERT INTO students (
                    address, name, email, current_institute_id, created_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (address, name, email, institute_id, to_timestamp(utc_now())),
            )

        logger.debug("students.inserted", student_id=cursor.lastrowid)
        return cursor.lastrowid, True

    @with_store_retry
    def get_student(
        self, student_id: int, *, conn: sqlite3.Connection | None = None
    ) -> Student | None:
        """Get student by id, None if absent."""
        with self._db.scope(conn, "get_student") as c:
            row = c.execute(
                "SELECT * FROM students WHERE id = ?", (student_id,)
            ).fetchone()

        return _row_to_student(row) if row is not None else None

    @with_store_retry
    def get_student_by_address(
        self, address: str, *, conn: sqlite3.Connection | None = None
    ) -> Student | None:
        """Get student by normalized address, None if absent."""
        with self._db.scope(conn, "get_student_by_address") as c:
            row = c.execute(
                "SELECT * FROM students WHERE address = ?", (address,)
            ).fetchone()

        return _row_to_student(row) if row is not None else None

    @with_store_retry
    def list_students_for_institute(
        self, institute_id: int, *, conn: sqlite3.Connection | None = None
    ) -> list[Student]:
        """Get students currently affiliated with an institute."""
        with self._db.scope(conn, "list_students_for_institute") as c:
            rows = c.execute(
                "SELECT * FROM students WHERE current_institute_id = ? ORDER BY id",
                (institute_id,),
            ).fetchall()

        return [_row_to_student(row) for row in rows]

    @with_store_retry
    def set_current_institute(
        self,
        student_id: int,
        institute_id: int | None,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """Set the student's current institute."""
        with self._db.scope(conn, "set_current_institute") as c:
            c.execute(
                "UPDATE students SET current_institute_id = ? WHERE id = ?",
                (institute_id, student_id),
            )

        logger.debug(
            "students.current_institute_set",
            student_id=student_id,
            institute_id=institute_id,
        )

    @with_store_retry
    def link_unaffiliated(
        self, student_id: int, institute_id: int, *, conn: sqlite3.Connection | None = None
    ) -> bool:
        """Set the current institute of a student that has none.

        Students with an open transfer request are left alone.

        Returns:
            True if the row was updated
        """
        with self._db.scope(conn, "link_unaffiliated") as c:
            cursor = c.execute(
                """
                UPDATE students SET current_institute_id = ?
                WHERE id = ?
                  AND current_institute_id IS NULL
                  AND pending_institute_id IS NULL
                """,
                (institute_id, student_id),
            )

        return cursor.rowcount > 0

    @with_store_retry
    def set_pending_institute(
        self,
        student_id: int,
        institute_id: int | None,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """Set or clear the institute a student is waiting to move to."""
        with self._db.scope(conn, "set_pending_institute") as c:
            c.execute(
                "UPDATE students SET pending_institute_id = ? WHERE id = ?",
                (institute_id, student_id),
            )

        logger.debug(
            "students.pending_institute_set",
            student_id=student_id,
            institute_id=institute_id,
        )

    @with_store_retry
    def claim_pending_institute(
        self,
        student_id: int,
        institute_id: int,
        expected_current_id: int | None,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        """Mark a student as waiting to move to ``institute_id``.

        Only succeeds while no transfer is open and the student still
        belongs to ``expected_current_id``.

        Returns:
            True if the row was updated
        """
        with self._db.scope(conn, "claim_pending_institute") as c:
            cursor = c.execute(
                """
                UPDATE students SET pending_institute_id = ?
                WHERE id = ?
                  AND pending_institute_id IS NULL
                  AND current_institute_id IS ?
                """,
                (institute_id, student_id, expected_current_id),
            )

        return cursor.rowcount > 0


def _row_to_institute(row) -> Institute:
    """Convert database row to Institute."""
    return Institute(
        id=row["id"],
        address=row["address"],
        name=row["name"],
        email=row["email"],
        created_at=row["created_at"],
    )


def _row_to_student(row) -> Student:
    """Convert database row to Student."""
    return Student(
        id=row["id"],
        address=row["address"],
        name=row["name"],
        email=row["email"],
        current_institute_id=row["current_institute_id"],
        pending_institute_id=row["pending_institute_id"],
        created_at=row["created_at"],
    )
