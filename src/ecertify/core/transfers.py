"""Institute transfer workflow.

States: none -> pending -> approved | declined (both terminal).

Each transition touches both the request row and the student row and runs
inside one database transaction, retried as a unit on transient store
failures. Change events are published only after the commit.
"""

from __future__ import annotations

import sqlite3

import structlog

from ecertify.core.models import TransferRequest, TransferStatus
from ecertify.core.notifications import ChangeFeed, ChangeOperation, TRANSFER_REQUESTS
from ecertify.core.retry import retry_call
from ecertify.db.database import Database
from ecertify.db.directory_repository import DirectoryRepository
from ecertify.db.transfers_repository import TransferRepository
from ecertify.errors import InvalidStateError, NotFoundError, UnauthorizedError

logger = structlog.get_logger(__name__)


class TransferWorkflow:
    """Request, approve and decline institute transfers."""

    def __init__(
        self,
        db: Database,
        repository: TransferRepository,
        directory_repository: DirectoryRepository,
        feed: ChangeFeed,
    ):
        self._db = db
        self._repo = repository
        self._directory = directory_repository
        self._feed = feed

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def request(
        self, student_id: int, from_institute_id: int | None, to_institute_id: int
    ) -> TransferRequest:
        """Open a transfer request for a student.

        Args:
            student_id: Student asking to move
            from_institute_id: Student's current institute (None if unaffiliated)
            to_institute_id: Destination institute

        Returns:
            The pending TransferRequest

        Raises:
            NotFoundError: If the student or destination does not exist
            InvalidStateError: If from_institute_id is not the current institute,
                the destination is the current institute, or a request is
                already pending
        """
        request = retry_call(
            self._db.retry_policy,
            self._request_tx,
            student_id,
            from_institute_id,
            to_institute_id,
        )
        self._feed.emit(TRANSFER_REQUESTS, ChangeOperation.INSERT, request.to_dict())

        logger.info(
            "transfer_requested",
            request_id=request.id,
            student_id=student_id,
            from_institute_id=from_institute_id,
            to_institute_id=to_institute_id,
        )
        return request

    def approve(
        self, request_id: int, student_id: int, approving_institute_id: int
    ) -> TransferRequest:
        """Approve a pending request and move the student.

        Raises:
            NotFoundError: If the request does not exist
            InvalidStateError: If the request is not pending, belongs to
                another student, or the student has left the origin institute
            UnauthorizedError: If the approver is not the destination
        """
        request = retry_call(
            self._db.retry_policy,
            self._resolve_tx,
            request_id,
            student_id,
            approving_institute_id,
            TransferStatus.APPROVED,
        )
        self._feed.emit(TRANSFER_REQUESTS, ChangeOperation.UPDATE, request.to_dict())

        logger.info(
            "transfer_approved",
            request_id=request_id,
            student_id=request.student_id,
            institute_id=request.to_institute_id,
        )
        return request

    def decline(self, request_id: int, declining_institute_id: int) -> TransferRequest:
        """Decline a pending request; the student keeps its current institute.

        Raises:
            NotFoundError: If the request does not exist
            InvalidStateError: If the request is not pending
            UnauthorizedError: If the decliner is not the destination
        """
        request = retry_call(
            self._db.retry_policy,
            self._resolve_tx,
            request_id,
            None,
            declining_institute_id,
            TransferStatus.DECLINED,
        )
        self._feed.emit(TRANSFER_REQUESTS, ChangeOperation.UPDATE, request.to_dict())

        logger.info(
            "transfer_declined",
            request_id=request_id,
            student_id=request.student_id,
            institute_id=request.to_institute_id,
        )
        return request

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, request_id: int) -> TransferRequest:
        request = self._repo.get(request_id)
        if request is None:
            raise NotFoundError("TransferRequest", request_id)
        return request

    def list_pending_for_institute(self, institute_id: int) -> list[TransferRequest]:
        """Pending requests waiting on ``institute_id``."""
        return self._repo.list_pending_for_institute(institute_id)

    def list_for_student(self, student_id: int) -> list[TransferRequest]:
        return self._repo.list_for_student(student_id)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _request_tx(
        self, student_id: int, from_institute_id: int | None, to_institute_id: int
    ) -> TransferRequest:
        with self._db.connect("request_transfer", immediate=True) as conn:
            student = self._directory.get_student(student_id, conn=conn)
            if student is None:
                raise NotFoundError("Student", student_id)
            if self._directory.get_institute(to_institute_id, conn=conn) is None:
                raise NotFoundError("Institute", to_institute_id)

            if from_institute_id != student.current_institute_id:
                raise InvalidStateError(
                    f"Student {student_id} is not affiliated with institute {from_institute_id}",
                    extra={"current_institute_id": student.current_institute_id},
                )
            if to_institute_id == student.current_institute_id:
                raise InvalidStateError(
                    f"Student {student_id} already belongs to institute {to_institute_id}"
                )
            if student.pending_institute_id is not None:
                raise InvalidStateError(
                    f"Student {student_id} already has a pending transfer",
                    extra={"pending_institute_id": student.pending_institute_id},
                )

            if not self._directory.claim_pending_institute(
                student_id, to_institute_id, from_institute_id, conn=conn
            ):
                raise InvalidStateError(
                    f"Student {student_id} changed while requesting a transfer"
                )
            return self._repo.insert(student_id, from_institute_id, to_institute_id, conn=conn)

    def _resolve_tx(
        self,
        request_id: int,
        student_id: int | None,
        institute_id: int,
        status: TransferStatus,
    ) -> TransferRequest:
        with self._db.connect(f"{status.value}_transfer", immediate=True) as conn:
            request = self._load_pending(conn, request_id, student_id, institute_id)

            if status is TransferStatus.APPROVED:
                student = self._directory.get_student(request.student_id, conn=conn)
                if student.current_institute_id != request.from_institute_id:
                    raise InvalidStateError(
                        f"Student {request.student_id} changed institute since "
                        f"transfer request {request_id} was made",
                        extra={
                            "from_institute_id": request.from_institute_id,
                            "current_institute_id": student.current_institute_id,
                        },
                    )

            if not self._repo.update_status(request_id, status, conn=conn):
                raise InvalidStateError(f"Transfer request {request_id} is no longer pending")

            self._directory.set_pending_institute(request.student_id, None, conn=conn)
            if status is TransferStatus.APPROVED:
                self._directory.set_current_institute(
                    request.student_id, request.to_institute_id, conn=conn
                )

            return self._repo.get(request_id, conn=conn)

    def _load_pending(
        self,
        conn: sqlite3.Connection,
        request_id: int,
        student_id: int | None,
        institute_id: int,
    ) -> TransferRequest:
        request = self._repo.get(request_id, conn=conn)
        if request is None:
            raise NotFoundError("TransferRequest", request_id)

        if student_id is not None and request.student_id != student_id:
            raise InvalidStateError(
                f"Transfer request {request_id} does not belong to student {student_id}"
            )
        if institute_id != request.to_institute_id:
            raise UnauthorizedError(
                f"Institute {institute_id} is not the destination of request {request_id}",
                extra={"request_id": request_id},
            )
        if not request.is_pending:
            raise InvalidStateError(
                f"Transfer request {request_id} is already {request.status.value}",
                extra={"status": request.status.value},
            )
        return request
