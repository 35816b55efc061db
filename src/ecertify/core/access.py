"""Time-bounded viewer access to certificates.

Grants are append-only and never revoked; a grant simply stops counting
once its expiry has passed. Reading certificate content goes through
``open_certificate``, which checks grants when expiry enforcement is on
and records every successful read in the access log.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from ecertify.core.certificates import CertificateService
from ecertify.core.content_store import ContentStore
from ecertify.core.directory import DirectoryService
from ecertify.core.models import AccessGrant, AccessLog, utc_now
from ecertify.core.notifications import ACCESS_GRANTS, ChangeFeed, ChangeOperation
from ecertify.db.access_repository import AccessRepository
from ecertify.errors import UnauthorizedError, ValidationError

logger = structlog.get_logger(__name__)


class AccessService:
    """Grant, check and log access to certificate content."""

    def __init__(
        self,
        repository: AccessRepository,
        certificates: CertificateService,
        directory: DirectoryService,
        content_store: ContentStore,
        feed: ChangeFeed,
        enforce_expiry: bool = True,
        max_duration_hours: int = 24 * 365,
    ):
        self._repo = repository
        self._certificates = certificates
        self._directory = directory
        self._content = content_store
        self._feed = feed
        self.enforce_expiry = enforce_expiry
        self.max_duration_hours = max_duration_hours

    def grant(
        self,
        certificate_id: int,
        viewer_address: str,
        granted_by_student_id: int,
        duration_hours: int,
        now: datetime | None = None,
    ) -> AccessGrant:
        """Let a viewer read a certificate for ``duration_hours``.

        Args:
            certificate_id: Certificate to share
            viewer_address: Wallet address of the viewer
            granted_by_student_id: Student handing out the grant
            duration_hours: Validity window from now
            now: Reference time (defaults to current UTC time)

        Returns:
            The recorded AccessGrant

        Raises:
            NotFoundError: If the certificate or student does not exist
            UnauthorizedError: If the student does not own the certificate
            ValidationError: If the duration is out of range
        """
        if duration_hours <= 0 or duration_hours > self.max_duration_hours:
            raise ValidationError(
                f"Duration must be between 1 and {self.max_duration_hours} hours",
                extra={"duration_hours": duration_hours},
            )

        certificate = self._certificates.get(certificate_id)
        self._directory.get_student(granted_by_student_id)
        viewer = self._directory.normalize(viewer_address)

        if certificate.student_id != granted_by_student_id:
            raise UnauthorizedError(
                f"Student {granted_by_student_id} does not own certificate {certificate_id}",
                extra={"certificate_id": certificate_id},
            )

        expires_at = (now or utc_now()) + timedelta(hours=duration_hours)
        grant = self._repo.insert_grant(
            certificate_id, viewer, granted_by_student_id, expires_at
        )
        self._feed.emit(ACCESS_GRANTS, ChangeOperation.INSERT, grant.to_dict())

        logger.info(
            "access_granted",
            grant_id=grant.id,
            certificate_id=certificate_id,
            duration_hours=duration_hours,
        )
        return grant

    def list_grants(self, certificate_id: int) -> list[AccessGrant]:
        self._certificates.get(certificate_id)
        return self._repo.list_grants(certificate_id)

    def list_grants_by_student(self, student_id: int) -> list[AccessGrant]:
        return self._repo.list_grants_by_student(student_id)

    def has_active_grant(
        self, certificate_id: int, viewer_address: str, now: datetime | None = None
    ) -> bool:
        """True if any grant for the viewer has not yet expired."""
        viewer = self._directory.normalize(viewer_address)
        now = now or utc_now()
        return any(
            grant.is_active(now)
            for grant in self._repo.list_grants(certificate_id, viewer)
        )

    def open_certificate(
        self, certificate_id: int, viewer_address: str, now: datetime | None = None
    ) -> bytes:
        """Read a certificate's file on behalf of a viewer.

        The owning student and the issuing institute are always allowed.

        Returns:
            The certificate file bytes

        Raises:
            NotFoundError: If the certificate or its content is missing
            UnauthorizedError: If enforcement is on and no grant is active
        """
        certificate = self._certificates.get(certificate_id)
        viewer = self._directory.normalize(viewer_address)

        if not self._is_party(certificate.student_id, certificate.institute_id, viewer):
            if self.enforce_expiry and not self.has_active_grant(certificate_id, viewer, now):
                logger.info(
                    "access_denied",
                    certificate_id=certificate_id,
                    viewer=viewer,
                )
                raise UnauthorizedError(
                    f"No active access grant for certificate {certificate_id}",
                    extra={"certificate_id": certificate_id},
                )

        data = self._content.get(certificate.content_id)
        self._repo.insert_log(certificate_id, viewer)

        logger.info("certificate_opened", certificate_id=certificate_id, viewer=viewer)
        return data

    def list_access_logs(self, certificate_id: int) -> list[AccessLog]:
        """Access log of a certificate, newest first."""
        self._certificates.get(certificate_id)
        return self._repo.list_logs(certificate_id)

    def _is_party(self, student_id: int, institute_id: int, viewer: str) -> bool:
        if self._directory.find_student_id(viewer) == student_id:
            return True
        return self._directory.find_institute_id(viewer) == institute_id
